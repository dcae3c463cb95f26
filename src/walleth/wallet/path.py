"""
Derivation paths - BIP-32 path notation.

    m / purpose' / coin_type' / account' / change / index

An apostrophe (or h / H) marks a hardened step.
"""

from dataclasses import dataclass
from typing import Iterator, Union

from eth_account.hdaccount.deterministic import HardNode, Node, SoftNode
from eth_utils import ValidationError

from ..errors import DerivationPathError


HARDENED_OFFSET = 0x80000000
MAX_INDEX = HARDENED_OFFSET - 1
MAX_DEPTH = 255

_HARDENED_MARKERS = ("'", "h", "H")


@dataclass(frozen=True)
class PathStep:
    """One step of a derivation path."""
    index: int
    hardened: bool = False

    def __post_init__(self):
        if not isinstance(self.index, int) or isinstance(self.index, bool):
            raise DerivationPathError(f"Path index must be an int, got {self.index!r}")
        if not 0 <= self.index <= MAX_INDEX:
            raise DerivationPathError(
                f"Path index {self.index} outside [0, {MAX_INDEX}]"
            )

    @classmethod
    def from_node(cls, node: Node) -> "PathStep":
        return cls(node.index, isinstance(node, HardNode))

    def to_node(self) -> Node:
        """The eth_account node for this step."""
        return HardNode(self.index) if self.hardened else SoftNode(self.index)

    @property
    def child_number(self) -> int:
        """The 32-bit child number used by CKD (hardened steps are offset)."""
        return self.index + HARDENED_OFFSET if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


class DerivationPath:
    """
    Immutable, hashable sequence of PathSteps starting at the master key.

    Usage:
        path = DerivationPath.parse("m/44'/60'/0'/0/0")
        path.parent.child(1)   # m/44'/60'/0'/0/1
    """

    __slots__ = ("_steps",)

    def __init__(self, steps=()):
        steps = tuple(steps)
        for step in steps:
            if not isinstance(step, PathStep):
                raise DerivationPathError(f"Not a path step: {step!r}")
        if len(steps) > MAX_DEPTH:
            raise DerivationPathError(f"Path deeper than {MAX_DEPTH} levels")
        self._steps = steps

    @classmethod
    def parse(cls, path: str) -> "DerivationPath":
        """
        Parse the string notation.

        Raises: DerivationPathError on any malformed segment.
        """
        if not isinstance(path, str):
            raise DerivationPathError(f"Path must be a string, got {type(path).__name__}")

        segments = [s.strip() for s in path.strip().split("/")]
        if not segments or segments[0] not in ("m", "M"):
            raise DerivationPathError(f"Path must start with 'm': {path!r}")

        steps = []
        for segment in segments[1:]:
            digits = segment[:-1] if segment.endswith(_HARDENED_MARKERS) else segment
            # Node.decode goes through int(), which also takes signs and unicode digits
            if not digits or not (digits.isascii() and digits.isdigit()):
                raise DerivationPathError(f"Malformed path segment {segment!r} in {path!r}")
            try:
                node = Node.decode(segment.replace("h", "'"))
            except ValidationError as e:
                raise DerivationPathError(f"Malformed path segment {segment!r} in {path!r}") from e
            steps.append(PathStep.from_node(node))
        return cls(steps)

    @classmethod
    def coerce(cls, value: Union["DerivationPath", str]) -> "DerivationPath":
        if isinstance(value, DerivationPath):
            return value
        return cls.parse(value)

    @property
    def steps(self) -> tuple:
        return self._steps

    @property
    def depth(self) -> int:
        return len(self._steps)

    @property
    def parent(self) -> "DerivationPath":
        if not self._steps:
            raise DerivationPathError("The master path has no parent")
        return DerivationPath(self._steps[:-1])

    def child(self, index: int, hardened: bool = False) -> "DerivationPath":
        return DerivationPath(self._steps + (PathStep(index, hardened),))

    def is_prefix_of(self, other: "DerivationPath") -> bool:
        return other._steps[:len(self._steps)] == self._steps

    def __iter__(self) -> Iterator[PathStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __eq__(self, other) -> bool:
        if isinstance(other, str):
            try:
                other = DerivationPath.parse(other)
            except DerivationPathError:
                return False
        return isinstance(other, DerivationPath) and self._steps == other._steps

    def __hash__(self) -> int:
        return hash(self._steps)

    def __str__(self) -> str:
        return "/".join(["m"] + [str(s) for s in self._steps])

    def __repr__(self) -> str:
        return f"DerivationPath('{self}')"


# BIP-44 path for Ethereum accounts, index appended per address
ETH_BASE_PATH = DerivationPath.parse("m/44'/60'/0'/0")
MASTER_PATH = DerivationPath()
