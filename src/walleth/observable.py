"""
Observable - a state holder that notifies subscribers on change.
"""

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class Observable(Generic[S]):
    """
    Holds a state object and calls every subscriber after each change.

    Subscriber ids are never reused, so unsubscribing one callback can't
    remove another.
    """

    def __init__(self, initial_state: S):
        self._state = initial_state
        self._observers: dict[int, Callable[[S], None]] = {}
        self._next_id = 0

    @property
    def state(self) -> S:
        return self._state

    def set_state(self, new_state: S) -> None:
        """Replace the state and notify subscribers."""
        self._state = new_state
        self._emit()

    def update(self, updater: Callable[[S], None]) -> None:
        """Mutate the state in place through updater, then notify."""
        updater(self._state)
        self._emit()

    def subscribe(self, callback: Callable[[S], None]) -> int:
        """Register a callback; returns its id for unsubscribe()."""
        observer_id = self._next_id
        self._next_id += 1
        self._observers[observer_id] = callback
        return observer_id

    def unsubscribe(self, observer_id: int) -> None:
        self._observers.pop(observer_id, None)

    def _emit(self) -> None:
        # copy: callbacks may unsubscribe themselves
        for callback in list(self._observers.values()):
            callback(self._state)
