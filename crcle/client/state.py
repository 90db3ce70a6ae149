"""
Observable state container with functional updates.

Every mutation is ``update(fn)`` where ``fn`` maps the current state to the
next one. The transition runs without awaiting, so concurrent tasks on the
same loop never lose each other's updates.
"""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class StateContainer(Generic[S]):
    """Holds one immutable state value and notifies listeners on change."""

    def __init__(self, initial: S):
        self._value = initial
        self._listeners: List[Callable[[S], None]] = []

    @property
    def value(self) -> S:
        return self._value

    def update(self, fn: Callable[[S], S]) -> S:
        """Apply a read-modify-write transition and return the new state."""
        new_value = fn(self._value)
        if new_value is self._value or new_value == self._value:
            return self._value
        self._value = new_value
        for listener in list(self._listeners):
            listener(new_value)
        return new_value

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
