"""Reactive values — mutable cells that track their readers.

When a ReactiveValue is read inside an expression or observer evaluation, the
dependency is registered automatically. When it changes, every dependent is
invalidated and stale observers wait for the next flush.

All state lives in the session's anchor; instances are thin handles holding
an _id. Reads and writes go through the session's ValueStore.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from tickflow.store import ValueStore

T = TypeVar("T")


class ReactiveValue(Generic[T]):
    """Handle to a single reactive cell."""

    __slots__ = ("_id", "_store")

    def __init__(self, store: ValueStore, node_id: int) -> None:
        self._id = node_id
        self._store = store

    @property
    def name(self) -> str:
        return self._store._anchor.label(self._id)

    def get(self) -> T:
        """Read the value. If inside an evaluation, registers the dependency."""
        return self._store.read(self)

    def set(self, value: T) -> None:
        """Write a new value."""
        self._store.write(self, value)

    def __repr__(self) -> str:
        anchor = self._store._anchor
        if self._id not in anchor:
            return f"ReactiveValue(#{self._id}, detached)"
        return f"ReactiveValue({self.name}={anchor.values[self._id]!r})"
