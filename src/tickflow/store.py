"""ValueStore — the only entry point for mutating reactive state.

Holds the session's reactive cells, optionally by name. A read inside an
evaluation registers a dependency; a write invalidates every dependent and
queues stale observers for the next flush.

Writes made while a flush is running are deferred until that flush finishes,
so every tick observes a single snapshot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Mapping

from tickflow._anchor import Anchor, NodeKind, new_id
from tickflow.errors import ReactiveWriteError, UnknownValueError
from tickflow.observable import ReactiveValue
from tickflow.propagate import invalidate

if TYPE_CHECKING:
    from tickflow._tracking import DependencyGraph
    from tickflow.scheduler import FlushScheduler

logger = logging.getLogger("tickflow.store")


def _differs(old: object, new: object) -> bool:
    if old is new:
        return False
    try:
        return not bool(old == new)
    except (TypeError, ValueError):
        # Array-likes compare elementwise; treat them as changed.
        return True


class ValueStore:
    """Named and anonymous reactive cells of one session."""

    def __init__(
        self, anchor: Anchor, graph: DependencyGraph, scheduler: FlushScheduler
    ) -> None:
        self._anchor = anchor
        self._graph = graph
        self._scheduler = scheduler
        self._names: dict[str, int] = {}

    def create(self, initial: Any = None, name: str | None = None) -> ReactiveValue:
        """Register a new cell holding initial."""
        if name is not None and name in self._names:
            raise ValueError(f"reactive value {name!r} already exists")
        node_id = new_id()
        handle = ReactiveValue(self, node_id)
        self._anchor.register(node_id, NodeKind.VALUE, name or f"value#{node_id}", handle)
        self._anchor.values[node_id] = initial
        if name is not None:
            self._names[name] = node_id
        return handle

    def _resolve(self, ref: ReactiveValue | str) -> int:
        if isinstance(ref, str):
            node_id = self._names.get(ref)
        else:
            node_id = getattr(ref, "_id", None)
        if node_id is None or self._anchor.kinds.get(node_id) is not NodeKind.VALUE:
            raise UnknownValueError(ref)
        return node_id

    def handle(self, name: str) -> ReactiveValue:
        """The handle registered under name."""
        return self._anchor.handles[self._resolve(name)]

    def read(self, ref: ReactiveValue | str) -> Any:
        """Read a value. Inside an evaluation, registers the dependency."""
        node_id = self._resolve(ref)
        self._graph.record_read(node_id)
        return self._anchor.values[node_id]

    def write(self, ref: ReactiveValue | str, value: Any) -> None:
        """Replace a value and invalidate its dependents."""
        node_id = self._resolve(ref)
        if self._scheduler.flushing:
            logger.debug("Deferring write to %s until the flush ends", self._anchor.label(node_id))
            self._scheduler.defer(lambda: self._write_direct(node_id, value))
            return
        if self._graph.is_evaluating:
            raise ReactiveWriteError(
                f"cannot write {self._anchor.label(node_id)} while an expression is evaluating"
            )
        self._write_direct(node_id, value)

    def modify(self, ref: ReactiveValue | str, fn: Callable[[Any], Any]) -> None:
        """Replace a value with fn(value). During a flush, the read and the
        write are deferred together, so repeated calls never lose an update."""
        node_id = self._resolve(ref)
        if self._scheduler.flushing:
            logger.debug("Deferring update of %s until the flush ends", self._anchor.label(node_id))
            self._scheduler.defer(lambda: self._write_direct(node_id, fn(self._anchor.values[node_id])))
            return
        if self._graph.is_evaluating:
            raise ReactiveWriteError(
                f"cannot write {self._anchor.label(node_id)} while an expression is evaluating"
            )
        self._write_direct(node_id, fn(self._anchor.values[node_id]))

    def _write_direct(self, node_id: int, value: Any) -> None:
        anchor = self._anchor
        if not _differs(anchor.values[node_id], value):
            return
        anchor.values[node_id] = value
        anchor.changed.add(node_id)
        invalidate(anchor, node_id, self._scheduler.pending)

    def update(self, values: Mapping[str, Any]) -> None:
        """Write several named cells; validated before any write happens."""
        ids = {self._resolve(name): value for name, value in values.items()}
        for node_id, value in ids.items():
            self.write(self._anchor.handles[node_id], value)

    def ensure(self, schema: Mapping[str, Any]) -> list[str]:
        """Add missing named cells with their defaults. Existing cells are untouched.

        Returns the names that were added.
        """
        added = [name for name in schema if name not in self._names]
        for name in added:
            self.create(schema[name], name=name)
        if added:
            logger.info("Added %d reactive value(s): %s", len(added), ", ".join(added))
        return added

    def names(self) -> list[str]:
        return list(self._names)

    def changed(self) -> list[ReactiveValue]:
        """Values written since the last flush."""
        return [self._anchor.handles[node_id] for node_id in sorted(self._anchor.changed)]

    def __contains__(self, ref: object) -> bool:
        try:
            self._resolve(ref)
        except UnknownValueError:
            return False
        return True
