"""Session — one independent reactive graph.

A session owns its anchor, dependency graph, value store and flush
scheduler. Nothing is shared between sessions, so two sessions (two browser
tabs, two tests) can never observe each other's state.

Usage:
    session = create_session()
    artist = session.value("Nelly", name="artist")
    go = session.event("go")

    @session.expression
    def filtered():
        return [row for row in rows if row["artist"] == artist.get()]

    @session.observer(gate=[go])
    def plot():
        render(filtered.get())

    session.fire(go)
    session.flush()  # plot runs once, with the current artist
"""

from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, TypeVar

from tickflow._anchor import Anchor, NodeKind, new_id
from tickflow._tracking import DependencyGraph
from tickflow.action import Batch
from tickflow.computed import ReactiveExpression
from tickflow.errors import UnknownNodeError
from tickflow.gate import EventGate
from tickflow.observable import ReactiveValue
from tickflow.reaction import Observer
from tickflow.scheduler import FlushReport, FlushScheduler
from tickflow.store import ValueStore

T = TypeVar("T")

logger = logging.getLogger("tickflow.session")


class Session:
    """An isolated graph of reactive values, expressions and observers."""

    def __init__(self, name: str | None = None, *, raise_errors: bool = True, max_ticks: int = 100) -> None:
        self.name = name or f"session-{id(self):x}"
        self._anchor = Anchor()
        self._graph = DependencyGraph(self._anchor)
        self._scheduler = FlushScheduler(self._anchor, raise_errors=raise_errors, max_ticks=max_ticks)
        self._store = ValueStore(self._anchor, self._graph, self._scheduler)
        self._batch = Batch(self._scheduler)
        logger.debug("Created %s", self.name)

    @property
    def store(self) -> ValueStore:
        return self._store

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    # --- Values ---

    def value(self, initial: Any = None, name: str | None = None) -> ReactiveValue:
        """Create a reactive value."""
        return self._store.create(initial, name=name)

    def read(self, handle: ReactiveValue | str) -> Any:
        return self._store.read(handle)

    def write(self, handle: ReactiveValue | str, value: Any) -> None:
        self._store.write(handle, value)

    def event(self, name: str | None = None) -> ReactiveValue:
        """Create an event counter, like an action button. Starts at 0."""
        return self._store.create(0, name=name)

    def fire(self, handle: ReactiveValue | str) -> None:
        """Increment an event counter, scheduling everything gated on it.

        Inside a flush the increment is deferred as a whole, so firing twice
        from one observer run counts twice.
        """
        self._store.modify(handle, lambda count: count + 1)

    # --- Expressions ---

    def expression(self, fn: Callable[[], T]) -> ReactiveExpression[T]:
        """Create a reactive expression. Also usable as a decorator."""
        return ReactiveExpression(self, new_id(), fn)

    def get(self, handle: ReactiveExpression[T]) -> T:
        if not isinstance(handle, ReactiveExpression) or handle._session is not self:
            raise UnknownNodeError(handle)
        return handle.get()

    # --- Observers ---

    def observer(self, fn=None, gate=None, *, priority=0, fire_on_init=False):
        """Create an observer, optionally gated on explicit triggers.

        Works directly, as a bare decorator, or as a decorator with arguments:
            session.observer(draw)
            @session.observer
            @session.observer(gate=[go], priority=10)
        """
        if fn is None:
            return lambda f: self.observer(f, gate, priority=priority, fire_on_init=fire_on_init)
        if gate is not None and not isinstance(gate, EventGate):
            gate = EventGate(gate, fire_on_init=fire_on_init)
        if gate is not None:
            for trigger in gate.triggers:
                self._check_owned(trigger)
        return Observer(self, new_id(), fn, gate, priority=priority)

    def bind_event(self, fn: Callable[[], None], *triggers: Any, fire_on_init: bool = False,
                   priority: int = 0) -> Observer:
        """Observer that runs fn only when one of triggers changes."""
        return self.observer(fn, EventGate(triggers, fire_on_init=fire_on_init), priority=priority)

    def _check_owned(self, handle: Any) -> None:
        node_id = getattr(handle, "_id", None)
        if node_id is None or self._anchor.kinds.get(node_id) not in (NodeKind.VALUE, NodeKind.EXPRESSION):
            raise UnknownNodeError(handle)

    # --- Isolation ---

    def isolate(self, fn=None):
        """Read without subscribing: isolate(fn) returns fn(), or use as
        ``with session.isolate():``."""
        if fn is None:
            return self._graph.isolate()
        with self._graph.isolate():
            return fn()

    # --- Scheduling ---

    def flush(self, raise_errors: bool | None = None) -> FlushReport:
        """Run one tick: every stale observer queued since the last flush."""
        return self._scheduler.flush(raise_errors)

    def run_until_idle(self, max_ticks: int | None = None) -> list[FlushReport]:
        return self._scheduler.run_until_idle(max_ticks)

    def on_flushed(self, callback: Callable[[FlushReport], None]) -> Callable[[], None]:
        return self._scheduler.on_flushed(callback)

    def pending_count(self) -> int:
        return self._scheduler.pending_count()

    def transaction(self) -> ContextManager[None]:
        """Batch writes; flush once when the outermost batch exits."""
        return self._batch.transaction()

    def action(self, fn):
        """Decorator: run fn as a single mutation batch followed by one flush."""
        return self._batch.action(fn)

    def __repr__(self) -> str:
        kinds = list(self._anchor.kinds.values())
        return (
            f"Session({self.name}, values={kinds.count(NodeKind.VALUE)}, "
            f"expressions={kinds.count(NodeKind.EXPRESSION)}, "
            f"observers={kinds.count(NodeKind.OBSERVER)}, tick={self._scheduler.tick})"
        )


def create_session(name: str | None = None, **options: Any) -> Session:
    """Build a fresh session with its own store, graph and scheduler."""
    return Session(name, **options)
