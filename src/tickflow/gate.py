"""Event gate — run an observer only when explicit triggers change.

A gated observer subscribes to its triggers and nothing else: its action runs
isolated, so the values and expressions it reads never schedule it. This
decouples what an observer reads from what makes it re-execute, e.g. "redraw
the chart when Go is pressed, using whatever is selected at that moment".
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from tickflow._tracking import DependencyGraph


class EventGate:
    """Trigger list plus the initial-execution policy for one observer.

    Args:
        triggers: Reactive values (or expressions) whose changes schedule
            the observer.
        fire_on_init: When False, the observer does no work until a trigger
            changes. When True, it is also scheduled for the first flush if
            any trigger already holds a truthy value.
    """

    __slots__ = ("_triggers", "fire_on_init")

    def __init__(self, triggers: Iterable[Any], *, fire_on_init: bool = False) -> None:
        self._triggers = tuple(triggers)
        if not self._triggers:
            raise ValueError("an event gate needs at least one trigger")
        self.fire_on_init = fire_on_init

    @property
    def triggers(self) -> tuple:
        return self._triggers

    def read_triggers(self) -> list[Any]:
        """Read every trigger in the current (tracking) context."""
        return [trigger.get() for trigger in self._triggers]

    def arm(self, graph: DependencyGraph, reader_id: int) -> bool:
        """Subscribe reader_id to the triggers without running its action.

        Returns True when the observer should run on the first flush.
        """
        graph.begin_tracking(reader_id)
        try:
            values = self.read_triggers()
        finally:
            graph.end_tracking(reader_id)
        return self.fire_on_init and any(values)

    def run(self, graph: DependencyGraph, action) -> None:
        """Run action with only the trigger reads tracked."""
        self.read_triggers()
        with graph.isolate():
            action()

    def __repr__(self) -> str:
        return f"EventGate({len(self._triggers)} trigger(s), fire_on_init={self.fire_on_init})"
