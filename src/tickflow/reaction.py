"""Observers — side effects triggered by reactive state changes.

Unlike an expression (which is lazy and only evaluates on read), an observer
is the unit the flush scheduler runs. A plain observer tracks everything its
action reads and runs on the first flush after creation. A gated observer
(see gate.py) tracks only its triggers and never runs until one changes.

All state lives in the session's anchor; instances are thin handles holding
an _id.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from tickflow._anchor import NodeKind
from tickflow.errors import Cancelled, DerivationError, TickflowError, UnknownNodeError
from tickflow.gate import EventGate

if TYPE_CHECKING:
    from tickflow.session import Session


class Observer:
    """A reactive side effect, re-run by the flush scheduler when stale."""

    __slots__ = ("_id", "_session", "_gate", "priority", "_active", "_disposed", "_run_count", "error")

    def __init__(
        self,
        session: Session,
        node_id: int,
        fn: Callable[[], None],
        gate: EventGate | None = None,
        *,
        priority: int = 0,
    ) -> None:
        self._id = node_id
        self._session = session
        self._gate = gate
        self.priority = priority
        self._active = True
        self._disposed = False
        self._run_count = 0
        self.error: BaseException | None = None

        anchor = session._anchor
        label = getattr(fn, "__name__", "observer")
        if label == "<lambda>":
            label = f"observer#{node_id}"
        anchor.register(node_id, NodeKind.OBSERVER, label, self)
        anchor.derivation_fns[node_id] = fn

        if gate is None:
            session._scheduler.pending.add(node_id)
        elif gate.arm(session._graph, node_id):
            session._scheduler.pending.add(node_id)
        else:
            anchor.dirty_flags[node_id] = False

    @property
    def _anchor(self):
        anchor = self._session._anchor
        if anchor.kinds.get(self._id) is not NodeKind.OBSERVER:
            raise UnknownNodeError(self)
        return anchor

    @property
    def label(self) -> str:
        return self._session._anchor.label(self._id)

    @property
    def gate(self) -> EventGate | None:
        return self._gate

    @property
    def stale(self) -> bool:
        return self._anchor.dirty_flags[self._id]

    @property
    def active(self) -> bool:
        return self._active and not self._disposed

    @property
    def run_count(self) -> int:
        """Completed runs; abandoned and failed runs are not counted."""
        return self._run_count

    def _run(self) -> None:
        """Execute the action once, re-tracking dependencies.

        Raises Cancelled when the action abandons the run (the observer stays
        stale), DerivationError or another TickflowError when it fails.
        """
        anchor = self._anchor
        graph = self._session._graph
        fn = anchor.derivation_fns[self._id]

        anchor.dirty_flags[self._id] = False
        graph.begin_tracking(self._id)
        try:
            if self._gate is not None:
                self._gate.run(graph, fn)
            else:
                fn()
        except Cancelled:
            anchor.dirty_flags[self._id] = True
            raise
        except TickflowError as exc:
            self.error = exc
            raise
        except Exception as exc:
            self.error = DerivationError(self.label, exc)
            raise self.error from exc
        else:
            self.error = None
            self._run_count += 1
        finally:
            graph.end_tracking(self._id)

    def suspend(self) -> None:
        """Deactivate. Invalidations still mark it stale but it does not run."""
        self._active = False

    def resume(self) -> None:
        """Reactivate; runs on the next flush if it went stale meanwhile."""
        if self._disposed:
            return
        self._active = True
        if self.stale:
            self._session._scheduler.pending.add(self._id)

    def dispose(self) -> None:
        """Stop this observer for good. Disconnects from all dependencies."""
        self._disposed = True
        self._session._graph.detach(self._id)
        self._session._scheduler.pending.discard(self._id)

    def __repr__(self) -> str:
        if self._disposed:
            state = "disposed"
        elif not self._active:
            state = "suspended"
        else:
            state = "stale" if self._session._anchor.dirty_flags[self._id] else "idle"
        gated = ", gated" if self._gate is not None else ""
        return f"Observer({self.label}, {state}{gated})"
