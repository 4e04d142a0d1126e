"""Reactive expressions — derived, lazily computed, memoized state.

A ReactiveExpression wraps a function. When evaluated, it tracks which values
and expressions the function reads and caches the result. When any of them
changes, the cache is marked stale; it is recomputed on the next read, never
before. An expression nobody reads is never recomputed.

A derivation that raises poisons the expression: the error is cached and
re-raised to every reader until a later recomputation succeeds.

All state lives in the session's anchor; instances are thin handles holding
an _id.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from tickflow._anchor import NodeKind
from tickflow.errors import DerivationError, TickflowError, UnknownNodeError
from tickflow.propagate import invalidate

if TYPE_CHECKING:
    from tickflow.session import Session

T = TypeVar("T")

logger = logging.getLogger("tickflow.computed")

_UNSET = object()


class ReactiveExpression(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_id", "_session", "_compute_count")

    def __init__(self, session: Session, node_id: int, fn: Callable[[], T]) -> None:
        self._id = node_id
        self._session = session
        self._compute_count = 0
        anchor = session._anchor
        label = getattr(fn, "__name__", "expression")
        if label == "<lambda>":
            label = f"expression#{node_id}"
        anchor.register(node_id, NodeKind.EXPRESSION, label, self)
        anchor.derivation_fns[node_id] = fn
        anchor.cached_values[node_id] = _UNSET

    @property
    def _anchor(self):
        anchor = self._session._anchor
        if anchor.kinds.get(self._id) is not NodeKind.EXPRESSION:
            raise UnknownNodeError(self)
        return anchor

    @property
    def label(self) -> str:
        return self._session._anchor.label(self._id)

    @property
    def fresh(self) -> bool:
        return not self._anchor.dirty_flags[self._id]

    @property
    def poisoned(self) -> bool:
        anchor = self._anchor
        return not anchor.dirty_flags[self._id] and self._id in anchor.errors

    @property
    def compute_count(self) -> int:
        """How many times the derivation function has been invoked."""
        return self._compute_count

    def get(self) -> T:
        """Read the expression. Recomputes first if stale."""
        anchor = self._anchor
        self._session._graph.record_read(self._id)

        if anchor.dirty_flags[self._id]:
            self._recompute()

        error = anchor.errors.get(self._id)
        if error is not None:
            # Reset to the stored traceback so repeated reads do not grow it.
            raise error.with_traceback(anchor.tracebacks.get(self._id))
        return anchor.cached_values[self._id]

    def _recompute(self) -> None:
        """Re-evaluate the function, replacing upstream edges with this run's reads."""
        anchor = self._session._anchor
        graph = self._session._graph
        fn = anchor.derivation_fns[self._id]

        graph.begin_tracking(self._id)
        self._compute_count += 1
        logger.debug("Recomputing %s", self.label)
        try:
            value = fn()
        except TickflowError as exc:
            # Upstream poison or a cycle: pass the same error on unchanged.
            anchor.errors[self._id] = exc
            anchor.tracebacks[self._id] = exc.__traceback__
            anchor.cached_values[self._id] = _UNSET
        except Exception as exc:
            anchor.errors[self._id] = DerivationError(self.label, exc)
            anchor.tracebacks[self._id] = None
            anchor.cached_values[self._id] = _UNSET
            logger.debug("Expression %s raised %r", self.label, exc)
        else:
            anchor.errors.pop(self._id, None)
            anchor.tracebacks.pop(self._id, None)
            anchor.cached_values[self._id] = value
        finally:
            graph.end_tracking(self._id)
            anchor.dirty_flags[self._id] = False

    def invalidate(self) -> None:
        """Mark stale by hand, along with everything downstream."""
        invalidate(self._anchor, self._id, self._session._scheduler.pending)

    def __call__(self) -> T:
        return self.get()

    def __repr__(self) -> str:
        anchor = self._session._anchor
        if self._id not in anchor:
            return f"ReactiveExpression(#{self._id}, detached)"
        if anchor.dirty_flags[self._id]:
            state = "stale"
        elif self._id in anchor.errors:
            state = f"poisoned={anchor.errors[self._id]!r}"
        else:
            state = f"cached={anchor.cached_values[self._id]!r}"
        return f"ReactiveExpression({self.label}, {state})"
