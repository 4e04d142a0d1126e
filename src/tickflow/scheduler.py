"""Flush scheduler — one consistent recomputation pass per mutation batch.

Writes only mark nodes stale and queue observers. flush() drains the queue
and runs each stale, active observer exactly once, highest priority first,
then in creation order. Observers pull the expressions they need, so an
observer never runs against a half-updated upstream.

Writes issued while a flush is running are deferred to the next tick; those
of an observer that abandons its run are discarded. An observer failure is
recorded and reported but never stops the others.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from tickflow.errors import Cancelled, FlushError, ReentrantFlushError, TickflowError

if TYPE_CHECKING:
    from tickflow._anchor import Anchor
    from tickflow.reaction import Observer

logger = logging.getLogger("tickflow.scheduler")


class FlushReport:
    """What one tick did."""

    __slots__ = ("tick", "changed", "executed", "failures", "cancelled")

    def __init__(self, tick: int, changed: list) -> None:
        self.tick = tick
        self.changed = changed
        self.executed: list[Observer] = []
        self.failures: list[tuple[Observer, BaseException]] = []
        self.cancelled: list[Observer] = []

    @property
    def ok(self) -> bool:
        return not self.failures

    def __bool__(self) -> bool:
        return bool(self.executed or self.failures or self.cancelled)

    def __repr__(self) -> str:
        return (
            f"FlushReport(tick={self.tick}, executed={len(self.executed)}, "
            f"failures={len(self.failures)}, cancelled={len(self.cancelled)})"
        )


class FlushScheduler:
    """Pending observers and the flush loop of one session."""

    def __init__(self, anchor: Anchor, *, raise_errors: bool = True, max_ticks: int = 100) -> None:
        self._anchor = anchor
        self.pending: set[int] = set()
        self.flushing = False
        self.tick = 0
        self.raise_errors = raise_errors
        self.max_ticks = max_ticks
        self._running: int | None = None
        # (observer id that issued the write, write)
        self._deferred: list[tuple[int | None, Callable[[], None]]] = []
        self._flushed_callbacks: list[Callable[[FlushReport], None]] = []

    def defer(self, fn: Callable[[], None]) -> None:
        """Run fn after the current flush finishes.

        fn belongs to the observer running when it was deferred and is dropped
        if that observer abandons its run.
        """
        self._deferred.append((self._running, fn))

    def pending_count(self) -> int:
        """Number of observers waiting for the next flush. Useful for testing."""
        return len(self.pending)

    def on_flushed(self, callback: Callable[[FlushReport], None]) -> Callable[[], None]:
        """Call callback with every non-empty report. Returns an unregister function."""
        self._flushed_callbacks.append(callback)

        def _remove() -> None:
            try:
                self._flushed_callbacks.remove(callback)
            except ValueError:
                pass  # already removed

        return _remove

    def _ordered(self, batch: set[int]) -> list[Observer]:
        observers = [self._anchor.handles[oid] for oid in batch if oid in self._anchor]
        return sorted(observers, key=lambda obs: (-obs.priority, obs._id))

    def flush(self, raise_errors: bool | None = None) -> FlushReport:
        """Run every stale observer queued since the last flush."""
        if self.flushing:
            raise ReentrantFlushError("flush() called while a flush is running")
        if raise_errors is None:
            raise_errors = self.raise_errors

        anchor = self._anchor
        if not self.pending:
            anchor.changed.clear()
            return FlushReport(self.tick, [])

        self.tick += 1
        report = FlushReport(self.tick, [anchor.handles[vid] for vid in sorted(anchor.changed)])
        anchor.changed.clear()
        batch, self.pending = self.pending, set()

        self.flushing = True
        try:
            for observer in self._ordered(batch):
                if not observer.active:
                    continue
                if not anchor.dirty_flags[observer._id]:
                    continue
                self._execute(observer, report)
        finally:
            self.flushing = False
            deferred, self._deferred = self._deferred, []
            for _, fn in deferred:
                fn()

        logger.info(
            "Tick %d: %d executed, %d failed, %d cancelled",
            report.tick, len(report.executed), len(report.failures), len(report.cancelled),
        )
        for callback in list(self._flushed_callbacks):
            callback(report)
        if report.failures and raise_errors:
            raise FlushError(report)
        return report

    def _execute(self, observer: Observer, report: FlushReport) -> None:
        self._running = observer._id
        try:
            observer._run()
        except Cancelled:
            logger.debug("Observer %s abandoned its run; retrying next tick", observer.label)
            # An abandoned run commits nothing.
            self._deferred = [(owner, fn) for owner, fn in self._deferred if owner != observer._id]
            self.pending.add(observer._id)
            report.cancelled.append(observer)
        except TickflowError as exc:
            logger.error("Observer %s failed in tick %d", observer.label, report.tick, exc_info=exc)
            report.failures.append((observer, exc))
        else:
            report.executed.append(observer)
        finally:
            self._running = None

    def run_until_idle(self, max_ticks: int | None = None) -> list[FlushReport]:
        """Flush until nothing is pending. Observers that keep writing to their
        own inputs never settle; give up after max_ticks."""
        limit = self.max_ticks if max_ticks is None else max_ticks
        reports = []
        while self.pending:
            if len(reports) >= limit:
                raise TickflowError(f"graph did not settle after {limit} ticks")
            reports.append(self.flush())
        return reports
