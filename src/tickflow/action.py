"""Actions and transactions — batched state mutations.

A UI event usually writes several values at once. Wrapping those writes in
``session.action`` or ``with session.transaction()`` flushes once, when the
outermost scope exits, so observers see all the writes together.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, ParamSpec, TypeVar

if TYPE_CHECKING:
    from tickflow.scheduler import FlushScheduler

P = ParamSpec("P")
R = TypeVar("R")


class Batch:
    """Nesting counter that flushes when the outermost scope exits."""

    def __init__(self, scheduler: FlushScheduler) -> None:
        self._scheduler = scheduler
        self.depth = 0

    def begin(self) -> None:
        """Enter a batching scope. Nested batches are supported."""
        self.depth += 1

    def end(self, *, flush: bool = True) -> None:
        """Exit a batching scope. The outermost exit flushes."""
        self.depth -= 1
        # Inside a running flush the writes are already deferred to the next tick.
        if self.depth == 0 and flush and not self._scheduler.flushing:
            self._scheduler.flush()

    @contextmanager
    def transaction(self):
        """Context manager for batching mutations.

        Usage:
            with session.transaction():
                artist.set("Nelly")
                track.set("Ride Wit Me")
                # observers run here, after both are set
        """
        self.begin()
        completed = False
        try:
            yield
            completed = True
        finally:
            # An exception escaping the batch leaves its writes for the next flush.
            self.end(flush=completed)

    def action(self, fn: Callable[P, R]) -> Callable[P, R]:
        """Decorator: run fn as one mutation batch.

        Usage:
            @session.action
            def select(artist_name, track_name):
                artist.set(artist_name)
                track.set(track_name)
        """

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with self.transaction():
                return fn(*args, **kwargs)

        return wrapper
