"""tickflow error hierarchy.

All tickflow errors inherit from TickflowError. Cancelled is the exception:
it is a control signal for abandoning an observer run, not a failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tickflow.scheduler import FlushReport


class TickflowError(Exception):
    """Base error for all tickflow operations."""


class UnknownNodeError(TickflowError, LookupError):
    """Operation on a handle that is not registered in this session."""

    what = "node"

    def __init__(self, node: object) -> None:
        super().__init__(f"unknown {self.what}: {node!r}")
        self.node = node


class UnknownValueError(UnknownNodeError):
    """Read or write of a reactive value that is not registered."""

    what = "reactive value"


class CycleError(TickflowError):
    """A node transitively depends on itself."""

    def __init__(self, path: list[str]) -> None:
        super().__init__("dependency cycle: " + " -> ".join(path))
        self.path = path


class DerivationError(TickflowError):
    """A user-supplied derivation or observer action raised.

    The original exception is kept as ``__cause__`` and ``original``.
    """

    def __init__(self, label: str, original: BaseException) -> None:
        super().__init__(f"{label} failed: {original!r}")
        self.label = label
        self.original = original
        self.__cause__ = original


class ReactiveWriteError(TickflowError):
    """A reactive value was written from inside a derivation."""


class ReentrantFlushError(TickflowError):
    """flush() was called while a flush was already running."""


class FlushError(TickflowError):
    """One or more observers failed during a flush."""

    def __init__(self, report: FlushReport) -> None:
        names = ", ".join(obs.label for obs, _ in report.failures)
        super().__init__(
            f"{len(report.failures)} observer(s) failed in tick {report.tick}: {names}"
        )
        self.report = report

    @property
    def failures(self):
        return self.report.failures


class Cancelled(Exception):
    """Raised by an observer action to abandon the current run.

    The observer stays stale and is retried on the next tick.
    """
