"""tickflow: a per-session reactive dataflow runtime for Python.

The Textual bridge (tickflow.textual) and the chart search demo
(tickflow.demo) are not imported here; import them explicitly.
"""

from importlib.metadata import version as _version

__version__ = _version("tickflow")

from tickflow.session import Session, create_session
from tickflow.observable import ReactiveValue
from tickflow.computed import ReactiveExpression
from tickflow.reaction import Observer
from tickflow.gate import EventGate
from tickflow.scheduler import FlushReport
from tickflow.errors import (
    Cancelled,
    CycleError,
    DerivationError,
    FlushError,
    ReactiveWriteError,
    ReentrantFlushError,
    TickflowError,
    UnknownNodeError,
    UnknownValueError,
)

__all__ = [
    "Session",
    "create_session",
    "ReactiveValue",
    "ReactiveExpression",
    "Observer",
    "EventGate",
    "FlushReport",
    "Cancelled",
    "CycleError",
    "DerivationError",
    "FlushError",
    "ReactiveWriteError",
    "ReentrantFlushError",
    "TickflowError",
    "UnknownNodeError",
    "UnknownValueError",
]
