"""Data anchor — plain Python structures that hold one session's reactive state.

Every value, expression and observer handle is a thin object holding an _id.
The data behind those ids lives here, one Anchor per session, so sessions
never alias each other's state.
"""

import enum
import itertools
from types import TracebackType


class NodeKind(enum.Enum):
    VALUE = "value"
    EXPRESSION = "expression"
    OBSERVER = "observer"


# ID generation — itertools.count is thread-safe (C-level GIL atomic).
# Shared by all sessions so a handle from one session is never a valid id in another.
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


class Anchor:
    """Per-session node tables, keyed by node id."""

    def __init__(self) -> None:
        self.kinds: dict[int, NodeKind] = {}
        self.labels: dict[int, str] = {}
        self.handles: dict[int, object] = {}

        # Value state
        self.values: dict[int, object] = {}
        self.changed: set[int] = set()  # value ids written since the last flush

        # Edges
        self.dependents: dict[int, set[int]] = {}  # node_id -> reader ids
        self.upstream: dict[int, frozenset[int]] = {}  # reader_id -> node ids

        # Derivation state (expressions + observers)
        self.derivation_fns: dict[int, object] = {}
        self.dirty_flags: dict[int, bool] = {}
        self.cached_values: dict[int, object] = {}
        self.errors: dict[int, BaseException] = {}
        self.tracebacks: dict[int, TracebackType | None] = {}  # re-raise point for each error

    def register(self, node_id: int, kind: NodeKind, label: str, handle: object) -> None:
        self.kinds[node_id] = kind
        self.labels[node_id] = label
        self.handles[node_id] = handle
        self.dependents[node_id] = set()
        if kind is not NodeKind.VALUE:
            self.upstream[node_id] = frozenset()
            self.dirty_flags[node_id] = True

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.kinds

    def label(self, node_id: int) -> str:
        return self.labels.get(node_id, f"#{node_id}")
