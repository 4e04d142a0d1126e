"""Dependency tracking engine — the heart of tickflow.

Each DependencyGraph owns a contextvar holding its active-evaluation stack.
Every expression or observer evaluation pushes a frame; any read made while
that frame is on top is recorded as an edge reader -> node. When the
evaluation ends, the reader's upstream edges are replaced wholesale by the
reads of this run, so conditional reads re-subscribe correctly.

An isolated frame (reader None) suppresses recording: reads made under it
behave as if no evaluation were running.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Iterator

from tickflow._anchor import Anchor
from tickflow.errors import CycleError, UnknownNodeError


class _Frame:
    __slots__ = ("reader", "edges", "token")

    def __init__(self, reader: int | None) -> None:
        self.reader = reader
        self.edges: set[int] = set()
        self.token: contextvars.Token | None = None


class DependencyGraph:
    """Read-edges between the nodes of one session."""

    def __init__(self, anchor: Anchor) -> None:
        self._anchor = anchor
        # One stack per graph; never shared between sessions.
        self._active: contextvars.ContextVar[tuple[_Frame, ...]] = contextvars.ContextVar(
            f"tickflow_active_{id(self)}", default=()
        )

    # --- Stack ---

    def _push(self, frame: _Frame) -> None:
        frame.token = self._active.set(self._active.get() + (frame,))

    def _pop(self) -> _Frame:
        stack = self._active.get()
        frame = stack[-1]
        self._active.reset(frame.token)
        return frame

    def _on_stack(self, node_id: int) -> bool:
        return any(frame.reader == node_id for frame in self._active.get())

    def _cycle_path(self, node_id: int) -> list[str]:
        readers = [f.reader for f in self._active.get() if f.reader is not None]
        start = readers.index(node_id)
        return [self._anchor.label(r) for r in readers[start:]] + [self._anchor.label(node_id)]

    @property
    def current_reader(self) -> int | None:
        """Id of the reader whose reads are being recorded, or None."""
        stack = self._active.get()
        return stack[-1].reader if stack else None

    @property
    def is_evaluating(self) -> bool:
        """True while any expression or observer evaluation is in progress."""
        return any(frame.reader is not None for frame in self._active.get())

    # --- Tracking ---

    def begin_tracking(self, reader_id: int) -> None:
        """Start recording reads for reader_id."""
        if reader_id not in self._anchor:
            raise UnknownNodeError(reader_id)
        if self._on_stack(reader_id):
            raise CycleError(self._cycle_path(reader_id))
        self._push(_Frame(reader_id))

    def record_read(self, node_id: int) -> None:
        """Record an edge from the current reader to node_id."""
        stack = self._active.get()
        if not stack or stack[-1].reader is None:
            return
        if self._on_stack(node_id):
            raise CycleError(self._cycle_path(node_id))
        stack[-1].edges.add(node_id)

    def end_tracking(self, reader_id: int) -> frozenset[int]:
        """Stop recording for reader_id and swap in its new upstream edges."""
        frame = self._pop()
        if frame.reader != reader_id:
            raise RuntimeError(
                f"tracking stack corrupted: ended {reader_id}, active {frame.reader}"
            )

        anchor = self._anchor
        old = anchor.upstream.get(reader_id, frozenset())
        new = frozenset(frame.edges)
        for node_id in old - new:
            anchor.dependents[node_id].discard(reader_id)
        for node_id in new - old:
            anchor.dependents[node_id].add(reader_id)
        anchor.upstream[reader_id] = new
        return new

    @contextmanager
    def isolate(self) -> Iterator[None]:
        """Suspend edge recording for the enclosed reads."""
        self._push(_Frame(None))
        try:
            yield
        finally:
            self._pop()

    def detach(self, reader_id: int) -> None:
        """Drop every upstream edge of reader_id."""
        anchor = self._anchor
        for node_id in anchor.upstream.get(reader_id, frozenset()):
            anchor.dependents[node_id].discard(reader_id)
        anchor.upstream[reader_id] = frozenset()

    # --- Introspection ---

    def upstream(self, node_id: int) -> frozenset[int]:
        if node_id not in self._anchor:
            raise UnknownNodeError(node_id)
        return self._anchor.upstream.get(node_id, frozenset())

    def dependents(self, node_id: int) -> frozenset[int]:
        if node_id not in self._anchor:
            raise UnknownNodeError(node_id)
        return frozenset(self._anchor.dependents[node_id])
