"""Invalidation — mark stale, never recompute.

A write walks the dependents of the written value. Expressions reached are
marked stale; observers reached are marked stale and collected for the next
flush. The walk stops at nodes that are already stale, so each node is visited
once per batch no matter how many paths lead to it.
"""

from __future__ import annotations

from tickflow._anchor import Anchor, NodeKind


def invalidate(anchor: Anchor, node_id: int, pending: set[int]) -> int:
    """Mark node_id and everything downstream stale.

    Observers reached are added to pending. Returns the number of nodes newly
    marked stale.
    """
    marked = 0
    work = [node_id]
    while work:
        nid = work.pop()
        kind = anchor.kinds[nid]
        if kind is NodeKind.VALUE:
            work.extend(anchor.dependents[nid])
            continue
        if anchor.dirty_flags[nid]:
            continue
        anchor.dirty_flags[nid] = True
        marked += 1
        if kind is NodeKind.OBSERVER:
            pending.add(nid)
        else:
            work.extend(anchor.dependents[nid])
    return marked
