"""Propagation scheduler: glitch-free, at-most-once re-evaluation.

Given the cells just written (the roots), a pass collects every cell
reachable through sinks and settles them in topological order: a cell is
evaluated only after all of its affected sources have settled, and only if
at least one of them actually changed. A diamond (d reads b and c, both read
a) therefore evaluates d exactly once, after b and c.

Dependencies can change while a pass runs. If a formula reads an affected
cell that has not settled yet, that cell is settled on the spot (pull) so the
formula never sees a stale value.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from rcells import _anchor
from rcells._tracking import evaluate
from rcells.errors import CyclicDependencyError
from rcells.observers import notify

logger = logging.getLogger("rcells.scheduler")


class _Pass:
    """One propagation over a fixed set of roots."""

    __slots__ = ("affected", "edges", "waiting", "dirty", "settled", "evaluating", "ready", "changed")

    def __init__(self, roots: Iterable[int]) -> None:
        roots = [r for r in roots if _anchor.is_alive(r)]
        self.affected = _reachable(roots)
        # Snapshot of edges inside the affected set; evaluation may rewire the live graph.
        self.edges = {c: _anchor.sinks[c] & self.affected for c in self.affected}
        self.waiting = {c: len(_anchor.sources[c] & self.affected) for c in self.affected}
        self.dirty: set[int] = set()
        for root in roots:
            self.dirty.update(_anchor.sinks[root])
        self.settled: set[int] = set()
        self.evaluating: set[int] = set()
        self.ready: deque[int] = deque()
        self.changed: dict[int, None] = {}

    def run(self) -> None:
        self.ready.extend(c for c, count in self.waiting.items() if count == 0)
        while self.ready:
            cell_id = self.ready.popleft()
            if cell_id not in self.settled:
                self._settle(cell_id)
        if len(self.settled) < len(self.affected):
            raise CyclicDependencyError(_handles(self.affected - self.settled))

    def pull(self, cell_id: int) -> None:
        """Settle an affected cell ahead of its turn because a formula is reading it."""
        if cell_id not in self.affected or cell_id in self.settled:
            return
        if cell_id in self.evaluating:
            raise CyclicDependencyError(_handles([cell_id]))
        self.evaluating.add(cell_id)
        try:
            for source_id in list(_anchor.sources.get(cell_id, ())):
                self.pull(source_id)
        finally:
            self.evaluating.discard(cell_id)
        self._settle(cell_id)

    def _settle(self, cell_id: int) -> None:
        self.settled.add(cell_id)
        if cell_id in self.dirty and _anchor.is_alive(cell_id):
            self.evaluating.add(cell_id)
            try:
                changed = evaluate(cell_id)
            finally:
                self.evaluating.discard(cell_id)
            if changed:
                self.changed[cell_id] = None
                self.dirty.update(_anchor.sinks[cell_id])
        for sink_id in self.edges[cell_id]:
            self.waiting[sink_id] -= 1
            if self.waiting[sink_id] == 0:
                self.ready.append(sink_id)


def _reachable(roots: Iterable[int]) -> set[int]:
    """Every cell reachable from roots through one or more sink edges."""
    seen: set[int] = set()
    stack = [s for r in roots for s in _anchor.sinks[r]]
    while stack:
        cell_id = stack.pop()
        if cell_id in seen:
            continue
        seen.add(cell_id)
        stack.extend(_anchor.sinks[cell_id])
    return seen


def _handles(cell_ids: Iterable[int]) -> list:
    return [_anchor.handles.get(c, c) for c in cell_ids]


# The pass currently running, if any. Writes issued while it runs are queued.
_active: _Pass | None = None
_queued: dict[int, None] = {}


def pull(cell_id: int) -> None:
    """Called on every read; a no-op outside a propagation pass."""
    if _active is not None:
        _active.pull(cell_id)


def propagate(roots: Iterable[int]) -> None:
    """Recompute everything downstream of roots, then notify observers.

    roots are cells whose value has already been assigned. If a pass is
    already running (a formula wrote to an input), the roots are queued and
    handled by a follow-up pass before any observer runs.
    """
    global _active
    roots = list(roots)
    if _active is not None:
        _queued.update(dict.fromkeys(roots))
        return

    changed: dict[int, None] = dict.fromkeys(roots)
    batch = roots
    passes = 0
    try:
        while batch:
            current = _Pass(batch)
            _active = current
            current.run()
            passes += 1
            changed.update(current.changed)
            batch = list(_queued)
            _queued.clear()
            changed.update(dict.fromkeys(batch))
    finally:
        _active = None
        _queued.clear()

    logger.debug("Propagated %d root(s) in %d pass(es): %d cell(s) changed", len(roots), passes, len(changed))
    notify(c for c in changed if _anchor.is_alive(c))
