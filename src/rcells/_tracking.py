"""Dependency tracking engine.

Uses contextvars to track which cells are read during a formula evaluation,
building the dependency graph automatically. Nested evaluations (a formula
creating another formula cell, or the scheduler pulling a source early) each
get their own frame; ContextVar tokens restore the outer frame on exit.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager

from rcells import _anchor


class _Frame:
    """The cell being evaluated and the sources it has read so far."""

    __slots__ = ("cell_id", "sources")

    def __init__(self, cell_id: int) -> None:
        self.cell_id = cell_id
        self.sources: set[int] = set()


# The currently-evaluating cell. When set, read() registers a dependency.
current_frame: contextvars.ContextVar[_Frame | None] = contextvars.ContextVar(
    "current_frame", default=None
)


def track(cell_id: int) -> None:
    """Record cell_id as a source of the cell being evaluated, if any."""
    frame = current_frame.get()
    if frame is None or cell_id in frame.sources:
        return
    frame.sources.add(cell_id)
    _anchor.sinks[cell_id].add(frame.cell_id)


def evaluate(cell_id: int) -> bool:
    """Run a cell's formula, rewire its edges and store the result.

    Returns True if the stored value changed. If the formula raises, edges
    added during the failed run are removed and the previous value and
    sources are kept.
    """
    old_sources = _anchor.sources[cell_id]
    frame = _Frame(cell_id)
    token = current_frame.set(frame)
    try:
        value = _anchor.formulas[cell_id]()
    except BaseException:
        _unlink(cell_id, frame.sources - old_sources)
        raise
    finally:
        current_frame.reset(token)

    if not _anchor.is_alive(cell_id):
        # Destroyed by its own formula.
        _unlink(cell_id, frame.sources)
        return False

    # Sources destroyed during the run have already dropped their sinks.
    new_sources = {s for s in frame.sources if _anchor.is_alive(s)}
    _unlink(cell_id, old_sources - new_sources)
    _anchor.sources[cell_id] = new_sources

    if _anchor.same(cell_id, _anchor.values[cell_id], value):
        return False
    _anchor.values[cell_id] = value
    return True


def _unlink(cell_id: int, stale: set[int]) -> None:
    for source_id in stale:
        sinks = _anchor.sinks.get(source_id)
        if sinks is not None:
            sinks.discard(cell_id)


@contextmanager
def untracked():
    """Suspend dependency tracking for the enclosed block.

    Usage:
        @formula_cell
        def total():
            with untracked():
                log.append(debug_cell.get())  # not a dependency
            return a.get() + b.get()
    """
    token = current_frame.set(None)
    try:
        yield
    finally:
        current_frame.reset(token)
