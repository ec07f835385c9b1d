"""Data anchor: plain Python structures that hold all cell state.

Every cell is an integer id. Edges are stored as sets of ids rather than
references between handles, so teardown is an explicit removal of entries
(see release()) instead of something left to the garbage collector.
"""

from __future__ import annotations

import itertools
from typing import Callable

UNSET = object()

# Cell state
values: dict[int, object] = {}
kinds: dict[int, object] = {}  # cell_id -> CellKind
formulas: dict[int, Callable] = {}
write_handlers: dict[int, Callable] = {}  # lens cells only
equality: dict[int, Callable] = {}  # per-cell override of default_equals
handles: dict[int, object] = {}  # cell_id -> Cell

# Graph state. sources and sinks are transposes of each other.
sources: dict[int, set[int]] = {}
sinks: dict[int, set[int]] = {}

# Observer state: cell_id -> {token_id: listener}
observers: dict[int, dict[int, Callable]] = {}


def _default_equals(old, new) -> bool:
    return old is new or bool(old == new)


default_equals: Callable[[object, object], bool] = _default_equals

_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def is_alive(cell_id: int) -> bool:
    return cell_id in kinds


def same(cell_id: int, old, new) -> bool:
    """Value equality for a cell, honoring its per-cell predicate."""
    if old is UNSET:
        return False
    return equality.get(cell_id, default_equals)(old, new)


def release(cell_id: int) -> object:
    """Drop every entry for cell_id and return its last value.

    Callers must have unlinked the cell from its neighbours first.
    """
    kinds.pop(cell_id, None)
    formulas.pop(cell_id, None)
    write_handlers.pop(cell_id, None)
    equality.pop(cell_id, None)
    handles.pop(cell_id, None)
    sources.pop(cell_id, None)
    sinks.pop(cell_id, None)
    observers.pop(cell_id, None)
    return values.pop(cell_id, None)
