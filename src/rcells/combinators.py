"""Combinators built purely from the cell primitives.

None of these reach into the arena; they only create, read, subscribe to and
destroy cells, the same surface any other front end would use.
"""

from __future__ import annotations

import functools
from typing import Callable, Sequence, TypeVar

from rcells._anchor import UNSET
from rcells.cell import Cell, destroy, formula_cell, read, values_equal
from rcells.observers import subscribe
from rcells.reaction import Reaction

T = TypeVar("T")
U = TypeVar("U")


def lift(fn: Callable[..., T]) -> Callable[..., Cell[T]]:
    """Turn a plain function into a builder of formula cells.

    Cell arguments are read (and tracked); anything else is passed through.

    Usage:
        add = lift(operator.add)
        a = input_cell(1)
        total = add(a, 10)
        total.get()  # 11
    """

    @functools.wraps(fn)
    def build(*args) -> Cell[T]:
        return formula_cell(lambda: fn(*(read(a) if isinstance(a, Cell) else a for a in args)))

    return build


def alts(*cells: Cell) -> Cell[tuple]:
    """Formula cell holding the distinct values of cells that changed last update.

    On creation every cell counts as changed. Changes are judged with the
    default equality set by set_default_equality().
    """
    olds: list = [UNSET] * len(cells)

    def changed_subset() -> tuple:
        news = [read(c) for c in cells]
        diff: list = []
        for old, new in zip(olds, news):
            if old is not UNSET and values_equal(old, new):
                continue
            if new not in diff:
                diff.append(new)
        olds[:] = news
        return tuple(diff)

    return formula_cell(changed_subset)


def _element_cell(seq_cell: Cell[Sequence[T]], index: int) -> Cell[T]:
    last: list = [None]

    def element() -> T:
        seq = read(seq_cell)
        # Past the end: keep the old value until the owner destroys this cell.
        if index < len(seq):
            last[0] = seq[index]
        return last[0]

    return formula_cell(element)


def _mapped_cell(fn: Callable[[T], U], element: Cell[T]) -> Cell[U]:
    return formula_cell(lambda: fn(read(element)))


def _index_cells(
    seq_cell: Cell[Sequence[T]], fn: Callable[[T], U] | None = None
) -> tuple[Cell[tuple[Cell, ...]], list[tuple[Cell, Cell]]]:
    """Build the parent cell of cell_map and the (element, item) pairs it owns.

    Each index gets an element cell following seq[index]; with fn, the item
    is a second cell applying fn to it, otherwise the element is the item.
    """
    pairs: list[tuple[Cell, Cell]] = []

    def grow_or_shrink() -> tuple[Cell, ...]:
        size = len(read(seq_cell))
        while len(pairs) < size:
            element = _element_cell(seq_cell, len(pairs))
            pairs.append((element, element if fn is None else _mapped_cell(fn, element)))
        while len(pairs) > size:
            for cell in pairs.pop():
                destroy(cell)
        return tuple(item for _, item in pairs)

    return formula_cell(grow_or_shrink), pairs


def cell_map(fn: Callable[[T], U], seq_cell: Cell[Sequence[T]]) -> Cell[tuple[Cell[U], ...]]:
    """Map fn over a sequence-valued cell, one formula cell per index.

    The result is a formula cell holding a tuple of item cells. Item cells are
    created as the sequence grows and destroyed as it shrinks. Each sits behind
    a cell holding its element, so fn only runs for an index whose element
    changed.

    Usage:
        names = input_cell(["ada", "bob"])
        upper = cell_map(str.upper, names)
        [c.get() for c in upper.get()]  # ["ADA", "BOB"]
    """
    mapped, _ = _index_cells(seq_cell, fn)
    return mapped


def for_each(seq_cell: Cell[Sequence[T]], fn: Callable[[Cell[T]], None]) -> Reaction:
    """Run fn(item_cell) once for every item cell as the sequence grows.

    Each item cell follows the element at its index, so fn can wire its own
    formulas or observers onto it once instead of re-running per change.
    Returns a Reaction; dispose() tears down the item cells.
    """
    items, pairs = _index_cells(seq_cell)
    seen: list = []

    def visit(current: tuple[Cell[T], ...]) -> None:
        fresh = [c for c in current if c not in seen]
        seen[:] = list(current)
        for item in fresh:
            fn(item)

    def teardown() -> None:
        while pairs:
            for cell in pairs.pop():
                destroy(cell)

    visit(items.value)
    subscription = subscribe(items, visit)
    return _ForEach(items, subscription, teardown)


class _ForEach(Reaction):
    __slots__ = ("_teardown",)

    def __init__(self, items: Cell, subscription, teardown: Callable[[], None]) -> None:
        super().__init__([items], [subscription])
        self._teardown = teardown

    def dispose(self) -> None:
        if not self.disposed:
            self._teardown()
        super().dispose()
