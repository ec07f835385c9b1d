"""Cells: the nodes of the reactive graph.

Three kinds:
- input cells hold values written from outside;
- formula cells derive their value from a zero-argument function and are
  read-only;
- lenses are formula cells whose writes are redirected to a write handler.

Reading a cell inside another cell's formula registers the dependency.
Writing an input recomputes everything downstream exactly once (or, inside a
transaction, once at commit) and then notifies observers.

All state lives in _anchor; instances are thin handles holding an _id.
"""

from __future__ import annotations

import enum
from typing import Callable, Generic, TypeVar

from rcells import _anchor, _scheduler
from rcells._tracking import evaluate, track
from rcells.errors import ReadOnlyCellError, UseAfterDestroyError
from rcells.observers import Subscription, subscribe
from rcells.transaction import mark_written

T = TypeVar("T")

Equals = Callable[[object, object], bool]


class CellKind(enum.Enum):
    INPUT = "input"
    FORMULA = "formula"
    LENS = "lens"


def set_default_equality(equals: Equals | None) -> None:
    """Replace the predicate deciding whether a new value is a change.

    The default is `old is new or old == new`. Pass None to restore it.
    Cells created with equals= keep their own predicate.
    """
    _anchor.default_equals = equals if equals is not None else _anchor._default_equals


def values_equal(old, new) -> bool:
    """Apply the default equality predicate currently in effect."""
    return bool(_anchor.default_equals(old, new))


class Cell(Generic[T]):
    """Handle to a cell. Create one with input_cell(), formula_cell() or lens()."""

    __slots__ = ("_id", "_last")

    def __init__(self, *args, **kwargs) -> None:
        raise TypeError("Cell cannot be instantiated directly; use input_cell(), formula_cell() or lens()")

    @classmethod
    def _new(cls, kind: CellKind, *, equals: Equals | None = None) -> Cell:
        self = cls.__new__(cls)
        self._id = _anchor.new_id()
        self._last = None
        _anchor.kinds[self._id] = kind
        _anchor.values[self._id] = _anchor.UNSET
        _anchor.sources[self._id] = set()
        _anchor.sinks[self._id] = set()
        _anchor.observers[self._id] = {}
        _anchor.handles[self._id] = self
        if equals is not None:
            _anchor.equality[self._id] = equals
        return self

    @property
    def kind(self) -> CellKind | None:
        """The cell's kind, or None once destroyed."""
        return _anchor.kinds.get(self._id)

    @property
    def alive(self) -> bool:
        return _anchor.is_alive(self._id)

    @property
    def value(self) -> T:
        """Current value without registering a dependency."""
        if not self.alive:
            return self._last
        return _anchor.values[self._id]

    @property
    def sources(self) -> frozenset[Cell]:
        return frozenset(_anchor.handles[i] for i in _anchor.sources.get(self._id, ()))

    @property
    def sinks(self) -> frozenset[Cell]:
        return frozenset(_anchor.handles[i] for i in _anchor.sinks.get(self._id, ()))

    def get(self) -> T:
        return read(self)

    def set(self, value: T) -> None:
        write(self, value)

    def subscribe(self, listener: Callable[[T], None]) -> Subscription:
        return subscribe(self, listener)

    def destroy(self) -> None:
        destroy(self)

    def __repr__(self) -> str:
        if not self.alive:
            return f"Cell(destroyed, last={self._last!r})"
        return f"Cell({self.kind.value}, {_anchor.values[self._id]!r})"


# ─── Construction ────────────────────────────────────────────────────────────


def input_cell(initial: T, *, equals: Equals | None = None) -> Cell[T]:
    """Create an input cell holding initial."""
    cell: Cell[T] = Cell._new(CellKind.INPUT, equals=equals)
    _anchor.values[cell._id] = initial
    return cell


def formula_cell(fn: Callable[[], T], *, equals: Equals | None = None) -> Cell[T]:
    """Create a formula cell and evaluate it once to discover its sources.

    Usage:
        price = input_cell(10)
        qty = input_cell(3)

        @formula_cell
        def total():
            return price.get() * qty.get()

        total.get()  # 30
        qty.set(4)
        total.get()  # 40
    """
    cell: Cell[T] = Cell._new(CellKind.FORMULA, equals=equals)
    _anchor.formulas[cell._id] = fn
    _evaluate_new(cell)
    return cell


def lens(cell: Cell[T], write_handler: Callable[[T], None]) -> Cell[T]:
    """Create a lens: reads follow cell, writes call write_handler(new_value).

    The handler is expected to write the cells the lens is derived from; the
    lens then shows whatever its formula recomputes to. A handler fanning out
    to several inputs should wrap them in transaction() itself.

    Usage:
        doc = input_cell({"a": [1, 2, 3], "b": [4, 5, 6]})
        a = lens(formula_cell(lambda: doc.get()["a"]),
                 lambda v: doc.set({**doc.value, "a": v}))
        a.set([1, 2])
        doc.value  # {"a": [1, 2], "b": [4, 5, 6]}
    """
    if not cell.alive:
        raise UseAfterDestroyError(cell, "create a lens over")
    lensed: Cell[T] = Cell._new(CellKind.LENS)
    _anchor.formulas[lensed._id] = lambda: read(cell)
    _anchor.write_handlers[lensed._id] = write_handler
    _evaluate_new(lensed)
    return lensed


def _evaluate_new(cell: Cell) -> None:
    try:
        evaluate(cell._id)
    except BaseException:
        _anchor.release(cell._id)
        raise


# ─── Reading and writing ─────────────────────────────────────────────────────


def read(cell: Cell[T]) -> T:
    """Return cell's value. Inside a formula, also registers the dependency.

    Reading a destroyed cell returns the last value it held.
    """
    if not cell.alive:
        return cell._last
    _scheduler.pull(cell._id)
    track(cell._id)
    return _anchor.values[cell._id]


def write(cell: Cell[T], value: T) -> None:
    """Write an input cell, or hand the value to a lens's write handler."""
    kind = cell.kind
    if kind is None:
        raise UseAfterDestroyError(cell, "write to")
    if kind is CellKind.FORMULA:
        raise ReadOnlyCellError(cell)
    if kind is CellKind.LENS:
        _anchor.write_handlers[cell._id](value)
        return
    _assign(cell._id, value)


def _assign(cell_id: int, value) -> None:
    old = _anchor.values[cell_id]
    if _anchor.same(cell_id, old, value):
        return
    _anchor.values[cell_id] = value
    mark_written(cell_id, old)


# ─── Retyping ────────────────────────────────────────────────────────────────


def retype_to_input(cell: Cell[T], value: T) -> None:
    """Turn cell into an input holding value; it stops tracking its sources."""
    if not cell.alive:
        raise UseAfterDestroyError(cell, "retype")
    cell_id = cell._id
    _unlink_sources(cell_id)
    _anchor.formulas.pop(cell_id, None)
    _anchor.write_handlers.pop(cell_id, None)
    _anchor.kinds[cell_id] = CellKind.INPUT
    _assign(cell_id, value)


def retype_to_formula(
    cell: Cell[T],
    fn: Callable[[], T],
    write_handler: Callable[[T], None] | None = None,
) -> None:
    """Give cell a new formula (a lens if write_handler is given) and evaluate it.

    Dependents keep pointing at the same cell; if its value changes they are
    recomputed as if it had been written.
    """
    if not cell.alive:
        raise UseAfterDestroyError(cell, "retype")
    cell_id = cell._id
    old_kind = _anchor.kinds[cell_id]
    old_formula = _anchor.formulas.get(cell_id)
    old_handler = _anchor.write_handlers.get(cell_id)
    old = _anchor.values[cell_id]

    _anchor.kinds[cell_id] = CellKind.FORMULA if write_handler is None else CellKind.LENS
    _anchor.formulas[cell_id] = fn
    _anchor.write_handlers.pop(cell_id, None)
    if write_handler is not None:
        _anchor.write_handlers[cell_id] = write_handler
    try:
        changed = evaluate(cell_id)
    except BaseException:
        _restore(cell_id, old_kind, old_formula, old_handler)
        raise
    if changed:
        mark_written(cell_id, old)


def _restore(cell_id: int, kind, formula, handler) -> None:
    _anchor.kinds[cell_id] = kind
    _anchor.formulas.pop(cell_id, None)
    _anchor.write_handlers.pop(cell_id, None)
    if formula is not None:
        _anchor.formulas[cell_id] = formula
    if handler is not None:
        _anchor.write_handlers[cell_id] = handler


def _unlink_sources(cell_id: int) -> None:
    for source_id in _anchor.sources[cell_id]:
        sinks = _anchor.sinks.get(source_id)
        if sinks is not None:
            sinks.discard(cell_id)
    _anchor.sources[cell_id] = set()


# ─── Teardown ────────────────────────────────────────────────────────────────


def destroy(cell: Cell) -> None:
    """Detach cell from the graph and drop its observers. Idempotent.

    Cells that read it keep their current values; they simply stop being
    updated by it. Reading a destroyed cell returns its last value.
    """
    if not cell.alive:
        return
    cell_id = cell._id
    _unlink_sources(cell_id)
    for sink_id in _anchor.sinks[cell_id]:
        _anchor.sources[sink_id].discard(cell_id)
    cell._last = _anchor.release(cell_id)


# ─── Predicates ──────────────────────────────────────────────────────────────


def is_cell(obj) -> bool:
    return isinstance(obj, Cell)


def is_input(obj) -> bool:
    return isinstance(obj, Cell) and obj.kind is CellKind.INPUT


def is_formula(obj) -> bool:
    """True for formula cells, lenses included."""
    return isinstance(obj, Cell) and obj.kind in (CellKind.FORMULA, CellKind.LENS)


def is_lens(obj) -> bool:
    return isinstance(obj, Cell) and obj.kind is CellKind.LENS
