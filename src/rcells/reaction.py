"""Reactions: side effects triggered by cell changes.

Two flavors, both plain formula cells plus observers underneath:
- autorun(fn): runs fn immediately, re-runs when any cell it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from rcells.cell import Cell, destroy, formula_cell
from rcells.observers import Subscription, subscribe

T = TypeVar("T")


class Reaction:
    """Disposable handle for a side effect wired into the graph."""

    __slots__ = ("_cells", "_subscriptions")

    def __init__(self, cells: list[Cell], subscriptions: list[Subscription] | None = None) -> None:
        self._cells = cells
        self._subscriptions = subscriptions or []

    @property
    def disposed(self) -> bool:
        return not any(c.alive for c in self._cells)

    def dispose(self) -> None:
        """Stop reacting. Disconnects from all dependencies."""
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
        for cell in self._cells:
            destroy(cell)

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "active"
        return f"Reaction({len(self._cells)} cell(s), {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any cell it reads changes.

    Usage:
        a = input_cell(100)
        b = input_cell(200)
        log = []

        r = autorun(lambda: log.append(f"a+b={a.get() + b.get()}"))
        # log == ["a+b=300"]

        with transaction():
            a.set(101)
            a.set(102)
            b.set(201)
        # log == ["a+b=300", "a+b=303"]

        r.dispose()
    """
    return Reaction([formula_cell(fn)])


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's cells; call effect_fn when its result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency change.

    Usage:
        first = input_cell("Alice")
        last = input_cell("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.get()} {last.get()}",
            lambda name: effects.append(name),
        )
        # effects == []: data_fn ran to establish deps, effect did not fire

        first.set("Bob")
        # effects == ["Bob Smith"]
    """
    data = formula_cell(data_fn)
    subscription = subscribe(data, effect_fn)
    if fire_immediately:
        effect_fn(data.value)
    return Reaction([data], [subscription])
