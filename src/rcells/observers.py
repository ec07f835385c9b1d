"""Observer registry: change listeners attached to cells.

Listeners are called with the cell's new value once per update in which the
cell changed, after the whole propagation pass has settled. They run
untracked, so reading cells inside a listener never creates dependencies.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Callable, Iterable

from rcells import _anchor
from rcells._tracking import untracked
from rcells.errors import UseAfterDestroyError

if TYPE_CHECKING:
    from rcells.cell import Cell

Listener = Callable[[object], None]

_token_counter = itertools.count(1)


class Subscription:
    """Token returned by subscribe(). Call .dispose() or unsubscribe() to detach."""

    __slots__ = ("_cell_id", "_token")

    def __init__(self, cell_id: int, token: int) -> None:
        self._cell_id = cell_id
        self._token = token

    @property
    def active(self) -> bool:
        return self._token in _anchor.observers.get(self._cell_id, {})

    def dispose(self) -> None:
        listeners = _anchor.observers.get(self._cell_id)
        if listeners is not None:
            listeners.pop(self._token, None)

    def __repr__(self) -> str:
        state = "active" if self.active else "disposed"
        return f"Subscription(cell={self._cell_id}, {state})"


def subscribe(cell: Cell, listener: Listener) -> Subscription:
    """Call listener(value) whenever cell's value changes."""
    if not cell.alive:
        raise UseAfterDestroyError(cell, "subscribe to")
    token = next(_token_counter)
    _anchor.observers[cell._id][token] = listener
    return Subscription(cell._id, token)


def unsubscribe(subscription: Subscription) -> None:
    """Detach a listener. Unsubscribing twice is a no-op."""
    subscription.dispose()


def notify(changed: Iterable[int]) -> None:
    """Invoke the listeners of every changed cell."""
    with untracked():
        for cell_id in changed:
            listeners = _anchor.observers.get(cell_id)
            if not listeners:
                continue
            value = _anchor.values[cell_id]
            for listener in list(listeners.values()):
                listener(value)
