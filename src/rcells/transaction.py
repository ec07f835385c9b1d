"""Transactions: batched cell writes.

Inside a transaction, input writes apply immediately (reads see the new
value right away) but propagation is deferred until the outermost scope
exits, then runs once over every cell that was written. This prevents
glitchy intermediate states where some dependents have updated but others
haven't yet.

There is no rollback: if the body raises, the writes it already applied stay
applied and nothing is propagated.
"""

from __future__ import annotations

import contextvars
import functools
import logging
from contextlib import contextmanager
from typing import Callable, ParamSpec, TypeVar

from rcells import _anchor
from rcells._scheduler import propagate

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger("rcells.transaction")


class Transaction:
    """Nesting depth plus the log of cells written since the outermost begin."""

    __slots__ = ("depth", "pending", "_token")

    def __init__(self) -> None:
        self.depth = 0
        # cell_id -> value before its first write in this transaction
        self.pending: dict[int, object] = {}
        self._token: contextvars.Token | None = None

    def record(self, cell_id: int, old_value) -> None:
        self.pending.setdefault(cell_id, old_value)

    def roots(self) -> list[int]:
        """Written cells whose final value differs from where they started."""
        return [
            cell_id
            for cell_id, old_value in self.pending.items()
            if _anchor.is_alive(cell_id) and not _anchor.same(cell_id, old_value, _anchor.values[cell_id])
        ]

    def __repr__(self) -> str:
        return f"Transaction(depth={self.depth}, pending={len(self.pending)})"


current_transaction: contextvars.ContextVar[Transaction | None] = contextvars.ContextVar(
    "current_transaction", default=None
)


def in_transaction() -> bool:
    return current_transaction.get() is not None


def begin_transaction() -> Transaction:
    """Enter a transaction scope. Nested scopes share the outermost Transaction."""
    txn = current_transaction.get()
    if txn is None:
        txn = Transaction()
        txn._token = current_transaction.set(txn)
    txn.depth += 1
    return txn


def end_transaction(*, commit: bool = True) -> None:
    """Exit a transaction scope. The outermost exit propagates once.

    With commit=False (the body raised) the outermost exit discards the
    pending log without propagating; inner exits just unwind.
    """
    txn = current_transaction.get()
    if txn is None:
        raise RuntimeError("end_transaction() called outside a transaction")
    txn.depth -= 1
    if txn.depth > 0:
        return
    current_transaction.reset(txn._token)
    if not commit:
        if txn.pending:
            logger.warning("Transaction aborted: %d written cell(s) left unpropagated", len(txn.pending))
        return
    roots = txn.roots()
    if roots:
        propagate(roots)


def mark_written(cell_id: int, old_value) -> None:
    """An input cell's value was just assigned: propagate now or at commit."""
    txn = current_transaction.get()
    if txn is not None:
        txn.record(cell_id, old_value)
    else:
        propagate([cell_id])


@contextmanager
def transaction():
    """Context manager for batching writes.

    Usage:
        with transaction():
            a.set(1)
            b.set(2)
            # formulas and listeners see both writes at once, here
    """
    begin_transaction()
    try:
        yield
    except BaseException:
        end_transaction(commit=False)
        raise
    end_transaction()


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run fn inside a transaction.

    Usage:
        a = input_cell(0)
        b = input_cell(0)

        @action
        def swap():
            x, y = a.get(), b.get()
            a.set(y)
            b.set(x)
            # dependents see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with transaction():
            return fn(*args, **kwargs)

    return wrapper


def run_transaction(body: Callable[[], R]) -> R:
    """Run body inside a transaction and return its result."""
    with transaction():
        return body()
