"""rcells: spreadsheet-style reactive cells for Python."""

from importlib.metadata import version as _version

__version__ = _version("rcells")

from rcells.errors import CellError, ReadOnlyCellError, UseAfterDestroyError, CyclicDependencyError
from rcells.cell import (
    Cell,
    CellKind,
    input_cell,
    formula_cell,
    lens,
    read,
    write,
    retype_to_input,
    retype_to_formula,
    destroy,
    is_cell,
    is_input,
    is_formula,
    is_lens,
    set_default_equality,
    values_equal,
)
from rcells._tracking import untracked
from rcells.observers import Subscription, subscribe, unsubscribe
from rcells.transaction import action, transaction, run_transaction, in_transaction
from rcells.reaction import Reaction, autorun, reaction
from rcells.combinators import lift, alts, cell_map, for_each

__all__ = [
    "Cell",
    "CellKind",
    "input_cell",
    "formula_cell",
    "lens",
    "read",
    "write",
    "retype_to_input",
    "retype_to_formula",
    "destroy",
    "is_cell",
    "is_input",
    "is_formula",
    "is_lens",
    "set_default_equality",
    "values_equal",
    "untracked",
    "Subscription",
    "subscribe",
    "unsubscribe",
    "action",
    "transaction",
    "run_transaction",
    "in_transaction",
    "Reaction",
    "autorun",
    "reaction",
    "lift",
    "alts",
    "cell_map",
    "for_each",
    "CellError",
    "ReadOnlyCellError",
    "UseAfterDestroyError",
    "CyclicDependencyError",
]
