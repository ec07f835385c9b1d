"""Exceptions raised by rcells."""


class CellError(Exception):
    """Base class for all rcells errors."""


class ReadOnlyCellError(CellError):
    """A write targeted a plain formula cell."""

    def __init__(self, cell) -> None:
        super().__init__(f"cannot write to formula cell {cell!r}; only inputs and lenses accept writes")
        self.cell = cell


class UseAfterDestroyError(CellError):
    """A write, subscription or retype targeted a destroyed cell."""

    def __init__(self, cell, operation: str) -> None:
        super().__init__(f"cannot {operation} destroyed cell {cell!r}")
        self.cell = cell
        self.operation = operation


class CyclicDependencyError(CellError):
    """Propagation found cells that can never settle because they depend on each other."""

    def __init__(self, cells) -> None:
        self.cells = list(cells)
        super().__init__(f"dependency cycle through {len(self.cells)} cell(s): {self.cells!r}")
