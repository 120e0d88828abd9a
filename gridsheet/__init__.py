"""gridsheet - sparse spreadsheet grid engine with a formula evaluator.

Usage::

    from gridsheet import Grid, CellRange, from_label

    grid = Grid()
    grid.set_content(from_label("A1"), "5")
    grid.set_content(from_label("A2"), "=A1+1")
    print(grid.get_cell(from_label("A2")).content)  # "6"
"""

from gridsheet.address import Coordinate, InvalidAddress, from_label, to_label
from gridsheet.formula import ERROR_DISPLAY, EvaluationError, evaluate
from gridsheet.grid import Grid, OutOfBounds
from gridsheet.models import Cell, CellRecord, CellView, DataType, classify
from gridsheet.selection import CellRange, Selection, select

__all__ = [
    "Cell",
    "CellRange",
    "CellRecord",
    "CellView",
    "Coordinate",
    "DataType",
    "ERROR_DISPLAY",
    "EvaluationError",
    "Grid",
    "InvalidAddress",
    "OutOfBounds",
    "Selection",
    "classify",
    "evaluate",
    "from_label",
    "select",
    "to_label",
]
