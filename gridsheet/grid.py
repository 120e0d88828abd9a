"""Sparse grid store: cell content, structural edits and formula re-evaluation.

The grid owns every cell record. Callers receive detached ``CellView`` copies,
and every public method is one complete command: it mutates, re-evaluates all
formula cells, and returns.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Iterable, Mapping

from gridsheet import clipboard
from gridsheet.address import Coordinate, to_label
from gridsheet.formula import ERROR_DISPLAY, evaluate_display
from gridsheet.models import Cell, CellRecord, CellView, DataType, classify
from gridsheet.selection import CellRange

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 100
DEFAULT_COLUMNS = 26
MAX_RECALC_PASSES = 20

_ROW, _COL = 0, 1


class OutOfBounds(IndexError):
    """Raised when a coordinate lies outside the grid."""


class Grid:
    """Sparse mapping of Coordinate -> Cell bounded by row_count x column_count."""

    __slots__ = ("_cells", "_row_count", "_column_count", "max_passes")

    def __init__(self, row_count: int = DEFAULT_ROWS, column_count: int = DEFAULT_COLUMNS,
                 max_passes: int = MAX_RECALC_PASSES) -> None:
        if row_count < 1 or column_count < 1:
            raise ValueError(f"Grid needs at least one row and column, got {row_count}x{column_count}")
        self._cells: dict[Coordinate, Cell] = {}
        self._row_count = row_count
        self._column_count = column_count
        self.max_passes = max_passes

    @property
    def row_count(self) -> int:
        return self._row_count

    @property
    def column_count(self) -> int:
        return self._column_count

    def __len__(self) -> int:
        return len(self._cells)

    def in_bounds(self, coord: Coordinate) -> bool:
        return 0 <= coord.row < self._row_count and 0 <= coord.column < self._column_count

    def _check(self, coord: Coordinate) -> None:
        if not self.in_bounds(coord):
            raise OutOfBounds(
                f"{tuple(coord)} is outside the {self._row_count}x{self._column_count} grid"
            )

    # ── Cell access ───────────────────────────────────────────────

    def content_at(self, coord: Coordinate) -> str:
        cell = self._cells.get(coord)
        return cell.content if cell is not None else ""

    def get_cell(self, coord: Coordinate) -> CellView | None:
        cell = self._cells.get(coord)
        return cell.view(to_label(coord)) if cell is not None else None

    def _view(self, coord: Coordinate) -> CellView:
        return self.get_cell(coord) or Cell().view(to_label(coord))

    def _store(self, coord: Coordinate, cell: Cell) -> None:
        if cell.is_blank():
            self._cells.pop(coord, None)
        else:
            self._cells[coord] = cell

    def _assign(self, coord: Coordinate, raw: str) -> None:
        """Write raw input into a cell, keeping its style."""
        cell = self._cells.get(coord) or Cell()
        cell.data_type = classify(raw)
        if cell.data_type is DataType.FORMULA:
            cell.formula = raw
            cell.content = evaluate_display(raw, self)
        else:
            cell.formula = None
            cell.content = raw
        self._store(coord, cell)

    def set_content(self, coord: Coordinate, raw: str) -> CellView:
        """Set a cell from raw user input; ``=...`` is stored as a formula."""
        self._check(coord)
        self._assign(coord, raw)
        self.recalculate()
        return self._view(coord)

    def update_style(self, coord: Coordinate, attrs: Mapping[str, Any]) -> CellView:
        """Merge presentation attributes into a cell's style. Keys are not interpreted."""
        self._check(coord)
        cell = self._cells.get(coord) or Cell()
        cell.style = {**cell.style, **attrs}
        self._store(coord, cell)
        return self._view(coord)

    def toggle_style(self, coord: Coordinate, key: str, on: Any, off: Any = "normal") -> CellView:
        """Flip *key* between *on* and *off* (bold / italic buttons)."""
        current = self.style_at(coord).get(key)
        return self.update_style(coord, {key: off if current == on else on})

    def style_at(self, coord: Coordinate) -> dict[str, Any]:
        cell = self._cells.get(coord)
        return dict(cell.style) if cell is not None else {}

    def clear_range(self, cell_range: CellRange) -> list[Coordinate]:
        """Drop content and formulas in a range; styles survive."""
        cleared = []
        for coord in cell_range.iter_coordinates():
            cell = self._cells.get(coord)
            if cell is None or (not cell.content and cell.formula is None):
                continue
            cell.content = ""
            cell.formula = None
            cell.data_type = DataType.TEXT
            self._store(coord, cell)
            cleared.append(coord)
        if cleared:
            self.recalculate()
        return cleared

    # ── Re-evaluation ─────────────────────────────────────────────

    def recalculate(self) -> None:
        """Re-evaluate every formula cell until nothing changes.

        Passes run in row-major order. Each pass settles at least one more link
        of any acyclic reference chain, so ``len(formula_cells) + 1`` passes
        always suffice without a cycle; ``max_passes`` only raises that limit.
        Cells still changing after the last pass (cyclic formulas) are set to
        ``#ERROR!``.
        """
        formula_cells = sorted(c for c, cell in self._cells.items() if cell.formula is not None)
        if not formula_cells:
            return
        passes = max(self.max_passes, len(formula_cells) + 1)
        changed: list[Coordinate] = []
        for _ in range(passes):
            changed = []
            for coord in formula_cells:
                cell = self._cells[coord]
                value = evaluate_display(cell.formula, self)
                if value != cell.content:
                    cell.content = value
                    changed.append(coord)
            if not changed:
                return
        for coord in changed:
            self._cells[coord].content = ERROR_DISPLAY
        logger.warning(
            "Formulas did not settle after %d passes, marking %s as %s",
            passes, ", ".join(to_label(c) for c in changed), ERROR_DISPLAY,
        )

    # ── Structural edits ──────────────────────────────────────────

    def _relocate(self, axis: int, start: int, delta: int) -> None:
        """Move every cell whose index on *axis* is >= start by *delta*.

        Inserts (delta > 0) walk in descending order and deletes in ascending
        order, so no cell is written over before it has moved.
        """
        keys = sorted((k for k in self._cells if k[axis] >= start),
                      key=lambda k: k[axis], reverse=delta > 0)
        for key in keys:
            cell = self._cells.pop(key)
            if axis == _ROW:
                self._cells[Coordinate(key.row + delta, key.column)] = cell
            else:
                self._cells[Coordinate(key.row, key.column + delta)] = cell

    def _insert(self, axis: int, index: int) -> bool:
        count = self._row_count if axis == _ROW else self._column_count
        if not 0 <= index <= count:
            logger.debug("Insert at %d ignored: outside [0, %d]", index, count)
            return False
        self._relocate(axis, index, +1)
        if axis == _ROW:
            self._row_count += 1
        else:
            self._column_count += 1
        self.recalculate()
        return True

    def _delete(self, axis: int, index: int) -> bool:
        count = self._row_count if axis == _ROW else self._column_count
        if not 0 <= index < count or count <= 1:
            logger.debug("Delete of %d ignored: count is %d", index, count)
            return False
        for key in [k for k in self._cells if k[axis] == index]:
            del self._cells[key]
        self._relocate(axis, index + 1, -1)
        if axis == _ROW:
            self._row_count -= 1
        else:
            self._column_count -= 1
        self.recalculate()
        return True

    def insert_row(self, before: int) -> bool:
        return self._insert(_ROW, before)

    def insert_column(self, before: int) -> bool:
        return self._insert(_COL, before)

    def delete_row(self, row: int) -> bool:
        return self._delete(_ROW, row)

    def delete_column(self, column: int) -> bool:
        return self._delete(_COL, column)

    def remove_duplicate_rows(self, cell_range: CellRange) -> list[int]:
        """Delete rows whose contents across the range repeat an earlier row.

        Rows are compared by the concatenation of their contents over the
        range's columns. Returns the deleted row indices, highest first.
        """
        seen: set[str] = set()
        duplicates: list[int] = []
        for row in cell_range.iter_rows():
            key = "".join(self.content_at(coord) for coord in row)
            if key in seen:
                duplicates.append(row[0].row)
            else:
                seen.add(key)
        deleted = []
        for index in sorted(duplicates, reverse=True):
            if self.delete_row(index):
                deleted.append(index)
        return deleted

    def find_and_replace(self, cell_range: CellRange, find_text: str, replace_text: str) -> list[Coordinate]:
        """Literal substring replacement in the content of non-formula cells."""
        if not find_text:
            return []
        changed = []
        for coord in cell_range.iter_coordinates():
            cell = self._cells.get(coord)
            if cell is None or cell.formula is not None or find_text not in cell.content:
                continue
            self._assign(coord, cell.content.replace(find_text, replace_text))
            changed.append(coord)
        if changed:
            self.recalculate()
        return changed

    # ── Clipboard ─────────────────────────────────────────────────

    def copy(self, cell_range: CellRange) -> str:
        return clipboard.serialize(cell_range, self)

    def paste(self, text: str, target: Coordinate) -> list[Coordinate]:
        """Write tab/newline text starting at *target*; overflow is dropped."""
        assignments = clipboard.deserialize(text, target, self._row_count, self._column_count)
        for coord, raw in assignments:
            self._assign(coord, raw)
        self.recalculate()
        return [coord for coord, _ in assignments]

    # ── Persisted shape ───────────────────────────────────────────

    def to_rows(self) -> list[list[CellRecord]]:
        """Dense rows of ``{content, style, formula}`` records."""
        rows = []
        for r in range(self._row_count):
            row = []
            for c in range(self._column_count):
                cell = self._cells.get(Coordinate(r, c))
                if cell is None:
                    row.append(CellRecord())
                else:
                    row.append(CellRecord(content=cell.content, style=dict(cell.style), formula=cell.formula))
            rows.append(row)
        return rows

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[CellRecord | Mapping[str, Any]]],
                  max_passes: int = MAX_RECALC_PASSES) -> Grid:
        """Rebuild a grid from the persisted row shape."""
        records = [
            [r if isinstance(r, CellRecord) else CellRecord.model_validate(r) for r in row]
            for row in rows
        ]
        grid = cls(max(len(records), 1), max((len(row) for row in records), default=1) or 1, max_passes)
        for r, row in enumerate(records):
            for c, record in enumerate(row):
                formula = record.formula
                if formula is None and record.content.startswith('='):
                    formula = record.content
                cell = Cell(
                    content=record.content,
                    formula=formula,
                    style=dict(record.style),
                    data_type=DataType.FORMULA if formula is not None else classify(record.content),
                )
                grid._store(Coordinate(r, c), cell)
        grid.recalculate()
        return grid

    def to_csv(self) -> str:
        """Every field quoted, quotes doubled, one line per row."""
        buf = io.StringIO()
        writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for r in range(self._row_count):
            writer.writerow(self.content_at(Coordinate(r, c)) for c in range(self._column_count))
        return buf.getvalue().rstrip("\n")
