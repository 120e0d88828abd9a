"""Coordinate <-> label conversion ("A1" style addresses).

Columns use bijective base-26 letters (A..Z, AA..ZZ, AAA..), rows are 1-based
in labels and 0-based everywhere else.
"""

import re
from typing import NamedTuple


class InvalidAddress(ValueError):
    """Raised when a label is not a valid ``[A-Z]+[0-9]+`` cell address."""


class Coordinate(NamedTuple):
    row: int
    column: int

    def offset(self, rows: int = 0, columns: int = 0) -> "Coordinate":
        return Coordinate(self.row + rows, self.column + columns)

    @property
    def label(self) -> str:
        return to_label(self)


_LABEL_RE = re.compile(r'^([A-Z]+)([0-9]+)$')


def column_index(letters: str) -> int:
    """A->0, B->1, ..., Z->25, AA->26."""
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord('A') + 1)
    return n - 1


def column_letters(idx: int) -> str:
    """0->A, 1->B, ..., 25->Z, 26->AA."""
    if idx < 0:
        raise ValueError(f"Column index must be >= 0, got {idx}")
    result = ""
    idx += 1
    while idx > 0:
        idx, rem = divmod(idx - 1, 26)
        result = chr(rem + ord('A')) + result
    return result


def to_label(coord: Coordinate) -> str:
    """(row=0, column=0) -> 'A1'."""
    row, column = coord
    return f"{column_letters(column)}{row + 1}"


def from_label(text: str) -> Coordinate:
    """'A1' -> Coordinate(row=0, column=0). Raises InvalidAddress on bad input."""
    if not isinstance(text, str):
        raise InvalidAddress(f"Cell address must be a string: {text!r}")
    m = _LABEL_RE.match(text.strip())
    if not m:
        raise InvalidAddress(f"Bad cell address: {text!r}")
    row = int(m.group(2)) - 1
    if row < 0:
        raise InvalidAddress(f"Row must be >= 1: {text!r}")
    return Coordinate(row, column_index(m.group(1)))


def parse_range_label(text: str) -> tuple[Coordinate, Coordinate]:
    """'A1:B3' -> (A1, B3). A single label 'C2' yields (C2, C2)."""
    parts = text.split(':')
    if len(parts) == 1:
        coord = from_label(parts[0])
        return coord, coord
    if len(parts) != 2:
        raise InvalidAddress(f"Bad range: {text!r}")
    return from_label(parts[0]), from_label(parts[1])
