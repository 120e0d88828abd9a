"""Formula engine for grid cells.

Supports: =, +, -, *, /, unary minus/plus, parentheses, numbers, cell refs (A1),
and SUM/AVERAGE/AVG/MIN/MAX/COUNT over a range (A1:B3).

Formulas are parsed into a small expression tree and evaluated against a
read-only snapshot of the grid. Referenced formula cells contribute their cached
content; nothing is evaluated recursively.

Error codes (diagnostics only; cells always display ``#ERROR!``):
  #SYNTAX!  malformed formula
  #DIV/0!   division by zero
  #REF!     invalid or out-of-bounds cell reference
  #VALUE!   non-numeric value in a numeric context
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Protocol

from gridsheet.address import Coordinate, column_index
from gridsheet.models import parse_number

logger = logging.getLogger(__name__)

ERROR_DISPLAY = "#ERROR!"


# ── Error types ───────────────────────────────────────────────────

class EvaluationError(Exception):
    """Base for all formula errors. `code` names the failure for diagnostics."""
    code: str = "#ERROR!"

class FormulaSyntaxError(EvaluationError):
    code = "#SYNTAX!"

class DivisionByZero(EvaluationError):
    code = "#DIV/0!"

class UnresolvedReference(EvaluationError):
    code = "#REF!"

class TypeMismatch(EvaluationError):
    code = "#VALUE!"


# ── Snapshot protocol ─────────────────────────────────────────────

class GridSnapshot(Protocol):
    """Read-only view of a grid for the duration of one evaluation."""

    @property
    def row_count(self) -> int: ...

    @property
    def column_count(self) -> int: ...

    def content_at(self, coord: Coordinate) -> str:
        """Displayed content of the cell at *coord* ('' when absent)."""
        ...


def format_result(value: float) -> str:
    """Format a numeric result for cell display."""
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.10g}"


def _check_bounds(coord: Coordinate, snapshot: GridSnapshot) -> None:
    if coord.row >= snapshot.row_count or coord.column >= snapshot.column_count:
        raise UnresolvedReference(f"Reference out of bounds: {coord.label}")


def _read_number(coord: Coordinate, snapshot: GridSnapshot) -> float | None:
    """Numeric value of a cell, None when empty. Raises TypeMismatch on text."""
    content = snapshot.content_at(coord)
    if not content.strip():
        return None
    value = parse_number(content)
    if value is None:
        raise TypeMismatch(f"{coord.label} is not numeric: {content!r}")
    return value


# ── Expression tree ───────────────────────────────────────────────

@dataclass(frozen=True)
class Number:
    value: float

    def evaluate(self, snapshot: GridSnapshot) -> float:
        return self.value


@dataclass(frozen=True)
class CellRef:
    coord: Coordinate

    def evaluate(self, snapshot: GridSnapshot) -> float:
        _check_bounds(self.coord, snapshot)
        value = _read_number(self.coord, snapshot)
        return 0.0 if value is None else value


@dataclass(frozen=True)
class RangeRef:
    start: Coordinate
    end: Coordinate

    def coordinates(self) -> list[Coordinate]:
        r1, r2 = sorted((self.start.row, self.end.row))
        c1, c2 = sorted((self.start.column, self.end.column))
        return [
            Coordinate(r, c)
            for r in range(r1, r2 + 1)
            for c in range(c1, c2 + 1)
        ]

    def values(self, snapshot: GridSnapshot, strict: bool = True) -> list[float]:
        """Numeric values of the non-empty cells in the range.

        With strict=False non-numeric cells are skipped instead of raising.
        """
        values: list[float] = []
        for coord in self.coordinates():
            _check_bounds(coord, snapshot)
            try:
                value = _read_number(coord, snapshot)
            except TypeMismatch:
                if strict:
                    raise
                continue
            if value is not None:
                values.append(value)
        return values


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Number | CellRef | UnaryOp | BinaryOp | FunctionCall

    def evaluate(self, snapshot: GridSnapshot) -> float:
        # runs of signs ("---1") are unwound in a loop
        negate = False
        node: Expression = self
        while isinstance(node, UnaryOp):
            negate ^= node.op == '-'
            node = node.operand
        value = node.evaluate(snapshot)
        return -value if negate else value


def _apply(op: str, left: float, right: float) -> float:
    if op == '+':
        return left + right
    if op == '-':
        return left - right
    if op == '*':
        return left * right
    if right == 0:
        raise DivisionByZero("Division by zero")
    return left / right


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Number | CellRef | UnaryOp | BinaryOp | FunctionCall
    right: Number | CellRef | UnaryOp | BinaryOp | FunctionCall

    def evaluate(self, snapshot: GridSnapshot) -> float:
        """Walk the left spine iteratively; long ``1+1+...`` chains nest to the left."""
        spine: list[BinaryOp] = []
        node: Expression = self
        while isinstance(node, BinaryOp):
            spine.append(node)
            node = node.left
        value = node.evaluate(snapshot)
        for op_node in reversed(spine):
            value = _apply(op_node.op, value, op_node.right.evaluate(snapshot))
        return value


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


_AGGREGATES: dict[str, Callable[[list[float]], float]] = {
    'SUM': lambda vals: float(sum(vals)),
    'AVERAGE': _average,
    'AVG': _average,
    'MIN': lambda vals: min(vals) if vals else 0.0,
    'MAX': lambda vals: max(vals) if vals else 0.0,
    'COUNT': lambda vals: float(len(vals)),
}


@dataclass(frozen=True)
class FunctionCall:
    name: str
    argument: RangeRef

    def evaluate(self, snapshot: GridSnapshot) -> float:
        values = self.argument.values(snapshot, strict=self.name != 'COUNT')
        return _AGGREGATES[self.name](values)


Expression = Number | CellRef | UnaryOp | BinaryOp | FunctionCall


# ── Tokenizer ─────────────────────────────────────────────────────

_TOKEN_RE = re.compile(
    r'\s*(?:'
    r'(?P<number>\d+(?:\.\d*)?|\.\d+)'
    r'|(?P<func>[A-Za-z]+)(?=\s*\()'
    r'|(?P<cell>[A-Za-z]+\d+)'
    r'|(?P<op>[-+*/():])'
    r')'
)


@dataclass(frozen=True)
class Token:
    kind: str  # number | func | cell | op
    text: str
    pos: int


def tokenize(body: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    end = len(body.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(body, pos)
        if not m or m.end() == pos:
            raise FormulaSyntaxError(f"Unexpected '{body[pos:].strip()[:1]}' at pos {pos}")
        kind = m.lastgroup
        tokens.append(Token(kind, m.group(kind), m.start(kind)))
        pos = m.end()
    return tokens


# ── Parser (recursive descent) ────────────────────────────────────

def _cell_coordinate(token: Token) -> Coordinate:
    m = re.match(r'^([A-Z]+)(\d+)$', token.text.upper())
    row = int(m.group(2)) - 1
    if row < 0:
        raise UnresolvedReference(f"Row must be >= 1: {token.text}")
    return Coordinate(row, column_index(m.group(1)))


class _Parser:
    """Builds an expression tree from: +, -, *, /, unary -, parentheses, numbers,
    cell refs and aggregate calls over ranges."""
    __slots__ = ('tokens', 'pos')

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _peek_op(self) -> str | None:
        tok = self._peek()
        return tok.text if tok is not None and tok.kind == 'op' else None

    def _eat(self, kind: str, text: str | None = None) -> Token:
        tok = self._peek()
        if tok is None:
            raise FormulaSyntaxError("Unexpected end of expression")
        if tok.kind != kind or (text is not None and tok.text != text):
            raise FormulaSyntaxError(f"Expected '{text or kind}', got '{tok.text}' at pos {tok.pos}")
        self.pos += 1
        return tok

    def _function(self) -> FunctionCall:
        tok = self._eat('func')
        name = tok.text.upper()
        if name not in _AGGREGATES:
            raise FormulaSyntaxError(f"Unknown function: {tok.text}")
        self._eat('op', '(')
        start = _cell_coordinate(self._eat('cell'))
        self._eat('op', ':')
        end = _cell_coordinate(self._eat('cell'))
        self._eat('op', ')')
        return FunctionCall(name, RangeRef(start, end))

    def _primary(self) -> Expression:
        tok = self._peek()
        if tok is None:
            raise FormulaSyntaxError("Unexpected end of expression")
        if tok.kind == 'number':
            self.pos += 1
            return Number(float(tok.text))
        if tok.kind == 'cell':
            self.pos += 1
            return CellRef(_cell_coordinate(tok))
        if tok.kind == 'func':
            return self._function()
        if tok.text == '(':
            self._eat('op', '(')
            node = self._expr()
            self._eat('op', ')')
            return node
        raise FormulaSyntaxError(f"Unexpected '{tok.text}' at pos {tok.pos}")

    def _unary(self) -> Expression:
        signs = []
        while self._peek_op() in ('-', '+'):
            signs.append(self._eat('op').text)
        node = self._primary()
        for op in reversed(signs):
            node = UnaryOp(op, node)
        return node

    def _term(self) -> Expression:
        left = self._unary()
        while self._peek_op() in ('*', '/'):
            op = self._eat('op').text
            left = BinaryOp(op, left, self._unary())
        return left

    def _expr(self) -> Expression:
        left = self._term()
        while self._peek_op() in ('+', '-'):
            op = self._eat('op').text
            left = BinaryOp(op, left, self._term())
        return left

    def parse(self) -> Expression:
        if not self.tokens:
            raise FormulaSyntaxError("Empty expression")
        node = self._expr()
        tok = self._peek()
        if tok is not None:
            raise FormulaSyntaxError(f"Unexpected '{tok.text}' at pos {tok.pos}")
        return node


def parse(formula: str) -> Expression:
    """Parse a formula (with or without the leading ``=``) into an expression tree."""
    body = formula[1:] if formula.startswith('=') else formula
    try:
        return _Parser(tokenize(body)).parse()
    except RecursionError:
        raise FormulaSyntaxError("Formula is nested too deeply") from None


# ── Formula evaluation ────────────────────────────────────────────

def evaluate(formula: str, snapshot: GridSnapshot) -> float:
    """Evaluate a formula string (starting with =) against *snapshot*.

    Raises an EvaluationError subclass on failure.
    """
    tree = parse(formula)
    try:
        value = tree.evaluate(snapshot)
    except RecursionError:
        raise FormulaSyntaxError("Formula is nested too deeply") from None
    if not math.isfinite(value):
        raise TypeMismatch("Result is not a finite number")
    return value


def evaluate_display(formula: str, snapshot: GridSnapshot) -> str:
    """Evaluate and render for a cell: the formatted number, or ``#ERROR!``."""
    try:
        return format_result(evaluate(formula, snapshot))
    except EvaluationError as e:
        logger.debug("Formula %r failed with %s: %s", formula, e.code, e)
        return ERROR_DISPLAY
