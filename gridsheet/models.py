import re
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

# ── Cell data types ───────────────────────────────────────────────

class DataType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    FORMULA = "formula"


_NUMBER_RE = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$')
_DATE_RES = (
    re.compile(r'^\d{1,2}/\d{1,2}/\d{4}$'),
    re.compile(r'^\d{4}-\d{2}-\d{2}$'),
)


def parse_number(text: str) -> Optional[float]:
    """Return the numeric value of *text* (trimmed), or None if it is not a number."""
    stripped = text.strip()
    if not _NUMBER_RE.match(stripped):
        return None
    return float(stripped)


def classify(raw: str) -> DataType:
    """Infer the data type of raw cell input."""
    if raw.startswith('='):
        return DataType.FORMULA
    if parse_number(raw) is not None:
        return DataType.NUMBER
    if any(r.match(raw.strip()) for r in _DATE_RES):
        return DataType.DATE
    return DataType.TEXT


# ── Cells ─────────────────────────────────────────────────────────

class Cell(BaseModel):
    content: str = ""
    formula: Optional[str] = None
    style: Dict[str, Any] = Field(default_factory=dict)
    data_type: DataType = Field(default=DataType.TEXT)

    def is_blank(self) -> bool:
        """True when the cell carries nothing worth storing."""
        return not self.content and self.formula is None and not self.style

    def view(self, address: str) -> "CellView":
        return CellView(address=address, **self.model_copy(deep=True).model_dump())


class CellView(Cell):
    """Detached copy of a cell handed to callers; edits do not reach the grid."""
    address: str


class CellRecord(BaseModel):
    """One entry of the persisted row shape."""
    content: str = ""
    style: Dict[str, Any] = Field(default_factory=dict)
    formula: Optional[str] = None


# ── Sheets ────────────────────────────────────────────────────────

class Sheet(BaseModel):
    id: Optional[str] = Field(default=None)
    title: str = "Untitled spreadsheet"
    row_count: int
    column_count: int
    rows: List[List[CellRecord]] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class SheetSummary(BaseModel):
    id: str
    title: str
    row_count: int
    column_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class SheetCreate(BaseModel):
    title: str = "Untitled spreadsheet"
    row_count: Optional[int] = Field(default=None, ge=1)
    column_count: Optional[int] = Field(default=None, ge=1)

class SheetTitleUpdate(BaseModel):
    title: str


# ── Request bodies ────────────────────────────────────────────────

class CellUpdate(BaseModel):
    value: str

class StyleUpdate(BaseModel):
    style: Dict[str, Any]

class IndexRequest(BaseModel):
    index: int

class RangeRequest(BaseModel):
    anchor: str
    focus: Optional[str] = None

class FindReplaceRequest(RangeRequest):
    find: str
    replace: str = ""

class PasteRequest(BaseModel):
    text: str
    target: str
