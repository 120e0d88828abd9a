import sys
import os
import logging
from typing import Callable, List, TypeVar
from urllib.parse import quote
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

def get_app_data_dir() -> str:
    """Return a user-writable data directory for gridsheet (created if absent)."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA") or os.path.expanduser("~")
    elif sys.platform == "darwin":
        base = os.path.expanduser("~/Library/Application Support")
    else:
        base = os.environ.get("XDG_DATA_HOME") or os.path.expanduser("~/.local/share")
    app_dir = os.path.join(base, "gridsheet")
    os.makedirs(app_dir, exist_ok=True)
    return app_dir

# Load .env from app-data dir first, then fall back to CWD (dev)
load_dotenv(os.path.join(get_app_data_dir(), ".env"))
load_dotenv()

from gridsheet.address import Coordinate, InvalidAddress, from_label, to_label
from gridsheet.grid import Grid, OutOfBounds
from gridsheet.models import (
    CellUpdate, CellView, FindReplaceRequest, IndexRequest, PasteRequest, RangeRequest,
    Sheet, SheetCreate, SheetSummary, SheetTitleUpdate, StyleUpdate,
)
from gridsheet.selection import CellRange, select
from gridsheet.storage import DatabaseManager, SheetNotFound, SheetRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ROWS = int(os.getenv("GRIDSHEET_DEFAULT_ROWS", "100"))
DEFAULT_COLUMNS = int(os.getenv("GRIDSHEET_DEFAULT_COLUMNS", "26"))
MAX_RECALC_PASSES = int(os.getenv("GRIDSHEET_MAX_RECALC_PASSES", "20"))
DB_PATH = os.getenv("GRIDSHEET_DB_PATH") or os.path.join(get_app_data_dir(), "gridsheet.db")

app = FastAPI(title="gridsheet")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

db = DatabaseManager(DB_PATH)
db.initialize_schema()

sheet_repo = SheetRepository(db, max_passes=MAX_RECALC_PASSES)


# ── Helpers ───────────────────────────────────────────────────────

def _coordinate(label: str) -> Coordinate:
    try:
        return from_label(label)
    except InvalidAddress as e:
        raise HTTPException(status_code=422, detail=str(e))

def _range(req: RangeRequest) -> CellRange:
    anchor = _coordinate(req.anchor)
    focus = _coordinate(req.focus) if req.focus else None
    return select(anchor, focus)

def _mutate(sheet_id: str, operation: Callable[[Grid], T]) -> T:
    try:
        return sheet_repo.mutate(sheet_id, operation)
    except SheetNotFound:
        raise HTTPException(status_code=404, detail="Sheet not found")
    except OutOfBounds as e:
        raise HTTPException(status_code=422, detail=str(e))

def _load(sheet_id: str) -> Grid:
    try:
        return sheet_repo.load_grid(sheet_id)
    except SheetNotFound:
        raise HTTPException(status_code=404, detail="Sheet not found")

def _structural(sheet_id: str, operation: Callable[[Grid], bool]) -> dict:
    def _apply(grid: Grid) -> dict:
        applied = operation(grid)
        return {"applied": applied, "row_count": grid.row_count, "column_count": grid.column_count}
    result = _mutate(sheet_id, _apply)
    logger.info("Sheet %s: structural edit applied=%s, now %dx%d",
                sheet_id, result["applied"], result["row_count"], result["column_count"])
    return result


# ── Sheets ────────────────────────────────────────────────────────

@app.post("/sheets", response_model=Sheet)
async def create_sheet(req: SheetCreate):
    return sheet_repo.create(
        title=req.title,
        row_count=req.row_count or DEFAULT_ROWS,
        column_count=req.column_count or DEFAULT_COLUMNS,
    )

@app.get("/sheets", response_model=List[SheetSummary])
async def list_sheets():
    return sheet_repo.get_all()

@app.get("/sheets/{sheet_id}", response_model=Sheet)
async def get_sheet(sheet_id: str):
    sheet = sheet_repo.get_by_id(sheet_id)
    if not sheet:
        raise HTTPException(status_code=404, detail="Sheet not found")
    return sheet

@app.delete("/sheets/{sheet_id}")
async def delete_sheet(sheet_id: str):
    if not sheet_repo.delete(sheet_id):
        raise HTTPException(status_code=404, detail="Sheet not found")
    return {"status": "deleted"}

@app.put("/sheets/{sheet_id}/title", response_model=Sheet)
async def update_sheet_title(sheet_id: str, req: SheetTitleUpdate):
    title = req.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title must not be empty")
    sheet = sheet_repo.update_title(sheet_id, title)
    if not sheet:
        raise HTTPException(status_code=404, detail="Sheet not found")
    return sheet


# ── Cells ─────────────────────────────────────────────────────────

@app.get("/sheets/{sheet_id}/cells/{label}", response_model=CellView)
async def get_cell(sheet_id: str, label: str):
    coord = _coordinate(label)
    grid = _load(sheet_id)
    if not grid.in_bounds(coord):
        raise HTTPException(status_code=422,
                            detail=f"{to_label(coord)} is outside the {grid.row_count}x{grid.column_count} grid")
    cell = grid.get_cell(coord)
    if cell is None:
        raise HTTPException(status_code=404, detail=f"Cell {to_label(coord)} is empty")
    return cell

@app.put("/sheets/{sheet_id}/cells/{label}", response_model=CellView)
async def set_cell(sheet_id: str, label: str, req: CellUpdate):
    coord = _coordinate(label)
    return _mutate(sheet_id, lambda grid: grid.set_content(coord, req.value))

@app.put("/sheets/{sheet_id}/cells/{label}/style", response_model=CellView)
async def set_cell_style(sheet_id: str, label: str, req: StyleUpdate):
    coord = _coordinate(label)
    return _mutate(sheet_id, lambda grid: grid.update_style(coord, req.style))


# ── Rows / columns ────────────────────────────────────────────────

@app.post("/sheets/{sheet_id}/rows/insert")
async def insert_row(sheet_id: str, req: IndexRequest):
    return _structural(sheet_id, lambda grid: grid.insert_row(req.index))

@app.post("/sheets/{sheet_id}/rows/delete")
async def delete_row(sheet_id: str, req: IndexRequest):
    return _structural(sheet_id, lambda grid: grid.delete_row(req.index))

@app.post("/sheets/{sheet_id}/columns/insert")
async def insert_column(sheet_id: str, req: IndexRequest):
    return _structural(sheet_id, lambda grid: grid.insert_column(req.index))

@app.post("/sheets/{sheet_id}/columns/delete")
async def delete_column(sheet_id: str, req: IndexRequest):
    return _structural(sheet_id, lambda grid: grid.delete_column(req.index))


# ── Range operations ──────────────────────────────────────────────

@app.post("/sheets/{sheet_id}/select")
async def select_range(sheet_id: str, req: RangeRequest):
    cell_range = _range(req)
    grid = _load(sheet_id)
    min_row, max_row, min_col, max_col = cell_range.bounds
    return {
        "range": cell_range.label,
        "min_row": min_row,
        "max_row": max_row,
        "min_col": min_col,
        "max_col": max_col,
        "in_bounds": grid.in_bounds(cell_range.bottom_right),
    }

@app.post("/sheets/{sheet_id}/remove-duplicates")
async def remove_duplicates(sheet_id: str, req: RangeRequest):
    cell_range = _range(req)
    deleted = _mutate(sheet_id, lambda grid: grid.remove_duplicate_rows(cell_range))
    logger.info("Sheet %s: removed %d duplicate rows in %s", sheet_id, len(deleted), cell_range.label)
    return {"deleted_rows": deleted}

@app.post("/sheets/{sheet_id}/find-replace")
async def find_replace(sheet_id: str, req: FindReplaceRequest):
    cell_range = _range(req)
    changed = _mutate(sheet_id, lambda grid: grid.find_and_replace(cell_range, req.find, req.replace))
    return {"changed": [to_label(c) for c in changed]}

@app.post("/sheets/{sheet_id}/clear-range")
async def clear_range(sheet_id: str, req: RangeRequest):
    cell_range = _range(req)
    cleared = _mutate(sheet_id, lambda grid: grid.clear_range(cell_range))
    return {"cleared": [to_label(c) for c in cleared]}

@app.post("/sheets/{sheet_id}/copy")
async def copy_range(sheet_id: str, req: RangeRequest):
    cell_range = _range(req)
    return {"text": _load(sheet_id).copy(cell_range)}

@app.post("/sheets/{sheet_id}/paste")
async def paste(sheet_id: str, req: PasteRequest):
    target = _coordinate(req.target)
    affected = _mutate(sheet_id, lambda grid: grid.paste(req.text, target))
    return {"affected": [to_label(c) for c in affected]}


# ── Export ────────────────────────────────────────────────────────

@app.get("/sheets/{sheet_id}/export.csv")
async def export_csv(sheet_id: str):
    sheet = sheet_repo.get_by_id(sheet_id)
    if not sheet:
        raise HTTPException(status_code=404, detail="Sheet not found")
    grid = Grid.from_rows(sheet.rows, max_passes=MAX_RECALC_PASSES)
    return Response(
        content=grid.to_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(sheet.title + '.csv')}"},
    )


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=os.getenv("GRIDSHEET_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("GRIDSHEET_HOST", "127.0.0.1")
    port = int(os.getenv("GRIDSHEET_PORT", "8000"))
    logger.info("Serving gridsheet on %s:%d (db=%s)", host, port, DB_PATH)
    uvicorn.run(app, host=host, port=port, timeout_keep_alive=5)
