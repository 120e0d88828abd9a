import sqlite3
import json
import logging
import threading
import uuid
from typing import Callable, List, Optional, TypeVar

from gridsheet.grid import Grid, MAX_RECALC_PASSES
from gridsheet.models import Sheet, SheetSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseManager:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize_schema(self):
        with self.get_connection() as conn:
            conn.execute("""CREATE TABLE IF NOT EXISTS sheets (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL DEFAULT 'Untitled spreadsheet',
                row_count INTEGER NOT NULL,
                column_count INTEGER NOT NULL,
                rows_json TEXT NOT NULL DEFAULT '[]',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )""")
            conn.commit()


class SheetNotFound(LookupError):
    pass


class SheetRepository:
    """Stores each sheet as its persisted row shape.

    Every mutation loads the grid, applies one operation and saves it back while
    holding the write lock, so writers never interleave.
    """

    def __init__(self, db: DatabaseManager, max_passes: int = MAX_RECALC_PASSES):
        self.db = db
        self.max_passes = max_passes
        self._write_lock = threading.RLock()

    def _row_to_sheet(self, row) -> Sheet:
        d = dict(row)
        rows_raw = json.loads(d.pop("rows_json", "[]"))
        return Sheet(**d, rows=rows_raw)

    def _row_to_summary(self, row) -> SheetSummary:
        d = dict(row)
        d.pop("rows_json", None)
        return SheetSummary(**d)

    def create(self, title: str = "Untitled spreadsheet", row_count: int = 100,
               column_count: int = 26) -> Sheet:
        sheet_id = str(uuid.uuid4())
        grid = Grid(row_count, column_count, self.max_passes)
        with self._write_lock, self.db.get_connection() as conn:
            conn.execute(
                "INSERT INTO sheets (id, title, row_count, column_count, rows_json) VALUES (?, ?, ?, ?, ?)",
                (sheet_id, title, grid.row_count, grid.column_count, self._dump_rows(grid)),
            )
            conn.commit()
        logger.info("Created sheet %s (%dx%d)", sheet_id, row_count, column_count)
        return self.get_by_id(sheet_id)

    def get_by_id(self, sheet_id: str) -> Optional[Sheet]:
        with self.db.get_connection() as conn:
            row = conn.execute("SELECT * FROM sheets WHERE id = ?", (sheet_id,)).fetchone()
            return self._row_to_sheet(row) if row else None

    def get_all(self) -> List[SheetSummary]:
        with self.db.get_connection() as conn:
            rows = conn.execute("SELECT * FROM sheets ORDER BY updated_at DESC").fetchall()
            return [self._row_to_summary(r) for r in rows]

    def load_grid(self, sheet_id: str) -> Grid:
        sheet = self.get_by_id(sheet_id)
        if sheet is None:
            raise SheetNotFound(sheet_id)
        return Grid.from_rows(sheet.rows, max_passes=self.max_passes)

    @staticmethod
    def _dump_rows(grid: Grid) -> str:
        return json.dumps([[record.model_dump() for record in row] for row in grid.to_rows()])

    def _save(self, conn, sheet_id: str, grid: Grid):
        conn.execute(
            "UPDATE sheets SET row_count = ?, column_count = ?, rows_json = ?, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (grid.row_count, grid.column_count, self._dump_rows(grid), sheet_id),
        )
        conn.commit()

    def mutate(self, sheet_id: str, operation: Callable[[Grid], T]) -> T:
        """Apply *operation* to the stored grid and persist the result.

        Raises SheetNotFound for an unknown id. Exceptions from *operation*
        propagate and leave the stored sheet untouched.
        """
        with self._write_lock:
            grid = self.load_grid(sheet_id)
            result = operation(grid)
            with self.db.get_connection() as conn:
                self._save(conn, sheet_id, grid)
            return result

    def update_title(self, sheet_id: str, title: str) -> Optional[Sheet]:
        with self._write_lock, self.db.get_connection() as conn:
            conn.execute("UPDATE sheets SET title = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?", (title, sheet_id))
            conn.commit()
        return self.get_by_id(sheet_id)

    def delete(self, sheet_id: str) -> bool:
        with self._write_lock, self.db.get_connection() as conn:
            cursor = conn.execute("DELETE FROM sheets WHERE id = ?", (sheet_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted sheet %s", sheet_id)
        return deleted
