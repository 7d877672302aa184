from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...constants import CATEGORY_ACCESSORY, CATEGORY_POWER_TOOL, TOOL_CATEGORIES
from .errors import ConflictError, NotFoundError, ValidationError


@dataclass
class Tool:
    tool_id: int | None
    name: str
    category: str
    price: float
    available_count: int

    @property
    def is_accessory(self) -> bool:
        return self.category == CATEGORY_ACCESSORY


class ToolsRepo:
    """
    Rentable inventory. Power tools carry a finite available_count that rentals
    reserve and returns restore; accessories are sold, so their count is not tracked.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, tool_id: int) -> Tool | None:
        r = self.conn.execute(
            """
            SELECT tool_id, name, category, CAST(price AS REAL) AS price, available_count
              FROM tools WHERE tool_id = ?
            """,
            (tool_id,),
        ).fetchone()
        return Tool(**dict(r)) if r else None

    def list_tools(self) -> list[Tool]:
        rows = self.conn.execute(
            """
            SELECT tool_id, name, category, CAST(price AS REAL) AS price, available_count
              FROM tools ORDER BY name
            """
        ).fetchall()
        return [Tool(**dict(r)) for r in rows]

    def create(
        self,
        name: str,
        price: float,
        *,
        category: str = CATEGORY_POWER_TOOL,
        available_count: int = 0,
    ) -> int:
        """Insert a tool and commit."""
        if not name or not name.strip():
            raise ValidationError("Name cannot be empty.")
        if category not in TOOL_CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(TOOL_CATEGORIES)}")
        if price is None or float(price) < 0:
            raise ValidationError("Price must be non-negative.")
        if available_count is None or int(available_count) < 0:
            raise ValidationError("Available count must be non-negative.")
        cur = self.conn.execute(
            "INSERT INTO tools(name, category, price, available_count) VALUES (?,?,?,?)",
            (name.strip(), category, float(price), int(available_count)),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def adjust_available_count(self, tool_id: int, delta: int) -> int:
        """
        Move stock by `delta` (negative reserves, positive restores). Does not commit.
        Returns the new available count.
        """
        cur = self.conn.execute(
            """
            UPDATE tools
               SET available_count = available_count + ?
             WHERE tool_id = ? AND available_count + ? >= 0
            """,
            (int(delta), tool_id, int(delta)),
        )
        if cur.rowcount == 0:
            tool = self.get(tool_id)
            if tool is None:
                raise NotFoundError(f"Tool with ID {tool_id} not found")
            raise ConflictError(
                f"Insufficient count for tool: {tool.name}. Available: {tool.available_count}"
            )
        row = self.conn.execute(
            "SELECT available_count FROM tools WHERE tool_id = ?", (tool_id,)
        ).fetchone()
        return int(row["available_count"])
