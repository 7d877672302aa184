from __future__ import annotations

"""
Repository for rentals and everything hanging off them.

A rental is stored across several tables (see `database/schema.py`):

  rentals               header: customer, amounts, derived status
  rental_items          one row per line item, unit price snapshot
  rental_return_events  partial/full returns per line item
  rental_adjustments    discounts and credits granted on return
  rental_notes          append-only audit trail

`load()` reassembles the whole aggregate into a `Rental`. Write helpers do not
commit: the billing service wraps each operation in a single transaction so a
rental update lands atomically.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...constants import CATEGORY_ACCESSORY


@dataclass
class ReturnEvent:
    event_id: int | None
    count: int
    date: datetime


@dataclass
class RentalItem:
    item_id: int | None
    tool_id: int
    tool_name: str
    category: str
    unit_price: float
    ordered_count: int
    returned_count: int
    rental_date: datetime
    return_events: List[ReturnEvent] = field(default_factory=list)

    @property
    def is_accessory(self) -> bool:
        return self.category == CATEGORY_ACCESSORY

    @property
    def remaining_count(self) -> int:
        return self.ordered_count - self.returned_count


@dataclass
class Adjustment:
    adjustment_id: int | None
    kind: str                  # 'discount' | 'credit'
    tool_id: int | None        # None = applies to the whole rental
    amount: float
    event_date: datetime
    note: str | None


@dataclass
class RentalNote:
    note_id: int | None
    text: str
    created_at: datetime


@dataclass
class Rental:
    rental_id: int
    customer_id: int
    customer_name: str
    initial_amount: float
    total_amount: float
    status: str
    created_at: datetime
    items: List[RentalItem] = field(default_factory=list)
    discounts: List[Adjustment] = field(default_factory=list)
    credits: List[Adjustment] = field(default_factory=list)
    notes: List[RentalNote] = field(default_factory=list)

    @property
    def total_discount(self) -> float:
        return sum(d.amount for d in self.discounts)

    @property
    def total_credit(self) -> float:
        return sum(c.amount for c in self.credits)

    def find_item(self, tool_id: int) -> Optional[RentalItem]:
        """First line item for `tool_id`, preferring one that still has units out."""
        matches = [it for it in self.items if it.tool_id == tool_id]
        for it in matches:
            if it.remaining_count > 0:
                return it
        return matches[0] if matches else None


def _ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class RentalsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def exists(self, rental_id: int) -> bool:
        row = self.conn.execute("SELECT 1 FROM rentals WHERE rental_id=?", (rental_id,)).fetchone()
        return row is not None

    def load(self, rental_id: int) -> Rental | None:
        hdr = self.conn.execute(
            """
            SELECT r.rental_id, r.customer_id, c.name AS customer_name,
                   CAST(r.initial_amount AS REAL) AS initial_amount,
                   CAST(r.total_amount AS REAL)   AS total_amount,
                   r.status, r.created_at
              FROM rentals r
              JOIN customers c ON c.customer_id = r.customer_id
             WHERE r.rental_id = ?
            """,
            (rental_id,),
        ).fetchone()
        if hdr is None:
            return None

        rental = Rental(
            rental_id=int(hdr["rental_id"]),
            customer_id=int(hdr["customer_id"]),
            customer_name=hdr["customer_name"],
            initial_amount=float(hdr["initial_amount"]),
            total_amount=float(hdr["total_amount"]),
            status=hdr["status"],
            created_at=_ts(hdr["created_at"]),
        )
        rental.items = self.list_items(rental_id)
        for adj in self.list_adjustments(rental_id):
            (rental.discounts if adj.kind == "discount" else rental.credits).append(adj)
        rental.notes = self.list_notes(rental_id)
        return rental

    def list_items(self, rental_id: int) -> list[RentalItem]:
        rows = self.conn.execute(
            """
            SELECT ri.item_id, ri.tool_id, t.name AS tool_name, ri.category,
                   CAST(ri.unit_price AS REAL) AS unit_price,
                   ri.ordered_count, ri.returned_count, ri.rental_date
              FROM rental_items ri
              JOIN tools t ON t.tool_id = ri.tool_id
             WHERE ri.rental_id = ?
             ORDER BY ri.item_id
            """,
            (rental_id,),
        ).fetchall()
        items = [
            RentalItem(
                item_id=int(r["item_id"]),
                tool_id=int(r["tool_id"]),
                tool_name=r["tool_name"],
                category=r["category"],
                unit_price=float(r["unit_price"]),
                ordered_count=int(r["ordered_count"]),
                returned_count=int(r["returned_count"]),
                rental_date=_ts(r["rental_date"]),
            )
            for r in rows
        ]
        if not items:
            return items

        by_id = {it.item_id: it for it in items}
        marks = ",".join("?" for _ in by_id)
        events = self.conn.execute(
            f"""
            SELECT event_id, item_id, count, return_date
              FROM rental_return_events
             WHERE item_id IN ({marks})
             ORDER BY event_id
            """,
            tuple(by_id),
        ).fetchall()
        for ev in events:
            by_id[int(ev["item_id"])].return_events.append(
                ReturnEvent(int(ev["event_id"]), int(ev["count"]), _ts(ev["return_date"]))
            )
        return items

    def list_adjustments(self, rental_id: int) -> list[Adjustment]:
        rows = self.conn.execute(
            """
            SELECT adjustment_id, kind, tool_id, CAST(amount AS REAL) AS amount, event_date, note
              FROM rental_adjustments
             WHERE rental_id = ?
             ORDER BY adjustment_id
            """,
            (rental_id,),
        ).fetchall()
        return [
            Adjustment(
                adjustment_id=int(r["adjustment_id"]),
                kind=r["kind"],
                tool_id=r["tool_id"],
                amount=float(r["amount"]),
                event_date=_ts(r["event_date"]),
                note=r["note"],
            )
            for r in rows
        ]

    def list_notes(self, rental_id: int) -> list[RentalNote]:
        rows = self.conn.execute(
            "SELECT note_id, text, created_at FROM rental_notes WHERE rental_id=? ORDER BY note_id",
            (rental_id,),
        ).fetchall()
        return [RentalNote(int(r["note_id"]), r["text"], _ts(r["created_at"])) for r in rows]

    def _search_where(self, search: str, status: str) -> tuple[str, list]:
        where: list[str] = []
        params: list = []
        if search:
            pattern = f"%{search.strip()}%"
            where.append(
                "(c.name LIKE ? OR EXISTS ("
                "  SELECT 1 FROM rental_items ri JOIN tools t ON t.tool_id = ri.tool_id"
                "   WHERE ri.rental_id = r.rental_id AND t.name LIKE ?))"
            )
            params += [pattern, pattern]
        if status:
            where.append("r.status = ?")
            params.append(status)
        return (" WHERE " + " AND ".join(where)) if where else "", params

    def search_rentals(
        self,
        search: str = "",
        status: str = "",
        *,
        limit: int = 10,
        offset: int = 0,
    ) -> list[dict]:
        """
        Rental headers, newest first. `search` matches customer or tool names.
        """
        where, params = self._search_where(search, status)
        sql = f"""
            SELECT r.rental_id, r.customer_id, c.name AS customer_name, c.phone AS customer_phone,
                   CAST(r.initial_amount AS REAL) AS initial_amount,
                   CAST(r.total_amount AS REAL)   AS total_amount,
                   r.status, r.created_at
              FROM rentals r
              JOIN customers c ON c.customer_id = r.customer_id
            {where}
             ORDER BY r.created_at DESC, r.rental_id DESC
             LIMIT ? OFFSET ?
        """
        rows = self.conn.execute(sql, (*params, int(limit), int(offset))).fetchall()
        return [dict(r) for r in rows]

    def count_rentals(self, search: str = "", status: str = "") -> int:
        where, params = self._search_where(search, status)
        row = self.conn.execute(
            f"SELECT COUNT(*) AS n FROM rentals r JOIN customers c ON c.customer_id = r.customer_id{where}",
            tuple(params),
        ).fetchone()
        return int(row["n"])

    # ---------------------------------------------------------------------
    # WRITE (caller owns the transaction)
    # ---------------------------------------------------------------------
    def insert_rental(
        self,
        *,
        customer_id: int,
        initial_amount: float,
        total_amount: float,
        status: str,
        created_at: str,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO rentals(customer_id, initial_amount, total_amount, status, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (customer_id, float(initial_amount), float(total_amount), status, created_at),
        )
        return int(cur.lastrowid)

    def insert_item(
        self,
        *,
        rental_id: int,
        tool_id: int,
        category: str,
        unit_price: float,
        ordered_count: int,
        rental_date: str,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO rental_items(rental_id, tool_id, category, unit_price, ordered_count, rental_date)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (rental_id, tool_id, category, float(unit_price), int(ordered_count), rental_date),
        )
        return int(cur.lastrowid)

    def add_note(self, rental_id: int, text: str, created_at: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO rental_notes(rental_id, text, created_at) VALUES (?, ?, ?)",
            (rental_id, text, created_at),
        )
        return int(cur.lastrowid)

    def record_return_event(self, item_id: int, count: int, return_date: str) -> int:
        """Bump returned_count and append the matching event row."""
        self.conn.execute(
            "UPDATE rental_items SET returned_count = returned_count + ? WHERE item_id = ?",
            (int(count), item_id),
        )
        cur = self.conn.execute(
            "INSERT INTO rental_return_events(item_id, count, return_date) VALUES (?, ?, ?)",
            (item_id, int(count), return_date),
        )
        return int(cur.lastrowid)

    def add_adjustment(
        self,
        *,
        rental_id: int,
        kind: str,
        tool_id: int | None,
        amount: float,
        event_date: str,
        note: str | None,
        created_at: str,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO rental_adjustments(rental_id, kind, tool_id, amount, event_date, note, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (rental_id, kind, tool_id, float(amount), event_date, note, created_at),
        )
        return int(cur.lastrowid)

    def update_totals(self, rental_id: int, *, total_amount: float, status: str) -> None:
        self.conn.execute(
            "UPDATE rentals SET total_amount = ?, status = ? WHERE rental_id = ?",
            (float(total_amount), status, rental_id),
        )
