from __future__ import annotations

"""
Repository for the daily cash/UPI ledger.

One `ledger_days` row per calendar day (keyed 'YYYY-MM-DD') holds the
close/opening snapshots; `ledger_entries` holds the movements. Balances are
never stored: services compute them from the entries on every read.

Write helpers do not commit; the ledger service owns the transaction.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .errors import ConflictError


@dataclass
class LedgerDay:
    day_key: str
    is_closed: bool
    closed_at: datetime | None
    closing_cash: float
    closing_upi: float
    closing_total: float
    opening_cash: float
    opening_upi: float
    opening_total: float
    opening_carried_from: str | None

    @classmethod
    def empty(cls, day_key: str) -> "LedgerDay":
        return cls(day_key, False, None, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, None)


@dataclass
class LedgerEntry:
    entry_id: int
    day_key: str
    rental_id: int | None
    customer_id: int | None
    amount: float
    kind: str
    payment_method: str
    category: str | None
    description: str
    notes: str
    created_at: datetime


_DAY_COLUMNS = """
    day_key, is_closed, closed_at,
    CAST(closing_cash AS REAL)  AS closing_cash,
    CAST(closing_upi AS REAL)   AS closing_upi,
    CAST(closing_total AS REAL) AS closing_total,
    CAST(opening_cash AS REAL)  AS opening_cash,
    CAST(opening_upi AS REAL)   AS opening_upi,
    CAST(opening_total AS REAL) AS opening_total,
    opening_carried_from
"""


def _row_to_day(r: sqlite3.Row) -> LedgerDay:
    return LedgerDay(
        day_key=r["day_key"],
        is_closed=bool(r["is_closed"]),
        closed_at=datetime.fromisoformat(r["closed_at"]) if r["closed_at"] else None,
        closing_cash=float(r["closing_cash"]),
        closing_upi=float(r["closing_upi"]),
        closing_total=float(r["closing_total"]),
        opening_cash=float(r["opening_cash"]),
        opening_upi=float(r["opening_upi"]),
        opening_total=float(r["opening_total"]),
        opening_carried_from=r["opening_carried_from"],
    )


class LedgerRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def get_day(self, day_key: str) -> Optional[LedgerDay]:
        r = self.conn.execute(
            f"SELECT {_DAY_COLUMNS} FROM ledger_days WHERE day_key = ?", (day_key,)
        ).fetchone()
        return _row_to_day(r) if r else None

    def ensure_day(self, day_key: str) -> LedgerDay:
        """Create the day row if it does not exist yet (idempotent)."""
        self.conn.execute("INSERT OR IGNORE INTO ledger_days(day_key) VALUES (?)", (day_key,))
        return self.get_day(day_key)  # type: ignore[return-value]

    def mark_closed(
        self,
        day_key: str,
        *,
        closing_cash: float,
        closing_upi: float,
        closed_at: str,
    ) -> None:
        self.conn.execute(
            """
            UPDATE ledger_days
               SET is_closed = 1,
                   closed_at = ?,
                   closing_cash = ?,
                   closing_upi = ?,
                   closing_total = ?
             WHERE day_key = ?
            """,
            (closed_at, closing_cash, closing_upi, closing_cash + closing_upi, day_key),
        )

    def mark_open(self, day_key: str) -> None:
        self.conn.execute(
            """
            UPDATE ledger_days
               SET is_closed = 0,
                   closed_at = NULL,
                   closing_cash = 0,
                   closing_upi = 0,
                   closing_total = 0
             WHERE day_key = ?
            """,
            (day_key,),
        )

    def set_opening(
        self,
        day_key: str,
        *,
        opening_cash: float,
        opening_upi: float,
        carried_from: str,
    ) -> None:
        self.conn.execute(
            """
            UPDATE ledger_days
               SET opening_cash = ?,
                   opening_upi = ?,
                   opening_total = ?,
                   opening_carried_from = ?
             WHERE day_key = ?
            """,
            (opening_cash, opening_upi, opening_cash + opening_upi, carried_from, day_key),
        )

    def latest_closed_before(self, day_key: str, not_before: str) -> Optional[LedgerDay]:
        """Most recent closed day strictly before `day_key` and on/after `not_before`."""
        r = self.conn.execute(
            f"""
            SELECT {_DAY_COLUMNS}
              FROM ledger_days
             WHERE is_closed = 1 AND day_key < ? AND day_key >= ?
             ORDER BY day_key DESC
             LIMIT 1
            """,
            (day_key, not_before),
        ).fetchone()
        return _row_to_day(r) if r else None

    def first_carried_from(self, day_key: str, until: str) -> Optional[LedgerDay]:
        """Earliest day in (day_key, until] whose positive opening balance came from `day_key`."""
        r = self.conn.execute(
            f"""
            SELECT {_DAY_COLUMNS}
              FROM ledger_days
             WHERE day_key > ? AND day_key <= ?
               AND opening_carried_from = ?
               AND CAST(opening_total AS REAL) > 0
             ORDER BY day_key
             LIMIT 1
            """,
            (day_key, until, day_key),
        ).fetchone()
        return _row_to_day(r) if r else None

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self, day_key: str) -> List[LedgerEntry]:
        rows = self.conn.execute(
            """
            SELECT entry_id, day_key, rental_id, customer_id, CAST(amount AS REAL) AS amount,
                   kind, payment_method, category, description, notes, created_at
              FROM ledger_entries
             WHERE day_key = ?
             ORDER BY entry_id
            """,
            (day_key,),
        ).fetchall()
        return [
            LedgerEntry(
                entry_id=int(r["entry_id"]),
                day_key=r["day_key"],
                rental_id=r["rental_id"],
                customer_id=r["customer_id"],
                amount=float(r["amount"]),
                kind=r["kind"],
                payment_method=r["payment_method"],
                category=r["category"],
                description=r["description"],
                notes=r["notes"] or "",
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def insert_entry(
        self,
        *,
        day_key: str,
        amount: float,
        kind: str,
        payment_method: str,
        description: str,
        created_at: str,
        category: str | None = None,
        notes: str = "",
        rental_id: int | None = None,
        customer_id: int | None = None,
    ) -> int:
        """Append an entry to an existing day. A closed day is rejected by trigger."""
        try:
            cur = self.conn.execute(
                """
                INSERT INTO ledger_entries(
                    day_key, rental_id, customer_id, amount, kind,
                    payment_method, category, description, notes, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    day_key,
                    rental_id,
                    customer_id,
                    float(amount),
                    kind,
                    payment_method,
                    category,
                    description,
                    notes or "",
                    created_at,
                ),
            )
        except sqlite3.IntegrityError as e:
            if "Day is closed" in str(e):
                raise ConflictError(f"Day {day_key} is closed.") from e
            raise
        return int(cur.lastrowid)
