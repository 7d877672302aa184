from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import List, Optional

from ...constants import INTENT_PENDING, INTENT_POSTED


@dataclass
class LedgerIntent:
    intent_id: int
    rental_id: int | None
    customer_id: int | None
    day_key: str
    kind: str
    payment_method: str
    amount: float
    description: str
    notes: str
    status: str
    entry_id: int | None


class LedgerIntentsRepo:
    """
    Outbox for ledger movements produced by rental operations.

    The billing service writes a 'pending' intent in the same transaction as the
    rental mutation; the ledger service turns it into an entry and flips it to
    'posted'. Anything left 'pending' is picked up by reconciliation.
    """

    _COLUMNS = """
        intent_id, rental_id, customer_id, day_key, kind, payment_method,
        CAST(amount AS REAL) AS amount, description, notes, status, entry_id
    """

    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def add(
        self,
        *,
        day_key: str,
        kind: str,
        payment_method: str,
        amount: float,
        description: str,
        created_at: str,
        notes: str = "",
        rental_id: int | None = None,
        customer_id: int | None = None,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO ledger_intents(
                rental_id, customer_id, day_key, kind, payment_method,
                amount, description, notes, status, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rental_id,
                customer_id,
                day_key,
                kind,
                payment_method,
                float(amount),
                description,
                notes or "",
                INTENT_PENDING,
                created_at,
            ),
        )
        return int(cur.lastrowid)

    def get(self, intent_id: int) -> Optional[LedgerIntent]:
        r = self.conn.execute(
            f"SELECT {self._COLUMNS} FROM ledger_intents WHERE intent_id = ?", (intent_id,)
        ).fetchone()
        return LedgerIntent(**dict(r)) if r else None

    def list_pending(self) -> List[LedgerIntent]:
        rows = self.conn.execute(
            f"SELECT {self._COLUMNS} FROM ledger_intents WHERE status = ? ORDER BY intent_id",
            (INTENT_PENDING,),
        ).fetchall()
        return [LedgerIntent(**dict(r)) for r in rows]

    def mark_posted(self, intent_id: int, *, entry_id: int, posted_at: str) -> None:
        self.conn.execute(
            """
            UPDATE ledger_intents
               SET status = ?, entry_id = ?, posted_at = ?
             WHERE intent_id = ? AND status = ?
            """,
            (INTENT_POSTED, entry_id, posted_at, intent_id, INTENT_PENDING),
        )
