from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from .errors import ValidationError


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str
    address: str | None
    total_credit: float = 0.0


class CustomersRepo:
    """
    Customer records plus the customer credit ledger.

    Conventions:
      • A credit entry is money the customer still owes for a rental
        (granted at return time instead of being collected).
      • total_credit is never stored; v_customer_credit_balance sums the entries.
      • Mutations other than create() do NOT commit; the calling service owns
        the transaction so rental and customer writes land together.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip()

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            """
            SELECT c.customer_id, c.name, c.phone, c.address,
                   COALESCE(b.total_credit, 0.0) AS total_credit
              FROM customers c
              LEFT JOIN v_customer_credit_balance b ON b.customer_id = c.customer_id
             WHERE c.customer_id = ?
            """,
            (customer_id,),
        ).fetchone()
        return Customer(**dict(r)) if r else None

    def order_history(self, customer_id: int) -> list[int]:
        rows = self.conn.execute(
            "SELECT rental_id FROM customer_order_history WHERE customer_id=? ORDER BY rowid",
            (customer_id,),
        ).fetchall()
        return [int(r["rental_id"]) for r in rows]

    def list_credits(self, customer_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT credit_id, customer_id, rental_id,
                   CAST(amount AS REAL) AS amount, note, created_at
              FROM customer_credits
             WHERE customer_id = ?
             ORDER BY credit_id
            """,
            (customer_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def total_credit(self, customer_id: int) -> float:
        row = self.conn.execute(
            "SELECT total_credit FROM v_customer_credit_balance WHERE customer_id = ?",
            (customer_id,),
        ).fetchone()
        return float(row["total_credit"]) if row and row["total_credit"] is not None else 0.0

    # ---- Mutations --------------------------------------------------------

    def create(self, name: str, phone: str, address: str | None = None) -> int:
        """
        Insert a new customer and commit.
        """
        self._ensure_non_empty(name, "Name")
        self._ensure_non_empty(phone, "Phone")

        cur = self.conn.execute(
            "INSERT INTO customers(name, phone, address) VALUES (?,?,?)",
            (self._normalize_text(name), self._normalize_text(phone), self._normalize_text(address)),
        )
        self.conn.commit()
        return int(cur.lastrowid)

    def append_order_history(self, customer_id: int, rental_id: int) -> None:
        self.conn.execute(
            "INSERT OR IGNORE INTO customer_order_history(customer_id, rental_id) VALUES (?, ?)",
            (customer_id, rental_id),
        )

    def append_credit(
        self,
        *,
        customer_id: int,
        rental_id: int,
        amount: float,
        note: str | None,
        created_at: str,
    ) -> int:
        cur = self.conn.execute(
            """
            INSERT INTO customer_credits(customer_id, rental_id, amount, note, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (customer_id, rental_id, float(amount), note, created_at),
        )
        return int(cur.lastrowid)

    def remove_credits_for_rental(self, customer_id: int, rental_id: int) -> float:
        """Delete every credit entry of `customer_id` for `rental_id`; returns the amount removed."""
        row = self.conn.execute(
            """
            SELECT CAST(COALESCE(SUM(amount), 0) AS REAL) AS total
              FROM customer_credits
             WHERE customer_id = ? AND rental_id = ?
            """,
            (customer_id, rental_id),
        ).fetchone()
        self.conn.execute(
            "DELETE FROM customer_credits WHERE customer_id = ? AND rental_id = ?",
            (customer_id, rental_id),
        )
        return float(row["total"])

    def clear_credits(self, customer_id: int) -> float:
        total = self.total_credit(customer_id)
        self.conn.execute("DELETE FROM customer_credits WHERE customer_id = ?", (customer_id,))
        return total
