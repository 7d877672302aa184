from pathlib import Path
import sqlite3
import sys

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== PARTIES ======================== */

CREATE TABLE IF NOT EXISTS customers (
    customer_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    phone       TEXT NOT NULL,
    address     TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS customer_order_history (
    customer_id INTEGER NOT NULL,
    rental_id   INTEGER NOT NULL,
    added_at    TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (customer_id, rental_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id) ON DELETE CASCADE,
    FOREIGN KEY (rental_id)   REFERENCES rentals(rental_id)
);

/* money the customer still owes the shop, per rental */
CREATE TABLE IF NOT EXISTS customer_credits (
    credit_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL,
    rental_id   INTEGER NOT NULL,
    amount      NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    note        TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id) ON DELETE CASCADE,
    FOREIGN KEY (rental_id)   REFERENCES rentals(rental_id)
);
CREATE INDEX IF NOT EXISTS idx_customer_credits_customer ON customer_credits(customer_id);

CREATE VIEW IF NOT EXISTS v_customer_credit_balance AS
SELECT c.customer_id,
       CAST(COALESCE(SUM(cc.amount), 0) AS REAL) AS total_credit
  FROM customers c
  LEFT JOIN customer_credits cc ON cc.customer_id = c.customer_id
 GROUP BY c.customer_id;

/* ======================== INVENTORY ======================== */

CREATE TABLE IF NOT EXISTS tools (
    tool_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT UNIQUE NOT NULL,
    category        TEXT NOT NULL DEFAULT 'Power Tools'
                    CHECK (category IN ('Power Tools','Accessories')),
    price           NUMERIC NOT NULL CHECK (CAST(price AS REAL) >= 0),
    available_count INTEGER NOT NULL DEFAULT 0 CHECK (available_count >= 0),
    created_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

/* ======================== RENTALS ======================== */

CREATE TABLE IF NOT EXISTS rentals (
    rental_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id    INTEGER NOT NULL,
    initial_amount NUMERIC NOT NULL CHECK (CAST(initial_amount AS REAL) >= 0),
    total_amount   NUMERIC NOT NULL,
    status         TEXT NOT NULL DEFAULT 'rented'
                   CHECK (status IN ('rented','partial return','return completed')),
    created_at     TEXT NOT NULL,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_rentals_customer ON rentals(customer_id);

CREATE TABLE IF NOT EXISTS rental_items (
    item_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    rental_id      INTEGER NOT NULL,
    tool_id        INTEGER NOT NULL,
    category       TEXT NOT NULL CHECK (category IN ('Power Tools','Accessories')),
    unit_price     NUMERIC NOT NULL CHECK (CAST(unit_price AS REAL) >= 0),
    ordered_count  INTEGER NOT NULL CHECK (ordered_count >= 1),
    returned_count INTEGER NOT NULL DEFAULT 0 CHECK (returned_count >= 0),
    rental_date    TEXT NOT NULL,
    CHECK (returned_count <= ordered_count),
    CHECK (category <> 'Accessories' OR returned_count = 0),
    FOREIGN KEY (rental_id) REFERENCES rentals(rental_id) ON DELETE CASCADE,
    FOREIGN KEY (tool_id)   REFERENCES tools(tool_id)
);
CREATE INDEX IF NOT EXISTS idx_rental_items_rental ON rental_items(rental_id);

CREATE TABLE IF NOT EXISTS rental_return_events (
    event_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     INTEGER NOT NULL,
    count       INTEGER NOT NULL CHECK (count >= 1),
    return_date TEXT NOT NULL,
    FOREIGN KEY (item_id) REFERENCES rental_items(item_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_return_events_item ON rental_return_events(item_id);

/* discounts and credits granted against a rental; tool_id NULL = whole rental */
CREATE TABLE IF NOT EXISTS rental_adjustments (
    adjustment_id INTEGER PRIMARY KEY AUTOINCREMENT,
    rental_id     INTEGER NOT NULL,
    kind          TEXT NOT NULL CHECK (kind IN ('discount','credit')),
    tool_id       INTEGER,
    amount        NUMERIC NOT NULL CHECK (CAST(amount AS REAL) >= 0),
    event_date    TEXT NOT NULL,
    note          TEXT,
    created_at    TEXT NOT NULL,
    FOREIGN KEY (rental_id) REFERENCES rentals(rental_id) ON DELETE CASCADE,
    FOREIGN KEY (tool_id)   REFERENCES tools(tool_id)
);
CREATE INDEX IF NOT EXISTS idx_rental_adjustments_rental ON rental_adjustments(rental_id);

/* audit trail: append-only */
CREATE TABLE IF NOT EXISTS rental_notes (
    note_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    rental_id  INTEGER NOT NULL,
    text       TEXT NOT NULL CHECK (length(trim(text)) > 0),
    created_at TEXT NOT NULL,
    FOREIGN KEY (rental_id) REFERENCES rentals(rental_id) ON DELETE CASCADE
);

CREATE TRIGGER IF NOT EXISTS trg_rental_notes_no_update
BEFORE UPDATE ON rental_notes
BEGIN
  SELECT RAISE(ABORT, 'Rental notes are append-only');
END;

CREATE TRIGGER IF NOT EXISTS trg_rental_notes_no_delete
BEFORE DELETE ON rental_notes
BEGIN
  SELECT RAISE(ABORT, 'Rental notes are append-only');
END;

/* ======================== DAILY LEDGER ======================== */

CREATE TABLE IF NOT EXISTS ledger_days (
    day_key              TEXT PRIMARY KEY,          /* YYYY-MM-DD */
    is_closed            INTEGER NOT NULL DEFAULT 0 CHECK (is_closed IN (0,1)),
    closed_at            TEXT,
    closing_cash         NUMERIC NOT NULL DEFAULT 0,
    closing_upi          NUMERIC NOT NULL DEFAULT 0,
    closing_total        NUMERIC NOT NULL DEFAULT 0,
    opening_cash         NUMERIC NOT NULL DEFAULT 0,
    opening_upi          NUMERIC NOT NULL DEFAULT 0,
    opening_total        NUMERIC NOT NULL DEFAULT 0,
    opening_carried_from TEXT,
    created_at           TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS ledger_entries (
    entry_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    day_key        TEXT NOT NULL,
    rental_id      INTEGER,
    customer_id    INTEGER,
    amount         NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    kind           TEXT NOT NULL
                   CHECK (kind IN ('return','credit_repayment','accessory_purchase','debit','credit')),
    payment_method TEXT NOT NULL CHECK (payment_method IN ('Cash','UPI')),
    category       TEXT,
    description    TEXT NOT NULL,
    notes          TEXT NOT NULL DEFAULT '',
    created_at     TEXT NOT NULL,
    CHECK (kind <> 'debit' OR category IS NOT NULL),
    FOREIGN KEY (day_key)     REFERENCES ledger_days(day_key),
    FOREIGN KEY (rental_id)   REFERENCES rentals(rental_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_ledger_entries_day ON ledger_entries(day_key);

/* a closed day accepts no new entries */
CREATE TRIGGER IF NOT EXISTS trg_ledger_entries_day_open
BEFORE INSERT ON ledger_entries
WHEN (SELECT is_closed FROM ledger_days WHERE day_key = NEW.day_key) = 1
BEGIN
  SELECT RAISE(ABORT, 'Day is closed');
END;

/* money movements emitted by the billing engine, posted to the ledger in a second step */
CREATE TABLE IF NOT EXISTS ledger_intents (
    intent_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    rental_id      INTEGER,
    customer_id    INTEGER,
    day_key        TEXT NOT NULL,
    kind           TEXT NOT NULL
                   CHECK (kind IN ('return','credit_repayment','accessory_purchase')),
    payment_method TEXT NOT NULL CHECK (payment_method IN ('Cash','UPI')),
    amount         NUMERIC NOT NULL CHECK (CAST(amount AS REAL) > 0),
    description    TEXT NOT NULL,
    notes          TEXT NOT NULL DEFAULT '',
    status         TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','posted')),
    entry_id       INTEGER,
    created_at     TEXT NOT NULL,
    posted_at      TEXT,
    FOREIGN KEY (rental_id)   REFERENCES rentals(rental_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id),
    FOREIGN KEY (entry_id)    REFERENCES ledger_entries(entry_id)
);
CREATE INDEX IF NOT EXISTS idx_ledger_intents_status ON ledger_intents(status);
"""


def init_schema(db_path: Path | str = "toolrental.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        # Apply (idempotent) schema
        conn.executescript(SQL)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path.cwd() / "data" / "toolrental.db"
    init_schema(target)
    print(f"✓ DB applied to {target}")
