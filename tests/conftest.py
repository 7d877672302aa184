# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp fixture), offscreen platform
# - Every test gets its own SQLite file under tmp_path
# - Services share one connection and one fixed, advanceable clock
# - Provide handy ids for a seeded customer and three tools
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from tool_rental.constants import CATEGORY_ACCESSORY, CATEGORY_POWER_TOOL  # noqa: E402
from tool_rental.database import get_connection  # noqa: E402
from tool_rental.database.repositories import CustomersRepo, ToolsRepo  # noqa: E402
from tool_rental.modules.customer.credits import CreditRepaymentService  # noqa: E402
from tool_rental.modules.ledger.service import DailyLedgerService  # noqa: E402
from tool_rental.modules.rental.service import RentalBillingService  # noqa: E402

START = datetime(2025, 11, 15, 10, 0, 0)


class FakeClock:
    """Callable clock; tests move it forward explicitly."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):
    return qapp


# ---------- Per-test database ----------
@pytest.fixture()
def conn(tmp_path) -> sqlite3.Connection:
    con = get_connection(tmp_path / "toolrental.db")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def ledger(conn, clock) -> DailyLedgerService:
    return DailyLedgerService(conn, clock=clock)


@pytest.fixture()
def billing(conn, ledger) -> RentalBillingService:
    return RentalBillingService(conn, ledger=ledger)


@pytest.fixture()
def credits(conn, ledger) -> CreditRepaymentService:
    return CreditRepaymentService(conn, ledger=ledger)


# ---------- Seed ----------
@pytest.fixture()
def ids(conn) -> dict:
    """
    One customer and three tools:
      drill  Power Tools  100/day  5 in stock
      saw    Power Tools   50/day  2 in stock
      bits   Accessories   20 each
    """
    customers = CustomersRepo(conn)
    tools = ToolsRepo(conn)
    return {
        "customer": customers.create("Ravi Kumar", "9876543210", "12 MG Road"),
        "other_customer": customers.create("Anita Shah", "9123456780"),
        "drill": tools.create("Hammer Drill", 100, category=CATEGORY_POWER_TOOL, available_count=5),
        "saw": tools.create("Circular Saw", 50, category=CATEGORY_POWER_TOOL, available_count=2),
        "bits": tools.create("Drill Bit Set", 20, category=CATEGORY_ACCESSORY),
    }


@pytest.fixture()
def count(conn):
    """Row count of a table."""
    def _count(table: str) -> int:
        return int(conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
    return _count
