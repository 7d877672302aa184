# tests/test_repositories.py
import pytest

from tool_rental.constants import CATEGORY_ACCESSORY
from tool_rental.database.repositories import (
    ConflictError,
    CustomersRepo,
    NotFoundError,
    ToolsRepo,
    ValidationError,
)


def test_customer_create_trims_and_validates(conn):
    repo = CustomersRepo(conn)
    cid = repo.create("  Meena  ", " 9000000001 ")
    c = repo.get(cid)
    assert (c.name, c.phone, c.address, c.total_credit) == ("Meena", "9000000001", None, 0.0)

    with pytest.raises(ValidationError):
        repo.create("  ", "9000000002")
    with pytest.raises(ValidationError):
        repo.create("Someone", "")
    assert repo.get(9999) is None


def test_customer_credit_ledger(conn, billing, ids):
    repo = CustomersRepo(conn)
    r1 = billing.create_rental(ids["customer"], [{"tool_id": ids["drill"], "count": 1}])["rental"].rental_id
    r2 = billing.create_rental(ids["customer"], [{"tool_id": ids["drill"], "count": 1}])["rental"].rental_id
    with conn:
        for rid, amount in ((r1, 10.0), (r1, 5.0), (r2, 7.5)):
            repo.append_credit(
                customer_id=ids["customer"], rental_id=rid, amount=amount,
                note=None, created_at="2025-11-15T10:00:00",
            )
    assert repo.total_credit(ids["customer"]) == 22.5

    with conn:
        assert repo.remove_credits_for_rental(ids["customer"], r1) == 15.0
    assert repo.get(ids["customer"]).total_credit == 7.5

    with conn:
        assert repo.clear_credits(ids["customer"]) == 7.5
    assert repo.list_credits(ids["customer"]) == []
    assert repo.order_history(ids["customer"]) == [r1, r2]


def test_tool_create_and_stock_moves(conn, ids):
    repo = ToolsRepo(conn)
    assert repo.get(ids["bits"]).is_accessory
    assert [t.name for t in repo.list_tools()] == ["Circular Saw", "Drill Bit Set", "Hammer Drill"]

    with pytest.raises(ValidationError):
        repo.create("Sander", 10, category="Consumables")
    with pytest.raises(ValidationError):
        repo.create("Sander", -1)

    with conn:
        assert repo.adjust_available_count(ids["saw"], -2) == 0
    with pytest.raises(ConflictError, match="Available: 0"):
        with conn:
            repo.adjust_available_count(ids["saw"], -1)
    with pytest.raises(NotFoundError):
        with conn:
            repo.adjust_available_count(9999, 1)
    assert repo.get(ids["saw"]).available_count == 0


def test_accessory_tool_defaults_to_no_stock(conn):
    tid = ToolsRepo(conn).create("Sanding Discs", 15, category=CATEGORY_ACCESSORY)
    assert ToolsRepo(conn).get(tid).available_count == 0
