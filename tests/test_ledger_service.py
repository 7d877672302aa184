# tests/test_ledger_service.py
from datetime import date, timedelta

import pytest

from tool_rental.constants import (
    CATEGORY_INTERNAL_TRANSFER,
    CATEGORY_MANUAL_CREDIT,
    CATEGORY_OPENING_BALANCE,
    KIND_CREDIT,
    KIND_DEBIT,
)
from tool_rental.database.repositories import (
    ConflictError,
    LedgerRepo,
    NotFoundError,
    ValidationError,
)

D = "2025-11-15"
D1 = "2025-11-16"
D2 = "2025-11-17"


def test_ensure_day_is_idempotent(ledger, count):
    first = ledger.ensure_day(D)
    second = ledger.ensure_day(date(2025, 11, 15))
    assert first == second
    assert count("ledger_days") == 1
    assert first.is_closed is False


def test_missing_day_reads_as_empty_open_day(ledger, count):
    view = ledger.get_day(D)
    assert view["exists"] is False
    assert view["entries"] == []
    assert view["day"].is_closed is False
    assert view["balances"] == {"Cash": 0.0, "UPI": 0.0, "total": 0.0}
    assert count("ledger_days") == 0


def test_balances_net_each_payment_method(ledger):
    ledger.add_credit(100, "Cash")
    ledger.add_credit(50, "UPI")
    ledger.add_debit(30, "Tea & Snacks", "Cash")
    assert ledger.balances() == {"Cash": 70.0, "UPI": 50.0, "total": 120.0}

    entries = ledger.get_day()["entries"]
    assert [e.kind for e in entries] == [KIND_CREDIT, KIND_CREDIT, KIND_DEBIT]
    assert entries[0].category == CATEGORY_MANUAL_CREDIT
    assert entries[2].description == "Tea & Snacks expense"


def test_debit_cannot_overdraw_its_method(ledger):
    ledger.add_credit(100, "Cash")
    ledger.add_credit(500, "UPI")
    before = ledger.balances()

    with pytest.raises(ConflictError, match="Insufficient Cash balance. Available: ₹100.00"):
        ledger.add_debit(100.01, "Stationary", "Cash")

    assert ledger.balances() == before
    ledger.add_debit(100, "Stationary", "Cash")
    assert ledger.balances()["Cash"] == 0


@pytest.mark.parametrize(
    "amount, category, method",
    [
        (0, "Stationary", "Cash"),
        (-5, "Stationary", "Cash"),
        ("abc", "Stationary", "Cash"),
        (float("inf"), "Stationary", "Cash"),
        (float("nan"), "Stationary", "Cash"),
        (10, "", "Cash"),
        (10, "Groceries", "Cash"),
        (10, "Stationary", "Card"),
    ],
)
def test_debit_validation(ledger, count, amount, category, method):
    ledger.add_credit(100, "Cash")
    with pytest.raises(ValidationError):
        ledger.add_debit(amount, category, method)
    assert count("ledger_entries") == 1


def test_transfer_moves_money_between_methods(ledger):
    ledger.add_credit(100, "Cash")
    debit_id, credit_id = ledger.transfer(40, "Cash", "UPI")

    assert ledger.balances() == {"Cash": 60.0, "UPI": 40.0, "total": 100.0}
    entries = {e.entry_id: e for e in ledger.get_day()["entries"]}
    assert entries[debit_id].kind == KIND_DEBIT
    assert entries[credit_id].kind == KIND_CREDIT
    assert entries[debit_id].category == entries[credit_id].category == CATEGORY_INTERNAL_TRANSFER


def test_transfer_rules(ledger):
    ledger.add_credit(10, "UPI")
    with pytest.raises(ValidationError):
        ledger.transfer(5, "UPI", "UPI")
    with pytest.raises(ValidationError):
        ledger.transfer(5, "UPI", "Card")
    with pytest.raises(ConflictError):
        ledger.transfer(11, "UPI", "Cash")
    assert ledger.balances() == {"Cash": 0.0, "UPI": 10.0, "total": 10.0}


def test_close_day_freezes_balances(ledger):
    ledger.add_credit(100, "Cash")
    ledger.add_credit(50, "UPI")
    closed = ledger.close_day()
    assert closed.is_closed is True
    assert (closed.closing_cash, closed.closing_upi, closed.closing_total) == (100.0, 50.0, 150.0)
    assert closed.closed_at == ledger.now()

    with pytest.raises(ConflictError, match="Day already closed"):
        ledger.close_day()


def test_close_day_without_record(ledger):
    with pytest.raises(NotFoundError):
        ledger.close_day(D)


def test_closed_day_rejects_entries_until_undone(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.close_day()

    with pytest.raises(ConflictError, match="Day is closed"):
        ledger.add_debit(10, "Stationary", "Cash")
    with pytest.raises(ConflictError, match="Day is closed"):
        ledger.add_credit(10, "Cash")
    with pytest.raises(ConflictError, match="Day is closed"):
        ledger.transfer(10, "Cash", "UPI")

    clock.advance(minutes=10)
    reopened = ledger.undo_close()
    assert reopened.is_closed is False
    assert reopened.closed_at is None
    ledger.add_debit(10, "Stationary", "Cash")
    assert ledger.balances()["Cash"] == 90


def test_closed_day_guarded_at_storage_level(conn, ledger):
    ledger.add_credit(100, "Cash")
    ledger.close_day()
    repo = LedgerRepo(conn)
    with pytest.raises(ConflictError):
        with conn:
            repo.insert_entry(
                day_key=D,
                amount=5,
                kind=KIND_CREDIT,
                payment_method="Cash",
                description="sneaky",
                created_at="2025-11-15T11:00:00",
            )


def test_undo_window(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.close_day()

    clock.advance(minutes=15)
    assert ledger.undo_window_remaining() == pytest.approx(30.0)

    clock.advance(minutes=31)
    assert ledger.undo_window_remaining() == 0
    with pytest.raises(ConflictError, match="45 minutes"):
        ledger.undo_close()
    assert ledger.get_day()["day"].is_closed is True


def test_undo_close_takes_explicit_now(ledger, clock):
    ledger.add_credit(100, "Cash")
    closed = ledger.close_day()

    with pytest.raises(ConflictError):
        ledger.undo_close(D, now=closed.closed_at + timedelta(minutes=46))
    assert ledger.undo_close(D, now=closed.closed_at + timedelta(minutes=44)).is_closed is False


def test_undo_requires_closed_day(ledger):
    ledger.add_credit(100, "Cash")
    with pytest.raises(ConflictError, match="not closed"):
        ledger.undo_close()
    with pytest.raises(NotFoundError):
        ledger.undo_close(D2)


def test_opening_balance_round_trip(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.add_credit(50, "UPI")
    ledger.close_day(D)
    clock.advance(days=1)

    day = ledger.set_opening_balance(D1)

    assert day.opening_total == 150
    assert (day.opening_cash, day.opening_upi) == (100.0, 50.0)
    assert day.opening_carried_from == D
    entries = ledger.get_day(D1)["entries"]
    assert [(e.kind, e.payment_method, e.amount, e.category) for e in entries] == [
        (KIND_CREDIT, "Cash", 100.0, CATEGORY_OPENING_BALANCE),
        (KIND_CREDIT, "UPI", 50.0, CATEGORY_OPENING_BALANCE),
    ]
    assert ledger.balances(D1)["total"] == 150

    with pytest.raises(ConflictError, match="already set"):
        ledger.set_opening_balance(D1)


def test_opening_balance_skips_unclosed_days(ledger, clock):
    ledger.add_credit(80, "UPI")
    ledger.close_day(D)
    clock.advance(days=1)
    ledger.add_credit(5, "Cash")  # D1 stays open
    clock.advance(days=1)

    day = ledger.set_opening_balance(D2)
    assert day.opening_carried_from == D
    entries = ledger.get_day(D2)["entries"]
    # zero Cash is not carried
    assert [(e.payment_method, e.amount) for e in entries] == [("UPI", 80.0)]


def test_opening_balance_needs_a_positive_closed_day(ledger):
    with pytest.raises(ConflictError, match="No previous closing balance"):
        ledger.set_opening_balance(D1)

    ledger.add_credit(10, "Cash")
    ledger.add_debit(10, "Miscellaneous", "Cash")
    ledger.close_day(D)
    with pytest.raises(ConflictError, match="zero"):
        ledger.set_opening_balance(D1)


def test_undo_blocked_once_balance_carried_forward(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.close_day(D)
    ledger.set_opening_balance(D1)
    clock.advance(minutes=5)

    with pytest.raises(ConflictError, match=f"carried into {D1}"):
        ledger.undo_close(D)
    assert ledger.get_day(D)["day"].is_closed is True


def test_undo_allowed_when_later_day_did_not_carry(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.close_day(D)
    ledger.add_credit(20, "Cash", date=D1)
    clock.advance(minutes=5)

    assert ledger.undo_close(D).is_closed is False


def test_undo_blocked_by_carry_past_an_open_day(ledger, clock):
    ledger.add_credit(100, "Cash")
    ledger.close_day(D)
    ledger.ensure_day(D1)  # left open
    assert ledger.set_opening_balance(D2).opening_carried_from == D
    clock.advance(minutes=5)

    with pytest.raises(ConflictError, match=f"carried into {D2}"):
        ledger.undo_close(D)
    assert ledger.get_day(D)["day"].is_closed is True


@pytest.mark.parametrize(
    "later, blocked",
    [
        ("2026-11-15", True),  # 365 days on
        ("2026-11-16", False),
    ],
)
def test_undo_carry_check_covers_one_year(ledger, later, blocked):
    ledger.add_credit(100, "Cash")
    ledger.close_day(D)
    assert ledger.set_opening_balance(later).opening_carried_from == D

    if blocked:
        with pytest.raises(ConflictError, match=f"carried into {later}"):
            ledger.undo_close(D)
    else:
        assert ledger.undo_close(D).is_closed is False


def test_credit_rejects_non_finite_amounts(ledger, count):
    for amount in (float("inf"), float("-inf"), "inf", float("nan")):
        with pytest.raises(ValidationError):
            ledger.add_credit(amount, "Cash")
    assert count("ledger_entries") == 0


def test_bad_date_is_a_validation_error(ledger):
    with pytest.raises(ValidationError):
        ledger.get_day("15th of November")
