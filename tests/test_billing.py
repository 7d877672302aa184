# tests/test_billing.py
from datetime import date, datetime

import pytest

from tool_rental.constants import (
    CATEGORY_ACCESSORY,
    CATEGORY_POWER_TOOL,
    STATUS_PARTIAL_RETURN,
    STATUS_RENTED,
    STATUS_RETURN_COMPLETED,
)
from tool_rental.database.repositories.rentals_repo import RentalItem, ReturnEvent
from tool_rental.modules.rental.billing import (
    calculate_calendar_days,
    compute_total_amount,
    derive_status,
    item_amount,
    line_charge,
    remaining_amount,
)

T0 = datetime(2025, 11, 15, 10, 0)


def _item(category=CATEGORY_POWER_TOOL, ordered=2, returned=0, price=100.0, events=()):
    return RentalItem(
        item_id=1,
        tool_id=1,
        tool_name="Hammer Drill",
        category=category,
        unit_price=price,
        ordered_count=ordered,
        returned_count=returned,
        rental_date=T0,
        return_events=list(events),
    )


@pytest.mark.parametrize(
    "start, end, expected",
    [
        (date(2025, 11, 15), date(2025, 11, 15), 1),
        (date(2025, 11, 15), date(2025, 11, 16), 2),
        (datetime(2025, 11, 15, 23, 59), datetime(2025, 11, 16, 0, 1), 2),
        (datetime(2025, 11, 15, 0, 1), datetime(2025, 11, 15, 23, 59), 1),
        (date(2025, 11, 15), date(2025, 11, 17), 3),
        (date(2025, 11, 28), date(2025, 12, 2), 5),
        (date(2025, 11, 16), date(2025, 11, 15), 1),
    ],
)
def test_calendar_days_counts_both_ends(start, end, expected):
    assert calculate_calendar_days(start, end) == expected


def test_accessory_charged_once():
    end = datetime(2025, 11, 20)
    assert line_charge(3, 20.0, CATEGORY_ACCESSORY, T0, end) == 60.0
    assert line_charge(3, 20.0, CATEGORY_POWER_TOOL, T0, end) == 3 * 20.0 * 6


def test_item_amount_freezes_returned_units_at_event_date():
    ev = ReturnEvent(event_id=1, count=1, date=datetime(2025, 11, 16, 9, 0))
    item = _item(ordered=2, returned=1, events=[ev])
    now = datetime(2025, 11, 18, 12, 0)
    # one unit out for 4 days, one returned after 2 days
    assert item_amount(item, now) == 100 * 4 + 100 * 2


def test_compute_total_subtracts_discount_and_credit():
    items = [_item(ordered=2), _item(category=CATEGORY_ACCESSORY, ordered=1, price=20.0)]
    total = compute_total_amount(items, total_discount=30.0, total_credit=10.0, now=T0)
    assert total == 2 * 100 + 20 - 40


def test_derive_status():
    assert derive_status([_item(ordered=2, returned=0)]) == STATUS_RENTED
    assert derive_status([_item(ordered=2, returned=1)]) == STATUS_PARTIAL_RETURN
    assert derive_status([_item(ordered=2, returned=2)]) == STATUS_RETURN_COMPLETED
    mixed = [_item(ordered=1, returned=1), _item(ordered=1, returned=0)]
    assert derive_status(mixed) == STATUS_PARTIAL_RETURN


def test_accessories_do_not_hold_status_open():
    only_accessories = [_item(category=CATEGORY_ACCESSORY, ordered=3)]
    assert derive_status(only_accessories) == STATUS_RETURN_COMPLETED
    with_tool = [_item(category=CATEGORY_ACCESSORY, ordered=3), _item(ordered=1, returned=1)]
    assert derive_status(with_tool) == STATUS_RETURN_COMPLETED


def test_remaining_amount_ignores_accessories_and_returned_units():
    items = [
        _item(ordered=2, returned=1),
        _item(category=CATEGORY_ACCESSORY, ordered=5, price=20.0),
    ]
    now = datetime(2025, 11, 16, 8, 0)
    assert remaining_amount(items, now) == 1 * 100 * 2
