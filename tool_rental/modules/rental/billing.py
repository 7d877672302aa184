"""
rental/billing.py

Pure helpers for rental charges. Used by RentalBillingService after every
mutation and by the track/list views for live projections.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs to the caller.

Charging rules:
  - Power tools are charged per calendar day, counted inclusively: a same-day
    return is 1 day, a return the next day is 2 days.
  - Accessories are sold, charged once at count * unit price.
  - Units still out are charged up to "now"; returned units are frozen at the
    date of their return event.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, Union

from ...constants import (
    CATEGORY_ACCESSORY,
    STATUS_PARTIAL_RETURN,
    STATUS_RENTED,
    STATUS_RETURN_COMPLETED,
)

__all__ = [
    "calculate_calendar_days",
    "line_charge",
    "item_amount",
    "compute_total_amount",
    "derive_status",
    "remaining_amount",
]

_ONE_DAY = timedelta(days=1)


def _midnight(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def calculate_calendar_days(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """
    Calendar days between `start` and `end`, both counted. Never less than 1.
    """
    elapsed = _midnight(end) - _midnight(start)
    days = math.ceil(elapsed / _ONE_DAY) + 1
    return max(1, days)


def line_charge(
    count: int,
    unit_price: float,
    category: str,
    start: Union[date, datetime],
    end: Union[date, datetime],
) -> float:
    """Charge for `count` units of one line item held from `start` to `end`."""
    if category == CATEGORY_ACCESSORY:
        return count * unit_price
    return count * unit_price * calculate_calendar_days(start, end)


def item_amount(item, now: datetime) -> float:
    """
    Current value of one line item: unreturned units charged to `now` plus every
    return event charged to its own date.
    """
    total = 0.0
    unreturned = item.ordered_count - item.returned_count
    if unreturned > 0:
        total += line_charge(unreturned, item.unit_price, item.category, item.rental_date, now)
    for ev in item.return_events:
        total += line_charge(ev.count, item.unit_price, item.category, item.rental_date, ev.date)
    return total


def compute_total_amount(
    items: Iterable,
    *,
    total_discount: float,
    total_credit: float,
    now: datetime,
) -> float:
    """Sum of item amounts less every discount and credit recorded on the rental."""
    gross = sum(item_amount(it, now) for it in items)
    return gross - (total_discount + total_credit)


def derive_status(items: Iterable) -> str:
    """
    'return completed' once every power-tool line is fully back,
    'partial return' if any power-tool unit came back, else 'rented'.
    """
    items = list(items)
    all_returned = all(
        it.category == CATEGORY_ACCESSORY or it.returned_count == it.ordered_count
        for it in items
    )
    if all_returned:
        return STATUS_RETURN_COMPLETED
    some_returned = any(
        it.category != CATEGORY_ACCESSORY and it.returned_count > 0 for it in items
    )
    return STATUS_PARTIAL_RETURN if some_returned else STATUS_RENTED


def remaining_amount(items: Iterable, now: datetime) -> float:
    """Live charge on power-tool units still out, as of `now`. Not persisted."""
    total = 0.0
    for it in items:
        if it.category == CATEGORY_ACCESSORY:
            continue
        unreturned = it.ordered_count - it.returned_count
        if unreturned > 0:
            total += unreturned * it.unit_price * calculate_calendar_days(it.rental_date, now)
    return total
