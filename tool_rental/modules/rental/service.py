"""
rental/service.py

Rental lifecycle on top of the repositories: create, single-item return,
return-everything, track and list.

Each mutation runs in one SQLite transaction covering the rental, its line
items, tool stock, customer records and (when money changes hands) a pending
ledger intent. The intent is posted to the daily ledger right after commit;
if that fails it stays pending for DailyLedgerService.reconcile_intents().
"""
from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from ...constants import (
    KIND_ACCESSORY_PURCHASE,
    KIND_RETURN,
    RENTAL_STATUSES,
)
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from ...database.repositories.ledger_intents_repo import LedgerIntentsRepo
from ...database.repositories.rentals_repo import Rental, RentalItem, RentalsRepo
from ...database.repositories.tools_repo import Tool, ToolsRepo
from ...utils.helpers import DateLike, day_key, fmt_day, fmt_rupees, to_datetime
from ...utils.loggers import get_logger
from ...utils.validators import (
    non_empty,
    require_count,
    require_non_negative_amount,
    require_payment_method,
)
from ..ledger.service import DailyLedgerService
from .billing import compute_total_amount, derive_status, line_charge, remaining_amount

_EPS = 1e-9


class RentalBillingService:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        ledger: DailyLedgerService | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.conn = conn
        self._clock = clock or (ledger.now if ledger else datetime.now)
        self.ledger = ledger or DailyLedgerService(conn, clock=self._clock)
        self.rentals = RentalsRepo(conn)
        self.customers = CustomersRepo(conn)
        self.tools = ToolsRepo(conn)
        self.intents = LedgerIntentsRepo(conn)
        self._log = logger or get_logger("tool_rental.rentals")

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _return_moment(self, return_date: DateLike, now: datetime) -> datetime:
        try:
            moment = to_datetime(return_date, default=now)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if moment > now:
            raise ValidationError("Valid return date is required and cannot be in the future.")
        return moment

    def _load(self, rental_id: int) -> Rental:
        rental = self.rentals.load(rental_id)
        if rental is None:
            raise NotFoundError("Rental not found")
        return rental

    def _refresh_totals(self, rental_id: int, now: datetime) -> Tuple[float, str]:
        """Recompute total_amount and status from the stored line items and persist them."""
        rental = self._load(rental_id)
        total = compute_total_amount(
            rental.items,
            total_discount=rental.total_discount,
            total_credit=rental.total_credit,
            now=now,
        )
        status = derive_status(rental.items)
        self.rentals.update_totals(rental_id, total_amount=total, status=status)
        return total, status

    def _require_day_open(self, key: str, action: str) -> None:
        if self.ledger.is_closed(key):
            raise ConflictError(f"Day {key} is closed. Cannot {action}.")

    def _restock(self, tool_id: int, count: int) -> None:
        tool = self.tools.get(tool_id)
        if tool is not None and not tool.is_accessory:
            self.tools.adjust_available_count(tool_id, count)

    @staticmethod
    def _adjustment_suffix(discount: float, credit: float, note: str) -> str:
        parts = []
        if discount > 0:
            parts.append(f"Discount: {fmt_rupees(discount)}")
        if credit > 0:
            parts.append(f"Credit: {fmt_rupees(credit)}")
        if note:
            parts.append(f"Note: {note}")
        return (", " + ", ".join(parts)) if parts else ""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_rental(self, rental_id: int) -> dict:
        """
        Rental aggregate plus live projections. remaining_amount is what the
        units still out would cost if returned now; it is never stored.
        """
        with storage_errors("load the rental"):
            rental = self._load(rental_id)
        return {
            "rental": rental,
            "remaining_amount": remaining_amount(rental.items, self.now()),
            "total_discount": rental.total_discount,
            "total_credit": rental.total_credit,
        }

    def list_rentals(
        self,
        search: str = "",
        status: str = "",
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        if not isinstance(page, int) or isinstance(page, bool) or page < 1:
            raise ValidationError("Page must be a whole number >= 1.")
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise ValidationError("Limit must be a whole number >= 1.")
        if status and status not in RENTAL_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(RENTAL_STATUSES)}")
        search = (search or "").strip()

        with storage_errors("list rentals"):
            total = self.rentals.count_rentals(search, status)
            rows = self.rentals.search_rentals(
                search, status, limit=limit, offset=(page - 1) * limit
            )
        total_pages = math.ceil(total / limit) if total else 0
        return {
            "data": rows,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_rentals": total,
                "has_more": page < total_pages,
            },
        }

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_lines(tools) -> List[Tuple[int, int]]:
        if not isinstance(tools, (list, tuple)) or not tools:
            raise ValidationError("Tools list is required and must not be empty.")
        lines = []
        for entry in tools:
            if not isinstance(entry, dict) or entry.get("tool_id") is None:
                raise ValidationError("Each tool must have a valid ID and count >= 1.")
            tool_id = entry["tool_id"]
            if isinstance(tool_id, bool) or not isinstance(tool_id, int):
                raise ValidationError("Each tool must have a valid ID and count >= 1.")
            lines.append((tool_id, require_count(entry.get("count"))))
        return lines

    @staticmethod
    def _parse_notes(notes: Optional[Iterable]) -> List[str]:
        texts = []
        for n in notes or []:
            text = n.get("text") if isinstance(n, dict) else n
            if not isinstance(text, str) or not non_empty(text):
                raise ValidationError("Each note must have a valid non-empty text.")
            texts.append(text.strip())
        return texts

    def create_rental(
        self,
        customer_id: int,
        tools,
        *,
        notes: Optional[Iterable] = None,
        accessory_payment_method: str | None = None,
    ) -> dict:
        """
        Open a rental for `customer_id`.

        `tools` is a list of {"tool_id", "count"}. Power tools are taken out of
        stock; accessories are sold outright and need `accessory_payment_method`
        so the sale can be posted to today's ledger.
        """
        requested = self._parse_lines(tools)
        texts = self._parse_notes(notes)
        now = self.now()
        stamp = now.isoformat(timespec="seconds")
        today = day_key(now)
        intent_id = None

        with storage_errors("create the rental"):
            with self.conn:
                customer = self.customers.get(customer_id)
                if customer is None:
                    raise NotFoundError("Customer not found")

                picked: List[Tuple[Tool, int]] = []
                for tool_id, count in requested:
                    tool = self.tools.get(tool_id)
                    if tool is None:
                        raise NotFoundError(f"Tool with ID {tool_id} not found")
                    picked.append((tool, count))

                accessory_total = sum(t.price * c for t, c in picked if t.is_accessory)
                has_accessories = any(t.is_accessory for t, _ in picked)
                if has_accessories:
                    require_payment_method(
                        accessory_payment_method, "Accessory payment method"
                    )
                    self._require_day_open(today, "record the accessory sale")

                for tool, count in picked:
                    if not tool.is_accessory:
                        self.tools.adjust_available_count(tool.tool_id, -count)

                items = [
                    RentalItem(
                        item_id=None,
                        tool_id=t.tool_id,
                        tool_name=t.name,
                        category=t.category,
                        unit_price=float(t.price),
                        ordered_count=c,
                        returned_count=0,
                        rental_date=now,
                    )
                    for t, c in picked
                ]
                initial = sum(it.unit_price * it.ordered_count for it in items)
                total = compute_total_amount(items, total_discount=0.0, total_credit=0.0, now=now)
                status = derive_status(items)

                rental_id = self.rentals.insert_rental(
                    customer_id=customer_id,
                    initial_amount=initial,
                    total_amount=total,
                    status=status,
                    created_at=stamp,
                )
                for it in items:
                    it.item_id = self.rentals.insert_item(
                        rental_id=rental_id,
                        tool_id=it.tool_id,
                        category=it.category,
                        unit_price=it.unit_price,
                        ordered_count=it.ordered_count,
                        rental_date=stamp,
                    )

                details = ", ".join(
                    f"{it.tool_name} (Count: {it.ordered_count}, Price: {fmt_rupees(it.unit_price)})"
                    for it in items
                )
                self.rentals.add_note(
                    rental_id,
                    f"Rental created for customer {customer.name} with {len(items)} item(s): "
                    f"{details}. Initial Amount: {fmt_rupees(initial)}",
                    stamp,
                )
                for text in texts:
                    self.rentals.add_note(rental_id, text, stamp)
                self.customers.append_order_history(customer_id, rental_id)

                if accessory_total > _EPS:
                    sold = ", ".join(
                        f"{it.tool_name} x{it.ordered_count}" for it in items if it.is_accessory
                    )
                    intent_id = self.intents.add(
                        day_key=today,
                        kind=KIND_ACCESSORY_PURCHASE,
                        payment_method=accessory_payment_method,
                        amount=accessory_total,
                        description=f"Accessory purchase for rental {rental_id}: {sold}",
                        notes=f"Customer: {customer.name}",
                        rental_id=rental_id,
                        customer_id=customer_id,
                        created_at=stamp,
                    )

        entry_id = self.ledger.post_or_defer(intent_id)
        self._log.info(
            "Rental %s created for customer %s: %d item(s), initial %s",
            rental_id, customer_id, len(items), fmt_rupees(initial),
        )
        view = self.get_rental(rental_id)
        view.update(ledger_intent_id=intent_id, ledger_entry_id=entry_id)
        return view

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------

    def mark_return(
        self,
        rental_id: int,
        tool_id: int,
        count,
        *,
        payment_method: str,
        return_date: DateLike = None,
        discount=0,
        credit=0,
        note: str = "",
    ) -> dict:
        """
        Return `count` units of one power tool.

        The charge covers those units from the rental date to `return_date`
        (both days counted). Discount and credit are taken off the charge; the
        rest is collected through `payment_method` on the return date's ledger
        day. Credit is also booked against the customer as money still owed.
        """
        count = require_count(count)
        discount = require_non_negative_amount(discount, "Discount")
        credit = require_non_negative_amount(credit, "Credit")
        require_payment_method(payment_method)
        note = (note or "").strip()
        now = self.now()
        returned_at = self._return_moment(return_date, now)
        stamp = now.isoformat(timespec="seconds")
        event_stamp = returned_at.isoformat(timespec="seconds")
        intent_id = None

        with storage_errors("record the return"):
            with self.conn:
                rental = self._load(rental_id)
                item = rental.find_item(tool_id)
                if item is None:
                    raise NotFoundError("Tool not found in rental")
                if item.is_accessory:
                    raise ConflictError("Accessories are non-returnable")
                if count > item.remaining_count:
                    raise ConflictError(
                        f"Cannot return {count} unit(s) of {item.tool_name}; "
                        f"only {item.remaining_count} remaining"
                    )

                charge = line_charge(count, item.unit_price, item.category, item.rental_date, returned_at)
                if discount + credit > charge + _EPS:
                    raise ConflictError(
                        f"Discount and credit ({fmt_rupees(discount + credit)}) "
                        f"exceed the return charge ({fmt_rupees(charge)})"
                    )
                net = charge - discount - credit
                ledger_day = day_key(returned_at)
                if net > _EPS:
                    self._require_day_open(ledger_day, "record the return payment")

                self.rentals.record_return_event(item.item_id, count, event_stamp)
                if discount > 0:
                    self.rentals.add_adjustment(
                        rental_id=rental_id,
                        kind="discount",
                        tool_id=tool_id,
                        amount=discount,
                        event_date=event_stamp,
                        note=note or "Discount applied on return",
                        created_at=stamp,
                    )
                if credit > 0:
                    self.rentals.add_adjustment(
                        rental_id=rental_id,
                        kind="credit",
                        tool_id=tool_id,
                        amount=credit,
                        event_date=event_stamp,
                        note=note or "Credit applied on return",
                        created_at=stamp,
                    )
                    self.customers.append_credit(
                        customer_id=rental.customer_id,
                        rental_id=rental_id,
                        amount=credit,
                        note=note or f"Credit for rental of {item.tool_name}",
                        created_at=stamp,
                    )
                self._restock(tool_id, count)

                text = (
                    f"Returned {count} unit(s) of {item.tool_name} on {fmt_day(returned_at)}. "
                    f"Charge: {fmt_rupees(charge)}, Payment Method: {payment_method}"
                    + self._adjustment_suffix(discount, credit, note)
                )
                self.rentals.add_note(rental_id, text, stamp)

                if net > _EPS:
                    intent_id = self.intents.add(
                        day_key=ledger_day,
                        kind=KIND_RETURN,
                        payment_method=payment_method,
                        amount=net,
                        description=f"Rental {rental_id} for {rental.customer_name}: {text}",
                        notes=note,
                        rental_id=rental_id,
                        customer_id=rental.customer_id,
                        created_at=stamp,
                    )
                _, status = self._refresh_totals(rental_id, now)

        entry_id = self.ledger.post_or_defer(intent_id)
        self._log.info(
            "Rental %s: returned %d x tool %s, charge %s, net %s, status '%s'",
            rental_id, count, tool_id, fmt_rupees(charge), fmt_rupees(max(net, 0.0)), status,
        )
        view = self.get_rental(rental_id)
        view.update(
            charge=charge,
            net_amount=max(net, 0.0),
            ledger_intent_id=intent_id,
            ledger_entry_id=entry_id,
        )
        return view

    def mark_all_returned(
        self,
        rental_id: int,
        *,
        payment_method: str,
        return_date: DateLike = None,
        discount=0,
        credit=0,
        note: str = "",
    ) -> dict:
        """
        Return every power-tool unit still out. Discount and credit apply to the
        combined charge and are recorded once for the whole rental.
        """
        discount = require_non_negative_amount(discount, "Discount")
        credit = require_non_negative_amount(credit, "Credit")
        require_payment_method(payment_method)
        note = (note or "").strip()
        now = self.now()
        returned_at = self._return_moment(return_date, now)
        stamp = now.isoformat(timespec="seconds")
        event_stamp = returned_at.isoformat(timespec="seconds")
        intent_id = None

        with storage_errors("record the returns"):
            with self.conn:
                rental = self._load(rental_id)
                returnable = [
                    it for it in rental.items if not it.is_accessory and it.remaining_count > 0
                ]
                if not returnable:
                    raise ConflictError("No returnable tools left to mark as returned")

                charges = [
                    (
                        it,
                        it.remaining_count,
                        line_charge(it.remaining_count, it.unit_price, it.category, it.rental_date, returned_at),
                    )
                    for it in returnable
                ]
                total_charge = sum(c for _, _, c in charges)
                if discount + credit > total_charge + _EPS:
                    raise ConflictError(
                        f"Discount and credit ({fmt_rupees(discount + credit)}) "
                        f"exceed the total return charge ({fmt_rupees(total_charge)})"
                    )
                net = total_charge - discount - credit
                ledger_day = day_key(returned_at)
                if net > _EPS:
                    self._require_day_open(ledger_day, "record the return payment")

                for it, n, charge in charges:
                    self.rentals.record_return_event(it.item_id, n, event_stamp)
                    self._restock(it.tool_id, n)
                    self.rentals.add_note(
                        rental_id,
                        f"Returned {n} unit(s) of {it.tool_name} on {fmt_day(returned_at)}. "
                        f"Charge: {fmt_rupees(charge)}, Payment Method: {payment_method}",
                        stamp,
                    )

                if discount > 0:
                    self.rentals.add_adjustment(
                        rental_id=rental_id,
                        kind="discount",
                        tool_id=None,
                        amount=discount,
                        event_date=event_stamp,
                        note=note or "Discount applied for marking all tools returned",
                        created_at=stamp,
                    )
                if credit > 0:
                    self.rentals.add_adjustment(
                        rental_id=rental_id,
                        kind="credit",
                        tool_id=None,
                        amount=credit,
                        event_date=event_stamp,
                        note=note or "Credit applied for marking all tools returned",
                        created_at=stamp,
                    )
                    self.customers.append_credit(
                        customer_id=rental.customer_id,
                        rental_id=rental_id,
                        amount=credit,
                        note=note or "Credit for marking all tools returned",
                        created_at=stamp,
                    )

                details = ", ".join(f"{n} unit(s) of {it.tool_name}" for it, n, _ in charges)
                applied = []
                if discount > 0:
                    applied.append(f"{fmt_rupees(discount)} discount")
                if credit > 0:
                    applied.append(f"{fmt_rupees(credit)} credit")
                if applied:
                    self.rentals.add_note(
                        rental_id,
                        f"Applied {' and '.join(applied)} "
                        f"on marking all tools returned: {details}, Payment Method: {payment_method}"
                        + (f", Note: {note}" if note else ""),
                        stamp,
                    )

                if net > _EPS:
                    intent_id = self.intents.add(
                        day_key=ledger_day,
                        kind=KIND_RETURN,
                        payment_method=payment_method,
                        amount=net,
                        description=(
                            f"Rental {rental_id} for {rental.customer_name}: returned {details} "
                            f"on {fmt_day(returned_at)}. Total Charge: {fmt_rupees(total_charge)}"
                            + self._adjustment_suffix(discount, credit, note)
                        ),
                        notes=note,
                        rental_id=rental_id,
                        customer_id=rental.customer_id,
                        created_at=stamp,
                    )
                _, status = self._refresh_totals(rental_id, now)

        entry_id = self.ledger.post_or_defer(intent_id)
        self._log.info(
            "Rental %s: all tools returned (%d line(s)), charge %s, status '%s'",
            rental_id, len(charges), fmt_rupees(total_charge), status,
        )
        view = self.get_rental(rental_id)
        view.update(
            charge=total_charge,
            net_amount=max(net, 0.0),
            ledger_intent_id=intent_id,
            ledger_entry_id=entry_id,
        )
        return view
