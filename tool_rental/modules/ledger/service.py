"""
ledger/service.py

The daily cash/UPI ledger: one record per calendar day, manual entries
(expenses, income, internal transfers), day closing with frozen balances,
a time-boxed undo of the close, and opening balances carried forward from
the last closed day.

Public interface
----------------
- DailyLedgerService.get_day(date) -> dict(day, entries, balances, exists)
- DailyLedgerService.balances(date) -> {"Cash", "UPI", "total"}
- DailyLedgerService.add_debit / add_credit / transfer
- DailyLedgerService.close_day / undo_close / undo_window_remaining
- DailyLedgerService.set_opening_balance
- DailyLedgerService.post_intent / reconcile_intents   (rental money movements)

Every `date` argument accepts a date, a datetime, an ISO string or None (today,
from the injected clock). Balances are recomputed from the entries on each
call; nothing is cached.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from ...constants import (
    CATEGORY_INTERNAL_TRANSFER,
    CATEGORY_MANUAL_CREDIT,
    CATEGORY_OPENING_BALANCE,
    EXPENSE_CATEGORIES,
    KIND_CREDIT,
    KIND_DEBIT,
    OPENING_LOOKBACK_DAYS,
    PAYMENT_CASH,
    PAYMENT_METHODS,
    PAYMENT_UPI,
    UNDO_CARRY_SCAN_DAYS,
    UNDO_CLOSE_WINDOW_MINUTES,
)
from ...database.repositories.errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
    storage_errors,
)
from ...database.repositories.ledger_intents_repo import LedgerIntentsRepo
from ...database.repositories.ledger_repo import LedgerDay, LedgerEntry, LedgerRepo
from ...utils.helpers import DateLike, day_key, fmt_money, fmt_rupees, to_datetime
from ...utils.loggers import get_logger, log_event
from ...utils.validators import require_payment_method, require_positive_amount

_EPS = 1e-9


def compute_balances(entries: Iterable[LedgerEntry]) -> Dict[str, float]:
    """
    Net balance per payment method: every entry adds its amount except debits,
    which subtract. Opening balances are ordinary credit entries and need no
    special case.
    """
    balances = {method: 0.0 for method in PAYMENT_METHODS}
    for e in entries:
        sign = -1.0 if e.kind == KIND_DEBIT else 1.0
        balances[e.payment_method] = balances.get(e.payment_method, 0.0) + sign * e.amount
    balances["total"] = balances[PAYMENT_CASH] + balances[PAYMENT_UPI]
    return balances


class DailyLedgerService:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        clock: Callable[[], datetime] | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.conn = conn
        self.days = LedgerRepo(conn)
        self.intents = LedgerIntentsRepo(conn)
        self._clock = clock or datetime.now
        self._log = logger or get_logger("tool_rental.ledger", json_lines=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def day_key_for(self, value: DateLike = None) -> str:
        try:
            return day_key(to_datetime(value, default=self.now()))
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def _stamp(self) -> str:
        return self.now().isoformat(timespec="seconds")

    @staticmethod
    def _require_open(day: LedgerDay, action: str) -> None:
        if day.is_closed:
            raise ConflictError(f"Day is closed. Cannot {action}.")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_day(self, date: DateLike = None) -> dict:
        """
        Day record, its entries and live balances. A day without a record is
        reported as an empty open day; nothing is created.
        """
        key = self.day_key_for(date)
        with storage_errors("load the ledger day"):
            day = self.days.get_day(key)
            entries = self.days.list_entries(key) if day else []
        return {
            "day": day or LedgerDay.empty(key),
            "exists": day is not None,
            "entries": entries,
            "balances": compute_balances(entries),
        }

    def balances(self, date: DateLike = None) -> Dict[str, float]:
        key = self.day_key_for(date)
        with storage_errors("compute balances"):
            return compute_balances(self.days.list_entries(key))

    def is_closed(self, key: str) -> bool:
        with storage_errors("load the ledger day"):
            day = self.days.get_day(key)
        return bool(day and day.is_closed)

    def ensure_day(self, date: DateLike = None) -> LedgerDay:
        key = self.day_key_for(date)
        with storage_errors("create the ledger day"):
            with self.conn:
                return self.days.ensure_day(key)

    # ------------------------------------------------------------------
    # Manual entries
    # ------------------------------------------------------------------

    def add_debit(
        self,
        amount,
        category: str,
        payment_method: str,
        *,
        description: str = "",
        notes: str = "",
        date: DateLike = None,
    ) -> int:
        """Record an expense. Cannot overdraw the payment method's balance for the day."""
        amount = require_positive_amount(amount)
        require_payment_method(payment_method)
        if not category:
            raise ValidationError("Category required for debit.")
        if category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(EXPENSE_CATEGORIES)}")
        key = self.day_key_for(date)

        with storage_errors("record the debit"):
            with self.conn:
                day = self.days.ensure_day(key)
                self._require_open(day, "add debit")
                available = compute_balances(self.days.list_entries(key))[payment_method]
                if amount > available + _EPS:
                    raise ConflictError(
                        f"Insufficient {payment_method} balance. Available: {fmt_rupees(available)}"
                    )
                entry_id = self.days.insert_entry(
                    day_key=key,
                    amount=amount,
                    kind=KIND_DEBIT,
                    payment_method=payment_method,
                    category=category,
                    description=description or f"{category} expense",
                    notes=notes,
                    created_at=self._stamp(),
                )
        self._log.info("Debit %s %s (%s) on %s", payment_method, fmt_money(amount), category, key)
        return entry_id

    def add_credit(
        self,
        amount,
        payment_method: str,
        *,
        description: str = "",
        notes: str = "",
        date: DateLike = None,
    ) -> int:
        """Record manual income. No balance check."""
        amount = require_positive_amount(amount)
        require_payment_method(payment_method)
        key = self.day_key_for(date)

        with storage_errors("record the credit"):
            with self.conn:
                day = self.days.ensure_day(key)
                self._require_open(day, "add credit")
                entry_id = self.days.insert_entry(
                    day_key=key,
                    amount=amount,
                    kind=KIND_CREDIT,
                    payment_method=payment_method,
                    category=CATEGORY_MANUAL_CREDIT,
                    description=description or f"Manual {payment_method} credit",
                    notes=notes,
                    created_at=self._stamp(),
                )
        self._log.info("Credit %s %s on %s", payment_method, fmt_money(amount), key)
        return entry_id

    def transfer(
        self,
        amount,
        from_method: str,
        to_method: str,
        *,
        notes: str = "",
        date: DateLike = None,
    ) -> tuple[int, int]:
        """Move money between Cash and UPI as a paired debit/credit. Returns both entry ids."""
        amount = require_positive_amount(amount)
        if from_method not in PAYMENT_METHODS or to_method not in PAYMENT_METHODS:
            raise ValidationError("Invalid from/to method.")
        if from_method == to_method:
            raise ValidationError("Cannot transfer to same method.")
        key = self.day_key_for(date)
        description = notes or f"Transferred {fmt_rupees(amount)} from {from_method} to {to_method}"

        with storage_errors("record the transfer"):
            with self.conn:
                day = self.days.ensure_day(key)
                self._require_open(day, "transfer")
                available = compute_balances(self.days.list_entries(key))[from_method]
                if amount > available + _EPS:
                    raise ConflictError(
                        f"Insufficient {from_method} balance. Available: {fmt_rupees(available)}"
                    )
                stamp = self._stamp()
                debit_id = self.days.insert_entry(
                    day_key=key,
                    amount=amount,
                    kind=KIND_DEBIT,
                    payment_method=from_method,
                    category=CATEGORY_INTERNAL_TRANSFER,
                    description=description,
                    notes=notes,
                    created_at=stamp,
                )
                credit_id = self.days.insert_entry(
                    day_key=key,
                    amount=amount,
                    kind=KIND_CREDIT,
                    payment_method=to_method,
                    category=CATEGORY_INTERNAL_TRANSFER,
                    description=description,
                    notes=notes,
                    created_at=stamp,
                )
        self._log.info("Transfer %s %s -> %s on %s", fmt_money(amount), from_method, to_method, key)
        return debit_id, credit_id

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def close_day(self, date: DateLike = None) -> LedgerDay:
        """Freeze the day's net Cash/UPI as its closing balance."""
        key = self.day_key_for(date)
        with storage_errors("close the day"):
            with self.conn:
                day = self.days.get_day(key)
                if day is None:
                    raise NotFoundError(f"No transactions for {key}.")
                if day.is_closed:
                    raise ConflictError("Day already closed.")
                net = compute_balances(self.days.list_entries(key))
                self.days.mark_closed(
                    key,
                    closing_cash=net[PAYMENT_CASH],
                    closing_upi=net[PAYMENT_UPI],
                    closed_at=self._stamp(),
                )
                closed = self.days.get_day(key)
        log_event(
            self._log,
            "close_day",
            "closed",
            f"Day {key} closed",
            {"day": key, "cash": net[PAYMENT_CASH], "upi": net[PAYMENT_UPI]},
        )
        return closed  # type: ignore[return-value]

    def undo_window_remaining(self, date: DateLike = None, now: datetime | None = None) -> float:
        """Minutes left to undo the close of `date`; 0 when open or expired."""
        key = self.day_key_for(date)
        with storage_errors("load the ledger day"):
            day = self.days.get_day(key)
        if day is None or not day.is_closed or day.closed_at is None:
            return 0.0
        now = now or self.now()
        window = timedelta(minutes=UNDO_CLOSE_WINDOW_MINUTES)
        left = window - (now - day.closed_at)
        return max(0.0, left.total_seconds() / 60.0)

    def undo_close(self, date: DateLike = None, now: datetime | None = None) -> LedgerDay:
        """
        Reopen a closed day.

        Refused once the grace window after closing has passed, or when a later
        day within the scan horizon already carried this day's closing balance
        forward, whether or not the days in between are closed.
        """
        key = self.day_key_for(date)
        now = now or self.now()

        with storage_errors("reopen the day"):
            with self.conn:
                day = self.days.get_day(key)
                if day is None:
                    raise NotFoundError(f"No transactions for {key}.")
                if not day.is_closed:
                    raise ConflictError("Day is not closed.")
                if day.closed_at is not None and now - day.closed_at > timedelta(
                    minutes=UNDO_CLOSE_WINDOW_MINUTES
                ):
                    raise ConflictError(
                        f"Undo window of {UNDO_CLOSE_WINDOW_MINUTES} minutes has expired."
                    )

                start = datetime.fromisoformat(key)
                until = day_key(start + timedelta(days=UNDO_CARRY_SCAN_DAYS))
                later = self.days.first_carried_from(key, until)
                if later is not None:
                    log_event(
                        self._log,
                        "undo_close",
                        "blocked",
                        f"Undo of {key} blocked by {later.day_key}",
                        {"day": key, "carried_into": later.day_key},
                        level=logging.WARNING,
                    )
                    raise ConflictError(
                        f"Cannot undo: closing balance of {key} was carried into {later.day_key}."
                    )

                self.days.mark_open(key)
                reopened = self.days.get_day(key)
        log_event(self._log, "undo_close", "reopened", f"Day {key} reopened", {"day": key})
        return reopened  # type: ignore[return-value]

    def set_opening_balance(self, date: DateLike = None) -> LedgerDay:
        """Carry the last closed day's closing balance into `date` as credit entries."""
        key = self.day_key_for(date)
        horizon = day_key(datetime.fromisoformat(key) - timedelta(days=OPENING_LOOKBACK_DAYS))

        with storage_errors("set the opening balance"):
            with self.conn:
                day = self.days.ensure_day(key)
                if day.opening_total > 0 or day.opening_carried_from:
                    raise ConflictError("Opening balance already set.")
                self._require_open(day, "set opening balance")

                prev = self.days.latest_closed_before(key, horizon)
                if prev is None:
                    raise ConflictError("No previous closing balance found.")
                cash, upi = prev.closing_cash, prev.closing_upi
                if cash + upi <= 0:
                    raise ConflictError("Previous closing balance is zero.")

                stamp = self._stamp()
                for method, amount in ((PAYMENT_CASH, cash), (PAYMENT_UPI, upi)):
                    if amount > 0:
                        self.days.insert_entry(
                            day_key=key,
                            amount=amount,
                            kind=KIND_CREDIT,
                            payment_method=method,
                            category=CATEGORY_OPENING_BALANCE,
                            description=f"Opening {method} from {prev.day_key}",
                            notes=f"Carried from {prev.day_key}",
                            created_at=stamp,
                        )
                self.days.set_opening(key, opening_cash=cash, opening_upi=upi, carried_from=prev.day_key)
                updated = self.days.get_day(key)
        log_event(
            self._log,
            "opening_balance",
            "set",
            f"Opening balance for {key} carried from {prev.day_key}",
            {"day": key, "from": prev.day_key, "cash": cash, "upi": upi},
        )
        return updated  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Rental money movements (outbox)
    # ------------------------------------------------------------------

    def post_intent(self, intent_id: int) -> int:
        """
        Turn a pending ledger intent into an entry. Idempotent: a posted intent
        returns its existing entry id.
        """
        with storage_errors("post the ledger intent"):
            with self.conn:
                intent = self.intents.get(intent_id)
                if intent is None:
                    raise NotFoundError(f"Ledger intent {intent_id} not found.")
                if intent.entry_id is not None:
                    return int(intent.entry_id)
                day = self.days.ensure_day(intent.day_key)
                self._require_open(day, f"post {intent.kind.replace('_', ' ')}")
                entry_id = self.days.insert_entry(
                    day_key=intent.day_key,
                    amount=intent.amount,
                    kind=intent.kind,
                    payment_method=intent.payment_method,
                    description=intent.description,
                    notes=intent.notes,
                    rental_id=intent.rental_id,
                    customer_id=intent.customer_id,
                    created_at=self._stamp(),
                )
                self.intents.mark_posted(intent_id, entry_id=entry_id, posted_at=self._stamp())
        return entry_id

    def post_or_defer(self, intent_id: int | None) -> int | None:
        """
        post_intent() for callers whose own write already committed: a failure
        is logged and the intent stays pending for reconcile_intents().
        """
        if intent_id is None:
            return None
        try:
            return self.post_intent(intent_id)
        except (ConflictError, StorageError) as e:
            log_event(
                self._log,
                "post_intent",
                "deferred",
                f"Ledger intent {intent_id} left pending: {e}",
                {"intent_id": intent_id},
                level=logging.WARNING,
            )
            return None

    def reconcile_intents(self) -> Dict[str, List[int]]:
        """
        Post every intent left pending (e.g. the process stopped between the
        rental write and the ledger write). Intents whose day has since been
        closed stay pending and are reported as skipped.
        """
        with storage_errors("list pending ledger intents"):
            pending = self.intents.list_pending()
        posted: List[int] = []
        skipped: List[int] = []
        for intent in pending:
            try:
                self.post_intent(intent.intent_id)
            except ConflictError as e:
                skipped.append(intent.intent_id)
                log_event(
                    self._log,
                    "reconcile",
                    "skipped",
                    str(e),
                    {"intent_id": intent.intent_id, "day": intent.day_key},
                    level=logging.WARNING,
                )
            else:
                posted.append(intent.intent_id)
        if pending:
            log_event(
                self._log,
                "reconcile",
                "done",
                f"Reconciled {len(posted)} of {len(pending)} pending intents",
                {"posted": posted, "skipped": skipped},
            )
        return {"posted": posted, "skipped": skipped}
