"""
customer/credits.py

Settling customer credit. Credit is granted at return time instead of
collecting the money; repaying it brings that money into today's ledger as
`credit_repayment` entries, one per rental involved.
"""
from __future__ import annotations

import logging
import sqlite3
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Optional

from ...constants import KIND_CREDIT_REPAYMENT
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.errors import ConflictError, NotFoundError, storage_errors
from ...database.repositories.ledger_intents_repo import LedgerIntentsRepo
from ...database.repositories.rentals_repo import RentalsRepo
from ...utils.helpers import day_key, fmt_day, fmt_rupees
from ...utils.loggers import get_logger
from ...utils.validators import require_payment_method
from ..ledger.service import DailyLedgerService

_EPS = 1e-9


class CreditRepaymentService:
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
        self.customers = CustomersRepo(conn)
        self.rentals = RentalsRepo(conn)
        self.intents = LedgerIntentsRepo(conn)
        self._log = logger or get_logger("tool_rental.customers")

    def repay_credit(
        self,
        customer_id: int,
        payment_method: str,
        *,
        rental_id: int | None = None,
    ) -> dict:
        """
        Settle the credit of one rental (`rental_id`) or everything the customer
        owes. Returns the refreshed customer, the amount repaid and the ledger
        entry ids (None where posting was deferred).
        """
        require_payment_method(payment_method)
        now = self._clock()
        stamp = now.isoformat(timespec="seconds")
        today = day_key(now)
        intent_ids = []

        with storage_errors("record the credit repayment"):
            with self.conn:
                customer = self.customers.get(customer_id)
                if customer is None:
                    raise NotFoundError("Customer not found")
                if customer.total_credit <= _EPS:
                    raise ConflictError("No outstanding credit to repay")
                if self.ledger.is_closed(today):
                    raise ConflictError("Day is closed. Cannot record credit repayment.")

                if rental_id is not None:
                    if not self.rentals.exists(rental_id):
                        raise NotFoundError("Rental not found")
                    if not any(c["rental_id"] == rental_id for c in self.customers.list_credits(customer_id)):
                        raise NotFoundError("Credit entry for this rental not found")
                    per_rental = {rental_id: self.customers.remove_credits_for_rental(customer_id, rental_id)}
                else:
                    per_rental = OrderedDict()
                    for c in self.customers.list_credits(customer_id):
                        per_rental[c["rental_id"]] = per_rental.get(c["rental_id"], 0.0) + float(c["amount"])
                    self.customers.clear_credits(customer_id)

                for rid, amount in per_rental.items():
                    self.rentals.add_note(
                        rid,
                        f"Credit repayment of {fmt_rupees(amount)} received via {payment_method} "
                        f"on {fmt_day(now)}.",
                        stamp,
                    )
                    intent_ids.append(
                        self.intents.add(
                            day_key=today,
                            kind=KIND_CREDIT_REPAYMENT,
                            payment_method=payment_method,
                            amount=amount,
                            description=(
                                f"Credit repayment for customer {customer.name} "
                                f"(Rental {rid}): {fmt_rupees(amount)} via {payment_method}"
                            ),
                            rental_id=rid,
                            customer_id=customer_id,
                            created_at=stamp,
                        )
                    )

        entry_ids = [self.ledger.post_or_defer(i) for i in intent_ids]
        repaid = sum(per_rental.values())
        self._log.info(
            "Customer %s repaid %s via %s across %d rental(s)",
            customer_id, fmt_rupees(repaid), payment_method, len(per_rental),
        )
        with storage_errors("load the customer"):
            refreshed = self.customers.get(customer_id)
        return {
            "customer": refreshed,
            "repaid": repaid,
            "ledger_intent_ids": intent_ids,
            "ledger_entry_ids": entry_ids,
        }
