# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from tool_rental.database.repositories import (
        # Errors
        DomainError, ValidationError, NotFoundError, ConflictError, StorageError,
        # Customers (+ credit ledger)
        CustomersRepo, Customer,
        # Inventory
        ToolsRepo, Tool,
        # Rentals
        RentalsRepo, Rental, RentalItem, ReturnEvent, Adjustment, RentalNote,
        # Daily ledger
        LedgerRepo, LedgerDay, LedgerEntry, LedgerIntentsRepo, LedgerIntent,
    )
"""

# ----------------- Errors ------------------
from .errors import (
    DomainError,
    ValidationError,
    NotFoundError,
    ConflictError,
    StorageError,
    storage_errors,
)

# ---------------- Customers ----------------
from .customers_repo import CustomersRepo, Customer

# ---------------- Inventory ----------------
from .tools_repo import ToolsRepo, Tool

# ----------------- Rentals -----------------
from .rentals_repo import (
    RentalsRepo,
    Rental,
    RentalItem,
    ReturnEvent,
    Adjustment,
    RentalNote,
)

# -------------- Daily ledger ---------------
from .ledger_repo import LedgerRepo, LedgerDay, LedgerEntry
from .ledger_intents_repo import LedgerIntentsRepo, LedgerIntent

__all__ = [
    # errors
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
    "storage_errors",
    # customers_repo
    "CustomersRepo",
    "Customer",
    # tools_repo
    "ToolsRepo",
    "Tool",
    # rentals_repo
    "RentalsRepo",
    "Rental",
    "RentalItem",
    "ReturnEvent",
    "Adjustment",
    "RentalNote",
    # ledger
    "LedgerRepo",
    "LedgerDay",
    "LedgerEntry",
    "LedgerIntentsRepo",
    "LedgerIntent",
]
