"""
Table model for one ledger day.

Fed with ``DailyLedgerService.get_day(date)["entries"]``. Debits are shown as
negative amounts so the column sums to the day's net movement.
"""

from __future__ import annotations

from typing import Any, List

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt

from ...constants import KIND_DEBIT
from ...database.repositories.ledger_repo import LedgerEntry
from ...utils.helpers import fmt_money

_KIND_LABELS = {
    "return": "Rental Return",
    "credit_repayment": "Credit Repayment",
    "accessory_purchase": "Accessory Sale",
    "debit": "Expense",
    "credit": "Income",
}


class LedgerEntriesTableModel(QAbstractTableModel):
    """Table model for the entries of a single ledger day."""

    HEADERS: List[str] = ["ID", "Time", "Type", "Method", "Category", "Description", "Amount"]

    def __init__(self, entries: List[LedgerEntry]):
        super().__init__()
        self._entries = entries or []

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._entries)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self.HEADERS)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if not index.isValid():
            return None
        e = self._entries[index.row()]
        col = index.column()
        if role in (Qt.DisplayRole, Qt.EditRole):
            if col == 0:
                return e.entry_id
            if col == 1:
                return str(e.created_at or "")[11:16]
            if col == 2:
                return _KIND_LABELS.get(e.kind, e.kind)
            if col == 3:
                return e.payment_method
            if col == 4:
                return e.category or ""
            if col == 5:
                return e.description or ""
            if col == 6:
                signed = -e.amount if e.kind == KIND_DEBIT else e.amount
                return fmt_money(signed)
        if role == Qt.TextAlignmentRole and col == 6:
            return int(Qt.AlignRight | Qt.AlignVCenter)
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section]
        return super().headerData(section, orientation, role)

    def replace(self, entries: List[LedgerEntry]) -> None:
        self.beginResetModel()
        self._entries = entries or []
        self.endResetModel()
