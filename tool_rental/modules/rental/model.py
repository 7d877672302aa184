"""
Table models for the rental module.

`RentalsTableModel` lists the rows returned by
``RentalBillingService.list_rentals()["data"]`` and `RentalItemsTableModel`
shows the line items of one loaded ``Rental``. Both only format values;
charges and status are computed by the service.
"""

from __future__ import annotations

from typing import Any, Dict, List

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt

from ...database.repositories.rentals_repo import RentalItem
from ...utils.helpers import fmt_money


class RentalsTableModel(QAbstractTableModel):
    """Table model for the rentals list."""

    HEADERS: List[str] = ["ID", "Customer", "Phone", "Created", "Initial", "Total", "Status"]

    def __init__(self, rows: List[Dict[str, Any]]):
        super().__init__()
        self._rows = rows or []

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self.HEADERS)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if not index.isValid():
            return None
        row = self._rows[index.row()]
        col = index.column()
        if role in (Qt.DisplayRole, Qt.EditRole):
            if col == 0:
                return row.get("rental_id")
            if col == 1:
                return row.get("customer_name")
            if col == 2:
                return row.get("customer_phone") or ""
            if col == 3:
                # created_at is an ISO timestamp; the date part is enough here
                return str(row.get("created_at") or "")[:10]
            if col == 4:
                return fmt_money(row.get("initial_amount", 0.0))
            if col == 5:
                return fmt_money(row.get("total_amount", 0.0))
            if col == 6:
                return row.get("status")
        if role == Qt.TextAlignmentRole and col in (4, 5):
            return int(Qt.AlignRight | Qt.AlignVCenter)
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section]
        return super().headerData(section, orientation, role)

    def rental_id_at(self, row: int) -> int | None:
        if 0 <= row < len(self._rows):
            return self._rows[row].get("rental_id")
        return None


class RentalItemsTableModel(QAbstractTableModel):
    HEADERS: List[str] = ["Tool", "Category", "Unit Price", "Ordered", "Returned", "Remaining"]

    def __init__(self, items: List[RentalItem]):
        super().__init__()
        self._items = items or []

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self._items)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return len(self.HEADERS)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if not index.isValid():
            return None
        it = self._items[index.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            col = index.column()
            if col == 0:
                return it.tool_name
            if col == 1:
                return it.category
            if col == 2:
                return fmt_money(it.unit_price)
            if col == 3:
                return it.ordered_count
            if col == 4:
                return it.returned_count
            if col == 5:
                # accessories are sold, nothing is ever outstanding
                return 0 if it.is_accessory else it.remaining_count
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> Any:  # type: ignore[override]
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section]
        return super().headerData(section, orientation, role)
