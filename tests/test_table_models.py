# tests/test_table_models.py
from PySide6.QtCore import QModelIndex, Qt

from tool_rental.modules.ledger.model import LedgerEntriesTableModel
from tool_rental.modules.rental.model import RentalItemsTableModel, RentalsTableModel


def _cells(model, row):
    return [model.data(model.index(row, c), Qt.DisplayRole) for c in range(model.columnCount())]


def test_rentals_table_model(app, billing, ids):
    view = billing.create_rental(
        ids["customer"],
        [{"tool_id": ids["drill"], "count": 2}, {"tool_id": ids["bits"], "count": 1}],
        accessory_payment_method="Cash",
    )
    model = RentalsTableModel(billing.list_rentals()["data"])

    assert model.rowCount() == 1
    assert model.columnCount() == len(RentalsTableModel.HEADERS)
    assert model.headerData(1, Qt.Horizontal, Qt.DisplayRole) == "Customer"
    assert _cells(model, 0) == [
        view["rental"].rental_id,
        "Ravi Kumar",
        "9876543210",
        "2025-11-15",
        "220.00",
        "220.00",
        "rented",
    ]
    assert model.rental_id_at(0) == view["rental"].rental_id
    assert model.rental_id_at(5) is None
    assert model.data(QModelIndex(), Qt.DisplayRole) is None


def test_rental_items_table_model(app, billing, ids):
    view = billing.create_rental(
        ids["customer"],
        [{"tool_id": ids["drill"], "count": 2}, {"tool_id": ids["bits"], "count": 3}],
        accessory_payment_method="UPI",
    )
    rental_id = view["rental"].rental_id
    billing.mark_return(rental_id, ids["drill"], 1, payment_method="Cash")

    model = RentalItemsTableModel(billing.get_rental(rental_id)["rental"].items)
    assert model.rowCount() == 2
    assert _cells(model, 0) == ["Hammer Drill", "Power Tools", "100.00", 2, 1, 1]
    assert _cells(model, 1) == ["Drill Bit Set", "Accessories", "20.00", 3, 0, 0]


def test_ledger_entries_table_model(app, ledger):
    ledger.add_credit(100, "Cash", description="Float")
    ledger.add_debit(30, "Tea & Snacks", "Cash")

    model = LedgerEntriesTableModel(ledger.get_day()["entries"])
    assert model.rowCount() == 2
    assert model.headerData(6, Qt.Horizontal, Qt.DisplayRole) == "Amount"
    first, second = _cells(model, 0), _cells(model, 1)
    assert first[1:] == ["10:00", "Income", "Cash", "Manual Credit", "Float", "100.00"]
    assert second[2] == "Expense"
    assert second[6] == "-30.00"

    model.replace([])
    assert model.rowCount() == 0
