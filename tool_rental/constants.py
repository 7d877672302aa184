# constants.py
DATA_DIR = "data"
DB_FILE_NAME = "toolrental.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# ---- inventory ----
CATEGORY_POWER_TOOL = "Power Tools"
CATEGORY_ACCESSORY = "Accessories"
TOOL_CATEGORIES = (CATEGORY_POWER_TOOL, CATEGORY_ACCESSORY)

# ---- rentals ----
STATUS_RENTED = "rented"
STATUS_PARTIAL_RETURN = "partial return"
STATUS_RETURN_COMPLETED = "return completed"
RENTAL_STATUSES = (STATUS_RENTED, STATUS_PARTIAL_RETURN, STATUS_RETURN_COMPLETED)

# ---- money ----
CURRENCY_SYMBOL = "₹"
PAYMENT_CASH = "Cash"
PAYMENT_UPI = "UPI"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_UPI)

# ---- daily ledger ----
KIND_RETURN = "return"
KIND_CREDIT_REPAYMENT = "credit_repayment"
KIND_ACCESSORY_PURCHASE = "accessory_purchase"
KIND_DEBIT = "debit"
KIND_CREDIT = "credit"

EXPENSE_CATEGORIES = (
    "Rent & Utilities",
    "Labour Charges",
    "Tea & Snacks",
    "Tool Inventory & Maintenance",
    "Stationary",
    "Miscellaneous",
)
CATEGORY_INTERNAL_TRANSFER = "Internal Transfer"
CATEGORY_MANUAL_CREDIT = "Manual Credit"
CATEGORY_OPENING_BALANCE = "Opening Balance"

# Closed days can be reopened for this long after closing.
UNDO_CLOSE_WINDOW_MINUTES = 45
# Forward scan when checking whether a closed day was carried forward.
UNDO_CARRY_SCAN_DAYS = 365
# Backward search for the last closed day when setting an opening balance.
OPENING_LOOKBACK_DAYS = 5 * 365

INTENT_PENDING = "pending"
INTENT_POSTED = "posted"
