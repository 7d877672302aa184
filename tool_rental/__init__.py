"""Tool rental shop back office: rental billing and the daily cash/UPI ledger."""

__version__ = "1.0.0"
