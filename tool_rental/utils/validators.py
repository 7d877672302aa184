# utils/validators.py
from __future__ import annotations

import math

from ..constants import PAYMENT_METHODS
from ..database.repositories.errors import ValidationError


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)
    """
    if isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def is_non_negative_number(x) -> bool:
    """
    True iff x parses to a float and value >= 0.
    """
    ok, val = try_parse_float(x)
    return bool(ok and val is not None and val >= 0)


def is_strictly_positive_number(x) -> bool:
    """
    True iff x parses to a float and value > 0.
    """
    ok, val = try_parse_float(x)
    return bool(ok and val is not None and val > 0)


# ---- Raising variants used by the services ----

def require_positive_amount(x, label: str = "Amount") -> float:
    if not is_strictly_positive_number(x):
        raise ValidationError(f"{label} must be a positive number.")
    return float(x)


def require_non_negative_amount(x, label: str) -> float:
    if not is_non_negative_number(x):
        raise ValidationError(f"{label} must be a non-negative number.")
    return float(x)


def require_count(x, label: str = "Count") -> int:
    """Whole number >= 1."""
    ok, val = try_parse_float(x)
    if not ok or val is None or val < 1 or val != int(val):
        raise ValidationError(f"{label} must be a whole number >= 1.")
    return int(val)


def require_payment_method(method, label: str = "Payment method") -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"{label} must be 'Cash' or 'UPI'.")
    return method
