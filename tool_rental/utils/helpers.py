# utils/helpers.py
from datetime import date, datetime, time
import logging
from typing import Union, Optional

from ..constants import CURRENCY_SYMBOL

NumberLike = Union[float, int, str]
DateLike = Union[date, datetime, str, None]

_log = logging.getLogger(__name__)


def day_key(value: Union[date, datetime]) -> str:
    """
    Canonical key of a ledger day: the ISO calendar date (YYYY-MM-DD).

    Every ledger lookup goes through here so two call sites can never format
    "today" differently.
    """
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def to_datetime(value: DateLike, *, default: datetime) -> datetime:
    """
    Coerce a date-ish input to a naive datetime.

    - None          -> `default`
    - datetime      -> as is (tz-aware values are converted to local naive time)
    - date          -> midnight of that date
    - str           -> ISO date or datetime ('2025-11-15', '2025-11-15T10:30:00')

    Raises ValueError on unparseable strings.
    """
    if value is None:
        return default
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value).strip()
    if not text:
        return default
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Could not parse '{value}' as a date.") from e
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError on parse failures.
    """
    try:
        x = float(v)
    except Exception as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"


def fmt_rupees(v: NumberLike) -> str:
    """Money with the shop's currency symbol, as used in notes and descriptions."""
    return f"{CURRENCY_SYMBOL}{fmt_money(v, strict=True)}"


def fmt_day(value: Union[date, datetime]) -> str:
    """Human date used inside audit notes (DD/MM/YYYY)."""
    return value.strftime("%d/%m/%Y")
