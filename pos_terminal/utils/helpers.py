# utils/helpers.py
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import logging
from typing import Union, Optional

from ..constants import MONEY_QUANT

NumberLike = Union[Decimal, float, int, str]

_log = logging.getLogger(__name__)


def to_decimal(v: NumberLike) -> Decimal:
    """
    Exact conversion to Decimal. Floats go through str() so 10.1 stays 10.1
    instead of its binary expansion. Raises ValueError on garbage.
    """
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Could not parse {v!r} as a number.") from e


def to_money(v: NumberLike) -> Decimal:
    """Quantize to cents with ROUND_HALF_UP."""
    return to_decimal(v).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


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
      - If `strict=True`, raises ValueError.
    """
    try:
        x = to_decimal(v)
    except ValueError as e:
        _log.debug("fmt_money: failed to parse %r: %s", v, e)
        if strict:
            raise
        return str(sentinel) if sentinel is not None else str(v)
    q = Decimal(1).scaleb(-places)
    return f"{x.quantize(q, rounding=ROUND_HALF_UP):,.{places}f}"


# ---- local-day windows ----

def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max)


def next_midnight(moment: datetime) -> datetime:
    return start_of_day(moment) + timedelta(days=1)


def msecs_until_midnight(moment: datetime) -> int:
    """Milliseconds from `moment` to the next local midnight (always >= 1)."""
    return max(1, (next_midnight(moment) - moment) // timedelta(milliseconds=1))
