from __future__ import annotations

from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    InvalidOperation,
    localcontext,
)
from typing import Any


CENT = Decimal("0.01")

# Inputs beyond this magnitude (either direction) are not usable amounts.
MAX_EXPONENT = 999_999


def exact_arithmetic():
    """Decimal context where addition, multiplication and quantize never round or overflow."""
    return localcontext(Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN))


def parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite() or abs(result.adjusted()) > MAX_EXPONENT:
        return None
    return result


def round2(value: Any) -> Decimal:
    """Round to the nearest cent, ties away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with exact_arithmetic():
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
