from __future__ import annotations

import os
from decimal import Decimal
from typing import Any, Iterable

from tradedocs.models import Totals
from tradedocs.money import exact_arithmetic, parse_decimal, round2


_ZERO = Decimal("0")

DEFAULT_GST_RATE = Decimal("0.15")

def coerce_decimal(value: Any) -> Decimal:
    # Form values arrive as str/float/int/None; anything unusable counts as zero.
    result = parse_decimal(value)
    if result is None or result < 0:
        return _ZERO
    return result


def _get(item: Any, *names: str) -> Any:
    if isinstance(item, dict):
        for n in names:
            if item.get(n) is not None:
                return item[n]
        return None
    for n in names:
        v = getattr(item, n, None)
        if v is not None:
            return v
    return None


def default_tax_rate() -> Decimal:
    raw = os.getenv("TRADEDOCS_GST_RATE")
    if raw is None or not raw.strip():
        return DEFAULT_GST_RATE
    return coerce_decimal(raw)


def percent_to_rate(percent: Any) -> Decimal:
    return coerce_decimal(percent) / Decimal("100")


def compute_line_amount(quantity: Any, unit_rate: Any) -> Decimal:
    with exact_arithmetic():
        return round2(coerce_decimal(quantity) * coerce_decimal(unit_rate))


def compute_totals(items: Iterable[Any] | None, tax_rate: Any = DEFAULT_GST_RATE) -> Totals:
    """
    Subtotal, tax and total for a set of line items.

    Each stage is rounded on its own so the three figures stored on a
    document always add up: total == subtotal + tax_amount.
    """
    rate = coerce_decimal(tax_rate)
    with exact_arithmetic():
        line_sum = _ZERO
        for item in items or []:
            line_sum += compute_line_amount(
                _get(item, "quantity", "qty"),
                _get(item, "unit_rate", "rate", "unit_price"),
            )

        subtotal = round2(line_sum)
        tax_amount = round2(subtotal * rate)
        total = round2(subtotal + tax_amount)
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=total)


def compute_acc_estimate(revenue: Any, acc_rate_percent: Any) -> Decimal:
    rate = percent_to_rate(acc_rate_percent)
    with exact_arithmetic():
        return round2(coerce_decimal(revenue) * rate)
