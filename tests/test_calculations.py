import os
from decimal import Decimal
from types import SimpleNamespace
import unittest
from unittest import mock

from tradedocs.calculations import (
    compute_acc_estimate,
    compute_line_amount,
    compute_totals,
    default_tax_rate,
    percent_to_rate,
    round2,
)
from tradedocs.models import LineItem


class LineAmountTests(unittest.TestCase):
    def test_half_cent_rounds_up(self) -> None:
        self.assertEqual(compute_line_amount(2.5, 19.99), Decimal("49.98"))

    def test_tie_goes_away_from_zero(self) -> None:
        self.assertEqual(compute_line_amount(1, "0.125"), Decimal("0.13"))
        self.assertEqual(round2(Decimal("-0.125")), Decimal("-0.13"))

    def test_invalid_inputs_become_zero(self) -> None:
        for bad in (None, "", "abc", float("nan"), float("inf"), -3, True):
            with self.subTest(bad=bad):
                self.assertEqual(compute_line_amount(bad, 10), Decimal("0.00"))
                self.assertEqual(compute_line_amount(2, bad), Decimal("0.00"))

    def test_numeric_strings_accepted(self) -> None:
        self.assertEqual(compute_line_amount(" 3 ", "12.50"), Decimal("37.50"))

    def test_large_values_round_exactly(self) -> None:
        self.assertEqual(compute_line_amount(1e20, 1e10), Decimal("1e30"))
        self.assertEqual(compute_line_amount("123456789012345678901234567.891", 1), Decimal("123456789012345678901234567.89"))

    def test_out_of_range_magnitude_becomes_zero(self) -> None:
        self.assertEqual(compute_line_amount("1e1000000", 2), Decimal("0.00"))


class TotalsTests(unittest.TestCase):
    def test_empty_items_are_all_zero(self) -> None:
        for items in ([], None):
            totals = compute_totals(items, 0.15)
            self.assertEqual(totals.subtotal, Decimal("0"))
            self.assertEqual(totals.tax_amount, Decimal("0"))
            self.assertEqual(totals.total, Decimal("0"))

    def test_zero_rate_total_equals_subtotal(self) -> None:
        items = [{"quantity": 3, "unit_rate": 45.5}, {"quantity": 1, "unit_rate": 9.99}]
        totals = compute_totals(items, 0)
        self.assertEqual(totals.tax_amount, Decimal("0"))
        self.assertEqual(totals.total, totals.subtotal)
        self.assertEqual(totals.subtotal, Decimal("146.49"))

    def test_each_stage_rounded(self) -> None:
        items = [{"qty": 1, "rate": 10.005}, {"qty": 1, "rate": 10.005}]
        totals = compute_totals(items, 0.15)
        self.assertEqual(totals.subtotal, Decimal("20.02"))
        self.assertEqual(totals.tax_amount, Decimal("3.00"))
        self.assertEqual(totals.total, Decimal("23.02"))

    def test_total_is_subtotal_plus_tax(self) -> None:
        cases = [
            [{"qty": 7, "rate": "13.33"}],
            [{"qty": 0.333, "rate": 3}, {"qty": 1.5, "rate": 99.99}],
            [{"qty": 12, "rate": 0.07}] * 9,
        ]
        for items in cases:
            totals = compute_totals(items, "0.15")
            self.assertEqual(totals.total, totals.subtotal + totals.tax_amount)

    def test_repeat_calls_identical(self) -> None:
        items = [{"qty": 2.5, "rate": 19.99}, {"qty": 4, "rate": 0.01}]
        self.assertEqual(compute_totals(items, 0.15), compute_totals(items, 0.15))

    def test_accepts_line_items_and_objects(self) -> None:
        items = [
            LineItem(description="Labour", quantity=Decimal("2"), unit_rate=Decimal("80")),
            SimpleNamespace(qty=1, rate=40),
        ]
        totals = compute_totals(items, 0.15)
        self.assertEqual(totals.subtotal, Decimal("200.00"))
        self.assertEqual(totals.tax_amount, Decimal("30.00"))
        self.assertEqual(totals.total, Decimal("230.00"))

    def test_negative_tax_rate_treated_as_untaxed(self) -> None:
        totals = compute_totals([{"qty": 1, "rate": 100}], -0.15)
        self.assertEqual(totals.total, Decimal("100.00"))

    def test_large_quantities_do_not_raise(self) -> None:
        totals = compute_totals([{"qty": "1e27", "rate": "1"}], 0.15)
        self.assertEqual(totals.subtotal, Decimal("1e27"))
        self.assertEqual(totals.tax_amount, Decimal("1.5e26"))
        self.assertEqual(totals.total, Decimal("1.15e27"))

        totals = compute_totals([{"qty": "999999999999999999999999999.99", "rate": 1}] * 2, "0.15")
        self.assertEqual(totals.subtotal, Decimal("1999999999999999999999999999.98"))
        self.assertEqual(totals.total, Decimal("2299999999999999999999999999.98"))

    def test_as_dict_returns_floats(self) -> None:
        totals = compute_totals([{"qty": 1, "rate": 100}], 0.15)
        self.assertEqual(totals.as_dict(), {"subtotal": 100.0, "tax_amount": 15.0, "total": 115.0})


class RateHelperTests(unittest.TestCase):
    def test_percent_to_rate(self) -> None:
        self.assertEqual(percent_to_rate(15), Decimal("0.15"))

    def test_acc_estimate(self) -> None:
        self.assertEqual(compute_acc_estimate(1000, 1.39), Decimal("13.90"))

    def test_line_item_amount_handles_large_values(self) -> None:
        item = LineItem(description="Bulk", quantity=Decimal("1e20"), unit_rate=Decimal("1e10"))
        self.assertEqual(item.amount, Decimal("1e30"))

    def test_default_rate_from_environment(self) -> None:
        with mock.patch.dict(os.environ, {"TRADEDOCS_GST_RATE": "0.1"}):
            self.assertEqual(default_tax_rate(), Decimal("0.1"))
        with mock.patch.dict(os.environ, {"TRADEDOCS_GST_RATE": ""}):
            self.assertEqual(default_tax_rate(), Decimal("0.15"))


if __name__ == "__main__":
    unittest.main()
