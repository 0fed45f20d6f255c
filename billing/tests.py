import datetime
from decimal import Decimal

from django.test import SimpleTestCase

from billing.formatting import amount_in_words, format_currency
from billing.ledger import INITIAL_PAYMENT_DESCRIPTION, build_ledger, ledger_summary
from billing.pricing import InvoiceType, apply_invoice_type, default_tax_rate, price_line, price_per_piece_from_box
from billing.quantity import Quantity, format_quantity, from_base_units, normalize, to_base_units
from billing.stock import availability_status, available, available_pieces, is_below_threshold
from billing.totals import aggregate, payment_summary, price_invoice
from billing.validation import (
    validate_discount,
    validate_exchange_items,
    validate_invoice_items,
    validate_payment,
    validate_quantity,
    validate_return_items,
)

EPSILON = Decimal("0.000000001")


class QuantityTests(SimpleTestCase):
    def test_round_trip_through_base_units(self):
        for pieces_per_box in (1, 2, 4, 5, 6, 9):
            for total in (0, 1, 7, 36, 1001):
                quantity = from_base_units(total, pieces_per_box)
                self.assertEqual(to_base_units(quantity, pieces_per_box), total)
                self.assertLess(quantity.pieces, pieces_per_box)

    def test_conversion_is_total_for_bad_pieces_per_box(self):
        self.assertEqual(to_base_units({"boxes": 2, "pieces": 1}, None), 3)
        self.assertEqual(to_base_units({"boxes": 2, "pieces": 1}, 0), 3)
        self.assertEqual(from_base_units(7, "abc"), Quantity(boxes=7, pieces=0))

    def test_non_numeric_parts_coerce_to_zero(self):
        self.assertEqual(Quantity.coerce({"boxes": "x", "pieces": "3.7"}), Quantity(boxes=0, pieces=3))
        self.assertEqual(Quantity.coerce(None), Quantity())

    def test_normalize_carries_pieces(self):
        self.assertEqual(normalize({"boxes": 1, "pieces": 9}, 4), Quantity(boxes=3, pieces=1))

    def test_format_quantity(self):
        self.assertEqual(format_quantity(Quantity(0, 0)), "0")
        self.assertEqual(format_quantity(Quantity(0, 3)), "3 pc")
        self.assertEqual(format_quantity(Quantity(2, 0)), "2 bx")
        self.assertEqual(format_quantity({"boxes": 2, "pieces": 3}), "2 bx, 3 pc")


class AvailabilityTests(SimpleTestCase):
    def _product(self, **overrides):
        product = {
            "pieces_per_box": 4,
            "stock": {"boxes": 10, "pieces": 0},
            "sales": {"boxes": 2, "pieces": 2},
            "damage": {"boxes": 0, "pieces": 0},
            "returns": {"boxes": 0, "pieces": 0},
        }
        product.update(overrides)
        return product

    def test_available_example(self):
        self.assertEqual(available(self._product()), Quantity(boxes=7, pieces=2))
        self.assertEqual(available_pieces(self._product()), 30)

    def test_returns_add_back(self):
        product = self._product(returns={"boxes": 0, "pieces": 3})
        self.assertEqual(available(product), Quantity(boxes=8, pieces=1))

    def test_oversold_product_floors_at_zero(self):
        product = self._product(sales={"boxes": 9, "pieces": 0}, damage={"boxes": 5, "pieces": 0})
        quantity = available(product)
        self.assertEqual(quantity, Quantity(0, 0))
        self.assertGreaterEqual(quantity.boxes, 0)
        self.assertGreaterEqual(quantity.pieces, 0)

    def test_missing_counters_count_as_zero(self):
        self.assertEqual(available({"pieces_per_box": 4, "stock": {"boxes": 1}}), Quantity(1, 0))

    def test_availability_status(self):
        self.assertEqual(availability_status(0, 4), "out_of_stock")
        self.assertEqual(availability_status(3, 4), "critical")
        self.assertEqual(availability_status(8, 4), "low")
        self.assertEqual(availability_status(12, 4), "good")

    def test_threshold(self):
        product = self._product(low_stock_threshold=7)
        self.assertTrue(is_below_threshold(product))
        self.assertFalse(is_below_threshold(product, 6))


class LinePricerTests(SimpleTestCase):
    def test_non_gst_line(self):
        line = price_line({"quantity": {"boxes": 2, "pieces": 0}, "price_per_box": 100}, InvoiceType.NON_GST)
        self.assertEqual(line.item_total, Decimal("200"))
        self.assertEqual(line.tax_amount, Decimal("0"))

    def test_gst_line_extracts_tax_from_inclusive_price(self):
        line = price_line(
            {"quantity": {"boxes": 1, "pieces": 0}, "price_per_box": 118, "tax_rate": 18},
            "GST",
        )
        self.assertEqual(line.total_price, Decimal("118"))
        self.assertEqual(line.item_total, Decimal("100"))
        self.assertEqual(line.tax_amount, Decimal("18"))

    def test_gst_tax_identity(self):
        for rate in ("5", "12", "18", "28", "7.5"):
            line = price_line(
                {"quantity": {"boxes": 3, "pieces": 1}, "price_per_box": "437.35", "price_per_piece": "109.34", "tax_rate": rate},
                InvoiceType.GST,
            )
            rebuilt = line.item_total * (1 + Decimal(rate) / 100)
            self.assertLess(abs(rebuilt - line.total_price), EPSILON)

    def test_gst_invoice_with_zero_rate_carries_no_tax(self):
        line = price_line({"quantity": {"boxes": 1}, "price_per_box": 50, "tax_rate": 0}, "GST")
        self.assertEqual(line.item_total, Decimal("50"))
        self.assertEqual(line.tax_amount, Decimal("0"))

    def test_pieces_priced_separately(self):
        line = price_line(
            {"quantity": {"boxes": 1, "pieces": 2}, "price_per_box": 400, "price_per_piece": 90},
            "NON_GST",
        )
        self.assertEqual(line.total_price, Decimal("580"))

    def test_custom_item_ignores_boxes(self):
        line = price_line(
            {"is_custom": True, "quantity": {"boxes": 5, "pieces": 3}, "price_per_box": 999, "price_per_piece": 25},
            "NON_GST",
        )
        self.assertEqual(line.total_price, Decimal("75"))

    def test_invalid_numbers_fail_soft(self):
        line = price_line(
            {"quantity": {"boxes": "two", "pieces": None}, "price_per_box": "abc", "tax_rate": "x"},
            "GST",
        )
        self.assertEqual(line.total_price, Decimal("0"))
        self.assertEqual(line.tax_amount, Decimal("0"))

    def test_defaults(self):
        self.assertEqual(default_tax_rate("GST"), Decimal("18"))
        self.assertEqual(default_tax_rate("NON_GST"), Decimal("0"))
        self.assertEqual(price_per_piece_from_box("100", 4), Decimal("25"))

    def test_switch_to_gst_resets_zero_rates_only(self):
        items = [{"tax_rate": 0}, {"tax_rate": 12}]
        self.assertEqual([item["tax_rate"] for item in apply_invoice_type(items, "GST")], [Decimal("18"), 12])
        self.assertEqual([item["tax_rate"] for item in apply_invoice_type(items, "NON_GST")], [0, 12])
        self.assertEqual(items[0]["tax_rate"], 0)


class TotalsTests(SimpleTestCase):
    def test_non_gst_example(self):
        _, totals = price_invoice([{"quantity": {"boxes": 2}, "price_per_box": 100}], "NON_GST", 0)
        self.assertEqual(totals.subtotal, Decimal("200"))
        self.assertEqual(totals.final_amount, Decimal("200"))
        self.assertEqual(totals.round_off_amount, Decimal("0"))

    def test_gst_example_splits_tax(self):
        _, totals = price_invoice(
            [{"quantity": {"boxes": 1}, "price_per_box": 118, "tax_rate": 18}], InvoiceType.GST, 0
        )
        self.assertEqual(totals.subtotal, Decimal("100"))
        self.assertEqual(totals.total_tax, Decimal("18"))
        self.assertEqual(totals.cgst, Decimal("9"))
        self.assertEqual(totals.sgst, Decimal("9"))
        self.assertEqual(totals.igst, Decimal("0"))
        self.assertEqual(totals.final_amount, Decimal("118"))

    def test_round_off_is_signed(self):
        totals = aggregate([{"item_total": "100.40", "tax_amount": 0}], 0)
        self.assertEqual(totals.final_amount, Decimal("100"))
        self.assertEqual(totals.round_off_amount, Decimal("-0.40"))

        totals = aggregate([{"item_total": "100.50", "tax_amount": 0}], 0)
        self.assertEqual(totals.final_amount, Decimal("101"))
        self.assertEqual(totals.round_off_amount, Decimal("0.50"))

    def test_totals_identity_holds(self):
        items = [
            {"quantity": {"boxes": 3, "pieces": 1}, "price_per_box": "437.35", "price_per_piece": "109.34", "tax_rate": 18},
            {"quantity": {"boxes": 0, "pieces": 7}, "price_per_piece": "33.33", "tax_rate": 12, "is_custom": True},
            {"quantity": {"boxes": 11}, "price_per_box": "61.9", "tax_rate": 5},
        ]
        for discount in ("0", "13.37", "250", "0.49"):
            for invoice_type in ("GST", "NON_GST"):
                _, totals = price_invoice(items, invoice_type, discount)
                expected = totals.subtotal + totals.total_tax - Decimal(discount)
                self.assertLess(abs((totals.final_amount - totals.round_off_amount) - expected), EPSILON)

    def test_empty_invoice(self):
        totals = aggregate([], 0)
        self.assertEqual(totals.final_amount, Decimal("0"))

    def test_payment_summary(self):
        self.assertEqual(payment_summary(118, 0).status, "PENDING")
        self.assertEqual(payment_summary(118, 18).status, "PARTIAL")
        self.assertEqual(payment_summary(118, 118).status, "PAID")
        summary = payment_summary(118, 18)
        self.assertEqual(summary.total_paid + summary.pending_amount, Decimal("118"))


class LedgerTests(SimpleTestCase):
    def setUp(self):
        self.invoices = [
            {
                "id": 1,
                "invoice_number": "HT-1",
                "invoice_date": datetime.date(2024, 1, 5),
                "final_amount": 1000,
                "discount": 50,
                "initial_payment": 200,
            },
            {
                "id": 2,
                "invoice_number": "HT-2",
                "invoice_date": datetime.date(2024, 2, 1),
                "final_amount": 500,
                "discount": 0,
                "initial_payment": 0,
            },
        ]
        self.payments = [
            {"invoice_id": 1, "invoice_number": "HT-1", "amount": 300, "payment_method": "UPI", "payment_date": datetime.date(2024, 1, 20)},
        ]
        self.returns = [
            {"invoice_id": 2, "invoice_number": "HT-2", "total_amount": None, "return_value": 100, "return_date": datetime.date(2024, 2, 10)},
        ]

    def test_entries_sorted_with_running_balance(self):
        entries = build_ledger(self.invoices, self.payments, self.returns)

        self.assertEqual([entry.type for entry in entries], ["INVOICE", "PAYMENT", "PAYMENT", "INVOICE", "RETURN"])
        self.assertEqual(entries[1].description, INITIAL_PAYMENT_DESCRIPTION)
        self.assertEqual(entries[2].description, "Payment received via UPI")
        self.assertEqual(entries[4].returns, Decimal("100"))
        self.assertEqual([entry.balance for entry in entries], [950, 750, 450, 950, 850])

    def test_no_initial_payment_entry_when_nothing_paid_at_sale(self):
        entries = build_ledger(self.invoices[1:], [], [])
        self.assertEqual([entry.type for entry in entries], ["INVOICE"])

    def test_same_day_entries_keep_insertion_order(self):
        payments = [{"amount": 10, "payment_method": "CASH", "payment_date": datetime.date(2024, 1, 5)}]
        entries = build_ledger(self.invoices[:1], payments, [])
        self.assertEqual(
            [entry.description for entry in entries],
            ["Invoice HT-1", INITIAL_PAYMENT_DESCRIPTION, "Payment received via CASH"],
        )

    def test_date_window_restarts_balance_from_zero(self):
        entries = build_ledger(self.invoices, self.payments, self.returns, date_from="2024-01-20", date_to="2024-02-01")

        self.assertEqual([entry.type for entry in entries], ["PAYMENT", "INVOICE"])
        self.assertEqual(entries[0].balance, Decimal("-300"))
        self.assertEqual(entries[-1].balance, Decimal("200"))

    def test_end_date_includes_whole_day(self):
        payments = [{"amount": 10, "payment_method": "CASH", "payment_date": datetime.datetime(2024, 1, 20, 18, 30)}]
        entries = build_ledger([], payments, [], date_to=datetime.date(2024, 1, 20))
        self.assertEqual(len(entries), 1)

    def test_closing_balance_conserves_columns(self):
        entries = build_ledger(self.invoices, self.payments, self.returns)
        summary = ledger_summary(entries)
        expected = summary["total_sales"] - summary["total_discount"] - summary["total_payment"] - summary["total_returns"]
        self.assertEqual(summary["closing_balance"], expected)

    def test_empty_ledger_summary(self):
        self.assertEqual(ledger_summary([])["closing_balance"], Decimal("0"))


class ValidationTests(SimpleTestCase):
    def test_validate_quantity(self):
        self.assertEqual(validate_quantity(4, 10), [])
        self.assertIn("negative", validate_quantity(-1, 10)[0]["message"])
        self.assertEqual(validate_quantity(0, 10, "damage")[0]["message"], "Must damage at least 1 piece")
        self.assertEqual(validate_quantity(-2, 10, "return")[0]["message"], "Cannot return negative quantity")
        self.assertEqual(
            validate_quantity(11, 10)[0]["message"], "Insufficient quantity. Available: 10 pc, Needed: 11 pc"
        )

    def test_invoice_items(self):
        self.assertEqual(validate_invoice_items([])[0]["field"], "items")
        self.assertEqual(
            validate_invoice_items([{"quantity": {"boxes": 1}, "pieces_per_box": 4, "price_per_box": 10}]), []
        )
        problems = validate_invoice_items(
            [
                {"quantity": {"boxes": 0, "pieces": 4}, "pieces_per_box": 4, "price_per_box": 10},
                {"is_custom": True, "quantity": {"pieces": 2}, "price_per_piece": 0},
                {"quantity": {"boxes": 1}, "pieces_per_box": 4, "tax_rate": 120},
            ]
        )
        self.assertEqual(
            [problem["field"] for problem in problems],
            ["items[0].quantity", "items[1].price_per_piece", "items[2].tax_rate"],
        )

    def test_validators_do_not_raise_on_garbage(self):
        self.assertTrue(validate_invoice_items([{"quantity": "nonsense", "price_per_box": "abc"}]))

    def test_discount(self):
        _, totals = price_invoice([{"quantity": {"boxes": 1}, "price_per_box": 100}], "NON_GST")
        self.assertEqual(validate_discount(10, totals), [])
        self.assertTrue(validate_discount(-1, totals))
        self.assertTrue(validate_discount(101, totals))

    def test_return_items(self):
        item = {"product_name": "Glossy", "pieces_per_box": 4, "returnable_quantity": {"boxes": 1, "pieces": 0}}
        self.assertEqual(validate_return_items([{**item, "return_quantity": {"boxes": 0, "pieces": 4}}]), [])
        self.assertIn(
            "exceeds invoice quantity",
            validate_return_items([{**item, "return_quantity": {"boxes": 1, "pieces": 1}}])[0]["message"],
        )
        self.assertTrue(validate_return_items([{**item, "return_quantity": {"boxes": 0, "pieces": 0}}]))
        self.assertTrue(validate_return_items([]))

    def test_exchange_items(self):
        self.assertTrue(validate_exchange_items([]))
        self.assertTrue(validate_exchange_items([{"quantity": {"boxes": 0}, "pieces_per_box": 4}]))
        self.assertEqual(validate_exchange_items([{"quantity": {"boxes": 1}, "pieces_per_box": 4}]), [])

    def test_payment(self):
        self.assertEqual(validate_payment("50", 100), [])
        self.assertTrue(validate_payment(0, 100))
        self.assertTrue(validate_payment(150, 100))


class FormattingTests(SimpleTestCase):
    def test_currency(self):
        self.assertEqual(format_currency(Decimal("1234.5")), "₹1234.50")
        self.assertEqual(format_currency(0), "₹0.00")
        self.assertEqual(format_currency("-12"), "-₹12.00")

    def test_amount_in_words(self):
        self.assertEqual(amount_in_words(0), "Zero")
        self.assertEqual(amount_in_words(118), "One Hundred Eighteen Only")
        self.assertEqual(amount_in_words(Decimal("1500.75")), "One Thousand Five Hundred Only")
        self.assertEqual(amount_in_words(2534000), "Twenty Five Lakh Thirty Four Thousand Only")
        self.assertEqual(amount_in_words(120000000), "Twelve Crore Only")


class ExtremeInputTests(SimpleTestCase):
    def test_out_of_range_amounts_count_as_zero(self):
        totals = aggregate([{"item_total": "1e30", "tax_amount": "1e-999999999"}], 0)

        self.assertEqual(totals.final_amount, 0)
        self.assertEqual(totals.total_tax, 0)

    def test_overflowing_price_does_not_raise(self):
        lines, totals = price_invoice(
            [{"quantity": {"boxes": 1}, "price_per_box": "1e999999999"}], InvoiceType.NON_GST
        )

        self.assertEqual(lines[0].total_price, 0)
        self.assertEqual(totals.final_amount, 0)

    def test_largest_accepted_line_prices_to_a_finite_amount(self):
        line = price_line(
            {"quantity": {"boxes": 999_999_999_999_999}, "price_per_box": "999999999999999", "tax_rate": 18},
            InvoiceType.GST,
        )

        self.assertTrue(line.total_price.is_finite())
        self.assertTrue(line.item_total.is_finite())

    def test_many_large_lines_still_round(self):
        totals = aggregate([{"item_total": "999999999999999.5"}] * 1000, 0)

        self.assertEqual(totals.final_amount, Decimal("999999999999999500"))

    def test_format_currency_handles_extreme_values(self):
        self.assertEqual(format_currency("1e27"), "₹0.00")
        self.assertEqual(format_currency(Decimal("-1e999999999")), "₹0.00")
        self.assertEqual(format_currency("999999999999999.999"), "₹1000000000000000.00")
        self.assertEqual(amount_in_words("1e40"), "Zero")

    def test_huge_counts_are_ignored(self):
        self.assertEqual(to_base_units({"boxes": 10**20, "pieces": 3}, 4), 3)
