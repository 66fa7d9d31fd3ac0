# ================================
# INVOICE UTILITY TESTS (test_invoice_utils.py)
# ================================

import pytest
from datetime import date
from decimal import Decimal

from app.utils.invoice_utils import (
    calculate_line_total,
    calculate_totals,
    calculate_next_run_date,
    format_invoice_number,
    parse_invoice_sequence,
    generate_invoice_number,
    days_overdue,
    is_overdue,
    money,
)
from app.models.business import Customer, Invoice


class TestTotals:

    def test_line_total_rounds_half_up(self):
        assert calculate_line_total("3", "0.335") == Decimal("1.01")
        assert calculate_line_total(1.5, 0.1) == Decimal("0.15")

    def test_totals_with_tax(self):
        items = [
            {"quantity": "2", "unit_price": "50.00"},
            {"quantity": "1", "unit_price": "100.00"},
        ]
        totals = calculate_totals(items, "8.25")

        assert totals["subtotal"] == Decimal("200.00")
        assert totals["tax_amount"] == Decimal("16.50")
        assert totals["grand_total"] == Decimal("216.50")

    def test_totals_without_items(self):
        totals = calculate_totals([], 10)
        assert totals == {
            "subtotal": Decimal("0.00"),
            "tax_amount": Decimal("0.00"),
            "grand_total": Decimal("0.00"),
        }

    def test_money_accepts_none(self):
        assert money(None) == Decimal("0.00")


class TestInvoiceNumbers:

    def test_format_and_parse(self):
        assert format_invoice_number(2025, 7) == "INV-2025-0007"
        assert parse_invoice_sequence("INV-2025-0007") == 7
        assert parse_invoice_sequence("LEGACY") is None

    def test_sequence_continues_from_highest(self, db_session):
        customer = Customer(name="Acme")
        db_session.add(customer)
        db_session.flush()
        for number in ("INV-2025-0001", "INV-2025-0009", "INV-2024-0042", "CUSTOM-7"):
            db_session.add(Invoice(
                invoice_number=number,
                customer_id=customer.id,
                invoice_date=date(2025, 1, 1),
                due_date=date(2025, 1, 31),
                tax_rate=0,
                status="Unpaid",
                subtotal=0,
                tax_amount=0,
                grand_total=0
            ))
        db_session.flush()

        assert generate_invoice_number(db_session, 2025) == "INV-2025-0010"
        assert generate_invoice_number(db_session, 2026) == "INV-2026-0001"


class TestRecurrence:

    @pytest.mark.parametrize("frequency, expected", [
        ("WEEKLY", date(2025, 1, 22)),
        ("MONTHLY", date(2025, 2, 15)),
        ("QUARTERLY", date(2025, 4, 15)),
        ("YEARLY", date(2026, 1, 15)),
    ])
    def test_next_run_date(self, frequency, expected):
        assert calculate_next_run_date(date(2025, 1, 15), frequency) == expected

    def test_month_end_is_clamped(self):
        assert calculate_next_run_date(date(2025, 1, 31), "MONTHLY") == date(2025, 2, 28)
        assert calculate_next_run_date(date(2024, 1, 31), "MONTHLY") == date(2024, 2, 29)
        assert calculate_next_run_date(date(2024, 2, 29), "YEARLY") == date(2025, 2, 28)

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            calculate_next_run_date(date(2025, 1, 1), "DAILY")


class TestOverdue:

    def test_open_invoice_past_due(self):
        assert days_overdue(date(2025, 1, 1), "Unpaid", today=date(2025, 1, 11)) == 10
        assert is_overdue(date(2025, 1, 1), "Overdue", today=date(2025, 1, 2))

    def test_paid_and_draft_are_never_overdue(self):
        assert days_overdue(date(2025, 1, 1), "Paid", today=date(2025, 3, 1)) == 0
        assert days_overdue(date(2025, 1, 1), "Draft", today=date(2025, 3, 1)) == 0

    def test_due_today_is_not_overdue(self):
        assert not is_overdue(date(2025, 1, 1), "Unpaid", today=date(2025, 1, 1))
