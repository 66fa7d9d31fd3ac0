# ================================
# REPORT TESTS (test_reports.py)
# ================================

import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.models.business import Customer, Invoice, InvoiceLineItem, Expense
from app.services.report_service import ReportService
from app.utils.invoice_utils import apply_totals
from conftest import API

AS_OF = date(2025, 6, 30)


def _invoice(db, customer, number, due_date, status="Unpaid", amount="100.00", tax_rate=0, invoice_date=None):
    invoice = Invoice(
        invoice_number=number,
        customer_id=customer.id,
        invoice_date=invoice_date or due_date - timedelta(days=30),
        due_date=due_date,
        tax_rate=tax_rate,
        status=status,
    )
    invoice.line_items = [InvoiceLineItem(description="Work", quantity=1, unit_price=Decimal(amount), line_total=0, position=0)]
    apply_totals(invoice)
    db.add(invoice)
    db.flush()
    return invoice


@pytest.fixture
def book(db_session):
    """Two customers, a spread of open invoices, one paid, one draft and some expenses"""
    acme = Customer(name="Acme", email="acme@example.com")
    bravo = Customer(name="Bravo")
    db_session.add_all([acme, bravo])
    db_session.flush()

    _invoice(db_session, acme, "INV-2025-0001", AS_OF + timedelta(days=5), amount="100.00")
    _invoice(db_session, acme, "INV-2025-0002", AS_OF - timedelta(days=10), amount="200.00")
    _invoice(db_session, acme, "INV-2025-0003", AS_OF - timedelta(days=45), status="Overdue", amount="300.00")
    _invoice(db_session, bravo, "INV-2025-0004", AS_OF - timedelta(days=75), amount="400.00")
    _invoice(db_session, bravo, "INV-2025-0005", AS_OF - timedelta(days=120), status="Overdue", amount="500.00")
    paid = _invoice(db_session, bravo, "INV-2025-0006", AS_OF - timedelta(days=20), status="Paid",
                    amount="1000.00", tax_rate=10)
    _invoice(db_session, acme, "INV-2025-0007", AS_OF - timedelta(days=200), status="Draft", amount="9999.00")

    db_session.add_all([
        Expense(vendor="Paint Depot", description="Paint", amount=Decimal("150.00"), expense_date=date(2025, 3, 1),
                category="materials", invoice_id=paid.id),
        Expense(vendor="Gas", description="Fuel", amount=Decimal("50.00"), expense_date=date(2025, 3, 2), category="fuel"),
        Expense(vendor="Old", description="Last year", amount=Decimal("70.00"), expense_date=date(2024, 12, 31),
                category="other"),
    ])
    db_session.commit()
    return {"acme": acme, "bravo": bravo}


class TestAging:

    def test_buckets(self, db_session, book):
        report = ReportService.invoice_aging(db_session, today=AS_OF)
        buckets = {bucket["bucket"]: bucket for bucket in report["buckets"]}

        assert [bucket["bucket"] for bucket in report["buckets"]] == ["current", "1-30", "31-60", "61-90", "90+"]
        assert buckets["current"]["amount"] == 100.00
        assert buckets["1-30"]["amount"] == 200.00
        assert buckets["31-60"]["amount"] == 300.00
        assert buckets["61-90"]["amount"] == 400.00
        assert buckets["90+"]["amount"] == 500.00
        assert buckets["90+"]["invoices"][0]["days_overdue"] == 120

        # Paid and Draft invoices are not outstanding
        assert report["total_outstanding"] == 1500.00
        assert sum(bucket["count"] for bucket in report["buckets"]) == 5


class TestSummary:

    def test_revenue_excludes_drafts(self, db_session, book):
        summary = ReportService.summary(db_session, date(2025, 1, 1), date(2025, 12, 31))

        assert summary["total_invoices"] == 6
        assert summary["total_revenue"] == 2600.00
        assert summary["paid_revenue"] == 1100.00
        assert summary["outstanding_amount"] == 1500.00
        assert summary["unpaid_invoices_count"] == 5
        assert summary["total_expenses"] == 200.00
        assert summary["total_profit"] == 2400.00
        assert summary["avg_revenue_per_invoice"] == 433.33

    def test_empty_period(self, db_session):
        summary = ReportService.summary(db_session, date(2020, 1, 1), date(2020, 12, 31))
        assert summary["total_revenue"] == 0
        assert summary["avg_revenue_per_invoice"] == 0

    def test_monthly_has_twelve_months(self, db_session, book):
        report = ReportService.monthly(db_session, today=AS_OF)
        months = report["months"]

        assert len(months) == 12
        assert months[0]["month"] == "2024-07"
        assert months[-1]["month"] == "2025-06"
        march = next(m for m in months if m["month"] == "2025-03")
        assert march["expenses"] == 200.00


class TestCustomerReports:

    def test_top_customers(self, db_session, book):
        customers = ReportService.top_customers(db_session, limit=1)["customers"]
        assert [c["name"] for c in customers] == ["Bravo"]
        assert customers[0]["total_revenue"] == 2000.00

    def test_profitability_uses_linked_expenses(self, db_session, book):
        rows = {row["name"]: row for row in ReportService.customer_profitability(db_session)["customers"]}

        assert rows["Bravo"]["revenue"] == 2000.00
        assert rows["Bravo"]["expenses"] == 150.00
        assert rows["Bravo"]["profit"] == 1850.00
        assert rows["Bravo"]["margin_percent"] == 92.50
        assert rows["Acme"]["expenses"] == 0

    def test_expense_breakdown(self, db_session, book):
        report = ReportService.expense_breakdown(db_session, date(2025, 1, 1), date(2025, 12, 31))
        assert report["total"] == 200.00
        assert [c["category"] for c in report["categories"]] == ["materials", "fuel"]


class TestReportApi:

    def test_summary_endpoint(self, client, auth_headers, book):
        response = client.get(f"{API}/reports/summary", headers=auth_headers, params={
            "date_from": "2025-01-01", "date_to": "2025-12-31"
        })
        assert response.status_code == 200
        assert response.json()["total_revenue"] == 2600.00

    def test_rejects_inverted_period(self, client, auth_headers):
        response = client.get(f"{API}/reports/summary", headers=auth_headers, params={
            "date_from": "2025-12-31", "date_to": "2025-01-01"
        })
        assert response.status_code == 400

    def test_aging_endpoint(self, client, auth_headers, book):
        response = client.get(f"{API}/reports/aging", headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()["buckets"]) == 5

    def test_csv_export(self, client, auth_headers, book):
        response = client.get(f"{API}/reports/export", headers=auth_headers, params={
            "date_from": "2025-01-01", "date_to": "2025-12-31"
        })
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]

        lines = response.text.splitlines()
        assert lines[0] == "Metric,Value"
        assert "Total revenue,2600.00" in lines
        assert "Month,Revenue,Expenses,Profit,Invoices" in lines
