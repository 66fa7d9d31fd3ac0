# ================================
# REPORT SERVICE (services/report_service.py)
# ================================

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, Dict, Any, List, Tuple
from datetime import date
from decimal import Decimal
from dateutil.relativedelta import relativedelta
import csv
import io
import logging

from app.models.business import Invoice, Expense, Customer, InvoiceStatus
from app.utils.invoice_utils import money, to_decimal, days_overdue, OPEN_STATUSES

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# (label, lower bound, upper bound) in days past due; None = open ended
AGING_BUCKETS = [
    ("current", None, 0),
    ("1-30", 1, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("90+", 91, None),
]

def _period(date_from: Optional[date], date_to: Optional[date]) -> Tuple[date, date]:
    """Defaults to the current calendar year"""
    today = date.today()
    start = date_from or date(today.year, 1, 1)
    end = date_to or date(today.year, 12, 31)
    return start, end

def _revenue_filter(query):
    """Drafts are not billed yet and never count as revenue"""
    return query.filter(Invoice.status != InvoiceStatus.DRAFT.value)

def _aging_bucket(overdue_days: int) -> str:
    for label, low, high in AGING_BUCKETS:
        if (low is None or overdue_days >= low) and (high is None or overdue_days <= high):
            return label
    return AGING_BUCKETS[-1][0]

class ReportService:
    """Business reports; every amount is a real grand total"""

    @staticmethod
    def summary(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        start, end = _period(date_from, date_to)

        invoices = _revenue_filter(db.query(Invoice.status, Invoice.grand_total)).filter(
            Invoice.invoice_date >= start,
            Invoice.invoice_date <= end
        ).all()

        total_revenue = money(sum((to_decimal(total) for _, total in invoices), ZERO))
        paid_revenue = money(sum(
            (to_decimal(total) for status, total in invoices if status == InvoiceStatus.PAID.value), ZERO
        ))
        outstanding = money(sum(
            (to_decimal(total) for status, total in invoices if status in OPEN_STATUSES), ZERO
        ))
        unpaid_count = sum(1 for status, _ in invoices if status in OPEN_STATUSES)

        total_expenses = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
            Expense.expense_date >= start,
            Expense.expense_date <= end
        ).scalar()
        total_expenses = money(total_expenses)

        total_invoices = len(invoices)
        avg_revenue = money(total_revenue / total_invoices) if total_invoices else ZERO

        return {
            "period": {"date_from": start, "date_to": end},
            "total_invoices": total_invoices,
            "total_revenue": float(total_revenue),
            "paid_revenue": float(paid_revenue),
            "outstanding_amount": float(outstanding),
            "total_expenses": float(total_expenses),
            "total_profit": float(total_revenue - total_expenses),
            "avg_revenue_per_invoice": float(avg_revenue),
            "unpaid_invoices_count": unpaid_count,
        }

    @staticmethod
    def monthly(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
        """The last 12 months including the current one; empty months report zeros"""
        today = today or date.today()
        first_month = date(today.year, today.month, 1) - relativedelta(months=11)
        end = date(today.year, today.month, 1) + relativedelta(months=1, days=-1)

        months: Dict[str, Dict[str, Any]] = {}
        for offset in range(12):
            key = (first_month + relativedelta(months=offset)).strftime("%Y-%m")
            months[key] = {"month": key, "revenue": ZERO, "expenses": ZERO, "invoice_count": 0}

        invoice_rows = _revenue_filter(db.query(Invoice.invoice_date, Invoice.grand_total)).filter(
            Invoice.invoice_date >= first_month,
            Invoice.invoice_date <= end
        ).all()
        for invoice_date, total in invoice_rows:
            bucket = months.get(invoice_date.strftime("%Y-%m"))
            if bucket:
                bucket["revenue"] += to_decimal(total)
                bucket["invoice_count"] += 1

        expense_rows = db.query(Expense.expense_date, Expense.amount).filter(
            Expense.expense_date >= first_month,
            Expense.expense_date <= end
        ).all()
        for expense_date, amount in expense_rows:
            bucket = months.get(expense_date.strftime("%Y-%m"))
            if bucket:
                bucket["expenses"] += to_decimal(amount)

        return {
            "months": [
                {
                    "month": data["month"],
                    "revenue": float(money(data["revenue"])),
                    "expenses": float(money(data["expenses"])),
                    "profit": float(money(data["revenue"] - data["expenses"])),
                    "invoice_count": data["invoice_count"],
                }
                for data in months.values()
            ]
        }

    @staticmethod
    def top_customers(db: Session, limit: int = 5) -> Dict[str, Any]:
        """Customers by revenue; customers without revenue are left out"""
        revenue = func.coalesce(func.sum(Invoice.grand_total), 0)
        rows = _revenue_filter(
            db.query(Customer.id, Customer.name, Customer.email, func.count(Invoice.id), revenue)
            .join(Invoice, Invoice.customer_id == Customer.id)
        ).group_by(Customer.id, Customer.name, Customer.email).order_by(revenue.desc()).all()

        customers = [
            {
                "customer_id": customer_id,
                "name": name,
                "email": email,
                "invoice_count": count,
                "total_revenue": float(money(total)),
            }
            for customer_id, name, email, count, total in rows
            if money(total) > 0
        ]
        return {"customers": customers[:limit]}

    @staticmethod
    def invoice_aging(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
        """Open invoices grouped by days past due"""
        today = today or date.today()

        buckets = {
            label: {"bucket": label, "count": 0, "amount": ZERO, "invoices": []}
            for label, _, _ in AGING_BUCKETS
        }

        open_invoices = db.query(Invoice).filter(
            Invoice.status.in_(OPEN_STATUSES)
        ).order_by(Invoice.due_date.asc()).all()

        total = ZERO
        for invoice in open_invoices:
            overdue_days = days_overdue(invoice.due_date, invoice.status, today)
            bucket = buckets[_aging_bucket(overdue_days)]
            amount = to_decimal(invoice.grand_total)

            bucket["count"] += 1
            bucket["amount"] += amount
            bucket["invoices"].append({
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "customer_name": invoice.customer.name if invoice.customer else None,
                "due_date": invoice.due_date,
                "days_overdue": overdue_days,
                "grand_total": float(money(amount)),
            })
            total += amount

        return {
            "as_of": today,
            "total_outstanding": float(money(total)),
            "buckets": [
                {**bucket, "amount": float(money(bucket["amount"]))}
                for bucket in buckets.values()
            ],
        }

    @staticmethod
    def customer_profitability(db: Session) -> Dict[str, Any]:
        """Revenue against expenses linked through each customer's invoices"""
        revenue_rows = _revenue_filter(
            db.query(Invoice.customer_id, func.count(Invoice.id), func.coalesce(func.sum(Invoice.grand_total), 0))
        ).group_by(Invoice.customer_id).all()
        revenue = {customer_id: (count, money(total)) for customer_id, count, total in revenue_rows}

        expense_rows = db.query(
            Invoice.customer_id, func.coalesce(func.sum(Expense.amount), 0)
        ).join(Invoice, Expense.invoice_id == Invoice.id).group_by(Invoice.customer_id).all()
        expenses = {customer_id: money(total) for customer_id, total in expense_rows}

        results: List[Dict[str, Any]] = []
        for customer in db.query(Customer).order_by(Customer.name.asc()).all():
            count, customer_revenue = revenue.get(customer.id, (0, ZERO))
            customer_expenses = expenses.get(customer.id, ZERO)
            if not count and not customer_expenses:
                continue

            profit = customer_revenue - customer_expenses
            margin = (profit / customer_revenue * 100) if customer_revenue else ZERO
            results.append({
                "customer_id": customer.id,
                "name": customer.name,
                "invoice_count": count,
                "revenue": float(customer_revenue),
                "expenses": float(customer_expenses),
                "profit": float(money(profit)),
                "margin_percent": float(money(margin)),
            })

        results.sort(key=lambda row: row["profit"], reverse=True)
        return {"customers": results}

    @staticmethod
    def expense_breakdown(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        start, end = _period(date_from, date_to)

        rows = db.query(
            Expense.category, func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0)
        ).filter(
            Expense.expense_date >= start,
            Expense.expense_date <= end
        ).group_by(Expense.category).all()

        categories = sorted(
            (
                {"category": category, "count": count, "total": float(money(total))}
                for category, count, total in rows
            ),
            key=lambda row: row["total"],
            reverse=True
        )
        return {
            "period": {"date_from": start, "date_to": end},
            "total": float(money(sum((Decimal(str(row["total"])) for row in categories), ZERO))),
            "categories": categories,
        }

    @staticmethod
    def export_summary_csv(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> str:
        """Summary figures followed by the monthly table"""
        summary = ReportService.summary(db, date_from, date_to)
        monthly = ReportService.monthly(db)

        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow(["Metric", "Value"])
        writer.writerow(["Period start", summary["period"]["date_from"].isoformat()])
        writer.writerow(["Period end", summary["period"]["date_to"].isoformat()])
        writer.writerow(["Total invoices", summary["total_invoices"]])
        writer.writerow(["Total revenue", f"{summary['total_revenue']:.2f}"])
        writer.writerow(["Paid revenue", f"{summary['paid_revenue']:.2f}"])
        writer.writerow(["Outstanding", f"{summary['outstanding_amount']:.2f}"])
        writer.writerow(["Total expenses", f"{summary['total_expenses']:.2f}"])
        writer.writerow(["Profit", f"{summary['total_profit']:.2f}"])
        writer.writerow(["Average revenue per invoice", f"{summary['avg_revenue_per_invoice']:.2f}"])
        writer.writerow(["Unpaid invoices", summary["unpaid_invoices_count"]])
        writer.writerow([])

        writer.writerow(["Month", "Revenue", "Expenses", "Profit", "Invoices"])
        for row in monthly["months"]:
            writer.writerow([
                row["month"],
                f"{row['revenue']:.2f}",
                f"{row['expenses']:.2f}",
                f"{row['profit']:.2f}",
                row["invoice_count"],
            ])

        return output.getvalue()
