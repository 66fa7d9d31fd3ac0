# ================================
# REPORT SCHEMAS (schemas/reports.py)
# ================================

from pydantic import Field
from typing import Optional, List
from datetime import date
from uuid import UUID

from app.schemas.base import BaseSchema

class ReportPeriod(BaseSchema):
    date_from: date
    date_to: date

class SummaryReport(BaseSchema):
    period: ReportPeriod
    total_invoices: int
    total_revenue: float
    paid_revenue: float
    outstanding_amount: float
    total_expenses: float
    total_profit: float
    avg_revenue_per_invoice: float
    unpaid_invoices_count: int

class MonthlyDataPoint(BaseSchema):
    month: str = Field(..., description="YYYY-MM")
    revenue: float
    expenses: float
    profit: float
    invoice_count: int

class MonthlyReport(BaseSchema):
    months: List[MonthlyDataPoint]

class TopCustomer(BaseSchema):
    customer_id: UUID
    name: str
    email: Optional[str] = None
    invoice_count: int
    total_revenue: float

class TopCustomersReport(BaseSchema):
    customers: List[TopCustomer]

class AgingInvoice(BaseSchema):
    id: UUID
    invoice_number: str
    customer_name: Optional[str] = None
    due_date: date
    days_overdue: int
    grand_total: float

class AgingBucket(BaseSchema):
    bucket: str
    count: int
    amount: float
    invoices: List[AgingInvoice] = []

class InvoiceAgingReport(BaseSchema):
    as_of: date
    total_outstanding: float
    buckets: List[AgingBucket]

class CustomerProfitability(BaseSchema):
    customer_id: UUID
    name: str
    invoice_count: int
    revenue: float
    expenses: float
    profit: float
    margin_percent: float

class CustomerProfitabilityReport(BaseSchema):
    customers: List[CustomerProfitability]

class ExpenseCategoryTotal(BaseSchema):
    category: str
    count: int
    total: float

class ExpenseBreakdownReport(BaseSchema):
    period: ReportPeriod
    total: float
    categories: List[ExpenseCategoryTotal]
