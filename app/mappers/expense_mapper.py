"""
Expense & Recurring Template Mapper Module
"""
from typing import Dict, Any

from app.models.business import Expense, RecurringTemplate
from app.services.storage_service import get_storage_service


def map_expense_to_response(expense: Expense) -> Dict[str, Any]:
    return {
        "id": expense.id,
        "vendor": expense.vendor,
        "description": expense.description,
        "amount": float(expense.amount),
        "expense_date": expense.expense_date,
        "category": expense.category,
        "invoice_id": expense.invoice_id,
        "invoice_number": expense.invoice.invoice_number if expense.invoice else None,
        "has_receipt": bool(expense.receipt_path),
        "receipt_url": get_storage_service().public_url(expense.receipt_path) if expense.receipt_path else None,
        "parsed_data": expense.parsed_data,
        "created_at": expense.created_at,
        "updated_at": expense.updated_at,
    }


def map_template_to_response(template: RecurringTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "customer_id": template.customer_id,
        "customer_name": template.customer.name if template.customer else None,
        "template_name": template.template_name,
        "base_invoice_data": template.base_invoice_data or {},
        "tax_rate": float(template.tax_rate or 0),
        "frequency": template.frequency,
        "start_date": template.start_date,
        "end_date": template.end_date,
        "occurrences": template.occurrences,
        "next_run_date": template.next_run_date,
        "is_active": template.is_active,
        "completed_occurrences": template.completed_occurrences,
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }
