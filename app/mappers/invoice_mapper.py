"""
Invoice Mapper Module
Handles conversion of Invoice ORM objects to response dictionaries
"""
from typing import Dict, Any, Optional
from datetime import date

from app.models.business import Invoice
from app.utils.invoice_utils import days_overdue
from app.mappers.media_mapper import map_photo


def map_invoice_to_list_item(invoice: Invoice, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Map an Invoice ORM object to the InvoiceListItem response format

    Args:
        invoice: Invoice ORM object with customer and property loaded
        today: reference date for the overdue flag (default: today)

    Returns:
        Dictionary matching InvoiceListItem schema
    """
    overdue_days = days_overdue(invoice.due_date, invoice.status, today)

    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer_id": invoice.customer_id,
        "customer_name": invoice.customer.name if invoice.customer else None,
        "property_id": invoice.property_id,
        "property_name": invoice.property.name if invoice.property else None,
        "invoice_date": invoice.invoice_date,
        "due_date": invoice.due_date,
        "payment_date": invoice.payment_date,
        "status": invoice.status,
        "tax_rate": float(invoice.tax_rate or 0),
        "subtotal": float(invoice.subtotal or 0),
        "tax_amount": float(invoice.tax_amount or 0),
        "grand_total": float(invoice.grand_total or 0),
        "is_overdue": overdue_days > 0,
        "days_overdue": overdue_days,
    }


def map_invoice_to_response(invoice: Invoice, today: Optional[date] = None) -> Dict[str, Any]:
    """Full invoice detail including line items, photos and party summaries"""
    data = map_invoice_to_list_item(invoice, today)

    customer = invoice.customer
    prop = invoice.property

    data.update({
        "sent_date": invoice.sent_date,
        "notes": invoice.notes,
        "recurring_template_id": invoice.recurring_template_id,
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "phone": customer.phone,
        } if customer else None,
        "property": {
            "id": prop.id,
            "name": prop.name,
            "address": prop.address,
            "city": prop.city,
            "state": prop.state,
        } if prop else None,
        "line_items": [
            {
                "id": item.id,
                "description": item.description,
                "quantity": float(item.quantity),
                "unit_price": float(item.unit_price),
                "line_total": float(item.line_total),
                "position": item.position,
            }
            for item in invoice.line_items
        ],
        "photos": [map_photo(photo) for photo in invoice.photos],
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
    })
    return data


def map_invoice_to_email_data(invoice: Invoice) -> Dict[str, Any]:
    """Template variables for the invoice email"""
    return {
        "invoice_number": invoice.invoice_number,
        "customer_name": invoice.customer.name,
        "invoice_date": invoice.invoice_date.strftime("%m/%d/%Y"),
        "due_date": invoice.due_date.strftime("%m/%d/%Y"),
        "grand_total": f"{float(invoice.grand_total or 0):,.2f}",
        "notes": invoice.notes,
    }
