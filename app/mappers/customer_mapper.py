"""
Customer Mapper Module
Handles conversion of Customer ORM objects to response dictionaries
"""
from typing import Dict, Any, List

from app.models.business import Customer
from app.mappers.media_mapper import map_photo
from app.mappers.property_mapper import map_property_to_response
from app.schemas.business import CustomerNoteResponse


def map_customer_to_response(customer: Customer, invoice_count: int = 0) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "email": customer.email,
        "phone": customer.phone,
        "billing_address": customer.billing_address,
        "property_count": len(customer.properties),
        "invoice_count": invoice_count,
        "created_at": customer.created_at,
        "updated_at": customer.updated_at,
    }


def map_customer_to_detail(
    customer: Customer,
    invoice_count: int,
    recent_invoices: List[Dict[str, Any]],
    include_archived_notes: bool = False
) -> Dict[str, Any]:
    """Customer with properties, latest invoices, notes and photos"""
    data = map_customer_to_response(customer, invoice_count)
    data.update({
        "properties": [map_property_to_response(prop) for prop in customer.properties],
        "recent_invoices": recent_invoices,
        "notes": [
            CustomerNoteResponse.model_validate(note) for note in customer.notes
            if include_archived_notes or not note.is_archived
        ],
        "photos": [map_photo(photo) for photo in customer.photos],
    })
    return data
