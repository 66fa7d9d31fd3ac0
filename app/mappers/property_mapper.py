"""
Property Mapper Module
Handles conversion of Property ORM objects to response dictionaries
"""
from typing import Dict, Any, List

from app.models.business import Property
from app.mappers.media_mapper import map_photo
from app.schemas.business import PropertyNoteResponse, ServiceHistoryResponse


def _float_or_none(value):
    return float(value) if value is not None else None


def map_property_to_response(prop: Property) -> Dict[str, Any]:
    """
    Map a Property ORM object to PropertyResponse format

    Args:
        prop: Property ORM object

    Returns:
        Dictionary matching PropertyResponse schema
    """
    return {
        "id": prop.id,
        "customer_id": prop.customer_id,
        "name": prop.name,
        "address": prop.address,
        "city": prop.city,
        "state": prop.state,
        "zip_code": prop.zip_code,
        "latitude": _float_or_none(prop.latitude),
        "longitude": _float_or_none(prop.longitude),
        "property_type": prop.property_type,
        "square_footage": prop.square_footage,
        "year_built": prop.year_built,
        "bedrooms": prop.bedrooms,
        "bathrooms": _float_or_none(prop.bathrooms),
        "floors": prop.floors,
        "description": prop.description,
        "special_instructions": prop.special_instructions,
        "access_notes": prop.access_notes,
        "gate_code": prop.gate_code,
        "key_location": prop.key_location,
        "contact_on_site": prop.contact_on_site,
        "contact_phone": prop.contact_phone,
        "preferred_service_time": prop.preferred_service_time,
        "last_service_date": prop.last_service_date,
        "next_service_date": prop.next_service_date,
        "is_active": prop.is_active,
        "photo_count": len(prop.photos),
        "note_count": len(prop.notes),
        "created_at": prop.created_at,
        "updated_at": prop.updated_at,
    }


def map_property_to_detail(prop: Property, recent_invoices: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Property with customer summary, photos, notes, service history and latest invoices"""
    data = map_property_to_response(prop)
    customer = prop.customer

    data.update({
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "phone": customer.phone,
        } if customer else None,
        "photos": [map_photo(photo) for photo in prop.photos],
        "notes": [PropertyNoteResponse.model_validate(note) for note in prop.notes],
        "service_history": [ServiceHistoryResponse.model_validate(entry) for entry in prop.service_history],
        "recent_invoices": recent_invoices,
    })
    return data
