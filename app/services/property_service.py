# ================================
# PROPERTY SERVICE (services/property_service.py)
# ================================

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func
from fastapi import UploadFile
from typing import Optional, Dict, Any, List
from uuid import UUID
from datetime import date
import logging

from app.models.business import Property, Invoice, PropertyServiceHistory
from app.models.media import PropertyPhoto, PropertyNote
from app.schemas.business import (
    PropertyCreate, PropertyUpdate, PropertyNoteCreate, PropertyNoteUpdate,
    ServiceHistoryCreate, PROPERTY_PHOTO_CATEGORIES
)
from app.core.exceptions import AppException, NotFoundError
from app.services.customer_service import CustomerService
from app.services.storage_service import get_storage_service
from app.mappers.property_mapper import map_property_to_response, map_property_to_detail
from app.mappers.invoice_mapper import map_invoice_to_list_item
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

class PropertyService:
    """Service for managing customer properties"""

    @staticmethod
    def get_property(db: Session, property_id: UUID) -> Property:
        prop = db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFoundError("Property not found")
        return prop

    @staticmethod
    def list_properties(
        db: Session,
        customer_id: UUID,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """Properties of one customer ordered by name"""
        CustomerService.get_customer(db, customer_id)

        query = db.query(Property).options(
            selectinload(Property.photos),
            selectinload(Property.notes)
        ).filter(Property.customer_id == customer_id)

        if search:
            query = query.filter(Property.name.ilike(f"%{search.strip()}%"))

        query = query.order_by(Property.name.asc())
        return paginate(query, page, page_size, map_property_to_response)

    @staticmethod
    def get_property_detail(db: Session, property_id: UUID) -> Dict[str, Any]:
        """Property with photos, notes, service history and the latest 10 invoices"""
        prop = PropertyService.get_property(db, property_id)

        recent = db.query(Invoice).filter(
            Invoice.property_id == property_id
        ).order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()).limit(10).all()

        return map_property_to_detail(prop, [map_invoice_to_list_item(invoice) for invoice in recent])

    @staticmethod
    def create_property(db: Session, customer_id: UUID, property_data: PropertyCreate) -> Property:
        CustomerService.get_customer(db, customer_id)

        prop = Property(customer_id=customer_id, **property_data.model_dump())
        if prop.floors is None:
            prop.floors = 1

        db.add(prop)
        db.flush()
        logger.info(f"Property created: {prop.name} ({prop.id}) for customer {customer_id}")
        return prop

    @staticmethod
    def update_property(db: Session, property_id: UUID, property_data: PropertyUpdate) -> Property:
        prop = PropertyService.get_property(db, property_id)

        update_data = property_data.model_dump(exclude_unset=True)
        for required in ("name", "address", "property_type", "is_active"):
            if required in update_data and update_data[required] is None:
                raise AppException(f"Field '{required}' cannot be empty", 400, "INVALID_FIELD")

        for field, value in update_data.items():
            setattr(prop, field, value)

        db.flush()
        logger.info(f"Property updated: {prop.id}")
        return prop

    @staticmethod
    def delete_property(db: Session, property_id: UUID) -> None:
        """Deletes a property with photos, notes and history - rejected while invoices reference it"""
        prop = PropertyService.get_property(db, property_id)

        invoice_count = db.query(func.count(Invoice.id)).filter(Invoice.property_id == property_id).scalar() or 0
        if invoice_count > 0:
            raise AppException(
                f"Cannot delete property referenced by {invoice_count} invoice(s)",
                400,
                "PROPERTY_HAS_INVOICES"
            )

        file_paths = [photo.file_path for photo in prop.photos]

        db.delete(prop)
        db.flush()

        storage = get_storage_service()
        for path in file_paths:
            storage.delete_file(path)

        logger.info(f"Property deleted: {property_id}")

    # ================================
    # Notes
    # ================================

    @staticmethod
    def create_note(db: Session, property_id: UUID, note_data: PropertyNoteCreate) -> PropertyNote:
        PropertyService.get_property(db, property_id)
        note = PropertyNote(property_id=property_id, **note_data.model_dump())
        db.add(note)
        db.flush()
        return note

    @staticmethod
    def _get_note(db: Session, property_id: UUID, note_id: UUID) -> PropertyNote:
        note = db.query(PropertyNote).filter(
            PropertyNote.id == note_id,
            PropertyNote.property_id == property_id
        ).first()
        if not note:
            raise NotFoundError("Note not found")
        return note

    @staticmethod
    def update_note(db: Session, property_id: UUID, note_id: UUID, note_data: PropertyNoteUpdate) -> PropertyNote:
        note = PropertyService._get_note(db, property_id, note_id)
        update_data = note_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            # reminder_date, room and floor may be cleared explicitly
            if value is None and field not in ("reminder_date", "room", "floor"):
                continue
            setattr(note, field, value)
        db.flush()
        return note

    @staticmethod
    def delete_note(db: Session, property_id: UUID, note_id: UUID) -> None:
        note = PropertyService._get_note(db, property_id, note_id)
        db.delete(note)
        db.flush()

    # ================================
    # Photos
    # ================================

    @staticmethod
    async def upload_photo(
        db: Session,
        property_id: UUID,
        file: UploadFile,
        category: str = "other",
        description: Optional[str] = None,
        room: Optional[str] = None,
        floor: Optional[str] = None,
        date_taken: Optional[date] = None
    ) -> PropertyPhoto:
        PropertyService.get_property(db, property_id)

        if category not in PROPERTY_PHOTO_CATEGORIES:
            raise AppException(f"Invalid photo category: {category}", 400, "INVALID_CATEGORY")

        stored = await get_storage_service().save_image(file, f"properties/{property_id}")

        photo = PropertyPhoto(
            property_id=property_id,
            category=category,
            description=description,
            room=room,
            floor=floor,
            date_taken=date_taken,
            **stored
        )
        db.add(photo)
        db.flush()
        logger.info(f"Photo {photo.id} uploaded for property {property_id}")
        return photo

    @staticmethod
    def delete_photo(db: Session, property_id: UUID, photo_id: UUID) -> None:
        photo = db.query(PropertyPhoto).filter(
            PropertyPhoto.id == photo_id,
            PropertyPhoto.property_id == property_id
        ).first()
        if not photo:
            raise NotFoundError("Photo not found")

        file_path = photo.file_path
        db.delete(photo)
        db.flush()
        get_storage_service().delete_file(file_path)

    # ================================
    # Service history
    # ================================

    @staticmethod
    def list_service_history(db: Session, property_id: UUID) -> List[PropertyServiceHistory]:
        PropertyService.get_property(db, property_id)
        return db.query(PropertyServiceHistory).filter(
            PropertyServiceHistory.property_id == property_id
        ).order_by(PropertyServiceHistory.service_date.desc()).all()

    @staticmethod
    def add_service_history(
        db: Session,
        property_id: UUID,
        entry_data: ServiceHistoryCreate
    ) -> PropertyServiceHistory:
        """Records a service visit and moves last_service_date forward"""
        prop = PropertyService.get_property(db, property_id)

        if entry_data.invoice_id:
            invoice = db.query(Invoice).filter(Invoice.id == entry_data.invoice_id).first()
            if not invoice:
                raise NotFoundError("Invoice not found")

        entry = PropertyServiceHistory(property_id=property_id, **entry_data.model_dump())
        db.add(entry)

        if not prop.last_service_date or entry.service_date > prop.last_service_date:
            prop.last_service_date = entry.service_date

        db.flush()
        logger.info(f"Service history {entry.id} recorded for property {property_id}")
        return entry
