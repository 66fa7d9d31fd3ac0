# ================================
# CUSTOMER SERVICE (services/customer_service.py)
# ================================

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, func
from fastapi import UploadFile
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from app.models.business import Customer, Invoice
from app.models.media import CustomerPhoto, CustomerNote
from app.schemas.business import (
    CustomerCreate, CustomerUpdate, CustomerNoteCreate, CustomerNoteUpdate,
    CUSTOMER_PHOTO_CATEGORIES
)
from app.core.exceptions import AppException, NotFoundError
from app.services.storage_service import get_storage_service
from app.mappers.customer_mapper import map_customer_to_response, map_customer_to_detail
from app.mappers.invoice_mapper import map_invoice_to_list_item
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

class CustomerService:
    """Service for customers, their notes and photos"""

    @staticmethod
    def get_customer(db: Session, customer_id: UUID) -> Customer:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")
        return customer

    @staticmethod
    def count_invoices(db: Session, customer_id: UUID) -> int:
        return db.query(func.count(Invoice.id)).filter(Invoice.customer_id == customer_id).scalar() or 0

    @staticmethod
    def list_customers(
        db: Session,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """Paginated customers ordered by name, search matches name or email"""
        query = db.query(Customer).options(selectinload(Customer.properties))

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern)))

        query = query.order_by(Customer.name.asc())

        result = paginate(query, page, page_size)
        customers = result["items"]

        # One grouped count instead of one query per row
        counts = {}
        if customers:
            rows = db.query(Invoice.customer_id, func.count(Invoice.id)).filter(
                Invoice.customer_id.in_([c.id for c in customers])
            ).group_by(Invoice.customer_id).all()
            counts = {customer_id: count for customer_id, count in rows}

        result["items"] = [map_customer_to_response(c, counts.get(c.id, 0)) for c in customers]
        return result

    @staticmethod
    def get_customer_detail(db: Session, customer_id: UUID, include_archived_notes: bool = False) -> Dict[str, Any]:
        customer = CustomerService.get_customer(db, customer_id)

        recent = db.query(Invoice).filter(
            Invoice.customer_id == customer_id
        ).order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()).limit(10).all()

        return map_customer_to_detail(
            customer,
            CustomerService.count_invoices(db, customer_id),
            [map_invoice_to_list_item(invoice) for invoice in recent],
            include_archived_notes
        )

    @staticmethod
    def create_customer(db: Session, customer_data: CustomerCreate) -> Customer:
        customer = Customer(**customer_data.model_dump())
        db.add(customer)
        db.flush()
        logger.info(f"Customer created: {customer.name} ({customer.id})")
        return customer

    @staticmethod
    def update_customer(db: Session, customer_id: UUID, customer_data: CustomerUpdate) -> Customer:
        customer = CustomerService.get_customer(db, customer_id)

        update_data = customer_data.model_dump(exclude_unset=True)
        if "name" in update_data and update_data["name"] is None:
            raise AppException("Customer name cannot be empty", 400, "INVALID_NAME")

        for field, value in update_data.items():
            setattr(customer, field, value)

        db.flush()
        logger.info(f"Customer updated: {customer.id}")
        return customer

    @staticmethod
    def delete_customer(db: Session, customer_id: UUID) -> None:
        """Deletes a customer with properties, notes, photos and templates - rejected while invoices exist"""
        customer = CustomerService.get_customer(db, customer_id)

        invoice_count = CustomerService.count_invoices(db, customer_id)
        if invoice_count > 0:
            raise AppException(
                f"Cannot delete customer with {invoice_count} existing invoice(s)",
                400,
                "CUSTOMER_HAS_INVOICES"
            )

        # Collect files before the cascade removes the rows
        file_paths = [photo.file_path for photo in customer.photos]
        for prop in customer.properties:
            file_paths.extend(photo.file_path for photo in prop.photos)

        db.delete(customer)
        db.flush()

        storage = get_storage_service()
        for path in file_paths:
            storage.delete_file(path)

        logger.info(f"Customer deleted: {customer_id}")

    # ================================
    # Notes
    # ================================

    @staticmethod
    def list_notes(db: Session, customer_id: UUID, include_archived: bool = False) -> List[CustomerNote]:
        CustomerService.get_customer(db, customer_id)
        query = db.query(CustomerNote).filter(CustomerNote.customer_id == customer_id)
        if not include_archived:
            query = query.filter(CustomerNote.is_archived.is_(False))
        return query.order_by(CustomerNote.created_at.desc()).all()

    @staticmethod
    def create_note(db: Session, customer_id: UUID, note_data: CustomerNoteCreate) -> CustomerNote:
        CustomerService.get_customer(db, customer_id)
        note = CustomerNote(customer_id=customer_id, **note_data.model_dump())
        db.add(note)
        db.flush()
        return note

    @staticmethod
    def _get_note(db: Session, customer_id: UUID, note_id: UUID) -> CustomerNote:
        note = db.query(CustomerNote).filter(
            CustomerNote.id == note_id,
            CustomerNote.customer_id == customer_id
        ).first()
        if not note:
            raise NotFoundError("Note not found")
        return note

    @staticmethod
    def update_note(db: Session, customer_id: UUID, note_id: UUID, note_data: CustomerNoteUpdate) -> CustomerNote:
        note = CustomerService._get_note(db, customer_id, note_id)
        for field, value in note_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(note, field, value)
        db.flush()
        return note

    @staticmethod
    def delete_note(db: Session, customer_id: UUID, note_id: UUID) -> None:
        note = CustomerService._get_note(db, customer_id, note_id)
        db.delete(note)
        db.flush()

    # ================================
    # Photos
    # ================================

    @staticmethod
    def list_photos(db: Session, customer_id: UUID) -> List[CustomerPhoto]:
        customer = CustomerService.get_customer(db, customer_id)
        return list(customer.photos)

    @staticmethod
    async def upload_photo(
        db: Session,
        customer_id: UUID,
        file: UploadFile,
        category: str = "other",
        description: Optional[str] = None
    ) -> CustomerPhoto:
        CustomerService.get_customer(db, customer_id)

        if category not in CUSTOMER_PHOTO_CATEGORIES:
            raise AppException(f"Invalid photo category: {category}", 400, "INVALID_CATEGORY")

        stored = await get_storage_service().save_image(file, f"customers/{customer_id}")

        photo = CustomerPhoto(
            customer_id=customer_id,
            category=category,
            description=description,
            **stored
        )
        db.add(photo)
        db.flush()
        logger.info(f"Photo {photo.id} uploaded for customer {customer_id}")
        return photo

    @staticmethod
    def delete_photo(db: Session, customer_id: UUID, photo_id: UUID) -> None:
        photo = db.query(CustomerPhoto).filter(
            CustomerPhoto.id == photo_id,
            CustomerPhoto.customer_id == customer_id
        ).first()
        if not photo:
            raise NotFoundError("Photo not found")

        file_path = photo.file_path
        db.delete(photo)
        db.flush()
        get_storage_service().delete_file(file_path)
