# ================================
# INVOICE SERVICE (services/invoice_service.py)
# ================================

from sqlalchemy.orm import Session, selectinload, joinedload
from fastapi import UploadFile
from typing import Optional, Dict, Any, List, Iterable
from uuid import UUID
from datetime import date, datetime, timezone
import logging

from app.models.business import (
    Invoice, InvoiceLineItem, Customer, Property, PropertyServiceHistory,
    InvoiceStatus, ServiceType
)
from app.models.media import InvoicePhoto
from app.schemas.business import InvoiceCreate, InvoiceUpdate, INVOICE_PHOTO_CATEGORIES
from app.core.exceptions import AppException, NotFoundError, ExternalServiceError
from app.services.pdf_service import PDFService
from app.services.storage_service import get_storage_service
from app.utils.invoice_utils import apply_totals, generate_invoice_number, money, calculate_line_total, to_decimal
from app.utils.email import email_service
from app.mappers.invoice_mapper import map_invoice_to_list_item, map_invoice_to_email_data
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

class InvoiceService:
    """Invoice CRUD, totals and status lifecycle"""

    @staticmethod
    def get_invoice(db: Session, invoice_id: UUID) -> Invoice:
        invoice = db.query(Invoice).options(
            joinedload(Invoice.customer),
            joinedload(Invoice.property),
            selectinload(Invoice.line_items),
            selectinload(Invoice.photos)
        ).filter(Invoice.id == invoice_id).first()

        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    @staticmethod
    def list_invoices(
        db: Session,
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
        customer_id: Optional[UUID] = None,
        property_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """Newest invoices first, optional filters"""
        query = db.query(Invoice).options(
            joinedload(Invoice.customer),
            joinedload(Invoice.property)
        )

        if status:
            query = query.filter(Invoice.status == status)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if property_id:
            query = query.filter(Invoice.property_id == property_id)
        if search:
            query = query.filter(Invoice.invoice_number.ilike(f"%{search.strip()}%"))

        query = query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())

        today = date.today()
        return paginate(query, page, page_size, lambda invoice: map_invoice_to_list_item(invoice, today))

    # ================================
    # Validation helpers
    # ================================

    @staticmethod
    def _validate_parties(db: Session, customer_id: UUID, property_id: Optional[UUID]) -> None:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

        if property_id:
            prop = db.query(Property).filter(Property.id == property_id).first()
            if not prop:
                raise NotFoundError("Property not found")
            if prop.customer_id != customer_id:
                raise AppException("Property does not belong to this customer", 400, "PROPERTY_MISMATCH")

    @staticmethod
    def _build_line_items(items: Iterable[Any]) -> List[InvoiceLineItem]:
        """Line totals are always computed, never taken from input"""
        line_items = []
        for position, item in enumerate(items):
            quantity = to_decimal(item.quantity)
            unit_price = to_decimal(item.unit_price)
            line_items.append(InvoiceLineItem(
                description=item.description,
                quantity=quantity,
                unit_price=unit_price,
                line_total=calculate_line_total(quantity, unit_price),
                position=position
            ))
        return line_items

    # ================================
    # CRUD
    # ================================

    @staticmethod
    def create_invoice(db: Session, invoice_data: InvoiceCreate) -> Invoice:
        """Creates an invoice with the next free number for the current year"""
        InvoiceService._validate_parties(db, invoice_data.customer_id, invoice_data.property_id)

        invoice = Invoice(
            invoice_number=generate_invoice_number(db),
            customer_id=invoice_data.customer_id,
            property_id=invoice_data.property_id,
            invoice_date=invoice_data.invoice_date,
            due_date=invoice_data.due_date,
            tax_rate=invoice_data.tax_rate,
            status=invoice_data.status,
            notes=invoice_data.notes,
        )
        invoice.line_items = InvoiceService._build_line_items(invoice_data.line_items)
        apply_totals(invoice)

        db.add(invoice)
        db.flush()

        logger.info(f"Invoice created: {invoice.invoice_number} total={invoice.grand_total}")
        return invoice

    @staticmethod
    def update_invoice(db: Session, invoice_id: UUID, invoice_data: InvoiceUpdate) -> Invoice:
        """Partial update; line items are replaced wholesale when given"""
        invoice = InvoiceService.get_invoice(db, invoice_id)
        update_data = invoice_data.model_dump(exclude_unset=True)

        for required in ("customer_id", "invoice_date", "due_date", "tax_rate", "status", "line_items"):
            if required in update_data and update_data[required] is None:
                raise AppException(f"Field '{required}' cannot be empty", 400, "INVALID_FIELD")

        customer_id = update_data.get("customer_id", invoice.customer_id)
        property_id = update_data["property_id"] if "property_id" in update_data else invoice.property_id
        if "customer_id" in update_data or "property_id" in update_data:
            InvoiceService._validate_parties(db, customer_id, property_id)

        invoice_date = update_data.get("invoice_date", invoice.invoice_date)
        due_date = update_data.get("due_date", invoice.due_date)
        if due_date <= invoice_date:
            raise AppException("Due date must be after invoice date", 400, "INVALID_DATES")

        for field in ("customer_id", "property_id", "invoice_date", "due_date", "tax_rate", "status", "payment_date", "notes"):
            if field in update_data:
                setattr(invoice, field, update_data[field])

        if update_data.get("status") == InvoiceStatus.PAID.value and not invoice.payment_date:
            invoice.payment_date = date.today()

        if invoice_data.line_items is not None:
            invoice.line_items.clear()
            db.flush()
            invoice.line_items.extend(InvoiceService._build_line_items(invoice_data.line_items))

        apply_totals(invoice)
        db.flush()

        logger.info(f"Invoice updated: {invoice.invoice_number} total={invoice.grand_total}")
        return invoice

    @staticmethod
    def delete_invoice(db: Session, invoice_id: UUID) -> None:
        """Line items and photos go with the invoice; expenses and service records are unlinked"""
        invoice = InvoiceService.get_invoice(db, invoice_id)
        invoice_number = invoice.invoice_number
        file_paths = [photo.file_path for photo in invoice.photos]

        for expense in invoice.expenses:
            expense.invoice_id = None
        for record in invoice.service_records:
            record.invoice_id = None

        db.delete(invoice)
        db.flush()

        storage = get_storage_service()
        for path in file_paths:
            storage.delete_file(path)

        logger.info(f"Invoice deleted: {invoice_number}")

    # ================================
    # Status lifecycle
    # ================================

    @staticmethod
    def mark_paid(db: Session, invoice_id: UUID, payment_date: Optional[date] = None) -> Invoice:
        """Marks an invoice paid and records the service at its property"""
        invoice = InvoiceService.get_invoice(db, invoice_id)

        if invoice.status == InvoiceStatus.PAID.value:
            raise AppException("Invoice is already paid", 400, "ALREADY_PAID")

        invoice.status = InvoiceStatus.PAID.value
        invoice.payment_date = payment_date or date.today()

        if invoice.property_id:
            description = ", ".join(
                f"{item.description} ({float(item.quantity):g}x)" for item in invoice.line_items
            )
            entry = PropertyServiceHistory(
                property_id=invoice.property_id,
                invoice_id=invoice.id,
                service_date=invoice.invoice_date,
                service_type=ServiceType.OTHER.value,
                description=description or f"Invoice #{invoice.invoice_number}",
                total_cost=money(invoice.grand_total),
                notes=f"Automatically created from paid invoice #{invoice.invoice_number}",
                follow_up_required=False
            )
            db.add(entry)

            prop = invoice.property
            if prop and (not prop.last_service_date or invoice.invoice_date > prop.last_service_date):
                prop.last_service_date = invoice.invoice_date

        db.flush()
        logger.info(f"Invoice marked paid: {invoice.invoice_number} on {invoice.payment_date}")
        return invoice

    @staticmethod
    def update_overdue_invoices(db: Session, today: Optional[date] = None) -> int:
        """Moves every Unpaid invoice past its due date to Overdue"""
        today = today or date.today()

        count = db.query(Invoice).filter(
            Invoice.status == InvoiceStatus.UNPAID.value,
            Invoice.due_date < today
        ).update({Invoice.status: InvoiceStatus.OVERDUE.value}, synchronize_session=False)

        db.flush()
        if count:
            logger.info(f"Marked {count} invoice(s) as overdue")
        return count

    # ================================
    # PDF & email
    # ================================

    @staticmethod
    def generate_pdf(db: Session, invoice_id: UUID) -> tuple[str, bytes]:
        """Returns (filename, pdf bytes)"""
        invoice = InvoiceService.get_invoice(db, invoice_id)
        try:
            content = PDFService.render_invoice(invoice)
        except Exception as e:
            logger.error(f"PDF generation failed for {invoice.invoice_number}: {e}")
            raise AppException(f"Failed to generate PDF: {str(e)}", 500, "PDF_FAILED")
        return f"invoice-{invoice.invoice_number}.pdf", content

    @staticmethod
    async def send_email(db: Session, invoice_id: UUID) -> Invoice:
        """Emails the invoice PDF to the customer; a Draft becomes Unpaid once sent"""
        invoice = InvoiceService.get_invoice(db, invoice_id)

        if not invoice.customer or not invoice.customer.email:
            raise AppException("Customer has no email address", 400, "NO_CUSTOMER_EMAIL")

        _, pdf_content = InvoiceService.generate_pdf(db, invoice_id)

        sent = await email_service.send_invoice_email(
            to_email=invoice.customer.email,
            invoice_data=map_invoice_to_email_data(invoice),
            pdf_content=pdf_content
        )
        if not sent:
            raise ExternalServiceError("Failed to send invoice email", "EMAIL_FAILED")

        invoice.sent_date = datetime.now(timezone.utc)
        if invoice.status == InvoiceStatus.DRAFT.value:
            invoice.status = InvoiceStatus.UNPAID.value

        db.flush()
        logger.info(f"Invoice {invoice.invoice_number} sent to {invoice.customer.email}")
        return invoice

    # ================================
    # Photos
    # ================================

    @staticmethod
    def list_photos(db: Session, invoice_id: UUID) -> List[InvoicePhoto]:
        invoice = InvoiceService.get_invoice(db, invoice_id)
        return list(invoice.photos)

    @staticmethod
    async def upload_photo(
        db: Session,
        invoice_id: UUID,
        file: UploadFile,
        category: str = "receipt",
        description: Optional[str] = None
    ) -> InvoicePhoto:
        InvoiceService.get_invoice(db, invoice_id)

        if category not in INVOICE_PHOTO_CATEGORIES:
            raise AppException(f"Invalid photo category: {category}", 400, "INVALID_CATEGORY")

        stored = await get_storage_service().save_image(file, f"invoices/{invoice_id}")

        photo = InvoicePhoto(
            invoice_id=invoice_id,
            category=category,
            description=description,
            **stored
        )
        db.add(photo)
        db.flush()
        logger.info(f"Photo {photo.id} uploaded for invoice {invoice_id}")
        return photo

    @staticmethod
    def delete_photo(db: Session, invoice_id: UUID, photo_id: UUID) -> None:
        photo = db.query(InvoicePhoto).filter(
            InvoicePhoto.id == photo_id,
            InvoicePhoto.invoice_id == invoice_id
        ).first()
        if not photo:
            raise NotFoundError("Photo not found")

        file_path = photo.file_path
        db.delete(photo)
        db.flush()
        get_storage_service().delete_file(file_path)
