# ================================
# RECURRING TEMPLATE SERVICE (services/recurring_service.py)
# ================================

from sqlalchemy.orm import Session, joinedload
from typing import Optional, Dict, Any, List
from uuid import UUID
from datetime import date, timedelta
from types import SimpleNamespace
import logging

from app.models.business import RecurringTemplate, Invoice, Customer, Property, InvoiceStatus
from app.schemas.business import RecurringTemplateCreate, RecurringTemplateUpdate
from app.core.exceptions import AppException, NotFoundError
from app.services.invoice_service import InvoiceService
from app.utils.invoice_utils import apply_totals, generate_invoice_number, calculate_next_run_date
from app.mappers.expense_mapper import map_template_to_response
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS = 30

def _json_ready(base_invoice_data) -> Dict[str, Any]:
    """JSON column payload with plain numbers and string ids"""
    return {
        "line_items": [
            {
                "description": item.description,
                "quantity": float(item.quantity),
                "unit_price": float(item.unit_price),
            }
            for item in base_invoice_data.line_items
        ],
        "notes": base_invoice_data.notes,
        "payment_terms": base_invoice_data.payment_terms,
        "property_id": str(base_invoice_data.property_id) if base_invoice_data.property_id else None,
    }

class RecurringService:
    """Recurring invoice templates and invoice generation"""

    @staticmethod
    def get_template(db: Session, template_id: UUID) -> RecurringTemplate:
        template = db.query(RecurringTemplate).options(
            joinedload(RecurringTemplate.customer)
        ).filter(RecurringTemplate.id == template_id).first()
        if not template:
            raise NotFoundError("Recurring template not found")
        return template

    @staticmethod
    def list_templates(
        db: Session,
        page: int = 1,
        page_size: int = 20,
        customer_id: Optional[UUID] = None,
        is_active: Optional[bool] = None
    ) -> Dict[str, Any]:
        """Templates ordered by next run date, finished templates last"""
        query = db.query(RecurringTemplate).options(joinedload(RecurringTemplate.customer))

        if customer_id:
            query = query.filter(RecurringTemplate.customer_id == customer_id)
        if is_active is not None:
            query = query.filter(RecurringTemplate.is_active.is_(is_active))

        query = query.order_by(
            RecurringTemplate.next_run_date.is_(None),
            RecurringTemplate.next_run_date.asc(),
            RecurringTemplate.template_name.asc()
        )
        return paginate(query, page, page_size, map_template_to_response)

    @staticmethod
    def _validate_references(db: Session, customer_id: UUID, property_id: Optional[UUID]) -> None:
        if not db.query(Customer).filter(Customer.id == customer_id).first():
            raise NotFoundError("Customer not found")
        if property_id:
            prop = db.query(Property).filter(Property.id == property_id).first()
            if not prop:
                raise NotFoundError("Property not found")
            if prop.customer_id != customer_id:
                raise AppException("Property does not belong to this customer", 400, "PROPERTY_MISMATCH")

    @staticmethod
    def create_template(db: Session, template_data: RecurringTemplateCreate) -> RecurringTemplate:
        """First run is one period after the start date"""
        RecurringService._validate_references(
            db, template_data.customer_id, template_data.base_invoice_data.property_id
        )

        template = RecurringTemplate(
            customer_id=template_data.customer_id,
            template_name=template_data.template_name,
            base_invoice_data=_json_ready(template_data.base_invoice_data),
            tax_rate=template_data.tax_rate,
            frequency=template_data.frequency,
            start_date=template_data.start_date,
            end_date=template_data.end_date,
            occurrences=template_data.occurrences,
            next_run_date=calculate_next_run_date(template_data.start_date, template_data.frequency),
            is_active=True,
            completed_occurrences=0
        )
        db.add(template)
        db.flush()

        logger.info(f"Recurring template created: {template.template_name} next run {template.next_run_date}")
        return template

    @staticmethod
    def update_template(db: Session, template_id: UUID, template_data: RecurringTemplateUpdate) -> RecurringTemplate:
        template = RecurringService.get_template(db, template_id)
        update_data = template_data.model_dump(exclude_unset=True)

        for required in ("template_name", "base_invoice_data", "tax_rate", "frequency", "start_date", "is_active"):
            if required in update_data and update_data[required] is None:
                raise AppException(f"Field '{required}' cannot be empty", 400, "INVALID_FIELD")

        if template_data.base_invoice_data is not None:
            RecurringService._validate_references(
                db, template.customer_id, template_data.base_invoice_data.property_id
            )
            template.base_invoice_data = _json_ready(template_data.base_invoice_data)
            update_data.pop("base_invoice_data")

        start_date = update_data.get("start_date", template.start_date)
        end_date = update_data["end_date"] if "end_date" in update_data else template.end_date
        if end_date is not None and end_date <= start_date:
            raise AppException("End date must be after start date", 400, "INVALID_DATES")

        schedule_changed = (
            ("start_date" in update_data and update_data["start_date"] != template.start_date) or
            ("frequency" in update_data and update_data["frequency"] != template.frequency)
        )

        for field, value in update_data.items():
            setattr(template, field, value)

        if schedule_changed:
            template.next_run_date = calculate_next_run_date(template.start_date, template.frequency)
        elif template.is_active and template.next_run_date is None:
            # Reactivated template resumes from its start schedule
            template.next_run_date = calculate_next_run_date(template.start_date, template.frequency)

        db.flush()
        logger.info(f"Recurring template updated: {template.id}")
        return template

    @staticmethod
    def delete_template(db: Session, template_id: UUID) -> None:
        """Generated invoices stay, their template reference is cleared"""
        template = RecurringService.get_template(db, template_id)
        for invoice in template.invoices:
            invoice.recurring_template_id = None
        db.delete(template)
        db.flush()
        logger.info(f"Recurring template deleted: {template_id}")

    # ================================
    # Generation
    # ================================

    @staticmethod
    def generate_invoice(db: Session, template_id: UUID, today: Optional[date] = None) -> Invoice:
        """
        Creates one invoice from a template and advances its schedule.

        The template is deactivated once the next run would pass end_date
        or the occurrence limit is reached.
        """
        template = RecurringService.get_template(db, template_id)
        today = today or date.today()

        if not template.is_active:
            raise AppException("Recurring template is not active", 400, "TEMPLATE_INACTIVE")

        data = template.base_invoice_data or {}
        line_items = data.get("line_items") or []
        if not line_items:
            raise AppException("Template has no line items", 400, "TEMPLATE_EMPTY")

        payment_terms = data.get("payment_terms")
        if payment_terms is None:
            payment_terms = DEFAULT_PAYMENT_TERMS

        property_id = data.get("property_id")
        if property_id:
            property_id = UUID(str(property_id))
            if not db.query(Property).filter(Property.id == property_id).first():
                logger.warning(f"Template {template.id} references missing property {property_id}")
                property_id = None

        invoice = Invoice(
            invoice_number=generate_invoice_number(db, today.year),
            customer_id=template.customer_id,
            property_id=property_id,
            recurring_template_id=template.id,
            invoice_date=today,
            due_date=today + timedelta(days=int(payment_terms)),
            tax_rate=template.tax_rate,
            status=InvoiceStatus.UNPAID.value,
            notes=data.get("notes") or f"Auto-generated from template: {template.template_name}",
        )
        invoice.line_items = InvoiceService._build_line_items(
            SimpleNamespace(
                description=item.get("description"),
                quantity=item.get("quantity"),
                unit_price=item.get("unit_price")
            )
            for item in line_items
        )
        apply_totals(invoice)
        db.add(invoice)

        RecurringService._advance_schedule(template)
        db.flush()

        logger.info(
            f"Generated invoice {invoice.invoice_number} from template '{template.template_name}' "
            f"(next run: {template.next_run_date})"
        )
        return invoice

    @staticmethod
    def _advance_schedule(template: RecurringTemplate) -> None:
        template.completed_occurrences = (template.completed_occurrences or 0) + 1

        current = template.next_run_date or template.start_date
        next_run = calculate_next_run_date(current, template.frequency)

        limit_reached = template.occurrences is not None and template.completed_occurrences >= template.occurrences
        past_end = template.end_date is not None and next_run > template.end_date

        if limit_reached or past_end:
            template.is_active = False
            template.next_run_date = None
            logger.info(f"Recurring template '{template.template_name}' completed")
        else:
            template.next_run_date = next_run

    @staticmethod
    def generate_due_invoices(db: Session, today: Optional[date] = None) -> List[Invoice]:
        """Generates one invoice for every active template that is due; failures are isolated per template"""
        today = today or date.today()

        due_templates = db.query(RecurringTemplate).filter(
            RecurringTemplate.is_active.is_(True),
            RecurringTemplate.next_run_date.is_not(None),
            RecurringTemplate.next_run_date <= today
        ).order_by(RecurringTemplate.next_run_date.asc()).all()

        if not due_templates:
            logger.info("No recurring templates due")
            return []

        template_ids = [template.id for template in due_templates]
        generated = []
        # Commit per template so one failure does not undo the others
        for template_id in template_ids:
            try:
                invoice = RecurringService.generate_invoice(db, template_id, today)
                db.commit()
                generated.append(invoice)
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to generate invoice for template {template_id}: {e}")

        logger.info(f"Generated {len(generated)} of {len(template_ids)} due recurring invoice(s)")
        return generated
