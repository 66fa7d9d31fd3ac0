# ================================
# RECURRING TEMPLATES API (api/v1/recurring.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, status, Path
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from app.dependencies import get_db, get_current_active_user, get_pagination_params
from app.models.user import User
from app.schemas.business import (
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
    RecurringTemplateResponse,
    RecurringTemplateListResponse,
    GeneratedInvoiceResponse,
    InvoiceResponse
)
from app.schemas.base import SuccessResponse
from app.services.recurring_service import RecurringService
from app.services.invoice_service import InvoiceService
from app.core.exceptions import AppException
from app.mappers.expense_mapper import map_template_to_response
from app.mappers.invoice_mapper import map_invoice_to_response

logger = logging.getLogger(__name__)

router = APIRouter()

def _template_response(db: Session, template_id: UUID) -> RecurringTemplateResponse:
    template = RecurringService.get_template(db, template_id)
    return RecurringTemplateResponse(**map_template_to_response(template))

@router.get("/", response_model=RecurringTemplateListResponse)
async def list_templates(
    customer_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: tuple = Depends(get_pagination_params),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """List templates ordered by next run date"""
    try:
        page, page_size = pagination
        result = RecurringService.list_templates(db, page, page_size, customer_id, is_active)
        return RecurringTemplateListResponse(**result)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to list recurring templates: {e}")
        raise HTTPException(status_code=500, detail="Failed to list recurring templates")

@router.post("/", response_model=RecurringTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: RecurringTemplateCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        template = RecurringService.create_template(db, template_data)
        db.commit()

        return _template_response(db, template.id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create recurring template: {e}")
        raise HTTPException(status_code=500, detail="Failed to create recurring template")

@router.post("/generate-due", response_model=SuccessResponse)
async def generate_due_invoices(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Generate invoices for every template that is due today"""
    try:
        generated = RecurringService.generate_due_invoices(db)
        db.commit()

        return SuccessResponse(
            message=f"Generated {len(generated)} invoice(s)",
            data={
                "generated": len(generated),
                "invoice_numbers": [invoice.invoice_number for invoice in generated]
            }
        )

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Recurring generation failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate recurring invoices")

@router.get("/{template_id}", response_model=RecurringTemplateResponse)
async def get_template(
    template_id: UUID = Path(..., description="Template ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return _template_response(db, template_id)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.put("/{template_id}", response_model=RecurringTemplateResponse)
async def update_template(
    template_data: RecurringTemplateUpdate,
    template_id: UUID = Path(..., description="Template ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        RecurringService.update_template(db, template_id, template_data)
        db.commit()

        return _template_response(db, template_id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update recurring template {template_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update recurring template")

@router.delete("/{template_id}", response_model=SuccessResponse)
async def delete_template(
    template_id: UUID = Path(..., description="Template ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Delete a template; invoices generated from it are kept"""
    try:
        RecurringService.delete_template(db, template_id)
        db.commit()

        return SuccessResponse(message="Recurring template deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete recurring template {template_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete recurring template")

@router.post("/{template_id}/generate", response_model=GeneratedInvoiceResponse)
async def generate_invoice_from_template(
    template_id: UUID = Path(..., description="Template ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Generate one invoice now and advance the schedule"""
    try:
        invoice = RecurringService.generate_invoice(db, template_id)
        db.commit()

        invoice = InvoiceService.get_invoice(db, invoice.id)
        return GeneratedInvoiceResponse(
            message=f"Invoice {invoice.invoice_number} generated",
            invoice=InvoiceResponse(**map_invoice_to_response(invoice)),
            template=_template_response(db, template_id)
        )

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to generate invoice from template {template_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate invoice")
