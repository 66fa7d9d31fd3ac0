# ================================
# INVOICES API (api/v1/invoices.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, status, Path, UploadFile, File, Form
from fastapi.responses import Response
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
from uuid import UUID
import logging

from app.dependencies import get_db, get_current_active_user, get_pagination_params
from app.models.user import User
from app.schemas.business import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceListResponse,
    MarkPaidRequest,
    PhotoResponse,
    INVOICE_STATUS_PATTERN
)
from app.schemas.base import SuccessResponse
from app.services.invoice_service import InvoiceService
from app.core.exceptions import AppException
from app.mappers.invoice_mapper import map_invoice_to_response
from app.mappers.media_mapper import map_photo

logger = logging.getLogger(__name__)

router = APIRouter()

def _invoice_response(db: Session, invoice_id: UUID) -> InvoiceResponse:
    """Reloads the invoice with its relations after a commit"""
    invoice = InvoiceService.get_invoice(db, invoice_id)
    return InvoiceResponse(**map_invoice_to_response(invoice))

@router.get("/", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: Optional[str] = Query(None, alias="status", pattern=INVOICE_STATUS_PATTERN),
    customer_id: Optional[UUID] = Query(None),
    property_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, description="Matches the invoice number"),
    pagination: tuple = Depends(get_pagination_params),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """List invoices, newest invoice date first"""
    try:
        page, page_size = pagination
        result = InvoiceService.list_invoices(
            db, page, page_size,
            status=status_filter,
            customer_id=customer_id,
            property_id=property_id,
            search=search
        )
        return InvoiceListResponse(**result)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to list invoices: {e}")
        raise HTTPException(status_code=500, detail="Failed to list invoices")

@router.post("/", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Create an invoice; number and totals are computed server side"""
    try:
        invoice = InvoiceService.create_invoice(db, invoice_data)
        db.commit()

        return _invoice_response(db, invoice.id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except IntegrityError:
        # Handled globally as 400 "Duplicate entry"
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create invoice: {e}")
        raise HTTPException(status_code=500, detail="Failed to create invoice")

@router.post("/update-overdue", response_model=SuccessResponse)
async def update_overdue_invoices(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Run the overdue sweep now"""
    try:
        count = InvoiceService.update_overdue_invoices(db)
        db.commit()

        return SuccessResponse(
            message=f"{count} invoice(s) marked as overdue",
            data={"updated": count}
        )

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Overdue sweep failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to update overdue invoices")

@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return _invoice_response(db, invoice_id)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to load invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load invoice")

@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_data: InvoiceUpdate,
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Update an invoice; line_items, when given, replace the existing ones"""
    try:
        InvoiceService.update_invoice(db, invoice_id, invoice_data)
        db.commit()

        return _invoice_response(db, invoice_id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except IntegrityError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update invoice")

@router.delete("/{invoice_id}", response_model=SuccessResponse)
async def delete_invoice(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        InvoiceService.delete_invoice(db, invoice_id)
        db.commit()

        return SuccessResponse(message="Invoice deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete invoice")

@router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_paid(
    payment: Optional[MarkPaidRequest] = None,
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        InvoiceService.mark_paid(db, invoice_id, payment.payment_date if payment else None)
        db.commit()

        return _invoice_response(db, invoice_id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to mark invoice {invoice_id} paid: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark invoice as paid")

@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        filename, content = InvoiceService.generate_pdf(db, invoice_id)

        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to render PDF for invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate PDF")

@router.post("/{invoice_id}/send-email", response_model=InvoiceResponse)
async def send_invoice_email(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Email the invoice PDF to the customer"""
    try:
        await InvoiceService.send_email(db, invoice_id)
        db.commit()

        return _invoice_response(db, invoice_id)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to send invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send invoice")

# ================================
# INVOICE PHOTOS
# ================================

@router.get("/{invoice_id}/photos", response_model=List[PhotoResponse])
async def list_invoice_photos(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return [map_photo(photo) for photo in InvoiceService.list_photos(db, invoice_id)]

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.post("/{invoice_id}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_invoice_photo(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    file: UploadFile = File(...),
    category: str = Form("receipt"),
    description: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        photo = await InvoiceService.upload_photo(db, invoice_id, file, category, description)
        db.commit()
        db.refresh(photo)
        return map_photo(photo)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to upload photo for invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload photo")

@router.delete("/{invoice_id}/photos/{photo_id}", response_model=SuccessResponse)
async def delete_invoice_photo(
    invoice_id: UUID = Path(..., description="Invoice ID"),
    photo_id: UUID = Path(..., description="Photo ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        InvoiceService.delete_photo(db, invoice_id, photo_id)
        db.commit()
        return SuccessResponse(message="Photo deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete photo {photo_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete photo")
