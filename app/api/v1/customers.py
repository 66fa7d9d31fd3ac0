# ================================
# CUSTOMERS API (api/v1/customers.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, status, Path, UploadFile, File, Form
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from app.dependencies import get_db, get_current_active_user, get_pagination_params
from app.models.user import User
from app.schemas.business import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerDetailResponse,
    CustomerListResponse,
    CustomerNoteCreate,
    CustomerNoteUpdate,
    CustomerNoteResponse,
    PhotoResponse,
    PropertyCreate,
    PropertyResponse,
    PropertyListResponse
)
from app.schemas.base import SuccessResponse
from app.services.customer_service import CustomerService
from app.services.property_service import PropertyService
from app.core.exceptions import AppException
from app.mappers.customer_mapper import map_customer_to_response
from app.mappers.property_mapper import map_property_to_response
from app.mappers.media_mapper import map_photo

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/", response_model=CustomerListResponse)
async def list_customers(
    search: Optional[str] = Query(None, description="Matches name or email"),
    pagination: tuple = Depends(get_pagination_params),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        page, page_size = pagination
        result = CustomerService.list_customers(db, page, page_size, search)
        return CustomerListResponse(**result)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to list customers: {e}")
        raise HTTPException(status_code=500, detail="Failed to list customers")

@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        customer = CustomerService.create_customer(db, customer_data)
        db.commit()
        db.refresh(customer)

        return CustomerResponse(**map_customer_to_response(customer, 0))

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create customer: {e}")
        raise HTTPException(status_code=500, detail="Failed to create customer")

@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: UUID = Path(..., description="Customer ID"),
    include_archived_notes: bool = Query(False),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Customer with properties, recent invoices, notes and photos"""
    try:
        return CustomerDetailResponse(
            **CustomerService.get_customer_detail(db, customer_id, include_archived_notes)
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to load customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load customer")

@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_data: CustomerUpdate,
    customer_id: UUID = Path(..., description="Customer ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        customer = CustomerService.update_customer(db, customer_id, customer_data)
        db.commit()
        db.refresh(customer)

        invoice_count = CustomerService.count_invoices(db, customer_id)
        return CustomerResponse(**map_customer_to_response(customer, invoice_count))

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update customer")

@router.delete("/{customer_id}", response_model=SuccessResponse)
async def delete_customer(
    customer_id: UUID = Path(..., description="Customer ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        CustomerService.delete_customer(db, customer_id)
        db.commit()

        return SuccessResponse(message="Customer deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete customer")

# ================================
# CUSTOMER PROPERTIES
# ================================

@router.get("/{customer_id}/properties", response_model=PropertyListResponse)
async def list_customer_properties(
    customer_id: UUID = Path(..., description="Customer ID"),
    search: Optional[str] = Query(None, description="Matches property name"),
    pagination: tuple = Depends(get_pagination_params),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        page, page_size = pagination
        result = PropertyService.list_properties(db, customer_id, page, page_size, search)
        return PropertyListResponse(**result)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to list properties of customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list properties")

@router.post("/{customer_id}/properties", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_customer_property(
    property_data: PropertyCreate,
    customer_id: UUID = Path(..., description="Customer ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        prop = PropertyService.create_property(db, customer_id, property_data)
        db.commit()
        db.refresh(prop)

        return PropertyResponse(**map_property_to_response(prop))

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create property for customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create property")

# ================================
# CUSTOMER NOTES
# ================================

@router.get("/{customer_id}/notes", response_model=List[CustomerNoteResponse])
async def list_customer_notes(
    customer_id: UUID = Path(..., description="Customer ID"),
    include_archived: bool = Query(False),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return CustomerService.list_notes(db, customer_id, include_archived)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.post("/{customer_id}/notes", response_model=CustomerNoteResponse, status_code=status.HTTP_201_CREATED)
async def create_customer_note(
    note_data: CustomerNoteCreate,
    customer_id: UUID = Path(..., description="Customer ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        note = CustomerService.create_note(db, customer_id, note_data)
        db.commit()
        db.refresh(note)
        return note

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create note for customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create note")

@router.put("/{customer_id}/notes/{note_id}", response_model=CustomerNoteResponse)
async def update_customer_note(
    note_data: CustomerNoteUpdate,
    customer_id: UUID = Path(..., description="Customer ID"),
    note_id: UUID = Path(..., description="Note ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        note = CustomerService.update_note(db, customer_id, note_id, note_data)
        db.commit()
        db.refresh(note)
        return note

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update note {note_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update note")

@router.delete("/{customer_id}/notes/{note_id}", response_model=SuccessResponse)
async def delete_customer_note(
    customer_id: UUID = Path(..., description="Customer ID"),
    note_id: UUID = Path(..., description="Note ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        CustomerService.delete_note(db, customer_id, note_id)
        db.commit()
        return SuccessResponse(message="Note deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete note {note_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete note")

# ================================
# CUSTOMER PHOTOS
# ================================

@router.get("/{customer_id}/photos", response_model=List[PhotoResponse])
async def list_customer_photos(
    customer_id: UUID = Path(..., description="Customer ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return [map_photo(photo) for photo in CustomerService.list_photos(db, customer_id)]

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.post("/{customer_id}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_customer_photo(
    customer_id: UUID = Path(..., description="Customer ID"),
    file: UploadFile = File(...),
    category: str = Form("other"),
    description: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Upload a photo (JPEG, PNG or WebP)"""
    try:
        photo = await CustomerService.upload_photo(db, customer_id, file, category, description)
        db.commit()
        db.refresh(photo)
        return map_photo(photo)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to upload photo for customer {customer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload photo")

@router.delete("/{customer_id}/photos/{photo_id}", response_model=SuccessResponse)
async def delete_customer_photo(
    customer_id: UUID = Path(..., description="Customer ID"),
    photo_id: UUID = Path(..., description="Photo ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        CustomerService.delete_photo(db, customer_id, photo_id)
        db.commit()
        return SuccessResponse(message="Photo deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete photo {photo_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete photo")
