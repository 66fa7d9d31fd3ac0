# ================================
# PROPERTIES API (api/v1/properties.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, status, Path, UploadFile, File, Form
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date
import logging

from app.dependencies import get_db, get_current_active_user
from app.models.user import User
from app.schemas.business import (
    PropertyUpdate,
    PropertyResponse,
    PropertyDetailResponse,
    PropertyNoteCreate,
    PropertyNoteUpdate,
    PropertyNoteResponse,
    PropertyPhotoResponse,
    ServiceHistoryCreate,
    ServiceHistoryResponse
)
from app.schemas.base import SuccessResponse
from app.services.property_service import PropertyService
from app.core.exceptions import AppException
from app.mappers.property_mapper import map_property_to_response
from app.mappers.media_mapper import map_photo

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/{property_id}", response_model=PropertyDetailResponse)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Property details with photos, notes, service history and latest invoices"""
    try:
        return PropertyDetailResponse(**PropertyService.get_property_detail(db, property_id))

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Failed to load property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load property")

@router.put("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_data: PropertyUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        prop = PropertyService.update_property(db, property_id, property_data)
        db.commit()
        db.refresh(prop)

        return PropertyResponse(**map_property_to_response(prop))

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update property")

@router.delete("/{property_id}", response_model=SuccessResponse)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        PropertyService.delete_property(db, property_id)
        db.commit()

        return SuccessResponse(message="Property deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete property")

# ================================
# PROPERTY NOTES
# ================================

@router.post("/{property_id}/notes", response_model=PropertyNoteResponse, status_code=status.HTTP_201_CREATED)
async def create_property_note(
    note_data: PropertyNoteCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        note = PropertyService.create_note(db, property_id, note_data)
        db.commit()
        db.refresh(note)
        return note

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create note for property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create note")

@router.put("/{property_id}/notes/{note_id}", response_model=PropertyNoteResponse)
async def update_property_note(
    note_data: PropertyNoteUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    note_id: UUID = Path(..., description="Note ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        note = PropertyService.update_note(db, property_id, note_id, note_data)
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

@router.delete("/{property_id}/notes/{note_id}", response_model=SuccessResponse)
async def delete_property_note(
    property_id: UUID = Path(..., description="Property ID"),
    note_id: UUID = Path(..., description="Note ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        PropertyService.delete_note(db, property_id, note_id)
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
# PROPERTY PHOTOS
# ================================

@router.post("/{property_id}/photos", response_model=PropertyPhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_property_photo(
    property_id: UUID = Path(..., description="Property ID"),
    file: UploadFile = File(...),
    category: str = Form("other"),
    description: Optional[str] = Form(None),
    room: Optional[str] = Form(None),
    floor: Optional[str] = Form(None),
    date_taken: Optional[date] = Form(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Upload a property photo with optional room/floor location"""
    try:
        photo = await PropertyService.upload_photo(
            db, property_id, file, category, description, room, floor, date_taken
        )
        db.commit()
        db.refresh(photo)
        return map_photo(photo)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to upload photo for property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload photo")

@router.delete("/{property_id}/photos/{photo_id}", response_model=SuccessResponse)
async def delete_property_photo(
    property_id: UUID = Path(..., description="Property ID"),
    photo_id: UUID = Path(..., description="Photo ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        PropertyService.delete_photo(db, property_id, photo_id)
        db.commit()
        return SuccessResponse(message="Photo deleted successfully")

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete photo {photo_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete photo")

# ================================
# SERVICE HISTORY
# ================================

@router.get("/{property_id}/service-history", response_model=List[ServiceHistoryResponse])
async def list_service_history(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return PropertyService.list_service_history(db, property_id)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.post("/{property_id}/service-history", response_model=ServiceHistoryResponse, status_code=status.HTTP_201_CREATED)
async def add_service_history(
    entry_data: ServiceHistoryCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Record a service visit; moves last_service_date forward"""
    try:
        entry = PropertyService.add_service_history(db, property_id, entry_data)
        db.commit()
        db.refresh(entry)
        return entry

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record service history for property {property_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to record service history")
