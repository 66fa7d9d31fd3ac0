# ================================
# DEMO DATA API (api/v1/demo_data.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.dependencies import get_db, get_current_active_user
from app.models.user import User
from app.schemas.data import DemoDataResponse
from app.services.demo_data_service import DemoDataService
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/generate", response_model=DemoDataResponse)
async def generate_demo_data(
    seed: Optional[int] = Query(None, description="Seed for a reproducible data set"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Replace all business data with demo data; users are kept"""
    try:
        counts = DemoDataService.generate_demo_data(db, seed=seed)
        db.commit()

        logger.info(f"Demo data generated by {current_user.username}: {counts}")
        return DemoDataResponse(message="Demo data generated successfully", counts=counts)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Demo data generation failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate demo data")

@router.delete("/", response_model=DemoDataResponse)
async def clear_demo_data(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Delete all business data; users are kept"""
    try:
        deleted = DemoDataService.clear_business_data(db)
        db.commit()

        logger.info(f"Business data cleared by {current_user.username}")
        return DemoDataResponse(message="All business data cleared", counts={"deleted": deleted})

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Clearing business data failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear data")
