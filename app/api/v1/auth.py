# ================================
# AUTH API ROUTES (api/v1/auth.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from app.dependencies import get_db, get_current_active_user
from app.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, UserResponse
from app.services.auth_service import AuthService
from app.models.user import User
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Creates an account and returns an access token for it"""
    try:
        user = AuthService.register_user(db, user_data)
        tokens = AuthService.create_tokens(user)
        db.commit()
        db.refresh(user)

        return TokenResponse(**tokens, user_id=user.id, user=UserResponse.model_validate(user))

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to register user")

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    try:
        user, tokens = AuthService.authenticate_user(db, login_data.email, login_data.password)
        db.commit()
        db.refresh(user)

        return TokenResponse(**tokens, user_id=user.id, user=UserResponse.model_validate(user))

    except AppException as e:
        db.rollback()
        # All auth errors returned as 401
        raise HTTPException(status_code=401, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Login failed: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")

@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user: User = Depends(get_current_active_user)
):
    """Profile of the authenticated user"""
    return current_user
