# ================================
# DEPENDENCIES (dependencies.py)
# ================================

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import uuid

from app.models.user import User
from app.core.security import verify_token
from app.core.exceptions import AuthenticationError

security = HTTPBearer(auto_error=False)

# ================================
# BASIC DEPENDENCIES
# ================================

def get_db(request: Request) -> Session:
    """Database session opened by DatabaseSessionMiddleware"""
    return request.state.db

def get_request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')

# ================================
# USER AUTHENTICATION DEPENDENCIES
# ================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolves the bearer token to a user"""
    if credentials is None:
        raise AuthenticationError("Not authenticated", "TOKEN_MISSING")

    payload = verify_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token", "TOKEN_INVALID")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload", "TOKEN_INVALID")

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token payload", "TOKEN_INVALID")

    user = db.query(User).filter(User.id == user_uuid).first()
    if not user:
        raise AuthenticationError("User not found", "USER_NOT_FOUND")

    return user

async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    if not current_user.is_active:
        raise AuthenticationError("User account is deactivated", "USER_INACTIVE")
    return current_user

# ================================
# PAGINATION DEPENDENCIES
# ================================

def get_pagination_params(
    page: int = 1,
    page_size: int = 20
) -> tuple[int, int]:
    """Pagination parameters with sane bounds"""
    if page < 1:
        page = 1
    if page_size < 1 or page_size > 100:
        page_size = 20

    return page, page_size
