# ================================
# AUTHENTICATION SCHEMAS (schemas/auth.py)
# ================================

from pydantic import Field, EmailStr, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from app.schemas.base import BaseSchema, BaseResponseSchema

class RegisterRequest(BaseSchema):
    """Schema for self-registration"""
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$", description="Login name")
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=6, max_length=128, description="User password")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

class LoginRequest(BaseSchema):
    """Schema for login requests"""
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

class UserResponse(BaseResponseSchema):
    username: str
    email: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

class TokenResponse(BaseSchema):
    """Schema for token responses"""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration in seconds")
    user_id: UUID = Field(..., description="User ID")
    user: UserResponse
