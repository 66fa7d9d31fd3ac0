# ================================
# BASE SCHEMAS (schemas/base.py)
# ================================

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

class BaseSchema(BaseModel):
    """Base schema with shared configuration"""
    model_config = ConfigDict(
        from_attributes=True,  # Pydantic v2: ORM integration
        str_strip_whitespace=True,
        validate_assignment=True,
    )

class BaseResponseSchema(BaseSchema):
    """Base schema for API responses with ID field"""
    id: UUID

class TimestampMixin(BaseModel):
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

# ================================
# PAGINATION SCHEMAS
# ================================

class PaginationParams(BaseSchema):
    page: int = Field(default=1, ge=1, description="Page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")

class PaginatedResponse(BaseSchema):
    """Envelope shared by every list endpoint"""
    total: int
    page: int
    size: int
    pages: int

# ================================
# ERROR & SUCCESS RESPONSE SCHEMAS
# ================================

class ErrorResponse(BaseSchema):
    """Standard error response"""
    detail: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Application-specific error code")
    request_id: Optional[str] = None

class FieldError(BaseSchema):
    field: str
    message: str

class ValidationErrorResponse(BaseSchema):
    """Request validation error response"""
    detail: str = "Validation failed"
    errors: List[FieldError] = Field(..., description="Per-field validation errors")

class SuccessResponse(BaseSchema):
    """Standard success response"""
    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional data")
