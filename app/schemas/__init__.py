# ================================
# SCHEMAS PACKAGE INITIALIZATION (schemas/__init__.py)
# ================================

"""
Pydantic Schemas Package

Central imports for request and response schemas
"""

from app.schemas.base import (
    BaseSchema,
    BaseResponseSchema,
    PaginationParams,
    PaginatedResponse,
    ErrorResponse,
    ValidationErrorResponse,
    SuccessResponse
)

from app.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    UserResponse
)

from app.schemas.business import (
    CustomerCreate, CustomerUpdate, CustomerResponse, CustomerDetailResponse, CustomerListResponse,
    PropertyCreate, PropertyUpdate, PropertyResponse, PropertyDetailResponse, PropertyListResponse,
    InvoiceCreate, InvoiceUpdate, InvoiceResponse, InvoiceListResponse, LineItemCreate,
    ExpenseCreate, ExpenseUpdate, ExpenseResponse, ExpenseListResponse,
    RecurringTemplateCreate, RecurringTemplateUpdate, RecurringTemplateResponse
)

__all__ = [
    "BaseSchema", "BaseResponseSchema", "PaginationParams", "PaginatedResponse",
    "ErrorResponse", "ValidationErrorResponse", "SuccessResponse",
    "RegisterRequest", "LoginRequest", "TokenResponse", "UserResponse",
    "CustomerCreate", "CustomerUpdate", "CustomerResponse", "CustomerDetailResponse", "CustomerListResponse",
    "PropertyCreate", "PropertyUpdate", "PropertyResponse", "PropertyDetailResponse", "PropertyListResponse",
    "InvoiceCreate", "InvoiceUpdate", "InvoiceResponse", "InvoiceListResponse", "LineItemCreate",
    "ExpenseCreate", "ExpenseUpdate", "ExpenseResponse", "ExpenseListResponse",
    "RecurringTemplateCreate", "RecurringTemplateUpdate", "RecurringTemplateResponse",
]
