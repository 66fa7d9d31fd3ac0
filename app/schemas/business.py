# ================================
# INVOICING SCHEMAS (schemas/business.py)
# ================================

from pydantic import Field, EmailStr, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from app.schemas.base import BaseSchema, BaseResponseSchema, PaginatedResponse

PHONE_PATTERN = r"^[\d\s\-\+\(\)\.]*$"

INVOICE_STATUS_PATTERN = "^(Draft|Unpaid|Paid|Overdue)$"
FREQUENCY_PATTERN = "^(WEEKLY|MONTHLY|QUARTERLY|YEARLY)$"
PROPERTY_TYPE_PATTERN = "^(residential|commercial|industrial|other)$"
EXPENSE_CATEGORY_PATTERN = "^(materials|fuel|tools|permits|subcontractor|equipment_rental|supplies|other)$"
SERVICE_TYPE_PATTERN = "^(painting|repair|maintenance|inspection|estimate|consultation|cleanup|preparation|other)$"
PRIORITY_PATTERN = "^(low|medium|high)$"

CUSTOMER_NOTE_CATEGORY_PATTERN = "^(paint_codes|materials|preferences|access_info|special_instructions|job_history|other)$"
PROPERTY_NOTE_CATEGORY_PATTERN = (
    "^(paint_codes|materials|measurements|access_info|special_instructions|damage_notes|"
    "maintenance_history|client_preferences|safety_concerns|other)$"
)

CUSTOMER_PHOTO_CATEGORIES = {"house_exterior", "house_interior", "before_work", "after_work", "damage", "materials", "other"}
PROPERTY_PHOTO_CATEGORIES = {
    "exterior_front", "exterior_back", "exterior_side", "interior_room", "before_work", "after_work",
    "during_work", "damage", "materials", "equipment", "access_point", "other"
}
INVOICE_PHOTO_CATEGORIES = {"receipt", "before_work", "after_work", "damage", "materials", "other"}

# ================================
# Customer Schemas
# ================================

class CustomerBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    billing_address: Optional[str] = Field(None, max_length=500)

    @field_validator('email', mode='before')
    @classmethod
    def empty_email_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

class CustomerCreate(CustomerBase):
    pass

class CustomerUpdate(CustomerBase):
    name: Optional[str] = Field(None, min_length=1, max_length=100)

class CustomerSummary(BaseResponseSchema):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

class CustomerResponse(CustomerBase, BaseResponseSchema):
    email: Optional[str] = None
    property_count: int = 0
    invoice_count: int = 0
    created_at: datetime
    updated_at: datetime

class CustomerListResponse(PaginatedResponse):
    items: List[CustomerResponse]

# ================================
# Note Schemas
# ================================

class CustomerNoteCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: str = Field(default="other", pattern=CUSTOMER_NOTE_CATEGORY_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)

class CustomerNoteUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, pattern=CUSTOMER_NOTE_CATEGORY_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    is_archived: Optional[bool] = None

class CustomerNoteResponse(BaseResponseSchema):
    customer_id: UUID
    title: str
    content: str
    category: str
    priority: str
    is_archived: bool
    created_at: datetime
    updated_at: datetime

class PropertyNoteCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: str = Field(default="other", pattern=PROPERTY_NOTE_CATEGORY_PATTERN)
    priority: str = Field(default="medium", pattern=PRIORITY_PATTERN)
    is_private: bool = False
    reminder_date: Optional[date] = None
    room: Optional[str] = Field(None, max_length=100)
    floor: Optional[str] = Field(None, max_length=50)

class PropertyNoteUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, pattern=PROPERTY_NOTE_CATEGORY_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    is_private: Optional[bool] = None
    reminder_date: Optional[date] = None
    room: Optional[str] = Field(None, max_length=100)
    floor: Optional[str] = Field(None, max_length=50)

class PropertyNoteResponse(BaseResponseSchema):
    property_id: UUID
    title: str
    content: str
    category: str
    priority: str
    is_private: bool
    reminder_date: Optional[date] = None
    room: Optional[str] = None
    floor: Optional[str] = None
    created_at: datetime
    updated_at: datetime

# ================================
# Photo Schemas
# ================================

class PhotoResponse(BaseResponseSchema):
    filename: str
    original_name: str
    mime_type: str
    file_size: int
    width: Optional[int] = None
    height: Optional[int] = None
    description: Optional[str] = None
    category: str
    url: str
    uploaded_at: datetime

class PropertyPhotoResponse(PhotoResponse):
    room: Optional[str] = None
    floor: Optional[str] = None
    date_taken: Optional[date] = None

# ================================
# Property Schemas
# ================================

class PropertyBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    property_type: str = Field(default="residential", pattern=PROPERTY_TYPE_PATTERN)
    square_footage: Optional[int] = Field(None, ge=0)
    year_built: Optional[int] = Field(None, ge=1800)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    floors: Optional[int] = Field(None, ge=1)

    description: Optional[str] = None
    special_instructions: Optional[str] = None

    access_notes: Optional[str] = None
    gate_code: Optional[str] = Field(None, max_length=50)
    key_location: Optional[str] = None
    contact_on_site: Optional[str] = Field(None, max_length=100)
    contact_phone: Optional[str] = Field(None, max_length=20, pattern=PHONE_PATTERN)
    preferred_service_time: Optional[str] = Field(None, max_length=100)

    next_service_date: Optional[date] = None
    is_active: bool = True

    @field_validator('year_built')
    @classmethod
    def validate_year_built(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > date.today().year + 1:
            raise ValueError(f"Year built cannot be later than {date.today().year + 1}")
        return v

class PropertyCreate(PropertyBase):
    pass

class PropertyUpdate(PropertyBase):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, min_length=1)
    property_type: Optional[str] = Field(None, pattern=PROPERTY_TYPE_PATTERN)
    is_active: Optional[bool] = None
    last_service_date: Optional[date] = None

class PropertySummary(BaseResponseSchema):
    name: str
    address: str
    city: Optional[str] = None
    state: Optional[str] = None

class PropertyResponse(PropertyBase, BaseResponseSchema):
    customer_id: UUID
    last_service_date: Optional[date] = None
    photo_count: int = 0
    note_count: int = 0
    created_at: datetime
    updated_at: datetime

class ServiceHistoryCreate(BaseSchema):
    service_date: date
    service_type: str = Field(default="other", pattern=SERVICE_TYPE_PATTERN)
    description: str = Field(..., min_length=1)
    invoice_id: Optional[UUID] = None
    rooms_serviced: Optional[List[str]] = None
    materials_used: Optional[List[Dict[str, Any]]] = None
    time_spent: Optional[Decimal] = Field(None, ge=0)
    labor_cost: Optional[Decimal] = Field(None, ge=0)
    material_cost: Optional[Decimal] = Field(None, ge=0)
    total_cost: Optional[Decimal] = Field(None, ge=0)
    technicians: Optional[List[str]] = None
    notes: Optional[str] = None
    warranty_info: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[date] = None
    customer_satisfaction: Optional[int] = Field(None, ge=1, le=5)
    customer_feedback: Optional[str] = None

class ServiceHistoryResponse(BaseResponseSchema):
    property_id: UUID
    invoice_id: Optional[UUID] = None
    service_date: date
    service_type: str
    description: str
    rooms_serviced: Optional[List[str]] = None
    materials_used: Optional[List[Dict[str, Any]]] = None
    time_spent: Optional[float] = None
    labor_cost: Optional[float] = None
    material_cost: Optional[float] = None
    total_cost: Optional[float] = None
    technicians: Optional[List[str]] = None
    notes: Optional[str] = None
    warranty_info: Optional[str] = None
    follow_up_required: bool
    follow_up_date: Optional[date] = None
    customer_satisfaction: Optional[int] = None
    customer_feedback: Optional[str] = None
    created_at: datetime

# ================================
# Invoice Schemas
# ================================

class LineItemCreate(BaseSchema):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

class LineItemResponse(BaseResponseSchema):
    description: str
    quantity: float
    unit_price: float
    line_total: float
    position: int

class InvoiceCreate(BaseSchema):
    customer_id: UUID
    property_id: Optional[UUID] = None
    invoice_date: date = Field(default_factory=date.today)
    due_date: date
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    status: str = Field(default="Unpaid", pattern="^(Draft|Unpaid)$")
    notes: Optional[str] = Field(None, max_length=1000)
    line_items: List[LineItemCreate] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.due_date <= self.invoice_date:
            raise ValueError("Due date must be after invoice date")
        return self

class InvoiceUpdate(BaseSchema):
    customer_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    status: Optional[str] = Field(None, pattern=INVOICE_STATUS_PATTERN)
    payment_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)

class MarkPaidRequest(BaseSchema):
    payment_date: Optional[date] = None

class InvoiceListItem(BaseResponseSchema):
    invoice_number: str
    customer_id: UUID
    customer_name: Optional[str] = None
    property_id: Optional[UUID] = None
    property_name: Optional[str] = None
    invoice_date: date
    due_date: date
    payment_date: Optional[date] = None
    status: str
    tax_rate: float
    subtotal: float
    tax_amount: float
    grand_total: float
    is_overdue: bool = False
    days_overdue: int = 0

class InvoiceResponse(InvoiceListItem):
    sent_date: Optional[datetime] = None
    notes: Optional[str] = None
    recurring_template_id: Optional[UUID] = None
    customer: Optional[CustomerSummary] = None
    property: Optional[PropertySummary] = None
    line_items: List[LineItemResponse] = []
    photos: List[PhotoResponse] = []
    created_at: datetime
    updated_at: datetime

class InvoiceListResponse(PaginatedResponse):
    items: List[InvoiceListItem]

class CustomerDetailResponse(CustomerResponse):
    properties: List[PropertyResponse] = []
    recent_invoices: List[InvoiceListItem] = []
    notes: List[CustomerNoteResponse] = []
    photos: List[PhotoResponse] = []

class PropertyDetailResponse(PropertyResponse):
    customer: Optional[CustomerSummary] = None
    photos: List[PropertyPhotoResponse] = []
    notes: List[PropertyNoteResponse] = []
    service_history: List[ServiceHistoryResponse] = []
    recent_invoices: List[InvoiceListItem] = []

class PropertyListResponse(PaginatedResponse):
    items: List[PropertyResponse]

# ================================
# Expense Schemas
# ================================

class ExpenseCreate(BaseSchema):
    vendor: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    amount: Decimal = Field(..., ge=0)
    expense_date: date = Field(default_factory=date.today)
    category: str = Field(default="other", pattern=EXPENSE_CATEGORY_PATTERN)
    invoice_id: Optional[UUID] = None

class ExpenseUpdate(BaseSchema):
    vendor: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    amount: Optional[Decimal] = Field(None, ge=0)
    expense_date: Optional[date] = None
    category: Optional[str] = Field(None, pattern=EXPENSE_CATEGORY_PATTERN)
    invoice_id: Optional[UUID] = None

class ExpenseResponse(BaseResponseSchema):
    vendor: str
    description: str
    amount: float
    expense_date: date
    category: str
    invoice_id: Optional[UUID] = None
    invoice_number: Optional[str] = None
    has_receipt: bool = False
    receipt_url: Optional[str] = None
    parsed_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

class ExpenseListResponse(PaginatedResponse):
    items: List[ExpenseResponse]

# ================================
# Recurring Template Schemas
# ================================

class TemplateLineItem(BaseSchema):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

class BaseInvoiceData(BaseSchema):
    line_items: List[TemplateLineItem] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=1000)
    payment_terms: int = Field(default=30, ge=0, le=365, description="Days until due")
    property_id: Optional[UUID] = None

class RecurringTemplateCreate(BaseSchema):
    customer_id: UUID
    template_name: str = Field(..., min_length=1, max_length=100)
    base_invoice_data: BaseInvoiceData
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    frequency: str = Field(..., pattern=FREQUENCY_PATTERN)
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = Field(None, ge=1)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

class RecurringTemplateUpdate(BaseSchema):
    template_name: Optional[str] = Field(None, min_length=1, max_length=100)
    base_invoice_data: Optional[BaseInvoiceData] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    frequency: Optional[str] = Field(None, pattern=FREQUENCY_PATTERN)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    occurrences: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

class RecurringTemplateResponse(BaseResponseSchema):
    customer_id: UUID
    customer_name: Optional[str] = None
    template_name: str
    base_invoice_data: Dict[str, Any]
    tax_rate: float
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None
    next_run_date: Optional[date] = None
    is_active: bool
    completed_occurrences: int
    created_at: datetime
    updated_at: datetime

class RecurringTemplateListResponse(PaginatedResponse):
    items: List[RecurringTemplateResponse]

class GeneratedInvoiceResponse(BaseSchema):
    message: str
    invoice: InvoiceResponse
    template: RecurringTemplateResponse
