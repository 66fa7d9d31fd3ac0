# ================================
# INVOICING MODELS (models/business.py)
# ================================

from sqlalchemy import Column, String, Text, Integer, Boolean, Date, DateTime, ForeignKey, JSON, Numeric, Uuid, Index
from sqlalchemy.orm import relationship
import enum

from app.models.base import Base

# ================================
# Enumerations (stored as plain strings)
# ================================

class InvoiceStatus(str, enum.Enum):
    DRAFT = "Draft"
    UNPAID = "Unpaid"
    PAID = "Paid"
    OVERDUE = "Overdue"

class RecurringFrequency(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"

class PropertyType(str, enum.Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    OTHER = "other"

class ExpenseCategory(str, enum.Enum):
    MATERIALS = "materials"
    FUEL = "fuel"
    TOOLS = "tools"
    PERMITS = "permits"
    SUBCONTRACTOR = "subcontractor"
    EQUIPMENT_RENTAL = "equipment_rental"
    SUPPLIES = "supplies"
    OTHER = "other"

class ServiceType(str, enum.Enum):
    PAINTING = "painting"
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"
    ESTIMATE = "estimate"
    CONSULTATION = "consultation"
    CLEANUP = "cleanup"
    PREPARATION = "preparation"
    OTHER = "other"

# ================================
# Customers
# ================================

class Customer(Base):
    """Billed party; owns properties, invoices and recurring templates"""
    __tablename__ = "customers"

    name = Column(String(100), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    billing_address = Column(Text, nullable=True)

    # Relationships
    properties = relationship("Property", back_populates="customer", cascade="all, delete-orphan", order_by="Property.name")
    invoices = relationship("Invoice", back_populates="customer")
    recurring_templates = relationship("RecurringTemplate", back_populates="customer", cascade="all, delete-orphan")
    photos = relationship("CustomerPhoto", back_populates="customer", cascade="all, delete-orphan", order_by="CustomerPhoto.uploaded_at.desc()")
    notes = relationship("CustomerNote", back_populates="customer", cascade="all, delete-orphan", order_by="CustomerNote.created_at.desc()")

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"

# ================================
# Properties
# ================================

class Property(Base):
    """Service location belonging to a customer"""
    __tablename__ = "properties"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True)

    # Location
    name = Column(String(100), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)

    # Structure
    property_type = Column(String(20), default=PropertyType.RESIDENTIAL.value, nullable=False)
    square_footage = Column(Integer, nullable=True)
    year_built = Column(Integer, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Numeric(3, 1), nullable=True)
    floors = Column(Integer, nullable=True, default=1)

    description = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)

    # Access metadata
    access_notes = Column(Text, nullable=True)
    gate_code = Column(String(50), nullable=True)
    key_location = Column(Text, nullable=True)
    contact_on_site = Column(String(100), nullable=True)
    contact_phone = Column(String(20), nullable=True)
    preferred_service_time = Column(String(100), nullable=True)

    last_service_date = Column(Date, nullable=True)
    next_service_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="properties")
    invoices = relationship("Invoice", back_populates="property")
    photos = relationship("PropertyPhoto", back_populates="property", cascade="all, delete-orphan", order_by="PropertyPhoto.uploaded_at.desc()")
    notes = relationship("PropertyNote", back_populates="property", cascade="all, delete-orphan", order_by="PropertyNote.created_at.desc()")
    service_history = relationship("PropertyServiceHistory", back_populates="property", cascade="all, delete-orphan", order_by="PropertyServiceHistory.service_date.desc()")

    def __repr__(self):
        return f"<Property(id={self.id}, name='{self.name}')>"

class PropertyServiceHistory(Base):
    """Record of work performed at a property"""
    __tablename__ = "property_service_history"

    property_id = Column(Uuid(as_uuid=True), ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True)

    service_date = Column(Date, nullable=False)
    service_type = Column(String(20), default=ServiceType.OTHER.value, nullable=False)
    description = Column(Text, nullable=False)
    rooms_serviced = Column(JSON, nullable=True)  # list of room names
    materials_used = Column(JSON, nullable=True)  # list of {name, quantity, ...}
    time_spent = Column(Numeric(5, 2), nullable=True)  # hours
    labor_cost = Column(Numeric(10, 2), nullable=True)
    material_cost = Column(Numeric(10, 2), nullable=True)
    total_cost = Column(Numeric(10, 2), nullable=True)
    technicians = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    warranty_info = Column(Text, nullable=True)
    follow_up_required = Column(Boolean, default=False, nullable=False)
    follow_up_date = Column(Date, nullable=True)
    customer_satisfaction = Column(Integer, nullable=True)  # 1-5
    customer_feedback = Column(Text, nullable=True)

    # Relationships
    property = relationship("Property", back_populates="service_history")
    invoice = relationship("Invoice", back_populates="service_records")

# ================================
# Invoices
# ================================

class Invoice(Base):
    """Invoice header; totals are cached from the line items"""
    __tablename__ = "invoices"

    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey('customers.id'), nullable=False, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey('properties.id'), nullable=True, index=True)
    recurring_template_id = Column(Uuid(as_uuid=True), ForeignKey('recurring_templates.id', ondelete='SET NULL'), nullable=True)

    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=True)
    sent_date = Column(DateTime(timezone=True), nullable=True)

    tax_rate = Column(Numeric(5, 2), default=0, nullable=False)
    status = Column(String(20), default=InvoiceStatus.UNPAID.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Cached totals, always recomputed from line items
    subtotal = Column(Numeric(12, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(12, 2), default=0, nullable=False)
    grand_total = Column(Numeric(12, 2), default=0, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="invoices")
    property = relationship("Property", back_populates="invoices")
    recurring_template = relationship("RecurringTemplate", back_populates="invoices")
    line_items = relationship("InvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceLineItem.position")
    photos = relationship("InvoicePhoto", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoicePhoto.uploaded_at.desc()")
    expenses = relationship("Expense", back_populates="invoice")
    service_records = relationship("PropertyServiceHistory", back_populates="invoice")

    __table_args__ = (
        Index('ix_invoices_status_due_date', 'status', 'due_date'),
    )

    def __repr__(self):
        return f"<Invoice(number='{self.invoice_number}', status='{self.status}')>"

class InvoiceLineItem(Base):
    """Single billable row on an invoice"""
    __tablename__ = "invoice_line_items"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    position = Column(Integer, default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")

# ================================
# Expenses
# ================================

class Expense(Base):
    """Business expense, optionally billed through an invoice"""
    __tablename__ = "expenses"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True, index=True)
    vendor = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    expense_date = Column(Date, nullable=False, index=True)
    category = Column(String(30), default=ExpenseCategory.OTHER.value, nullable=False)
    receipt_path = Column(String(500), nullable=True)
    parsed_data = Column(JSON, nullable=True)  # Output of receipt parsing

    invoice = relationship("Invoice", back_populates="expenses")

# ================================
# Recurring Templates
# ================================

class RecurringTemplate(Base):
    """Invoice blueprint that spawns invoices on a schedule"""
    __tablename__ = "recurring_templates"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True)
    template_name = Column(String(100), nullable=False)

    # {"line_items": [{description, quantity, unit_price}], "notes": str, "payment_terms": int, "property_id": str}
    base_invoice_data = Column(JSON, nullable=False)
    tax_rate = Column(Numeric(5, 2), default=0, nullable=False)

    frequency = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    occurrences = Column(Integer, nullable=True)
    next_run_date = Column(Date, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    completed_occurrences = Column(Integer, default=0, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="recurring_templates")
    invoices = relationship("Invoice", back_populates="recurring_template")

    def __repr__(self):
        return f"<RecurringTemplate(name='{self.template_name}', frequency='{self.frequency}')>"
