# ================================
# DATABASE INITIALIZATION (models/__init__.py)
# ================================

"""
Database Models Package

Imports every model so Alembic and metadata.create_all see all tables
"""

from app.models.base import Base

from app.models.user import User
from app.models.business import (
    Customer, Property, PropertyServiceHistory,
    Invoice, InvoiceLineItem, Expense, RecurringTemplate,
    InvoiceStatus, RecurringFrequency, PropertyType, ExpenseCategory, ServiceType
)
from app.models.media import (
    CustomerPhoto, CustomerNote,
    PropertyPhoto, PropertyNote,
    InvoicePhoto
)

__all__ = [
    "Base",
    "User",
    "Customer",
    "Property",
    "PropertyServiceHistory",
    "Invoice",
    "InvoiceLineItem",
    "Expense",
    "RecurringTemplate",
    "InvoiceStatus",
    "RecurringFrequency",
    "PropertyType",
    "ExpenseCategory",
    "ServiceType",
    "CustomerPhoto",
    "CustomerNote",
    "PropertyPhoto",
    "PropertyNote",
    "InvoicePhoto",
]
