# ================================
# PHOTO & NOTE MODELS (models/media.py)
# ================================

from sqlalchemy import Column, String, Text, Integer, Boolean, Date, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship, declared_attr

from app.models.base import Base

class PhotoMixin:
    """File metadata shared by all photo tables"""

    filename = Column(String(255), nullable=False)  # stored name on disk
    original_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # relative to UPLOAD_DIR
    mime_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    @declared_attr
    def uploaded_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

# ================================
# Customer-scoped
# ================================

class CustomerPhoto(PhotoMixin, Base):
    __tablename__ = "customer_photos"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True)
    # house_exterior, house_interior, before_work, after_work, damage, materials, other
    category = Column(String(30), default="other", nullable=False)

    customer = relationship("Customer", back_populates="photos")

class CustomerNote(Base):
    __tablename__ = "customer_notes"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    # paint_codes, materials, preferences, access_info, special_instructions, job_history, other
    category = Column(String(30), default="other", nullable=False)
    priority = Column(String(10), default="medium", nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)

    customer = relationship("Customer", back_populates="notes")

# ================================
# Property-scoped
# ================================

class PropertyPhoto(PhotoMixin, Base):
    __tablename__ = "property_photos"

    property_id = Column(Uuid(as_uuid=True), ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True)
    # exterior_front, exterior_back, exterior_side, interior_room, before_work, after_work,
    # during_work, damage, materials, equipment, access_point, other
    category = Column(String(30), default="other", nullable=False)
    room = Column(String(100), nullable=True)
    floor = Column(String(50), nullable=True)
    date_taken = Column(Date, nullable=True)

    property = relationship("Property", back_populates="photos")

class PropertyNote(Base):
    __tablename__ = "property_notes"

    property_id = Column(Uuid(as_uuid=True), ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    # paint_codes, materials, measurements, access_info, special_instructions, damage_notes,
    # maintenance_history, client_preferences, safety_concerns, other
    category = Column(String(30), default="other", nullable=False)
    priority = Column(String(10), default="medium", nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    reminder_date = Column(Date, nullable=True)
    room = Column(String(100), nullable=True)
    floor = Column(String(50), nullable=True)

    property = relationship("Property", back_populates="notes")

# ================================
# Invoice-scoped
# ================================

class InvoicePhoto(PhotoMixin, Base):
    __tablename__ = "invoice_photos"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    # receipt, before_work, after_work, damage, materials, other
    category = Column(String(30), default="receipt", nullable=False)

    invoice = relationship("Invoice", back_populates="photos")
