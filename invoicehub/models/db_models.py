"""SQLAlchemy ORM models"""

from sqlalchemy import Column, String, Integer, DateTime, Date, Numeric, Text, JSON, Index
from datetime import datetime
import uuid

from .database import Base


class Document(Base):
    """Invoices and quotes share one table, discriminated by document_type"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = Column(String(50), nullable=False, index=True)
    document_type = Column(String(20), nullable=False, default="invoice")
    company = Column(String(20), nullable=False, default="clonmel")

    # Customer snapshot + CRM link
    customer_id = Column(String(36), nullable=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_address = Column(Text, nullable=True)

    # Line items (stored as JSON, decimals as strings)
    items = Column(JSON, nullable=False, default=list)

    # Money
    subtotal = Column(Numeric(18, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=23)
    tax_amount = Column(Numeric(18, 2), nullable=False, default=0)
    total = Column(Numeric(18, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(18, 2), nullable=False, default=0)
    balance_due = Column(Numeric(18, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="UNPAID")

    # Dates
    date_issued = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)
    payment_date = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)

    # Reminders
    last_reminder_sent = Column(Date, nullable=True)
    reminder_count = Column(Integer, nullable=True, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_documents_status', 'status'),
        Index('ix_documents_date_issued', 'date_issued'),
    )


class Customer(Base):
    """CRM customers"""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    address_line_2 = Column(String, nullable=True)
    city = Column(String, nullable=True)
    region = Column(String, nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String, nullable=True, default="Ireland")
    company = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Product(Base):
    """Catalog products"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=False, default="pcs")
    category = Column(String, nullable=True)
    company = Column(String(20), nullable=True)


class User(Base):
    """Users known to the session layer"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String(10), nullable=False, default="USER")


class AppSettingsRecord(Base):
    """Key/value blobs; the business settings live under 'global_settings'"""
    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=True)
