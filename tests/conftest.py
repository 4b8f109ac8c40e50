"""Pytest configuration and shared fixtures"""

import pytest
import os
import sys
from typing import AsyncGenerator
from datetime import date
from decimal import Decimal
from io import BytesIO
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from invoicehub.models.database import Base
from invoicehub.models import db_models  # noqa: F401
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer, CustomerAddress, User
from invoicehub.models.document import (
    CompanyTag,
    CustomerSnapshot,
    Document,
    DocumentType,
    LineItem,
    PaymentState,
    Product,
    QuoteState,
)


# Test database setup (SQLite in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test

    Yields:
        Async database session
    """
    # Create tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async with TestingSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def sample_document() -> Document:
    """Unpaid invoice: one line of 100.00 at 23% VAT"""
    return Document(
        id="doc-123",
        number="INV-482913",
        document_type=DocumentType.INVOICE,
        company=CompanyTag.CLONMEL,
        customer=CustomerSnapshot(
            name="Mary Walsh",
            email="mary@example.ie",
            phone="087 123 4567",
            address="12 Main Street, Clonmel, E91 X2Y3, Ireland",
        ),
        items=[
            LineItem(
                id="item-1",
                product_id="prod-1",
                description="6mm Toughened Glass",
                quantity=Decimal("1"),
                unit_price=Decimal("100.00"),
                total=Decimal("100.00"),
                unit="pcs",
            )
        ],
        subtotal=Decimal("100.00"),
        tax_rate=Decimal("23"),
        tax_amount=Decimal("23.00"),
        total=Decimal("123.00"),
        amount_paid=Decimal("0.00"),
        balance_due=Decimal("123.00"),
        status=PaymentState.UNPAID,
        issue_date=date(2024, 3, 1),
        due_date=date(2024, 3, 31),
        notes="Payment due within 30 days.",
        created_by="user-1",
    )


@pytest.fixture
def sample_quote(sample_document) -> Document:
    """Pending quote with the same line as ``sample_document``"""
    return sample_document.model_copy(update={
        "id": "quote-456",
        "number": "QT-771204",
        "document_type": DocumentType.QUOTE,
        "status": QuoteState.PENDING,
        "valid_until": date(2024, 3, 31),
    })


@pytest.fixture
def sample_settings() -> AppSettings:
    """Business settings with both webhooks configured"""
    return AppSettings(
        tax_rate=Decimal("23"),
        webhook_url="https://hooks.example.com/email",
        xero_webhook_url="https://hooks.example.com/xero",
    )


@pytest.fixture
def sample_customer() -> Customer:
    return Customer(
        id="cust-1",
        name="Mary Walsh",
        email="mary@example.ie",
        phone="087 123 4567",
        address=CustomerAddress(
            line1="12 Main Street",
            city="Clonmel",
            region="Tipperary",
            postal_code="E91 X2Y3",
            country="Ireland",
        ),
        company="Walsh Interiors",
        tags=["Trade"],
        notes="Prefers email",
    )


@pytest.fixture
def sample_user() -> User:
    return User(id="user-1", name="Sean Murphy", email="sean@clonmelglass.ie")


@pytest.fixture
def sample_product() -> Product:
    """Per-piece catalog product"""
    return Product(
        id="prod-1",
        name="6mm Toughened Glass",
        price=Decimal("100.00"),
        unit="pcs",
        category="Glass",
        company=CompanyTag.CLONMEL,
    )


@pytest.fixture
def sample_area_product() -> Product:
    """Product priced per square metre"""
    return Product(
        id="prod-2",
        name="4mm Silver Mirror",
        price=Decimal("30.00"),
        unit="sqm",
        category="Mirrors",
        company=CompanyTag.MIRRORZONE,
    )


@pytest.fixture
def transparent_png() -> bytes:
    """Small RGBA PNG with a fully transparent background"""
    image = Image.new("RGBA", (40, 20), (0, 0, 0, 0))
    image.paste((220, 38, 38, 255), (10, 5, 30, 15))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
