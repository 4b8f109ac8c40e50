"""API routes for invoices and quotes"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import account_manager_label, get_app_settings, get_current_user
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import CustomerAddress, User
from invoicehub.models.database import get_db
from invoicehub.models.document import CompanyTag, Document, DocumentType, LineItem, QuoteState
from invoicehub.pdf.document_renderer import DocumentRenderer, pdf_filename
from invoicehub.services.calculator import build_line_item
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.document_service import DocumentService, new_draft

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


class DraftRequest(BaseModel):
    document_type: DocumentType = DocumentType.INVOICE
    company: CompanyTag = CompanyTag.CLONMEL


class SaveDocumentRequest(BaseModel):
    document: Document
    address: Optional[CustomerAddress] = Field(
        None, description="Structured billing address; joined into the snapshot and used for auto-created customers"
    )


class LineItemRequest(BaseModel):
    product_id: str
    quantity: Optional[Decimal] = None
    width_mm: Optional[Decimal] = None
    height_mm: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    description: Optional[str] = None


class PaymentRequest(BaseModel):
    amount: Decimal


class QuoteStateRequest(BaseModel):
    state: QuoteState


@router.post("/drafts", response_model=Document)
async def create_draft(
    request: DraftRequest,
    app_settings: AppSettings = Depends(get_app_settings),
    user: Optional[User] = Depends(get_current_user),
):
    """Unsaved document with a provisional number"""
    return new_draft(request.document_type, request.company, app_settings, user=user)


@router.post("/line-items", response_model=LineItem)
async def create_line_item(request: LineItemRequest, db: AsyncSession = Depends(get_db)):
    """Price a catalog product (area-priced when width and height are given)"""
    products = {p.id: p for p in await DatabaseService.list_products(db=db)}
    product = products.get(request.product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {request.product_id} not found")
    return build_line_item(
        product,
        quantity=request.quantity,
        width_mm=request.width_mm,
        height_mm=request.height_mm,
        unit_price=request.unit_price,
        description=request.description,
    )


@router.post("", response_model=Document)
async def save_document(
    request: SaveDocumentRequest,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_current_user),
):
    """Validate, derive totals and store (create or update in place)"""
    service = DocumentService(db)
    return await service.save(request.document, address=request.address, user=user)


@router.get("", response_model=List[Document])
async def list_documents(
    document_type: Optional[DocumentType] = None,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 500,
    db: AsyncSession = Depends(get_db),
):
    return await DatabaseService.list_documents(
        skip=skip,
        limit=limit,
        document_type=document_type.value if document_type else None,
        status=status,
        db=db,
    )


@router.get("/{document_id}", response_model=Document)
async def get_document(document_id: str, db: AsyncSession = Depends(get_db)):
    return await DocumentService(db).get(document_id)


@router.delete("/{document_id}")
async def delete_document(document_id: str, db: AsyncSession = Depends(get_db)):
    await DocumentService(db).delete(document_id)
    return {"deleted": document_id}


@router.post("/{document_id}/payments", response_model=Document)
async def record_payment(document_id: str, request: PaymentRequest, db: AsyncSession = Depends(get_db)):
    """Record a payment; amounts <= 0 leave the document unchanged"""
    return await DocumentService(db).record_payment(document_id, request.amount)


@router.post("/{document_id}/convert", response_model=Document)
async def convert_to_invoice(document_id: str, db: AsyncSession = Depends(get_db)):
    """Quote -> invoice with a fresh invoice number"""
    return await DocumentService(db).convert(document_id)


@router.post("/{document_id}/quote-state", response_model=Document)
async def set_quote_state(document_id: str, request: QuoteStateRequest, db: AsyncSession = Depends(get_db)):
    return await DocumentService(db).set_quote_state(document_id, request.state)


async def _render(
    document_id: str,
    db: AsyncSession,
    app_settings: AppSettings,
    user: Optional[User],
    printed_at: Optional[date],
):
    document = await DocumentService(db).get(document_id)
    logo = await DatabaseService.get_logo(document.company, db=db)
    pdf = DocumentRenderer().render(
        document,
        app_settings,
        logo=logo,
        created_by=account_manager_label(user),
        printed_at=printed_at,
    )
    return document, pdf


@router.get("/{document_id}/pdf")
async def download_pdf(
    document_id: str,
    printed_at: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
    user: Optional[User] = Depends(get_current_user),
):
    """PDF as a download named after the document number"""
    document, pdf = await _render(document_id, db, app_settings, user, printed_at)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{pdf_filename(document)}"'},
    )


@router.get("/{document_id}/preview")
async def preview_pdf(
    document_id: str,
    printed_at: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
    user: Optional[User] = Depends(get_current_user),
):
    """Same PDF as the download, served inline"""
    document, pdf = await _render(document_id, db, app_settings, user, printed_at)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{pdf_filename(document)}"'},
    )
