"""API routes for the email-send and Xero webhooks"""

from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
import logging

from api.dependencies import account_manager_label, get_app_settings, get_current_user
from invoicehub.integrations.integration_service import IntegrationService
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import User
from invoicehub.models.database import get_db
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.document_service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["integrations"])


class SendRequest(BaseModel):
    notification_type: Optional[str] = None


def get_integration_service() -> IntegrationService:
    return IntegrationService()


@router.post("/{document_id}/send")
async def send_document(
    document_id: str,
    request: Optional[SendRequest] = None,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
    user: Optional[User] = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Render and post the document to the email-send webhook"""
    document = await DocumentService(db).get(document_id)
    customer = await DatabaseService.get_customer(document.customer_id, db=db) if document.customer_id else None
    logo = await DatabaseService.get_logo(document.company, db=db)

    await run_in_threadpool(
        integrations.send_document_email,
        document,
        app_settings,
        customer=customer,
        logo=logo,
        notification_type=request.notification_type if request else None,
        created_by=account_manager_label(user),
    )
    return {"sent": True, "document_id": document_id}


@router.post("/{document_id}/xero")
async def transfer_to_xero(
    document_id: str,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
    user: Optional[User] = Depends(get_current_user),
    integrations: IntegrationService = Depends(get_integration_service),
):
    """Post the invoice to the Xero webhook; ``success`` mirrors the endpoint's answer"""
    document = await DocumentService(db).get(document_id)
    customer = await DatabaseService.get_customer(document.customer_id, db=db) if document.customer_id else None

    success = await run_in_threadpool(
        integrations.send_to_xero, document, customer, app_settings, user=user
    )
    if not success:
        logger.warning(f"Xero transfer for {document.number} was not accepted")
    return {"success": success, "document_id": document_id}
