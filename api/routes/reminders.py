"""API routes for payment reminders"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import get_app_settings
from invoicehub.integrations.integration_service import IntegrationService
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.database import get_db
from invoicehub.models.document import CompanyTag, Document
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.document_service import DocumentService
from invoicehub.services.reminder_service import ReminderService, overdue_count, reminder_watchlist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["reminders"])


def get_reminder_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
) -> ReminderService:
    """
    Reminder service shared across requests.

    The instance lives on ``app.state`` so a switch to in-memory reminder
    tracking survives between runs; the session and settings are rebound.
    """
    service = getattr(request.app.state, "reminder_service", None)
    if service is None:
        service = ReminderService(DocumentService(db), IntegrationService(), app_settings)
        request.app.state.reminder_service = service
    service.document_service = DocumentService(db)
    service.app_settings = app_settings
    return service


@router.get("/candidates", response_model=List[Document])
async def reminder_candidates(
    today: Optional[date] = None,
    service: ReminderService = Depends(get_reminder_service),
):
    """Documents the active policy would remind today"""
    documents = await service.document_service.load()
    return service.candidates(documents, today)


@router.get("/watchlist")
async def watchlist(today: Optional[date] = None, db: AsyncSession = Depends(get_db)):
    """Unpaid invoices due within three days or overdue"""
    documents = await DatabaseService.list_documents(db=db)
    return {
        "overdue": overdue_count(documents, today),
        "documents": reminder_watchlist(documents, today),
    }


@router.post("/run")
async def run_reminders(
    today: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    service: ReminderService = Depends(get_reminder_service),
):
    """Send every eligible reminder now"""
    customers = {c.id: c for c in await DatabaseService.list_customers(db=db)}
    logos = {company: await DatabaseService.get_logo(company, db=db) for company in CompanyTag}
    result = await service.run(today=today, customers=customers, logos=logos)
    logger.info(f"Reminder run: {result.sent} sent, {result.failed} failed, {result.skipped_cap} deferred")
    return {
        "checked": result.checked,
        "sent": result.sent,
        "failed": result.failed,
        "skippedCap": result.skipped_cap,
        "localMode": result.local_mode,
        "log": result.log,
    }
