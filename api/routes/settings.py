"""API routes for business settings, logos and backups"""

from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.dependencies import get_app_settings
from invoicehub.models.app_settings import AppSettings, merge_settings
from invoicehub.models.database import get_db
from invoicehub.models.document import CompanyTag
from invoicehub.pdf.branding import decode_logo
from invoicehub.services.db_service import DatabaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


class LogoUpload(BaseModel):
    company: CompanyTag
    logo: str  # data URL or base64


@router.get("", response_model=AppSettings)
async def get_settings(app_settings: AppSettings = Depends(get_app_settings)):
    return app_settings


@router.put("", response_model=AppSettings)
async def replace_settings(
    new_settings: AppSettings,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Save the whole settings object"""
    saved = await DatabaseService.save_settings(new_settings, db=db)
    request.app.state.app_settings = saved
    return saved


@router.patch("", response_model=AppSettings)
async def update_settings(
    changes: Dict[str, Any],
    request: Request,
    db: AsyncSession = Depends(get_db),
    app_settings: AppSettings = Depends(get_app_settings),
):
    """Merge ``changes`` into the current settings, then save the full object"""
    try:
        merged = merge_settings(app_settings, changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    saved = await DatabaseService.save_settings(merged, db=db)
    request.app.state.app_settings = saved
    return saved


@router.put("/logo")
async def upload_logo(upload: LogoUpload, db: AsyncSession = Depends(get_db)):
    """Store an uploaded logo for one company"""
    try:
        decode_logo(upload.logo)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid logo: {e}")
    await DatabaseService.save_logo(upload.company, upload.logo, db=db)
    logger.info(f"Stored logo for {upload.company.value}")
    return {"company": upload.company.value, "stored": True}


@router.get("/backup")
async def export_backup(db: AsyncSession = Depends(get_db)):
    """All products, documents, customers and logos as one JSON download"""
    return await DatabaseService.export_backup(db=db)
