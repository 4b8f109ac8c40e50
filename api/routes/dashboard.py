"""API route for dashboard headline figures"""

from dataclasses import asdict
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from invoicehub.models.database import get_db
from invoicehub.services.dashboard import PERIODS, filter_by_period, summarize
from invoicehub.services.db_service import DatabaseService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
async def dashboard(
    period: str = "all",
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Unknown period '{period}'")
    documents = await DatabaseService.list_documents(limit=100000, db=db)
    in_period = filter_by_period(documents, period, today=today, start=start, end=end)
    summary = summarize(in_period, today=today)
    return {"period": period, "documents": len(in_period), **asdict(summary)}
