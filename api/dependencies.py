"""Shared FastAPI dependencies"""

from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import User
from invoicehub.models.database import get_db
from invoicehub.services.db_service import DatabaseService


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Identity passed in by the session layer; a stored user record wins"""
    if not x_user_id:
        return None
    stored = await DatabaseService.get_user(x_user_id, db=db)
    if stored:
        return stored
    return User(id=x_user_id, name=x_user_name or x_user_id, email=x_user_email)


def get_app_settings(request: Request) -> AppSettings:
    """Business settings loaded at startup (defaults until first saved)"""
    app_settings = getattr(request.app.state, "app_settings", None)
    if app_settings is None:
        app_settings = AppSettings()
        request.app.state.app_settings = app_settings
    return app_settings


def account_manager_label(user: Optional[User]) -> str:
    return user.name if user else "Admin"
