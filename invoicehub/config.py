"""Application configuration"""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Process-level settings (business settings live in the database)"""

    # Application
    APP_NAME: str = "GlassInvoiceHub"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./invoicehub.db")

    # Storage (durable key-value slot for the reminder counter)
    LOCAL_STORAGE_PATH: str = os.getenv("LOCAL_STORAGE_PATH", "./storage")

    # Branding
    LOGO_DIR: str = os.getenv("LOGO_DIR", "./static")

    # Documents
    DEFAULT_TAX_RATE: float = float(os.getenv("DEFAULT_TAX_RATE", "23"))

    # Webhooks
    WEBHOOK_TIMEOUT_SECONDS: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "30"))

    # Reminders
    REMINDER_POLICY: str = os.getenv("REMINDER_POLICY", "due_date")  # due_date, rolling_gap
    REMINDER_GAP_DAYS: int = int(os.getenv("REMINDER_GAP_DAYS", "3"))
    MAX_REMINDERS: int = int(os.getenv("MAX_REMINDERS", "4"))
    MAX_DAILY_AUTOMATED_EMAILS: int = int(os.getenv("MAX_DAILY_AUTOMATED_EMAILS", "50"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
