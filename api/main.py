"""FastAPI application entry point"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
import logging

# Setup logging
from invoicehub.logging_config import setup_logging
setup_logging()

load_dotenv()

from invoicehub.config import settings
from invoicehub.errors import (
    ConfigurationError,
    DatabaseMissingError,
    DocumentNotFoundError,
    DocumentValidationError,
    WebhookDeliveryError,
)
from invoicehub.models.app_settings import AppSettings

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Invoices, quotes, payments and reminders for Clonmel Glass & MirrorZone",
    version=settings.APP_VERSION,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def _init_database() -> None:
    """Ensure tables exist and load the stored business settings"""
    from invoicehub.models.database import Base, engine
    # Import all models to ensure they're registered with Base
    from invoicehub.models import db_models  # noqa: F401
    from invoicehub.services.db_service import DatabaseService

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    stored = await DatabaseService.get_settings()
    app.state.app_settings = stored or AppSettings()
    logger.info(f"Loaded {'stored' if stored else 'default'} business settings")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(DocumentValidationError)
async def _validation_error(request: Request, exc: DocumentValidationError):
    return _error(422, exc)


@app.exception_handler(ConfigurationError)
async def _configuration_error(request: Request, exc: ConfigurationError):
    return _error(400, exc)


@app.exception_handler(DocumentNotFoundError)
async def _not_found(request: Request, exc: DocumentNotFoundError):
    return _error(404, exc)


@app.exception_handler(WebhookDeliveryError)
async def _webhook_error(request: Request, exc: WebhookDeliveryError):
    return _error(502, exc)


@app.exception_handler(DatabaseMissingError)
async def _database_missing(request: Request, exc: DatabaseMissingError):
    logger.error(f"Database schema missing: {exc.original_error}")
    return _error(503, exc)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


# Import routes
from api.routes import documents, integrations, reminders, settings as settings_routes, customers, products, dashboard
app.include_router(documents.router, prefix="/api")
app.include_router(integrations.router, prefix="/api")
app.include_router(reminders.router, prefix="/api")
app.include_router(settings_routes.router, prefix="/api")
app.include_router(customers.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
