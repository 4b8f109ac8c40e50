"""Error taxonomy for the invoicing core"""

from typing import Optional


class InvoiceHubError(Exception):
    """Base class for all invoicing errors"""
    pass


class ConfigurationError(InvoiceHubError):
    """A required setting (e.g. a webhook URL) is missing. Never retried."""
    pass


class DocumentValidationError(InvoiceHubError):
    """Document rejected before any remote call was attempted"""
    pass


class DocumentNotFoundError(InvoiceHubError):
    """No document with the requested id"""

    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class DatabaseMissingError(InvoiceHubError):
    """A table the store expects does not exist"""

    def __init__(self, message: str = "DATABASE_MISSING", original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ReminderColumnMissingError(InvoiceHubError):
    """The store has no column for reminder tracking; callers may fall back to memory"""

    def __init__(self, message: str = "COLUMN_MISSING_REMINDER", original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class WebhookDeliveryError(InvoiceHubError):
    """The webhook endpoint was unreachable or answered with a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
