"""Outbound webhooks: email-send automation and Xero export"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Union
import logging

import requests

from invoicehub.config import settings
from invoicehub.errors import ConfigurationError, WebhookDeliveryError
from invoicehub.integrations.webhook_payloads import build_email_payload, build_xero_payload
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer, User
from invoicehub.models.document import Document
from invoicehub.pdf.document_renderer import DocumentRenderer

logger = logging.getLogger(__name__)


class IntegrationService:
    """Posts document payloads to the configured webhooks"""

    def __init__(self, renderer: Optional[DocumentRenderer] = None, timeout: Optional[float] = None):
        self.renderer = renderer or DocumentRenderer()
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS

    def _post(self, url: str, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    def send_document_email(
        self,
        document: Document,
        app_settings: AppSettings,
        customer: Optional[Customer] = None,
        logo: Optional[Union[bytes, str]] = None,
        notification_type: Optional[str] = None,
        created_by: str = "Admin",
        printed_at: Optional[date] = None,
    ) -> bool:
        """
        Render the document and post it to the email-send webhook.

        Raises:
            ConfigurationError: no webhook URL configured (nothing is sent)
            WebhookDeliveryError: endpoint unreachable or non-2xx response
        """
        url = app_settings.webhook_url
        if not url:
            raise ConfigurationError("Webhook URL not configured in Settings.")

        pdf_bytes = self.renderer.render(
            document, app_settings, logo=logo, created_by=created_by, printed_at=printed_at
        )
        payload = build_email_payload(
            document,
            app_settings,
            pdf_bytes,
            customer=customer,
            notification_type=notification_type,
        )

        try:
            response = self._post(url, payload)
        except requests.RequestException as e:
            logger.error(f"Webhook sending failed for {document.number}: {e}")
            raise WebhookDeliveryError(f"Webhook failed: {e}") from e

        if not response.ok:
            logger.error(f"Webhook rejected {document.number}: {response.status_code} {response.reason}")
            raise WebhookDeliveryError(f"Webhook failed: {response.reason}", status_code=response.status_code)

        logger.info(f"Sent {document.number} to email webhook ({payload['notificationType']})")
        return True

    def send_to_xero(
        self,
        document: Document,
        customer: Optional[Customer],
        app_settings: AppSettings,
        user: Optional[User] = None,
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """
        Post the Xero payload. Returns whether the endpoint accepted it.

        Raises:
            ConfigurationError: no Xero webhook URL configured
        """
        url = app_settings.xero_webhook_url
        if not url:
            raise ConfigurationError("Xero Webhook URL not configured")

        payload = build_xero_payload(document, customer, app_settings, user=user, timestamp=timestamp)
        try:
            response = self._post(url, payload)
        except requests.RequestException as e:
            logger.error(f"Xero transfer failed for {document.number}: {e}")
            return False

        if not response.ok:
            logger.warning(f"Xero webhook returned {response.status_code} for {document.number}")
        return response.ok
