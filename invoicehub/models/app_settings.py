"""Business settings singleton (company identities, bank details, webhooks)"""

from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from invoicehub.config import settings
from .document import CompanyTag


class CompanyProfile(BaseModel):
    """Identity and bank block printed on documents for one company"""
    name: str
    address: str
    phone: str
    email: str
    website: Optional[str] = None
    bank_name: str
    account_name: str
    iban: str
    bic: str


def _clonmel_defaults() -> CompanyProfile:
    return CompanyProfile(
        name="Clonmel Glass & Mirrors Ltd",
        address="24 Mary Street, Clonmel, Co. Tipperary",
        phone="(052) 612 6306",
        email="info@clonmelglassandmirrors.com",
        website=None,
        bank_name="PTSB",
        account_name="Clonmel Glass & Mirrors",
        iban="IE98IPBS99071010105209",
        bic="PTSBIE2D",
    )


def _mirrorzone_defaults() -> CompanyProfile:
    return CompanyProfile(
        name="MirrorZone",
        address="24 Mary Street, Clonmel, Co. Tipperary, E91 YV52",
        phone="(052) 61 26306",
        email="info@mirrorzone.ie",
        website="www.mirrorzone.ie",
        bank_name="Bank of Ireland",
        account_name="MirrorZone",
        iban="IE12BOFI90001010101234",
        bic="BOFIIE2D",
    )


class AppSettings(BaseModel):
    """
    Process-wide business settings.

    Saved only as a whole object; use ``merge_settings`` to build the full
    object from a set of changes before saving.
    """
    tax_rate: Decimal = Field(default_factory=lambda: Decimal(str(settings.DEFAULT_TAX_RATE)))
    vat_number: str = "IE8252470Q"
    clonmel: CompanyProfile = Field(default_factory=_clonmel_defaults)
    mirrorzone: CompanyProfile = Field(default_factory=_mirrorzone_defaults)
    default_notes: str = "Payment due within 30 days. Please quote invoice number on all payments."
    email_template_subject: Optional[str] = None
    email_template_body: Optional[str] = None

    # Integrations
    webhook_url: Optional[str] = None  # email-send automation
    xero_webhook_url: Optional[str] = None

    def profile_for(self, company: Optional[CompanyTag]) -> CompanyProfile:
        if company == CompanyTag.MIRRORZONE:
            return self.mirrorzone
        return self.clonmel


def merge_settings(current: AppSettings, changes: Dict[str, Any]) -> AppSettings:
    """Full settings object with ``changes`` applied (nested profiles merged per key)"""
    data = current.model_dump()
    for key, value in changes.items():
        if key in ("clonmel", "mirrorzone") and isinstance(value, dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return AppSettings.model_validate(data)
