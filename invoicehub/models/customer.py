"""CRM customer and user models"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class User(BaseModel):
    """Identity supplied by the session layer for "created by" labels"""
    id: str
    name: str
    email: Optional[str] = None
    role: UserRole = UserRole.USER


class CustomerAddress(BaseModel):
    """Structured CRM address"""
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = "Ireland"

    def one_line(self) -> str:
        """Comma-joined form used for the document snapshot"""
        parts = [self.line1, self.line2, self.city, self.postal_code, self.country]
        return ", ".join(p.strip() for p in parts if p and p.strip())


class Customer(BaseModel):
    """Live CRM record. Documents keep their own snapshot of these fields."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: CustomerAddress = Field(default_factory=CustomerAddress)
    company: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: str = "system"
