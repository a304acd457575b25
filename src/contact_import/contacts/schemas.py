"""
Pydantic schemas for contacts.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ContactRow(BaseModel):
    """Validated and normalized CSV row, ready to become a Contact."""

    nombre: str = Field(..., min_length=1, description="First name")
    apellido: str = Field(..., min_length=1, description="Last name")
    email: str | None = Field(default=None, description="Email address")
    telefono: str | None = Field(default=None, description="Phone number, free-form")


class ContactResponse(BaseModel):
    """Schema for contact response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    nombre: str
    apellido: str
    email: str | None
    telefono: str | None
    created_at: datetime
    updated_at: datetime


class ContactListResponse(BaseModel):
    """Schema for paginated contact list response."""

    items: list[ContactResponse]
    total: int
    page: int
    page_size: int
    pages: int
