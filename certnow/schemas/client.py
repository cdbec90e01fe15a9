"""Pydantic schemas for the customer registry."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ClientBase(BaseModel):
    """Client contact fields."""
    name: str = Field(..., min_length=2, max_length=255)
    organization: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    postcode: str | None = Field(None, max_length=20)
    landlord_name: str | None = Field(None, max_length=255)
    landlord_address: str | None = None


class ClientCreate(ClientBase):
    """Create (or merge into) a client."""
    pass


class ClientUpdate(BaseModel):
    """Partial update; only provided fields are written."""
    name: str | None = Field(None, min_length=2, max_length=255)
    organization: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    postcode: str | None = Field(None, max_length=20)
    landlord_name: str | None = Field(None, max_length=255)
    landlord_address: str | None = None


class CustomerView(BaseModel):
    """
    Logical customer: one or more client rows sharing an identity key.

    id and name come from the most recently updated row; every other field
    is the first non-empty value across the group in recency order.
    """
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    organization: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    postcode: str | None = None
    landlord_name: str | None = None
    landlord_address: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    client_ids: list[UUID] = []


class ClientCreateResponse(BaseModel):
    id: UUID
    created: bool


class ClientJobSummary(BaseModel):
    """Job listed on a client detail page."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str | None
    status: str
    certificate_type: str | None
    address: str | None
    scheduled_for: datetime | None
    created_at: datetime


class ClientCertificateSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    cert_type: str
    issued_at: datetime | None
    created_at: datetime


class ClientDetail(BaseModel):
    client: CustomerView
    jobs: list[ClientJobSummary]
    certificates: list[ClientCertificateSummary]
