"""Pydantic schemas for jobs and wizard field saves."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from certnow.db.enums import CertificateType


class JobCreate(BaseModel):
    """Start a new certificate workflow."""
    certificate_type: CertificateType
    client_id: UUID | None = None
    title: str | None = Field(None, max_length=255)
    scheduled_for: datetime | None = None
    notes: str | None = None


class JobRead(BaseModel):
    """Job response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID | None
    client_name: str | None
    address: str | None
    title: str | None
    status: str
    certificate_type: str | None
    scheduled_for: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime | None
    completed_at: datetime | None


class JobListResponse(BaseModel):
    active: list[JobRead]
    completed: list[JobRead]


class JobInfoUpdate(BaseModel):
    """
    Job info step: core job columns plus any wizard fields.

    Core columns are written to the job row; fields go to the field store.
    """
    title: str | None = Field(None, max_length=255)
    client_name: str | None = Field(None, max_length=255)
    address: str | None = None
    scheduled_for: datetime | None = None
    certificate_type: CertificateType | None = None
    fields: dict[str, Any] = {}


class JobFieldsUpdate(BaseModel):
    fields: dict[str, Any]


class JobFieldValue(BaseModel):
    value: Any = None


class JobAddressUpdate(BaseModel):
    line1: str | None = None
    line2: str | None = None
    town: str | None = None
    postcode: str | None = None


class ApplianceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    appliance_type: str | None
    location: str | None
    make_model: str | None
    operating_pressure: str | None
    heat_input: str | None
    flue_type: str | None
    ventilation_provision: str | None
    ventilation_satisfactory: str | None
    flue_condition: str | None
    stability_test: str | None
    gas_tightness_test: str | None
    co_reading_ppm: str | None
    safety_rating: str | None
    classification_code: str | None


class WizardStateResponse(BaseModel):
    """Everything a wizard needs to resume a job."""
    job: JobRead
    certificate_type: str | None
    fields: dict[str, str]
    photo_notes: dict[str, str]
    photo_previews: dict[str, str]
    appliances: list[ApplianceRead]


class ApplianceDefaultsAppliance(BaseModel):
    type: str
    make: str
    model: str
    location: str
    serial: str
    flue_type: str


class ApplianceDefaultsReadings(BaseModel):
    operating_pressure: str
    heat_input: str
    co_reading_ppm: str
    ventilation_satisfactory: str
    flue_condition: str
    gas_tightness_test: str
    safety_rating: str
    classification_code: str


class ApplianceDefaultsSource(BaseModel):
    job_id: UUID
    date: datetime | None


class ApplianceDefaults(BaseModel):
    """Prefill for a new appliance, taken from the previous job at the property."""
    appliance: ApplianceDefaultsAppliance
    readings: ApplianceDefaultsReadings
    source: ApplianceDefaultsSource
