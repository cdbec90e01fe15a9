"""Pydantic schemas for certificate wizard steps and generation."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from certnow.db.enums import SignatureRole


class WizardStep(BaseModel):
    """
    Base for wizard step payloads.

    Declared fields document the step; unknown keys are kept and persisted
    as job fields too, so new form inputs need no schema change.
    """
    model_config = ConfigDict(extra="allow")

    def field_map(self) -> dict[str, Any]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


FlagValue = bool | str | None


class Cp12JobInfo(WizardStep):
    customer_name: str | None = None
    property_address: str | None = None
    postcode: str | None = None
    inspection_date: str | None = None
    landlord_name: str | None = None
    landlord_address: str | None = None
    engineer_name: str | None = None
    gas_safe_number: str | None = None
    company_name: str | None = None
    reg_26_9_confirmed: FlagValue = None


class Cp12ApplianceIn(BaseModel):
    appliance_type: str | None = None
    location: str | None = None
    make_model: str | None = None
    operating_pressure: str | None = None
    heat_input: str | None = None
    flue_type: str | None = None
    ventilation_provision: str | None = None
    ventilation_satisfactory: str | None = None
    flue_condition: str | None = None
    stability_test: str | None = None
    gas_tightness_test: str | None = None
    co_reading_ppm: str | None = None
    safety_rating: str | None = None
    classification_code: str | None = None


class Cp12Defects(BaseModel):
    defect_description: str | None = None
    remedial_action: str | None = None
    warning_notice_issued: str | None = None


class Cp12AppliancesSave(BaseModel):
    appliances: list[Cp12ApplianceIn] = []
    defects: Cp12Defects = Cp12Defects()


class BoilerServiceJobInfo(WizardStep):
    customer_name: str | None = None
    property_address: str | None = None
    postcode: str | None = None
    service_date: str | None = None
    engineer_name: str | None = None
    gas_safe_number: str | None = None
    company_name: str | None = None
    company_address: str | None = None


class BoilerServiceDetails(WizardStep):
    boiler_make: str | None = None
    boiler_model: str | None = None
    boiler_type: str | None = None
    boiler_location: str | None = None
    serial_number: str | None = None
    gas_type: str | None = None
    mount_type: str | None = None
    flue_type: str | None = None


class BoilerServiceChecks(WizardStep):
    service_summary: str | None = None
    recommendations: str | None = None
    defects_found: FlagValue = None
    defects_details: str | None = None
    parts_used: str | None = None
    next_service_due: str | None = None


class GeneralWorksInfo(WizardStep):
    customer_name: str | None = None
    property_address: str | None = None
    postcode: str | None = None
    work_date: str | None = None
    engineer_name: str | None = None
    company_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    work_summary: str | None = None
    work_completed: str | None = None
    defects_found: FlagValue = None
    defects_details: str | None = None


class GasWarningJobInfo(WizardStep):
    property_address: str | None = None
    postcode: str | None = None
    customer_name: str | None = None
    customer_contact: str | None = None
    engineer_name: str | None = None
    engineer_company: str | None = None
    gas_safe_number: str | None = None
    issued_at: str | None = None


class GasWarningDetails(WizardStep):
    appliance_location: str | None = None
    appliance_type: str | None = None
    make_model: str | None = None
    classification: str | None = None
    classification_code: str | None = None
    unsafe_situation_description: str | None = None
    underlying_cause: str | None = None
    actions_taken: str | None = None
    gas_supply_isolated: FlagValue = None
    appliance_capped_off: FlagValue = None
    customer_refused_isolation: FlagValue = None
    emergency_services_contacted: FlagValue = None
    emergency_reference: str | None = None
    danger_do_not_use_label_fitted: FlagValue = None
    meter_or_appliance_tagged: FlagValue = None
    customer_informed: FlagValue = None
    customer_understands_risks: FlagValue = None


class StepSaveResponse(BaseModel):
    ok: bool = True
    job_id: UUID
    record_id: str | None = None


class GenerateCertificateRequest(BaseModel):
    job_id: UUID
    certificate_type: str | None = None
    preview_only: bool = False


class GenerateCertificateResponse(BaseModel):
    pdf_url: str
    job_id: UUID
    preview: bool


class CertificatePdfUrlResponse(BaseModel):
    url: str
    state: str


class SignatureUploadResponse(BaseModel):
    role: SignatureRole
    field_key: str
    storage_path: str
    url: str


class PhotoUploadResponse(BaseModel):
    id: UUID
    category: str
    storage_path: str
    url: str = Field(..., description="Short-lived signed URL")
