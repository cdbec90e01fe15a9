"""Enum definitions for application constants."""

from enum import Enum


class JobStatus(str, Enum):
    """
    Job lifecycle.

        draft → active → awaiting_signatures → awaiting_report → completed

    A job only reaches completed after a validated, final certificate PDF
    has been generated.
    """
    DRAFT = "draft"
    ACTIVE = "active"
    AWAITING_SIGNATURES = "awaiting_signatures"
    AWAITING_REPORT = "awaiting_report"
    COMPLETED = "completed"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class CertificateType(str, Enum):
    """Certificate wizards supported by the service."""
    CP12 = "cp12"
    BOILER_SERVICE = "boiler_service"
    GENERAL_WORKS = "general_works"
    GAS_WARNING_NOTICE = "gas_warning_notice"
    BREAKDOWN = "breakdown"
    COMMISSIONING = "commissioning"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


# Human-readable labels used in titles, PDFs and validation messages
CERTIFICATE_LABELS: dict[CertificateType, str] = {
    CertificateType.CP12: "CP12",
    CertificateType.BOILER_SERVICE: "Boiler service",
    CertificateType.GENERAL_WORKS: "General Works",
    CertificateType.GAS_WARNING_NOTICE: "Gas Warning Notice",
    CertificateType.BREAKDOWN: "Breakdown",
    CertificateType.COMMISSIONING: "Commissioning",
}

# Legacy values still found on older job rows
CERTIFICATE_TYPE_ALIASES: dict[str, CertificateType] = {
    "gas_service": CertificateType.BOILER_SERVICE,
}


class SignatureRole(str, Enum):
    """Who signed a certificate. Stored in the <role>_signature field."""
    ENGINEER = "engineer"
    CUSTOMER = "customer"


class GasWarningClassification(str, Enum):
    """Unsafe situation classification on a gas warning notice."""
    IMMEDIATELY_DANGEROUS = "IMMEDIATELY_DANGEROUS"
    AT_RISK = "AT_RISK"


DEFAULT_JOB_STATUS = JobStatus.DRAFT
