"""Resolve which certificate a job is for."""

import logging
import uuid

from sqlalchemy.orm import Session

from certnow.core.structured_logging import build_log_context
from certnow.db.enums import CERTIFICATE_TYPE_ALIASES, CertificateType
from certnow.db.models import Cp12Appliance
from certnow.utils.normalization import to_text

logger = logging.getLogger(__name__)


def normalize_certificate_type(value) -> CertificateType | None:
    """Map "gas-warning-notice", "CP12", "gas_service" etc. to a CertificateType."""
    if isinstance(value, CertificateType):
        return value
    raw = to_text(value).lower()
    if not raw:
        return None
    for candidate in (raw, raw.replace("-", "_")):
        if CertificateType.has_value(candidate):
            return CertificateType(candidate)
        if candidate in CERTIFICATE_TYPE_ALIASES:
            return CERTIFICATE_TYPE_ALIASES[candidate]
    return None


def resolve_certificate_type(
    db: Session,
    job_id: uuid.UUID,
    existing_type: str | None = None,
) -> tuple[CertificateType | None, str]:
    """
    Returns (certificate_type, source).

    source is "job_row" when the stored value is recognised, "cp12_inference"
    when the job has appliance rows, otherwise "unknown".
    """
    resolved = normalize_certificate_type(existing_type)
    if resolved:
        return resolved, "job_row"

    has_appliances = (
        db.query(Cp12Appliance.id).filter(Cp12Appliance.job_id == job_id).first()
        is not None
    )
    if has_appliances:
        logger.info("Inferred cp12 from appliances", extra=build_log_context(job_id=job_id))
        return CertificateType.CP12, "cp12_inference"

    logger.warning(
        "Unable to resolve certificate type",
        extra=build_log_context(job_id=job_id),
    )
    return None, "unknown"
