"""Certificate wizard step saves, appliance rows, photos and signatures."""

import logging
import re
import time
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from certnow.core.config import settings
from certnow.core.errors import ValidationFailedError
from certnow.core.structured_logging import build_log_context
from certnow.db.enums import CertificateType, SignatureRole
from certnow.db.models import Cp12Appliance, Job, JobPhoto
from certnow.schemas.certificate import (
    BoilerServiceChecks,
    BoilerServiceDetails,
    BoilerServiceJobInfo,
    Cp12AppliancesSave,
    Cp12JobInfo,
    GasWarningDetails,
    GasWarningJobInfo,
    GeneralWorksInfo,
    WizardStep,
)
from certnow.services import client_service, job_field_service, job_service, storage_service
from certnow.services.certificate_validation import Violation
from certnow.utils.normalization import has_value, pick_first_non_empty, stringify_flag, to_text

logger = logging.getLogger(__name__)

PHOTO_CATEGORY_PATTERN = re.compile(r"^[a-z0-9_]{1,50}$")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _parse_date(value) -> datetime | None:
    text = to_text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _stringify(fields: dict) -> dict[str, str]:
    return {key: stringify_flag(value) for key, value in fields.items()}


def _save_step(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    step: WizardStep,
    certificate_type: CertificateType,
    *,
    title_prefix: str | None = None,
    date_key: str | None = None,
    sync_customer: bool = False,
) -> Job:
    """
    Persist one wizard step.

    Steps that carry customer/property details also refresh the legacy job
    columns and the linked client.
    """
    job = job_service.get_owned_job(db, user_id, job_id)
    fields = _stringify(step.field_map())

    if sync_customer:
        customer_name = pick_first_non_empty(fields.get("customer_name"))
        address = pick_first_non_empty(fields.get("property_address"))
        if customer_name:
            job.client_name = customer_name
            if title_prefix:
                job.title = f"{title_prefix} for {customer_name}"
        if address:
            job.address = address
        if date_key:
            scheduled = _parse_date(fields.get(date_key))
            if scheduled:
                job.scheduled_for = scheduled

    job_field_service.persist_job_fields(db, job.id, fields, commit=False)
    job_service.touch_job(job, certificate_type)
    db.commit()

    if sync_customer:
        client_service.upsert_customer_from_job_fields(db, user_id, job, fields)

    logger.info(
        "Saved wizard step",
        extra=build_log_context(user_id=user_id, job_id=job.id, certificate_type=certificate_type.value),
    )
    return job


# =============================================================================
# CP12
# =============================================================================

def save_cp12_job_info(db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: Cp12JobInfo) -> Job:
    return _save_step(
        db, user_id, job_id, data, CertificateType.CP12,
        title_prefix="CP12", date_key="inspection_date", sync_customer=True,
    )


def save_cp12_appliances(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    data: Cp12AppliancesSave,
) -> list[Cp12Appliance]:
    """
    Replace every appliance row on a CP12 job and save the defect fields.

    A classification code on an appliance rated "safe" is rejected here as
    well as at issuance.
    """
    job = job_service.get_owned_job(db, user_id, job_id)

    violations = [
        Violation(
            "classification_on_safe",
            f"Appliance {index + 1}: classification code should only be set when safety rating is not safe",
        )
        for index, appliance in enumerate(data.appliances)
        if has_value(appliance.classification_code)
        and to_text(appliance.safety_rating).lower() == "safe"
    ]
    if violations:
        raise ValidationFailedError("; ".join(v.message for v in violations), violations)

    db.query(Cp12Appliance).filter(Cp12Appliance.job_id == job.id).delete(synchronize_session=False)
    rows = [
        Cp12Appliance(job_id=job.id, user_id=user_id, **appliance.model_dump())
        for appliance in data.appliances
    ]
    db.add_all(rows)

    defects = {k: v for k, v in data.defects.model_dump().items() if v is not None}
    if defects:
        job_field_service.persist_job_fields(db, job.id, defects, commit=False)

    job_service.touch_job(job, CertificateType.CP12)
    db.commit()
    logger.info(
        "Saved %d CP12 appliances",
        len(rows),
        extra=build_log_context(user_id=user_id, job_id=job.id),
    )
    return rows


# =============================================================================
# Boiler service
# =============================================================================

def save_boiler_service_job_info(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: BoilerServiceJobInfo
) -> Job:
    return _save_step(
        db, user_id, job_id, data, CertificateType.BOILER_SERVICE,
        title_prefix="Boiler service", date_key="service_date", sync_customer=True,
    )


def save_boiler_service_details(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: BoilerServiceDetails
) -> Job:
    return _save_step(db, user_id, job_id, data, CertificateType.BOILER_SERVICE)


def save_boiler_service_checks(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: BoilerServiceChecks
) -> Job:
    return _save_step(db, user_id, job_id, data, CertificateType.BOILER_SERVICE)


# =============================================================================
# General works
# =============================================================================

def save_general_works_info(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: GeneralWorksInfo
) -> Job:
    return _save_step(
        db, user_id, job_id, data, CertificateType.GENERAL_WORKS,
        title_prefix="General works", date_key="work_date", sync_customer=True,
    )


# =============================================================================
# Gas warning notice
# =============================================================================

def generate_record_id() -> str:
    return f"GWN-{uuid.uuid4().hex[:8].upper()}"


def save_gas_warning_job_info(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: GasWarningJobInfo
) -> tuple[Job, str]:
    """Save notice header fields. Assigns a record_id the first time."""
    job = _save_step(
        db, user_id, job_id, data, CertificateType.GAS_WARNING_NOTICE,
        title_prefix="Gas warning notice", sync_customer=True,
    )
    record_id = job_field_service.get_job_field(db, job.id, "record_id")
    if not has_value(record_id):
        record_id = generate_record_id()
        job_field_service.set_job_field(db, job.id, "record_id", record_id)
    return job, record_id


def save_gas_warning_details(
    db: Session, user_id: uuid.UUID, job_id: uuid.UUID, data: GasWarningDetails
) -> Job:
    return _save_step(db, user_id, job_id, data, CertificateType.GAS_WARNING_NOTICE)


# =============================================================================
# Evidence
# =============================================================================

def upload_job_photo(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    category: str,
    data: bytes,
    content_type: str | None,
    note: str | None = None,
) -> JobPhoto:
    """Store an evidence photo and record it; an optional note goes to photo_note_<category>."""
    job = job_service.get_owned_job(db, user_id, job_id)
    category = to_text(category).lower()
    if not PHOTO_CATEGORY_PATTERN.match(category):
        raise ValidationFailedError("Invalid photo category")
    ext = storage_service.image_extension(content_type)
    storage_service.check_upload_size(data)

    path = f"{user_id}/{job.id}/{category}-{_now_ms()}.{ext}"
    storage_service.upload(storage_service.PHOTOS_BUCKET, path, data, content_type)

    photo = JobPhoto(job_id=job.id, user_id=user_id, category=category, storage_path=path)
    db.add(photo)
    if has_value(note):
        job_field_service.persist_job_fields(db, job.id, {f"photo_note_{category}": note.strip()}, commit=False)
    job_service.touch_job(job)
    db.commit()
    db.refresh(photo)
    return photo


def upload_signature(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    role: SignatureRole,
    data: bytes,
    content_type: str | None,
) -> tuple[str, str]:
    """Store a signature image; returns (field_key, storage_path)."""
    job = job_service.get_owned_job(db, user_id, job_id)
    ext = storage_service.image_extension(content_type or "image/png")
    storage_service.check_upload_size(data)

    role = SignatureRole(role)
    path = f"{user_id}/{job.id}-{role.value}-{_now_ms()}.{ext}"
    storage_service.upload(storage_service.SIGNATURES_BUCKET, path, data, content_type or "image/png")

    field_key = f"{role.value}_signature"
    job_field_service.set_job_field(db, job.id, field_key, path, commit=False)
    job_service.touch_job(job)
    db.commit()
    return field_key, path


def signature_url(path: str) -> str:
    return storage_service.create_signed_url(
        storage_service.SIGNATURES_BUCKET, path, expires_in=settings.PHOTO_URL_EXPIRY_SECONDS
    )
