"""Job lifecycle: create, list, ownership checks and job-info saves."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from certnow.core.errors import NotFoundError
from certnow.core.structured_logging import build_log_context
from certnow.db.enums import CERTIFICATE_LABELS, CertificateType, JobStatus
from certnow.db.models import Job
from certnow.schemas.job import JobAddressUpdate, JobCreate, JobInfoUpdate
from certnow.services import client_service, job_field_service
from certnow.utils.address import format_address_line
from certnow.utils.normalization import to_text

logger = logging.getLogger(__name__)


def get_owned_job(db: Session, user_id: uuid.UUID, job_id: uuid.UUID) -> Job:
    """Load one of the caller's jobs. A job owned by someone else reads as missing."""
    job = db.query(Job).filter(Job.id == job_id, Job.user_id == user_id).first()
    if not job:
        raise NotFoundError("Job not found")
    return job


def create_job(db: Session, user_id: uuid.UUID, data: JobCreate) -> Job:
    """Create a draft job, optionally linked to an existing client."""
    client_name = None
    if data.client_id:
        client = client_service.get_client_row(db, user_id, data.client_id)
        client_name = client.name

    label = CERTIFICATE_LABELS[data.certificate_type]
    job = Job(
        user_id=user_id,
        client_id=data.client_id,
        client_name=client_name,
        title=to_text(data.title) or f"{label} draft",
        status=JobStatus.DRAFT.value,
        certificate_type=data.certificate_type.value,
        scheduled_for=data.scheduled_for,
        notes=data.notes,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(
        "Created job",
        extra=build_log_context(user_id=user_id, job_id=job.id, certificate_type=job.certificate_type),
    )
    return job


def list_jobs(db: Session, user_id: uuid.UUID) -> dict[str, list[Job]]:
    """Caller's jobs, newest first, split into active and completed."""
    jobs = (
        db.query(Job)
        .filter(Job.user_id == user_id)
        .order_by(Job.created_at.desc())
        .all()
    )
    return {
        "active": [j for j in jobs if j.status != JobStatus.COMPLETED.value],
        "completed": [j for j in jobs if j.status == JobStatus.COMPLETED.value],
    }


def touch_job(
    job: Job,
    certificate_type: CertificateType | str | None = None,
) -> None:
    """Move a draft job to active and stamp its certificate type (no commit)."""
    if job.status == JobStatus.DRAFT.value:
        job.status = JobStatus.ACTIVE.value
    if certificate_type:
        job.certificate_type = CertificateType(certificate_type).value
    job.updated_at = datetime.now(timezone.utc)


def save_job_fields(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    fields: dict,
    *,
    certificate_type: CertificateType | str | None = None,
) -> Job:
    """Persist a field map for an owned job and mark it active."""
    job = get_owned_job(db, user_id, job_id)
    job_field_service.persist_job_fields(db, job.id, fields, commit=False)
    touch_job(job, certificate_type)
    db.commit()
    db.refresh(job)
    return job


def update_field(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    key: str,
    value,
) -> None:
    """Single-field save used by inline wizard edits."""
    job = get_owned_job(db, user_id, job_id)
    job_field_service.set_job_field(db, job.id, key, value, commit=False)
    touch_job(job)
    db.commit()


def save_job_info(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    data: JobInfoUpdate,
) -> Job:
    """
    Save the job-info step.

    Core columns go on the job row, every field goes to the field store, and
    the linked customer is created or refreshed from the customer fields.
    """
    job = get_owned_job(db, user_id, job_id)

    fields = dict(data.fields)
    if data.client_name is not None:
        job.client_name = to_text(data.client_name) or None
        fields.setdefault("customer_name", data.client_name)
    if data.address is not None:
        job.address = to_text(data.address) or None
        fields.setdefault("property_address", data.address)
    if data.title is not None:
        job.title = to_text(data.title) or job.title
    if data.scheduled_for is not None:
        job.scheduled_for = data.scheduled_for

    job_field_service.persist_job_fields(db, job.id, fields, commit=False)
    touch_job(job, data.certificate_type)
    db.commit()

    client_service.upsert_customer_from_job_fields(db, user_id, job, fields)
    db.refresh(job)
    return job


def upsert_job_address(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    data: JobAddressUpdate,
) -> Job:
    """
    Store a structured property address for a job.

    The formatted line becomes jobs.address; the parts are kept as
    address_* job fields so the resolver can rebuild the summary.
    """
    job = get_owned_job(db, user_id, job_id)
    parts = {
        "address_line1": to_text(data.line1),
        "address_line2": to_text(data.line2),
        "address_town": to_text(data.town),
        "address_postcode": to_text(data.postcode),
    }
    formatted = format_address_line(parts["address_line1"], parts["address_line2"], parts["address_town"])
    if not formatted:
        return job

    job.address = formatted
    job_field_service.persist_job_fields(db, job.id, parts, commit=False)
    touch_job(job)
    db.commit()
    db.refresh(job)
    return job
