"""Certificate generation: validate, render, store and mark the job completed."""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import insert, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from certnow.core.errors import NotFoundError, UpstreamError, ValidationFailedError
from certnow.core.structured_logging import build_log_context
from certnow.db.enums import CertificateType, JobStatus
from certnow.db.models import Certificate, Job
from certnow.services import (
    certificate_validation,
    job_context_service,
    job_field_service,
    job_service,
    pdf_service,
    storage_service,
)
from certnow.services.certificate_type import normalize_certificate_type, resolve_certificate_type
from certnow.utils.normalization import has_value

logger = logging.getLogger(__name__)

STORAGE_PREFIXES = {
    CertificateType.CP12: "cp12",
    CertificateType.BOILER_SERVICE: "boiler-service",
    CertificateType.GENERAL_WORKS: "general-works",
    CertificateType.GAS_WARNING_NOTICE: "gas-warning-notice",
    CertificateType.BREAKDOWN: "breakdown",
    CertificateType.COMMISSIONING: "commissioning",
}

UNDEFINED_COLUMN_SQLSTATE = "42703"

# Types whose issued_at field is typed by the engineer and printed on the notice
USER_ENTERED_ISSUED_AT = {CertificateType.GAS_WARNING_NOTICE}


@dataclass(frozen=True)
class GeneratedCertificate:
    pdf_url: str
    job_id: uuid.UUID
    preview: bool


def preview_storage_path(certificate_type: CertificateType, user_id, job_id) -> str:
    return f"{STORAGE_PREFIXES[certificate_type]}/previews/{user_id}/{job_id}-preview.pdf"


def final_storage_path(certificate_type: CertificateType, user_id, job_id) -> str:
    return f"{STORAGE_PREFIXES[certificate_type]}/{user_id}/{job_id}-{int(time.time() * 1000)}.pdf"


# =============================================================================
# Certificate row (schema drift tolerant)
# =============================================================================

def _is_undefined_column(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == UNDEFINED_COLUMN_SQLSTATE:
        return True
    message = str(orig).lower()
    return "no such column" in message or "has no column named" in message


def _upsert_certificate_row(
    db: Session,
    *,
    job: Job,
    certificate_type: CertificateType,
    path_column: str,
    path: str,
    issued_at: datetime,
) -> None:
    values = {
        "cert_type": certificate_type.value,
        path_column: path,
        "issued_at": issued_at,
    }
    exists = db.query(Certificate.id).filter(Certificate.job_id == job.id).first()
    if exists:
        db.execute(update(Certificate).where(Certificate.job_id == job.id).values(**values))
    else:
        db.execute(insert(Certificate).values(job_id=job.id, user_id=job.user_id, **values))


def write_certificate_record(
    db: Session,
    *,
    job: Job,
    certificate_type: CertificateType,
    path: str,
    issued_at: datetime,
) -> str:
    """
    Upsert the certificate row for a job and commit.

    Writes pdf_path; on an undefined-column error retries once with the
    legacy pdf_url column. Returns the column that was written.
    """
    try:
        with db.begin_nested():
            _upsert_certificate_row(
                db, job=job, certificate_type=certificate_type,
                path_column="pdf_path", path=path, issued_at=issued_at,
            )
        column = "pdf_path"
    except DBAPIError as e:
        if not _is_undefined_column(e):
            raise UpstreamError(f"Unable to save certificate: {e.orig}") from e
        logger.warning(
            "certificates.pdf_path missing, falling back to pdf_url",
            extra=build_log_context(job_id=job.id),
        )
        try:
            with db.begin_nested():
                _upsert_certificate_row(
                    db, job=job, certificate_type=certificate_type,
                    path_column="pdf_url", path=path, issued_at=issued_at,
                )
        except DBAPIError as retry_error:
            raise UpstreamError(f"Unable to save certificate: {retry_error.orig}") from retry_error
        column = "pdf_url"
    db.commit()
    return column


# =============================================================================
# Generation
# =============================================================================

def generate_certificate_pdf(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    certificate_type: CertificateType | str | None = None,
    preview_only: bool = False,
) -> GeneratedCertificate:
    """
    Generate a certificate PDF for a job.

    Preview renders without validation, stores under previews/ and touches
    no database rows. Final generation validates freshly merged server-side
    fields first; any violation aborts before upload or write. After upload
    it commits, in order and without rollback: the certificate row, the
    issued_at field (left alone when a gas warning notice already carries
    one), and the job status.
    """
    job = job_service.get_owned_job(db, user_id, job_id)

    resolved = normalize_certificate_type(certificate_type)
    if resolved is None:
        resolved, _ = resolve_certificate_type(db, job.id, job.certificate_type)
    if resolved is None:
        raise ValidationFailedError("Unable to determine certificate type for this job")

    fields = job_context_service.resolve_merged_fields(db, user_id, job.id)
    appliances = job_context_service.list_appliances(db, job.id)
    log_context = build_log_context(
        user_id=user_id, job_id=job.id, certificate_type=resolved.value
    )

    if not preview_only:
        certificate_validation.ensure_issuable(resolved, fields, appliances)

    issued_at = datetime.now(timezone.utc)
    try:
        pdf_bytes = pdf_service.render_certificate_pdf(
            resolved, fields, appliances, issued_at=issued_at, preview=preview_only
        )
    except Exception as e:
        logger.exception("Certificate render failed", extra=log_context)
        raise UpstreamError(f"Unable to render certificate: {e}") from e

    if preview_only:
        path = preview_storage_path(resolved, user_id, job.id)
        storage_service.upload(storage_service.CERTIFICATES_BUCKET, path, pdf_bytes, "application/pdf")
        url = storage_service.create_signed_url(storage_service.CERTIFICATES_BUCKET, path)
        logger.info("Generated certificate preview", extra=log_context)
        return GeneratedCertificate(pdf_url=url, job_id=job.id, preview=True)

    path = final_storage_path(resolved, user_id, job.id)
    storage_service.upload(storage_service.CERTIFICATES_BUCKET, path, pdf_bytes, "application/pdf")

    write_certificate_record(
        db, job=job, certificate_type=resolved, path=path, issued_at=issued_at
    )
    if not (resolved in USER_ENTERED_ISSUED_AT and has_value(fields.get("issued_at"))):
        job_field_service.set_job_field(db, job.id, "issued_at", issued_at.isoformat())

    job.status = JobStatus.COMPLETED.value
    job.completed_at = issued_at
    job.certificate_type = resolved.value
    db.commit()

    url = storage_service.create_signed_url(storage_service.CERTIFICATES_BUCKET, path)
    logger.info("Certificate issued", extra=log_context)
    return GeneratedCertificate(pdf_url=url, job_id=job.id, preview=False)


# =============================================================================
# Retrieval
# =============================================================================

def get_certificate(db: Session, user_id: uuid.UUID, job_id: uuid.UUID) -> Certificate | None:
    job = job_service.get_owned_job(db, user_id, job_id)
    return db.query(Certificate).filter(Certificate.job_id == job.id).first()


def certificate_state(certificate: Certificate | None) -> str:
    """"ready" when a stored PDF exists, else "missing"."""
    if certificate and (certificate.pdf_path or certificate.pdf_url):
        return "ready"
    return "missing"


def get_certificate_pdf_signed_url(db: Session, user_id: uuid.UUID, job_id: uuid.UUID) -> str:
    """Fresh signed URL for a job's issued PDF."""
    certificate = get_certificate(db, user_id, job_id)
    path = (certificate.pdf_path or certificate.pdf_url) if certificate else None
    if not path:
        raise NotFoundError("No PDF found for this job")
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return storage_service.create_signed_url(storage_service.CERTIFICATES_BUCKET, path)
