"""Job context resolution: job + linked customer + property address → merged fields."""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from certnow.core.config import settings
from certnow.db.models import Cp12Appliance, Job, JobPhoto
from certnow.schemas.client import CustomerView
from certnow.services import client_service, job_field_service, job_service, storage_service
from certnow.services.certificate_type import resolve_certificate_type
from certnow.services.field_merge import merge_job_context_fields
from certnow.utils.address import format_structured_address
from certnow.utils.normalization import pick_first_non_empty

logger = logging.getLogger(__name__)

PHOTO_NOTE_PREFIX = "photo_note_"


@dataclass(frozen=True)
class PropertyAddress:
    summary: str = ""
    line1: str = ""
    line2: str = ""
    town: str = ""
    postcode: str = ""


@dataclass(frozen=True)
class JobContext:
    job: Job
    customer: CustomerView | None
    property_address: PropertyAddress | None


def resolve_property_address(
    job: Job,
    stored: dict,
    submitted: dict | None = None,
) -> PropertyAddress | None:
    """
    Property address for a job.

    Summary precedence: explicit wizard override, structured job address,
    legacy jobs.address, stored property_address field.
    """
    submitted = submitted or {}
    summary = pick_first_non_empty(
        submitted.get("property_address"),
        format_structured_address(stored),
        job.address,
        stored.get("property_address"),
    )
    line1 = pick_first_non_empty(stored.get("address_line1"))
    postcode = pick_first_non_empty(
        submitted.get("postcode"), stored.get("address_postcode"), stored.get("postcode")
    )
    if not (summary or line1 or postcode):
        return None
    return PropertyAddress(
        summary=summary,
        line1=line1,
        line2=pick_first_non_empty(stored.get("address_line2")),
        town=pick_first_non_empty(stored.get("address_town")),
        postcode=postcode,
    )


def build_job_context(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    submitted: dict | None = None,
    *,
    stored: dict | None = None,
) -> JobContext:
    """Load the job (ownership enforced), its customer and its property address."""
    job = job_service.get_owned_job(db, user_id, job_id)
    if stored is None:
        stored = job_field_service.get_job_field_map(db, job.id)
    customer = client_service.get_customer_view(db, user_id, job.client_id)
    return JobContext(
        job=job,
        customer=customer,
        property_address=resolve_property_address(job, stored, submitted),
    )


def resolve_merged_fields(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    submitted: dict | None = None,
) -> dict[str, str]:
    """
    Canonical field map for a job.

    Submitted values beat stored fields per key, the resolved context then
    overrides the context-owned keys, and legacy job columns fill anything
    still blank.
    """
    submitted = submitted or {}
    stored = job_field_service.get_job_field_map(db, job_id)
    context = build_job_context(db, user_id, job_id, submitted, stored=stored)

    base = {
        key: pick_first_non_empty(submitted.get(key), stored.get(key))
        for key in {*stored.keys(), *submitted.keys()}
    }
    merged = merge_job_context_fields(base, context)

    merged["customer_name"] = pick_first_non_empty(
        merged.get("customer_name"), context.job.client_name
    )
    merged["property_address"] = pick_first_non_empty(
        merged.get("property_address"), context.job.address
    )
    return merged


def list_appliances(db: Session, job_id: uuid.UUID) -> list[Cp12Appliance]:
    return (
        db.query(Cp12Appliance)
        .filter(Cp12Appliance.job_id == job_id)
        .order_by(Cp12Appliance.created_at.asc())
        .all()
    )


def get_certificate_wizard_state(db: Session, user_id: uuid.UUID, job_id: uuid.UUID) -> dict:
    """Resume state for a wizard: merged fields, photo notes/previews and appliances."""
    job = job_service.get_owned_job(db, user_id, job_id)
    fields = resolve_merged_fields(db, user_id, job.id)
    certificate_type, _ = resolve_certificate_type(db, job.id, job.certificate_type)

    photo_notes = {
        key[len(PHOTO_NOTE_PREFIX):]: value
        for key, value in fields.items()
        if key.startswith(PHOTO_NOTE_PREFIX) and value
    }

    photos = (
        db.query(JobPhoto)
        .filter(JobPhoto.job_id == job.id)
        .order_by(JobPhoto.created_at.asc())
        .all()
    )
    photo_previews: dict[str, str] = {}
    for photo in photos:
        if photo.category in photo_previews:
            continue
        photo_previews[photo.category] = storage_service.create_signed_url(
            storage_service.PHOTOS_BUCKET,
            photo.storage_path,
            expires_in=settings.PHOTO_URL_EXPIRY_SECONDS,
        )

    return {
        "job": job,
        "certificate_type": certificate_type.value if certificate_type else None,
        "fields": fields,
        "photo_notes": photo_notes,
        "photo_previews": photo_previews,
        "appliances": list_appliances(db, job.id),
    }
