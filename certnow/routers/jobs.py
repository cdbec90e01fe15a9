"""Job endpoints: lifecycle, wizard state, field saves and evidence uploads."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from certnow.core.config import settings
from certnow.core.deps import get_current_session, get_db, require_csrf_header
from certnow.db.enums import SignatureRole
from certnow.schemas.auth import UserSession
from certnow.schemas.certificate import PhotoUploadResponse, SignatureUploadResponse
from certnow.schemas.job import (
    ApplianceDefaults,
    JobAddressUpdate,
    JobCreate,
    JobFieldsUpdate,
    JobFieldValue,
    JobInfoUpdate,
    JobListResponse,
    JobRead,
    WizardStateResponse,
)
from certnow.services import (
    history_service,
    job_context_service,
    job_service,
    storage_service,
    wizard_service,
)

router = APIRouter()


@router.post("", response_model=JobRead, status_code=201)
def create_job(
    data: JobCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    """Start a draft job for a certificate type."""
    return job_service.create_job(db, session.user_id, data)


@router.get("", response_model=JobListResponse)
def list_jobs(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return job_service.list_jobs(db, session.user_id)


@router.get("/{job_id}", response_model=JobRead)
def get_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return job_service.get_owned_job(db, session.user_id, job_id)


@router.get("/{job_id}/wizard-state", response_model=WizardStateResponse)
def get_wizard_state(
    job_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Merged fields, photo notes/previews and appliances for resuming a wizard."""
    return job_context_service.get_certificate_wizard_state(db, session.user_id, job_id)


@router.get("/{job_id}/appliance-defaults", response_model=ApplianceDefaults | None)
def get_appliance_defaults(
    job_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Appliance and readings from the previous job at the same address (or client). null when none."""
    return history_service.get_latest_appliance_defaults(db, session.user_id, job_id)


@router.put("/{job_id}/info", response_model=JobRead)
def save_job_info(
    job_id: UUID,
    data: JobInfoUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    return job_service.save_job_info(db, session.user_id, job_id, data)


@router.put("/{job_id}/fields", response_model=JobRead)
def save_job_fields(
    job_id: UUID,
    data: JobFieldsUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    return job_service.save_job_fields(db, session.user_id, job_id, data.fields)


@router.put("/{job_id}/fields/{field_key}")
def update_field(
    job_id: UUID,
    field_key: str,
    data: JobFieldValue,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job_service.update_field(db, session.user_id, job_id, field_key, data.value)
    return {"ok": True}


@router.put("/{job_id}/address", response_model=JobRead)
def upsert_job_address(
    job_id: UUID,
    data: JobAddressUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    return job_service.upsert_job_address(db, session.user_id, job_id, data)


@router.post("/{job_id}/photos", response_model=PhotoUploadResponse, status_code=201)
async def upload_photo(
    job_id: UUID,
    category: Annotated[str, Form()],
    file: Annotated[UploadFile, File()],
    note: Annotated[str | None, Form()] = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    content = await file.read()
    photo = wizard_service.upload_job_photo(
        db,
        session.user_id,
        job_id,
        category=category,
        data=content,
        content_type=file.content_type,
        note=note,
    )
    return PhotoUploadResponse(
        id=photo.id,
        category=photo.category,
        storage_path=photo.storage_path,
        url=storage_service.create_signed_url(
            storage_service.PHOTOS_BUCKET,
            photo.storage_path,
            expires_in=settings.PHOTO_URL_EXPIRY_SECONDS,
        ),
    )


@router.post("/{job_id}/signatures", response_model=SignatureUploadResponse, status_code=201)
async def upload_signature(
    job_id: UUID,
    role: Annotated[SignatureRole, Form()],
    file: Annotated[UploadFile, File()],
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    content = await file.read()
    field_key, path = wizard_service.upload_signature(
        db,
        session.user_id,
        job_id,
        role=role,
        data=content,
        content_type=file.content_type,
    )
    return SignatureUploadResponse(
        role=role,
        field_key=field_key,
        storage_path=path,
        url=wizard_service.signature_url(path),
    )
