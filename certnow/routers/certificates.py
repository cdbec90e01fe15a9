"""Certificate wizard step saves, generation and PDF retrieval."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certnow.core.deps import get_current_session, get_db, require_csrf_header
from certnow.schemas.auth import UserSession
from certnow.schemas.certificate import (
    BoilerServiceChecks,
    BoilerServiceDetails,
    BoilerServiceJobInfo,
    CertificatePdfUrlResponse,
    Cp12AppliancesSave,
    Cp12JobInfo,
    GasWarningDetails,
    GasWarningJobInfo,
    GeneralWorksInfo,
    GenerateCertificateRequest,
    GenerateCertificateResponse,
    StepSaveResponse,
)
from certnow.services import certificate_service, wizard_service

router = APIRouter()


# =============================================================================
# CP12
# =============================================================================

@router.post("/{job_id}/cp12/job-info", response_model=StepSaveResponse)
def save_cp12_job_info(
    job_id: UUID,
    data: Cp12JobInfo,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_cp12_job_info(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


@router.post("/{job_id}/cp12/appliances", response_model=StepSaveResponse)
def save_cp12_appliances(
    job_id: UUID,
    data: Cp12AppliancesSave,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    wizard_service.save_cp12_appliances(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job_id)


# =============================================================================
# Boiler service
# =============================================================================

@router.post("/{job_id}/boiler-service/job-info", response_model=StepSaveResponse)
def save_boiler_service_job_info(
    job_id: UUID,
    data: BoilerServiceJobInfo,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_boiler_service_job_info(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


@router.post("/{job_id}/boiler-service/details", response_model=StepSaveResponse)
def save_boiler_service_details(
    job_id: UUID,
    data: BoilerServiceDetails,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_boiler_service_details(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


@router.post("/{job_id}/boiler-service/checks", response_model=StepSaveResponse)
def save_boiler_service_checks(
    job_id: UUID,
    data: BoilerServiceChecks,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_boiler_service_checks(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


# =============================================================================
# General works
# =============================================================================

@router.post("/{job_id}/general-works/info", response_model=StepSaveResponse)
def save_general_works_info(
    job_id: UUID,
    data: GeneralWorksInfo,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_general_works_info(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


# =============================================================================
# Gas warning notice
# =============================================================================

@router.post("/{job_id}/gas-warning/job-info", response_model=StepSaveResponse)
def save_gas_warning_job_info(
    job_id: UUID,
    data: GasWarningJobInfo,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job, record_id = wizard_service.save_gas_warning_job_info(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id, record_id=record_id)


@router.post("/{job_id}/gas-warning/details", response_model=StepSaveResponse)
def save_gas_warning_details(
    job_id: UUID,
    data: GasWarningDetails,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    job = wizard_service.save_gas_warning_details(db, session.user_id, job_id, data)
    return StepSaveResponse(job_id=job.id)


# =============================================================================
# Generation
# =============================================================================

@router.post("/generate", response_model=GenerateCertificateResponse)
def generate_certificate(
    data: GenerateCertificateRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    """
    Render a certificate PDF.

    preview_only=true skips validation and changes no job state. A final
    render must pass the issuance rules for the certificate type (422 with
    the full violation list otherwise) and marks the job completed.
    """
    result = certificate_service.generate_certificate_pdf(
        db,
        session.user_id,
        data.job_id,
        certificate_type=data.certificate_type,
        preview_only=data.preview_only,
    )
    return GenerateCertificateResponse(
        pdf_url=result.pdf_url, job_id=result.job_id, preview=result.preview
    )


@router.get("/{job_id}/pdf-url", response_model=CertificatePdfUrlResponse)
def get_pdf_url(
    job_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    url = certificate_service.get_certificate_pdf_signed_url(db, session.user_id, job_id)
    certificate = certificate_service.get_certificate(db, session.user_id, job_id)
    return CertificatePdfUrlResponse(url=url, state=certificate_service.certificate_state(certificate))
