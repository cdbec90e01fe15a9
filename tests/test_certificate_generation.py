"""Tests for certificate generation orchestration."""

import os

import pytest
from sqlalchemy.exc import ProgrammingError

from certnow.core.errors import NotFoundError, ValidationFailedError
from certnow.db.enums import CertificateType, JobStatus
from certnow.db.models import Certificate, Cp12Appliance, JobField
from certnow.services import certificate_service, job_field_service, pdf_service, storage_service

GENERAL_WORKS_FIELDS = {
    "property_address": "1 High St",
    "work_date": "2026-02-01",
    "engineer_name": "E Neer",
    "work_summary": "Replaced valve",
    "work_completed": "yes",
    "engineer_signature": "sig/e.png",
    "customer_signature": "sig/c.png",
}

GAS_WARNING_FIELDS = {
    "property_address": "1 High St",
    "customer_name": "Jane Doe",
    "appliance_location": "Kitchen",
    "appliance_type": "Boiler",
    "classification": "AT_RISK",
    "unsafe_situation_description": "Flue spillage",
    "actions_taken": "Advised customer",
    "engineer_name": "E Neer",
    "gas_safe_number": "123456",
    "issued_at": "2026-01-05",
    "record_id": "GWN-0000ABCD",
    "customer_informed": "true",
}


@pytest.fixture
def uploads(monkeypatch):
    """Record storage uploads while still writing them locally."""
    calls = []
    original = storage_service.upload

    def _upload(bucket, path, data, content_type):
        calls.append((bucket, path))
        return original(bucket, path, data, content_type)

    monkeypatch.setattr(storage_service, "upload", _upload)
    return calls


def _field_snapshot(db, job_id):
    return sorted(
        (f.field_key, f.value)
        for f in db.query(JobField).filter(JobField.job_id == job_id).all()
    )


def test_preview_skips_validation_and_changes_nothing(db, test_user, make_job, uploads):
    job = make_job(CertificateType.GENERAL_WORKS)
    before = _field_snapshot(db, job.id)

    result = certificate_service.generate_certificate_pdf(db, test_user.id, job.id, preview_only=True)

    assert result.preview is True
    assert uploads == [(
        "certificates",
        f"general-works/previews/{test_user.id}/{job.id}-preview.pdf",
    )]
    db.refresh(job)
    assert job.status == JobStatus.ACTIVE.value
    assert db.query(Certificate).count() == 0
    assert _field_snapshot(db, job.id) == before


def test_final_validation_failure_writes_nothing(db, test_user, make_job, uploads):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, {**GENERAL_WORKS_FIELDS, "work_summary": ""})
    before = _field_snapshot(db, job.id)

    with pytest.raises(ValidationFailedError) as exc_info:
        certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    assert "work summary is required" in str(exc_info.value)
    assert uploads == []
    db.refresh(job)
    assert job.status == JobStatus.ACTIVE.value
    assert db.query(Certificate).count() == 0
    assert _field_snapshot(db, job.id) == before


def test_final_generation_completes_job(db, test_user, make_job, uploads):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, GENERAL_WORKS_FIELDS)

    result = certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    assert result.preview is False
    bucket, path = uploads[0]
    assert path.startswith(f"general-works/{test_user.id}/{job.id}-")
    assert os.path.isfile(storage_service.local_file_path(bucket, path))

    certificate = db.query(Certificate).filter(Certificate.job_id == job.id).one()
    assert certificate.pdf_path == path
    assert certificate.cert_type == "general_works"
    db.refresh(job)
    assert job.status == JobStatus.COMPLETED.value
    assert job.completed_at is not None
    assert job_field_service.get_job_field(db, job.id, "issued_at")


def test_regeneration_overwrites_single_certificate(db, test_user, make_job, uploads):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, GENERAL_WORKS_FIELDS)

    certificate_service.generate_certificate_pdf(db, test_user.id, job.id)
    certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    assert db.query(Certificate).count() == 1
    assert db.query(Certificate).one().pdf_path == uploads[-1][1]


def test_cp12_inferred_from_appliances(db, test_user, make_job, uploads):
    job = make_job(certificate_type=None)
    db.add(Cp12Appliance(job_id=job.id, user_id=test_user.id, appliance_type="Boiler", location="Kitchen"))
    db.commit()

    result = certificate_service.generate_certificate_pdf(db, test_user.id, job.id, preview_only=True)

    assert result.preview is True
    assert uploads[0][1].startswith("cp12/previews/")
    db.refresh(job)
    assert job.status == JobStatus.ACTIVE.value
    assert job.certificate_type is None
    assert db.query(Certificate).count() == 0


def test_incomplete_cp12_preview_leaves_job_untouched(db, test_user, make_job, uploads):
    job = make_job(CertificateType.CP12, status=JobStatus.DRAFT.value)
    job_field_service.persist_job_fields(db, job.id, {"landlord_name": "L Lord"})
    before = _field_snapshot(db, job.id)

    result = certificate_service.generate_certificate_pdf(db, test_user.id, job.id, preview_only=True)

    assert result.preview is True
    db.refresh(job)
    assert job.status == JobStatus.DRAFT.value
    assert job.completed_at is None
    assert db.query(Certificate).count() == 0
    assert _field_snapshot(db, job.id) == before


def test_gas_warning_notice_keeps_entered_issued_at(db, test_user, make_job, uploads, monkeypatch):
    job = make_job(CertificateType.GAS_WARNING_NOTICE)
    job_field_service.persist_job_fields(db, job.id, GAS_WARNING_FIELDS)
    rendered = {}
    render = pdf_service.render_certificate_pdf

    def _render(certificate_type, fields, appliances=(), **kwargs):
        rendered.update(kwargs, fields=fields)
        return render(certificate_type, fields, appliances, **kwargs)

    monkeypatch.setattr(pdf_service, "render_certificate_pdf", _render)

    certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    assert job_field_service.get_job_field(db, job.id, "issued_at") == "2026-01-05"
    assert rendered["fields"]["issued_at"] == "2026-01-05"
    certificate = db.query(Certificate).filter(Certificate.job_id == job.id).one()
    assert certificate.issued_at is not None
    assert rendered["issued_at"] is not None
    assert rendered["preview"] is False


def test_issue_time_is_rendered_and_stored(db, test_user, make_job, uploads, monkeypatch):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, GENERAL_WORKS_FIELDS)
    rendered = {}
    render = pdf_service.render_certificate_pdf

    def _render(certificate_type, fields, appliances=(), **kwargs):
        rendered.update(kwargs)
        return render(certificate_type, fields, appliances, **kwargs)

    monkeypatch.setattr(pdf_service, "render_certificate_pdf", _render)

    certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    stored = job_field_service.get_job_field(db, job.id, "issued_at")
    assert stored == rendered["issued_at"].isoformat()


def test_explicit_type_with_dashes(db, test_user, make_job, uploads):
    job = make_job(certificate_type=None)
    certificate_service.generate_certificate_pdf(
        db, test_user.id, job.id, certificate_type="gas-warning-notice", preview_only=True
    )
    assert uploads[0][1].startswith("gas-warning-notice/previews/")


def test_unresolvable_type_raises(db, test_user, make_job):
    job = make_job(certificate_type=None)
    with pytest.raises(ValidationFailedError):
        certificate_service.generate_certificate_pdf(db, test_user.id, job.id, preview_only=True)


def test_ownership_enforced(db, test_user, other_user, make_job):
    job = make_job(user=other_user)
    with pytest.raises(NotFoundError):
        certificate_service.generate_certificate_pdf(db, test_user.id, job.id, preview_only=True)


class _UndefinedColumn(Exception):
    pgcode = "42703"


def test_pdf_path_column_missing_falls_back_to_pdf_url(db, test_user, make_job, monkeypatch):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, GENERAL_WORKS_FIELDS)
    original = certificate_service._upsert_certificate_row

    def _upsert(db, *, path_column, **kwargs):
        if path_column == "pdf_path":
            raise ProgrammingError("INSERT INTO certificates", {}, _UndefinedColumn("column pdf_path does not exist"))
        return original(db, path_column=path_column, **kwargs)

    monkeypatch.setattr(certificate_service, "_upsert_certificate_row", _upsert)

    certificate_service.generate_certificate_pdf(db, test_user.id, job.id)

    certificate = db.query(Certificate).one()
    assert certificate.pdf_path is None
    assert certificate.pdf_url.startswith("general-works/")
    db.refresh(job)
    assert job.status == JobStatus.COMPLETED.value


def test_other_database_errors_are_not_retried(db, test_user, make_job, monkeypatch):
    job = make_job(CertificateType.GENERAL_WORKS)
    job_field_service.persist_job_fields(db, job.id, GENERAL_WORKS_FIELDS)
    calls = []

    def _upsert(db, *, path_column, **kwargs):
        calls.append(path_column)
        raise ProgrammingError("INSERT INTO certificates", {}, Exception("permission denied"))

    monkeypatch.setattr(certificate_service, "_upsert_certificate_row", _upsert)

    with pytest.raises(Exception) as exc_info:
        certificate_service.generate_certificate_pdf(db, test_user.id, job.id)
    assert "permission denied" in str(exc_info.value)
    assert calls == ["pdf_path"]


def test_signed_url_lookup(db, test_user, make_job):
    job = make_job(CertificateType.GENERAL_WORKS)
    with pytest.raises(NotFoundError):
        certificate_service.get_certificate_pdf_signed_url(db, test_user.id, job.id)

    db.add(Certificate(job_id=job.id, user_id=test_user.id, cert_type="general_works", pdf_url="https://cdn/x.pdf"))
    db.commit()
    assert certificate_service.get_certificate_pdf_signed_url(db, test_user.id, job.id) == "https://cdn/x.pdf"
    assert certificate_service.certificate_state(db.query(Certificate).one()) == "ready"
    assert certificate_service.certificate_state(None) == "missing"
