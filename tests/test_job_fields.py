"""Tests for the delete-then-insert job field store and job lifecycle saves."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from certnow.core.errors import NotFoundError
from certnow.db.enums import CertificateType, JobStatus
from certnow.db.models import JobField
from certnow.schemas.job import JobAddressUpdate, JobCreate, JobInfoUpdate
from certnow.services import job_field_service, job_service


def test_persist_replaces_only_given_keys(db, make_job):
    job = make_job()
    job_field_service.persist_job_fields(db, job.id, {"a": "1", "b": "2"})
    job_field_service.persist_job_fields(db, job.id, {"a": "3"})

    assert job_field_service.get_job_field_map(db, job.id) == {"a": "3", "b": "2"}
    assert db.query(JobField).filter(JobField.job_id == job.id, JobField.field_key == "a").count() == 1


def test_persist_serializes_booleans_and_none(db, make_job):
    job = make_job()
    job_field_service.persist_job_fields(db, job.id, {"flag": True, "off": False, "blank": None})
    assert job_field_service.get_job_field_map(db, job.id) == {"flag": "true", "off": "false", "blank": ""}


def test_reader_takes_newest_row_when_duplicates_exist(db, make_job):
    job = make_job()
    now = datetime.now(timezone.utc)
    db.add_all([
        JobField(job_id=job.id, field_key="k", value="old", created_at=now - timedelta(seconds=5)),
        JobField(job_id=job.id, field_key="k", value="new", created_at=now),
    ])
    db.commit()
    assert job_field_service.get_job_field(db, job.id, "k") == "new"


def test_persist_with_no_keys_is_noop(db, make_job):
    job = make_job()
    assert job_field_service.persist_job_fields(db, job.id, {}) == 0


def test_create_job_defaults(db, test_user):
    job = job_service.create_job(db, test_user.id, JobCreate(certificate_type=CertificateType.BOILER_SERVICE))
    assert job.status == JobStatus.DRAFT.value
    assert job.title == "Boiler service draft"
    assert job.certificate_type == "boiler_service"


def test_foreign_and_missing_jobs_look_the_same(db, make_job, other_user, test_user):
    theirs = make_job(user=other_user)
    with pytest.raises(NotFoundError) as foreign:
        job_service.get_owned_job(db, test_user.id, theirs.id)
    with pytest.raises(NotFoundError) as missing:
        job_service.get_owned_job(db, test_user.id, uuid.uuid4())
    assert foreign.value.message == missing.value.message == "Job not found"


def test_list_jobs_splits_active_and_completed(db, test_user, make_job):
    make_job(status=JobStatus.ACTIVE.value)
    make_job(status=JobStatus.COMPLETED.value)
    make_job(status=JobStatus.DRAFT.value)
    jobs = job_service.list_jobs(db, test_user.id)
    assert len(jobs["active"]) == 2
    assert len(jobs["completed"]) == 1


def test_save_job_fields_activates_draft(db, test_user, make_job):
    job = make_job(status=JobStatus.DRAFT.value)
    job = job_service.save_job_fields(db, test_user.id, job.id, {"notes_extra": "x"})
    assert job.status == JobStatus.ACTIVE.value


def test_save_job_info_updates_columns_fields_and_customer(db, test_user, make_job):
    job = make_job(status=JobStatus.DRAFT.value)
    job = job_service.save_job_info(
        db,
        test_user.id,
        job.id,
        JobInfoUpdate(
            title="Annual check",
            client_name="Jane Doe",
            address="1 High St",
            fields={"customer_email": "jane@example.com"},
        ),
    )

    assert job.title == "Annual check"
    assert job.address == "1 High St"
    assert job.client_id is not None
    fields = job_field_service.get_job_field_map(db, job.id)
    assert fields["customer_name"] == "Jane Doe"
    assert fields["property_address"] == "1 High St"


def test_upsert_job_address_formats_line(db, test_user, make_job):
    job = make_job()
    job = job_service.upsert_job_address(
        db, test_user.id, job.id, JobAddressUpdate(line1="1 High St", line2="", town="Leeds", postcode="LS1 1AA")
    )
    assert job.address == "1 High St, Leeds"
    assert job_field_service.get_job_field(db, job.id, "address_postcode") == "LS1 1AA"
