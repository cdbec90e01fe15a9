"""Tests for appliance defaults carried over from earlier jobs."""

from datetime import datetime, timedelta, timezone

import pytest

from certnow.core.errors import NotFoundError
from certnow.db.enums import CertificateType
from certnow.db.models import Client, Cp12Appliance
from certnow.services import history_service, job_field_service

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _add_appliance(db, job, created_at, **values):
    db.add(Cp12Appliance(job_id=job.id, user_id=job.user_id, created_at=created_at, **values))
    db.commit()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Worcester Bosch Greenstar 30i", ("Worcester Bosch", "Greenstar 30i")),
        ("vaillant ecoTEC plus", ("Vaillant", "ecoTEC plus")),
        ("Glow-worm Betacom", ("Glow-worm Betacom", "")),
        ("  ", ("", "")),
        (None, ("", "")),
    ],
)
def test_split_make_model(value, expected):
    assert history_service.split_make_model(value) == expected


def test_defaults_from_previous_job_at_same_address(db, test_user, make_job):
    older = make_job(address="1 High St", created_at=NOW - timedelta(days=400))
    previous = make_job(address="1 High St", created_at=NOW - timedelta(days=30))
    _add_appliance(db, older, NOW - timedelta(days=400), appliance_type="Fire", location="Lounge")
    _add_appliance(db, previous, NOW - timedelta(days=31), appliance_type="Hob", location="Kitchen")
    _add_appliance(
        db, previous, NOW - timedelta(days=30),
        appliance_type="Boiler", location="Kitchen", make_model="Vaillant ecoTEC plus",
        flue_type="RS", co_reading_ppm="8", safety_rating="safe",
    )
    job_field_service.persist_job_fields(
        db, previous.id, {"serial_number": "SN-1", "location": "Utility", "boiler_model": ""}
    )
    current = make_job(address="1 High St", created_at=NOW)

    defaults = history_service.get_latest_appliance_defaults(db, test_user.id, current.id)

    assert defaults["source"]["job_id"] == previous.id
    assert defaults["appliance"] == {
        "type": "Boiler",
        "make": "Vaillant",
        "model": "ecoTEC plus",
        "location": "Utility",
        "serial": "SN-1",
        "flue_type": "RS",
    }
    assert defaults["readings"]["co_reading_ppm"] == "8"
    assert defaults["readings"]["safety_rating"] == "safe"
    assert defaults["readings"]["heat_input"] == ""


def test_falls_back_to_same_client_when_job_has_no_address(db, test_user, make_job):
    client = Client(user_id=test_user.id, name="Jane")
    db.add(client)
    db.commit()
    previous = make_job(client_id=client.id, address="Old address", created_at=NOW - timedelta(days=5))
    job_field_service.persist_job_fields(db, previous.id, {"boiler_make": "Baxi"})
    current = make_job(client_id=client.id, created_at=NOW)

    defaults = history_service.get_latest_appliance_defaults(db, test_user.id, current.id)

    assert defaults["source"]["job_id"] == previous.id
    assert defaults["appliance"]["make"] == "Baxi"
    assert defaults["appliance"]["type"] == ""


def test_restricted_to_same_certificate_type(db, test_user, make_job):
    make_job(CertificateType.BOILER_SERVICE, address="1 High St", created_at=NOW - timedelta(days=1))
    current = make_job(CertificateType.CP12, address="1 High St", created_at=NOW)
    assert history_service.get_latest_appliance_defaults(db, test_user.id, current.id) is None


def test_no_address_or_client_gives_nothing(db, test_user, make_job):
    make_job(created_at=NOW - timedelta(days=1))
    current = make_job(created_at=NOW)
    assert history_service.get_latest_appliance_defaults(db, test_user.id, current.id) is None


def test_other_users_jobs_are_never_used(db, test_user, other_user, make_job):
    make_job(user=other_user, address="1 High St", created_at=NOW - timedelta(days=1))
    current = make_job(address="1 High St", created_at=NOW)
    assert history_service.get_latest_appliance_defaults(db, test_user.id, current.id) is None

    with pytest.raises(NotFoundError):
        history_service.get_latest_appliance_defaults(db, other_user.id, current.id)
