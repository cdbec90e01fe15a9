"""HTTP tests for job endpoints."""

from datetime import datetime, timezone

import pytest

from certnow.db.models import Cp12Appliance, JobPhoto


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_me(authed_client, test_user):
    res = await authed_client.get("/auth/me")
    assert res.status_code == 200
    assert res.json()["email"] == test_user.email


@pytest.mark.asyncio
async def test_create_and_list_jobs(authed_client):
    res = await authed_client.post("/jobs", json={"certificate_type": "cp12"})
    assert res.status_code == 201
    job = res.json()
    assert job["status"] == "draft"
    assert job["title"] == "CP12 draft"

    res = await authed_client.get("/jobs")
    assert [j["id"] for j in res.json()["active"]] == [job["id"]]
    assert res.json()["completed"] == []


@pytest.mark.asyncio
async def test_create_job_with_unknown_client(authed_client):
    res = await authed_client.post(
        "/jobs",
        json={"certificate_type": "cp12", "client_id": "00000000-0000-0000-0000-000000000000"},
    )
    assert res.status_code == 404
    assert res.json()["detail"] == "Client not found"


@pytest.mark.asyncio
async def test_missing_job_is_not_found(authed_client):
    res = await authed_client.get("/jobs/00000000-0000-0000-0000-000000000000/wizard-state")
    assert res.status_code == 404
    assert res.json()["detail"] == "Job not found"


@pytest.mark.asyncio
async def test_fields_round_trip_through_wizard_state(authed_client, make_job):
    job = make_job(client_name="Legacy Name")
    res = await authed_client.put(f"/jobs/{job.id}/fields", json={"fields": {"engineer_name": "E", "flag": True}})
    assert res.status_code == 200
    res = await authed_client.put(f"/jobs/{job.id}/fields/engineer_name", json={"value": "F"})
    assert res.status_code == 200

    state = (await authed_client.get(f"/jobs/{job.id}/wizard-state")).json()
    assert state["fields"]["engineer_name"] == "F"
    assert state["fields"]["flag"] == "true"
    assert state["fields"]["customer_name"] == "Legacy Name"


@pytest.mark.asyncio
async def test_photo_upload(authed_client, db, make_job):
    job = make_job()
    res = await authed_client.post(
        f"/jobs/{job.id}/photos",
        data={"category": "boiler", "note": "Serial plate"},
        files={"file": ("boiler.jpg", b"\xff\xd8 fake jpeg", "image/jpeg")},
    )
    assert res.status_code == 201
    assert res.json()["storage_path"].endswith(".jpg")
    assert db.query(JobPhoto).count() == 1

    state = (await authed_client.get(f"/jobs/{job.id}/wizard-state")).json()
    assert state["photo_notes"] == {"boiler": "Serial plate"}
    assert "boiler" in state["photo_previews"]


@pytest.mark.asyncio
async def test_photo_upload_rejects_non_images(authed_client, make_job):
    job = make_job()
    res = await authed_client.post(
        f"/jobs/{job.id}/photos",
        data={"category": "boiler"},
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_address_update(authed_client, make_job):
    job = make_job()
    res = await authed_client.put(
        f"/jobs/{job.id}/address", json={"line1": "1 High St", "town": "Leeds", "postcode": "LS1"}
    )
    assert res.status_code == 200
    assert res.json()["address"] == "1 High St, Leeds"


@pytest.mark.asyncio
async def test_appliance_defaults(authed_client, db, make_job):
    previous = make_job(address="1 High St", created_at=datetime(2025, 5, 1, tzinfo=timezone.utc))
    db.add(Cp12Appliance(job_id=previous.id, user_id=previous.user_id, appliance_type="Boiler",
                         location="Kitchen", make_model="Ideal Logic"))
    db.commit()
    current = make_job(address="1 High St", created_at=datetime(2026, 5, 1, tzinfo=timezone.utc))

    res = await authed_client.get(f"/jobs/{current.id}/appliance-defaults")
    assert res.status_code == 200
    body = res.json()
    assert body["source"]["job_id"] == str(previous.id)
    assert body["appliance"]["make"] == "Ideal"
    assert body["appliance"]["model"] == "Logic"

    elsewhere = make_job(address="9 Other Rd")
    res = await authed_client.get(f"/jobs/{elsewhere.id}/appliance-defaults")
    assert res.status_code == 200
    assert res.json() is None
