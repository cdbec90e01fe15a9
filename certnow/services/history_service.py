"""Appliance defaults carried forward from an earlier job at the same property."""

import logging
import uuid

from sqlalchemy.orm import Session

from certnow.core.structured_logging import build_log_context
from certnow.db.models import Cp12Appliance, Job
from certnow.services import job_field_service, job_service
from certnow.utils.normalization import pick_first_non_empty, to_text

logger = logging.getLogger(__name__)

KNOWN_MAKES = ("Worcester Bosch", "Vaillant", "Ideal", "Baxi")

# Job fields on the earlier job that override its appliance row
OVERRIDE_KEYS = ("serial_number", "boiler_make", "boiler_model", "location", "flue_type")


def split_make_model(value: str | None) -> tuple[str, str]:
    """
    Split a combined "make model" string.

    Known makes are matched as a case-insensitive prefix; anything else is
    treated as a make with no model.
    """
    text = to_text(value)
    if not text:
        return "", ""
    for make in KNOWN_MAKES:
        if text.lower().startswith(make.lower()):
            return make, text[len(make):].strip()
    return text, ""


def find_previous_job(db: Session, user_id: uuid.UUID, job: Job) -> Job | None:
    """
    Most recent other job of the caller's at the same address, else for the
    same client. Restricted to the same certificate type when the job has one.
    """
    query = db.query(Job).filter(Job.user_id == user_id, Job.id != job.id)
    if to_text(job.address):
        query = query.filter(Job.address == job.address)
    elif job.client_id:
        query = query.filter(Job.client_id == job.client_id)
    else:
        return None
    if job.certificate_type:
        query = query.filter(Job.certificate_type == job.certificate_type)
    return query.order_by(Job.created_at.desc()).first()


def get_latest_appliance_defaults(
    db: Session,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
) -> dict | None:
    """Appliance and reading defaults from the previous matching job, or None."""
    job = job_service.get_owned_job(db, user_id, job_id)
    previous = find_previous_job(db, user_id, job)
    if previous is None:
        return None

    appliance = (
        db.query(Cp12Appliance)
        .filter(Cp12Appliance.job_id == previous.id)
        .order_by(Cp12Appliance.created_at.desc())
        .first()
    )
    stored = job_field_service.get_job_field_map(db, previous.id)
    overrides = {key: stored.get(key, "") for key in OVERRIDE_KEYS}

    def attr(name: str) -> str:
        return to_text(getattr(appliance, name, None)) if appliance else ""

    make, model = split_make_model(attr("make_model"))

    logger.info(
        "Loaded appliance defaults from previous job",
        extra=build_log_context(user_id=user_id, job_id=job.id),
    )
    return {
        "appliance": {
            "type": attr("appliance_type"),
            "make": pick_first_non_empty(overrides["boiler_make"], make),
            "model": pick_first_non_empty(overrides["boiler_model"], model),
            "location": pick_first_non_empty(overrides["location"], attr("location")),
            "serial": overrides["serial_number"],
            "flue_type": pick_first_non_empty(overrides["flue_type"], attr("flue_type")),
        },
        "readings": {
            "operating_pressure": attr("operating_pressure"),
            "heat_input": attr("heat_input"),
            "co_reading_ppm": attr("co_reading_ppm"),
            "ventilation_satisfactory": attr("ventilation_satisfactory"),
            "flue_condition": attr("flue_condition"),
            "gas_tightness_test": attr("gas_tightness_test"),
            "safety_rating": attr("safety_rating"),
            "classification_code": attr("classification_code"),
        },
        "source": {
            "job_id": previous.id,
            "date": previous.completed_at or previous.created_at,
        },
    }
