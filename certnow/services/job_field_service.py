"""Field store for schema-less job fields.

Writes are delete-then-insert and not atomic across requests: two concurrent
saves to overlapping keys can interleave and leave duplicate rows for a key.
Readers tolerate that by taking the newest row per key.
"""

import logging
import uuid
from typing import Any, Mapping

from sqlalchemy.orm import Session

from certnow.core.structured_logging import build_log_context
from certnow.db.models import JobField
from certnow.utils.normalization import as_utc

logger = logging.getLogger(__name__)


def _serialize(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def persist_job_fields(
    db: Session,
    job_id: uuid.UUID,
    fields: Mapping[str, Any],
    *,
    commit: bool = True,
) -> int:
    """
    Replace the given keys for a job.

    Step 1 deletes every existing row whose key is in fields; step 2 inserts
    one row per key. Keys not in fields are untouched. Returns rows written.
    """
    keys = [key for key in fields.keys() if key]
    if not keys:
        return 0

    db.query(JobField).filter(
        JobField.job_id == job_id,
        JobField.field_key.in_(keys),
    ).delete(synchronize_session=False)
    db.flush()

    for key in keys:
        db.add(JobField(job_id=job_id, field_key=key, value=_serialize(fields[key])))
    db.flush()

    if commit:
        db.commit()

    logger.info(
        "Persisted %d job fields",
        len(keys),
        extra=build_log_context(job_id=job_id),
    )
    return len(keys)


def set_job_field(
    db: Session,
    job_id: uuid.UUID,
    key: str,
    value: Any,
    *,
    commit: bool = True,
) -> None:
    """Single-key delete-then-insert."""
    persist_job_fields(db, job_id, {key: value}, commit=commit)


def get_job_field_map(db: Session, job_id: uuid.UUID) -> dict[str, str]:
    """Key → value for a job. Newest row wins when a key has duplicates."""
    rows = db.query(JobField).filter(JobField.job_id == job_id).all()
    rows.sort(key=lambda r: as_utc(r.created_at))
    return {row.field_key: row.value or "" for row in rows}


def get_job_field(db: Session, job_id: uuid.UUID, key: str) -> str:
    return get_job_field_map(db, job_id).get(key, "")
