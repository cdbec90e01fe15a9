"""Customer registry: identity-key de-duplication, merged views and create-or-merge."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from certnow.core.errors import NotFoundError
from certnow.core.structured_logging import build_log_context
from certnow.db.models import Certificate, Client, Job
from certnow.schemas.client import ClientCreate, ClientUpdate, CustomerView
from certnow.utils.normalization import (
    as_utc,
    has_value,
    normalize_identity_part,
    pick_first_non_empty,
    to_text,
)

logger = logging.getLogger(__name__)

# Fields merged across a group (id and name always come from the primary row)
MERGED_FIELDS = (
    "organization",
    "email",
    "phone",
    "address",
    "postcode",
    "landlord_name",
    "landlord_address",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# =============================================================================
# Identity key
# =============================================================================

@dataclass(frozen=True)
class CustomerIdentityKey:
    """
    Logical identity of a customer: normalized name + normalized email.

    Two customers with the same name and no email collide; that is accepted.
    """
    name: str
    email: str

    @classmethod
    def of(cls, name, email) -> "CustomerIdentityKey":
        return cls(normalize_identity_part(name), normalize_identity_part(email))

    def __str__(self) -> str:
        return f"{self.name}::{self.email}"


def identity_key(row) -> CustomerIdentityKey:
    return CustomerIdentityKey.of(getattr(row, "name", None), getattr(row, "email", None))


# =============================================================================
# Pure grouping / merging
# =============================================================================

def _recency(row) -> tuple[datetime, str]:
    # id breaks timestamp ties so the result never depends on row order
    return as_utc(row.updated_at) or as_utc(row.created_at) or _EPOCH, str(row.id)


def sort_by_recency(rows: Iterable) -> list:
    """Newest first by updated_at, falling back to created_at, then by id."""
    return sorted(rows, key=_recency, reverse=True)


def group_clients(rows: Iterable) -> dict[CustomerIdentityKey, list]:
    """Partition client rows by identity key, preserving input order within groups."""
    groups: dict[CustomerIdentityKey, list] = {}
    for row in rows:
        groups.setdefault(identity_key(row), []).append(row)
    return groups


def merge_client_group(rows: list) -> CustomerView:
    """
    Collapse one identity group into a single customer view.

    Pure, idempotent and independent of the order rows arrive in.
    """
    if not rows:
        raise ValueError("Cannot merge an empty client group")

    ordered = sort_by_recency(rows)
    primary = ordered[0]
    merged = {
        field: pick_first_non_empty(*(getattr(row, field, None) for row in ordered)) or None
        for field in MERGED_FIELDS
    }
    return CustomerView(
        id=primary.id,
        name=to_text(primary.name),
        created_at=primary.created_at,
        updated_at=primary.updated_at,
        client_ids=[row.id for row in ordered],
        **merged,
    )


def merge_clients(rows: Iterable) -> list[CustomerView]:
    """Group then merge; newest customer first."""
    views = [merge_client_group(group) for group in group_clients(rows).values()]
    return sorted(views, key=_recency, reverse=True)


# =============================================================================
# Queries
# =============================================================================

def _list_client_rows(db: Session, user_id: uuid.UUID) -> list[Client]:
    return (
        db.query(Client)
        .filter(Client.user_id == user_id)
        .order_by(Client.created_at.desc())
        .all()
    )


def _matches_search(view: CustomerView, term: str) -> bool:
    needle = term.lower()
    return any(
        needle in (value or "").lower()
        for value in (view.name, view.organization, view.email, view.phone)
    )


def list_clients(
    db: Session,
    user_id: uuid.UUID,
    search: str | None = None,
) -> list[CustomerView]:
    """List the caller's customers, de-duplicated by identity key."""
    views = merge_clients(_list_client_rows(db, user_id))
    term = to_text(search)
    if term:
        views = [v for v in views if _matches_search(v, term)]
    return views


def search_customers(db: Session, user_id: uuid.UUID, query: str) -> list[CustomerView]:
    """Typeahead search. An empty query returns nothing rather than everything."""
    if not has_value(query):
        return []
    return list_clients(db, user_id, search=query)


def get_client_row(db: Session, user_id: uuid.UUID, client_id: uuid.UUID) -> Client:
    """Load one of the caller's client rows. Someone else's row reads as missing."""
    row = (
        db.query(Client)
        .filter(Client.id == client_id, Client.user_id == user_id)
        .first()
    )
    if not row:
        raise NotFoundError("Client not found")
    return row


def get_customer_view(
    db: Session,
    user_id: uuid.UUID,
    client_id: uuid.UUID | None,
) -> CustomerView | None:
    """
    Merged view of the logical customer containing client_id.

    Returns None when there is no link or the row no longer exists, so a job
    whose client was deleted still resolves.
    """
    if client_id is None:
        return None
    row = (
        db.query(Client)
        .filter(Client.id == client_id, Client.user_id == user_id)
        .first()
    )
    if not row:
        logger.warning(
            "Linked client missing",
            extra=build_log_context(user_id=user_id, client_id=client_id),
        )
        return None
    key = identity_key(row)
    group = [r for r in _list_client_rows(db, user_id) if identity_key(r) == key]
    return merge_client_group(group or [row])


def get_client_detail(db: Session, user_id: uuid.UUID, client_id: uuid.UUID) -> dict:
    """Customer view plus every job linked to any row in the group and their certificates."""
    get_client_row(db, user_id, client_id)
    view = get_customer_view(db, user_id, client_id)

    jobs = (
        db.query(Job)
        .filter(Job.user_id == user_id, Job.client_id.in_(view.client_ids))
        .order_by(Job.created_at.desc())
        .all()
    )
    job_ids = [job.id for job in jobs]
    certificates = []
    if job_ids:
        certificates = (
            db.query(Certificate)
            .filter(Certificate.job_id.in_(job_ids))
            .order_by(Certificate.created_at.desc())
            .all()
        )
    return {"client": view, "jobs": jobs, "certificates": certificates}


# =============================================================================
# Writes
# =============================================================================

def find_by_identity(
    db: Session,
    user_id: uuid.UUID,
    key: CustomerIdentityKey,
) -> Client | None:
    """Most recent row matching key, or None."""
    matches = [r for r in _list_client_rows(db, user_id) if identity_key(r) == key]
    if not matches:
        return None
    return sort_by_recency(matches)[0]


def create_client(
    db: Session,
    user_id: uuid.UUID,
    data: ClientCreate,
) -> tuple[Client, bool]:
    """
    Create-or-merge.

    If a client with the same identity key exists, fill only its empty fields
    from data and return it with created=False. Populated fields are never
    overwritten. Not backed by a unique constraint.
    """
    payload = data.model_dump()
    key = CustomerIdentityKey.of(payload.get("name"), payload.get("email"))
    existing = find_by_identity(db, user_id, key)

    if existing:
        patched = []
        for field in MERGED_FIELDS:
            incoming = to_text(payload.get(field))
            if incoming and not has_value(getattr(existing, field)):
                setattr(existing, field, incoming)
                patched.append(field)
        if patched:
            existing.updated_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(existing)
        logger.info(
            "Merged client into existing identity (%d fields patched)",
            len(patched),
            extra=build_log_context(user_id=user_id, client_id=existing.id),
        )
        return existing, False

    client = Client(
        user_id=user_id,
        name=to_text(payload["name"]),
        **{field: to_text(payload.get(field)) or None for field in MERGED_FIELDS},
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Created client", extra=build_log_context(user_id=user_id, client_id=client.id))
    return client, True


def update_client(
    db: Session,
    user_id: uuid.UUID,
    client_id: uuid.UUID,
    data: ClientUpdate,
) -> Client:
    """Update provided fields on one client row."""
    client = get_client_row(db, user_id, client_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name":
            if has_value(value):
                client.name = value.strip()
            continue
        setattr(client, field, to_text(value) or None)
    client.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, user_id: uuid.UUID, client_id: uuid.UUID) -> None:
    """Delete one client row. Linked jobs keep their legacy client_name."""
    client = get_client_row(db, user_id, client_id)
    db.delete(client)
    db.commit()


def upsert_customer_from_job_fields(
    db: Session,
    user_id: uuid.UUID,
    job: Job,
    fields: dict,
) -> CustomerView | None:
    """
    Keep the linked client in step with customer details typed into a wizard.

    A linked client is updated with whatever non-empty values were supplied.
    An unlinked job gets a client created (or merged by identity) and linked.
    """
    name = pick_first_non_empty(fields.get("customer_name"), fields.get("client_name"), job.client_name)
    address = pick_first_non_empty(
        fields.get("customer_address"), fields.get("billing_address"), fields.get("client_address")
    )
    email = pick_first_non_empty(fields.get("customer_email"), fields.get("email"))
    phone = pick_first_non_empty(fields.get("customer_phone"), fields.get("phone"))
    organization = pick_first_non_empty(fields.get("customer_company"), fields.get("organization"))
    postcode = pick_first_non_empty(fields.get("customer_postcode"))
    landlord_name = pick_first_non_empty(fields.get("landlord_name"))
    landlord_address = pick_first_non_empty(fields.get("landlord_address"))

    if not (name or address or email or phone):
        return None

    values = {
        "name": name,
        "address": address,
        "email": email,
        "phone": phone,
        "organization": organization,
        "postcode": postcode,
        "landlord_name": landlord_name,
        "landlord_address": landlord_address,
    }

    linked = None
    if job.client_id:
        linked = db.query(Client).filter(
            Client.id == job.client_id, Client.user_id == user_id
        ).first()

    if linked:
        changed = False
        for field, value in values.items():
            if value and getattr(linked, field) != value:
                setattr(linked, field, value)
                changed = True
        if changed:
            linked.updated_at = datetime.now(timezone.utc)
        if name and job.client_name != name:
            job.client_name = name
            changed = True
        if changed:
            db.commit()
        return get_customer_view(db, user_id, linked.id)

    client, _ = create_client(
        db,
        user_id,
        ClientCreate.model_construct(
            **{"name": name or "Customer", **{k: v or None for k, v in values.items() if k != "name"}}
        ),
    )
    job.client_id = client.id
    job.client_name = client.name
    db.commit()
    logger.info(
        "Linked job to client",
        extra=build_log_context(user_id=user_id, job_id=job.id, client_id=client.id),
    )
    return get_customer_view(db, user_id, client.id)
