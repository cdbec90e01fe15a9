"""Customer registry endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from certnow.core.deps import get_current_session, get_db, require_csrf_header
from certnow.schemas.auth import UserSession
from certnow.schemas.client import (
    ClientCreate,
    ClientCreateResponse,
    ClientDetail,
    ClientUpdate,
    CustomerView,
)
from certnow.services import client_service

router = APIRouter()


@router.get("", response_model=list[CustomerView])
def list_clients(
    q: str | None = Query(None, description="Search name, organization, email or phone"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """List customers, de-duplicated by name + email."""
    return client_service.list_clients(db, session.user_id, search=q)


@router.post("", response_model=ClientCreateResponse, status_code=201)
def create_client(
    data: ClientCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    """
    Create a customer, or merge into the existing one with the same identity.

    created=false means an existing record was returned (and any of its
    empty fields filled from this request).
    """
    client, created = client_service.create_client(db, session.user_id, data)
    return ClientCreateResponse(id=client.id, created=created)


@router.get("/{client_id}", response_model=ClientDetail)
def get_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return client_service.get_client_detail(db, session.user_id, client_id)


@router.patch("/{client_id}", response_model=CustomerView)
def update_client(
    client_id: UUID,
    data: ClientUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    client = client_service.update_client(db, session.user_id, client_id, data)
    return client_service.get_customer_view(db, session.user_id, client.id)


@router.delete("/{client_id}")
def delete_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
    _: None = Depends(require_csrf_header),
):
    client_service.delete_client(db, session.user_id, client_id)
    return {"deleted": True}
