"""Authentication endpoints."""

from fastapi import APIRouter, Depends

from certnow.core.deps import get_current_session
from certnow.schemas.auth import MeResponse, UserSession

router = APIRouter()


@router.get("/me", response_model=MeResponse)
def me(session: UserSession = Depends(get_current_session)):
    """Current engineer identity."""
    return MeResponse(
        user_id=session.user_id,
        email=session.email,
        display_name=session.display_name,
    )
