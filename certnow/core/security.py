"""Security utilities for JWT session tokens and signed download tokens."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from certnow.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(user_id: UUID, token_version: int) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity and revocation version.
    """
    payload = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    return _decode_with_rotation(token)


# =============================================================================
# Storage Download Token (local backend signed URLs)
# =============================================================================

def create_download_token(storage_path: str, expires_in: int) -> str:
    """Sign a short-lived token that grants read access to one storage path."""
    payload = {
        "path": storage_path,
        "purpose": "download",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def verify_download_token(token: str, storage_path: str) -> bool:
    """Check a download token is valid, unexpired and bound to storage_path."""
    try:
        payload = _decode_with_rotation(token)
    except jwt.InvalidTokenError:
        return False
    return payload.get("purpose") == "download" and payload.get("path") == storage_path


def _decode_with_rotation(token: str) -> dict:
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
