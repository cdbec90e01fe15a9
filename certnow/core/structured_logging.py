"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    job_id: str | None = None,
    client_id: str | None = None,
    certificate_type: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (identifiers only, never names or addresses)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if job_id:
        context["job_id"] = str(job_id)
    if client_id:
        context["client_id"] = str(client_id)
    if certificate_type:
        context["certificate_type"] = certificate_type
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
