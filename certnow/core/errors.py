"""Service-level exceptions shared by the job, client and certificate services.

Routers never build HTTP errors for these themselves; main.py registers one
handler per class that maps it to a status code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certnow.services.certificate_validation import Violation


class ServiceError(Exception):
    """Base exception for service errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """Requested record does not exist."""

    status_code = 404


class ValidationFailedError(ServiceError):
    """Input or issuance validation failed."""

    status_code = 422

    def __init__(self, message: str, violations: list[Violation] | None = None):
        super().__init__(message)
        self.violations = list(violations or [])


class UpstreamError(ServiceError):
    """Storage, renderer or database collaborator failed."""

    status_code = 502
