"""Error taxonomy for the media subsystem.

Only ``TransientNetworkError`` is retried by the generic retry helper; the
transfer phase of an upload additionally retries ``TransferError``. Everything
else is fatal to the call that raised it.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class MediaServiceError(Exception):
    """Base class for every failure surfaced by the media service."""


class TransientNetworkError(MediaServiceError):
    """Retry-eligible failure: transport error, 429, 5xx or a THROTTLED reply."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AdminApiError(MediaServiceError):
    """Non-retryable Admin API failure (4xx, top-level GraphQL errors, empty data)."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.errors = errors or []
        self.status_code = status_code


class AdminApiConfigError(AdminApiError):
    """Shop domain or access token missing from settings."""


class ValidationError(MediaServiceError):
    """Remote-reported per-item ``userErrors``, kept verbatim."""

    phase = "validation"

    def __init__(self, message: str, user_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.user_errors = list(user_errors or [])


class StagingError(ValidationError):
    phase = "stage"


class RegistrationError(ValidationError):
    phase = "register"


class TransferError(MediaServiceError):
    """The object store refused a staged upload."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProtocolInvariantError(MediaServiceError):
    """The platform broke a structural promise, e.g. fewer slots than files."""
