"""Error taxonomy for the survey engine.

Everything raised below the façade derives from :class:`SurveyError`; the
façade converts these into :class:`~satsurvey.facade.OperationResult` values.
"""

from __future__ import annotations

from typing import Any


class SurveyError(Exception):
    """Base error for survey operations."""


class ValidationError(SurveyError):
    """Raised when a draft fails one or more field rules."""

    def __init__(self, errors: list[Any]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(e.message for e in self.errors) or "Validation failed")


class NotFoundError(SurveyError):
    """Raised when an update/delete target id is not in the collection."""

    def __init__(self, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"Satellite {record_id} not found")


class BusyError(SurveyError):
    """Raised when a single-flight operation is already in progress."""


# ── Remote backend ────────────────────────────────────────────────

class BackendError(SurveyError):
    """Base error for remote list-service failures."""


class BackendTimeoutError(BackendError):
    """Raised when a remote call exceeds its timeout."""


class BackendConnectionError(BackendError):
    """Raised when the remote service is network-unreachable."""


class BackendHttpError(BackendError):
    """Raised on a non-success HTTP status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"HTTP {status_code}")


class BackendProtocolError(BackendError):
    """Raised when a response body is missing expected fields."""


# ── Local backend ─────────────────────────────────────────────────

class StorageError(SurveyError):
    """Base error for local store write failures."""


class StorageQuotaError(StorageError):
    """Raised when the local store is full."""


class StorageSerializationError(StorageError):
    """Raised when the collection cannot be serialized."""
