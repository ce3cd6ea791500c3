"""Error taxonomy shared by the gate, the listing view and the HTTP handlers."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict


class DiaryError(Exception):
    """Base class for errors surfaced to the user as status text.

    ``status_code`` is the HTTP status the server answers with when the error
    crosses the API boundary.
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "DIARY-ERROR"

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DiaryError):
    """A required field is empty; handled locally without a network call."""

    status_code = HTTPStatus.BAD_REQUEST
    error_code = "DIARY-INVALID-REQUEST"


class CredentialRejected(DiaryError):
    """The verifier answered and said no."""

    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "DIARY-CREDENTIAL-REJECTED"


class TransportError(DiaryError):
    """The remote side could not be reached; never counts as a rejection."""

    error_code = "DIARY-TRANSPORT"


class StoreError(DiaryError):
    """The entry store reported a query, insert or delete failure."""

    error_code = "DIARY-STORE"


class EntryNotFound(StoreError):
    status_code = HTTPStatus.NOT_FOUND
    error_code = "DIARY-NOT-FOUND"


class ConfigError(DiaryError):
    """The server is missing a required secret or setting."""

    error_code = "DIARY-MISCONFIGURED"
