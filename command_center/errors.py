from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors surfaced to API callers with a stable kind."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "detail": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class InvalidInputError(DomainError):
    kind = "validation"
    status_code = 400


class AuthenticationError(DomainError):
    kind = "unauthorized"
    status_code = 401


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class ConflictError(DomainError):
    kind = "conflict"
    status_code = 409


class WriteConflictError(ConflictError):
    # Raised after the single retry of a racing write is exhausted.
    kind = "write_conflict"
