"""Registration errors with stable codes so clients can tell rejections apart."""
from __future__ import annotations

from typing import Optional


class RegistrationError(Exception):
    """Base error for rejected catalog and workflow operations."""

    status_code = 400

    def __init__(self, message: str, code: str, details: Optional[dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(RegistrationError):
    """Referenced event or registration does not exist."""

    status_code = 404


class InvalidStateError(RegistrationError):
    """Event closed or past, or registration already cancelled."""


class ConstraintViolationError(RegistrationError):
    """Team size out of bounds, team name taken, or a bound conflicts with current data."""


class ConflictError(RegistrationError):
    """A concurrent write won; the storage layer rejected this one."""

    status_code = 409
