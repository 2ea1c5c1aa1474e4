"""
Error types raised by the ticket service and rendered by the API.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError


class TicketServiceError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TicketServiceError):
    status_code = 400


class NotFoundError(TicketServiceError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class OriginNotAllowedError(TicketServiceError):
    status_code = 403

    def __init__(self, message: str = "Not allowed by CORS"):
        super().__init__(message)


def describe_validation_errors(errors: list[dict]) -> str:
    """Flattens pydantic error entries into a single readable message."""
    parts = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = error.get("msg", "Invalid value")
        message = message.removeprefix("Value error, ")
        parts.append(f"{'.'.join(loc)}: {message}" if loc else message)
    return "; ".join(parts) or "Invalid request"


def from_pydantic(exc: PydanticValidationError) -> ValidationError:
    return ValidationError(describe_validation_errors(exc.errors()))
