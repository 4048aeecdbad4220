"""
Custom exceptions for the directory service domain.

These exceptions represent domain-level errors and are independent
of infrastructure concerns (HTTP, Notion, etc.).
"""

from typing import Optional


class DirectoryServiceException(Exception):
    """Base exception for all directory service errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DecodeError(DirectoryServiceException):
    """
    Raised when a raw Notion page lacks a required field.

    Recovered per record: the decoder substitutes a default-filled
    record instead of failing the whole collection.
    """

    def __init__(self, field: str, kind: Optional[str] = None):
        self.field = field
        self.kind = kind
        message = f"Get `{field}` failed"
        if kind:
            message = f"Get `{field}` failed for {kind}"
        super().__init__(message=message, details={"field": field, "kind": kind})


class FetchError(DirectoryServiceException):
    """Raised when the full collection of one kind cannot be fetched."""

    def __init__(self, kind: str, reason: Optional[str] = None):
        self.kind = kind
        message = f"Fetching {kind} records failed"
        if reason:
            message += f": {reason}"
        super().__init__(message=message, details={"kind": kind, "reason": reason})


class RecordNotFoundException(DirectoryServiceException):
    """Raised when an identifier is absent from its kind's partition."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(
            message=f"{kind} not found: {record_id}",
            details={"kind": kind, "id": record_id},
        )


class ExternalServiceException(DirectoryServiceException):
    """Raised when an external API service fails."""

    def __init__(self, service: str, reason: Optional[str] = None):
        message = f"External service '{service}' unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(
            message=message, details={"service": service, "reason": reason}
        )


class DataIntegrityException(DirectoryServiceException):
    """Raised when data integrity constraints are violated."""

    def __init__(self, entity: str, reason: str):
        message = f"Data integrity error for {entity}: {reason}"
        super().__init__(message=message, details={"entity": entity, "reason": reason})
