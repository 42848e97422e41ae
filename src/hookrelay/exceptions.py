"""hookrelay exception hierarchy.

All exceptions inherit from RelayError so callers can catch every
relay-specific failure with a single except clause.

Signature and payload problems on the inbound path are not raised; they are
reported as ReceiveResult values so the HTTP layer can answer the sender
directly.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all hookrelay errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "relay_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(RelayError):
    """Invalid input provided.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(RelayError):
    """Resource not found.

    Raised when a lookup or replay names an event id the store does not hold.

    Attributes:
        resource_type: Type of resource (e.g., "event").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(RelayError):
    """Durable store operation failed.

    Raised when writing the event snapshot to disk fails. The in-memory
    state has already changed at that point; the next successful write
    will carry it.
    """

    code: str = "storage_error"


class ConfigurationError(RelayError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"
