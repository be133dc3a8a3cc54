"""hookrelay exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from HookRelayError for easy catching.
"""

from __future__ import annotations


class HookRelayError(Exception):
    """Base exception for all hookrelay errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "hookrelay_error"

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


class ConfigurationError(HookRelayError):
    """Configuration error.

    Raised when required configuration is missing or invalid, such as an
    unsupported hash algorithm or a missing inbound secret. Never retried.
    """

    code: str = "configuration_error"


class InvalidArgumentError(ConfigurationError):
    """Invalid dispatch argument.

    Raised before any network call when dispatch options are unusable,
    for example an unsupported HTTP method.

    Attributes:
        field: The option that failed validation.
    """

    code: str = "invalid_argument"

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


class TransportFailure(HookRelayError):
    """Network error or timeout during a delivery attempt.

    The attempt engine folds these into a failed DeliveryOutcome; the
    retry scheduler counts them as failed attempts.
    """

    code: str = "transport_failure"


class NonSuccessResponse(HookRelayError):
    """Endpoint answered with a status outside the 2xx range.

    Attributes:
        status_code: HTTP status returned by the endpoint.
    """

    code: str = "non_success_response"

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


class AuthenticationError(HookRelayError):
    """Authentication failed.

    Raised when an inbound webhook has an invalid signature or a
    timestamp outside the replay window.
    """

    code: str = "authentication_error"


class QueueUnavailableError(HookRelayError):
    """Async dispatch requested without a usable work queue."""

    code: str = "queue_unavailable"


class StorageError(HookRelayError):
    """Storage operation failed."""

    code: str = "storage_error"


class PersistenceFailure(StorageError):
    """A delivery or dead-letter record could not be written.

    Returned as a value by the outcome recorder and dead-letter store
    rather than raised, so the dispatch result never depends on storage.

    Attributes:
        record_type: Kind of record that was lost ("delivery" or "failure").
        cause: The underlying exception.
    """

    code: str = "persistence_failure"

    def __init__(self, record_type: str, cause: BaseException) -> None:
        self.record_type = record_type
        self.cause = cause
        super().__init__(f"Failed to persist {record_type} record: {cause}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "record_type": self.record_type,
                "message": self.message,
            }
        }


class NotFoundError(HookRelayError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "webhook_failure").
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
