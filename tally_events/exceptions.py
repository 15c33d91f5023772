"""Custom exception classes for the Tally events service."""

from typing import Any


class TallyEventsError(Exception):
    """Base exception for the events service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            error_code: Machine-readable error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class EventValidationError(TallyEventsError):
    """Raised when a submitted event batch is malformed (400)."""

    def __init__(
        self,
        message: str = "Invalid request body",
        reason: str = "structure",
        error_code: str = "VALIDATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize EventValidationError.

        Args:
            message: Error message
            reason: "structure" for envelope problems, "type" for field problems
            error_code: Machine-readable error code
            details: Additional error details
        """
        error_details = details or {}
        error_details["reason"] = reason
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=error_details,
        )
        self.reason = reason


class MethodNotAllowedError(TallyEventsError):
    """Raised for unsupported HTTP methods on an endpoint (405)."""

    def __init__(
        self,
        message: str = "Method Not Allowed",
        allowed: tuple[str, ...] = ("POST", "OPTIONS"),
    ) -> None:
        super().__init__(
            message=message,
            status_code=405,
            error_code="METHOD_NOT_ALLOWED",
            details={"allowed_methods": list(allowed)},
        )
        self.allowed = allowed


class RequestTooLargeError(TallyEventsError):
    """Raised when request payload exceeds size limit (413)."""

    def __init__(
        self,
        message: str = "Request payload too large",
        max_size: str = "64KB",
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize RequestTooLargeError.

        Args:
            message: Error message
            max_size: Maximum allowed size
            details: Additional error details
        """
        error_details = details or {}
        error_details["max_size"] = max_size
        super().__init__(
            message=message,
            status_code=413,
            error_code="PAYLOAD_TOO_LARGE",
            details=error_details,
        )


class ConfigurationError(TallyEventsError):
    """Raised when required configuration is missing at construction time."""

    def __init__(self, missing: list[str], message: str | None = None) -> None:
        """
        Initialize ConfigurationError.

        Args:
            missing: Names of the settings or environment variables not set
            message: Override for the default "Missing required ..." message
        """
        if message is None:
            plural = "variables" if len(missing) > 1 else "variable"
            message = f"Missing required environment {plural}: {', '.join(missing)}"
        super().__init__(
            message=message,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            details={"missing": list(missing)},
        )
        self.missing = list(missing)


class AdmissionIndeterminateError(TallyEventsError):
    """Raised when a project's activity status could not be resolved."""

    def __init__(self, project_id: str, cause: BaseException | None = None) -> None:
        details: dict[str, Any] = {"project_id": project_id}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(
            message=f"Could not resolve activity status for project {project_id}",
            status_code=503,
            error_code="ADMISSION_INDETERMINATE",
            details=details,
        )
        self.project_id = project_id


class DeliveryError(TallyEventsError):
    """Base class for warehouse delivery failures."""


class TransientDeliveryError(DeliveryError):
    """Raised for retryable warehouse failures (5xx or transport errors)."""

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        error_details = details or {}
        if upstream_status is not None:
            error_details["upstream_status"] = upstream_status
        super().__init__(
            message=message,
            status_code=503,
            error_code="WAREHOUSE_UNAVAILABLE",
            details=error_details,
        )
        self.upstream_status = upstream_status


class FatalDeliveryError(DeliveryError):
    """Raised when delivery is rejected or retries are exhausted."""

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        attempts: int = 1,
        details: dict[str, Any] | None = None,
    ) -> None:
        error_details = details or {}
        error_details["attempts"] = attempts
        if upstream_status is not None:
            error_details["upstream_status"] = upstream_status
        super().__init__(
            message=message,
            status_code=502,
            error_code="WAREHOUSE_REJECTED",
            details=error_details,
        )
        self.upstream_status = upstream_status
        self.attempts = attempts
