"""Structured exception taxonomy for consistent error handling.

This module defines the closed set of errors that the API boundary knows how
to turn into HTTP responses. Components below the middleware chain raise these
(or arbitrary exceptions, which are normalized to ``InternalError``) and let
them propagate; only the error-mapping stage converts them into responses.

Key components:
- **ErrorCategory enum**: Who is at fault (client, server, dependency)
- **ErrorCode enum**: Stable machine-readable codes returned to clients
- **ServiceError**: Base exception carrying status, code, message and details
- **Concrete variants**: One class per supported HTTP error

Features:
- **Error fingerprinting**: Automatic grouping of similar errors in logs
- **Exception chaining**: Preserves the original cause for debugging
- **Structured details**: Optional JSON-serializable payload for clients
"""

import hashlib
import traceback
from enum import Enum
from typing import Any, ClassVar

from flowctx.core.constants import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    REDACTED_INTERNAL_MESSAGE,
)


class ErrorCategory(Enum):
    """Fault categories of the taxonomy."""

    CLIENT_FAULT = "client-fault"
    """The request was wrong: malformed, unauthorized, conflicting..."""

    SERVER_FAULT = "server-fault"
    """An internal defect of this service."""

    DEPENDENCY_FAULT = "dependency-fault"
    """A service this one depends on failed or is unreachable."""


class ErrorCode(Enum):
    """Machine-readable error codes returned in error bodies."""

    BAD_REQUEST = "bad-request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not-found"
    CONFLICT = "conflict"
    UNPROCESSABLE_ENTITY = "unprocessable-entity"
    INTERNAL_ERROR = "internal-error"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"


class ServiceError(Exception):
    """Base exception class for all errors the API boundary can map.

    Subclasses fix the HTTP status, category and default code; instances
    carry the message and optional details.

    Args:
        message: Human-readable error message
        code: Error code overriding the class default (string or ErrorCode)
        details: Structured details returned to the client
        cause: The original exception that caused this error
    """

    status_code: ClassVar[int] = 500
    category: ClassVar[ErrorCategory] = ErrorCategory.SERVER_FAULT
    default_code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: str | ErrorCode | None = None,
        details: Any = None,  # noqa: ANN401 - any JSON-serializable payload
        cause: Exception | None = None,
    ) -> None:
        if code is None:
            code = self.default_code
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Returns:
            str: A hash of the error type, code and raising location.
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "flowctx" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_client_fault(self) -> bool:
        """Return True when the caller is responsible for the error."""
        return self.category is ErrorCategory.CLIENT_FAULT

    @property
    def should_alert(self) -> bool:
        """Return True for server and dependency faults."""
        return not self.is_client_fault

    def to_body(self) -> dict[str, Any]:
        """Build the client-facing error body.

        Server and dependency faults answer with a fixed message and no
        details; their own message and details only go to the log.

        Returns:
            dict[str, Any]: ``code`` and ``message``, plus ``details`` when set
                on a client fault.
        """
        if not self.is_client_fault:
            return {"code": self.code, "message": REDACTED_INTERNAL_MESSAGE}
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        details_str = f", details={self.details!r}" if self.details else ""
        return (
            f"{self.__class__.__name__}(code='{self.code}', "
            f"message='{self.message}', status_code={self.status_code}{details_str})"
        )


class BadRequestError(ServiceError):
    """Malformed input that cannot be interpreted."""

    status_code = 400
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.BAD_REQUEST


class UnauthorizedError(ServiceError):
    """Missing or invalid credentials."""

    status_code = 401
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.UNAUTHORIZED


class ForbiddenError(ServiceError):
    """Authenticated caller lacking permission for the action."""

    status_code = 403
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.FORBIDDEN


class NotFoundError(ServiceError):
    """The requested resource does not exist."""

    status_code = 404
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.NOT_FOUND


class ConflictError(ServiceError):
    """The request conflicts with the current state of the resource."""

    status_code = 409
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.CONFLICT


class UnprocessableEntityError(ServiceError):
    """Well-formed payload that fails validation.

    Validation collaborators put their failure list in ``details``.
    """

    status_code = 422
    category = ErrorCategory.CLIENT_FAULT
    default_code = ErrorCode.UNPROCESSABLE_ENTITY


class InternalError(ServiceError):
    """Internal defect of this service."""

    status_code = 500
    category = ErrorCategory.SERVER_FAULT
    default_code = ErrorCode.INTERNAL_ERROR


class UpstreamUnavailableError(ServiceError):
    """A dependency failed or could not be reached."""

    status_code = 503
    category = ErrorCategory.DEPENDENCY_FAULT
    default_code = ErrorCode.UPSTREAM_UNAVAILABLE


_ERRORS_BY_STATUS: dict[int, type[ServiceError]] = {
    cls.status_code: cls
    for cls in (
        BadRequestError,
        UnauthorizedError,
        ForbiddenError,
        NotFoundError,
        ConflictError,
        UnprocessableEntityError,
        InternalError,
        UpstreamUnavailableError,
    )
}


def error_for_status(
    status_code: int,
    message: str,
    details: Any = None,  # noqa: ANN401 - any JSON-serializable payload
    cause: Exception | None = None,
) -> ServiceError:
    """Build the taxonomy error closest to an HTTP status.

    Unknown 4xx statuses map to ``BadRequestError``, anything else unknown
    to ``InternalError``.

    Args:
        status_code: HTTP status reported by a framework or dependency.
        message: Error message.
        details: Optional structured details.
        cause: Original exception.

    Returns:
        ServiceError: The matching taxonomy error.
    """
    error_cls = _ERRORS_BY_STATUS.get(status_code)
    if error_cls is None:
        if HTTP_400_BAD_REQUEST <= status_code < HTTP_500_INTERNAL_SERVER_ERROR:
            error_cls = BadRequestError
        else:
            error_cls = InternalError
    return error_cls(message, details=details, cause=cause)
