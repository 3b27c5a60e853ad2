"""Centralized error classes and response helpers."""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


class ResusCertError(Exception):
    """
    Base error for the engine.

    Carries a stable ``error_code`` so bulk operations and the HTTP layer can
    report failures without string matching on messages.
    """

    default_code = "RESUSCERT_ERROR"
    http_status = 500

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(ResusCertError):
    """Raised for input outside the documented contract (e.g. a zero total)."""
    default_code = "INVALID_INPUT"
    http_status = 400


class InvalidTransitionError(InvalidInputError):
    """Raised when a certificate is not in a state the requested verb accepts."""
    default_code = "INVALID_TRANSITION"

    def __init__(self, certificate_id: str, action: str, current_status: str):
        self.certificate_id = certificate_id
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} certificate {certificate_id} while it is {current_status}",
            details={"certificate_id": certificate_id, "action": action, "status": current_status},
        )


class NotFoundError(ResusCertError):
    """Raised when a participant or certificate id is unknown."""
    default_code = "NOT_FOUND"
    http_status = 404

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}", details={"kind": kind, "id": identifier})


class ConcurrentOperationError(ResusCertError):
    """
    Raised when a transition is requested for a certificate that already has
    one in flight. The caller should retry once the first call completes.
    """
    default_code = "CONCURRENT_OPERATION"
    http_status = 409

    def __init__(self, certificate_id: str):
        self.certificate_id = certificate_id
        super().__init__(
            f"Another operation is already in progress for certificate {certificate_id}",
            details={"certificate_id": certificate_id},
        )


class UpstreamUnavailableError(ResusCertError):
    """Raised when the record/persistence collaborator fails or times out."""
    default_code = "UPSTREAM_UNAVAILABLE"
    http_status = 503

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Record store unavailable during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
        )


def error_response(exc: ResusCertError) -> JSONResponse:
    """Create a standardized JSON error response for an engine error."""
    body = exc.to_dict()
    body["code"] = exc.http_status
    if isinstance(exc, ConcurrentOperationError):
        body["hints"] = ["Retry after the in-flight operation completes"]
    elif isinstance(exc, UpstreamUnavailableError):
        body["hints"] = ["The record store did not respond; try again shortly"]
    return JSONResponse(status_code=exc.http_status, content=body)
