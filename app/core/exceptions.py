"""
Application Exceptions

Every expected failure of a core operation is raised as a ContestHubError
subclass. The exception handlers in app.main turn them into the standard
error envelope using http_status and code.
"""
from typing import Any, Dict, Optional


class ContestHubError(Exception):
    """Base class for all domain errors"""

    http_status: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, *, extra: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(ContestHubError):
    """Missing or malformed input"""
    http_status = 400
    code = "validation_error"
    default_message = "Invalid request data"


class AuthenticationError(ContestHubError):
    """Missing or invalid credential"""
    http_status = 401
    code = "authentication_required"
    default_message = "Authentication required"


class AuthorizationError(ContestHubError):
    """Authenticated, but the role or ownership is insufficient"""
    http_status = 403
    code = "forbidden"
    default_message = "Forbidden access"


class NotFoundError(ContestHubError):
    """No matching entity"""
    http_status = 404
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(ContestHubError):
    """A conditional write matched nothing because the state already changed"""
    http_status = 409
    code = "conflict"
    default_message = "Resource was already updated"


class DuplicateSubmissionError(ConflictError):
    code = "duplicate_submission"
    default_message = "Already submitted"


class PaymentIncompleteError(ContestHubError):
    """Checkout session exists but is not paid"""
    http_status = 400
    code = "payment_incomplete"
    default_message = "Payment not completed"


class GatewayError(ContestHubError):
    """The payment provider call failed"""
    http_status = 502
    code = "gateway_error"
    default_message = "Payment gateway request failed"


class StoreError(ContestHubError):
    """Underlying persistence failure"""
    http_status = 500
    code = "store_error"
    default_message = "Database operation failed"


class StoreTimeoutError(StoreError):
    http_status = 504
    code = "store_timeout"
    default_message = "Database operation timed out"
