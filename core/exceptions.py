"""
Custom exceptions for the Uniform Order Portal.

Exception Hierarchy:
    UniformPortalError (base)
    ├── UpstreamUnavailableError - Upstream API unreachable (network, timeout)
    ├── UpstreamResponseError    - Upstream answered with an error / success=false
    ├── NotAuthenticatedError    - No student in the session
    ├── LimitsNotReadyError      - No confirmed limit snapshot yet
    ├── OrderError               - Order mutation failed (runtime, graceful)
    │   ├── DuplicateSubmissionError - Same order already has a request in flight
    │   ├── OrderNotFoundError       - Order id not among the student's orders
    │   └── OrderNotEligibleError    - Evaluator rejected the requested quantity
    └── ReceiptValidationError   - QR receipt payload cannot be built

Usage:
    Routes catch UniformPortalError subclasses and render them as inline
    JSON errors. Nothing in this package retries automatically.
"""

from typing import Optional, Dict, Any, Iterable


class UniformPortalError(Exception):
    """
    Base exception for all portal errors.

    Callers can catch every application-specific error with a single
    except clause.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class UpstreamUnavailableError(UniformPortalError):
    """
    The upstream uniform API could not be reached.

    Typical causes:
    - API server down or restarting
    - Network connectivity issues
    - Request timed out
    """

    status_code = 503

    def __init__(self, endpoint: str, reason: str = ""):
        message = f"Uniform API unavailable ({endpoint})"
        if reason:
            message = f"{message}: {reason}"
        details = {
            "endpoint": endpoint,
            "resolution": "Wait for the next refresh or reload the page"
        }
        super().__init__(message, details)
        self.endpoint = endpoint


class UpstreamResponseError(UniformPortalError):
    """
    The upstream API answered but reported a failure.

    ``body`` keeps the decoded response so callers can still read fields
    that arrive on error responses (the limits endpoint does this on 400).
    """

    status_code = 502

    def __init__(
        self,
        endpoint: str,
        http_status: int,
        message: str = "",
        body: Optional[Dict[str, Any]] = None
    ):
        text = message or f"Uniform API returned HTTP {http_status}"
        details = {"endpoint": endpoint, "http_status": http_status}
        super().__init__(text, details)
        self.endpoint = endpoint
        self.http_status = http_status
        self.body = body or {}


# =============================================================================
# SESSION / SNAPSHOT ERRORS
# =============================================================================

class NotAuthenticatedError(UniformPortalError):
    """No student is signed in for this session."""

    status_code = 401

    def __init__(self, message: str = "Please sign in to continue"):
        super().__init__(message)


class LimitsNotReadyError(UniformPortalError):
    """
    The student's limit snapshot has never been fetched successfully.

    Raised only where a confirmed snapshot is mandatory (checkout).
    Read paths use the fail-closed placeholder instead.
    """

    status_code = 503

    def __init__(self, student_id: str):
        message = "Order limits are still loading. Please try again shortly."
        details = {
            "student_id": student_id,
            "resolution": "Wait for the limits refresh to complete"
        }
        super().__init__(message, details)
        self.student_id = student_id


# =============================================================================
# ORDER ERRORS
# =============================================================================

class OrderError(UniformPortalError):
    """Base class for failed order mutations (checkout, cancel, convert)."""

    status_code = 400

    def __init__(
        self,
        message: str,
        order_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if order_id:
            error_details["order_id"] = order_id
        super().__init__(message, error_details)
        self.order_id = order_id


class DuplicateSubmissionError(OrderError):
    """An action for this order id is already in flight."""

    status_code = 409

    def __init__(self, order_id: str, action: str):
        super().__init__(
            f"A {action} request for this order is already in progress",
            order_id,
            {"action": action},
        )
        self.action = action


class OrderNotFoundError(OrderError):
    """The order id is not among the student's orders."""

    status_code = 404

    def __init__(self, order_id: str):
        super().__init__("Order not found", order_id)


class OrderNotEligibleError(OrderError):
    """
    The evaluator does not allow the requested quantity.

    ``reasons`` are the evaluator's disabled reasons (string values).
    """

    def __init__(
        self,
        item_name: str,
        requested: int,
        allowed: int,
        reasons: Iterable[str] = ()
    ):
        reasons = sorted(reasons)
        if allowed <= 0:
            message = f"{item_name} cannot be ordered right now"
        else:
            message = f"Only {allowed} more {item_name} can be ordered (requested {requested})"
        super().__init__(
            message,
            details={
                "item_name": item_name,
                "requested": requested,
                "allowed": allowed,
                "reasons": reasons,
            },
        )
        self.item_name = item_name
        self.requested = requested
        self.allowed = allowed
        self.reasons = reasons


# =============================================================================
# RECEIPT ERRORS
# =============================================================================

class ReceiptValidationError(UniformPortalError):
    """The order cannot be turned into a QR receipt payload."""

    status_code = 422
