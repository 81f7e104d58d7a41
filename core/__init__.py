"""
Core module for the Uniform Order Portal.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- api_client: HTTP client for the upstream uniform API
"""

from .exceptions import (
    UniformPortalError,
    UpstreamUnavailableError,
    UpstreamResponseError,
    NotAuthenticatedError,
    LimitsNotReadyError,
    OrderError,
    DuplicateSubmissionError,
    OrderNotFoundError,
    OrderNotEligibleError,
    ReceiptValidationError,
)
from .api_client import UniformAPIClient

__all__ = [
    "UniformPortalError",
    "UpstreamUnavailableError",
    "UpstreamResponseError",
    "NotAuthenticatedError",
    "LimitsNotReadyError",
    "OrderError",
    "DuplicateSubmissionError",
    "OrderNotFoundError",
    "OrderNotEligibleError",
    "ReceiptValidationError",
    "UniformAPIClient",
]
