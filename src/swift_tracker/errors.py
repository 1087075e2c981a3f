"""Exception hierarchy for order analysis."""

from __future__ import annotations


class SwiftTrackerError(Exception):
    """Base class for all analysis errors."""


class NotFoundError(SwiftTrackerError):
    """Raised when a transaction, receipt or order is absent at the requested commitment."""

    def __init__(self, message: str, reference: str | None = None):
        super().__init__(message)
        self.reference = reference


class DecodeFailure(SwiftTrackerError):
    """Raised when an instruction or log does not have the expected shape."""


class UnsupportedChainError(SwiftTrackerError):
    """Raised when a chain code or chain id is missing from the chain mapping."""


class UnsupportedOperationError(SwiftTrackerError):
    """Raised when a decoder is asked for an analysis its chain family cannot provide."""


class MetadataLookupError(SwiftTrackerError):
    """Raised when a token symbol or decimals call fails."""


class InvalidOrderIdError(SwiftTrackerError):
    """Raised when an order identifier does not match the SWIFT id format."""


class OrderApiError(SwiftTrackerError):
    """Raised when the order API returns an error or an unusable payload.

    Attributes:
        retry_recommended: Whether the failure looks transient.
    """

    def __init__(self, message: str, retry_recommended: bool = False):
        super().__init__(message)
        self.retry_recommended = retry_recommended
