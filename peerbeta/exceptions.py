"""
Custom exception hierarchy for the beta calculation service.

Upstream and per-peer failures are converted at the component boundary
where they occur; only conditions that are fatal for the target ticker
travel up to the request handler, which maps them to a status code.

Exception Hierarchy:
    PeerBetaError (base)
    ├── ValidationError
    ├── DataError
    │   ├── UpstreamUnavailableError
    │   │   └── BenchmarkUnavailableError
    │   ├── DataParsingError
    │   └── InsufficientDataError
    ├── StorageError
    ├── ConfigurationError
    └── InternalError
"""

from typing import Any, Optional, Dict


class PeerBetaError(Exception):
    """
    Base exception for all beta service errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (ticker, source, etc.)
        cause: Original exception if this wraps another error
        status_code: HTTP-equivalent status used by the request handler
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with details."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} [{detail_str}]"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {self.cause})"
        return msg


class ValidationError(PeerBetaError):
    """
    Raised when a beta request is malformed or missing fields.

    Examples:
        - Empty ticker
        - Exchange outside NSE/BSE
        - Unparseable ISO-8601 date
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        self.field = field
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Data-Related Exceptions
# =============================================================================

class DataError(PeerBetaError):
    """Base exception for all data-related errors."""
    pass


class UpstreamUnavailableError(DataError):
    """
    Raised when a data-provider call failed or returned nothing usable.

    Examples:
        - No price history for the ticker on either exchange
        - Network failure talking to the provider
    """

    status_code = 404

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        ticker: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source
        if ticker:
            details["ticker"] = ticker
        super().__init__(message, details=details, **kwargs)


class BenchmarkUnavailableError(UpstreamUnavailableError):
    """Raised when the benchmark index history cannot be fetched."""

    status_code = 502


class DataParsingError(DataError):
    """
    Raised when a provider response does not have the expected shape.

    Examples:
        - History frame without a Close column
        - Recommendation payload missing its result list
    """

    def __init__(
        self,
        message: str,
        raw_data: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if raw_data:
            # Truncate raw data to prevent huge error messages
            details["raw_data"] = raw_data[:200] + "..." if len(raw_data) > 200 else raw_data
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(message, details=details, **kwargs)


class InsufficientDataError(DataError):
    """
    Raised when there is not enough data to compute regression statistics.

    Examples:
        - Fewer than two dates shared by the stock and the benchmark
        - Benchmark price constant over the whole window
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        ticker: Optional[str] = None,
        data_points: Optional[int] = None,
        required: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if ticker:
            details["ticker"] = ticker
        if data_points is not None:
            details["data_points"] = data_points
        if required is not None:
            details["required"] = required
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# Infrastructure Exceptions
# =============================================================================

class StorageError(PeerBetaError):
    """Raised when the search history database cannot be read or written."""
    pass


class ConfigurationError(PeerBetaError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Industry table without a ticker column
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, **kwargs)


class InternalError(PeerBetaError):
    """Wraps any unexpected failure before it reaches the caller."""

    status_code = 500
