"""
Request handling for beta calculations.

Turns a raw JSON-like payload into a ``(status, body)`` pair. Any HTTP
framework can mount ``handle_beta_request`` behind a POST route.
"""

from typing import Any, Dict, Mapping, Tuple

import structlog

from peerbeta.exceptions import InternalError, PeerBetaError, ValidationError
from peerbeta.models import DEFAULT_PERIOD, BetaRequest
from peerbeta.orchestrator import BetaOrchestrator

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def error_response(error: Exception) -> Tuple[int, Dict[str, Any]]:
    """
    Map an exception to a status code and a caller-safe body.

    Validation errors carry the offending field path. Unknown exceptions
    become a generic 500 without any internal detail.
    """
    if isinstance(error, ValidationError):
        return error.status_code, {"message": error.message, "field": error.field or ""}
    if isinstance(error, InternalError) or not isinstance(error, PeerBetaError):
        return 500, {"message": GENERIC_ERROR_MESSAGE}
    return error.status_code, {"message": error.message}


async def handle_beta_request(
    payload: Mapping[str, Any],
    orchestrator: BetaOrchestrator,
    default_period: str = DEFAULT_PERIOD,
) -> Tuple[int, Dict[str, Any]]:
    """
    Validate ``payload``, run the calculation and build the response.

    ``default_period`` applies to payloads without a period.

    Returns:
        ``(200, report)`` on success, otherwise ``(status, {"message", ...})``
    """
    try:
        request = BetaRequest.from_dict(payload, default_period=default_period)
    except ValidationError as e:
        logger.info("beta_request_invalid", field=e.field, error=e.message)
        return error_response(e)

    try:
        report = await orchestrator.calculate(request)
    except PeerBetaError as e:
        logger.warning(
            "beta_request_failed",
            ticker=request.ticker,
            error_type=type(e).__name__,
            error=str(e),
        )
        return error_response(e)
    except Exception as e:
        logger.exception("beta_request_internal_error", ticker=request.ticker)
        return error_response(InternalError("Unexpected failure", cause=e))

    return 200, report.to_response()
