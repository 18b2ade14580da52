"""Exception taxonomy shared by the engine, the data providers and the CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional


class ValuationAppError(Exception):
    """Base exception carrying a user-facing message plus structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTickerError(ValuationAppError):
    """The ticker input is empty after normalization."""


class NotFoundError(ValuationAppError):
    """The provider has no profile for the ticker."""


class UpstreamFailure(ValuationAppError):
    """A required market-data query did not succeed."""


class InsufficientDataError(ValuationAppError):
    """Current EPS is zero or absent, so no projection can be made."""


class DegenerateValuationError(ValuationAppError):
    """The valuation math has no finite answer for the given assumptions."""


class NarrativeError(ValuationAppError):
    """The narrative generator failed or returned nothing."""


def describe_error(exc: BaseException) -> Dict[str, Any]:
    """Flatten an exception into a JSON-friendly payload."""
    if isinstance(exc, ValuationAppError):
        return {"type": exc.__class__.__name__, "message": exc.message, "details": exc.details}
    return {"type": exc.__class__.__name__, "message": str(exc), "details": {}}
