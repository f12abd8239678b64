"""
Error taxonomy for the cost resolution engine.

- StructuralError: malformed template or snapshot (fatal)
- PricingLookupError: price lookup failed (recovered per resource)
- ConfigurationError: invalid configuration (fatal, raised at load time)
- CredentialError: pricing credentials missing or rejected
"""
from __future__ import annotations

from typing import List, Optional


class CostDeltaError(Exception):
    """Base class for all costdelta errors."""


class StructuralError(CostDeltaError):
    """A template snapshot is missing required structure."""


class PricingLookupError(CostDeltaError):
    """Raised when a price cannot be fetched from the pricing source."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.retry_after = retry_after


class RateLimitedError(PricingLookupError):
    """The pricing source throttled the request."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, retryable=True, retry_after=retry_after)


class CredentialError(PricingLookupError):
    """Pricing credentials are missing, expired or not authorized."""

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class ConfigurationError(CostDeltaError):
    """Configuration failed to load or validate."""

    def __init__(
        self,
        message: str,
        config_path: str = "unknown",
        validation_errors: Optional[List[str]] = None,
    ):
        self.config_path = config_path
        self.validation_errors = list(validation_errors or [])
        detail = message
        if self.validation_errors:
            detail = f"{message}: " + "; ".join(self.validation_errors)
        super().__init__(detail)
