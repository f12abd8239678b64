"""
AWS Price List source.

Uses boto3 to query the official AWS Price List API. Errors are translated
into the pricing error taxonomy so the client can decide what to retry:

- throttling           -> RateLimitedError (retryable, honors Retry-After)
- HTTP 5xx             -> PricingLookupError(retryable=True)
- auth / no credentials -> CredentialError
- anything else        -> PricingLookupError(retryable=False)
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from costdelta.core.errors import CredentialError, PricingLookupError, RateLimitedError

log = logging.getLogger(__name__)

THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "RateExceeded",
}

CREDENTIAL_CODES = {
    "AccessDeniedException",
    "AccessDenied",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
    "SignatureDoesNotMatch",
}


@dataclass(frozen=True)
class PriceFilter:
    field: str
    value: str
    type: str = "TERM_MATCH"


@dataclass(frozen=True)
class PriceQuery:
    """A unit-price query: service, region code and attribute filters."""

    service_code: str
    region: str
    filters: Tuple[PriceFilter, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))

    @classmethod
    def build(cls, service_code: str, region: str, filters: Mapping[str, str]) -> "PriceQuery":
        return cls(
            service_code=service_code,
            region=region,
            filters=tuple(PriceFilter(k, str(v)) for k, v in filters.items()),
        )


class PriceSource(Protocol):
    """Anything that can resolve a query to a single unit price."""

    def fetch(self, query: PriceQuery, location: str) -> Optional[Decimal]:
        """
        Return the unit price, or None when no product matches.

        Raises:
            PricingLookupError: On transport or API errors.
        """
        ...


def parse_price_list(price_list: Iterable[Any]) -> Optional[Decimal]:
    """
    Extract the On-Demand USD unit price from a GetProducts PriceList.

    Tiered products list several price dimensions; the first non-zero
    one is used (free-tier dimensions are priced at 0).
    """
    items = list(price_list or [])
    if not items:
        return None

    try:
        product = json.loads(items[0]) if isinstance(items[0], str) else items[0]
        on_demand = product.get("terms", {}).get("OnDemand", {})
        prices: List[Decimal] = []
        for term in on_demand.values():
            for dimension in term.get("priceDimensions", {}).values():
                usd = dimension.get("pricePerUnit", {}).get("USD")
                if usd is not None:
                    prices.append(Decimal(str(usd)))
    except (ValueError, AttributeError, InvalidOperation) as e:
        raise PricingLookupError(f"Failed to parse AWS pricing response: {e}") from e

    if not prices:
        return None
    return next((p for p in prices if p > 0), prices[0])


def _retry_after(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("retry-after") or headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def translate_client_error(error: ClientError) -> PricingLookupError:
    err = error.response.get("Error", {})
    code = err.get("Code", "")
    meta = error.response.get("ResponseMetadata", {})
    status = int(meta.get("HTTPStatusCode") or 0)
    message = f"AWS pricing API error ({code or status}): {err.get('Message', error)}"

    if code in THROTTLING_CODES or status == 429:
        return RateLimitedError(message, retry_after=_retry_after(meta.get("HTTPHeaders", {})))
    if code in CREDENTIAL_CODES or status in (401, 403):
        return CredentialError(
            f"{message}. Check that the credentials in use are valid and allow pricing:GetProducts."
        )
    if status >= 500:
        return PricingLookupError(message, retryable=True)
    return PricingLookupError(message)


class AwsPriceListSource:
    """
    Price source backed by ``boto3.client("pricing")``.

    The Price List API is served from a few endpoints only (us-east-1,
    eu-central-1, ap-south-1); ``api_region`` selects the endpoint, not the
    region being priced.
    """

    def __init__(
        self,
        session: Optional[boto3.Session] = None,
        api_region: str = "us-east-1",
        connect_timeout: int = 10,
        read_timeout: int = 10,
    ):
        self._session = session or boto3.Session()
        self._api_region = api_region
        self._config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 0},  # PricingClient owns retries
        )
        self._client = None
        self._client_lock = threading.Lock()

    def check_credentials(self) -> None:
        """
        Raises:
            CredentialError: If boto3 cannot resolve any credentials.
        """
        if self._session.get_credentials() is None:
            raise CredentialError(
                "No AWS credentials found for the Price List API. Configure an AWS profile, "
                "AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, or a role with pricing:GetProducts."
            )

    def _pricing(self):
        # boto3 sessions are not thread-safe; create the client once
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._session.client(
                        "pricing", region_name=self._api_region, config=self._config
                    )
        return self._client

    def fetch(self, query: PriceQuery, location: str) -> Optional[Decimal]:
        filters: List[Dict[str, str]] = [
            {"Type": f.type, "Field": f.field, "Value": f.value} for f in query.filters
        ]
        if location and not any(f.field == "location" for f in query.filters):
            filters.append({"Type": "TERM_MATCH", "Field": "location", "Value": location})

        try:
            response = self._pricing().get_products(
                ServiceCode=query.service_code,
                Filters=filters,
                MaxResults=1,
            )
        except ClientError as e:
            raise translate_client_error(e) from e
        except NoCredentialsError as e:
            raise CredentialError(f"No AWS credentials available: {e}") from e
        except BotoCoreError as e:
            raise PricingLookupError(f"AWS pricing request failed: {e}") from e

        price = parse_price_list(response.get("PriceList", []))
        log.debug("Price List %s %s -> %s", query.service_code, location, price)
        return price
