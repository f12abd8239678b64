"""
Cost calculator base class and shared helpers.

A calculator turns one resource snapshot into a MonthlyCost using unit
prices from the pricing client. Pricing failures never escape a
calculator: they become an ``unknown`` estimate whose assumptions carry
the cause.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from costdelta.core.errors import PricingLookupError
from costdelta.core.schema import MonthlyCost, ResourceSnapshot, TemplateSnapshot
from costdelta.pricing.client import PricingClient
from costdelta.pricing.source import PriceQuery

log = logging.getLogger(__name__)

# Average hours per month
HOURS_PER_MONTH = Decimal("730")
MILLION = Decimal("1000000")


def usd(amount: Decimal, places: int = 2) -> str:
    return f"${amount:,.{places}f}"


def count(value: Any) -> str:
    """Thousands-separated number for assumption text."""
    number = Decimal(value)
    if number == number.to_integral_value():
        return f"{int(number):,}"
    return f"{number.normalize():,f}"


def number_property(properties: Mapping[str, Any], name: str, default: Any) -> Decimal:
    """
    Numeric template property, or ``default`` when absent or unresolved.

    Templates may carry numbers as strings, or as intrinsic functions
    (``{"Ref": ...}``) that cannot be evaluated statically.
    """
    value = properties.get(name)
    if value is None or isinstance(value, (dict, list, bool)):
        return Decimal(default)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal(default)


def string_property(properties: Mapping[str, Any], name: str) -> Optional[str]:
    value = properties.get(name)
    return value if isinstance(value, str) and value else None


def bool_property(properties: Mapping[str, Any], name: str) -> bool:
    value = properties.get(name)
    if isinstance(value, str):
        return value.lower() == "true"
    return value is True


class CostCalculator(ABC):
    """
    Pricing strategy for one or more CloudFormation resource types.

    Subclasses declare the types they claim in ``resource_types`` and
    implement ``estimate``. Calculators that need sibling resources
    override ``estimate_in_template`` instead.
    """

    resource_types: ClassVar[Tuple[str, ...]] = ()

    def supports(self, resource_type: str) -> bool:
        return resource_type in self.resource_types

    def calculate(
        self,
        resource: ResourceSnapshot,
        region: str,
        pricing: PricingClient,
        template: Optional[TemplateSnapshot] = None,
    ) -> MonthlyCost:
        try:
            cost = self.estimate_in_template(resource, region, pricing, template)
        except PricingLookupError as e:
            log.debug("Pricing lookup failed for %s: %s", resource.logical_id, e)
            return MonthlyCost.unknown(f"Failed to fetch pricing: {e}")
        log.debug(
            "%s %s -> %s (%s)",
            resource.resource_type, resource.logical_id, cost.amount, cost.confidence.value,
        )
        return cost

    @abstractmethod
    def estimate(
        self,
        resource: ResourceSnapshot,
        region: str,
        pricing: PricingClient,
    ) -> MonthlyCost:
        """
        Estimate the monthly cost of a resource.

        Raises:
            PricingLookupError: Propagated from the pricing client.
        """
        raise NotImplementedError

    def estimate_in_template(
        self,
        resource: ResourceSnapshot,
        region: str,
        pricing: PricingClient,
        template: Optional[TemplateSnapshot],
    ) -> MonthlyCost:
        return self.estimate(resource, region, pricing)

    @staticmethod
    def lookup(
        pricing: PricingClient,
        service_code: str,
        region: str,
        filters: Dict[str, str],
    ) -> Optional[Decimal]:
        return pricing.get_price(PriceQuery.build(service_code, region, filters))

    @staticmethod
    def not_available(subject: str, region: str, *extra: str) -> MonthlyCost:
        return MonthlyCost.unknown(
            f"Pricing data not available for {subject} in region {region}", *extra
        )
