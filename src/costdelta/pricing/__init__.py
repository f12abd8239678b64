"""
Pricing - unit price lookups, cost calculators and the resource cost resolver.
"""
from costdelta.pricing.client import PricingClient
from costdelta.pricing.regions import get_region_prefix, normalize_region
from costdelta.pricing.resolver import ResourceCostResolver
from costdelta.pricing.source import AwsPriceListSource, PriceFilter, PriceQuery, PriceSource

__all__ = [
    "AwsPriceListSource",
    "PriceFilter",
    "PriceQuery",
    "PriceSource",
    "PricingClient",
    "ResourceCostResolver",
    "get_region_prefix",
    "normalize_region",
]
