"""
AWS region code mappings for the Price List API.

The Price List API filters on human-readable location names, not region
codes, and usage types carry a billing-code prefix (``USE1-...``). These
strings are part of cache keys and must stay stable.
"""
from __future__ import annotations

import logging
from typing import Dict, List

log = logging.getLogger(__name__)

# Based on AWS Price List API location values
AWS_REGION_TO_LOCATION: Dict[str, str] = {
    # US
    "us-east-1": "US East (N. Virginia)",
    "us-east-2": "US East (Ohio)",
    "us-west-1": "US West (N. California)",
    "us-west-2": "US West (Oregon)",

    # Europe
    "eu-west-1": "EU (Ireland)",
    "eu-west-2": "EU (London)",
    "eu-west-3": "EU (Paris)",
    "eu-central-1": "EU (Frankfurt)",
    "eu-central-2": "EU (Zurich)",
    "eu-north-1": "EU (Stockholm)",
    "eu-south-1": "EU (Milan)",
    "eu-south-2": "EU (Spain)",

    # Asia Pacific
    "ap-south-1": "Asia Pacific (Mumbai)",
    "ap-south-2": "Asia Pacific (Hyderabad)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
    "ap-southeast-2": "Asia Pacific (Sydney)",
    "ap-southeast-3": "Asia Pacific (Jakarta)",
    "ap-southeast-4": "Asia Pacific (Melbourne)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
    "ap-northeast-2": "Asia Pacific (Seoul)",
    "ap-northeast-3": "Asia Pacific (Osaka)",
    "ap-east-1": "Asia Pacific (Hong Kong)",

    # Canada
    "ca-central-1": "Canada (Central)",
    "ca-west-1": "Canada West (Calgary)",

    # South America
    "sa-east-1": "South America (Sao Paulo)",

    # Middle East & Africa
    "me-south-1": "Middle East (Bahrain)",
    "me-central-1": "Middle East (UAE)",
    "il-central-1": "Israel (Tel Aviv)",
    "af-south-1": "Africa (Cape Town)",
}

# Billing codes used as usagetype prefixes
# https://docs.aws.amazon.com/global-infrastructure/latest/regions/aws-region-billing-codes.html
AWS_REGION_TO_BILLING_PREFIX: Dict[str, str] = {
    "us-east-1": "USE1",
    "us-east-2": "USE2",
    "us-west-1": "USW1",
    "us-west-2": "USW2",
    "eu-west-1": "EU",
    "eu-west-2": "EUW2",
    "eu-west-3": "EUW3",
    "eu-central-1": "EUC1",
    "eu-central-2": "EUC2",
    "eu-north-1": "EUN1",
    "eu-south-1": "EUS1",
    "eu-south-2": "EUS2",
    "ap-south-1": "APS3",
    "ap-south-2": "APS5",
    "ap-southeast-1": "APS1",
    "ap-southeast-2": "APS2",
    "ap-southeast-3": "APS4",
    "ap-southeast-4": "APS6",
    "ap-northeast-1": "APN1",
    "ap-northeast-2": "APN2",
    "ap-northeast-3": "APN3",
    "ap-east-1": "APE1",
    "ca-central-1": "CAN1",
    "ca-west-1": "CAN2",
    "sa-east-1": "SAE1",
    "me-south-1": "MES1",
    "me-central-1": "MEC1",
    "il-central-1": "ILC1",
    "af-south-1": "AFS1",
}


def normalize_region(region: str) -> str:
    """
    Price List location name for a region code.

    Unknown codes pass through unchanged; the lookup then finds nothing
    and the estimate degrades to unknown confidence.
    """
    normalized = AWS_REGION_TO_LOCATION.get(region, region)
    log.debug("Region normalized: %s -> %s", region, normalized)
    return normalized


def get_region_prefix(region: str) -> str:
    """Usage-type billing prefix (``us-east-1`` -> ``USE1``), or "" if unknown."""
    return AWS_REGION_TO_BILLING_PREFIX.get(region, "")


def usage_type(region: str, suffix: str) -> str:
    """Compose a usagetype value, e.g. ``USE1-NatGateway-Hours``."""
    prefix = get_region_prefix(region)
    return f"{prefix}-{suffix}" if prefix else suffix


def get_all_regions() -> List[str]:
    return list(AWS_REGION_TO_LOCATION.keys())
