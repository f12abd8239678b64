"""
Network calculators: NAT gateways, load balancers, VPC endpoints,
CloudFront distributions and API Gateway APIs.
"""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple

from costdelta.core.config import (
    ApiGatewayUsage,
    CloudFrontUsage,
    DataProcessingUsage,
    LoadBalancerUsage,
)
from costdelta.core.schema import Confidence, MonthlyCost, ResourceSnapshot
from costdelta.pricing.calculators.base import (
    HOURS_PER_MONTH,
    MILLION,
    CostCalculator,
    count,
    string_property,
    usd,
)
from costdelta.pricing.client import PricingClient
from costdelta.pricing.regions import usage_type


class NatGatewayCalculator(CostCalculator):
    """Hourly charge plus per-GB data processing."""

    resource_types = ("AWS::EC2::NatGateway",)

    def __init__(self, usage: Optional[DataProcessingUsage] = None):
        self.usage = usage or DataProcessingUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        hourly = self.lookup(pricing, "AmazonEC2", region, {
            "productFamily": "NAT Gateway",
            "usagetype": usage_type(region, "NatGateway-Hours"),
        })
        per_gb = self.lookup(pricing, "AmazonEC2", region, {
            "productFamily": "NAT Gateway",
            "usagetype": usage_type(region, "NatGateway-Bytes"),
        })
        gb = self.usage.data_processed_gb
        if hourly is None or per_gb is None:
            return self.not_available(
                "NAT Gateway", region,
                f"Would assume {count(gb)} GB of data processing per month",
            )

        hourly_cost = hourly * HOURS_PER_MONTH
        data_cost = per_gb * gb
        total = hourly_cost + data_cost
        return MonthlyCost(
            amount=total,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Hourly rate: {usd(hourly, 4)}/hour x {HOURS_PER_MONTH} hours = {usd(hourly_cost)}/month",
                f"Data processing: {usd(per_gb, 4)}/GB x {count(gb)} GB = {usd(data_cost)}/month",
                f"Total: {usd(total)}/month",
            ],
        )


# Capacity-unit dimensions: (new connections/s, active connections/min) per unit.
# Processed bytes are 1 GB/hour per unit for both load balancer types.
_LCU_DIMENSIONS = {
    "application": (Decimal("25"), Decimal("3000")),
    "network": (Decimal("800"), Decimal("100000")),
}


class LoadBalancerCalculator(CostCalculator):
    """
    Application and Network Load Balancers (ELBv2).

    Both share one CloudFormation type; the ``Type`` property selects the
    pricing model (``application`` when omitted). Capacity units per hour
    are the maximum over the new-connection, active-connection and
    processed-bytes dimensions.
    """

    resource_types = ("AWS::ElasticLoadBalancingV2::LoadBalancer",)

    def __init__(
        self,
        alb_usage: Optional[LoadBalancerUsage] = None,
        nlb_usage: Optional[LoadBalancerUsage] = None,
    ):
        self.alb_usage = alb_usage or LoadBalancerUsage()
        self.nlb_usage = nlb_usage or LoadBalancerUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        lb_type = string_property(resource.properties, "Type") or "application"
        if lb_type == "application":
            return self._price("Application", "LCU", self.alb_usage, lb_type, region, pricing)
        if lb_type == "network":
            return self._price("Network", "NLCU", self.nlb_usage, lb_type, region, pricing)
        return MonthlyCost.unknown(f"Unsupported load balancer type: {lb_type}")

    @staticmethod
    def capacity_units(lb_type: str, usage: LoadBalancerUsage) -> Tuple[Decimal, Decimal, Decimal]:
        per_new, per_active = _LCU_DIMENSIONS[lb_type]
        return (
            usage.new_connections_per_second / per_new,
            usage.active_connections_per_minute / per_active,
            usage.processed_bytes_gb / HOURS_PER_MONTH,
        )

    def _price(
        self,
        family: str,
        unit: str,
        usage: LoadBalancerUsage,
        lb_type: str,
        region: str,
        pricing: PricingClient,
    ) -> MonthlyCost:
        product_family = f"Load Balancer-{family}"
        hourly = self.lookup(pricing, "AWSELB", region, {
            "productFamily": product_family,
            "usagetype": usage_type(region, "LoadBalancerUsage"),
        })
        unit_rate = self.lookup(pricing, "AWSELB", region, {
            "productFamily": product_family,
            "usagetype": usage_type(region, "LCUUsage"),
        })

        from_new, from_active, from_bytes = self.capacity_units(lb_type, usage)
        units = max(from_new, from_active, from_bytes)
        breakdown = [
            f"{unit} consumption: {units:.2f} {unit}/hour based on:",
            f"  - New connections: {count(usage.new_connections_per_second)}/sec -> {from_new:.2f} {unit}",
            f"  - Active connections: {count(usage.active_connections_per_minute)}/min -> {from_active:.2f} {unit}",
            f"  - Processed data: {count(usage.processed_bytes_gb)} GB/month -> {from_bytes:.2f} {unit}",
        ]
        if hourly is None or unit_rate is None:
            return self.not_available(f"{family} Load Balancer", region, *breakdown)

        hourly_cost = hourly * HOURS_PER_MONTH
        unit_cost = unit_rate * units * HOURS_PER_MONTH
        total = hourly_cost + unit_cost
        return MonthlyCost(
            amount=total,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"{family} Load Balancer",
                f"Hourly rate: {usd(hourly, 4)}/hour x {HOURS_PER_MONTH} hours = {usd(hourly_cost)}/month",
                *breakdown,
                f"{unit} cost: {usd(unit_rate, 4)}/{unit}/hour x {units:.2f} {unit} x "
                f"{HOURS_PER_MONTH} hours = {usd(unit_cost)}/month",
                f"Total: {usd(total)}/month",
            ],
        )


class VPCEndpointCalculator(CostCalculator):
    """Interface endpoints are hourly plus per-GB; gateway endpoints are free."""

    resource_types = ("AWS::EC2::VPCEndpoint",)

    def __init__(self, usage: Optional[DataProcessingUsage] = None):
        self.usage = usage or DataProcessingUsage()

    @staticmethod
    def is_gateway(resource: ResourceSnapshot) -> bool:
        endpoint_type = string_property(resource.properties, "VpcEndpointType")
        if endpoint_type is not None:
            return endpoint_type == "Gateway"
        service = resource.properties.get("ServiceName")
        service = service if isinstance(service, str) else ""
        return "s3" in service or "dynamodb" in service

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        if self.is_gateway(resource):
            return MonthlyCost.free(
                "Gateway VPC endpoints for S3 and DynamoDB are free",
                "No data processing charges for gateway endpoints",
            )

        hourly = self.lookup(pricing, "AmazonVPC", region, {
            "productFamily": "VpcEndpoint",
            "usagetype": usage_type(region, "VpcEndpoint-Hours"),
        })
        per_gb = self.lookup(pricing, "AmazonVPC", region, {
            "productFamily": "VpcEndpoint",
            "usagetype": usage_type(region, "VpcEndpoint-Bytes"),
        })
        if hourly is None or per_gb is None:
            return self.not_available("VPC Endpoint", region)

        gb = self.usage.data_processed_gb
        hourly_cost = hourly * HOURS_PER_MONTH
        data_cost = per_gb * gb
        total = hourly_cost + data_cost
        return MonthlyCost(
            amount=total,
            confidence=Confidence.MEDIUM,
            assumptions=[
                "Interface VPC Endpoint type",
                f"Hourly rate: {usd(hourly, 4)}/hour x {HOURS_PER_MONTH} hours = {usd(hourly_cost)}/month",
                f"Data processing: {usd(per_gb, 4)}/GB x {count(gb)} GB = {usd(data_cost)}/month",
                f"Total: {usd(total)}/month",
            ],
        )


class CloudFrontCalculator(CostCalculator):
    """Data transfer out to the internet plus HTTP/HTTPS requests (per 10,000)."""

    resource_types = ("AWS::CloudFront::Distribution",)

    def __init__(self, usage: Optional[CloudFrontUsage] = None):
        self.usage = usage or CloudFrontUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        transfer_price = self.lookup(pricing, "AmazonCloudFront", region, {
            "transferType": "CloudFront to Internet",
        })
        request_price = self.lookup(pricing, "AmazonCloudFront", region, {
            "requestType": "HTTP-Requests",
        })
        if transfer_price is None or request_price is None:
            return self.not_available("CloudFront", region)

        gb = self.usage.data_transfer_gb
        requests = Decimal(self.usage.requests)
        return MonthlyCost(
            amount=gb * transfer_price + (requests / Decimal("10000")) * request_price,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Assumes {count(gb)} GB of data transfer out to internet",
                f"Assumes {count(requests)} HTTP/HTTPS requests per month",
            ],
        )


class APIGatewayCalculator(CostCalculator):
    """
    REST (v1) and HTTP/WebSocket (v2) APIs.

    Request tiers are not modelled; the first-tier price applies to the
    whole volume.
    """

    resource_types = ("AWS::ApiGateway::RestApi", "AWS::ApiGatewayV2::Api")

    def __init__(self, usage: Optional[ApiGatewayUsage] = None):
        self.usage = usage or ApiGatewayUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        if resource.resource_type == "AWS::ApiGatewayV2::Api":
            protocol = string_property(resource.properties, "ProtocolType") or "HTTP"
        else:
            protocol = "REST"

        if protocol == "WEBSOCKET":
            return self._websocket(region, pricing)
        if protocol == "HTTP":
            return self._requests("HTTP", "ApiGatewayHttpRequest", region, pricing)
        return self._requests("REST", "ApiGatewayRequest", region, pricing)

    def _requests(self, label: str, suffix: str, region: str, pricing: PricingClient) -> MonthlyCost:
        per_million = self.lookup(pricing, "AmazonApiGateway", region, {
            "productFamily": "API Calls",
            "usagetype": usage_type(region, suffix),
        })
        if per_million is None:
            return self.not_available(f"API Gateway {label} API", region)

        requests = Decimal(self.usage.requests_per_month)
        assumptions: List[str] = [
            f"Assumes {count(requests)} {label} API requests per month",
            f"{label} API type",
            "Does not include data transfer, caching, or other features",
        ]
        return MonthlyCost(
            amount=(requests / MILLION) * per_million,
            confidence=Confidence.MEDIUM,
            assumptions=assumptions,
        )

    def _websocket(self, region: str, pricing: PricingClient) -> MonthlyCost:
        per_million_messages = self.lookup(pricing, "AmazonApiGateway", region, {
            "productFamily": "WebSocket",
            "usagetype": usage_type(region, "ApiGatewayMessage"),
        })
        per_minute = self.lookup(pricing, "AmazonApiGateway", region, {
            "productFamily": "WebSocket",
            "usagetype": usage_type(region, "ApiGatewayMinute"),
        })
        if per_million_messages is None or per_minute is None:
            return self.not_available("API Gateway WebSocket API", region)

        messages = Decimal(self.usage.websocket_messages_per_month)
        minutes = Decimal(self.usage.websocket_connection_minutes)
        return MonthlyCost(
            amount=(messages / MILLION) * per_million_messages + minutes * per_minute,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Assumes {count(messages)} WebSocket messages per month",
                f"Assumes {count(minutes)} connection minutes per month",
                "WebSocket API type",
                "Does not include data transfer costs",
            ],
        )
