"""
Application integration calculators: SQS, SNS, Secrets Manager, Step Functions.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from costdelta.core.config import SecretsManagerUsage, SNSUsage, SQSUsage, StepFunctionsUsage
from costdelta.core.schema import Confidence, MonthlyCost, ResourceSnapshot
from costdelta.pricing.calculators.base import (
    MILLION,
    CostCalculator,
    bool_property,
    count,
    string_property,
    usd,
)
from costdelta.pricing.client import PricingClient
from costdelta.pricing.regions import usage_type


class SQSCalculator(CostCalculator):
    resource_types = ("AWS::SQS::Queue",)

    def __init__(self, usage: Optional[SQSUsage] = None):
        self.usage = usage or SQSUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        fifo = bool_property(resource.properties, "FifoQueue")
        queue = "FIFO queue" if fifo else "Standard queue"

        per_million = self.lookup(pricing, "AWSQueueService", region, {
            "productFamily": "Queue",
            "usagetype": usage_type(region, "Requests-FIFO" if fifo else "Requests"),
        })
        requests = Decimal(self.usage.monthly_requests)
        assumptions = [
            f"Assumes {count(requests)} requests per month",
            queue,
            "Does not include data transfer costs",
        ]
        if per_million is None:
            return self.not_available("SQS", region, *assumptions)

        return MonthlyCost(
            amount=(requests / MILLION) * per_million,
            confidence=Confidence.MEDIUM,
            assumptions=assumptions,
        )


class SecretsManagerCalculator(CostCalculator):
    """Per-secret monthly storage plus API calls (per 10,000)."""

    resource_types = ("AWS::SecretsManager::Secret",)

    def __init__(self, usage: Optional[SecretsManagerUsage] = None):
        self.usage = usage or SecretsManagerUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        calls = Decimal(self.usage.monthly_api_calls)
        storage = self.lookup(pricing, "AWSSecretsManager", region, {
            "productFamily": "Secret",
            "group": "SecretStorage",
        })
        per_10k = self.lookup(pricing, "AWSSecretsManager", region, {
            "productFamily": "Secret",
            "group": "SecretRotation",
        })
        if storage is None or per_10k is None:
            return self.not_available(
                "Secrets Manager", region, f"Would assume {count(calls)} API calls per month"
            )

        api_cost = (calls / Decimal("10000")) * per_10k
        total = storage + api_cost
        return MonthlyCost(
            amount=total,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Secret storage: {usd(storage)}/month",
                f"API calls: {count(calls)} calls x {usd(per_10k, 4)}/10K = {usd(api_cost)}/month",
                f"Total: {usd(total)}/month",
                "Cross-region replication incurs additional costs (not calculated)",
            ],
        )


class StepFunctionsCalculator(CostCalculator):
    """
    State machines.

    STANDARD workflows are billed per state transition (priced per 1,000);
    EXPRESS workflows per request plus GB-seconds of duration.
    """

    resource_types = ("AWS::StepFunctions::StateMachine",)

    def __init__(self, usage: Optional[StepFunctionsUsage] = None):
        self.usage = usage or StepFunctionsUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        workflow = string_property(resource.properties, "StateMachineType") or string_property(
            resource.properties, "Type"
        )
        if workflow == "EXPRESS":
            return self._express(region, pricing)
        return self._standard(region, pricing)

    def _standard(self, region: str, pricing: PricingClient) -> MonthlyCost:
        executions = Decimal(self.usage.monthly_executions)
        per_execution = Decimal(self.usage.state_transitions_per_execution)
        transitions = executions * per_execution
        assumptions = [
            f"Assumes {count(executions)} executions per month",
            f"Assumes {count(per_execution)} state transitions per execution",
            f"Total estimated state transitions: {count(transitions)}",
            "STANDARD workflow type",
        ]

        per_1k = self.lookup(pricing, "AWSStepFunctions", region, {
            "productFamily": "AWS Step Functions",
            "usagetype": usage_type(region, "StateTransition"),
        })
        if per_1k is None:
            return self.not_available("Step Functions Standard workflow", region, *assumptions)

        return MonthlyCost(
            amount=(transitions / Decimal("1000")) * per_1k,
            confidence=Confidence.MEDIUM,
            assumptions=assumptions,
        )

    def _express(self, region: str, pricing: PricingClient) -> MonthlyCost:
        executions = Decimal(self.usage.monthly_executions)
        duration_ms = self.usage.average_duration_ms
        memory_mb = self.usage.memory_mb
        gb_seconds = (memory_mb / 1024) * (duration_ms / 1000) * executions
        assumptions = [
            f"Assumes {count(executions)} executions per month",
            f"Assumes {count(duration_ms)}ms average execution duration",
            f"Assumes {count(memory_mb)}MB memory allocation per execution",
            f"Total estimated GB-seconds: {gb_seconds:.2f}",
            "EXPRESS workflow type",
        ]

        per_request = self.lookup(pricing, "AWSStepFunctions", region, {
            "productFamily": "AWS Step Functions",
            "usagetype": usage_type(region, "ExpressRequest"),
        })
        per_gb_second = self.lookup(pricing, "AWSStepFunctions", region, {
            "productFamily": "AWS Step Functions",
            "usagetype": usage_type(region, "ExpressDuration"),
        })
        if per_request is None or per_gb_second is None:
            return self.not_available("Step Functions Express workflow", region, *assumptions)

        return MonthlyCost(
            amount=executions * per_request + gb_seconds * per_gb_second,
            confidence=Confidence.MEDIUM,
            assumptions=assumptions,
        )


class SNSCalculator(CostCalculator):
    """
    Topic publishes beyond the monthly free tier plus deliveries per
    protocol. Email is billed per 100,000 deliveries and SMS per message.
    """

    resource_types = ("AWS::SNS::Topic",)

    FREE_PUBLISHES = 1_000_000
    HUNDRED_THOUSAND = Decimal("100000")

    # (usage field, label, product family, usage type suffix, billing unit)
    DELIVERIES = (
        ("http_deliveries", "HTTP/S", "Notification", "DeliveryAttempts-HTTP", MILLION),
        ("email_deliveries", "Email", "Notification", "DeliveryAttempts-EMAIL", HUNDRED_THOUSAND),
        ("sms_deliveries", "SMS", "SMS", "DeliveryAttempts-SMS", Decimal("1")),
        ("mobile_push_deliveries", "Mobile push", "Mobile Push Notification",
         "DeliveryAttempts-APNS", MILLION),
    )

    def __init__(self, usage: Optional[SNSUsage] = None):
        self.usage = usage or SNSUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        publishes = self.usage.monthly_publishes
        publish_price = self.lookup(pricing, "AmazonSNS", region, {
            "productFamily": "Notification",
            "usagetype": usage_type(region, "PublishRequests"),
        })
        if publish_price is None:
            return self.not_available("SNS", region)

        billable = Decimal(max(0, publishes - self.FREE_PUBLISHES))
        amount = (billable / MILLION) * publish_price
        assumptions = [
            f"Assumes {count(publishes)} publishes per month "
            f"({count(billable)} billable after free tier)",
        ]

        for field, label, family, suffix, unit in self.DELIVERIES:
            deliveries = getattr(self.usage, field)
            if not deliveries:
                continue
            price = self.lookup(pricing, "AmazonSNS", region, {
                "productFamily": family,
                "usagetype": usage_type(region, suffix),
            })
            if price is None:
                return self.not_available(f"SNS {label} deliveries", region)
            amount += (Decimal(deliveries) / unit) * price
            assumptions.append(f"{label} deliveries: {count(deliveries)} per month")

        if bool_property(resource.properties, "FifoTopic"):
            assumptions.append("FIFO topic priced as standard")
        return MonthlyCost(amount=amount, confidence=Confidence.MEDIUM, assumptions=assumptions)
