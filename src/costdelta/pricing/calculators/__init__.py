"""
Per-resource-type cost calculators.
"""
from __future__ import annotations

from typing import List, Optional

from costdelta.core.config import UsageAssumptions
from costdelta.pricing.calculators.base import HOURS_PER_MONTH, CostCalculator
from costdelta.pricing.calculators.compute import (
    AutoScalingGroupCalculator,
    EC2Calculator,
    ECSCalculator,
    LambdaCalculator,
    LaunchTemplateCalculator,
)
from costdelta.pricing.calculators.data import (
    DynamoDBCalculator,
    EFSCalculator,
    ElastiCacheCalculator,
    RDSCalculator,
    S3Calculator,
)
from costdelta.pricing.calculators.free import FREE_RESOURCE_TYPES, FreeResourceCalculator
from costdelta.pricing.calculators.integration import (
    SecretsManagerCalculator,
    SNSCalculator,
    SQSCalculator,
    StepFunctionsCalculator,
)
from costdelta.pricing.calculators.network import (
    APIGatewayCalculator,
    CloudFrontCalculator,
    LoadBalancerCalculator,
    NatGatewayCalculator,
    VPCEndpointCalculator,
)


def default_calculators(usage: Optional[UsageAssumptions] = None) -> List[CostCalculator]:
    """The built-in calculators, configured with the given usage assumptions."""
    usage = usage or UsageAssumptions()
    return [
        EC2Calculator(),
        LaunchTemplateCalculator(),
        AutoScalingGroupCalculator(),
        ECSCalculator(usage.ecs),
        LambdaCalculator(usage.lambda_),
        S3Calculator(usage.s3),
        EFSCalculator(usage.efs),
        DynamoDBCalculator(usage.dynamodb),
        RDSCalculator(usage.rds),
        ElastiCacheCalculator(),
        NatGatewayCalculator(usage.nat_gateway),
        LoadBalancerCalculator(usage.alb, usage.nlb),
        VPCEndpointCalculator(usage.vpc_endpoint),
        APIGatewayCalculator(usage.api_gateway),
        CloudFrontCalculator(usage.cloudfront),
        SQSCalculator(usage.sqs),
        SNSCalculator(usage.sns),
        SecretsManagerCalculator(usage.secrets_manager),
        StepFunctionsCalculator(usage.step_functions),
        FreeResourceCalculator(),
    ]


__all__ = [
    "HOURS_PER_MONTH",
    "CostCalculator",
    "default_calculators",
    "FREE_RESOURCE_TYPES",
    "APIGatewayCalculator",
    "AutoScalingGroupCalculator",
    "CloudFrontCalculator",
    "DynamoDBCalculator",
    "EC2Calculator",
    "ECSCalculator",
    "EFSCalculator",
    "ElastiCacheCalculator",
    "FreeResourceCalculator",
    "LambdaCalculator",
    "LaunchTemplateCalculator",
    "LoadBalancerCalculator",
    "NatGatewayCalculator",
    "RDSCalculator",
    "S3Calculator",
    "SecretsManagerCalculator",
    "SNSCalculator",
    "SQSCalculator",
    "StepFunctionsCalculator",
    "VPCEndpointCalculator",
]
