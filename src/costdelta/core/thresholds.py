"""
Threshold Policy - turn an aggregate cost delta into a pass/warn/fail decision.

Precedence:
1. No configuration (or no levels for the environment) -> pass, level none
2. Delta <= 0 -> pass, level none (cost reductions never trigger policy)
3. Delta > error -> fail, level error
4. Delta > warning -> pass, level warning
5. Otherwise -> pass, level none

Comparisons are strict: a delta equal to a threshold does not trigger it.
The evaluator is pure; identical inputs give identical output.
"""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from costdelta.core.config import ThresholdConfig, ThresholdLevels
from costdelta.core.schema import (
    Contributor,
    ModifiedResourceCost,
    ResourceCost,
    ThresholdEvaluation,
    ThresholdLevel,
)

TOP_CONTRIBUTORS = 5

# Ordered (resource type, hint) rules matched against the top contributors
REMEDIATION_HINTS: Tuple[Tuple[str, str], ...] = (
    ("AWS::RDS::DBInstance",
     "Consider using smaller RDS instance types or Aurora Serverless for lower costs."),
    ("AWS::EC2::Instance",
     "Consider using smaller EC2 instance types, Spot instances, or Savings Plans."),
    ("AWS::EC2::NatGateway",
     "NAT Gateways have high data processing costs. Consider using VPC endpoints "
     "or consolidating NAT Gateways."),
    ("AWS::ElasticLoadBalancingV2::LoadBalancer",
     "Load Balancers have hourly costs. Consider sharing load balancers across services if possible."),
    ("AWS::ElastiCache::CacheCluster",
     "Consider smaller cache node types or fewer replica nodes."),
    ("AWS::ECS::Service",
     "Review Fargate task sizes and desired counts, or consider Fargate Spot for interruptible work."),
    ("AWS::DynamoDB::Table",
     "Review provisioned capacity or switch low-traffic tables to on-demand billing."),
    ("AWS::EC2::VPCEndpoint",
     "Interface endpoints are billed per AZ-hour. Consider sharing endpoints across VPCs."),
)

ERROR_RECOMMENDATIONS = (
    "This change cannot be merged without approval due to cost impact.",
    "Review the cost breakdown and consider optimizations before proceeding.",
    "Contact your FinOps team for threshold override approval if this cost increase is necessary.",
)

WARNING_RECOMMENDATIONS = (
    "Review this cost increase with your team before merging.",
    "Consider whether all resources in this change are necessary.",
)


def format_usd(amount: Decimal) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def rank_contributors(
    added: Sequence[ResourceCost],
    modified: Sequence[ModifiedResourceCost],
    limit: int = TOP_CONTRIBUTORS,
) -> List[Contributor]:
    """
    Added and modified resources ranked by absolute cost impact.

    Modified resources contribute their delta, which may be negative.
    Ties are broken by logical id.
    """
    contributors = [
        Contributor(
            logical_id=c.logical_id,
            resource_type=c.resource_type,
            impact=c.monthly_cost.amount,
            change="added",
        )
        for c in added
    ]
    contributors.extend(
        Contributor(
            logical_id=m.logical_id,
            resource_type=m.resource_type,
            impact=m.cost_delta,
            change="modified",
        )
        for m in modified
    )
    contributors.sort(key=lambda c: (-abs(c.impact), c.logical_id, c.change))
    return contributors[:limit]


class ThresholdEvaluator:
    """Evaluates cost deltas against warning/error thresholds."""

    def __init__(self, top_contributors: int = TOP_CONTRIBUTORS):
        self.top_contributors = top_contributors

    def evaluate(
        self,
        delta: Decimal,
        added: Sequence[ResourceCost] = (),
        modified: Sequence[ModifiedResourceCost] = (),
        config: Optional[ThresholdConfig] = None,
        environment: Optional[str] = None,
    ) -> ThresholdEvaluation:
        delta = Decimal(delta)
        levels = config.select(environment) if config else None
        if levels is None or (levels.warning is None and levels.error is None):
            return ThresholdEvaluation(
                passed=True,
                level=ThresholdLevel.NONE,
                delta=delta,
                message="No thresholds configured",
            )

        level, threshold = self._classify(delta, levels)
        if level is ThresholdLevel.NONE:
            return ThresholdEvaluation(
                passed=True,
                level=ThresholdLevel.NONE,
                delta=delta,
                message=f"Cost delta {format_usd(delta)}/month is within thresholds",
            )

        contributors = rank_contributors(added, modified, self.top_contributors)
        return ThresholdEvaluation(
            passed=level is not ThresholdLevel.ERROR,
            level=level,
            threshold=threshold,
            delta=delta,
            message=self._exceeded_message(level, delta, threshold),
            recommendations=self._recommendations(level, contributors),
            contributors=contributors,
        )

    @staticmethod
    def _classify(delta: Decimal, levels: ThresholdLevels) -> Tuple[ThresholdLevel, Optional[Decimal]]:
        if delta <= 0:
            return ThresholdLevel.NONE, None
        # Error is checked first so a warning > error misconfiguration still fails
        if levels.error is not None and delta > levels.error:
            return ThresholdLevel.ERROR, levels.error
        if levels.warning is not None and delta > levels.warning:
            return ThresholdLevel.WARNING, levels.warning
        return ThresholdLevel.NONE, None

    @staticmethod
    def _exceeded_message(level: ThresholdLevel, delta: Decimal, threshold: Decimal) -> str:
        exceeded_by = delta - threshold
        message = (
            f"Cost increase of {format_usd(delta)}/month exceeds {level.value} threshold of "
            f"{format_usd(threshold)}/month by {format_usd(exceeded_by)}"
        )
        if threshold > 0:
            percentage = exceeded_by / threshold * 100
            message += f" ({percentage:.1f}%)"
        return message

    @staticmethod
    def _recommendations(level: ThresholdLevel, contributors: Sequence[Contributor]) -> List[str]:
        if level is ThresholdLevel.ERROR:
            recommendations = list(ERROR_RECOMMENDATIONS)
        else:
            recommendations = list(WARNING_RECOMMENDATIONS)

        if not contributors:
            return recommendations

        recommendations.append(
            "Top cost contributors: "
            + ", ".join(
                f"{c.resource_type} ({c.logical_id}): {format_usd(c.impact)}/month"
                for c in contributors
            )
        )
        types = {c.resource_type for c in contributors}
        recommendations.extend(hint for resource_type, hint in REMEDIATION_HINTS if resource_type in types)
        return recommendations
