"""
Cost Pipeline - diff -> resolve -> aggregate -> evaluate.

Composition root for the engine. ``CostPipeline.from_config`` wires the
price stores, the pricing client and the resolver from an
``AnalyzerConfig``; tests construct the pieces directly.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import boto3
from pydantic import Field

from costdelta.core.config import AnalyzerConfig, ThresholdConfig
from costdelta.core.differ import TemplateDiffer
from costdelta.core.errors import StructuralError
from costdelta.core.schema import (
    BaseSchema,
    CostDelta,
    TemplateSnapshot,
    ThresholdEvaluation,
)
from costdelta.core.thresholds import ThresholdEvaluator
from costdelta.pricing.client import PricingClient
from costdelta.pricing.resolver import ResourceCostResolver
from costdelta.pricing.source import AwsPriceListSource, PriceSource
from costdelta.storage import FileSystemPriceStore, InMemoryPriceStore, PriceStore

log = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class PipelineResult(BaseSchema):
    """Everything a reporter needs; JSON-serializable via ``model_dump(mode="json")``."""

    cost_delta: CostDelta
    threshold: ThresholdEvaluation
    region: str
    environment: Optional[str] = None
    config_summary: Dict[str, Any] = Field(default_factory=dict)


def build_price_store(config: AnalyzerConfig) -> PriceStore:
    """In-memory tier, layered over the filesystem tier when caching is enabled."""
    ttl = config.cache.duration_hours
    if not config.cache.enabled:
        return InMemoryPriceStore(ttl_hours=ttl)
    durable = FileSystemPriceStore(directory=config.cache.directory, ttl_hours=ttl)
    return InMemoryPriceStore(ttl_hours=ttl, backing=durable)


class CostPipeline:
    """Runs the engine for one or more (base, target) template pairs."""

    def __init__(
        self,
        resolver: ResourceCostResolver,
        evaluator: Optional[ThresholdEvaluator] = None,
        differ: Optional[TemplateDiffer] = None,
        *,
        config: Optional[AnalyzerConfig] = None,
        region: str = DEFAULT_REGION,
    ):
        self.resolver = resolver
        self.evaluator = evaluator or ThresholdEvaluator()
        self.differ = differ or TemplateDiffer()
        self.config = config
        self.region = region

    @classmethod
    def from_config(
        cls,
        config: AnalyzerConfig,
        region: str = DEFAULT_REGION,
        *,
        source: Optional[PriceSource] = None,
        session: Optional[boto3.Session] = None,
    ) -> "CostPipeline":
        """
        Build a pipeline backed by the AWS Price List API.

        Raises:
            CredentialError: If the price source has no usable credentials.
        """
        if source is None:
            source = AwsPriceListSource(session=session, api_region=config.pricing.api_region)
        check_credentials = getattr(source, "check_credentials", None)
        if check_credentials is not None:
            check_credentials()

        client = PricingClient(
            source,
            build_price_store(config),
            max_attempts=config.pricing.max_attempts,
            base_delay=config.pricing.base_delay_seconds,
        )
        resolver = ResourceCostResolver.from_config(client, config)
        return cls(resolver, config=config, region=region)

    def run(
        self,
        base: TemplateSnapshot,
        target: TemplateSnapshot,
        region: Optional[str] = None,
        thresholds: Optional[ThresholdConfig] = None,
        environment: Optional[str] = None,
    ) -> PipelineResult:
        region = region or self.region
        diff = self.differ.diff(base, target)
        log.info(
            "Diff: %d added, %d removed, %d modified",
            len(diff.added), len(diff.removed), len(diff.modified),
        )
        cost_delta = self.resolver.resolve_cost_delta(diff, region, base=base, target=target)
        return self._evaluate(cost_delta, region, thresholds, environment)

    def run_stacks(
        self,
        stacks: Mapping[str, Tuple[TemplateSnapshot, TemplateSnapshot]],
        region: Optional[str] = None,
        thresholds: Optional[ThresholdConfig] = None,
        environment: Optional[str] = None,
    ) -> PipelineResult:
        """
        Diff and resolve each named stack independently, then evaluate the merged delta.

        Logical ids in the result are qualified with their stack name
        (``Storage/Bucket``); stacks may reuse ids such as ``CDKMetadata``.

        Raises:
            StructuralError: If two stacks still share a qualified id.
        """
        region = region or self.region
        deltas = []
        for name, (base, target) in stacks.items():
            diff = self.differ.diff(base, target)
            log.debug("Stack %s: %d change(s)", name, len(diff.logical_ids()))
            delta = self.resolver.resolve_cost_delta(diff, region, base=base, target=target)
            deltas.append(delta.prefixed(name))
        try:
            merged = CostDelta.merge(deltas)
        except ValueError as e:
            raise StructuralError(str(e)) from e
        return self._evaluate(merged, region, thresholds, environment)

    def _evaluate(
        self,
        cost_delta: CostDelta,
        region: str,
        thresholds: Optional[ThresholdConfig],
        environment: Optional[str],
    ) -> PipelineResult:
        if thresholds is None and self.config is not None:
            thresholds = self.config.thresholds
        evaluation = self.evaluator.evaluate(
            cost_delta.total_delta,
            cost_delta.added_costs,
            cost_delta.modified_costs,
            config=thresholds,
            environment=environment,
        )
        log.info("Total delta %s USD/month, threshold level %s", cost_delta.total_delta, evaluation.level.value)
        return PipelineResult(
            cost_delta=cost_delta,
            threshold=evaluation,
            region=region,
            environment=environment,
            config_summary=self._summary(thresholds, environment),
        )

    def _summary(self, thresholds: Optional[ThresholdConfig], environment: Optional[str]) -> Dict[str, Any]:
        levels = thresholds.select(environment) if thresholds else None
        summary: Dict[str, Any] = {
            "thresholds": levels.model_dump(mode="json") if levels else None,
            "excluded_resource_types": sorted(self.resolver.excluded_types),
        }
        if self.config is not None:
            summary["cache_enabled"] = self.config.cache.enabled
            summary["cache_duration_hours"] = self.config.cache.duration_hours
        return summary
