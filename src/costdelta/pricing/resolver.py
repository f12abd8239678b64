"""
Resource Cost Resolver - dispatch resources to cost calculators.

Resolves single resources (``resolve_cost``) and whole diffs
(``resolve_cost_delta``). Diff resolution fans out over a bounded thread
pool; a deadline bounds the phase, and anything unresolved when it
expires is reported with unknown confidence instead of failing the run.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from costdelta.core.config import AnalyzerConfig
from costdelta.core.errors import ConfigurationError
from costdelta.core.schema import (
    CostDelta,
    ModifiedResourceCost,
    MonthlyCost,
    ResourceCost,
    ResourceDiff,
    ResourceSnapshot,
    TemplateSnapshot,
)
from costdelta.pricing.calculators import CostCalculator, default_calculators
from costdelta.pricing.client import PricingClient

log = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

# (category, logical id, side) identifies one resolution job
JobKey = Tuple[str, str, str]
# A resource and the template it belongs to, if known
Job = Tuple[ResourceSnapshot, Optional[TemplateSnapshot]]


class ResourceCostResolver:
    """
    Ordered registry of cost calculators plus the resolution policy.

    The first calculator whose ``supports`` accepts a type handles it.
    Two calculators claiming the same type is a configuration error.
    """

    def __init__(
        self,
        pricing: PricingClient,
        calculators: Optional[Sequence[CostCalculator]] = None,
        *,
        excluded_types: Iterable[str] = (),
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout_seconds: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._pricing = pricing
        self._calculators: List[CostCalculator] = (
            list(calculators) if calculators is not None else default_calculators()
        )
        self._excluded = frozenset(excluded_types)
        self._max_workers = max_workers
        self._timeout = timeout_seconds
        self._log = logger or log
        self._check_registry()

    @classmethod
    def from_config(
        cls,
        pricing: PricingClient,
        config: AnalyzerConfig,
        logger: Optional[logging.Logger] = None,
    ) -> "ResourceCostResolver":
        return cls(
            pricing,
            default_calculators(config.usage_assumptions),
            excluded_types=config.exclusions.resource_types,
            max_workers=config.pricing.max_workers,
            timeout_seconds=config.pricing.timeout_seconds,
            logger=logger,
        )

    def _check_registry(self) -> None:
        owners: Dict[str, str] = {}
        conflicts: List[str] = []
        for calculator in self._calculators:
            name = type(calculator).__name__
            for resource_type in calculator.resource_types:
                if resource_type in owners:
                    conflicts.append(f"{resource_type} is claimed by {owners[resource_type]} and {name}")
                else:
                    owners[resource_type] = name
        if conflicts:
            raise ConfigurationError(
                "Conflicting cost calculators",
                config_path="<calculators>",
                validation_errors=conflicts,
            )

    @property
    def excluded_types(self) -> frozenset:
        return self._excluded

    def is_excluded(self, resource_type: str) -> bool:
        return resource_type in self._excluded

    def calculator_for(self, resource_type: str) -> Optional[CostCalculator]:
        for calculator in self._calculators:
            if calculator.supports(resource_type):
                return calculator
        return None

    def resolve_cost(
        self,
        resource: ResourceSnapshot,
        region: str,
        template: Optional[TemplateSnapshot] = None,
    ) -> MonthlyCost:
        """
        Monthly cost of one resource. Never raises for a well-formed snapshot.

        ``template`` is the snapshot the resource belongs to; calculators
        use it to follow references such as an Auto Scaling group's launch
        template.
        """
        calculator = self.calculator_for(resource.resource_type)
        if calculator is None:
            self._log.debug("No calculator for %s (%s)", resource.logical_id, resource.resource_type)
            return MonthlyCost.unknown(f"Unsupported resource type: {resource.resource_type}")

        try:
            return calculator.calculate(resource, region, self._pricing, template)
        except Exception as e:
            self._log.warning(
                "Cost calculation failed for %s (%s): %s",
                resource.logical_id, resource.resource_type, e,
                exc_info=self._log.isEnabledFor(logging.DEBUG),
            )
            return MonthlyCost.unknown(f"Failed to calculate cost: {e}")

    def resolve_cost_delta(
        self,
        diff: ResourceDiff,
        region: str,
        base: Optional[TemplateSnapshot] = None,
        target: Optional[TemplateSnapshot] = None,
    ) -> CostDelta:
        """
        Price every resource in a diff and aggregate the result.

        Excluded types are dropped from all three categories before any
        calculator runs. Removed resources and the old side of modified
        ones are priced in the context of ``base``, the rest in ``target``.
        """
        added = [r for r in diff.added if not self.is_excluded(r.resource_type)]
        removed = [r for r in diff.removed if not self.is_excluded(r.resource_type)]
        modified = [m for m in diff.modified if not self.is_excluded(m.resource_type)]

        skipped = len(diff.added) + len(diff.removed) + len(diff.modified)
        skipped -= len(added) + len(removed) + len(modified)
        if skipped:
            self._log.debug("Excluded %d resource(s) by type", skipped)

        jobs: Dict[JobKey, Job] = {}
        for resource in added:
            jobs[("added", resource.logical_id, "new")] = (resource, target)
        for resource in removed:
            jobs[("removed", resource.logical_id, "old")] = (resource, base)
        for mod in modified:
            jobs[("modified", mod.logical_id, "old")] = (mod.old_snapshot(), base)
            jobs[("modified", mod.logical_id, "new")] = (mod.new_snapshot(), target)

        self._log.info("Resolving %d cost estimate(s) in %s", len(jobs), region)
        costs = self._run(jobs, region)

        return CostDelta.from_costs(
            added=[
                ResourceCost(
                    logical_id=r.logical_id,
                    resource_type=r.resource_type,
                    monthly_cost=costs[("added", r.logical_id, "new")],
                )
                for r in added
            ],
            removed=[
                ResourceCost(
                    logical_id=r.logical_id,
                    resource_type=r.resource_type,
                    monthly_cost=costs[("removed", r.logical_id, "old")],
                )
                for r in removed
            ],
            modified=[
                ModifiedResourceCost(
                    logical_id=m.logical_id,
                    resource_type=m.resource_type,
                    old_monthly_cost=costs[("modified", m.logical_id, "old")],
                    new_monthly_cost=costs[("modified", m.logical_id, "new")],
                )
                for m in modified
            ],
        )

    def _run(self, jobs: Dict[JobKey, Job], region: str) -> Dict[JobKey, MonthlyCost]:
        if not jobs:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(jobs)),
            thread_name_prefix="costdelta-resolve",
        )
        futures: Dict[JobKey, Future] = {
            key: executor.submit(self.resolve_cost, resource, region, template)
            for key, (resource, template) in jobs.items()
        }
        _, pending = wait(futures.values(), timeout=self._timeout)
        # Abandon in-flight work on timeout; queued jobs are cancelled
        executor.shutdown(wait=not pending, cancel_futures=True)

        results: Dict[JobKey, MonthlyCost] = {}
        timed_out = 0
        for key, future in futures.items():
            if future.done() and not future.cancelled():
                results[key] = future.result()
            else:
                timed_out += 1
                results[key] = MonthlyCost.unknown(
                    f"Cost resolution timed out after {self._timeout:g}s"
                )
        if timed_out:
            self._log.warning(
                "Cost resolution deadline of %gs expired, %d estimate(s) marked unknown",
                self._timeout, timed_out,
            )
        return results
