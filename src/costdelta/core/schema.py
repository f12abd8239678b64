"""
Canonical schema shared by the differ, the pricing resolver and the
threshold evaluator.

All pipeline outputs are pydantic models so they can be dumped with
``model_dump(mode="json")`` and handed to an external reporter.
Money is carried as ``Decimal`` and serialized as a JSON number.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator

from costdelta.core.errors import StructuralError

CURRENCY = "USD"

# Joins a stack name and a logical id in merged multi-stack results
STACK_SEPARATOR = "/"

Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class BaseSchema(BaseModel):
    """Base for all schema models."""

    model_config = ConfigDict(extra="forbid")


class Confidence(str, Enum):
    """How much an estimate can be trusted."""

    HIGH = "high"        # exact usage from the template (provisioned capacity)
    MEDIUM = "medium"    # derived from default usage assumptions
    LOW = "low"          # heuristic, no pricing formula
    UNKNOWN = "unknown"  # lookup failed or type unsupported


class ThresholdLevel(str, Enum):
    NONE = "none"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Templates and diffs
# =============================================================================


class ResourceSnapshot(BaseSchema):
    """One resource of a template, identified by its logical id."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    logical_id: str
    resource_type: str
    properties: Dict[str, Any] = Field(default_factory=dict)


class TemplateSnapshot(BaseSchema):
    """
    Immutable mapping of logical id to resource.

    Build it from the ``Resources`` section of a template with
    :meth:`from_resources`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    resources: Dict[str, ResourceSnapshot] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_ids(self) -> "TemplateSnapshot":
        for key, resource in self.resources.items():
            if key != resource.logical_id:
                raise ValueError(
                    f"Resource key '{key}' does not match logical id '{resource.logical_id}'"
                )
        return self

    @classmethod
    def from_resources(cls, resources: Mapping[str, Any]) -> "TemplateSnapshot":
        """
        Build a snapshot from a raw ``Resources`` mapping.

        Raises:
            StructuralError: If a resource is not a mapping, has no Type,
                or has non-mapping Properties.
        """
        if not isinstance(resources, Mapping):
            raise StructuralError("Resources section must be a mapping")

        parsed: Dict[str, ResourceSnapshot] = {}
        for logical_id, body in resources.items():
            if not isinstance(body, Mapping):
                raise StructuralError(f"Resource '{logical_id}' must be a mapping")
            resource_type = body.get("Type")
            if not isinstance(resource_type, str) or not resource_type.strip():
                raise StructuralError(f"Resource '{logical_id}' is missing a Type")
            properties = body.get("Properties")
            if properties is None:
                properties = {}
            if not isinstance(properties, Mapping):
                raise StructuralError(f"Resource '{logical_id}' has non-mapping Properties")
            parsed[str(logical_id)] = ResourceSnapshot(
                logical_id=str(logical_id),
                resource_type=resource_type,
                properties=dict(properties),
            )
        return cls(resources=parsed)

    def __len__(self) -> int:
        return len(self.resources)

    def __contains__(self, logical_id: object) -> bool:
        return logical_id in self.resources

    def get(self, logical_id: str) -> Optional[ResourceSnapshot]:
        return self.resources.get(logical_id)

    def logical_ids(self) -> set[str]:
        return set(self.resources)


class ModifiedResource(BaseSchema):
    logical_id: str
    resource_type: str
    old_properties: Dict[str, Any] = Field(default_factory=dict)
    new_properties: Dict[str, Any] = Field(default_factory=dict)

    def old_snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            logical_id=self.logical_id,
            resource_type=self.resource_type,
            properties=self.old_properties,
        )

    def new_snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            logical_id=self.logical_id,
            resource_type=self.resource_type,
            properties=self.new_properties,
        )


class ResourceDiff(BaseSchema):
    """Partition of the logical ids of two snapshots."""

    added: List[ResourceSnapshot] = Field(default_factory=list)
    removed: List[ResourceSnapshot] = Field(default_factory=list)
    modified: List[ModifiedResource] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def logical_ids(self) -> set[str]:
        ids = {r.logical_id for r in self.added}
        ids.update(r.logical_id for r in self.removed)
        ids.update(r.logical_id for r in self.modified)
        return ids


# =============================================================================
# Costs
# =============================================================================


class MonthlyCost(BaseSchema):
    """Recurring monthly cost of one resource, with its audit trail."""

    amount: Money = Field(default=Decimal("0"), ge=0)
    currency: Literal["USD"] = CURRENCY
    confidence: Confidence = Confidence.UNKNOWN
    assumptions: List[str] = Field(default_factory=list)

    @classmethod
    def unknown(cls, *reasons: str) -> "MonthlyCost":
        return cls(amount=Decimal("0"), confidence=Confidence.UNKNOWN, assumptions=list(reasons))

    @classmethod
    def free(cls, *reasons: str) -> "MonthlyCost":
        return cls(amount=Decimal("0"), confidence=Confidence.HIGH, assumptions=list(reasons))


class ResourceCost(BaseSchema):
    logical_id: str
    resource_type: str
    monthly_cost: MonthlyCost


class ModifiedResourceCost(BaseSchema):
    logical_id: str
    resource_type: str
    old_monthly_cost: MonthlyCost
    new_monthly_cost: MonthlyCost
    cost_delta: Money = Decimal("0")

    @model_validator(mode="after")
    def _compute_delta(self) -> "ModifiedResourceCost":
        self.cost_delta = self.new_monthly_cost.amount - self.old_monthly_cost.amount
        return self


class CostDelta(BaseSchema):
    """
    Aggregate cost change between two snapshots.

    ``total_delta`` always equals the sum of added costs, minus removed
    costs, plus the deltas of modified resources.
    """

    total_delta: Money = Decimal("0")
    currency: Literal["USD"] = CURRENCY
    added_costs: List[ResourceCost] = Field(default_factory=list)
    removed_costs: List[ResourceCost] = Field(default_factory=list)
    modified_costs: List[ModifiedResourceCost] = Field(default_factory=list)

    @model_validator(mode="after")
    def _compute_total(self) -> "CostDelta":
        self.total_delta = (
            sum((c.monthly_cost.amount for c in self.added_costs), Decimal("0"))
            - sum((c.monthly_cost.amount for c in self.removed_costs), Decimal("0"))
            + sum((c.cost_delta for c in self.modified_costs), Decimal("0"))
        )
        return self

    @classmethod
    def from_costs(
        cls,
        added: Iterable[ResourceCost] = (),
        removed: Iterable[ResourceCost] = (),
        modified: Iterable[ModifiedResourceCost] = (),
    ) -> "CostDelta":
        return cls(
            added_costs=list(added),
            removed_costs=list(removed),
            modified_costs=list(modified),
        )

    @classmethod
    def merge(cls, deltas: Iterable["CostDelta"]) -> "CostDelta":
        """
        Merge deltas computed for independently diffed templates.

        Raises:
            ValueError: If the same logical id appears in more than one delta.
        """
        added: List[ResourceCost] = []
        removed: List[ResourceCost] = []
        modified: List[ModifiedResourceCost] = []
        seen: set[str] = set()
        for delta in deltas:
            ids = delta.logical_ids()
            overlap = seen & ids
            if overlap:
                raise ValueError(f"Cannot merge deltas with shared logical ids: {sorted(overlap)}")
            seen |= ids
            added.extend(delta.added_costs)
            removed.extend(delta.removed_costs)
            modified.extend(delta.modified_costs)
        return cls.from_costs(added, removed, modified)

    def prefixed(self, prefix: str) -> "CostDelta":
        """Copy with every logical id qualified as ``<prefix>/<logical id>``."""

        def qualify(cost):
            return cost.model_copy(update={"logical_id": f"{prefix}{STACK_SEPARATOR}{cost.logical_id}"})

        return CostDelta.from_costs(
            added=[qualify(c) for c in self.added_costs],
            removed=[qualify(c) for c in self.removed_costs],
            modified=[qualify(c) for c in self.modified_costs],
        )

    def logical_ids(self) -> set[str]:
        ids = {c.logical_id for c in self.added_costs}
        ids.update(c.logical_id for c in self.removed_costs)
        ids.update(c.logical_id for c in self.modified_costs)
        return ids

    def confidence_summary(self) -> Dict[str, int]:
        """Count of estimates per confidence level (new side for modified)."""
        counts: Counter[str] = Counter()
        for cost in self.added_costs + self.removed_costs:
            counts[cost.monthly_cost.confidence.value] += 1
        for mod in self.modified_costs:
            counts[mod.new_monthly_cost.confidence.value] += 1
        return {level.value: counts.get(level.value, 0) for level in Confidence}


# =============================================================================
# Threshold policy
# =============================================================================


class Contributor(BaseSchema):
    """A resource ranked by its contribution to a cost delta."""

    logical_id: str
    resource_type: str
    impact: Money
    change: Literal["added", "modified"]


class ThresholdEvaluation(BaseSchema):
    passed: bool
    level: ThresholdLevel
    threshold: Optional[Money] = None
    delta: Money
    message: str
    recommendations: List[str] = Field(default_factory=list)
    contributors: List[Contributor] = Field(default_factory=list)


# =============================================================================
# Price cache
# =============================================================================


@dataclass(frozen=True)
class CacheKey:
    """Deterministic signature of a price query."""

    value: str

    @classmethod
    def build(
        cls,
        service_code: str,
        normalized_region: str,
        filters: Iterable[Tuple[str, str]],
    ) -> "CacheKey":
        filter_str = "|".join(sorted(f"{name}:{val}" for name, val in filters))
        return cls(f"{service_code}:{normalized_region}:{filter_str}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CacheEntry:
    """A resolved unit price; ``price`` is None when no product matched."""

    key: CacheKey
    price: Optional[Decimal]
    fetched_at: datetime
    ttl_hours: float

    def age(self, now: Optional[datetime] = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - self.fetched_at

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        return self.age(now) < timedelta(hours=self.ttl_hours)


@dataclass(frozen=True)
class CacheLookup:
    """Result of a store read: the cached price and whether it is fresh."""

    price: Optional[Decimal]
    fresh: bool
