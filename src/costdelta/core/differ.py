"""
Template Differ - classify resources between two template snapshots.

A logical id lands in exactly one of added / removed / modified, or in
none when both snapshots carry deep-equal properties. Object keys are
compared order-insensitively; array elements are compared positionally.
"""
from __future__ import annotations

import json
from typing import Any, Mapping

from costdelta.core.schema import (
    ModifiedResource,
    ResourceDiff,
    ResourceSnapshot,
    TemplateSnapshot,
)


def canonicalize(value: Any) -> Any:
    """Recursively sort mapping keys; sequences keep their element order."""
    if isinstance(value, Mapping):
        return {str(k): canonicalize(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    return value


def properties_equal(left: Mapping[str, Any] | None, right: Mapping[str, Any] | None) -> bool:
    """Deep, key-order-insensitive equality of two property maps."""
    return _fingerprint(left or {}) == _fingerprint(right or {})


def _fingerprint(properties: Mapping[str, Any]) -> str:
    # default=str keeps dates and decimals from YAML comparable
    return json.dumps(canonicalize(properties), sort_keys=True, default=str)


class TemplateDiffer:
    """
    Compute a ResourceDiff between a base and a target snapshot.

    Stateless; a single instance can be shared across threads.
    """

    def diff(self, base: TemplateSnapshot, target: TemplateSnapshot) -> ResourceDiff:
        base_ids = base.logical_ids()
        target_ids = target.logical_ids()

        added = [target.resources[i] for i in sorted(target_ids - base_ids)]
        removed = [base.resources[i] for i in sorted(base_ids - target_ids)]

        modified = []
        for logical_id in sorted(base_ids & target_ids):
            old = base.resources[logical_id]
            new = target.resources[logical_id]
            if not properties_equal(old.properties, new.properties):
                modified.append(_modified(old, new))

        return ResourceDiff(added=added, removed=removed, modified=modified)


def _modified(old: ResourceSnapshot, new: ResourceSnapshot) -> ModifiedResource:
    return ModifiedResource(
        logical_id=new.logical_id,
        resource_type=new.resource_type,
        old_properties=dict(old.properties),
        new_properties=dict(new.properties),
    )


def diff_templates(base: TemplateSnapshot, target: TemplateSnapshot) -> ResourceDiff:
    """Convenience wrapper around :meth:`TemplateDiffer.diff`."""
    return TemplateDiffer().diff(base, target)
