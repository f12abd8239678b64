"""
Template loading - turn JSON/YAML CloudFormation documents into snapshots.

YAML templates may use short-form intrinsic functions (``!Ref``,
``!Sub``, ``!GetAtt`` ...). They are decoded to their long form so that
the differ sees the same structure for both notations.
"""
from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Protocol

import yaml

from costdelta.core.errors import StructuralError
from costdelta.core.schema import TemplateSnapshot


class _CfnLoader(yaml.SafeLoader):
    """SafeLoader that understands CloudFormation tags."""


def _construct_intrinsic(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    if tag_suffix == "Ref":
        return {"Ref": value}
    if tag_suffix == "GetAtt" and isinstance(value, str):
        value = value.split(".", 1)
    if tag_suffix == "Condition":
        return {"Condition": value}
    return {f"Fn::{tag_suffix}": value}


_CfnLoader.add_multi_constructor("!", _construct_intrinsic)


def parse_template(content: str) -> TemplateSnapshot:
    """
    Parse a JSON or YAML template document.

    Raises:
        StructuralError: If the document cannot be parsed or has no
            Resources mapping.
    """
    stripped = content.lstrip()
    try:
        if stripped.startswith("{"):
            document = json.loads(content)
        else:
            document = yaml.load(content, Loader=_CfnLoader)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise StructuralError(f"Failed to parse template: {e}") from e

    if not isinstance(document, dict):
        raise StructuralError("Template must be a mapping")
    if "Resources" not in document:
        raise StructuralError("Template does not contain a Resources section")
    return TemplateSnapshot.from_resources(document["Resources"] or {})


def load_template(path: str | Path) -> TemplateSnapshot:
    """Read and parse a template file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StructuralError(f"Cannot read template {path}: {e}") from e
    return parse_template(content)


TEMPLATE_SUFFIX = ".template.json"


def stack_name(file_name: str) -> str:
    """Stack name of a synthesized template file: ``Api.template.json`` -> ``Api``."""
    if file_name.endswith(TEMPLATE_SUFFIX):
        return file_name[: -len(TEMPLATE_SUFFIX)]
    return Path(file_name).stem


class TemplateSource(Protocol):
    """
    Produces template snapshots from application source (e.g. a CDK app).

    Implementations own any subprocess handling; they either return the
    synthesized snapshots or raise (``TimeoutError`` when the deadline,
    in seconds, is exceeded).
    """

    def materialize(self, source_path: str, deadline: float) -> List[TemplateSnapshot]:
        ...


class DirectoryTemplateSource:
    """Reads every ``*.template.json`` file of an already synthesized output."""

    def __init__(self, pattern: str = "*.template.json"):
        self._pattern = pattern

    def load_named(self, source_path: str, deadline: float = 60.0) -> Dict[str, TemplateSnapshot]:
        """Snapshots keyed by file name, in file name order."""
        started = time.monotonic()
        paths = sorted(Path(source_path).glob(self._pattern))
        if not paths:
            raise StructuralError(f"No templates matching {self._pattern} in {source_path}")
        snapshots: Dict[str, TemplateSnapshot] = {}
        for path in paths:
            if time.monotonic() - started > deadline:
                raise TimeoutError(f"Loading templates from {source_path} exceeded {deadline:g}s")
            snapshots[path.name] = load_template(path)
        return snapshots

    def materialize(self, source_path: str, deadline: float) -> List[TemplateSnapshot]:
        return list(self.load_named(source_path, deadline).values())
