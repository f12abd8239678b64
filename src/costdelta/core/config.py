"""
Analyzer Configuration - thresholds, usage assumptions, exclusions, cache.

Configuration files are YAML or JSON. Keys may be written in snake_case
or camelCase, so files in the ``.cdk-cost-analyzer.yml`` style load as-is:

    thresholds:
      default: {warning: 50, error: 200}
      environments:
        production: {warning: 25, error: 100}
    usageAssumptions:
      s3: {storageGB: 500}
    exclusions:
      resourceTypes: [AWS::IAM::Role]
    cache:
      durationHours: 12
"""
from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from costdelta.core.errors import ConfigurationError

log = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (
    ".costdelta.yml",
    ".costdelta.yaml",
    ".costdelta.json",
    ".cdk-cost-analyzer.yml",
    ".cdk-cost-analyzer.yaml",
    ".cdk-cost-analyzer.json",
)

CACHE_DIR_ENV = "COSTDELTA_CACHE_DIR"
PRICING_REGION_ENV = "COSTDELTA_PRICING_REGION"


class BaseConfig(BaseModel):
    """Base configuration model."""

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Thresholds
# =============================================================================


class ThresholdLevels(BaseConfig):
    """Monthly USD limits. Either level may be omitted."""

    warning: Optional[Decimal] = Field(default=None, ge=0)
    error: Optional[Decimal] = Field(default=None, ge=0)


class ThresholdConfig(BaseConfig):
    default: Optional[ThresholdLevels] = None
    environments: Dict[str, ThresholdLevels] = Field(default_factory=dict)

    def select(self, environment: Optional[str] = None) -> Optional[ThresholdLevels]:
        """Environment-specific levels if configured, else the default."""
        if environment and environment in self.environments:
            return self.environments[environment]
        return self.default


# =============================================================================
# Usage assumptions
# =============================================================================

class S3Usage(BaseConfig):
    storage_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="storageGB")
    get_requests: int = Field(default=0, ge=0)
    put_requests: int = Field(default=0, ge=0)


class LambdaUsage(BaseConfig):
    invocations_per_month: int = Field(default=1_000_000, ge=0)
    average_duration_ms: Decimal = Field(default=Decimal("1000"), ge=0)


class DynamoDBUsage(BaseConfig):
    read_requests_per_month: int = Field(default=10_000_000, ge=0)
    write_requests_per_month: int = Field(default=1_000_000, ge=0)


class DataProcessingUsage(BaseConfig):
    data_processed_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="dataProcessedGB")


class LoadBalancerUsage(BaseConfig):
    new_connections_per_second: Decimal = Field(default=Decimal("25"), ge=0)
    active_connections_per_minute: Decimal = Field(default=Decimal("3000"), ge=0)
    processed_bytes_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="processedBytesGB")


class CloudFrontUsage(BaseConfig):
    data_transfer_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="dataTransferGB")
    requests: int = Field(default=1_000_000, ge=0)


class ApiGatewayUsage(BaseConfig):
    requests_per_month: int = Field(default=1_000_000, ge=0)
    websocket_messages_per_month: int = Field(default=1_000_000, ge=0)
    websocket_connection_minutes: int = Field(default=100_000, ge=0)


class SQSUsage(BaseConfig):
    monthly_requests: int = Field(default=1_000_000, ge=0)


class SecretsManagerUsage(BaseConfig):
    monthly_api_calls: int = Field(default=10_000, ge=0)


class StepFunctionsUsage(BaseConfig):
    monthly_executions: int = Field(default=10_000, ge=0)
    state_transitions_per_execution: int = Field(default=10, ge=0)
    average_duration_ms: Decimal = Field(default=Decimal("1000"), ge=0)
    memory_mb: Decimal = Field(default=Decimal("64"), ge=0, alias="memoryMB")


class ECSUsage(BaseConfig):
    fargate_vcpu: Decimal = Field(default=Decimal("0.25"), ge=0, alias="fargateVCpu")
    fargate_memory_gb: Decimal = Field(default=Decimal("0.5"), ge=0, alias="fargateMemoryGB")


class RDSUsage(BaseConfig):
    storage_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="storageGB")


class EFSUsage(BaseConfig):
    storage_gb: Decimal = Field(default=Decimal("100"), ge=0, alias="storageGB")
    infrequent_access_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class SNSUsage(BaseConfig):
    monthly_publishes: int = Field(default=1_000_000, ge=0)
    http_deliveries: int = Field(default=1_000_000, ge=0)
    email_deliveries: int = Field(default=0, ge=0)
    sms_deliveries: int = Field(default=0, ge=0)
    mobile_push_deliveries: int = Field(default=0, ge=0)


class UsageAssumptions(BaseConfig):
    """
    Numeric stand-ins for unknown real-world usage.

    Every value a calculator uses is echoed into the estimate's
    assumptions, so changing a default here is visible in reports.
    """

    s3: S3Usage = Field(default_factory=S3Usage)
    lambda_: LambdaUsage = Field(default_factory=LambdaUsage, alias="lambda")
    dynamodb: DynamoDBUsage = Field(default_factory=DynamoDBUsage, alias="dynamodb")
    nat_gateway: DataProcessingUsage = Field(default_factory=DataProcessingUsage)
    vpc_endpoint: DataProcessingUsage = Field(default_factory=DataProcessingUsage)
    alb: LoadBalancerUsage = Field(default_factory=LoadBalancerUsage)
    nlb: LoadBalancerUsage = Field(default_factory=LoadBalancerUsage)
    cloudfront: CloudFrontUsage = Field(default_factory=CloudFrontUsage)
    api_gateway: ApiGatewayUsage = Field(default_factory=ApiGatewayUsage)
    sqs: SQSUsage = Field(default_factory=SQSUsage)
    secrets_manager: SecretsManagerUsage = Field(default_factory=SecretsManagerUsage)
    step_functions: StepFunctionsUsage = Field(default_factory=StepFunctionsUsage)
    ecs: ECSUsage = Field(default_factory=ECSUsage)
    rds: RDSUsage = Field(default_factory=RDSUsage)
    efs: EFSUsage = Field(default_factory=EFSUsage)
    sns: SNSUsage = Field(default_factory=SNSUsage)


# =============================================================================
# Runtime settings
# =============================================================================


class ExclusionsConfig(BaseConfig):
    resource_types: List[str] = Field(default_factory=list)


class CacheConfig(BaseConfig):
    enabled: bool = True
    duration_hours: float = Field(default=24.0, gt=0)
    directory: str = Field(default_factory=lambda: os.environ.get(CACHE_DIR_ENV, ".costdelta-cache"))


class PricingConfig(BaseConfig):
    api_region: str = Field(default_factory=lambda: os.environ.get(PRICING_REGION_ENV, "us-east-1"))
    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_workers: int = Field(default=8, ge=1)
    timeout_seconds: Optional[float] = Field(default=120.0, gt=0)


class SynthesisConfig(BaseConfig):
    """
    CDK synthesis settings from ``.cdk-cost-analyzer.yml`` files.

    Accepted so those files load; analysis reads already synthesized
    templates and does not use these values.
    """

    app_path: Optional[str] = None
    output_path: Optional[str] = None
    custom_command: Optional[str] = None
    context: Dict[str, str] = Field(default_factory=dict)


class AnalyzerConfig(BaseConfig):
    """Top-level configuration for a pipeline run."""

    thresholds: Optional[ThresholdConfig] = None
    usage_assumptions: UsageAssumptions = Field(default_factory=UsageAssumptions)
    exclusions: ExclusionsConfig = Field(default_factory=ExclusionsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    synthesis: Optional[SynthesisConfig] = None


# =============================================================================
# Loading and validation
# =============================================================================


def validate_config(config: AnalyzerConfig) -> List[str]:
    """
    Return non-fatal configuration warnings.

    Hard errors (negative values, unknown keys) are rejected by the models
    themselves when the configuration is parsed.
    """
    warnings: List[str] = []
    if not config.thresholds:
        return warnings

    def check(levels: ThresholdLevels, prefix: str) -> None:
        if levels.warning is not None and levels.error is not None and levels.warning > levels.error:
            warnings.append(
                f"{prefix}.warning ({levels.warning}) is greater than {prefix}.error ({levels.error})"
            )

    if config.thresholds.default:
        check(config.thresholds.default, "thresholds.default")
    for env, levels in sorted(config.thresholds.environments.items()):
        check(levels, f"thresholds.environments.{env}")
    return warnings


def _format_validation_errors(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}")
    return messages


def parse_config(data: dict, source: str = "<memory>") -> AnalyzerConfig:
    """Validate a raw configuration mapping."""
    try:
        config = AnalyzerConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            config_path=source,
            validation_errors=_format_validation_errors(e),
        ) from e

    for warning in validate_config(config):
        log.warning("Configuration warning (%s): %s", source, warning)
    if config.synthesis is not None:
        log.debug("Synthesis settings in %s are not used; pass synthesized templates instead", source)
    return config


def resolve_config_path(path: Optional[str] = None, search_dir: Optional[Path] = None) -> Optional[Path]:
    """Explicit path if given, else the first known file name in search_dir."""
    if path:
        resolved = Path(path)
        if not resolved.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}", config_path=path)
        return resolved

    base = search_dir or Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Optional[str] = None, search_dir: Optional[Path] = None) -> AnalyzerConfig:
    """
    Load configuration from a file, or defaults when none is found.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.
    """
    resolved = resolve_config_path(path, search_dir)
    if resolved is None:
        log.debug("No configuration file found, using defaults")
        return AnalyzerConfig()

    try:
        with open(resolved, "r", encoding="utf-8") as f:
            if resolved.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to parse configuration file: {e}", config_path=str(resolved)
        ) from e

    if data is not None and not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping", config_path=str(resolved))

    log.debug("Loaded configuration from %s", resolved)
    return parse_config(data or {}, source=str(resolved))
