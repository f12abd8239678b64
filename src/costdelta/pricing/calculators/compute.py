"""
Compute calculators: EC2 instances, launch templates, Auto Scaling groups,
ECS services, Lambda functions.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple

from costdelta.core.config import ECSUsage, LambdaUsage
from costdelta.core.schema import Confidence, MonthlyCost, ResourceSnapshot, TemplateSnapshot
from costdelta.pricing.calculators.base import (
    HOURS_PER_MONTH,
    MILLION,
    CostCalculator,
    count,
    number_property,
    string_property,
)
from costdelta.pricing.client import PricingClient
from costdelta.pricing.regions import usage_type


def on_demand_hourly(pricing: PricingClient, region: str, instance_type: str) -> Optional[Decimal]:
    """Linux, shared tenancy, on-demand hourly price of an instance type."""
    return CostCalculator.lookup(pricing, "AmazonEC2", region, {
        "instanceType": instance_type,
        "operatingSystem": "Linux",
        "tenancy": "Shared",
        "preInstalledSw": "NA",
        "capacitystatus": "Used",
    })


class EC2Calculator(CostCalculator):
    """On-demand Linux instance hours."""

    resource_types = ("AWS::EC2::Instance",)

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        instance_type = string_property(resource.properties, "InstanceType")
        if not instance_type:
            return MonthlyCost.unknown("Instance type not specified")

        hourly = on_demand_hourly(pricing, region, instance_type)
        if hourly is None:
            return self.not_available(f"instance type {instance_type}", region)

        return MonthlyCost(
            amount=hourly * HOURS_PER_MONTH,
            confidence=Confidence.HIGH,
            assumptions=[
                f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
                "Assumes Linux OS, shared tenancy, on-demand pricing",
            ],
        )


# (device name, volume type, size in GB)
EbsVolume = Tuple[str, str, Decimal]


class LaunchTemplateCalculator(CostCalculator):
    """
    Launch templates cost nothing themselves.

    The estimate is what one instance launched from the template costs:
    instance hours plus its EBS volumes, hence low confidence.
    """

    resource_types = ("AWS::EC2::LaunchTemplate",)

    DEFAULT_VOLUME_TYPE = "gp3"
    DEFAULT_VOLUME_SIZE_GB = 8

    def volumes(self, data: Mapping[str, Any]) -> List[EbsVolume]:
        mappings = data.get("BlockDeviceMappings")
        if not isinstance(mappings, list):
            return []
        volumes = []
        for mapping in mappings:
            if not isinstance(mapping, dict) or not isinstance(mapping.get("Ebs"), dict):
                continue
            ebs = mapping["Ebs"]
            volumes.append((
                string_property(mapping, "DeviceName") or "/dev/xvda",
                string_property(ebs, "VolumeType") or self.DEFAULT_VOLUME_TYPE,
                number_property(ebs, "VolumeSize", self.DEFAULT_VOLUME_SIZE_GB),
            ))
        return volumes

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        data = resource.properties.get("LaunchTemplateData")
        data = data if isinstance(data, dict) else {}
        instance_type = string_property(data, "InstanceType")
        if not instance_type:
            return MonthlyCost.unknown(
                "LaunchTemplate does not specify an instance type",
                "LaunchTemplates have no direct cost; costs are incurred when instances are launched",
            )

        hourly = on_demand_hourly(pricing, region, instance_type)
        if hourly is None:
            return self.not_available(f"instance type {instance_type}", region)

        amount = hourly * HOURS_PER_MONTH
        assumptions = [
            "LaunchTemplates have no direct cost; this represents per-instance cost when used",
            f"Instance type: {instance_type}",
            f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
            "Assumes Linux OS, shared tenancy, on-demand pricing",
        ]

        volumes = self.volumes(data)
        for device, volume_type, size_gb in volumes:
            per_gb = self.lookup(pricing, "AmazonEC2", region, {
                "productFamily": "Storage",
                "volumeApiName": volume_type.lower(),
            })
            if per_gb is None:
                assumptions.append(f"{volume_type} volume pricing not available, {device} not included")
                continue
            amount += per_gb * size_gb
        if volumes:
            assumptions.append(
                "EBS volumes: " + ", ".join(f"{d}: {count(s)}GB {t}" for d, t, s in volumes)
            )

        image_id = string_property(data, "ImageId")
        if image_id:
            assumptions.append(f"AMI: {image_id}")
        return MonthlyCost(amount=amount, confidence=Confidence.LOW, assumptions=assumptions)


class AutoScalingGroupCalculator(CostCalculator):
    """
    Desired capacity times the hourly price of the group's instance type.

    The instance type comes from the launch configuration or launch
    template the group references in the same template.
    """

    resource_types = ("AWS::AutoScaling::AutoScalingGroup",)

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        return self.estimate_in_template(resource, region, pricing, None)

    def estimate_in_template(
        self,
        resource: ResourceSnapshot,
        region: str,
        pricing: PricingClient,
        template: Optional[TemplateSnapshot],
    ) -> MonthlyCost:
        props = resource.properties
        capacity = number_property(props, "DesiredCapacity", number_property(props, "MinSize", 1))
        instance_type = self.instance_type(props, template)
        if not instance_type:
            return MonthlyCost.unknown(
                "Could not determine instance type from LaunchConfiguration or LaunchTemplate"
            )

        hourly = on_demand_hourly(pricing, region, instance_type)
        if hourly is None:
            return self.not_available(f"instance type {instance_type}", region)

        return MonthlyCost(
            amount=hourly * HOURS_PER_MONTH * capacity,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"{count(capacity)} instance(s) of type {instance_type}",
                f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
                "Assumes Linux OS, shared tenancy, on-demand pricing",
                "Does not include EBS volumes or data transfer costs",
            ],
        )

    def instance_type(self, props: Mapping[str, Any], template: Optional[TemplateSnapshot]) -> Optional[str]:
        config = _referenced(props.get("LaunchConfigurationName"), template)
        if config is not None and config.resource_type == "AWS::AutoScaling::LaunchConfiguration":
            instance_type = string_property(config.properties, "InstanceType")
            if instance_type:
                return instance_type

        specs = [props.get("LaunchTemplate")]
        mixed = props.get("MixedInstancesPolicy")
        if isinstance(mixed, dict) and isinstance(mixed.get("LaunchTemplate"), dict):
            specs.append(mixed["LaunchTemplate"].get("LaunchTemplateSpecification"))
        for spec in specs:
            if not isinstance(spec, dict):
                continue
            launch_template = _referenced(
                spec.get("LaunchTemplateId") or spec.get("LaunchTemplateName"), template
            )
            if launch_template is None or launch_template.resource_type != "AWS::EC2::LaunchTemplate":
                continue
            data = launch_template.properties.get("LaunchTemplateData")
            if isinstance(data, dict) and string_property(data, "InstanceType"):
                return data["InstanceType"]
        return None


def _referenced(ref: Any, template: Optional[TemplateSnapshot]) -> Optional[ResourceSnapshot]:
    """Resource named by ``{"Ref": id}`` or a plain logical id."""
    if template is None:
        return None
    if isinstance(ref, dict) and isinstance(ref.get("Ref"), str):
        return template.get(ref["Ref"])
    if isinstance(ref, str):
        return template.get(ref)
    return None


class ECSCalculator(CostCalculator):
    """
    ECS services.

    Fargate tasks are priced per vCPU-hour and GB-hour. The EC2 launch type
    is priced through its container instances, so the service itself is 0.
    """

    resource_types = ("AWS::ECS::Service",)

    def __init__(self, usage: Optional[ECSUsage] = None):
        self.usage = usage or ECSUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        props = resource.properties
        tasks = number_property(props, "DesiredCount", 1)
        launch_type = string_property(props, "LaunchType") or "FARGATE"

        if launch_type == "EC2":
            return MonthlyCost(
                amount=Decimal("0"),
                confidence=Confidence.LOW,
                assumptions=[
                    f"{count(tasks)} task(s) running on EC2 launch type",
                    "EC2 launch type costs depend on the underlying EC2 instances",
                    "Refer to EC2 instance costs for actual pricing",
                ],
            )
        if launch_type != "FARGATE":
            return MonthlyCost.unknown(f"Unsupported launch type: {launch_type}")

        vcpu_hour = self.lookup(pricing, "AmazonECS", region, {
            "productFamily": "Compute",
            "usagetype": usage_type(region, "Fargate-vCPU-Hours:perCPU"),
        })
        gb_hour = self.lookup(pricing, "AmazonECS", region, {
            "productFamily": "Compute",
            "usagetype": usage_type(region, "Fargate-GB-Hours"),
        })
        if vcpu_hour is None or gb_hour is None:
            return self.not_available("ECS Fargate", region)

        vcpu = self.usage.fargate_vcpu
        memory_gb = self.usage.fargate_memory_gb
        amount = tasks * (vcpu * vcpu_hour + memory_gb * gb_hour) * HOURS_PER_MONTH
        return MonthlyCost(
            amount=amount,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"{count(tasks)} task(s) running",
                f"Assumes {vcpu} vCPU per task",
                f"Assumes {memory_gb} GB memory per task",
                f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
                "Fargate launch type",
                "Does not include data transfer or storage costs",
            ],
        )


class LambdaCalculator(CostCalculator):
    """Request charges plus GB-seconds of compute."""

    resource_types = ("AWS::Lambda::Function",)

    DEFAULT_MEMORY_MB = 128

    def __init__(self, usage: Optional[LambdaUsage] = None):
        self.usage = usage or LambdaUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        memory_mb = number_property(resource.properties, "MemorySize", self.DEFAULT_MEMORY_MB)

        request_price = self.lookup(pricing, "AWSLambda", region, {"group": "AWS-Lambda-Requests"})
        duration_price = self.lookup(pricing, "AWSLambda", region, {"group": "AWS-Lambda-Duration"})
        if request_price is None or duration_price is None:
            return self.not_available("Lambda", region)

        invocations = Decimal(self.usage.invocations_per_month)
        duration_ms = self.usage.average_duration_ms
        gb_seconds = (memory_mb / 1024) * (duration_ms / 1000) * invocations

        amount = (invocations / MILLION) * request_price + gb_seconds * duration_price
        return MonthlyCost(
            amount=amount,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Assumes {count(invocations)} invocations per month",
                f"Assumes {count(duration_ms)}ms average execution time",
                f"Assumes {count(memory_mb)}MB memory allocation",
            ],
        )
