"""
Storage and database calculators: S3, EFS, DynamoDB, RDS, ElastiCache.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional

from costdelta.core.config import DynamoDBUsage, EFSUsage, RDSUsage, S3Usage
from costdelta.core.schema import Confidence, MonthlyCost, ResourceSnapshot
from costdelta.pricing.calculators.base import (
    HOURS_PER_MONTH,
    MILLION,
    CostCalculator,
    bool_property,
    count,
    number_property,
    string_property,
    usd,
)
from costdelta.pricing.client import PricingClient
from costdelta.pricing.regions import usage_type

RDS_ENGINES = {
    "mysql": "MySQL",
    "postgres": "PostgreSQL",
    "mariadb": "MariaDB",
    "oracle-se2": "Oracle",
    "sqlserver-ex": "SQL Server",
    "aurora-mysql": "Aurora MySQL",
    "aurora-postgresql": "Aurora PostgreSQL",
}

CACHE_ENGINES = {
    "redis": "Redis",
    "memcached": "Memcached",
    "valkey": "Valkey",
}


class S3Calculator(CostCalculator):
    """Standard storage, plus request charges when request volumes are configured."""

    resource_types = ("AWS::S3::Bucket",)

    def __init__(self, usage: Optional[S3Usage] = None):
        self.usage = usage or S3Usage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        per_gb = self.lookup(pricing, "AmazonS3", region, {
            "storageClass": "General Purpose",
            "volumeType": "Standard",
        })
        if per_gb is None:
            return self.not_available("S3", region)

        storage_gb = self.usage.storage_gb
        amount = per_gb * storage_gb
        assumptions = [f"Assumes {count(storage_gb)} GB of standard storage"]

        requests = (
            ("GET", self.usage.get_requests, "S3-API-Tier2"),
            ("PUT", self.usage.put_requests, "S3-API-Tier1"),
        )
        priced_requests = False
        for label, volume, group in requests:
            if not volume:
                continue
            per_request = self.lookup(pricing, "AmazonS3", region, {"group": group})
            if per_request is None:
                assumptions.append(f"{label} request pricing not available, not included")
                continue
            amount += per_request * volume
            priced_requests = True
            assumptions.append(f"Assumes {count(volume)} {label} requests per month")

        if not priced_requests:
            assumptions.append("Does not include request costs")
        assumptions.append("Does not include data transfer")
        return MonthlyCost(amount=amount, confidence=Confidence.MEDIUM, assumptions=assumptions)


class DynamoDBCalculator(CostCalculator):
    """
    DynamoDB tables in on-demand or provisioned capacity mode.

    A table with ProvisionedThroughput is always treated as provisioned.
    """

    resource_types = ("AWS::DynamoDB::Table",)

    DEFAULT_CAPACITY_UNITS = 5

    def __init__(self, usage: Optional[DynamoDBUsage] = None):
        self.usage = usage or DynamoDBUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        props = resource.properties
        billing_mode = string_property(props, "BillingMode") or "PROVISIONED"
        if "ProvisionedThroughput" in props or billing_mode == "PROVISIONED":
            return self._provisioned(props, region, pricing)
        return self._on_demand(region, pricing)

    def _on_demand(self, region: str, pricing: PricingClient) -> MonthlyCost:
        read_price = self.lookup(pricing, "AmazonDynamoDB", region, {
            "group": "DDB-ReadUnits",
            "groupDescription": "OnDemand ReadRequestUnits",
        })
        write_price = self.lookup(pricing, "AmazonDynamoDB", region, {
            "group": "DDB-WriteUnits",
            "groupDescription": "OnDemand WriteRequestUnits",
        })
        if read_price is None or write_price is None:
            return self.not_available("DynamoDB on-demand mode", region, "On-demand billing mode")

        reads = Decimal(self.usage.read_requests_per_month)
        writes = Decimal(self.usage.write_requests_per_month)
        return MonthlyCost(
            amount=(reads / MILLION) * read_price + (writes / MILLION) * write_price,
            confidence=Confidence.MEDIUM,
            assumptions=[
                f"Assumes {count(reads)} read requests per month",
                f"Assumes {count(writes)} write requests per month",
                "On-demand billing mode",
                "Does not include storage costs or other features (streams, backups, etc.)",
            ],
        )

    def _provisioned(self, props: Mapping[str, Any], region: str, pricing: PricingClient) -> MonthlyCost:
        throughput = props.get("ProvisionedThroughput")
        if not isinstance(throughput, dict):
            throughput = {}
        rcu = number_property(throughput, "ReadCapacityUnits", self.DEFAULT_CAPACITY_UNITS)
        wcu = number_property(throughput, "WriteCapacityUnits", self.DEFAULT_CAPACITY_UNITS)

        read_hour = self.lookup(pricing, "AmazonDynamoDB", region, {
            "usagetype": usage_type(region, "ReadCapacityUnit-Hrs"),
        })
        write_hour = self.lookup(pricing, "AmazonDynamoDB", region, {
            "usagetype": usage_type(region, "WriteCapacityUnit-Hrs"),
        })
        if read_hour is None or write_hour is None:
            return self.not_available("DynamoDB provisioned mode", region, "Provisioned billing mode")

        return MonthlyCost(
            amount=(rcu * read_hour + wcu * write_hour) * HOURS_PER_MONTH,
            confidence=Confidence.HIGH,
            assumptions=[
                f"{count(rcu)} provisioned read capacity units",
                f"{count(wcu)} provisioned write capacity units",
                f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
                "Provisioned billing mode",
                "Does not include storage costs or other features (streams, backups, etc.)",
            ],
        )


class RDSCalculator(CostCalculator):
    """Instance hours plus General Purpose storage, Multi-AZ aware."""

    resource_types = ("AWS::RDS::DBInstance",)

    def __init__(self, usage: Optional[RDSUsage] = None):
        self.usage = usage or RDSUsage()

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        props = resource.properties
        instance_class = string_property(props, "DBInstanceClass")
        engine = string_property(props, "Engine")
        if not instance_class or not engine:
            return MonthlyCost.unknown("DB instance class or engine not specified")

        database_engine = RDS_ENGINES.get(engine.lower(), engine)
        deployment = "Multi-AZ" if bool_property(props, "MultiAZ") else "Single-AZ"
        storage_gb = number_property(props, "AllocatedStorage", self.usage.storage_gb)

        hourly = self.lookup(pricing, "AmazonRDS", region, {
            "instanceType": instance_class,
            "databaseEngine": database_engine,
            "deploymentOption": deployment,
        })
        if hourly is None:
            return self.not_available(f"instance class {instance_class}", region)

        storage_price = self.lookup(pricing, "AmazonRDS", region, {
            "volumeType": "General Purpose",
            "databaseEngine": database_engine,
            "deploymentOption": deployment,
        })

        instance_cost = hourly * HOURS_PER_MONTH
        assumptions = [
            f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
            f"Assumes {deployment} deployment",
        ]
        if storage_price is None:
            assumptions.append("Storage pricing not available, storage cost not included")
            return MonthlyCost(amount=instance_cost, confidence=Confidence.MEDIUM, assumptions=assumptions)

        assumptions.append(f"Assumes {count(storage_gb)} GB of General Purpose (gp2) storage")
        return MonthlyCost(
            amount=instance_cost + storage_price * storage_gb,
            confidence=Confidence.HIGH,
            assumptions=assumptions,
        )


class ElastiCacheCalculator(CostCalculator):
    resource_types = ("AWS::ElastiCache::CacheCluster",)

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        props = resource.properties
        node_type = string_property(props, "CacheNodeType")
        engine = string_property(props, "Engine")
        if not node_type or not engine:
            return MonthlyCost.unknown("Cache node type or engine not specified")
        nodes = number_property(props, "NumCacheNodes", 1)

        hourly = self.lookup(pricing, "AmazonElastiCache", region, {
            "instanceType": node_type,
            "cacheEngine": CACHE_ENGINES.get(engine.lower(), engine),
        })
        if hourly is None:
            return self.not_available(f"node type {node_type} with engine {engine}", region)

        per_node = hourly * HOURS_PER_MONTH
        amount = per_node * nodes
        assumptions: List[str] = [
            f"Assumes {HOURS_PER_MONTH} hours per month (24/7 operation)",
            f"Node type: {node_type}",
            f"Engine: {engine}",
            f"Number of cache nodes: {count(nodes)}",
            f"Per-node monthly cost: {usd(per_node)}",
        ]
        if string_property(props, "AZMode") == "cross-az":
            amount *= 2
            assumptions.append("Multi-AZ deployment with replica nodes (cost doubled)")
        else:
            assumptions.append("Single-AZ deployment")
        return MonthlyCost(amount=amount, confidence=Confidence.HIGH, assumptions=assumptions)


class EFSCalculator(CostCalculator):
    """
    EFS file systems: Standard storage, Infrequent Access storage when a
    lifecycle policy moves data there, and provisioned throughput.
    """

    resource_types = ("AWS::EFS::FileSystem",)

    # Share of IA data assumed to be read back each month
    IA_ACCESS_RATIO = Decimal("0.10")

    def __init__(self, usage: Optional[EFSUsage] = None):
        self.usage = usage or EFSUsage()

    def _price(self, pricing: PricingClient, region: str, family: str, suffix: str) -> Optional[Decimal]:
        return self.lookup(pricing, "AmazonEFS", region, {
            "productFamily": family,
            "usagetype": usage_type(region, suffix),
        })

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        props = resource.properties
        policies = props.get("LifecyclePolicies")
        has_ia = isinstance(policies, list) and any(
            isinstance(p, dict) and "TransitionToIA" in p for p in policies
        )
        throughput_mode = string_property(props, "ThroughputMode")
        provisioned = throughput_mode == "provisioned" and "ProvisionedThroughputInMibps" in props

        storage_gb = self.usage.storage_gb
        ia_share = self.usage.infrequent_access_percentage / 100 if has_ia else Decimal("0")
        ia_gb = storage_gb * ia_share
        standard_gb = storage_gb - ia_gb

        standard_price = self._price(pricing, region, "Storage", "TimedStorage-ByteHrs")
        if standard_price is None:
            return self.not_available("EFS Standard storage", region)
        amount = standard_gb * standard_price
        assumptions = [
            f"Standard storage: {count(standard_gb)} GB x {usd(standard_price, 4)}/GB",
        ]

        if ia_gb:
            ia_price = self._price(pricing, region, "Storage", "IATimedStorage-ByteHrs")
            request_price = self._price(pricing, region, "Storage", "IARequests-Bytes")
            if ia_price is None or request_price is None:
                return self.not_available("EFS Infrequent Access", region)
            accessed_gb = ia_gb * self.IA_ACCESS_RATIO
            amount += ia_gb * ia_price + accessed_gb * request_price
            assumptions.append(f"Infrequent Access storage: {count(ia_gb)} GB x {usd(ia_price, 4)}/GB")
            assumptions.append(f"IA requests (estimated 10% access): {count(accessed_gb)} GB")

        if provisioned:
            mibps = number_property(props, "ProvisionedThroughputInMibps", 0)
            throughput_price = self._price(
                pricing, region, "Provisioned Throughput", "ProvisionedTP-MiBpsHrs"
            )
            if throughput_price is None:
                return self.not_available("EFS provisioned throughput", region)
            amount += mibps * throughput_price
            assumptions.append(f"Provisioned Throughput: {count(mibps)} MiB/s x {usd(throughput_price)}")

        assumptions.append(f"Total storage: {count(storage_gb)} GB")
        if has_ia:
            assumptions.append(
                f"Lifecycle policy detected: {count(self.usage.infrequent_access_percentage)}% in Infrequent Access"
            )
        if throughput_mode:
            assumptions.append(f"Throughput mode: {throughput_mode}")
        return MonthlyCost(amount=amount, confidence=Confidence.MEDIUM, assumptions=assumptions)
