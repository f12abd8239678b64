"""
Unit tests for the per-resource-type cost calculators.

Prices come from FakePriceSource; expected amounts are worked out by hand
from the unit prices and the default usage assumptions.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from costdelta.core.config import EFSUsage, LoadBalancerUsage, S3Usage, SNSUsage, UsageAssumptions
from costdelta.core.errors import PricingLookupError
from costdelta.core.schema import Confidence
from costdelta.pricing.calculators import (
    APIGatewayCalculator,
    AutoScalingGroupCalculator,
    CloudFrontCalculator,
    DynamoDBCalculator,
    EC2Calculator,
    ECSCalculator,
    EFSCalculator,
    ElastiCacheCalculator,
    FreeResourceCalculator,
    LambdaCalculator,
    LaunchTemplateCalculator,
    LoadBalancerCalculator,
    NatGatewayCalculator,
    RDSCalculator,
    S3Calculator,
    SecretsManagerCalculator,
    SNSCalculator,
    SQSCalculator,
    StepFunctionsCalculator,
    VPCEndpointCalculator,
    default_calculators,
)
from costdelta.pricing.calculators.base import count, number_property
from costdelta.pricing.client import PricingClient
from costdelta.storage import InMemoryPriceStore
from tests.fixtures.pricing import FakePriceSource, resource, snapshot

REGION = "us-east-1"


def _price(calculator, res, prices, default=None):
    source = FakePriceSource(prices=prices, default=default)
    client = PricingClient(source, InMemoryPriceStore(), sleep=lambda _: None)
    return calculator.calculate(res, REGION, client), source


def _filters(source, index=0):
    return {f.field: f.value for f in source.calls[index][0].filters}


class TestEC2:
    def test_hourly_price_times_730(self):
        cost, source = _price(
            EC2Calculator(),
            resource("Web", "AWS::EC2::Instance", InstanceType="t3.micro"),
            {("AmazonEC2", "instanceType", "t3.micro"): Decimal("0.1")},
        )

        assert cost.amount == Decimal("73")
        assert cost.confidence is Confidence.HIGH
        assert _filters(source)["operatingSystem"] == "Linux"
        assert any("730 hours" in a for a in cost.assumptions)

    def test_missing_instance_type(self):
        cost, source = _price(EC2Calculator(), resource("Web", "AWS::EC2::Instance"), {})

        assert cost.confidence is Confidence.UNKNOWN
        assert source.call_count == 0

    def test_unknown_instance_type(self):
        cost, _ = _price(
            EC2Calculator(), resource("Web", "AWS::EC2::Instance", InstanceType="z9.huge"), {}
        )

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions == ["Pricing data not available for instance type z9.huge in region us-east-1"]

    def test_lookup_failure_becomes_unknown(self):
        source = FakePriceSource(errors=[PricingLookupError("bad filter")])
        client = PricingClient(source, InMemoryPriceStore(), sleep=lambda _: None)

        cost = EC2Calculator().calculate(
            resource("Web", "AWS::EC2::Instance", InstanceType="t3.micro"), REGION, client
        )

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions == ["Failed to fetch pricing: bad filter"]


class TestECS:
    PRICES = {
        ("AmazonECS", "usagetype", "USE1-Fargate-vCPU-Hours:perCPU"): Decimal("0.04048"),
        ("AmazonECS", "usagetype", "USE1-Fargate-GB-Hours"): Decimal("0.004445"),
    }

    def test_fargate_tasks(self):
        cost, _ = _price(
            ECSCalculator(), resource("Svc", "AWS::ECS::Service", DesiredCount=2), self.PRICES
        )

        # 2 * (0.25 * 0.04048 + 0.5 * 0.004445) * 730
        assert cost.amount == Decimal("18.02005")
        assert cost.confidence is Confidence.MEDIUM

    def test_ec2_launch_type_is_zero_low_confidence(self):
        cost, source = _price(
            ECSCalculator(), resource("Svc", "AWS::ECS::Service", LaunchType="EC2"), self.PRICES
        )

        assert cost.amount == 0
        assert cost.confidence is Confidence.LOW
        assert source.call_count == 0

    def test_unsupported_launch_type(self):
        cost, _ = _price(
            ECSCalculator(), resource("Svc", "AWS::ECS::Service", LaunchType="EXTERNAL"), self.PRICES
        )

        assert cost.confidence is Confidence.UNKNOWN


class TestLambda:
    def test_requests_plus_gb_seconds(self):
        cost, _ = _price(
            LambdaCalculator(),
            resource("Fn", "AWS::Lambda::Function"),
            {
                ("AWSLambda", "group", "AWS-Lambda-Requests"): Decimal("0.20"),
                ("AWSLambda", "group", "AWS-Lambda-Duration"): Decimal("0.0000166667"),
            },
        )

        # 1M requests at 0.20/M + (128/1024 GB * 1 s * 1M) GB-s at 0.0000166667
        assert cost.amount == Decimal("2.2833375")
        assert "Assumes 128MB memory allocation" in cost.assumptions

    def test_unresolved_memory_size_uses_default(self):
        cost, _ = _price(
            LambdaCalculator(),
            resource("Fn", "AWS::Lambda::Function", MemorySize={"Ref": "Memory"}),
            {"AWSLambda": Decimal("1")},
        )

        assert "Assumes 128MB memory allocation" in cost.assumptions


class TestS3:
    def test_storage_only_by_default(self):
        cost, source = _price(
            S3Calculator(), resource("B", "AWS::S3::Bucket"), {"AmazonS3": Decimal("0.023")}
        )

        assert cost.amount == Decimal("2.3")
        assert source.call_count == 1
        assert "Does not include request costs" in cost.assumptions

    def test_configured_requests_are_priced(self):
        cost, _ = _price(
            S3Calculator(S3Usage(get_requests=1000)),
            resource("B", "AWS::S3::Bucket"),
            {
                ("AmazonS3", "group", "S3-API-Tier2"): Decimal("0.0000004"),
                "AmazonS3": Decimal("0.023"),
            },
        )

        assert cost.amount == Decimal("2.3004")


class TestDynamoDB:
    def test_on_demand(self):
        cost, _ = _price(
            DynamoDBCalculator(),
            resource("T", "AWS::DynamoDB::Table", BillingMode="PAY_PER_REQUEST"),
            {
                ("AmazonDynamoDB", "group", "DDB-ReadUnits"): Decimal("0.25"),
                ("AmazonDynamoDB", "group", "DDB-WriteUnits"): Decimal("1.25"),
            },
        )

        assert cost.amount == Decimal("3.75")
        assert cost.confidence is Confidence.MEDIUM

    def test_provisioned(self):
        cost, _ = _price(
            DynamoDBCalculator(),
            resource(
                "T", "AWS::DynamoDB::Table",
                BillingMode="PROVISIONED",
                ProvisionedThroughput={"ReadCapacityUnits": 10, "WriteCapacityUnits": 5},
            ),
            {
                ("AmazonDynamoDB", "usagetype", "USE1-ReadCapacityUnit-Hrs"): Decimal("0.00013"),
                ("AmazonDynamoDB", "usagetype", "USE1-WriteCapacityUnit-Hrs"): Decimal("0.00065"),
            },
        )

        assert cost.amount == Decimal("3.3215")
        assert cost.confidence is Confidence.HIGH

    def test_missing_billing_mode_is_provisioned_with_defaults(self):
        cost, _ = _price(
            DynamoDBCalculator(), resource("T", "AWS::DynamoDB::Table"), {"AmazonDynamoDB": Decimal("0.001")}
        )

        assert "5 provisioned read capacity units" in cost.assumptions
        assert cost.amount == Decimal("7.3")


class TestRDS:
    PRICES = {
        ("AmazonRDS", "instanceType", "db.t3.micro"): Decimal("0.017"),
        ("AmazonRDS", "volumeType", "General Purpose"): Decimal("0.115"),
    }

    def test_instance_plus_storage(self):
        cost, source = _price(
            RDSCalculator(),
            resource("Db", "AWS::RDS::DBInstance", DBInstanceClass="db.t3.micro", Engine="postgres",
                     AllocatedStorage="20"),
            self.PRICES,
        )

        assert cost.amount == Decimal("14.71")
        assert cost.confidence is Confidence.HIGH
        assert _filters(source)["databaseEngine"] == "PostgreSQL"
        assert _filters(source)["deploymentOption"] == "Single-AZ"

    def test_multi_az(self):
        _, source = _price(
            RDSCalculator(),
            resource("Db", "AWS::RDS::DBInstance", DBInstanceClass="db.t3.micro", Engine="mysql",
                     MultiAZ="true"),
            self.PRICES,
        )

        assert _filters(source)["deploymentOption"] == "Multi-AZ"

    def test_missing_storage_price_lowers_confidence(self):
        cost, _ = _price(
            RDSCalculator(),
            resource("Db", "AWS::RDS::DBInstance", DBInstanceClass="db.t3.micro", Engine="postgres"),
            {("AmazonRDS", "instanceType", "db.t3.micro"): Decimal("0.017")},
        )

        assert cost.amount == Decimal("12.41")
        assert cost.confidence is Confidence.MEDIUM

    def test_missing_engine(self):
        cost, _ = _price(
            RDSCalculator(), resource("Db", "AWS::RDS::DBInstance", DBInstanceClass="db.t3.micro"), self.PRICES
        )

        assert cost.confidence is Confidence.UNKNOWN


class TestElastiCache:
    def test_nodes_and_cross_az(self):
        props = {"CacheNodeType": "cache.t3.micro", "Engine": "redis", "NumCacheNodes": 2}
        prices = {"AmazonElastiCache": Decimal("0.017")}

        single, _ = _price(ElastiCacheCalculator(), resource("C", "AWS::ElastiCache::CacheCluster", **props), prices)
        cross, _ = _price(
            ElastiCacheCalculator(),
            resource("C", "AWS::ElastiCache::CacheCluster", AZMode="cross-az", **props),
            prices,
        )

        assert single.amount == Decimal("24.82")
        assert cross.amount == Decimal("49.64")


class TestNetwork:
    def test_nat_gateway(self):
        cost, _ = _price(
            NatGatewayCalculator(),
            resource("Nat", "AWS::EC2::NatGateway"),
            {
                ("AmazonEC2", "usagetype", "USE1-NatGateway-Hours"): Decimal("0.045"),
                ("AmazonEC2", "usagetype", "USE1-NatGateway-Bytes"): Decimal("0.045"),
            },
        )

        assert cost.amount == Decimal("37.35")
        assert cost.assumptions[-1] == "Total: $37.35/month"

    def test_nat_gateway_without_pricing(self):
        cost, _ = _price(NatGatewayCalculator(), resource("Nat", "AWS::EC2::NatGateway"), {})

        assert cost.confidence is Confidence.UNKNOWN
        assert "Would assume 100 GB of data processing per month" in cost.assumptions

    def test_application_load_balancer(self):
        cost, source = _price(
            LoadBalancerCalculator(),
            resource("Alb", "AWS::ElasticLoadBalancingV2::LoadBalancer"),
            {
                ("AWSELB", "usagetype", "USE1-LoadBalancerUsage"): Decimal("0.0225"),
                ("AWSELB", "usagetype", "USE1-LCUUsage"): Decimal("0.008"),
            },
        )

        # 0.0225 * 730 + 0.008 * 1 LCU * 730
        assert cost.amount == Decimal("22.265")
        assert _filters(source)["productFamily"] == "Load Balancer-Application"

    def test_network_load_balancer_uses_processed_bytes_dimension(self):
        cost, source = _price(
            LoadBalancerCalculator(),
            resource("Nlb", "AWS::ElasticLoadBalancingV2::LoadBalancer", Type="network"),
            {
                ("AWSELB", "usagetype", "USE1-LoadBalancerUsage"): Decimal("0.0225"),
                ("AWSELB", "usagetype", "USE1-LCUUsage"): Decimal("0.006"),
            },
        )

        # 100 GB / 730 h NLCU dominates: 16.425 + 0.006 * 100
        assert abs(cost.amount - Decimal("17.025")) < Decimal("0.0001")
        assert _filters(source)["productFamily"] == "Load Balancer-Network"

    def test_capacity_units(self):
        usage = LoadBalancerUsage(
            new_connections_per_second=Decimal("50"),
            active_connections_per_minute=Decimal("3000"),
            processed_bytes_gb=Decimal("0"),
        )

        assert LoadBalancerCalculator.capacity_units("application", usage) == (2, 1, 0)

    def test_unsupported_load_balancer_type(self):
        cost, _ = _price(
            LoadBalancerCalculator(),
            resource("Gwlb", "AWS::ElasticLoadBalancingV2::LoadBalancer", Type="gateway"),
            {},
        )

        assert cost.confidence is Confidence.UNKNOWN

    @pytest.mark.parametrize("props", [
        {"VpcEndpointType": "Gateway", "ServiceName": "com.amazonaws.us-east-1.s3"},
        {"ServiceName": "com.amazonaws.us-east-1.dynamodb"},
    ])
    def test_gateway_endpoint_is_free(self, props):
        cost, source = _price(VPCEndpointCalculator(), resource("Ep", "AWS::EC2::VPCEndpoint", **props), {})

        assert cost.amount == 0
        assert cost.confidence is Confidence.HIGH
        assert source.call_count == 0

    def test_interface_endpoint(self):
        cost, _ = _price(
            VPCEndpointCalculator(),
            resource("Ep", "AWS::EC2::VPCEndpoint", VpcEndpointType="Interface",
                     ServiceName="com.amazonaws.us-east-1.ecr.api"),
            {"AmazonVPC": Decimal("0.01")},
        )

        assert cost.amount == Decimal("8.3")

    def test_cloudfront(self):
        cost, _ = _price(
            CloudFrontCalculator(),
            resource("Cdn", "AWS::CloudFront::Distribution"),
            {
                ("AmazonCloudFront", "transferType", "CloudFront to Internet"): Decimal("0.085"),
                ("AmazonCloudFront", "requestType", "HTTP-Requests"): Decimal("0.0075"),
            },
        )

        assert cost.amount == Decimal("9.25")


class TestApiGateway:
    def test_rest_api(self):
        cost, source = _price(
            APIGatewayCalculator(),
            resource("Api", "AWS::ApiGateway::RestApi"),
            {("AmazonApiGateway", "usagetype", "USE1-ApiGatewayRequest"): Decimal("3.5")},
        )

        assert cost.amount == Decimal("3.5")

    def test_http_api_is_default_for_v2(self):
        cost, source = _price(
            APIGatewayCalculator(),
            resource("Api", "AWS::ApiGatewayV2::Api"),
            {("AmazonApiGateway", "usagetype", "USE1-ApiGatewayHttpRequest"): Decimal("1.0")},
        )

        assert cost.amount == Decimal("1.0")
        assert "HTTP API type" in cost.assumptions

    def test_websocket_api(self):
        cost, _ = _price(
            APIGatewayCalculator(),
            resource("Ws", "AWS::ApiGatewayV2::Api", ProtocolType="WEBSOCKET"),
            {
                ("AmazonApiGateway", "usagetype", "USE1-ApiGatewayMessage"): Decimal("1.0"),
                ("AmazonApiGateway", "usagetype", "USE1-ApiGatewayMinute"): Decimal("0.00000025"),
            },
        )

        assert cost.amount == Decimal("1.025")


class TestIntegration:
    def test_standard_queue(self):
        cost, source = _price(SQSCalculator(), resource("Q", "AWS::SQS::Queue"), {"AWSQueueService": Decimal("0.40")})

        assert cost.amount == Decimal("0.40")
        assert _filters(source)["usagetype"] == "USE1-Requests"

    def test_fifo_queue(self):
        cost, source = _price(
            SQSCalculator(),
            resource("Q", "AWS::SQS::Queue", FifoQueue=True),
            {"AWSQueueService": Decimal("0.50")},
        )

        assert cost.amount == Decimal("0.50")
        assert _filters(source)["usagetype"] == "USE1-Requests-FIFO"
        assert "FIFO queue" in cost.assumptions

    def test_queue_without_pricing_is_unknown(self):
        cost, _ = _price(SQSCalculator(), resource("Q", "AWS::SQS::Queue"), {})

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.amount == 0

    def test_secret(self):
        cost, _ = _price(
            SecretsManagerCalculator(),
            resource("S", "AWS::SecretsManager::Secret"),
            {
                ("AWSSecretsManager", "group", "SecretStorage"): Decimal("0.40"),
                ("AWSSecretsManager", "group", "SecretRotation"): Decimal("0.05"),
            },
        )

        assert cost.amount == Decimal("0.45")

    def test_standard_state_machine(self):
        cost, _ = _price(
            StepFunctionsCalculator(),
            resource("Sm", "AWS::StepFunctions::StateMachine"),
            {("AWSStepFunctions", "usagetype", "USE1-StateTransition"): Decimal("0.025")},
        )

        assert cost.amount == Decimal("2.5")

    def test_express_state_machine(self):
        cost, _ = _price(
            StepFunctionsCalculator(),
            resource("Sm", "AWS::StepFunctions::StateMachine", StateMachineType="EXPRESS"),
            {
                ("AWSStepFunctions", "usagetype", "USE1-ExpressRequest"): Decimal("0.000001"),
                ("AWSStepFunctions", "usagetype", "USE1-ExpressDuration"): Decimal("0.00001667"),
            },
        )

        # 10,000 requests + 625 GB-s (64 MB for 1 s each)
        assert cost.amount == Decimal("0.02041875")


class TestLaunchTemplate:
    def test_instance_and_volumes(self):
        cost, _ = _price(
            LaunchTemplateCalculator(),
            resource("Lt", "AWS::EC2::LaunchTemplate", LaunchTemplateData={
                "InstanceType": "t3.micro",
                "BlockDeviceMappings": [
                    {"DeviceName": "/dev/xvda", "Ebs": {"VolumeType": "gp3", "VolumeSize": 20}},
                ],
            }),
            {
                ("AmazonEC2", "instanceType", "t3.micro"): Decimal("0.0104"),
                ("AmazonEC2", "volumeApiName", "gp3"): Decimal("0.08"),
            },
        )

        # 0.0104 * 730 + 20 * 0.08
        assert cost.amount == Decimal("9.192")
        assert cost.confidence is Confidence.LOW
        assert "EBS volumes: /dev/xvda: 20GB gp3" in cost.assumptions

    def test_unpriced_volume_is_left_out(self):
        cost, _ = _price(
            LaunchTemplateCalculator(),
            resource("Lt", "AWS::EC2::LaunchTemplate", LaunchTemplateData={
                "InstanceType": "t3.micro",
                "BlockDeviceMappings": [{"DeviceName": "/dev/sdb", "Ebs": {"VolumeType": "io2"}}],
            }),
            {("AmazonEC2", "instanceType", "t3.micro"): Decimal("0.0104")},
        )

        assert cost.amount == Decimal("7.592")
        assert "io2 volume pricing not available, /dev/sdb not included" in cost.assumptions

    def test_no_instance_type(self):
        cost, source = _price(
            LaunchTemplateCalculator(),
            resource("Lt", "AWS::EC2::LaunchTemplate", LaunchTemplateData={"ImageId": "ami-123"}),
            {},
        )

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions[0] == "LaunchTemplate does not specify an instance type"
        assert source.call_count == 0


class TestAutoScalingGroup:
    PRICES = {("AmazonEC2", "instanceType", "t3.micro"): Decimal("0.1")}

    def _calculate(self, group, *siblings):
        source = FakePriceSource(prices=self.PRICES)
        client = PricingClient(source, InMemoryPriceStore(), sleep=lambda _: None)
        template = snapshot(group, *siblings)
        return AutoScalingGroupCalculator().calculate(group, REGION, client, template)

    def test_desired_capacity_from_launch_template(self):
        launch_template = resource(
            "Lt", "AWS::EC2::LaunchTemplate", LaunchTemplateData={"InstanceType": "t3.micro"}
        )
        group = resource(
            "Asg", "AWS::AutoScaling::AutoScalingGroup",
            DesiredCapacity="3", MinSize="1", MaxSize="6",
            LaunchTemplate={"LaunchTemplateId": {"Ref": "Lt"}, "Version": "1"},
        )

        cost = self._calculate(group, launch_template)

        assert cost.amount == Decimal("219")
        assert cost.confidence is Confidence.MEDIUM
        assert cost.assumptions[0] == "3 instance(s) of type t3.micro"

    def test_min_size_from_launch_configuration(self):
        config = resource("Lc", "AWS::AutoScaling::LaunchConfiguration", InstanceType="t3.micro")
        group = resource(
            "Asg", "AWS::AutoScaling::AutoScalingGroup",
            MinSize="2", MaxSize="4", LaunchConfigurationName={"Ref": "Lc"},
        )

        assert self._calculate(group, config).amount == Decimal("146")

    def test_mixed_instances_policy(self):
        launch_template = resource(
            "Lt", "AWS::EC2::LaunchTemplate", LaunchTemplateData={"InstanceType": "t3.micro"}
        )
        group = resource(
            "Asg", "AWS::AutoScaling::AutoScalingGroup",
            MixedInstancesPolicy={
                "LaunchTemplate": {"LaunchTemplateSpecification": {"LaunchTemplateName": "Lt"}},
            },
        )

        assert self._calculate(group, launch_template).amount == Decimal("73")

    def test_unresolvable_instance_type(self):
        group = resource(
            "Asg", "AWS::AutoScaling::AutoScalingGroup",
            DesiredCapacity=2, LaunchTemplate={"LaunchTemplateId": "lt-0abc"},
        )

        cost = self._calculate(group)

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions == ["Could not determine instance type from LaunchConfiguration or LaunchTemplate"]

    def test_without_template_context_is_unknown(self):
        group = resource(
            "Asg", "AWS::AutoScaling::AutoScalingGroup", LaunchConfigurationName={"Ref": "Lc"}
        )

        cost, _ = _price(AutoScalingGroupCalculator(), group, self.PRICES)

        assert cost.confidence is Confidence.UNKNOWN


class TestEFS:
    PRICES = {
        ("AmazonEFS", "usagetype", "USE1-TimedStorage-ByteHrs"): Decimal("0.30"),
        ("AmazonEFS", "usagetype", "USE1-IATimedStorage-ByteHrs"): Decimal("0.025"),
        ("AmazonEFS", "usagetype", "USE1-IARequests-Bytes"): Decimal("0.01"),
        ("AmazonEFS", "usagetype", "USE1-ProvisionedTP-MiBpsHrs"): Decimal("6.00"),
    }

    def test_standard_storage(self):
        cost, source = _price(EFSCalculator(), resource("Fs", "AWS::EFS::FileSystem"), self.PRICES)

        assert cost.amount == Decimal("30")
        assert cost.confidence is Confidence.MEDIUM
        assert _filters(source)["productFamily"] == "Storage"

    def test_lifecycle_policy_moves_share_to_ia(self):
        usage = EFSUsage.model_validate({"infrequentAccessPercentage": 40})
        fs = resource(
            "Fs", "AWS::EFS::FileSystem",
            LifecyclePolicies=[{"TransitionToIA": "AFTER_30_DAYS"}],
        )

        cost, _ = _price(EFSCalculator(usage), fs, self.PRICES)

        # 60 GB * 0.30 + 40 GB * 0.025 + 4 GB read back * 0.01
        assert cost.amount == Decimal("19.04")
        assert "Lifecycle policy detected: 40% in Infrequent Access" in cost.assumptions

    def test_ia_share_ignored_without_lifecycle_policy(self):
        usage = EFSUsage.model_validate({"infrequentAccessPercentage": 40})

        cost, _ = _price(EFSCalculator(usage), resource("Fs", "AWS::EFS::FileSystem"), self.PRICES)

        assert cost.amount == Decimal("30")

    def test_provisioned_throughput(self):
        fs = resource(
            "Fs", "AWS::EFS::FileSystem",
            ThroughputMode="provisioned", ProvisionedThroughputInMibps=10,
        )

        cost, _ = _price(EFSCalculator(), fs, self.PRICES)

        assert cost.amount == Decimal("90")
        assert "Throughput mode: provisioned" in cost.assumptions

    def test_missing_storage_price_is_unknown(self):
        cost, _ = _price(EFSCalculator(), resource("Fs", "AWS::EFS::FileSystem"), {})

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions == ["Pricing data not available for EFS Standard storage in region us-east-1"]


class TestSNS:
    PRICES = {
        ("AmazonSNS", "usagetype", "USE1-PublishRequests"): Decimal("0.50"),
        ("AmazonSNS", "usagetype", "USE1-DeliveryAttempts-HTTP"): Decimal("0.60"),
        ("AmazonSNS", "usagetype", "USE1-DeliveryAttempts-EMAIL"): Decimal("2.00"),
    }

    def test_default_usage_stays_in_publish_free_tier(self):
        cost, source = _price(SNSCalculator(), resource("Topic", "AWS::SNS::Topic"), self.PRICES)

        # 1M publishes are free; 1M HTTP deliveries at 0.60 per million
        assert cost.amount == Decimal("0.60")
        assert cost.confidence is Confidence.MEDIUM
        assert source.call_count == 2

    def test_publishes_and_email_deliveries(self):
        usage = SNSUsage.model_validate({"monthlyPublishes": 3_000_000, "emailDeliveries": 200_000})

        cost, _ = _price(SNSCalculator(usage), resource("Topic", "AWS::SNS::Topic"), self.PRICES)

        # 2M billable publishes + 1M HTTP + 200k email (per 100k)
        assert cost.amount == Decimal("5.60")
        assert "Email deliveries: 200,000 per month" in cost.assumptions

    def test_missing_delivery_price_is_unknown(self):
        usage = SNSUsage.model_validate({"smsDeliveries": 10})

        cost, _ = _price(SNSCalculator(usage), resource("Topic", "AWS::SNS::Topic"), self.PRICES)

        assert cost.confidence is Confidence.UNKNOWN
        assert cost.assumptions == ["Pricing data not available for SNS SMS deliveries in region us-east-1"]


class TestFreeResources:
    @pytest.mark.parametrize("resource_type", ["AWS::IAM::Role", "AWS::EC2::SecurityGroup", "AWS::CDK::Metadata"])
    def test_free_without_lookup(self, resource_type):
        cost, source = _price(FreeResourceCalculator(), resource("R", resource_type), {})

        assert cost.amount == 0
        assert cost.confidence is Confidence.HIGH
        assert source.call_count == 0


class TestRegistry:
    def test_default_calculators_claim_disjoint_types(self):
        claimed = [t for c in default_calculators() for t in c.resource_types]

        assert len(claimed) == len(set(claimed))

    @pytest.mark.parametrize("resource_type", [
        "AWS::AutoScaling::AutoScalingGroup",
        "AWS::EC2::LaunchTemplate",
        "AWS::EFS::FileSystem",
        "AWS::SNS::Topic",
        "AWS::AutoScaling::LaunchConfiguration",
    ])
    def test_default_calculators_cover(self, resource_type):
        assert any(c.supports(resource_type) for c in default_calculators())

    def test_usage_assumptions_reach_calculators(self):
        usage = UsageAssumptions.model_validate({"s3": {"storageGB": 10}})
        s3 = next(c for c in default_calculators(usage) if isinstance(c, S3Calculator))

        assert s3.usage.storage_gb == Decimal("10")


class TestHelpers:
    def test_number_property(self):
        assert number_property({"Size": "256"}, "Size", 1) == Decimal("256")
        assert number_property({"Size": {"Ref": "P"}}, "Size", 1) == Decimal("1")
        assert number_property({"Size": "abc"}, "Size", 1) == Decimal("1")
        assert number_property({}, "Size", 7) == Decimal("7")

    def test_count(self):
        assert count(1000000) == "1,000,000"
        assert count(Decimal("0.25")) == "0.25"
