"""
Resources with no recurring charge of their own.
"""
from __future__ import annotations

from costdelta.core.schema import MonthlyCost, ResourceSnapshot
from costdelta.pricing.calculators.base import CostCalculator
from costdelta.pricing.client import PricingClient

FREE_RESOURCE_TYPES = (
    # IAM
    "AWS::IAM::Role",
    "AWS::IAM::Policy",
    "AWS::IAM::ManagedPolicy",
    "AWS::IAM::InstanceProfile",
    "AWS::IAM::User",
    "AWS::IAM::Group",
    # VPC plumbing
    "AWS::EC2::VPC",
    "AWS::EC2::Subnet",
    "AWS::EC2::RouteTable",
    "AWS::EC2::Route",
    "AWS::EC2::SubnetRouteTableAssociation",
    "AWS::EC2::InternetGateway",
    "AWS::EC2::VPCGatewayAttachment",
    "AWS::EC2::SecurityGroup",
    "AWS::EC2::SecurityGroupIngress",
    "AWS::EC2::SecurityGroupEgress",
    "AWS::EC2::NetworkAcl",
    "AWS::EC2::NetworkAclEntry",
    # Wiring
    "AWS::Lambda::Permission",
    "AWS::Lambda::EventSourceMapping",
    "AWS::SQS::QueuePolicy",
    "AWS::S3::BucketPolicy",
    "AWS::SNS::TopicPolicy",
    "AWS::Events::Rule",
    "AWS::ECS::Cluster",
    "AWS::AutoScaling::LaunchConfiguration",
    "AWS::ECS::TaskDefinition",
    "AWS::ElasticLoadBalancingV2::Listener",
    "AWS::ElasticLoadBalancingV2::ListenerRule",
    "AWS::ElasticLoadBalancingV2::TargetGroup",
    "AWS::ApiGateway::Deployment",
    "AWS::ApiGateway::Stage",
    "AWS::ApiGateway::Resource",
    "AWS::ApiGateway::Method",
    "AWS::CDK::Metadata",
    "AWS::CloudFormation::WaitConditionHandle",
)


class FreeResourceCalculator(CostCalculator):
    """IAM, security groups, VPC plumbing and other configuration-only resources."""

    resource_types = FREE_RESOURCE_TYPES

    def estimate(self, resource: ResourceSnapshot, region: str, pricing: PricingClient) -> MonthlyCost:
        return MonthlyCost.free("No recurring charge")
