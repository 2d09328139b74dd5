# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_cdk.assertions import Match, Template

from conftest import build_stack, logical_id
from ecs_webapp.compute_capacity_construct import ComputeCapacityConstruct
from ecs_webapp.environment_config import EnvironmentConfig


def test_launch_template_is_named_and_sized(dev_template):
    dev_template.has_resource_properties("AWS::EC2::LaunchTemplate", {
        "LaunchTemplateName": "webapp-dev-lt",
        "LaunchTemplateData": {
            "InstanceType": "t3.small",
            "MetadataOptions": {"HttpTokens": "required"},
            "IamInstanceProfile": Match.any_value(),
            "UserData": Match.any_value(),
        },
    })


def test_auto_scaling_group_bounds_and_health_check(dev_template):
    dev_template.has_resource_properties("AWS::AutoScaling::AutoScalingGroup", {
        "AutoScalingGroupName": "webapp-dev-asg",
        "MinSize": "1",
        "MaxSize": "2",
        "DesiredCapacity": "1",
        "HealthCheckType": "EC2",
        "HealthCheckGracePeriod": 300,
    })


def test_auto_scaling_group_launches_latest_template_version(dev_stack, dev_template):
    launch_template = logical_id(dev_stack, dev_stack.compute_capacity.launch_template)

    dev_template.has_resource_properties("AWS::AutoScaling::AutoScalingGroup", {
        "LaunchTemplate": {
            "LaunchTemplateId": {"Ref": launch_template},
            "Version": {"Fn::GetAtt": [launch_template, "LatestVersionNumber"]},
        },
    })


def test_rolling_update_keeps_instances_in_service(dev_template):
    dev_template.has_resource("AWS::AutoScaling::AutoScalingGroup", {
        "UpdatePolicy": {
            "AutoScalingRollingUpdate": {"MaxBatchSize": 1, "MinInstancesInService": 1},
        },
    })


@pytest.mark.parametrize("min_capacity, max_capacity, desired_capacity, expected", [
    (1, 2, 1, 1),
    (2, 4, 2, 2),
    (2, 2, 2, 1),
    (1, 3, 3, 2),
    (0, 3, 0, 0),
])
def test_min_instances_in_service(min_capacity, max_capacity, desired_capacity, expected):
    config = EnvironmentConfig(
        project_name="webapp",
        environment="dev",
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        desired_capacity=desired_capacity,
    )
    assert ComputeCapacityConstruct.min_instances_in_service(config) == expected


def test_single_instance_group_is_rejected():
    with pytest.raises(ValueError, match="keep an instance in service"):
        build_stack("dev", min_capacity=1, max_capacity=1, desired_capacity=1)


@pytest.mark.parametrize("min_capacity, max_capacity, desired_capacity", [
    (1, 2, 1),
    (1, 2, 2),
    (2, 2, 2),
    (3, 5, 4),
])
def test_template_update_never_empties_the_group(min_capacity, max_capacity, desired_capacity):
    stack = build_stack(
        "dev", min_capacity=min_capacity, max_capacity=max_capacity, desired_capacity=desired_capacity
    )
    groups = Template.from_stack(stack).find_resources("AWS::AutoScaling::AutoScalingGroup")
    (group,) = groups.values()
    rolling_update = group["UpdatePolicy"]["AutoScalingRollingUpdate"]

    assert rolling_update["MinInstancesInService"] >= 1
    assert rolling_update["MinInstancesInService"] < max_capacity


def test_capacity_provider_manages_scaling(dev_stack, dev_template):
    asg = logical_id(dev_stack, dev_stack.compute_capacity.auto_scaling_group)

    dev_template.has_resource_properties("AWS::ECS::CapacityProvider", {
        "AutoScalingGroupProvider": {
            "AutoScalingGroupArn": {"Ref": asg},
            "ManagedScaling": {
                "Status": "ENABLED",
                "TargetCapacity": 100,
                "MinimumScalingStepSize": 1,
                "MaximumScalingStepSize": 2,
            },
            "ManagedTerminationProtection": "DISABLED",
        },
    })


def test_capacity_provider_is_cluster_default(dev_stack, dev_template):
    provider = logical_id(dev_stack, dev_stack.compute_capacity.capacity_provider)
    cluster = logical_id(dev_stack, dev_stack.webapp_cluster)

    dev_template.has_resource_properties("AWS::ECS::ClusterCapacityProviderAssociations", {
        "Cluster": {"Ref": cluster},
        "CapacityProviders": [{"Ref": provider}],
        "DefaultCapacityProviderStrategy": [
            {"CapacityProvider": {"Ref": provider}, "Base": 1, "Weight": 100},
        ],
    })


def test_cluster_is_named_with_container_insights(dev_template):
    dev_template.has_resource_properties("AWS::ECS::Cluster", {
        "ClusterName": "webapp-dev-cluster",
        "ClusterSettings": [{"Name": "containerInsights", "Value": "enabled"}],
    })


def test_prod_instances(prod_template):
    prod_template.has_resource_properties("AWS::EC2::LaunchTemplate", {
        "LaunchTemplateData": Match.object_like({"InstanceType": "t3.large"}),
    })
    prod_template.has_resource_properties("AWS::AutoScaling::AutoScalingGroup", {
        "MinSize": "2",
        "MaxSize": "4",
        "DesiredCapacity": "2",
    })


def test_instances_default_to_the_recommended_ecs_image(dev_template):
    dev_template.has_resource_properties("AWS::EC2::LaunchTemplate", {
        "LaunchTemplateData": Match.object_like({
            "ImageId": {"Ref": Match.string_like_regexp("SsmParameterValue.*ecs.*amazonlinux2023")},
        }),
    })


def test_pinned_ami_is_not_resolved_on_deploy():
    stack = build_stack("dev", region="us-east-1", instance_ami_id="ami-0123456789abcdef0")
    template = Template.from_stack(stack)

    template.has_resource_properties("AWS::EC2::LaunchTemplate", {
        "LaunchTemplateData": Match.object_like({
            "ImageId": {"Fn::FindInMap": Match.any_value()},
        }),
    })
    mappings = template.to_json()["Mappings"]
    assert [{"us-east-1": {"ami": "ami-0123456789abcdef0"}}] == list(mappings.values())
    assert not [
        name for name in template.to_json().get("Parameters", {}) if "ecsoptimized" in name.lower()
    ]
