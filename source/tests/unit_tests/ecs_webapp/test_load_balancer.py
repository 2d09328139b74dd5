# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from conftest import logical_id


def test_load_balancer_is_public(dev_stack, dev_template):
    alb_sg = logical_id(dev_stack, dev_stack.security_groups.alb_security_group)

    dev_template.has_resource_properties("AWS::ElasticLoadBalancingV2::LoadBalancer", {
        "Name": "webapp-dev-alb",
        "Scheme": "internet-facing",
        "Type": "application",
        "SecurityGroups": [{"Fn::GetAtt": [alb_sg, "GroupId"]}],
    })


def test_target_group_health_check(dev_template):
    dev_template.has_resource_properties("AWS::ElasticLoadBalancingV2::TargetGroup", {
        "Name": "webapp-dev-tg",
        "Port": 8080,
        "Protocol": "HTTP",
        "TargetType": "instance",
        "HealthCheckEnabled": True,
        "HealthCheckPath": "/health",
        "HealthCheckIntervalSeconds": 30,
        "HealthCheckTimeoutSeconds": 5,
        "HealthyThresholdCount": 2,
        "UnhealthyThresholdCount": 2,
        "Matcher": {"HttpCode": "200"},
    })


def test_listener_forwards_to_target_group(dev_stack, dev_template):
    load_balancer = dev_stack.load_balancer
    target_group = logical_id(dev_stack, load_balancer.alb_target_group)

    dev_template.resource_count_is("AWS::ElasticLoadBalancingV2::Listener", 1)
    dev_template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {
        "LoadBalancerArn": {"Ref": logical_id(dev_stack, load_balancer.webapp_alb)},
        "Port": 80,
        "Protocol": "HTTP",
        "DefaultActions": [{"Type": "forward", "TargetGroupArn": {"Ref": target_group}}],
    })
