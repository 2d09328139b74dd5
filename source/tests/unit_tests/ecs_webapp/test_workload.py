# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk.assertions import Match, Template

from conftest import build_stack, logical_id

PINNED_ARN = "arn:aws:ecs:us-east-1:111122223333:task-definition/webapp-dev-task:7"


def task_definition(template):
    (resource,) = template.find_resources("AWS::ECS::TaskDefinition").values()
    return resource


def service(template):
    (resource,) = template.find_resources("AWS::ECS::Service").values()
    return resource


def test_task_definition_runs_bridge_with_dynamic_host_port(dev_template):
    dev_template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "Family": "webapp-dev-task",
        "NetworkMode": "bridge",
        "RequiresCompatibilities": ["EC2"],
        "ContainerDefinitions": [
            Match.object_like({
                "Name": "app",
                "Essential": True,
                "Cpu": 256,
                "MemoryReservation": 512,
                "PortMappings": [{"ContainerPort": 8080, "HostPort": 0, "Protocol": "tcp"}],
                "LogConfiguration": Match.object_like({"LogDriver": "awslogs"}),
            }),
        ],
    })


def test_container_receives_cache_endpoint(dev_stack, dev_template):
    cache = logical_id(dev_stack, dev_stack.cache_construct.cache_cluster)

    dev_template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "ContainerDefinitions": [
            Match.object_like({
                "Environment": Match.array_with([
                    {"Name": "APP_ENV", "Value": "dev"},
                    {"Name": "REDIS_ENDPOINT", "Value": {"Fn::GetAtt": [cache, "RedisEndpoint.Address"]}},
                    {"Name": "REDIS_PORT", "Value": {"Fn::GetAtt": [cache, "RedisEndpoint.Port"]}},
                ]),
            }),
        ],
    })


def test_replaced_task_definitions_are_retained(dev_template):
    resource = task_definition(dev_template)

    assert resource["DeletionPolicy"] == "Retain"
    assert resource["UpdateReplacePolicy"] == "Retain"


def test_service_placement_and_load_balancing(dev_stack, dev_template):
    provider = logical_id(dev_stack, dev_stack.compute_capacity.capacity_provider)
    target_group = logical_id(dev_stack, dev_stack.load_balancer.alb_target_group)

    dev_template.has_resource_properties("AWS::ECS::Service", {
        "ServiceName": "webapp-dev-service",
        "Cluster": {"Ref": logical_id(dev_stack, dev_stack.webapp_cluster)},
        "DesiredCount": 1,
        "CapacityProviderStrategy": [{"CapacityProvider": {"Ref": provider}, "Base": 1, "Weight": 100}],
        "LoadBalancers": [
            {"ContainerName": "app", "ContainerPort": 8080, "TargetGroupArn": {"Ref": target_group}},
        ],
        "HealthCheckGracePeriodSeconds": 300,
        "DeploymentConfiguration": {
            "MaximumPercent": 200,
            "MinimumHealthyPercent": 50,
            "DeploymentCircuitBreaker": {"Enable": True, "Rollback": True},
        },
    })


def test_service_depends_on_listener_capacity_and_cache(dev_stack, dev_template):
    expected = {
        logical_id(dev_stack, dev_stack.load_balancer.http_listener),
        logical_id(dev_stack, dev_stack.compute_capacity.capacity_association),
        logical_id(dev_stack, dev_stack.cache_construct.cache_cluster),
    }

    assert expected <= set(service(dev_template)["DependsOn"])


def test_service_runs_template_revision_by_default(dev_stack, dev_template):
    task = logical_id(dev_stack, dev_stack.ecs_task_construct.webapp_task_definition)

    assert service(dev_template)["Properties"]["TaskDefinition"] == {"Ref": task}


def test_pinned_revision_is_kept_by_the_service():
    template = Template.from_stack(build_stack("dev", deployed_task_definition_arn=PINNED_ARN))

    assert service(template)["Properties"]["TaskDefinition"] == PINNED_ARN
    # The template still declares its own revision for the next deliberate rollout
    template.resource_count_is("AWS::ECS::TaskDefinition", 1)


def test_image_change_produces_a_new_revision(dev_template):
    template = Template.from_stack(build_stack("dev", container_image="public.ecr.aws/example/webapp:2.0"))

    before = task_definition(dev_template)["Properties"]["ContainerDefinitions"][0]
    after = task_definition(template)["Properties"]["ContainerDefinitions"][0]
    assert after["Image"] == "public.ecr.aws/example/webapp:2.0"
    assert before["Image"] != after["Image"]


def test_environment_change_produces_a_new_revision(dev_template):
    template = Template.from_stack(build_stack("dev", environment_variables={"APP_ENV": "dev", "DEBUG": "1"}))

    assert task_definition(template) != task_definition(dev_template)
    template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "ContainerDefinitions": [
            Match.object_like({"Environment": Match.array_with([{"Name": "DEBUG", "Value": "1"}])}),
        ],
    })


def test_prod_task_resources(prod_stack, prod_template):
    cache = logical_id(prod_stack, prod_stack.cache_construct.cache_cluster)

    prod_template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "ContainerDefinitions": [
            Match.object_like({
                "Cpu": 1024,
                "MemoryReservation": 6144,
                "Environment": Match.array_with([
                    {"Name": "REDIS_ENDPOINT", "Value": {"Fn::GetAtt": [cache, "RedisEndpoint.Address"]}},
                    {"Name": "REDIS_PORT", "Value": {"Fn::GetAtt": [cache, "RedisEndpoint.Port"]}},
                ]),
            }),
        ],
    })
    prod_template.has_resource_properties("AWS::ElastiCache::CacheCluster", {"Port": 6379})
    prod_template.has_resource_properties("AWS::ECS::Service", {"DesiredCount": 2})


def test_log_group(dev_template):
    dev_template.has_resource("AWS::Logs::LogGroup", {
        "Properties": {"LogGroupName": "/ecs/webapp-dev", "RetentionInDays": 7},
        "DeletionPolicy": "Delete",
    })
