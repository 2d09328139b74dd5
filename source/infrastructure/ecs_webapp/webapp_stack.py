# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import (
    Aws,
    CfnOutput,
    Stack,
    Tags,
    aws_ecs as ecs,
)
from constructs import Construct

from .environment_config import EnvironmentConfig
from .topology import Component, SERVICE_EXPLICIT_DEPENDENCIES
from .vpc_construct import VpcConstruct
from .security_groups_construct import SecurityGroupsConstruct
from .instance_role_construct import InstanceRoleConstruct
from .compute_capacity_construct import ComputeCapacityConstruct
from .load_balancer_construct import LoadBalancerConstruct
from .cache_construct import CacheConstruct
from .ecs_task_construct import ECSTaskConstruct, LogSinkConstruct
from .ecs_service_construct import ECSServiceConstruct
from .cloudwatch_alarms_construct import CloudwatchAlarms
from .cloudwatch_dashboard_construct import WebAppDashboard


class WebAppStack(Stack):
    description = "Containerized web application on ECS with an ALB, a Redis cache, logs and alarms"

    def __init__(self, scope: Construct, construct_id: str, config: EnvironmentConfig, **kwargs) -> None:
        kwargs.setdefault("description", self.description)
        super().__init__(scope, construct_id, **kwargs)

        # Validate parameters
        config.validate_parameters()
        self.config = config
        prefix = config.resource_prefix

        Tags.of(self).add("Project", config.project_name)
        Tags.of(self).add("Environment", config.environment)

        vpc_construct = VpcConstruct(self, "Network", config)

        security_groups = SecurityGroupsConstruct(self, "AccessPolicies", config, vpc_construct.webapp_vpc)

        # Create ECS Cluster
        self.cluster_name = f"{prefix}-cluster"
        webapp_cluster = ecs.Cluster(
            self,
            "WebAppCluster",
            cluster_name=self.cluster_name,
            vpc=vpc_construct.webapp_vpc,
            container_insights=True,
        )

        log_sink = LogSinkConstruct(self, "LogSink", config)

        instance_role = InstanceRoleConstruct(self, "InstanceRole", config, log_sink.log_group)

        compute_capacity = ComputeCapacityConstruct(
            self,
            "ComputeCapacity",
            config,
            vpc=vpc_construct.webapp_vpc,
            cluster=webapp_cluster,
            instance_role=instance_role.instance_role,
            security_group=security_groups.ecs_security_group,
        )

        load_balancer = LoadBalancerConstruct(
            self,
            "LoadBalancer",
            config,
            vpc=vpc_construct.webapp_vpc,
            security_group=security_groups.alb_security_group,
        )

        cache_construct = CacheConstruct(
            self,
            "Cache",
            config,
            subnets=vpc_construct.cache_subnets,
            security_group=security_groups.cache_security_group,
        )

        ecs_task_construct = ECSTaskConstruct(
            self,
            "ECSTask",
            config,
            log_group=log_sink.log_group,
            redis_endpoint=cache_construct.endpoint_address,
            redis_port=cache_construct.endpoint_port,
        )

        ecs_service_construct = ECSServiceConstruct(
            self,
            "ECSService",
            config,
            webapp_cluster=webapp_cluster,
            webapp_task_definition=ecs_task_construct.webapp_task_definition,
            webapp_container=ecs_task_construct.webapp_container,
            capacity_provider=compute_capacity.capacity_provider,
            alb_target_group=load_balancer.alb_target_group,
        )

        # The service's first health check needs the listener, its first placement
        # needs capacity on the cluster and its environment needs the cache.
        ordering_resources = {
            Component.LISTENER: load_balancer.http_listener.node.default_child,
            Component.CAPACITY_ASSOCIATION: compute_capacity.capacity_association,
            Component.CACHE: cache_construct.cache_cluster,
        }
        ecs_service_construct.add_ordering_dependencies(
            *(ordering_resources[component] for component in SERVICE_EXPLICIT_DEPENDENCIES)
        )

        self.alarms = CloudwatchAlarms(
            self,
            "CloudwatchAlarms",
            alarm_prefix=prefix,
            application_load_balancer=load_balancer.webapp_alb,
            ecs_cluster_name=self.cluster_name,
            ecs_service_name=ecs_service_construct.service_name_attr,
            cpu_threshold=config.cpu_alarm_threshold,
            memory_threshold=config.memory_alarm_threshold,
            error_5xx_threshold=config.error_5xx_alarm_threshold,
            alarm_topic_arn=config.alarm_topic_arn,
        )

        self.dashboard_name = f"{prefix}-dashboard"
        WebAppDashboard(
            self,
            "WebAppDashboard",
            dashboard_name=self.dashboard_name,
            application_load_balancer=load_balancer.webapp_alb,
            alb_target_group=load_balancer.alb_target_group,
            ecs_cluster_name=self.cluster_name,
            ecs_service_name=ecs_service_construct.service_name_attr,
            cache_cluster_id=cache_construct.cache_cluster.ref,
            log_group_name=log_sink.log_group_name,
        )

        # Store references to resources needed by tests and other stacks
        self.vpc_construct = vpc_construct
        self.security_groups = security_groups
        self.webapp_cluster = webapp_cluster
        self.log_sink = log_sink
        self.instance_role = instance_role
        self.compute_capacity = compute_capacity
        self.load_balancer = load_balancer
        self.cache_construct = cache_construct
        self.ecs_task_construct = ecs_task_construct
        self.ecs_service_construct = ecs_service_construct

        self.resource_config = {
            "region": Aws.REGION,
            "cluster_name": self.cluster_name,
            "service_name": ecs_service_construct.service_name,
            "asg_prefix": compute_capacity.auto_scaling_group_name,
            "launch_template_prefix": compute_capacity.launch_template_name,
            "load_balancer_name": load_balancer.load_balancer_name,
            "target_group_name": load_balancer.target_group_name,
            "alb_security_group_name": security_groups.alb_security_group_name,
            "ecs_security_group_name": security_groups.ecs_security_group_name,
            "cache_security_group_name": security_groups.cache_security_group_name,
            "vpc_name": vpc_construct.vpc_name,
            "cache_cluster_id": cache_construct.cache_cluster_id,
            "cache_subnet_group_name": cache_construct.subnet_group_name,
            "cache_parameter_group_name": cache_construct.parameter_group_name,
            "log_group_name": log_sink.log_group_name,
            "task_family": ecs_task_construct.family,
            "instance_role_name": instance_role.role_name,
            "alarm_prefix": prefix,
            "dashboard_name": self.dashboard_name,
        }
        self._create_outputs(load_balancer, ecs_service_construct, ecs_task_construct)

    def _create_outputs(self, load_balancer, ecs_service_construct, ecs_task_construct) -> None:
        CfnOutput(
            self,
            "ApplicationUrl",
            value=load_balancer.application_url,
            description="URL of the web application",
        )
        CfnOutput(self, "ClusterName", value=self.cluster_name, description="ECS cluster name")
        CfnOutput(
            self,
            "ServiceName",
            value=ecs_service_construct.service_name_attr,
            description="ECS service name",
        )
        CfnOutput(
            self,
            "TaskDefinitionFamily",
            value=ecs_task_construct.family,
            description="ECS task definition family",
        )
        CfnOutput(
            self,
            "ResourceConfig",
            value=self.to_json_string(self.resource_config),
            description="Resource names consumed by the webapp-ops teardown tool",
        )
