# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging

from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import CfnResource
from constructs import Construct
import ecs_webapp.stack_constants as stack_constants

logger = logging.getLogger(__name__)


class ECSServiceConstruct(Construct):
    def __init__(
            self,
            scope,
            id,
            config,
            webapp_cluster: ecs.ICluster,
            webapp_task_definition: ecs.TaskDefinition,
            webapp_container: ecs.ContainerDefinition,
            capacity_provider: ecs.CfnCapacityProvider,
            alb_target_group: elbv2.ApplicationTargetGroup,
    ) -> None:
        """
        This construct schedules the task template on the cluster behind the load balancer.
        """
        super().__init__(scope, id)

        self.service_name = f"{config.resource_prefix}-service"

        # A delivery pipeline may have moved the service to a newer revision; keep
        # that revision instead of reverting the service to the template's own.
        if config.deployed_task_definition_arn:
            logger.info("Keeping deployed task definition %s", config.deployed_task_definition_arn)
            task_definition_arn = config.deployed_task_definition_arn
        else:
            task_definition_arn = webapp_task_definition.task_definition_arn

        self.webapp_service = ecs.CfnService(
            self,
            "WebAppService",
            service_name=self.service_name,
            cluster=webapp_cluster.cluster_name,
            task_definition=task_definition_arn,
            desired_count=config.service_desired_count,
            capacity_provider_strategy=[
                ecs.CfnService.CapacityProviderStrategyItemProperty(
                    capacity_provider=capacity_provider.ref,
                    base=config.capacity_strategy_base,
                    weight=config.capacity_strategy_weight,
                )
            ],
            load_balancers=[
                ecs.CfnService.LoadBalancerProperty(
                    container_name=webapp_container.container_name,
                    container_port=config.container_port,
                    target_group_arn=alb_target_group.target_group_arn,
                )
            ],
            health_check_grace_period_seconds=config.health_check_grace_period,
            deployment_configuration=ecs.CfnService.DeploymentConfigurationProperty(
                maximum_percent=stack_constants.DEPLOYMENT_MAX_PERCENT,
                minimum_healthy_percent=stack_constants.DEPLOYMENT_MIN_HEALTHY_PERCENT,
                deployment_circuit_breaker=ecs.CfnService.DeploymentCircuitBreakerProperty(
                    enable=True,
                    rollback=True,
                ),
            ),
            enable_ecs_managed_tags=True,
            propagate_tags="TASK_DEFINITION",
        )

        # Store the service name attribute for use in metrics
        self.service_name_attr = self.webapp_service.attr_name

    def add_ordering_dependencies(self, *resources: CfnResource) -> None:
        """
        Declare explicit creation ordering on resources the service does not reference
        but needs to exist before its first task starts.

        Args:
            resources: CloudFormation resources to create before the service
        """
        for resource in resources:
            self.webapp_service.add_dependency(resource)
