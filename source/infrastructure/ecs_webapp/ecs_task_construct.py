# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import RemovalPolicy
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_logs as logs
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants

RETENTION_DAYS = {
    1: logs.RetentionDays.ONE_DAY,
    3: logs.RetentionDays.THREE_DAYS,
    5: logs.RetentionDays.FIVE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    14: logs.RetentionDays.TWO_WEEKS,
    30: logs.RetentionDays.ONE_MONTH,
    60: logs.RetentionDays.TWO_MONTHS,
    90: logs.RetentionDays.THREE_MONTHS,
    120: logs.RetentionDays.FOUR_MONTHS,
    150: logs.RetentionDays.FIVE_MONTHS,
    180: logs.RetentionDays.SIX_MONTHS,
    365: logs.RetentionDays.ONE_YEAR,
}


class LogSinkConstruct(Construct):
    def __init__(self, scope: Construct, id: str, config, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        self.log_group_name = f"/ecs/{config.resource_prefix}"
        self.log_group = logs.LogGroup(
            self,
            "LogGroup",
            log_group_name=self.log_group_name,
            retention=RETENTION_DAYS[config.log_retention_days],
            removal_policy=RemovalPolicy.DESTROY,
        )


class ECSTaskConstruct(Construct):
    def __init__(
            self,
            scope: Construct,
            id: str,
            config,
            log_group: logs.ILogGroup,
            redis_endpoint: str,
            redis_port: str,
            **kwargs,
    ) -> None:
        """
        This construct creates the task template of the web application container.
        """
        super().__init__(scope, id, **kwargs)

        self.family = f"{config.resource_prefix}-task"

        self.webapp_task_definition = ecs.Ec2TaskDefinition(
            self,
            "WebAppTaskDefinition",
            family=self.family,
            network_mode=ecs.NetworkMode.BRIDGE,
        )
        # Replaced revisions stay registered so a deployment can roll back to them
        self.webapp_task_definition.apply_removal_policy(RemovalPolicy.RETAIN)

        # The cache address is the only data contract with the application
        environment = dict(config.environment_variables)
        environment["REDIS_ENDPOINT"] = redis_endpoint
        environment["REDIS_PORT"] = redis_port

        self.webapp_container = self.webapp_task_definition.add_container(
            "WebAppContainer",
            container_name=stack_constants.CONTAINER_NAME,
            image=ecs.ContainerImage.from_registry(config.container_image),
            cpu=config.task_cpu,
            memory_reservation_mib=config.task_memory,
            essential=True,
            environment=environment,
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=stack_constants.LOG_STREAM_PREFIX,
                log_group=log_group,
            ),
            port_mappings=[
                ecs.PortMapping(
                    container_port=config.container_port,
                    host_port=0,
                    protocol=ecs.Protocol.TCP,
                )
            ],
        )
