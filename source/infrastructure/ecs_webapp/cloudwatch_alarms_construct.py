# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from typing import Optional
from aws_cdk import CfnResource
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class CloudwatchAlarms(Construct):
    def __init__(
        self,
        scope: Construct,
        id: str,
        alarm_prefix: str,
        application_load_balancer: elbv2.ApplicationLoadBalancer,
        ecs_cluster_name: str,
        ecs_service_name: str,
        cpu_threshold: int,
        memory_threshold: int,
        error_5xx_threshold: int,
        alarm_topic_arn: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(scope, id, **kwargs)

        self.alarm_prefix = alarm_prefix
        self.webapp_alb = application_load_balancer
        self.ecs_cluster_name = ecs_cluster_name
        self.ecs_service_name = ecs_service_name
        self.alarm_topic_arn = alarm_topic_arn

        self.alarms = {}
        self._create_ecs_alarms(cpu_threshold, memory_threshold)
        self._create_alb_alarms(error_5xx_threshold)

    def _common_properties(self) -> dict:
        # A single breaching datapoint in a single period moves the alarm to ALARM
        properties = {
            "ActionsEnabled": bool(self.alarm_topic_arn),
            "Period": stack_constants.ALARM_PERIOD_SECS,
            "EvaluationPeriods": 1,
            "DatapointsToAlarm": 1,
            "TreatMissingData": "notBreaching",
        }
        if self.alarm_topic_arn:
            properties["AlarmActions"] = [self.alarm_topic_arn]
            properties["OKActions"] = [self.alarm_topic_arn]
        return properties

    def _ecs_dimensions(self) -> list:
        return [
            {"Name": "ClusterName", "Value": self.ecs_cluster_name},
            {"Name": "ServiceName", "Value": self.ecs_service_name},
        ]

    def _create_ecs_alarms(self, cpu_threshold: int, memory_threshold: int):
        self.alarms["cpu"] = CfnResource(
            self,
            "ECSUtilizationCPUAlarm",
            type=stack_constants.CLOUDWATCH_ALARM_TYPE,
            properties={
                **self._common_properties(),
                "AlarmName": f"{self.alarm_prefix}-{stack_constants.ECS_CPU_ALARM_SUFFIX}",
                "AlarmDescription": "ECS service CPU utilization is above threshold",
                "MetricName": "CPUUtilization",
                "Namespace": stack_constants.ECS_NAMESPACE,
                "Statistic": "Average",
                "Dimensions": self._ecs_dimensions(),
                "Threshold": cpu_threshold,
                "ComparisonOperator": "GreaterThanOrEqualToThreshold",
            },
        )

        self.alarms["memory"] = CfnResource(
            self,
            "ECSUtilizationMemoryAlarm",
            type=stack_constants.CLOUDWATCH_ALARM_TYPE,
            properties={
                **self._common_properties(),
                "AlarmName": f"{self.alarm_prefix}-{stack_constants.ECS_MEMORY_ALARM_SUFFIX}",
                "AlarmDescription": "ECS service memory utilization is above threshold",
                "MetricName": "MemoryUtilization",
                "Namespace": stack_constants.ECS_NAMESPACE,
                "Statistic": "Average",
                "Dimensions": self._ecs_dimensions(),
                "Threshold": memory_threshold,
                "ComparisonOperator": "GreaterThanOrEqualToThreshold",
            },
        )

    def _create_alb_alarms(self, error_5xx_threshold: int):
        self.alarms["errors"] = CfnResource(
            self,
            "ALB5xxErrorAlarm",
            type=stack_constants.CLOUDWATCH_ALARM_TYPE,
            properties={
                **self._common_properties(),
                "AlarmName": f"{self.alarm_prefix}-{stack_constants.ALB_5XX_ALARM_SUFFIX}",
                "AlarmDescription": "Targets behind the load balancer are returning 5XX responses",
                "MetricName": "HTTPCode_Target_5XX_Count",
                "Namespace": stack_constants.CLOUDWATCH_ALARM_NAMESPACE,
                "Statistic": "Sum",
                "Dimensions": [
                    {
                        "Name": "LoadBalancer",
                        "Value": self.webapp_alb.load_balancer_full_name,
                    }
                ],
                "Threshold": error_5xx_threshold,
                "ComparisonOperator": "GreaterThanThreshold",
            },
        )
