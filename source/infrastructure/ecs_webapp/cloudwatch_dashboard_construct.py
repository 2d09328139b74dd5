# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Dict, List, Optional

from aws_cdk import (
    Aws,
    CfnOutput,
    Duration,
    aws_cloudwatch as cloudwatch,
    aws_elasticloadbalancingv2 as elbv2,
)
from aws_cdk.aws_cloudwatch import Color, Unit
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants

WIDGET_WIDTH: int = 8  # Three graphs per row
WIDGET_HEIGHT: int = 6
LOG_WIDGET_HEIGHT: int = 8
FULL_ROW_WIDTH: int = 24

METRIC_PERIOD: Duration = Duration.minutes(1)
CONTAINER_INSIGHTS_NAMESPACE = "ECS/ContainerInsights"

# Most recent application errors
ERROR_LOG_QUERY: List[str] = [
    "fields @timestamp, @logStream, @message",
    "filter @message like /(?i)(error|exception)/",
    "sort @timestamp desc",
    "limit 50",
]


class MetricFactory:
    """Builds metrics on the dashboard's one-minute period."""

    @staticmethod
    def create_metric(
        namespace: str,
        metric_name: str,
        dimensions_map: Dict[str, str],
        statistic: str = "Sum",
        label: Optional[str] = None,
        unit: Optional[Unit] = None,
        color: Optional[str] = None,
    ) -> cloudwatch.Metric:
        return cloudwatch.Metric(
            namespace=namespace,
            metric_name=metric_name,
            dimensions_map=dimensions_map,
            statistic=statistic,
            period=METRIC_PERIOD,
            label=label,
            unit=unit,
            color=color,
        )


class WidgetFactory:
    @staticmethod
    def create_graph_widget(title: str, metrics: List[cloudwatch.IMetric]) -> cloudwatch.GraphWidget:
        return cloudwatch.GraphWidget(title=title, left=metrics, width=WIDGET_WIDTH, height=WIDGET_HEIGHT)


class DashboardSection:
    """
    One row of the dashboard. Subclasses set the metric namespace and dimensions
    shared by their graphs and return the row's widgets from ``widgets``.
    """

    namespace: str = ""

    def __init__(self, dashboard: cloudwatch.Dashboard) -> None:
        self.dashboard = dashboard
        self.metric_factory = MetricFactory()
        self.widget_factory = WidgetFactory()

    def dimensions(self) -> Dict[str, str]:
        return {}

    def metric(self, metric_name: str, namespace: Optional[str] = None, **kwargs) -> cloudwatch.Metric:
        kwargs.setdefault("dimensions_map", self.dimensions())
        return self.metric_factory.create_metric(namespace or self.namespace, metric_name, **kwargs)

    def graph(self, title: str, *metrics: cloudwatch.IMetric) -> cloudwatch.GraphWidget:
        return self.widget_factory.create_graph_widget(title, list(metrics))

    def widgets(self) -> List[cloudwatch.IWidget]:
        raise NotImplementedError

    def add_to_dashboard(self) -> None:
        self.dashboard.add_widgets(*self.widgets())


class ECSSection(DashboardSection):
    """Service task count and the utilization the alarms watch."""

    namespace = stack_constants.ECS_NAMESPACE

    def __init__(self, dashboard: cloudwatch.Dashboard, cluster_name: str, service_name: str) -> None:
        super().__init__(dashboard)
        self.cluster_name = cluster_name
        self.service_name = service_name

    def dimensions(self) -> Dict[str, str]:
        return {"ClusterName": self.cluster_name, "ServiceName": self.service_name}

    def widgets(self) -> List[cloudwatch.IWidget]:
        return [
            self.graph(
                "ECS Task Count",
                self.metric("RunningTaskCount", namespace=CONTAINER_INSIGHTS_NAMESPACE,
                            statistic="Maximum", unit=Unit.COUNT),
            ),
            self.graph(
                "ECS CPU Utilization",
                self.metric("CPUUtilization", statistic="Average", label="Average", unit=Unit.PERCENT),
                self.metric("CPUUtilization", statistic="Maximum", label="Maximum", unit=Unit.PERCENT),
            ),
            self.graph(
                "ECS Memory Utilization",
                self.metric("MemoryUtilization", statistic="Average", label="Average", unit=Unit.PERCENT),
                self.metric("MemoryUtilization", statistic="Maximum", label="Maximum", unit=Unit.PERCENT),
            ),
        ]


class ALBSection(DashboardSection):
    """Traffic, target status codes and latency at the load balancer."""

    namespace = stack_constants.CLOUDWATCH_ALARM_NAMESPACE

    def __init__(
        self,
        dashboard: cloudwatch.Dashboard,
        alb: elbv2.ApplicationLoadBalancer,
        target_group: elbv2.ApplicationTargetGroup,
    ) -> None:
        super().__init__(dashboard)
        self.alb = alb
        self.target_group = target_group

    def dimensions(self) -> Dict[str, str]:
        return {"LoadBalancer": self.alb.load_balancer_full_name}

    def widgets(self) -> List[cloudwatch.IWidget]:
        healthy_hosts = self.metric(
            "HealthyHostCount",
            dimensions_map={**self.dimensions(), "TargetGroup": self.target_group.target_group_full_name},
            statistic="Minimum",
            label="Healthy Targets",
            unit=Unit.COUNT,
        )
        status_codes = [
            self.metric(f"HTTPCode_Target_{code}_Count", label=code, unit=Unit.COUNT, color=color)
            for code, color in (("2XX", Color.GREEN), ("3XX", Color.BLUE), ("4XX", Color.ORANGE), ("5XX", Color.RED))
        ]
        return [
            self.graph(
                "ALB Requests and Healthy Targets",
                self.metric("RequestCount", label="Total Requests", unit=Unit.COUNT),
                healthy_hosts,
            ),
            self.graph("ALB HTTP Target Status", *status_codes),
            self.graph(
                "ALB Target Response Time",
                self.metric("TargetResponseTime", statistic="Average", label="Average", unit=Unit.SECONDS),
                self.metric("TargetResponseTime", statistic="p99", label="p99", unit=Unit.SECONDS),
            ),
        ]


class ElastiCacheSection(DashboardSection):
    namespace = stack_constants.ELASTICACHE_NAMESPACE

    def __init__(self, dashboard: cloudwatch.Dashboard, cache_cluster_id: str) -> None:
        super().__init__(dashboard)
        self.cache_cluster_id = cache_cluster_id

    def dimensions(self) -> Dict[str, str]:
        return {"CacheClusterId": self.cache_cluster_id}

    def widgets(self) -> List[cloudwatch.IWidget]:
        return [
            self.graph(
                "Cache Engine CPU Utilization",
                self.metric("EngineCPUUtilization", statistic="Average", unit=Unit.PERCENT),
            ),
            self.graph(
                "Cache Hits and Misses",
                self.metric("CacheHits", label="Cache Hits", unit=Unit.COUNT, color=Color.GREEN),
                self.metric("CacheMisses", label="Cache Misses", unit=Unit.COUNT, color=Color.RED),
            ),
            self.graph(
                "Cache Connections",
                self.metric("CurrConnections", statistic="Maximum", label="Current Connections", unit=Unit.COUNT),
            ),
        ]


class LogsSection(DashboardSection):
    def __init__(self, dashboard: cloudwatch.Dashboard, log_group_name: str) -> None:
        super().__init__(dashboard)
        self.log_group_name = log_group_name

    def widgets(self) -> List[cloudwatch.IWidget]:
        return [
            cloudwatch.LogQueryWidget(
                title="Recent Application Errors",
                log_group_names=[self.log_group_name],
                query_lines=ERROR_LOG_QUERY,
                view=cloudwatch.LogQueryVisualizationType.TABLE,
                width=FULL_ROW_WIDTH,
                height=LOG_WIDGET_HEIGHT,
            )
        ]


class WebAppDashboard(Construct):
    """Dashboard over the alarmed metrics, the cache and the application error log."""

    def __init__(
        self,
        scope: Construct,
        id: str,
        dashboard_name: str,
        application_load_balancer: elbv2.ApplicationLoadBalancer,
        alb_target_group: elbv2.ApplicationTargetGroup,
        ecs_cluster_name: str,
        ecs_service_name: str,
        cache_cluster_id: str,
        log_group_name: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, id, **kwargs)

        self.webapp_alb = application_load_balancer
        self.ecs_cluster_name = ecs_cluster_name
        self.cache_cluster_id = cache_cluster_id

        self.dashboard = cloudwatch.Dashboard(self, "WebAppDashboard", dashboard_name=dashboard_name)

        CfnOutput(
            self,
            "DashboardUrl",
            value=f"https://{Aws.REGION}.console.aws.amazon.com/cloudwatch/home?region={Aws.REGION}"
                  f"#dashboards:name={dashboard_name}",
            description="Link to the CloudWatch Dashboard",
        )

        sections = [
            ECSSection(self.dashboard, ecs_cluster_name, ecs_service_name),
            ALBSection(self.dashboard, application_load_balancer, alb_target_group),
            ElastiCacheSection(self.dashboard, cache_cluster_id),
            LogsSection(self.dashboard, log_group_name),
        ]
        for section in sections:
            section.add_to_dashboard()
