# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import Duration
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class LoadBalancerConstruct(Construct):
    def __init__(
            self,
            scope: Construct,
            id: str,
            config,
            vpc: ec2.IVpc,
            security_group: ec2.ISecurityGroup,
            **kwargs,
    ) -> None:
        """
        This construct creates the public load balancer, the target group holding the
        health check contract with the container, and a listener forwarding all traffic.
        """
        super().__init__(scope, id, **kwargs)

        prefix = config.resource_prefix
        self.load_balancer_name = f"{prefix}-alb"
        self.target_group_name = f"{prefix}-tg"

        self.webapp_alb = elbv2.ApplicationLoadBalancer(
            self,
            "WebAppALB",
            vpc=vpc,
            internet_facing=True,
            load_balancer_name=self.load_balancer_name,
            security_group=security_group,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )

        # Bridge networking registers instances on dynamic host ports, the
        # port given here is only the default for registrations without one.
        self.alb_target_group = elbv2.ApplicationTargetGroup(
            self,
            "ALBTargetGroup",
            vpc=vpc,
            target_group_name=self.target_group_name,
            port=config.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.INSTANCE,
            deregistration_delay=Duration.seconds(stack_constants.DEREGISTRATION_DELAY_SECS),
            health_check=elbv2.HealthCheck(
                enabled=True,
                path=stack_constants.HEALTH_PATH,
                healthy_http_codes=stack_constants.HEALTHY_HTTP_CODES,
                interval=Duration.seconds(stack_constants.HEALTH_CHECK_INTERVAL_SECS),
                timeout=Duration.seconds(stack_constants.HEALTH_CHECK_TIMEOUT_SECS),
                healthy_threshold_count=stack_constants.HEALTHY_THRESHOLD_COUNT,
                unhealthy_threshold_count=stack_constants.UNHEALTHY_THRESHOLD_COUNT,
            ),
        )

        # Ingress is managed by the access policies, not by the listener
        self.http_listener = self.webapp_alb.add_listener(
            "HTTPListener",
            port=stack_constants.LISTENER_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=False,
            default_action=elbv2.ListenerAction.forward([self.alb_target_group]),
        )

        self.application_url = f"http://{self.webapp_alb.load_balancer_dns_name}"
