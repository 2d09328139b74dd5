# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class SecurityGroupsConstruct(Construct):
    def __init__(self, scope: Construct, id: str, config, vpc: ec2.IVpc, **kwargs) -> None:
        """
        This construct creates the three traffic filtering policies. Only the load balancer
        policy admits an open range; every other policy admits the identity of the policy
        in front of it, so there is no path from the internet to the instances or the cache
        that bypasses the load balancer.
        """
        super().__init__(scope, id, **kwargs)

        prefix = config.resource_prefix
        self.alb_security_group_name = f"{prefix}-alb-sg"
        self.ecs_security_group_name = f"{prefix}-ecs-sg"
        self.cache_security_group_name = f"{prefix}-cache-sg"

        self.alb_security_group = ec2.SecurityGroup(
            self,
            "AlbSecurityGroup",
            vpc=vpc,
            security_group_name=self.alb_security_group_name,
            description="Public ingress to the application load balancer",
            allow_all_outbound=True,
        )
        self.alb_security_group.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(stack_constants.LISTENER_PORT),
            description="Allow HTTP from the internet",
        )

        # Instances keep open egress to pull images and reach the ECS control plane
        self.ecs_security_group = ec2.SecurityGroup(
            self,
            "EcsSecurityGroup",
            vpc=vpc,
            security_group_name=self.ecs_security_group_name,
            description="Traffic from the load balancer to container instances",
            allow_all_outbound=True,
        )
        self.ecs_security_group.add_ingress_rule(
            peer=self.alb_security_group,
            connection=ec2.Port.tcp_range(
                stack_constants.DYNAMIC_PORT_RANGE_START,
                stack_constants.DYNAMIC_PORT_RANGE_END,
            ),
            description="Allow dynamic host ports only from the load balancer",
        )

        self.cache_security_group = ec2.SecurityGroup(
            self,
            "CacheSecurityGroup",
            vpc=vpc,
            security_group_name=self.cache_security_group_name,
            description="Traffic from container instances to the cache",
            allow_all_outbound=False,
        )
        self.cache_security_group.add_ingress_rule(
            peer=self.ecs_security_group,
            connection=ec2.Port.tcp(stack_constants.REDIS_PORT),
            description="Allow Redis only from container instances",
        )
