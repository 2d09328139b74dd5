# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from constructs import Construct


class InstanceRoleConstruct(Construct):
    def __init__(self, scope: Construct, id: str, config, log_group: logs.ILogGroup, **kwargs) -> None:
        """
        This construct creates the role container instances run as.
        """
        super().__init__(scope, id, **kwargs)

        self.role_name = f"{config.resource_prefix}-instance-role"

        self.instance_role = iam.Role(
            self,
            "InstanceRole",
            role_name=self.role_name,
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            description=f"ECS container instance role for {config.resource_prefix}",
            managed_policies=[
                # Register with the cluster and pull images
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonEC2ContainerServiceforEC2Role"
                ),
                # Session Manager access instead of SSH
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore"),
            ],
        )

        self.instance_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "logs:CreateLogStream",
                    "logs:PutLogEvents",
                    "logs:DescribeLogStreams",
                ],
                resources=[log_group.log_group_arn],
            )
        )
