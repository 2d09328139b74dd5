# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import Duration
from aws_cdk import aws_autoscaling as autoscaling
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_iam as iam
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class ComputeCapacityConstruct(Construct):
    def __init__(
            self,
            scope: Construct,
            id: str,
            config,
            vpc: ec2.IVpc,
            cluster: ecs.Cluster,
            instance_role: iam.IRole,
            security_group: ec2.ISecurityGroup,
            **kwargs,
    ) -> None:
        """
        This construct supplies elastic EC2 capacity to the cluster: a launch template,
        the auto scaling group launched from it, a capacity provider bound to the group
        and the association making that provider the cluster default.
        """
        super().__init__(scope, id, **kwargs)

        prefix = config.resource_prefix
        self.launch_template_name = f"{prefix}-lt"
        self.auto_scaling_group_name = f"{prefix}-asg"

        user_data = ec2.UserData.for_linux()
        user_data.add_commands(
            f"echo ECS_CLUSTER={cluster.cluster_name} >> /etc/ecs/ecs.config",
            "echo ECS_ENABLE_CONTAINER_METADATA=true >> /etc/ecs/ecs.config",
        )

        # Changes to the template data are published as new template versions, the
        # template itself is never destroyed while the group still launches from it.
        self.launch_template = ec2.LaunchTemplate(
            self,
            "LaunchTemplate",
            launch_template_name=self.launch_template_name,
            machine_image=self.machine_image(config),
            instance_type=ec2.InstanceType(config.instance_type),
            role=instance_role,
            security_group=security_group,
            user_data=user_data,
            require_imdsv2=True,
            associate_public_ip_address=True,
        )

        self.auto_scaling_group = autoscaling.AutoScalingGroup(
            self,
            "AutoScalingGroup",
            vpc=vpc,
            auto_scaling_group_name=self.auto_scaling_group_name,
            launch_template=self.launch_template,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            min_capacity=config.min_capacity,
            max_capacity=config.max_capacity,
            desired_capacity=config.desired_capacity,
            health_check=autoscaling.HealthCheck.ec2(
                grace=Duration.seconds(config.health_check_grace_period)
            ),
            update_policy=autoscaling.UpdatePolicy.rolling_update(
                max_batch_size=1,
                min_instances_in_service=self.min_instances_in_service(config),
            ),
        )

        self.capacity_provider = ecs.CfnCapacityProvider(
            self,
            "CapacityProvider",
            auto_scaling_group_provider=ecs.CfnCapacityProvider.AutoScalingGroupProviderProperty(
                auto_scaling_group_arn=self.auto_scaling_group.auto_scaling_group_name,
                managed_scaling=ecs.CfnCapacityProvider.ManagedScalingProperty(
                    status="ENABLED",
                    target_capacity=config.capacity_target_pct,
                    minimum_scaling_step_size=1,
                    maximum_scaling_step_size=stack_constants.MAX_SCALING_STEP_SIZE,
                ),
                managed_termination_protection="DISABLED",
            ),
        )

        self.capacity_association = ecs.CfnClusterCapacityProviderAssociations(
            self,
            "CapacityProviderAssociation",
            cluster=cluster.cluster_name,
            capacity_providers=[self.capacity_provider.ref],
            default_capacity_provider_strategy=[
                ecs.CfnClusterCapacityProviderAssociations.CapacityProviderStrategyProperty(
                    capacity_provider=self.capacity_provider.ref,
                    base=config.capacity_strategy_base,
                    weight=config.capacity_strategy_weight,
                )
            ],
        )

    @staticmethod
    def machine_image(config) -> ec2.IMachineImage:
        """
        The pinned AMI when one is configured. Otherwise the recommended ECS-optimized
        AL2023 image, read from SSM on each deploy, so a newly published image rolls
        the instances on the next apply.
        """
        if config.instance_ami_id:
            return ec2.MachineImage.generic_linux({config.region: config.instance_ami_id})
        return ecs.EcsOptimizedImage.amazon_linux2023()

    @staticmethod
    def min_instances_in_service(config) -> int:
        """
        Keep at least one instance running during a rolling template update. The group
        needs headroom above the kept instances to launch a replacement, so this stays
        strictly below the maximum.
        """
        return max(0, min(config.desired_capacity, config.max_capacity - 1))
