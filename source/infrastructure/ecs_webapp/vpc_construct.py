# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class VpcConstruct(Construct):
    def __init__(self, scope: Construct, id: str, config, **kwargs) -> None:
        """
        This construct creates the isolated network every other component is placed in.
        Private subnets are only created when the cache asks for isolated placement.
        """
        super().__init__(scope, id, **kwargs)

        self.vpc_name = f"{config.resource_prefix}-vpc"

        subnet_configuration = [
            ec2.SubnetConfiguration(
                name=stack_constants.PUB_SUBNET_NAME,
                subnet_type=ec2.SubnetType.PUBLIC,
                cidr_mask=stack_constants.CIDR_MASK,
            )
        ]
        if config.cache_isolated_subnets:
            subnet_configuration.append(
                ec2.SubnetConfiguration(
                    name=stack_constants.PVT_SUBNET_NAME,
                    # Without a NAT gateway the private subnets have no route out at all
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                    if config.nat_gateways
                    else ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=stack_constants.CIDR_MASK,
                )
            )

        self.webapp_vpc = ec2.Vpc(
            self,
            "WebAppVpc",
            vpc_name=self.vpc_name,
            ip_addresses=ec2.IpAddresses.cidr(config.vpc_cidr),
            max_azs=config.max_azs,
            nat_gateways=config.nat_gateways if config.cache_isolated_subnets else 0,
            subnet_configuration=subnet_configuration,
            enable_dns_hostnames=True,
            enable_dns_support=True,
        )

        self.public_subnets = self.webapp_vpc.public_subnets
        if config.cache_isolated_subnets:
            self.cache_subnets = self.webapp_vpc.select_subnets(
                subnet_group_name=stack_constants.PVT_SUBNET_NAME
            ).subnets
        else:
            self.cache_subnets = self.public_subnets
