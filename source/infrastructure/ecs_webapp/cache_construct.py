# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import List

from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticache as elasticache
from constructs import Construct

import ecs_webapp.stack_constants as stack_constants


class CacheConstruct(Construct):
    def __init__(
        self,
        scope: Construct,
        id: str,
        config,
        subnets: List[ec2.ISubnet],
        security_group: ec2.ISecurityGroup,
        **kwargs
    ):
        super().__init__(scope, id, **kwargs)

        prefix = config.resource_prefix
        self.cache_cluster_id = f"{prefix}-redis"
        self.subnet_group_name = f"{prefix}-cache-subnets"

        # Create ElastiCache subnet group on the isolated subnets
        self.subnet_group = elasticache.CfnSubnetGroup(
            self, "CacheSubnetGroup",
            cache_subnet_group_name=self.subnet_group_name,
            description=f"Subnets for the {prefix} cache",
            subnet_ids=[subnet.subnet_id for subnet in subnets],
        )

        self.parameter_group = elasticache.CfnParameterGroup(
            self, "CacheParameterGroup",
            cache_parameter_group_family=stack_constants.CACHE_PARAMETER_GROUP_FAMILY,
            description=f"Parameters for the {prefix} cache",
            properties={
                "maxmemory-policy": stack_constants.CACHE_MAXMEMORY_POLICY,
            },
        )
        # Parameter group names are generated, Ref resolves to the name
        self.parameter_group_name = self.parameter_group.ref

        self.cache_cluster = elasticache.CfnCacheCluster(
            self, "CacheCluster",
            cluster_name=self.cache_cluster_id,
            engine=stack_constants.CACHE_ENGINE,
            engine_version=config.cache_engine_version,
            cache_node_type=config.cache_node_type,
            num_cache_nodes=config.cache_num_nodes,
            port=stack_constants.REDIS_PORT,
            cache_subnet_group_name=self.subnet_group.ref,
            cache_parameter_group_name=self.parameter_group.ref,
            vpc_security_group_ids=[security_group.security_group_id],
        )

        # Add dependency to ensure proper creation order
        self.cache_cluster.add_dependency(self.subnet_group)
        self.cache_cluster.add_dependency(self.parameter_group)

        self.endpoint_address = self.cache_cluster.attr_redis_endpoint_address
        self.endpoint_port = self.cache_cluster.attr_redis_endpoint_port
