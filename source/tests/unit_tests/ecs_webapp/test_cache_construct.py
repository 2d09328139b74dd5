# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from aws_cdk.assertions import Match

from conftest import logical_id


def test_cache_cluster(dev_stack, dev_template):
    cache = dev_stack.cache_construct
    cache_sg = logical_id(dev_stack, dev_stack.security_groups.cache_security_group)

    dev_template.has_resource_properties("AWS::ElastiCache::CacheCluster", {
        "ClusterName": "webapp-dev-redis",
        "Engine": "redis",
        "CacheNodeType": "cache.t3.micro",
        "NumCacheNodes": 1,
        "Port": 6379,
        "CacheSubnetGroupName": {"Ref": logical_id(dev_stack, cache.subnet_group)},
        "CacheParameterGroupName": {"Ref": logical_id(dev_stack, cache.parameter_group)},
        "VpcSecurityGroupIds": [{"Fn::GetAtt": [cache_sg, "GroupId"]}],
    })


def test_cache_waits_for_its_groups(dev_stack, dev_template):
    cache = dev_stack.cache_construct
    (cluster,) = dev_template.find_resources("AWS::ElastiCache::CacheCluster").values()

    assert set(cluster["DependsOn"]) >= {
        logical_id(dev_stack, cache.subnet_group),
        logical_id(dev_stack, cache.parameter_group),
    }


def test_subnet_group_uses_cache_subnets(dev_stack, dev_template):
    cache_subnets = [
        {"Ref": logical_id(dev_stack, subnet)} for subnet in dev_stack.vpc_construct.cache_subnets
    ]

    dev_template.has_resource_properties("AWS::ElastiCache::SubnetGroup", {
        "CacheSubnetGroupName": "webapp-dev-cache-subnets",
        "SubnetIds": cache_subnets,
    })


def test_parameter_group_evicts_least_recently_used(dev_template):
    dev_template.has_resource_properties("AWS::ElastiCache::ParameterGroup", {
        "CacheParameterGroupFamily": "redis7",
        "Properties": Match.object_like({"maxmemory-policy": "allkeys-lru"}),
    })
