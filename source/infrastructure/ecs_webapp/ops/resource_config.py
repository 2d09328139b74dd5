# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import json
import logging
from dataclasses import MISSING, dataclass, fields
from typing import Any, Mapping, Optional

import boto3

logger = logging.getLogger(__name__)

RESOURCE_CONFIG_OUTPUT_KEY = "ResourceConfig"


@dataclass(frozen=True)
class ResourceConfig:
    """Names of the deployed resources, as output by the stack's ResourceConfig."""

    region: str
    cluster_name: str
    service_name: str
    asg_prefix: str
    launch_template_prefix: str
    load_balancer_name: str
    target_group_name: str
    alb_security_group_name: str
    ecs_security_group_name: str
    vpc_name: str
    cache_security_group_name: Optional[str] = None
    cache_cluster_id: Optional[str] = None
    cache_subnet_group_name: Optional[str] = None
    cache_parameter_group_name: Optional[str] = None
    log_group_name: Optional[str] = None
    task_family: Optional[str] = None
    instance_role_name: Optional[str] = None
    alarm_prefix: Optional[str] = None
    dashboard_name: Optional[str] = None

    @property
    def security_group_names(self):
        """Security group names, dependents first."""
        names = [self.cache_security_group_name, self.ecs_security_group_name, self.alb_security_group_name]
        return [name for name in names if name]

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ResourceConfig":
        known = {f.name for f in fields(cls)}
        required = [f.name for f in fields(cls) if f.default is MISSING]
        missing = [name for name in required if not values.get(name)]
        if missing:
            raise ValueError(f"Resource config is missing: {', '.join(sorted(missing))}")

        ignored = sorted(set(values) - known)
        if ignored:
            logger.debug("Ignoring unknown resource config keys: %s", ignored)
        return cls(**{k: v for k, v in values.items() if k in known})

    @classmethod
    def from_file(cls, path) -> "ResourceConfig":
        with open(path, encoding="utf-8") as config_file:
            return cls.from_dict(json.load(config_file))

    @classmethod
    def from_stack(cls, stack_name: str, session: Optional[boto3.Session] = None) -> "ResourceConfig":
        """
        Read the ResourceConfig output of a deployed CloudFormation stack.
        """
        session = session or boto3.Session()
        cloudformation = session.client("cloudformation")
        stacks = cloudformation.describe_stacks(StackName=stack_name)["Stacks"]
        for output in stacks[0].get("Outputs", []):
            if output["OutputKey"] == RESOURCE_CONFIG_OUTPUT_KEY:
                return cls.from_dict(json.loads(output["OutputValue"]))
        raise ValueError(f"Stack {stack_name} has no {RESOURCE_CONFIG_OUTPUT_KEY} output")
