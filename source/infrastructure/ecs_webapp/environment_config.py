# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Environment input set for the web application stack.

Inputs are merged in increasing precedence from the built-in defaults, the
environment file ``environments/<name>.json`` and CDK context overrides
(``cdk deploy -c task_cpu=1024``).
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import ecs_webapp.stack_constants as stack_constants

logger = logging.getLogger(__name__)

RESOURCE_PREFIX_PATTERN = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")
AMI_ID_PATTERN = re.compile(r"^ami-[0-9a-f]{8,17}$")
TRUE_STRINGS = {"true", "yes", "1"}


@dataclass
class EnvironmentConfig:
    project_name: str
    environment: str
    region: Optional[str] = None
    account: Optional[str] = None

    # Network
    vpc_cidr: str = stack_constants.VPC_CIDR
    max_azs: int = stack_constants.MAX_AZS
    nat_gateways: int = stack_constants.NAT_GATEWAYS
    cache_isolated_subnets: bool = True

    # Instances
    instance_type: str = stack_constants.INSTANCE_TYPE
    min_capacity: int = stack_constants.ASG_MIN_CAPACITY
    max_capacity: int = stack_constants.ASG_MAX_CAPACITY
    desired_capacity: int = stack_constants.ASG_DESIRED_CAPACITY
    health_check_grace_period: int = stack_constants.HEALTH_CHECK_GRACE_PERIOD_SECS
    capacity_target_pct: int = stack_constants.CAPACITY_TARGET_PCT
    # Pinned ECS-optimized AMI, the latest published image is resolved at deploy time when unset
    instance_ami_id: Optional[str] = None

    # Workload
    container_image: str = stack_constants.CONTAINER_IMAGE
    container_port: int = stack_constants.CONTAINER_PORT
    task_cpu: int = stack_constants.VCPU
    task_memory: int = stack_constants.MEMORY_RESERVATION_MIB
    service_desired_count: int = stack_constants.SERVICE_DESIRED_COUNT
    capacity_strategy_base: int = stack_constants.CAPACITY_STRATEGY_BASE
    capacity_strategy_weight: int = stack_constants.CAPACITY_STRATEGY_WEIGHT
    environment_variables: Dict[str, str] = field(default_factory=dict)
    deployed_task_definition_arn: Optional[str] = None

    # Cache
    cache_node_type: str = stack_constants.CACHE_NODE_TYPE
    cache_engine_version: str = stack_constants.CACHE_ENGINE_VERSION
    cache_num_nodes: int = stack_constants.CACHE_NUM_NODES

    # Observability
    log_retention_days: int = stack_constants.LOG_RETENTION_DAYS
    cpu_alarm_threshold: int = stack_constants.CPU_ALARM_THRESHOLD_PCT
    memory_alarm_threshold: int = stack_constants.MEMORY_ALARM_THRESHOLD_PCT
    error_5xx_alarm_threshold: int = stack_constants.ERROR_5XX_ALARM_THRESHOLD
    alarm_topic_arn: Optional[str] = None

    @property
    def resource_prefix(self) -> str:
        return f"{self.project_name}-{self.environment}"

    @property
    def stack_name(self) -> str:
        return f"{self.resource_prefix}-webapp"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "EnvironmentConfig":
        """
        Build a config from loosely typed inputs. CDK context values passed on the
        command line arrive as strings and are coerced to the declared field types.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ValueError(f"Unknown environment inputs: {', '.join(unknown)}")

        kwargs = {}
        for name, value in values.items():
            kwargs[name] = _coerce(name, known[name].type, value)
        for required in ("project_name", "environment"):
            if not kwargs.get(required):
                raise ValueError(f"Environment input '{required}' is required")
        return cls(**kwargs)

    def validate_parameters(self):
        """
        Validate inputs before any resource is declared.
        """
        if len(self.resource_prefix) > stack_constants.MAX_RESOURCE_PREFIX_LENGTH:
            raise ValueError(
                f"Resource prefix '{self.resource_prefix}' is longer than "
                f"{stack_constants.MAX_RESOURCE_PREFIX_LENGTH} characters"
            )
        if not RESOURCE_PREFIX_PATTERN.match(self.resource_prefix):
            raise ValueError(
                f"Resource prefix '{self.resource_prefix}' must be lower-case alphanumeric with hyphens"
            )

        if min(self.min_capacity, self.max_capacity, self.desired_capacity) < 0:
            raise ValueError("Instance counts must not be negative")
        if self.max_capacity < stack_constants.MIN_ASG_MAX_CAPACITY:
            raise ValueError(
                f"Maximum instance count must be at least {stack_constants.MIN_ASG_MAX_CAPACITY} "
                "to keep an instance in service during a template update"
            )
        if not self.min_capacity <= self.desired_capacity <= self.max_capacity:
            raise ValueError(
                f"Desired instance count {self.desired_capacity} must lie within "
                f"[{self.min_capacity}, {self.max_capacity}]"
            )

        if self.task_cpu <= 0 or self.task_memory <= 0:
            raise ValueError("Task CPU and memory reservations must be positive")
        if not 1 <= self.container_port <= 65535:
            raise ValueError(f"Container port {self.container_port} is out of range")
        if self.instance_ami_id is not None:
            if not AMI_ID_PATTERN.match(self.instance_ami_id):
                raise ValueError(f"Instance AMI '{self.instance_ami_id}' is not an AMI id")
            if not self.region:
                raise ValueError("A pinned instance AMI requires the environment region")
        if not 1 <= self.capacity_target_pct <= 100:
            raise ValueError("Capacity provider target must be between 1 and 100 percent")
        if self.service_desired_count < 0 or self.capacity_strategy_base < 0:
            raise ValueError("Service replica counts must not be negative")
        if self.capacity_strategy_weight < 1:
            raise ValueError("Capacity strategy weight must be at least 1")
        if self.cache_num_nodes < 1:
            raise ValueError("Cache node count must be at least 1")
        if self.log_retention_days not in stack_constants.SUPPORTED_LOG_RETENTION_DAYS:
            raise ValueError(
                f"Log retention of {self.log_retention_days} days is not supported by CloudWatch Logs"
            )
        if self.nat_gateways < 0:
            raise ValueError("NAT gateway count must not be negative")


def _coerce(name, field_type, value):
    if value is None:
        return None
    if field_type is bool or field_type is Optional[bool]:
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)
    if field_type is int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Environment input '{name}' must be an integer, got {value!r}") from None
    if field_type == Dict[str, str]:
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, dict):
            raise ValueError(f"Environment input '{name}' must be a mapping")
        return {str(k): str(v) for k, v in value.items()}
    return str(value)


def read_environment_file(name: str, environments_path: Path = stack_constants.ENVIRONMENTS_PATH) -> dict:
    path = environments_path / f"{name}.json"
    if not path.exists():
        raise ValueError(f"No environment file found for '{name}' at {path}")
    with open(path, encoding="utf-8") as env_file:
        return json.load(env_file)


def load_environment(
        name: str,
        overrides: Optional[Mapping[str, Any]] = None,
        environments_path: Path = stack_constants.ENVIRONMENTS_PATH,
) -> EnvironmentConfig:
    """
    Merge the environment file with overrides and return a validated config.

    Args:
        name: Environment name, matching a file under ``environments/``
        overrides: Highest precedence inputs, usually CDK context values
        environments_path: Directory holding the environment files

    Returns:
        EnvironmentConfig: validated environment inputs
    """
    values = {"environment": name}
    values.update(read_environment_file(name, environments_path))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})
    logger.debug("Merged inputs for environment %s: %s", name, sorted(values))

    config = EnvironmentConfig.from_mapping(values)
    config.validate_parameters()
    return config
