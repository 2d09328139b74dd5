# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

# Environment input files merged at synth time
ENVIRONMENTS_PATH = Path(__file__).absolute().parents[1] / "environments"
DEFAULT_ENVIRONMENT = "dev"

# VPC and networking configuration
PVT_SUBNET_NAME = "Cache-Private"   # Name for private (cache) subnets
PUB_SUBNET_NAME = "Public"          # Name for public subnets
VPC_CIDR = "10.0.0.0/16"            # CIDR block for the VPC
CIDR_MASK = 24                      # Subnet mask for subnet CIDRs
MAX_AZS = 2                         # Maximum number of Availability Zones to use
NAT_GATEWAYS = 0                    # Cache subnets are isolated unless NAT is requested

# Load balancer listener
LISTENER_PORT = 80

# Bridge networking maps container ports onto the ephemeral host range
DYNAMIC_PORT_RANGE_START = 32768
DYNAMIC_PORT_RANGE_END = 65535

# Container configuration
CONTAINER_NAME = "app"
CONTAINER_PORT = 8080               # Port exposed by the container
MEMORY_RESERVATION_MIB = 512        # Soft memory reservation for the container in MiB
VCPU = 256                          # CPU units for the container (1024 = 1 vCPU)
CONTAINER_IMAGE = "public.ecr.aws/nginx/nginx:stable"

# Health check contract with the application container
HEALTH_PATH = "/health"
HEALTH_CHECK_INTERVAL_SECS = 30     # Interval between health checks
HEALTH_CHECK_TIMEOUT_SECS = 5       # Timeout for health check requests
HEALTHY_THRESHOLD_COUNT = 2         # Consecutive successes to mark healthy
UNHEALTHY_THRESHOLD_COUNT = 2       # Consecutive failures to mark unhealthy
HEALTHY_HTTP_CODES = "200"
DEREGISTRATION_DELAY_SECS = 30

# Instance provisioning
INSTANCE_TYPE = "t3.small"
ASG_MIN_CAPACITY = 1
ASG_MAX_CAPACITY = 2
ASG_DESIRED_CAPACITY = 1
# A rolling template update launches a replacement before retiring an instance
MIN_ASG_MAX_CAPACITY = 2
HEALTH_CHECK_GRACE_PERIOD_SECS = 300
CAPACITY_TARGET_PCT = 100           # Managed scaling target utilisation of the capacity provider
MAX_SCALING_STEP_SIZE = 2

# Workload scheduling
SERVICE_DESIRED_COUNT = 1
CAPACITY_STRATEGY_BASE = 1          # Replicas always placed on the provider before weighting
CAPACITY_STRATEGY_WEIGHT = 100
DEPLOYMENT_MAX_PERCENT = 200
DEPLOYMENT_MIN_HEALTHY_PERCENT = 50

# Cache configuration
REDIS_PORT = 6379                   # Standard Redis port
CACHE_ENGINE = "redis"
CACHE_ENGINE_VERSION = "7.1"
CACHE_PARAMETER_GROUP_FAMILY = "redis7"
CACHE_NODE_TYPE = "cache.t3.micro"
CACHE_NUM_NODES = 1
CACHE_MAXMEMORY_POLICY = "allkeys-lru"

# Log sink
LOG_RETENTION_DAYS = 7
LOG_STREAM_PREFIX = "ecs"

# CloudWatch monitoring configuration
CLOUDWATCH_ALARM_TYPE = "AWS::CloudWatch::Alarm"  # CloudWatch alarm resource type
CLOUDWATCH_ALARM_NAMESPACE = "AWS/ApplicationELB"  # Namespace for ALB metrics
ECS_NAMESPACE = "AWS/ECS"
ELASTICACHE_NAMESPACE = "AWS/ElastiCache"
ALARM_PERIOD_SECS = 60
CPU_ALARM_THRESHOLD_PCT = 80
MEMORY_ALARM_THRESHOLD_PCT = 80
ERROR_5XX_ALARM_THRESHOLD = 10      # 5XX responses per alarm period
# Alarm names are "<prefix>-<suffix>"
ECS_CPU_ALARM_SUFFIX = "ecs-cpu-high"
ECS_MEMORY_ALARM_SUFFIX = "ecs-memory-high"
ALB_5XX_ALARM_SUFFIX = "alb-5xx-errors"
ALARM_NAME_SUFFIXES = (ECS_CPU_ALARM_SUFFIX, ECS_MEMORY_ALARM_SUFFIX, ALB_5XX_ALARM_SUFFIX)

# Resource naming limits (ALB and target group names are limited to 32 characters)
MAX_RESOURCE_PREFIX_LENGTH = 24

# Retention periods accepted by CloudWatch Logs
SUPPORTED_LOG_RETENTION_DAYS = (1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365)
