# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os
import pathlib
import pytest
import sys

from aws_cdk import App
from aws_cdk.assertions import Template

current_dir = pathlib.Path(__file__).parent.absolute()
project_root = str(current_dir.parent)

infrastructure_path = os.path.join(project_root, 'infrastructure')
sys.path.append(infrastructure_path)

from ecs_webapp.environment_config import load_environment  # noqa: E402
from ecs_webapp.webapp_stack import WebAppStack  # noqa: E402


def build_stack(environment="dev", **overrides):
    """Synthesize the stack of an environment file with the given input overrides."""
    config = load_environment(environment, overrides)
    app = App()
    return WebAppStack(app, config.stack_name, config=config)


def logical_id(stack, construct):
    """Logical id of the CloudFormation resource behind an L1 or L2 construct."""
    resource = construct.node.default_child or construct
    return stack.get_logical_id(resource)


@pytest.fixture(scope="session", autouse=True)
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "123456789"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "987654321"
    os.environ["AWS_SECURITY_TOKEN"] = "test_securitytoken"
    os.environ["AWS_SESSION_TOKEN"] = "test_session_token"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = os.environ["AWS_DEFAULT_REGION"]


@pytest.fixture(scope="session")
def dev_stack():
    return build_stack("dev")


@pytest.fixture(scope="session")
def dev_template(dev_stack):
    return Template.from_stack(dev_stack)


@pytest.fixture(scope="session")
def prod_stack():
    return build_stack("prod")


@pytest.fixture(scope="session")
def prod_template(prod_stack):
    return Template.from_stack(prod_stack)


@pytest.fixture
def resource_config_values():
    return {
        "region": "us-east-1",
        "cluster_name": "webapp-dev-cluster",
        "service_name": "webapp-dev-service",
        "asg_prefix": "webapp-dev-asg",
        "launch_template_prefix": "webapp-dev-lt",
        "load_balancer_name": "webapp-dev-alb",
        "target_group_name": "webapp-dev-tg",
        "alb_security_group_name": "webapp-dev-alb-sg",
        "ecs_security_group_name": "webapp-dev-ecs-sg",
        "cache_security_group_name": "webapp-dev-cache-sg",
        "vpc_name": "webapp-dev-vpc",
        "cache_cluster_id": "webapp-dev-redis",
        "cache_subnet_group_name": "webapp-dev-cache-subnets",
        "cache_parameter_group_name": "webapp-dev-cacheparams",
        "log_group_name": "/ecs/webapp-dev",
        "task_family": "webapp-dev-task",
        "instance_role_name": "webapp-dev-instance-role",
        "alarm_prefix": "webapp-dev",
        "dashboard_name": "webapp-dev-dashboard",
    }
