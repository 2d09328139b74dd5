# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import os
from dataclasses import fields

from aws_cdk import App, Environment

import ecs_webapp.stack_constants as stack_constants
from ecs_webapp.environment_config import EnvironmentConfig, load_environment
from ecs_webapp.webapp_stack import WebAppStack

logger = logging.getLogger("cdk-helper")


def context_overrides(app):
    """
    Collect environment inputs given as CDK context, e.g. ``-c instance_type=t3.large``.
    """
    overrides = {}
    for config_field in fields(EnvironmentConfig):
        value = app.node.try_get_context(config_field.name)
        if value is not None:
            overrides[config_field.name] = value
    # "environment" selects the file and is not an override of it
    overrides.pop("environment", None)
    return overrides


def build_app(context=None):
    app = App(context=context)
    environment_name = app.node.try_get_context("environment") or stack_constants.DEFAULT_ENVIRONMENT
    config = load_environment(environment_name, context_overrides(app))
    logger.info("Synthesizing %s for environment %s", config.stack_name, environment_name)

    WebAppStack(
        app,
        config.stack_name,
        config=config,
        env=Environment(
            account=config.account or os.getenv("CDK_DEFAULT_ACCOUNT"),
            region=config.region or os.getenv("CDK_DEFAULT_REGION"),
        ),
    )
    return app.synth(validate_on_synthesis=True, skip_validation=False)


if __name__ == "__main__":
    build_app()
