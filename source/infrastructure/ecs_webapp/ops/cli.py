# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
webapp-ops: operator commands for a deployed web application environment.

    webapp-ops order --destroy
    webapp-ops teardown --stack-name webapp-dev-webapp --dry-run
    webapp-ops deployed-revision --cluster webapp-dev-cluster --service webapp-dev-service
"""

import logging

import boto3
import click
from botocore.exceptions import ClientError

from ecs_webapp.ops.resource_config import ResourceConfig
from ecs_webapp.ops.teardown import Teardown, TeardownError
from ecs_webapp.topology import creation_order, destruction_order

logger = logging.getLogger(__name__)


def _session(region, profile):
    return boto3.Session(region_name=region, profile_name=profile)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log AWS calls and skipped resources.")
def main(verbose):
    """Operate a deployed web application environment."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--destroy", is_flag=True, help="Print the teardown order instead of the creation order.")
def order(destroy):
    """Print the component order used to create or destroy an environment."""
    components = destruction_order() if destroy else creation_order()
    for position, component in enumerate(components, start=1):
        click.echo(f"{position:2d}. {component.value}")


@main.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="ResourceConfig JSON file.")
@click.option("--stack-name", help="Read the ResourceConfig output of this CloudFormation stack.")
@click.option("--region", help="AWS region, defaults to the region in the resource config.")
@click.option("--profile", help="AWS named profile.")
@click.option("--dry-run", is_flag=True, help="List what would be deleted without deleting it.")
@click.option("--no-wait", is_flag=True, help="Do not wait for slow deletions to complete.")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def teardown(config_path, stack_name, region, profile, dry_run, no_wait, yes):
    """Delete an environment's resources, dependents first.

    Resources that are already gone are skipped, so an interrupted teardown
    can be run again.
    """
    if bool(config_path) == bool(stack_name):
        click.echo("Exactly one of --config or --stack-name is required", err=True)
        raise SystemExit(2)

    try:
        if config_path:
            config = ResourceConfig.from_file(config_path)
        else:
            config = ResourceConfig.from_stack(stack_name, session=_session(region, profile))
    except (ValueError, ClientError) as e:
        click.echo(f"Invalid resource config: {e}", err=True)
        raise SystemExit(2) from None

    if not dry_run and not yes:
        click.confirm(
            f"Delete every resource of cluster {config.cluster_name} in {region or config.region}?",
            abort=True,
        )

    runner = Teardown(
        config,
        session=_session(region or config.region, profile),
        wait=not no_wait,
        dry_run=dry_run,
    )
    try:
        results = runner.run()
    except TeardownError as e:
        click.echo(str(e), err=True)
        click.echo(f"Components after {e.component.value} were not processed", err=True)
        raise SystemExit(1) from None

    for component, deleted in results:
        verb = "would delete" if dry_run else "deleted"
        click.echo(f"{component.value}: {verb} {len(deleted)}")


@main.command("deployed-revision")
@click.option("--cluster", required=True, help="ECS cluster name.")
@click.option("--service", required=True, help="ECS service name.")
@click.option("--region", help="AWS region.")
@click.option("--profile", help="AWS named profile.")
def deployed_revision(cluster, service, region, profile):
    """Print the task definition the service currently runs.

    Pass it back on the next deployment with
    ``cdk deploy -c deployed_task_definition_arn=<arn>`` to keep the running revision.
    """
    ecs = _session(region, profile).client("ecs")
    services = ecs.describe_services(cluster=cluster, services=[service])["services"]
    live = [s for s in services if s["status"] != "INACTIVE"]
    if not live:
        click.echo(f"Service {service} not found in cluster {cluster}", err=True)
        raise SystemExit(1)
    click.echo(live[0]["taskDefinition"])
