# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Dependency-ordered teardown of a deployed environment.

Used when the CloudFormation stack cannot remove an environment on its own, for
example after a failed rollback left resources behind. Every step looks its
resources up by the names in the stack's ResourceConfig output, so the teardown
can be re-run: resources that are already gone are skipped.

Any other AWS error stops the run. Components not yet processed stay in place
for the operator to remediate.
"""

import logging
from typing import Callable, List, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

import ecs_webapp.stack_constants as stack_constants
from ecs_webapp.ops.resource_config import ResourceConfig
from ecs_webapp.topology import Component, destruction_order

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {
    "CacheClusterNotFound",
    "CacheParameterGroupNotFound",
    "CacheSubnetGroupNotFoundFault",
    "ClusterNotFoundException",
    "InvalidGroup.NotFound",
    "InvalidInternetGatewayID.NotFound",
    "InvalidLaunchTemplateId.NotFound",
    "InvalidLaunchTemplateName.NotFoundException",
    "InvalidRouteTableID.NotFound",
    "InvalidSubnetID.NotFound",
    "InvalidVpcID.NotFound",
    "ListenerNotFound",
    "LoadBalancerNotFound",
    "NatGatewayNotFound",
    "NoSuchEntity",
    "ResourceNotFound",
    "ResourceNotFoundException",
    "ServiceNotActiveException",
    "ServiceNotFoundException",
    "TargetGroupNotFound",
}


class TeardownError(Exception):
    def __init__(self, component: Component, cause: Exception):
        super().__init__(f"Teardown of {component.value} failed: {cause}")
        self.component = component
        self.cause = cause


def is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


class Teardown:
    def __init__(
            self,
            config: ResourceConfig,
            session: Optional[boto3.Session] = None,
            wait: bool = True,
            dry_run: bool = False,
    ):
        self.config = config
        self.session = session or boto3.Session(region_name=config.region)
        self.wait = wait
        self.dry_run = dry_run
        self._clients = {}
        self._vpc_id = None

    def client(self, service_name: str):
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(service_name)
        return self._clients[service_name]

    def run(self) -> List[Tuple[Component, List[str]]]:
        """
        Delete every component, dependents before their dependencies.

        Returns:
            list: (component, ids of deleted resources) in the order processed

        Raises:
            TeardownError: on the first AWS error other than a missing resource, or when
                a name matches more than one resource
        """
        results = []
        for component in destruction_order():
            step = getattr(self, f"destroy_{component.value}")
            logger.info("Tearing down %s", component.value)
            try:
                deleted = step()
            except (ClientError, ValueError) as e:
                logger.error("Teardown of %s failed", component.value, exc_info=e)
                raise TeardownError(component, e) from e
            results.append((component, deleted))
        return results

    def _delete(self, kind: str, resource_id: str, call: Callable, **kwargs) -> bool:
        if self.dry_run:
            logger.info("[dry-run] Would delete %s %s", kind, resource_id)
            return True
        try:
            call(**kwargs)
        except ClientError as e:
            if is_not_found(e):
                logger.info("%s %s is already deleted", kind, resource_id)
                return False
            raise
        logger.info("Deleted %s %s", kind, resource_id)
        return True

    def _wait(self, client, waiter_name: str, **kwargs) -> None:
        if self.wait and not self.dry_run:
            logger.info("Waiting for %s", waiter_name)
            client.get_waiter(waiter_name).wait(**kwargs)

    # Observability

    def destroy_dashboard(self) -> List[str]:
        name = self.config.dashboard_name
        if not name:
            return []
        cloudwatch = self.client("cloudwatch")
        entries = cloudwatch.list_dashboards(DashboardNamePrefix=name).get("DashboardEntries", [])
        if name not in [entry["DashboardName"] for entry in entries]:
            return []
        self._delete("dashboard", name, cloudwatch.delete_dashboards, DashboardNames=[name])
        return [name]

    def destroy_alarms(self) -> List[str]:
        prefix = self.config.alarm_prefix
        if not prefix:
            return []
        cloudwatch = self.client("cloudwatch")
        # Exact names only, a prefix would also match environments such as "<prefix>-eu"
        owned = [f"{prefix}-{suffix}" for suffix in stack_constants.ALARM_NAME_SUFFIXES]
        names = [
            alarm["AlarmName"]
            for alarm in cloudwatch.describe_alarms(AlarmNames=owned).get("MetricAlarms", [])
        ]
        if names:
            self._delete("alarms", ", ".join(names), cloudwatch.delete_alarms, AlarmNames=names)
        return names

    # Workload

    def destroy_workload_service(self) -> List[str]:
        ecs = self.client("ecs")
        cluster, service = self.config.cluster_name, self.config.service_name
        try:
            services = ecs.describe_services(cluster=cluster, services=[service])["services"]
        except ClientError as e:
            if is_not_found(e):
                return []
            raise
        live = [s for s in services if s["status"] != "INACTIVE"]
        if not live:
            return []

        if not self.dry_run:
            # Draining to zero first stops new placements while the service is deleted
            ecs.update_service(cluster=cluster, service=service, desiredCount=0)
        deleted = self._delete("service", service, ecs.delete_service, cluster=cluster, service=service, force=True)
        if deleted:
            self._wait(ecs, "services_inactive", cluster=cluster, services=[service])
        return [s["serviceArn"] for s in live]

    def destroy_workload_template(self) -> List[str]:
        family = self.config.task_family
        if not family:
            return []
        ecs = self.client("ecs")
        revisions = []
        paginator = ecs.get_paginator("list_task_definitions")
        for page in paginator.paginate(familyPrefix=family, status="ACTIVE"):
            for arn in page["taskDefinitionArns"]:
                # familyPrefix also matches longer family names
                if arn.rsplit("/", 1)[-1].rsplit(":", 1)[0] == family:
                    revisions.append(arn)

        for arn in revisions:
            self._delete("task definition", arn, ecs.deregister_task_definition, taskDefinition=arn)
        return revisions

    # Load balancing

    def _load_balancer_arn(self) -> Optional[str]:
        elbv2 = self.client("elbv2")
        try:
            load_balancers = elbv2.describe_load_balancers(Names=[self.config.load_balancer_name])["LoadBalancers"]
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        return load_balancers[0]["LoadBalancerArn"] if load_balancers else None

    def destroy_listener(self) -> List[str]:
        load_balancer_arn = self._load_balancer_arn()
        if not load_balancer_arn:
            return []
        elbv2 = self.client("elbv2")
        listeners = elbv2.describe_listeners(LoadBalancerArn=load_balancer_arn)["Listeners"]
        for listener in listeners:
            self._delete("listener", listener["ListenerArn"], elbv2.delete_listener,
                         ListenerArn=listener["ListenerArn"])
        return [listener["ListenerArn"] for listener in listeners]

    def destroy_load_balancer(self) -> List[str]:
        elbv2 = self.client("elbv2")
        deleted = []
        load_balancer_arn = self._load_balancer_arn()
        if load_balancer_arn:
            self._delete("load balancer", load_balancer_arn, elbv2.delete_load_balancer,
                         LoadBalancerArn=load_balancer_arn)
            self._wait(elbv2, "load_balancers_deleted", LoadBalancerArns=[load_balancer_arn])
            deleted.append(load_balancer_arn)

        try:
            target_groups = elbv2.describe_target_groups(Names=[self.config.target_group_name])["TargetGroups"]
        except ClientError as e:
            if not is_not_found(e):
                raise
            target_groups = []
        for target_group in target_groups:
            self._delete("target group", target_group["TargetGroupArn"], elbv2.delete_target_group,
                         TargetGroupArn=target_group["TargetGroupArn"])
            deleted.append(target_group["TargetGroupArn"])
        return deleted

    # Compute capacity

    def _active_cluster(self) -> Optional[dict]:
        clusters = self.client("ecs").describe_clusters(clusters=[self.config.cluster_name])["clusters"]
        active = [cluster for cluster in clusters if cluster["status"] == "ACTIVE"]
        return active[0] if active else None

    def destroy_capacity_association(self) -> List[str]:
        cluster = self._active_cluster()
        if not cluster or not cluster.get("capacityProviders"):
            return []
        providers = list(cluster["capacityProviders"])
        if self.dry_run:
            logger.info("[dry-run] Would detach capacity providers %s from %s", providers, cluster["clusterName"])
        else:
            self.client("ecs").put_cluster_capacity_providers(
                cluster=cluster["clusterName"],
                capacityProviders=[],
                defaultCapacityProviderStrategy=[],
            )
            logger.info("Detached capacity providers %s from %s", providers, cluster["clusterName"])
        return providers

    def _capacity_providers_for_asg_prefix(self) -> List[str]:
        ecs = self.client("ecs")
        names = []
        kwargs = {}
        while True:
            response = ecs.describe_capacity_providers(**kwargs)
            for provider in response.get("capacityProviders", []):
                asg_reference = provider.get("autoScalingGroupProvider", {}).get("autoScalingGroupArn", "")
                asg_name = asg_reference.split("autoScalingGroupName/")[-1]
                if provider.get("status") == "ACTIVE" and asg_name.startswith(self.config.asg_prefix):
                    names.append(provider["name"])
            if not response.get("nextToken"):
                return names
            kwargs["nextToken"] = response["nextToken"]

    def destroy_capacity_provider(self) -> List[str]:
        ecs = self.client("ecs")
        providers = self._capacity_providers_for_asg_prefix()
        for name in providers:
            self._delete("capacity provider", name, ecs.delete_capacity_provider, capacityProvider=name)
        return providers

    def destroy_instance_provisioning(self) -> List[str]:
        autoscaling = self.client("autoscaling")
        ec2 = self.client("ec2")
        prefix = self.config.asg_prefix

        group_names = []
        paginator = autoscaling.get_paginator("describe_auto_scaling_groups")
        for page in paginator.paginate():
            group_names.extend(
                group["AutoScalingGroupName"] for group in page["AutoScalingGroups"]
                if group["AutoScalingGroupName"].startswith(prefix)
            )
        for name in group_names:
            # ForceDelete terminates the instances along with the group
            self._delete("auto scaling group", name, autoscaling.delete_auto_scaling_group,
                         AutoScalingGroupName=name, ForceDelete=True)
        if group_names:
            self._wait(autoscaling, "group_not_exists", AutoScalingGroupNames=group_names)

        templates = ec2.describe_launch_templates(
            Filters=[{"Name": "launch-template-name", "Values": [f"{self.config.launch_template_prefix}*"]}]
        )["LaunchTemplates"]
        for template in templates:
            self._delete("launch template", template["LaunchTemplateName"], ec2.delete_launch_template,
                         LaunchTemplateId=template["LaunchTemplateId"])
        return group_names + [template["LaunchTemplateName"] for template in templates]

    def destroy_instance_role(self) -> List[str]:
        role_name = self.config.instance_role_name
        if not role_name:
            return []
        iam = self.client("iam")
        try:
            iam.get_role(RoleName=role_name)
        except ClientError as e:
            if is_not_found(e):
                return []
            raise

        if self.dry_run:
            logger.info("[dry-run] Would delete role %s with its instance profiles and policies", role_name)
            return [role_name]

        for profile in iam.list_instance_profiles_for_role(RoleName=role_name)["InstanceProfiles"]:
            iam.remove_role_from_instance_profile(
                InstanceProfileName=profile["InstanceProfileName"], RoleName=role_name
            )
            self._delete("instance profile", profile["InstanceProfileName"], iam.delete_instance_profile,
                         InstanceProfileName=profile["InstanceProfileName"])
        for policy in iam.list_attached_role_policies(RoleName=role_name)["AttachedPolicies"]:
            iam.detach_role_policy(RoleName=role_name, PolicyArn=policy["PolicyArn"])
        for policy_name in iam.list_role_policies(RoleName=role_name)["PolicyNames"]:
            iam.delete_role_policy(RoleName=role_name, PolicyName=policy_name)
        self._delete("role", role_name, iam.delete_role, RoleName=role_name)
        return [role_name]

    def destroy_cluster(self) -> List[str]:
        cluster = self._active_cluster()
        if not cluster:
            return []
        self._delete("cluster", cluster["clusterName"], self.client("ecs").delete_cluster,
                     cluster=cluster["clusterName"])
        return [cluster["clusterArn"]]

    # Cache and logs

    def destroy_cache(self) -> List[str]:
        cluster_id = self.config.cache_cluster_id
        if not cluster_id:
            return []
        elasticache = self.client("elasticache")
        deleted = []
        try:
            clusters = elasticache.describe_cache_clusters(CacheClusterId=cluster_id)["CacheClusters"]
        except ClientError as e:
            if not is_not_found(e):
                raise
            clusters = []

        if clusters and clusters[0].get("CacheClusterStatus") != "deleting":
            self._delete("cache cluster", cluster_id, elasticache.delete_cache_cluster, CacheClusterId=cluster_id)
            deleted.append(cluster_id)
        if clusters:
            if not self.wait:
                logger.warning("Cache cluster %s is still deleting; re-run to remove its subnet and "
                               "parameter groups", cluster_id)
                return deleted
            self._wait(elasticache, "cache_cluster_deleted", CacheClusterId=cluster_id)

        if self.config.cache_subnet_group_name:
            if self._delete("cache subnet group", self.config.cache_subnet_group_name,
                            elasticache.delete_cache_subnet_group,
                            CacheSubnetGroupName=self.config.cache_subnet_group_name):
                deleted.append(self.config.cache_subnet_group_name)
        if self.config.cache_parameter_group_name:
            if self._delete("cache parameter group", self.config.cache_parameter_group_name,
                            elasticache.delete_cache_parameter_group,
                            CacheParameterGroupName=self.config.cache_parameter_group_name):
                deleted.append(self.config.cache_parameter_group_name)
        return deleted

    def destroy_log_group(self) -> List[str]:
        name = self.config.log_group_name
        if not name:
            return []
        logs = self.client("logs")
        groups = logs.describe_log_groups(logGroupNamePrefix=name)["logGroups"]
        if name not in [group["logGroupName"] for group in groups]:
            return []
        self._delete("log group", name, logs.delete_log_group, logGroupName=name)
        return [name]

    # Network

    def vpc_id(self) -> Optional[str]:
        if self._vpc_id is None:
            vpcs = self.client("ec2").describe_vpcs(
                Filters=[{"Name": "tag:Name", "Values": [self.config.vpc_name]}]
            )["Vpcs"]
            if len(vpcs) > 1:
                raise ValueError(f"More than one VPC is named {self.config.vpc_name}")
            self._vpc_id = vpcs[0]["VpcId"] if vpcs else None
        return self._vpc_id

    def destroy_access_policies(self) -> List[str]:
        ec2 = self.client("ec2")
        names = self.config.security_group_names
        filters = [{"Name": "group-name", "Values": names}]
        vpc_id = self.vpc_id()
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})
        groups = {
            group["GroupName"]: group["GroupId"]
            for group in ec2.describe_security_groups(Filters=filters)["SecurityGroups"]
        }

        # A group cannot be deleted while another group's rule references it
        deleted = []
        for name in names:
            if name in groups:
                self._delete("security group", name, ec2.delete_security_group, GroupId=groups[name])
                deleted.append(groups[name])
        return deleted

    def destroy_network(self) -> List[str]:
        vpc_id = self.vpc_id()
        if not vpc_id:
            return []
        ec2 = self.client("ec2")
        vpc_filter = [{"Name": "vpc-id", "Values": [vpc_id]}]
        deleted = []

        nat_gateways = ec2.describe_nat_gateways(
            Filters=vpc_filter + [{"Name": "state", "Values": ["pending", "available"]}]
        )["NatGateways"]
        for nat_gateway in nat_gateways:
            self._delete("NAT gateway", nat_gateway["NatGatewayId"], ec2.delete_nat_gateway,
                         NatGatewayId=nat_gateway["NatGatewayId"])
            deleted.append(nat_gateway["NatGatewayId"])
        if nat_gateways:
            self._wait(ec2, "nat_gateway_deleted",
                       NatGatewayIds=[nat_gateway["NatGatewayId"] for nat_gateway in nat_gateways])
            if self.wait:
                for nat_gateway in nat_gateways:
                    for address in nat_gateway.get("NatGatewayAddresses", []):
                        if address.get("AllocationId"):
                            self._delete("elastic IP", address["AllocationId"], ec2.release_address,
                                         AllocationId=address["AllocationId"])

        internet_gateways = ec2.describe_internet_gateways(
            Filters=[{"Name": "attachment.vpc-id", "Values": [vpc_id]}]
        )["InternetGateways"]
        for gateway in internet_gateways:
            gateway_id = gateway["InternetGatewayId"]
            if not self.dry_run:
                ec2.detach_internet_gateway(InternetGatewayId=gateway_id, VpcId=vpc_id)
            self._delete("internet gateway", gateway_id, ec2.delete_internet_gateway, InternetGatewayId=gateway_id)
            deleted.append(gateway_id)

        for route_table in ec2.describe_route_tables(Filters=vpc_filter)["RouteTables"]:
            associations = route_table.get("Associations", [])
            # The main route table goes with the VPC
            if any(association.get("Main") for association in associations):
                continue
            if not self.dry_run:
                for association in associations:
                    ec2.disassociate_route_table(AssociationId=association["RouteTableAssociationId"])
            self._delete("route table", route_table["RouteTableId"], ec2.delete_route_table,
                         RouteTableId=route_table["RouteTableId"])
            deleted.append(route_table["RouteTableId"])

        for subnet in ec2.describe_subnets(Filters=vpc_filter)["Subnets"]:
            self._delete("subnet", subnet["SubnetId"], ec2.delete_subnet, SubnetId=subnet["SubnetId"])
            deleted.append(subnet["SubnetId"])

        self._delete("VPC", vpc_id, ec2.delete_vpc, VpcId=vpc_id)
        deleted.append(vpc_id)
        return deleted
