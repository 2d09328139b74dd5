# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Dependency graph of the deployment's components.

CloudFormation derives creation order from attribute references; this module
states the same graph explicitly so that tooling outside the provisioning
engine (teardown, order listings) walks it the same way, and so the stack
declares the extra ordering edges of the workload service from one place.
"""

from enum import Enum
from graphlib import TopologicalSorter
from typing import Dict, FrozenSet, List, Tuple


class Component(str, Enum):
    NETWORK = "network"
    ACCESS_POLICIES = "access_policies"
    CLUSTER = "cluster"
    INSTANCE_ROLE = "instance_role"
    LOG_GROUP = "log_group"
    INSTANCE_PROVISIONING = "instance_provisioning"
    CAPACITY_PROVIDER = "capacity_provider"
    CAPACITY_ASSOCIATION = "capacity_association"
    LOAD_BALANCER = "load_balancer"
    LISTENER = "listener"
    CACHE = "cache"
    WORKLOAD_TEMPLATE = "workload_template"
    WORKLOAD_SERVICE = "workload_service"
    ALARMS = "alarms"
    DASHBOARD = "dashboard"


# The service must not start before its first health check and its cache
# endpoint can succeed, so it waits on these beyond its attribute references.
SERVICE_EXPLICIT_DEPENDENCIES: Tuple[Component, ...] = (
    Component.LISTENER,
    Component.CAPACITY_ASSOCIATION,
    Component.CACHE,
)

DEPENDENCIES: Dict[Component, FrozenSet[Component]] = {
    Component.NETWORK: frozenset(),
    Component.ACCESS_POLICIES: frozenset({Component.NETWORK}),
    Component.CLUSTER: frozenset({Component.NETWORK}),
    Component.INSTANCE_ROLE: frozenset({Component.LOG_GROUP}),
    Component.LOG_GROUP: frozenset(),
    Component.INSTANCE_PROVISIONING: frozenset({
        Component.NETWORK,
        Component.ACCESS_POLICIES,
        Component.INSTANCE_ROLE,
        Component.CLUSTER,
    }),
    Component.CAPACITY_PROVIDER: frozenset({Component.INSTANCE_PROVISIONING}),
    Component.CAPACITY_ASSOCIATION: frozenset({Component.CAPACITY_PROVIDER, Component.CLUSTER}),
    Component.LOAD_BALANCER: frozenset({Component.NETWORK, Component.ACCESS_POLICIES}),
    Component.LISTENER: frozenset({Component.LOAD_BALANCER}),
    Component.CACHE: frozenset({Component.NETWORK, Component.ACCESS_POLICIES}),
    Component.WORKLOAD_TEMPLATE: frozenset({Component.CACHE, Component.LOG_GROUP}),
    Component.WORKLOAD_SERVICE: frozenset({
        Component.WORKLOAD_TEMPLATE,
        Component.CLUSTER,
        Component.LOAD_BALANCER,
        *SERVICE_EXPLICIT_DEPENDENCIES,
    }),
    Component.ALARMS: frozenset({Component.WORKLOAD_SERVICE, Component.LOAD_BALANCER}),
    Component.DASHBOARD: frozenset({
        Component.WORKLOAD_SERVICE,
        Component.LOAD_BALANCER,
        Component.CACHE,
        Component.LOG_GROUP,
    }),
}


def creation_order(dependencies: Dict[Component, FrozenSet[Component]] = DEPENDENCIES) -> List[Component]:
    """
    Return the components in an order where every component follows all of its
    dependencies. Ready components are emitted in declaration order so that the
    result is stable between runs.

    Raises:
        graphlib.CycleError: if the graph contains a cycle
    """
    declared = list(dependencies)
    sorter = TopologicalSorter(dependencies)
    sorter.prepare()

    order = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=declared.index)
        for component in ready:
            order.append(component)
            sorter.done(component)
    return order


def destruction_order(dependencies: Dict[Component, FrozenSet[Component]] = DEPENDENCIES) -> List[Component]:
    return list(reversed(creation_order(dependencies)))
