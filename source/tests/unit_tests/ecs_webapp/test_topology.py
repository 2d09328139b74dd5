# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from graphlib import CycleError

import pytest

from ecs_webapp.topology import (
    Component,
    DEPENDENCIES,
    SERVICE_EXPLICIT_DEPENDENCIES,
    creation_order,
    destruction_order,
)


def test_every_component_is_ordered_once():
    order = creation_order()

    assert sorted(order) == sorted(Component)
    assert len(order) == len(set(order))


def test_dependencies_are_created_first():
    order = creation_order()
    position = {component: index for index, component in enumerate(order)}

    for component, dependencies in DEPENDENCIES.items():
        for dependency in dependencies:
            assert position[dependency] < position[component], f"{dependency} must precede {component}"


def test_service_waits_for_listener_capacity_and_cache():
    assert set(SERVICE_EXPLICIT_DEPENDENCIES) == {
        Component.LISTENER,
        Component.CAPACITY_ASSOCIATION,
        Component.CACHE,
    }
    assert set(SERVICE_EXPLICIT_DEPENDENCIES) <= DEPENDENCIES[Component.WORKLOAD_SERVICE]


def test_order_is_stable():
    assert creation_order() == creation_order()
    assert creation_order()[:2] == [Component.NETWORK, Component.LOG_GROUP]


def test_destruction_reverses_creation():
    order = destruction_order()

    assert order == list(reversed(creation_order()))
    assert order.index(Component.WORKLOAD_SERVICE) < order.index(Component.CACHE)
    assert order.index(Component.CAPACITY_ASSOCIATION) < order.index(Component.CAPACITY_PROVIDER)
    assert order[-1] == Component.NETWORK


def test_cycle_is_reported():
    dependencies = {
        Component.NETWORK: frozenset({Component.CLUSTER}),
        Component.CLUSTER: frozenset({Component.NETWORK}),
    }
    with pytest.raises(CycleError):
        creation_order(dependencies)
