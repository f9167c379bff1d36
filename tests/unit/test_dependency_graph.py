import random

import pytest

from conftest import make_spec
from netstack_deploy.orchestrator.dependency_graph import DependencyGraph
from netstack_deploy.resources.models import Ref, ResourceKind, ResourceModel
from netstack_deploy.utils.errors import CycleDetectedError, UnknownReferenceError


def _assert_dependencies_first(graph: DependencyGraph, order) -> None:
    position = {name: index for index, name in enumerate(order)}
    for name in order:
        for dep in graph.get_dependencies(name):
            assert position[dep] < position[name], f"{dep} must precede {name}"


def test_scenario_waves(scenario_graph) -> None:
    assert scenario_graph.get_deployment_waves() == [
        ['network'],
        ['subnet_1', 'subnet_2', 'vpc_gateway', 'web_sg'],
        ['load_balancer', 'route_table'],
    ]


def test_topological_sort_puts_targets_before_referrers(scenario_graph) -> None:
    order = scenario_graph.topological_sort()
    assert order[0] == 'network'
    assert len(order) == 7
    _assert_dependencies_first(scenario_graph, order)


def test_order_is_deterministic_regardless_of_input_order(scenario_specs) -> None:
    expected = DependencyGraph(scenario_specs).topological_sort()
    for seed in range(5):
        shuffled = list(scenario_specs)
        random.Random(seed).shuffle(shuffled)
        assert DependencyGraph(shuffled).topological_sort() == expected


def test_destruction_order_is_reverse(scenario_graph) -> None:
    assert scenario_graph.get_destruction_order() == list(reversed(scenario_graph.topological_sort()))


def test_dependents_and_transitive_walks(scenario_graph) -> None:
    assert scenario_graph.get_dependents('network') == {
        'subnet_1', 'subnet_2', 'vpc_gateway', 'route_table', 'web_sg'
    }
    assert scenario_graph.get_all_dependencies('load_balancer') == {'subnet_1', 'subnet_2', 'web_sg', 'network'}
    assert 'load_balancer' in scenario_graph.get_all_dependents('network')
    assert scenario_graph.get_roots() == ['network']


def test_cycle_reports_full_path() -> None:
    specs = [
        make_spec('a', ResourceKind.SECURITY_GROUP, Peer=Ref('c')),
        make_spec('b', ResourceKind.SECURITY_GROUP, Peer=Ref('a')),
        make_spec('c', ResourceKind.SECURITY_GROUP, Peer=Ref('b')),
        make_spec('d', ResourceKind.NETWORK),
    ]
    with pytest.raises(CycleDetectedError) as exc:
        DependencyGraph.from_model(ResourceModel(specs))

    cycle = exc.value.cycle
    assert sorted(cycle) == ['a', 'b', 'c']
    # Each element references the one before it
    for index, name in enumerate(cycle):
        previous = cycle[index - 1]
        assert previous in {spec.logical_name for spec in specs if name in spec.referenced_names()}
    assert 'Circular dependency detected' in exc.value.message


def test_self_reference_is_a_cycle() -> None:
    graph = DependencyGraph([make_spec('a', ResourceKind.SECURITY_GROUP, Peer=Ref('a'))])
    assert graph.detect_circular_dependencies() == ['a']
    with pytest.raises(CycleDetectedError):
        graph.topological_sort()


def test_dangling_reference_fails_validation() -> None:
    graph = DependencyGraph([make_spec('subnet', ResourceKind.SUBNET, VpcId=Ref('vpc'))])
    with pytest.raises(UnknownReferenceError) as exc:
        graph.validate()
    assert (exc.value.resource_id, exc.value.target) == ('subnet', 'vpc')


def test_empty_graph() -> None:
    graph = DependencyGraph([])
    assert graph.is_empty()
    assert graph.get_deployment_waves() == []
