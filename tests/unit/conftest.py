"""Shared fixtures for unit tests."""

import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

from netstack_deploy.provisioners.base import CreateResult, Transport
from netstack_deploy.resources.models import Ref, ResourceKind, ResourceModel, ResourceSpec
from netstack_deploy.state.store import StateStore
from netstack_deploy.orchestrator.dependency_graph import DependencyGraph


def make_spec(name: str, kind: ResourceKind, **attributes) -> ResourceSpec:
    """Spec whose ``Label`` attribute lets the recording transport identify it."""
    return ResourceSpec(logical_name=name, kind=kind, attributes={'Label': name, **attributes})


class TransportFailure(Exception):
    """Raised by RecordingTransport for resources configured to fail."""


class RecordingTransport(Transport):
    """In-memory transport that records every call.

    Provider ids are ``<label>-id``. Destroying an unknown or already
    destroyed id is a no-op, matching the real provisioners.
    """

    def __init__(
        self,
        fail_create: Optional[List[str]] = None,
        fail_destroy: Optional[List[str]] = None,
        on_create: Optional[Callable[[str], None]] = None
    ):
        self.fail_create = set(fail_create or [])
        self.fail_destroy = set(fail_destroy or [])
        self.on_create = on_create
        self.created: List[str] = []
        self.destroyed: List[str] = []
        self.create_attributes: Dict[str, Dict[str, Any]] = {}
        self.live: set = set()
        self._lock = threading.Lock()

    def create(self, kind: ResourceKind, attributes: Dict[str, Any]) -> CreateResult:
        label = attributes['Label']
        with self._lock:
            self.create_attributes[label] = attributes
        if self.on_create is not None:
            self.on_create(label)
        if label in self.fail_create:
            raise TransportFailure(f"create of {label} rejected")

        provider_id = f"{label}-id"
        with self._lock:
            self.created.append(label)
            self.live.add(provider_id)
        return CreateResult(
            provider_id=provider_id,
            outputs={
                'id': provider_id,
                'arn': f"arn:aws:test:::{label}",
                'dns_name': f"{label}-123456.us-east-1.elb.amazonaws.com",
            }
        )

    def destroy(self, kind: ResourceKind, provider_id: str) -> None:
        label = provider_id[:-len('-id')]
        if label in self.fail_destroy:
            raise TransportFailure(f"destroy of {label} rejected")
        with self._lock:
            if provider_id in self.live:
                self.live.discard(provider_id)
                self.destroyed.append(label)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def scenario_specs() -> List[ResourceSpec]:
    """Network, two subnets, gateway, route table, security group, load balancer."""
    return [
        make_spec('network', ResourceKind.NETWORK, CidrBlock='10.0.0.0/16'),
        make_spec('subnet_1', ResourceKind.SUBNET, VpcId=Ref('network'), CidrBlock='10.0.1.0/24'),
        make_spec('subnet_2', ResourceKind.SUBNET, VpcId=Ref('network'), CidrBlock='10.0.2.0/24'),
        make_spec('vpc_gateway', ResourceKind.INTERNET_GATEWAY, VpcId=Ref('network')),
        make_spec(
            'route_table', ResourceKind.ROUTE_TABLE,
            VpcId=Ref('network'),
            Routes=[{'DestinationCidrBlock': '0.0.0.0/0', 'GatewayId': Ref('vpc_gateway')}]
        ),
        make_spec('web_sg', ResourceKind.SECURITY_GROUP, GroupName='web', VpcId=Ref('network')),
        make_spec(
            'load_balancer', ResourceKind.LOAD_BALANCER,
            LoadBalancerName='web-app-lb',
            Subnets=[Ref('subnet_1'), Ref('subnet_2')],
            SecurityGroups=[Ref('web_sg')]
        ),
    ]


@pytest.fixture
def scenario_model(scenario_specs) -> ResourceModel:
    return ResourceModel(scenario_specs)


@pytest.fixture
def scenario_graph(scenario_model) -> DependencyGraph:
    return DependencyGraph.from_model(scenario_model)


@pytest.fixture
def scenario_store(scenario_model) -> StateStore:
    return StateStore.from_model(scenario_model)
