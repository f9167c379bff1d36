import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import make_spec
from netstack_deploy.resources.models import Ref, Reference, ResourceKind, ResourceModel, ResourceSpec
from netstack_deploy.state.models import Lifecycle, ResourceState, StateSnapshot
from netstack_deploy.utils.errors import (
    DuplicateResourceError,
    UnknownReferenceError,
    UnresolvedReferenceError,
)


def _created(name: str, kind: ResourceKind, **outputs) -> ResourceState:
    return ResourceState(
        logical_name=name,
        kind=kind,
        lifecycle=Lifecycle.CREATED,
        provider_id=outputs.get('id', f"{name}-id"),
        outputs=outputs,
        created_seq=1,
    )


def test_reference_parse_defaults_to_id() -> None:
    assert Reference.parse('web_vpc') == Reference(target='web_vpc', attribute='id')
    assert Reference.parse('web_alb.dns_name') == Ref('web_alb', 'dns_name')
    assert str(Ref('web_alb', 'arn')) == 'web_alb.arn'


def test_logical_name_rejects_dots() -> None:
    with pytest.raises(PydanticValidationError):
        ResourceSpec(logical_name='web.vpc', kind=ResourceKind.NETWORK)


def test_referenced_names_include_nested_references() -> None:
    spec = make_spec(
        'rt', ResourceKind.ROUTE_TABLE,
        VpcId=Ref('vpc'),
        Routes=[{'DestinationCidrBlock': '0.0.0.0/0', 'GatewayId': Ref('igw')}],
    )
    assert spec.referenced_names() == {'vpc', 'igw'}


def test_duplicate_logical_name_rejected() -> None:
    with pytest.raises(DuplicateResourceError) as exc:
        ResourceModel([
            make_spec('vpc', ResourceKind.NETWORK),
            make_spec('vpc', ResourceKind.NETWORK),
        ])
    assert exc.value.logical_name == 'vpc'


def test_unknown_reference_names_resource_and_target() -> None:
    with pytest.raises(UnknownReferenceError) as exc:
        ResourceModel([
            make_spec('vpc', ResourceKind.NETWORK),
            make_spec('subnet', ResourceKind.SUBNET, VpcId=Ref('missing_vpc')),
        ])
    assert exc.value.resource_id == 'subnet'
    assert exc.value.target == 'missing_vpc'


def test_references_exposed_per_resource(scenario_model) -> None:
    assert scenario_model.references('load_balancer') == {'subnet_1', 'subnet_2', 'web_sg'}
    assert scenario_model.references('network') == set()
    assert scenario_model.names()[0] == 'load_balancer'
    assert 'network' in scenario_model
    assert len(scenario_model) == 7


def test_substitute_replaces_references_with_outputs(scenario_model) -> None:
    snapshot = StateSnapshot({
        'network': _created('network', ResourceKind.NETWORK, id='vpc-123'),
        'vpc_gateway': _created('vpc_gateway', ResourceKind.INTERNET_GATEWAY, id='igw-456'),
    })

    attributes = scenario_model.substitute('route_table', snapshot)

    assert attributes['VpcId'] == 'vpc-123'
    assert attributes['Routes'] == [{'DestinationCidrBlock': '0.0.0.0/0', 'GatewayId': 'igw-456'}]
    assert attributes['Label'] == 'route_table'


def test_substitute_id_falls_back_to_provider_id(scenario_model) -> None:
    state = ResourceState(
        logical_name='network', kind=ResourceKind.NETWORK,
        lifecycle=Lifecycle.CREATED, provider_id='vpc-999', created_seq=1,
    )
    attributes = scenario_model.substitute('subnet_1', StateSnapshot({'network': state}))
    assert attributes['VpcId'] == 'vpc-999'


def test_substitute_fails_when_target_not_created(scenario_model) -> None:
    snapshot = StateSnapshot({
        'network': ResourceState(logical_name='network', kind=ResourceKind.NETWORK, lifecycle=Lifecycle.CREATING),
    })
    with pytest.raises(UnresolvedReferenceError) as exc:
        scenario_model.substitute('subnet_1', snapshot)
    assert exc.value.target == 'network'
    assert 'Creating' in exc.value.message


def test_substitute_fails_when_output_missing() -> None:
    model = ResourceModel([
        make_spec('web_alb', ResourceKind.LOAD_BALANCER, Subnets=[]),
        make_spec('listener', ResourceKind.LISTENER, LoadBalancerArn=Ref('web_alb', 'arn')),
    ])
    snapshot = StateSnapshot({'web_alb': _created('web_alb', ResourceKind.LOAD_BALANCER, id='lb-1')})

    with pytest.raises(UnresolvedReferenceError) as exc:
        model.substitute('listener', snapshot)
    assert exc.value.attribute == 'arn'
