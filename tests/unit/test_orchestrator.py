import json

import pytest

from conftest import RecordingTransport, make_spec
from netstack_deploy.config.models import Settings, Topology
from netstack_deploy.orchestrator.orchestrator import ExitStatus, Provisioner
from netstack_deploy.resources.models import Ref, ResourceKind
from netstack_deploy.state.models import Lifecycle
from netstack_deploy.utils.errors import (
    CreateFailedError,
    CycleDetectedError,
    DuplicateResourceError,
    OutputNotAvailableError,
)

LB_DNS = "load_balancer-123456.us-east-1.elb.amazonaws.com"


@pytest.fixture
def topology(scenario_specs) -> Topology:
    return Topology(
        name='scenario',
        settings=Settings(max_workers=4),
        specs=scenario_specs,
        outputs={'lb_dns': Ref('load_balancer', 'dns_name')},
    )


def test_successful_run_reports_outputs(topology, transport) -> None:
    result = Provisioner(topology, transport).run()

    assert result.status == ExitStatus.SUCCESS
    assert result.is_success()
    assert result.outputs == {'lb_dns': LB_DNS}
    assert result.snapshot.all_created()
    assert result.rollback_failures == {}


def test_failed_run_rolls_back(topology) -> None:
    transport = RecordingTransport(fail_create=['subnet_2'])
    result = Provisioner(topology, transport, parallel=False).run()

    assert result.status == ExitStatus.ROLLED_BACK
    assert int(result.status) == 1
    assert result.outputs == {}
    assert isinstance(result.error, CreateFailedError)
    assert transport.live == set()


def test_incomplete_rollback_lists_resources(topology) -> None:
    transport = RecordingTransport(fail_create=['subnet_2'], fail_destroy=['network'])
    result = Provisioner(topology, transport, parallel=False).run()

    assert result.status == ExitStatus.ROLLBACK_INCOMPLETE
    assert list(result.rollback_failures) == ['network']
    assert result.snapshot['network'].lifecycle == Lifecycle.FAILED


def test_missing_output_after_successful_apply(scenario_specs, transport) -> None:
    topology = Topology(
        name='scenario',
        specs=scenario_specs,
        outputs={'zone': Ref('load_balancer', 'hosted_zone_id')},
    )
    result = Provisioner(topology, transport).run()

    assert result.status == ExitStatus.OUTPUTS_UNAVAILABLE
    assert int(result.status) == 4
    assert isinstance(result.error, OutputNotAvailableError)
    assert result.snapshot.all_created()
    assert result.outputs == {}
    assert transport.destroyed == []


def test_cycle_is_rejected_before_any_call(transport) -> None:
    topology = Topology(name='cyclic', specs=[
        make_spec('a', ResourceKind.SUBNET, VpcId=Ref('b')),
        make_spec('b', ResourceKind.SUBNET, VpcId=Ref('a')),
    ])
    result = Provisioner(topology, transport).run()

    assert result.status == ExitStatus.INVALID_TOPOLOGY
    assert int(result.status) == 3
    assert isinstance(result.error, CycleDetectedError)
    assert transport.created == []


def test_duplicate_names_are_rejected(transport) -> None:
    topology = Topology(name='dupes', specs=[
        make_spec('vpc', ResourceKind.NETWORK),
        make_spec('vpc', ResourceKind.NETWORK),
    ])
    result = Provisioner(topology, transport).run()

    assert result.status == ExitStatus.INVALID_TOPOLOGY
    assert isinstance(result.error, DuplicateResourceError)


def test_settings_and_overrides(topology, transport) -> None:
    assert Provisioner(topology, transport).max_workers == 4
    provisioner = Provisioner(topology, transport, max_workers=2, parallel=False)
    assert provisioner.max_workers == 2
    assert provisioner.parallel is False


def test_final_snapshot_written_to_state_file(topology, tmp_path) -> None:
    state_file = tmp_path / '.netstack' / 'state.json'
    transport = RecordingTransport(fail_create=['load_balancer'])

    Provisioner(topology, transport, state_file=str(state_file)).run()

    data = json.loads(state_file.read_text())
    assert data['resources']['load_balancer']['lifecycle'] == 'Failed'
    assert data['resources']['network']['lifecycle'] == 'RolledBack'


def test_plan_never_calls_transport(topology, transport) -> None:
    plan = Provisioner(topology, transport).plan()

    assert plan.get_total_resources() == 7
    assert plan.get_summary()['Subnet'] == 2
    assert plan.to_dict()['waves'][0]['resources'][0]['name'] == 'network'
    assert plan.order == ['network', 'subnet_1', 'subnet_2', 'vpc_gateway', 'web_sg',
                          'load_balancer', 'route_table']
    assert transport.created == []
