from conftest import RecordingTransport
from netstack_deploy.orchestrator.rollback import RollbackController
from netstack_deploy.state.models import Lifecycle


def _create(store, *names):
    for name in names:
        store.transition(name, Lifecycle.CREATING)
        store.transition(name, Lifecycle.CREATED, provider_id=f"{name}-id", outputs={'id': f"{name}-id"})


def _mark_live(transport, *names):
    transport.live.update(f"{name}-id" for name in names)


def test_rollback_in_reverse_creation_order(scenario_store) -> None:
    # Creation order deliberately differs from lexical order
    _create(scenario_store, 'network', 'web_sg', 'subnet_2', 'subnet_1')
    transport = RecordingTransport()
    _mark_live(transport, 'network', 'web_sg', 'subnet_2', 'subnet_1')

    result = RollbackController(scenario_store, transport).rollback()

    assert transport.destroyed == ['subnet_1', 'subnet_2', 'web_sg', 'network']
    assert result.rolled_back == ['subnet_1', 'subnet_2', 'web_sg', 'network']
    assert result.is_success()
    snapshot = scenario_store.snapshot()
    assert snapshot['network'].lifecycle == Lifecycle.ROLLED_BACK
    assert snapshot['load_balancer'].lifecycle == Lifecycle.PENDING


def test_failed_destroy_does_not_block_the_rest(scenario_store) -> None:
    _create(scenario_store, 'network', 'subnet_1', 'subnet_2')
    transport = RecordingTransport(fail_destroy=['subnet_2'])
    _mark_live(transport, 'network', 'subnet_1', 'subnet_2')

    result = RollbackController(scenario_store, transport).rollback()

    assert result.rolled_back == ['subnet_1', 'network']
    assert list(result.failed_resources) == ['subnet_2']
    assert 'subnet_2 rejected' in result.failed_resources['subnet_2']
    assert scenario_store.get('subnet_2').lifecycle == Lifecycle.FAILED
    assert scenario_store.get('subnet_2').provider_id == 'subnet_2-id'


def test_second_rollback_retries_only_stuck_resources(scenario_store) -> None:
    _create(scenario_store, 'network', 'subnet_1')
    transport = RecordingTransport(fail_destroy=['subnet_1'])
    _mark_live(transport, 'network', 'subnet_1')
    controller = RollbackController(scenario_store, transport)

    first = controller.rollback()
    assert list(first.failed_resources) == ['subnet_1']

    transport.fail_destroy.clear()
    second = controller.rollback()

    assert second.rolled_back == ['subnet_1']
    assert second.is_success()
    assert transport.destroyed == ['network', 'subnet_1']
    assert scenario_store.get('subnet_1').lifecycle == Lifecycle.ROLLED_BACK


def test_rollback_of_rolled_back_state_is_a_no_op(scenario_store) -> None:
    _create(scenario_store, 'network')
    transport = RecordingTransport()
    _mark_live(transport, 'network')
    controller = RollbackController(scenario_store, transport)
    controller.rollback()

    again = controller.rollback()

    assert again.get_total_operations() == 0
    assert transport.destroyed == ['network']
    assert scenario_store.get('network').lifecycle == Lifecycle.ROLLED_BACK


def test_destroy_of_already_destroyed_identifier_is_harmless(scenario_store) -> None:
    _create(scenario_store, 'network')
    # Resource vanished out of band: the transport no longer knows it
    transport = RecordingTransport()

    result = RollbackController(scenario_store, transport).rollback()

    assert result.rolled_back == ['network']
    assert transport.destroyed == []
    assert scenario_store.get('network').lifecycle == Lifecycle.ROLLED_BACK


def test_nothing_created_nothing_to_roll_back(scenario_store, transport) -> None:
    scenario_store.transition('network', Lifecycle.CREATING)
    scenario_store.transition('network', Lifecycle.FAILED, error='boom')

    result = RollbackController(scenario_store, transport).rollback()

    assert result.rolled_back == []
    assert result.failed_resources == {}
    assert scenario_store.get('network').lifecycle == Lifecycle.FAILED
