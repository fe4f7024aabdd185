import logging

import pytest
from unittest.mock import Mock, patch

from makesnapshot.client import VRAClient
from makesnapshot.config import RunOptions, VRAConfig
from makesnapshot.exceptions import SnapshotRequestFailed, VRAAPIError, VRAAuthError
from makesnapshot.pipeline import make_snapshot

VM_ID = '2a415ba9-81f5-4bff-b35f-bccfd5587165'
ACTION_ID = 'fcf490d5-a7e9-4640-be83-ac74d4484c91'
STATUS_URL = 'https://vra.example.com/catalog-service/api/consumer/requests/0c4e3f3a'


@pytest.fixture
def config():
    return VRAConfig(base_url='https://vra.example.com', tenant='tenant1', domain='corp.local',
                     username='jdoe', password='secret')


@pytest.fixture
def client():
    client = Mock(spec=VRAClient)
    client.authenticate.return_value = 'Bearer abc'
    client.find_virtual_machine.return_value = VM_ID
    client.find_snapshot_action.return_value = ACTION_ID
    client.get_action_template.return_value = None
    client.submit_snapshot_request.return_value = STATUS_URL
    client.poll_request_status.return_value = 'Successful'
    return client


def _steps(client):
    return [name for name, args, kwargs in client.mock_calls]


def test_make_snapshot_runs_all_steps(config, client):
    result = make_snapshot(config, RunOptions(machine_name='web01'), client)

    assert result == {'resource_id': VM_ID, 'action_id': ACTION_ID, 'status_url': STATUS_URL, 'state': 'Successful'}
    assert _steps(client) == [
        'authenticate',
        'find_virtual_machine',
        'find_snapshot_action',
        'get_action_template',
        'submit_snapshot_request',
        'poll_request_status',
    ]
    client.authenticate.assert_called_once_with('jdoe', 'secret', 'tenant1', 'corp.local')
    client.find_virtual_machine.assert_called_once_with('Bearer abc', 'web01', ignore_case=False)
    client.find_snapshot_action.assert_called_once_with('Bearer abc', VM_ID)
    client.submit_snapshot_request.assert_called_once_with('Bearer abc', VM_ID, ACTION_ID, 'tenant1', keep_existing=False)
    client.poll_request_status.assert_called_once_with('Bearer abc', STATUS_URL, max_wait=None)


def test_make_snapshot_dry_run(config, client, caplog):
    caplog.set_level(logging.INFO)

    result = make_snapshot(config, RunOptions(machine_name='web01', dry_run=True), client)

    assert result['state'] is None
    assert result['status_url'] is None
    client.submit_snapshot_request.assert_not_called()
    client.poll_request_status.assert_not_called()
    assert "Step 4 - Get resource action template" in caplog.messages
    assert "Step 5 - Skipped because of dry-run" in caplog.messages
    assert "Step 6 - Skipped because of dry-run" in caplog.messages


def test_make_snapshot_options(config, client):
    options = RunOptions(machine_name='Web01', keep_existing=True, ignore_case=True, max_wait=600)

    make_snapshot(config, options, client)

    client.find_virtual_machine.assert_called_once_with('Bearer abc', 'Web01', ignore_case=True)
    assert client.submit_snapshot_request.call_args[1]['keep_existing'] is True
    assert client.poll_request_status.call_args[1]['max_wait'] == 600


def test_make_snapshot_max_wait_from_config(client):
    config = VRAConfig(base_url='https://vra.example.com', tenant='tenant1', domain='corp.local',
                       username='jdoe', password='secret', max_wait=300)

    make_snapshot(config, RunOptions(machine_name='web01'), client)

    assert client.poll_request_status.call_args[1]['max_wait'] == 300


def test_make_snapshot_stops_on_auth_error(config, client):
    client.authenticate.side_effect = VRAAuthError("Unexpected HTTP response status code 401, denied", 401)

    with pytest.raises(VRAAuthError):
        make_snapshot(config, RunOptions(machine_name='web01'), client)

    assert _steps(client) == ['authenticate']


def test_make_snapshot_rejected_request_never_polls(config, client):
    client.submit_snapshot_request.side_effect = VRAAPIError("Unexpected HTTP response status code 400, Bad Request", 400)

    with pytest.raises(VRAAPIError):
        make_snapshot(config, RunOptions(machine_name='web01'), client)

    client.poll_request_status.assert_not_called()


def test_make_snapshot_failed_request(config, client):
    client.poll_request_status.side_effect = SnapshotRequestFailed("Snapshot request failed")

    with pytest.raises(SnapshotRequestFailed):
        make_snapshot(config, RunOptions(machine_name='web01'), client)


def test_make_snapshot_builds_client_from_config(config):
    with patch('makesnapshot.pipeline.VRAClient') as mock_client_class:
        mock_client_class.return_value.authenticate.return_value = 'Bearer abc'
        make_snapshot(config, RunOptions(machine_name='web01', dry_run=True))

    mock_client_class.assert_called_once_with('https://vra.example.com', verify_ssl=True, timeout=30)
