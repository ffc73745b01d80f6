# python
from unittest.mock import MagicMock

import pytest
import requests

from tee_deploy.client import TeeClient
from tee_deploy.errors import ApiError, TransportError


def _resp(status=200, payload=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload
    r.content = b"x" if payload is not None else b""
    r.text = text
    return r


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def client(session):
    return TeeClient("test_api_key", "https://api.example/api/v1/", timeout=30, session=session)


def test_headers_set_on_session(client, session):
    assert session.headers["x-api-key"] == "test_api_key"
    assert session.headers["Content-Type"] == "application/json"
    assert client.api_url == "https://api.example/api/v1"


def test_get_pubkey_normalizes_0x_prefix(client, session, vm_config_dict):
    # Arrange
    session.request.return_value = _resp(payload={
        "app_env_encrypt_pubkey": "0x" + "AB" * 32,
        "app_id_salt": "test_salt",
    })

    # Act
    resp = client.get_pubkey_for_config(vm_config_dict)

    # Assert
    assert resp.app_env_encrypt_pubkey == "ab" * 32
    assert resp.app_id_salt == "test_salt"
    session.request.assert_called_once_with(
        "POST", "https://api.example/api/v1/cvms/pubkey/from_cvm_configuration",
        json=vm_config_dict, timeout=30,
    )


def test_deploy_forwards_envelope_and_salt(client, session, vm_config_dict):
    session.request.return_value = _resp(payload={"id": 123, "status": "pending", "details": {"t": 1}})

    result = client.deploy_with_encrypted_env(vm_config_dict, "deadbeef", "ab" * 32, "test_salt")

    assert result.id == 123
    assert result.status == "pending"
    method, url = session.request.call_args.args
    body = session.request.call_args.kwargs["json"]
    assert (method, url) == ("POST", "https://api.example/api/v1/cvms/from_cvm_configuration")
    assert body["encrypted_env"] == "deadbeef"
    assert body["app_env_encrypt_pubkey"] == "ab" * 32
    assert body["app_id_salt"] == "test_salt"
    assert body["compose_manifest"] == vm_config_dict["compose_manifest"]
    # caller's dict is not mutated
    assert "encrypted_env" not in vm_config_dict


def test_api_error_carries_status_and_body(client, session, vm_config_dict):
    session.request.return_value = _resp(status=422, text='{"error":"Invalid configuration"}')

    with pytest.raises(ApiError) as exc:
        client.get_pubkey_for_config(vm_config_dict)

    assert exc.value.status_code == 422
    assert "Invalid configuration" in exc.value.message


def test_network_failure_is_transport_error(client, session):
    session.request.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(TransportError):
        client.get_available_teepods()
    # no retry
    assert session.request.call_count == 1


def test_teepod_discovery_uses_short_timeout(client, session):
    session.request.return_value = _resp(payload={
        "tier": "free",
        "nodes": [{"teepod_id": 3, "name": "prod5", "images": [{"name": "dstack-dev-0.3.5"}]}],
    })

    teepods = client.get_available_teepods()

    assert teepods.nodes[0].teepod_id == 3
    assert teepods.nodes[0].images[0].name == "dstack-dev-0.3.5"
    assert session.request.call_args.kwargs["timeout"] == 15


def test_update_compose_body(client, session):
    session.request.return_value = _resp(payload={"ok": True})
    client.update_compose("app-1", {"compose_manifest": {}}, encrypted_env="beef")
    method, url = session.request.call_args.args
    assert (method, url) == ("PUT", "https://api.example/api/v1/cvms/app-1/compose")
    assert session.request.call_args.kwargs["json"] == {
        "compose_manifest": {"compose_manifest": {}}, "encrypted_env": "beef",
    }


def test_update_compose_without_env(client, session):
    session.request.return_value = _resp(payload={"ok": True})
    client.update_compose("app-1", {"a": 1})
    assert "encrypted_env" not in session.request.call_args.kwargs["json"]


def test_get_compose_normalizes_env_pubkey(client, session):
    session.request.return_value = _resp(payload={"compose_file": {"name": "x"}, "env_pubkey": "0x" + "cd" * 32})
    assert client.get_compose("app-1").env_pubkey == "cd" * 32


def test_network_info(client, session):
    session.request.return_value = _resp(payload={
        "is_online": True, "is_public": False, "internal_ip": "10.0.0.2",
        "public_urls": [{"app": "https://a.example", "instance": "https://i.example"}],
    })
    info = client.get_network_info("app-1")
    assert info.is_online
    assert info.public_urls[0].app == "https://a.example"


@pytest.mark.parametrize("call,method,path", [
    ("get_cvm", "GET", "/cvms/c1"),
    ("get_state", "GET", "/cvms/c1/state"),
    ("start_cvm", "POST", "/cvms/c1/start"),
    ("stop_cvm", "POST", "/cvms/c1/stop"),
    ("shutdown_cvm", "POST", "/cvms/c1/shutdown"),
    ("get_attestation", "GET", "/cvms/c1/attestation"),
])
def test_lifecycle_endpoints(client, session, call, method, path):
    session.request.return_value = _resp(payload={"id": "c1"})
    assert getattr(client, call)("c1") == {"id": "c1"}
    assert session.request.call_args.args == (method, "https://api.example/api/v1" + path)


def test_delete_cvm_empty_body(client, session):
    session.request.return_value = _resp(status=204)
    assert client.delete_cvm("c1") is None


def test_non_json_success_is_api_error(client, session):
    r = _resp(payload={})
    r.json.side_effect = ValueError("no json")
    session.request.return_value = r
    with pytest.raises(ApiError):
        client.get_cvm("c1")
