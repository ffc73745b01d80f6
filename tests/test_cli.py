# python
import json
from unittest.mock import MagicMock, patch

import pytest

from tee_deploy import cli
from tee_deploy.crypto import decrypt_env_vars, encrypt_env_vars
from tee_deploy.models import DeploymentResponse
from tee_deploy.protocol import KeyIssuance


def test_parse_env_lines():
    lines = [
        "# comment\n",
        "\n",
        "API_KEY=sk-123\n",
        "export DEBUG=true\n",
        'QUOTED="a b=c"\n',
        "API_KEY=again\n",
        "EMPTY=\n",
    ]
    assert cli.parse_env_lines(lines) == [
        ("API_KEY", "sk-123"), ("DEBUG", "true"), ("QUOTED", "a b=c"), ("API_KEY", "again"), ("EMPTY", ""),
    ]


def test_parse_env_lines_rejects_garbage():
    with pytest.raises(ValueError):
        cli.parse_env_lines(["NOVALUE\n"])


def test_encrypt_then_decrypt(recipient, tmp_path, capsys, monkeypatch):
    private_hex, public_hex = recipient
    env_file = tmp_path / "secrets.env"
    env_file.write_text("API_KEY=sk-123\n")
    monkeypatch.setenv("FROM_SHELL", "shell-value")

    rc = cli.main(["encrypt", "--pubkey", public_hex, "--env-file", str(env_file),
                   "--from-env", "FROM_SHELL", "--", "DEBUG=true"])
    assert rc == 0
    envelope = capsys.readouterr().out.strip()
    assert decrypt_env_vars(envelope, private_hex) == [
        ("API_KEY", "sk-123"), ("FROM_SHELL", "shell-value"), ("DEBUG", "true"),
    ]

    (tmp_path / "env.hex").write_text(envelope)
    rc = cli.main(["decrypt", f"@{tmp_path / 'env.hex'}", "--private-key", private_hex])
    assert rc == 0
    out = capsys.readouterr().out
    assert "sk-123" not in out
    assert "API_KEY=" in out

    rc = cli.main(["decrypt", envelope, "--private-key", private_hex, "--reveal"])
    assert "API_KEY=sk-123" in capsys.readouterr().out


def test_encrypt_bad_key_exits_1(capsys):
    rc = cli.main(["encrypt", "--pubkey", "0x1234", "A=b"])
    assert rc == 1
    assert "ERR" in capsys.readouterr().err


def test_decrypt_tampered_exits_1(recipient, capsys):
    private_hex, public_hex = recipient
    env = encrypt_env_vars([("A", "b")], public_hex)
    tampered = env[:-1] + ("0" if env[-1] != "0" else "1")
    assert cli.main(["decrypt", tampered, "--private-key", private_hex]) == 1
    assert "authentication" in capsys.readouterr().err


def test_decrypt_needs_private_key(recipient, monkeypatch, capsys):
    monkeypatch.delenv("TEE_RECIPIENT_PRIVATE_KEY", raising=False)
    _, public_hex = recipient
    assert cli.main(["decrypt", encrypt_env_vars([], public_hex)]) == 1


def test_keygen_and_inspect(capsys):
    assert cli.main(["keygen"]) == 0
    keys = json.loads(capsys.readouterr().out)
    assert len(keys["private_key"]) == 64 and len(keys["public_key"]) == 64

    env = encrypt_env_vars([("A", "b")], keys["public_key"])
    assert cli.main(["inspect", env]) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["tag_bytes"] == 16
    assert len(info["nonce"]) == 24


def _issue(tmp_path, vm_config_dict, public_hex):
    compose = tmp_path / "docker-compose.yml"
    compose.write_text("services: {}\n")
    out = tmp_path / "issuance.json"
    with patch("tee_deploy.cli.TeeDeployer") as MockDeployer:
        deployer = MagicMock()
        deployer.create_vm_config_from_file.return_value = vm_config_dict
        deployer.issue_key.return_value = KeyIssuance.create(vm_config_dict, public_hex, "s")
        MockDeployer.from_settings.return_value = deployer
        rc = cli.main(["pubkey", "--compose", str(compose), "--name", "app", "--teepod-id", "3",
                       "--out", str(out)])
    assert rc == 0
    return out


def test_deploy_command(tmp_path, capsys, monkeypatch, vm_config_dict, recipient):
    _, public_hex = recipient
    monkeypatch.setenv("PHALA_CLOUD_API_KEY", "k")
    issuance = _issue(tmp_path, vm_config_dict, public_hex)
    assert capsys.readouterr().out.strip() == public_hex
    assert "binding" in json.loads(issuance.read_text())
    envelope = encrypt_env_vars([("A", "b")], public_hex)

    with patch("tee_deploy.cli.TeeDeployer") as MockDeployer:
        deployer = MagicMock()
        deployer.deploy_with_encrypted_env.return_value = DeploymentResponse(id=5, status="pending")
        MockDeployer.from_settings.return_value = deployer

        rc = cli.main(["deploy", "--issuance", str(issuance), "--envelope", envelope])

    assert rc == 0
    assert json.loads(capsys.readouterr().out)["id"] == 5
    sent_issuance, sent_envelope = deployer.deploy_with_encrypted_env.call_args.args
    assert sent_issuance.vm_config == vm_config_dict
    assert sent_envelope == envelope


@pytest.mark.parametrize("field,value", [("image", "evil-image"), ("vcpu", 8)])
def test_deploy_refuses_edited_issuance(tmp_path, capsys, monkeypatch, vm_config_dict, recipient, field, value):
    _, public_hex = recipient
    monkeypatch.setenv("PHALA_CLOUD_API_KEY", "k")
    issuance = _issue(tmp_path, vm_config_dict, public_hex)
    doc = json.loads(issuance.read_text())
    doc["vm_config"][field] = value
    issuance.write_text(json.dumps(doc))
    capsys.readouterr()

    with patch("tee_deploy.cli.TeeDeployer") as MockDeployer:
        rc = cli.main(["deploy", "--issuance", str(issuance),
                       "--envelope", encrypt_env_vars([("A", "b")], public_hex)])

    assert rc == 1
    assert "changed since the key was issued" in capsys.readouterr().err
    MockDeployer.from_settings.assert_not_called()


def test_deploy_refuses_issuance_without_binding(tmp_path, capsys, monkeypatch, vm_config_dict, recipient):
    _, public_hex = recipient
    monkeypatch.setenv("PHALA_CLOUD_API_KEY", "k")
    issuance = tmp_path / "issuance.json"
    issuance.write_text(json.dumps({
        "vm_config": vm_config_dict, "app_env_encrypt_pubkey": public_hex, "app_id_salt": "s",
    }))
    with patch("tee_deploy.cli.TeeDeployer") as MockDeployer:
        rc = cli.main(["deploy", "--issuance", str(issuance),
                       "--envelope", encrypt_env_vars([("A", "b")], public_hex)])
    assert rc == 1
    MockDeployer.from_settings.assert_not_called()


def test_operator_commands_need_api_key(monkeypatch, capsys):
    monkeypatch.delenv("PHALA_CLOUD_API_KEY", raising=False)
    assert cli.main(["teepods"]) == 1
    assert "PHALA_CLOUD_API_KEY" in capsys.readouterr().err
