import json

import pytest
from typer.testing import CliRunner

from cli.main import app

runner = CliRunner()


@pytest.fixture
def sandbox_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPERATOR_ID", "0.0.1001")
    monkeypatch.setenv("OPERATOR_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("KEYSHIFT_SETTLE_DELAY_SECONDS", "0")
    monkeypatch.setenv("KEYSHIFT_INDEX_POLL_INTERVAL_SECONDS", "0")
    return tmp_path


def test_migrate_on_sandbox_writes_report_and_audit_log(sandbox_env) -> None:
    report_path = sandbox_env / "out" / "report.json"
    audit_path = sandbox_env / "trail.jsonl"

    result = runner.invoke(
        app,
        ["migrate", "--network", "sandbox", "--quiet", "--report", str(report_path), "--audit-log", str(audit_path)],
    )

    assert result.exit_code == 0, result.output
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["state"] == "Done"
    assert report["summary"]["final_supply"] == 1_005_000
    assert report["failure"] is None

    lines = audit_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == len(report["trail"])
    assert json.loads(lines[-1])["step"] == "Done"
    assert "TOKEN_ID=" in result.output


def test_rotate_on_sandbox(sandbox_env) -> None:
    result = runner.invoke(app, ["rotate", "--network", "sandbox", "--quiet"])
    assert result.exit_code == 0, result.output


def test_missing_credentials_exit_before_any_work(sandbox_env, monkeypatch) -> None:
    monkeypatch.delenv("OPERATOR_KEY")
    report_path = sandbox_env / "report.json"

    result = runner.invoke(app, ["migrate", "--network", "sandbox", "--report", str(report_path)])

    assert result.exit_code == 2
    assert "operator_key" in result.output
    assert not report_path.exists()


def test_real_network_needs_provider_and_artifact(sandbox_env) -> None:
    result = runner.invoke(app, ["migrate", "--network", "testnet"])
    assert result.exit_code == 2
    assert "ledger_provider" in result.output


def test_resolve_needs_a_mirror_node(sandbox_env) -> None:
    result = runner.invoke(app, ["resolve", "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed", "--network", "sandbox"])
    assert result.exit_code == 2


def test_doctor_on_sandbox(sandbox_env, monkeypatch) -> None:
    monkeypatch.setenv("KEYSHIFT_NETWORK", "sandbox")
    result = runner.invoke(app, ["doctor", "run"])
    assert result.exit_code == 0
    assert "sandbox" in result.output


@pytest.mark.parametrize(
    "name,value",
    [
        ("KEYSHIFT_INDEX_MAX_ATTEMPTS", "0"),
        ("OPERATOR_ID", "operator"),
        ("KEY_MANAGER_1_ADDRESS", "0x1234"),
    ],
)
def test_invalid_settings_are_configuration_errors(sandbox_env, monkeypatch, name, value) -> None:
    monkeypatch.setenv(name, value)

    result = runner.invoke(app, ["migrate", "--network", "sandbox", "--quiet"])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_invalid_rotation_option(sandbox_env) -> None:
    result = runner.invoke(app, ["rotate", "--network", "sandbox", "--token-id", "my-token"])
    assert result.exit_code == 2
    assert "token_id" in result.output


def test_doctor_rejects_invalid_settings(sandbox_env, monkeypatch) -> None:
    monkeypatch.setenv("KEYSHIFT_DEADLINE_SECONDS", "-1")
    result = runner.invoke(app, ["doctor", "run"])
    assert result.exit_code == 2


def test_doctor_reports_relay_endpoint(sandbox_env, monkeypatch) -> None:
    monkeypatch.setenv("TESTNET_ENDPOINT", "https://relay.example/api")
    monkeypatch.setenv("KEYSHIFT_MIRROR_NODE_URL", "http://127.0.0.1:9")
    monkeypatch.setenv("KEYSHIFT_HTTP_TIMEOUT_SECONDS", "0.5")
    result = runner.invoke(app, ["doctor", "run"])
    assert result.exit_code == 0
    assert "JSON-RPC relay" in result.output
