import pytest
from pydantic import ValidationError

from core.config import AppSettings, Network, load_settings, write_user_env_vars
from core.errors import ConfigurationError

LEGACY_ENV = {
    "OPERATOR_ID": "0.0.1001",
    "OPERATOR_KEY": "0x" + "11" * 32,
    "TOKEN_ID": "0.0.5000",
    "KEY_MANAGER_1_ADDRESS": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
    "TESTNET_ENDPOINT": "https://relay.example/api",
}


def test_legacy_environment_names_are_accepted(monkeypatch) -> None:
    for key, value in LEGACY_ENV.items():
        monkeypatch.setenv(key, value)

    settings = AppSettings(_env_file=None)

    assert settings.operator_id == "0.0.1001"
    assert settings.operator_key.get_secret_value() == LEGACY_ENV["OPERATOR_KEY"]
    assert settings.token_id == "0.0.5000"
    assert settings.prior_contract_address == LEGACY_ENV["KEY_MANAGER_1_ADDRESS"]
    assert settings.json_rpc_url == "https://relay.example/api"
    assert "11" * 32 not in repr(settings)


def test_prefixed_name_wins_over_legacy(monkeypatch) -> None:
    monkeypatch.setenv("OPERATOR_ID", "0.0.1")
    monkeypatch.setenv("KEYSHIFT_OPERATOR_ID", "0.0.2")
    monkeypatch.setenv("KEYSHIFT_NETWORK", "sandbox")
    monkeypatch.setenv("KEYSHIFT_MINT_AMOUNT", "42")

    settings = AppSettings(_env_file=None)

    assert settings.operator_id == "0.0.2"
    assert settings.network is Network.SANDBOX
    assert settings.mint_amount == 42


def test_defaults() -> None:
    settings = AppSettings(_env_file=None)
    assert settings.initial_supply == 1_000_000
    assert settings.mint_amount == 5000
    assert settings.index_max_attempts == 10
    assert settings.deadline_seconds == 180
    assert settings.resolved_mirror_node_url() == "https://testnet.mirrornode.hedera.com"
    assert AppSettings(_env_file=None, network="sandbox").resolved_mirror_node_url() is None


def test_missing_fields_are_reported_together() -> None:
    settings = AppSettings(_env_file=None, network="testnet", operator_id="0.0.1001")

    with pytest.raises(ConfigurationError) as excinfo:
        settings.require_for_migration()

    assert excinfo.value.missing == ("operator_key", "ledger_provider", "contract_artifact_path")


def test_blank_secret_counts_as_missing() -> None:
    settings = AppSettings(_env_file=None, network="sandbox", operator_id="0.0.1001", operator_key="  ")
    with pytest.raises(ConfigurationError) as excinfo:
        settings.require_for_migration()
    assert excinfo.value.missing == ("operator_key",)


def test_rotation_inputs_required_off_sandbox() -> None:
    base = {"operator_id": "0.0.1001", "operator_key": "0x" + "11" * 32}
    AppSettings(_env_file=None, network="sandbox", **base).require_for_rotation()

    settings = AppSettings(
        _env_file=None,
        network="testnet",
        ledger_provider="my_sdk:factory",
        contract_artifact_path="KeyManager.json",
        **base,
    )
    with pytest.raises(ConfigurationError) as excinfo:
        settings.require_for_rotation()
    assert excinfo.value.missing == ("token_id", "prior_contract_address")


def test_write_user_env_vars_merges(tmp_path) -> None:
    env_path = tmp_path / "keyshift" / ".env"
    env_path.parent.mkdir()
    env_path.write_text("OPERATOR_ID=0.0.1001\nTOKEN_ID=0.0.1\n", encoding="utf-8")

    write_user_env_vars({"TOKEN_ID": "0.0.5000", "KEY_MANAGER_1_ADDRESS": "0xabc"}, env_path=env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("#")
    assert lines[1:] == ["KEY_MANAGER_1_ADDRESS=0xabc", "OPERATOR_ID=0.0.1001", "TOKEN_ID=0.0.5000"]


@pytest.mark.parametrize(
    "field,value",
    [
        ("operator_id", "0.0"),
        ("token_id", "0x00000000000000000000000000000000000004d2"),
        ("prior_contract_address", "0.0.5001"),
    ],
)
def test_identifier_formats_are_checked(field, value) -> None:
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, **{field: value})


def test_load_settings_reports_invalid_values(monkeypatch) -> None:
    monkeypatch.setenv("KEYSHIFT_INDEX_MAX_ATTEMPTS", "0")
    with pytest.raises(ConfigurationError, match="index_max_attempts"):
        load_settings(_env_file=None)


def test_load_settings_applies_overrides_and_skips_none() -> None:
    settings = load_settings(_env_file=None, network=Network.SANDBOX, token_id=None, operator_id=" 0.0.7 ")
    assert settings.network is Network.SANDBOX
    assert settings.token_id is None
    assert settings.operator_id == "0.0.7"
