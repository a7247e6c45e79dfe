import asyncio
import json

import pytest

from adapters.artifacts import load_artifact
from adapters.mirror_node import MirrorNodeIndex
from adapters.providers import build_services, load_provider
from adapters.sandbox import SandboxNetwork
from core.config import AppSettings
from core.errors import ConfigurationError

OPERATOR = {"operator_id": "0.0.1001", "operator_key": "0x" + "11" * 32}


def good_factory(settings, signer):
    network = SandboxNetwork(operator_id=settings.operator_id)
    return network, network


def bad_factory(settings, signer):
    return SandboxNetwork()


def _artifact(tmp_path, payload) -> str:
    path = tmp_path / "KeyManager.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_hardhat_artifact(tmp_path) -> None:
    abi = [{"type": "event", "name": "ResponseCode", "inputs": [{"name": "responseCode", "type": "int256"}]}]
    _artifact(tmp_path, {"contractName": "KeyManager", "abi": abi, "bytecode": "0x6080"})

    artifact = load_artifact(tmp_path / "KeyManager.json")

    assert artifact.contract_name == "KeyManager"
    assert artifact.bytecode == "0x6080"
    assert artifact.abi[0]["name"] == "ResponseCode"
    assert len(artifact.version) == 12


def test_solc_style_bytecode_object(tmp_path) -> None:
    _artifact(tmp_path, {"bytecode": {"object": "6080"}})
    artifact = load_artifact(tmp_path / "KeyManager.json")
    assert artifact.bytecode == "0x6080"
    assert artifact.contract_name == "KeyManager"


@pytest.mark.parametrize("payload", [{"abi": []}, {"bytecode": "0x"}, ["not", "an", "object"]])
def test_unusable_artifacts(tmp_path, payload) -> None:
    _artifact(tmp_path, payload)
    with pytest.raises(ConfigurationError):
        load_artifact(tmp_path / "KeyManager.json")


def test_missing_artifact(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_artifact(tmp_path / "absent.json")


@pytest.mark.parametrize("path", ["no_colon", "keyshift_missing_module:factory", f"{__name__}:absent"])
def test_bad_provider_paths(path) -> None:
    with pytest.raises(ConfigurationError):
        load_provider(path)


def test_provider_must_return_ledger_and_contracts(tmp_path) -> None:
    settings = AppSettings(
        _env_file=None,
        network="testnet",
        ledger_provider=f"{__name__}:bad_factory",
        contract_artifact_path=_artifact(tmp_path, {"bytecode": "0x6080"}),
        **OPERATOR,
    )
    with pytest.raises(ConfigurationError):
        build_services(settings)


def test_real_network_bundle_uses_mirror_node(tmp_path) -> None:
    settings = AppSettings(
        _env_file=None,
        network="testnet",
        ledger_provider=f"{__name__}:good_factory",
        contract_artifact_path=_artifact(tmp_path, {"bytecode": "0x6080"}),
        **OPERATOR,
    )
    bundle = build_services(settings)

    assert isinstance(bundle.index, MirrorNodeIndex)
    assert bundle.sandbox is None
    assert bundle.artifact.bytecode == "0x6080"
    asyncio.run(bundle.aclose())


def test_sandbox_bundle_shares_one_network() -> None:
    bundle = build_services(AppSettings(_env_file=None, network="sandbox", **OPERATOR))
    assert bundle.ledger is bundle.contracts is bundle.index is bundle.sandbox
