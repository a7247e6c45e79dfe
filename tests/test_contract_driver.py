import asyncio

from adapters.sandbox import SANDBOX_ARTIFACT
from core.domain.events import RESPONSE_CODE, TOKEN_MINT_COMPLETE
from core.domain.models import BytecodeRef, CapabilityKeySpec
from core.services.contract_driver import MINT_TOKENS, ContractDriver


def test_deploy_records_bytecode_version(network) -> None:
    instance = asyncio.run(ContractDriver(contracts=network).deploy(SANDBOX_ARTIFACT))
    assert instance.native_address.startswith("0x")
    assert instance.registry_id is None
    assert instance.bytecode_version == SANDBOX_ARTIFACT.version


def test_invoke_decodes_own_events_and_drops_foreign_logs(network) -> None:
    async def run():
        driver = ContractDriver(contracts=network)
        instance = await driver.deploy(SANDBOX_ARTIFACT)
        contract = network._contracts[instance.native_address.lower()]
        token_id = network.add_token(supply_key=CapabilityKeySpec(contract_id=contract.registry_id))
        token = await network.query_token_info(token_id)
        return await driver.invoke(instance, MINT_TOKENS, [token.evm_address, 5000], gas_limit=1_000_000)

    receipt = asyncio.run(run())
    assert receipt.status == 22
    assert [event.name for event in receipt.events] == [TOKEN_MINT_COMPLETE]
    assert receipt.find_event(TOKEN_MINT_COMPLETE).args == {"responseCode": 22}
    assert receipt.find_event(RESPONSE_CODE) is None


def test_unknown_contract_returns_status_without_events(network) -> None:
    driver = ContractDriver(contracts=network)
    instance = driver.attach("0x" + "ab" * 20)
    receipt = asyncio.run(driver.invoke(instance, MINT_TOKENS, [], gas_limit=1_000_000))
    assert receipt.status == 16
    assert receipt.events == ()


def test_schema_from_artifact_abi() -> None:
    abi = (
        {
            "type": "event",
            "name": "TokenMintComplete",
            "inputs": [{"name": "responseCode", "type": "int256", "indexed": False}],
        },
    )
    driver = ContractDriver.for_artifact(contracts=None, artifact=BytecodeRef(bytecode="0x60", abi=abi))
    assert driver.schema.names() == ["TokenMintComplete"]

    fallback = ContractDriver.for_artifact(contracts=None, artifact=BytecodeRef(bytecode="0x60"))
    assert fallback.schema.names() == [RESPONSE_CODE, TOKEN_MINT_COMPLETE]
