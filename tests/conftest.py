import pytest

from adapters.sandbox import SANDBOX_ARTIFACT, SandboxNetwork
from adapters.signing import OperatorSigner
from core.domain.models import TokenSpec
from core.services.authority_executor import AuthorityTransactionExecutor
from core.services.contract_driver import ContractDriver
from core.services.migration import MigrationOptions, MigrationOrchestrator

OPERATOR_ID = "0.0.1001"
OPERATOR_KEY = "0x" + "11" * 32


@pytest.fixture
def signer():
    return OperatorSigner.from_string(OPERATOR_KEY)


@pytest.fixture
def network():
    return SandboxNetwork(operator_id=OPERATOR_ID, index_lag=2)


@pytest.fixture
def fast_options():
    return MigrationOptions(index_poll_interval=0, settle_delay=0, index_max_attempts=5)


@pytest.fixture
def token_spec():
    return TokenSpec(initial_supply=1_000_000, treasury_account=OPERATOR_ID)


@pytest.fixture
def artifact():
    return SANDBOX_ARTIFACT


@pytest.fixture
def make_orchestrator(network, signer, fast_options):
    def build(**kwargs):
        options = kwargs.pop("options", fast_options)
        contracts = kwargs.pop("contracts", network)
        executor = AuthorityTransactionExecutor(ledger=network, signer=signer, operator_id=OPERATOR_ID)
        driver = ContractDriver(contracts=contracts)
        return MigrationOrchestrator(
            executor=executor,
            driver=driver,
            index=network,
            options=options,
            **kwargs,
        )

    return build
