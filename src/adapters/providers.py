"""Construcción de los servicios a partir de `AppSettings`.

Por qué aquí:
- La CLI no instancia adaptadores a mano: pide un `ServiceBundle` y arma el
  orquestador con él.
- `network=sandbox` usa la red en memoria para los tres servicios.
- En redes reales el índice es el mirror node (httpx) y el ledger/contratos
  vienen de `ledger_provider` (`module:factory`), que recibe
  `(settings, signer)` y devuelve `(ledger, contracts)`. La custodia de
  claves y el SDK de la red quedan fuera de este proyecto.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from adapters.artifacts import load_artifact
from adapters.mirror_node import MirrorNodeIndex
from adapters.sandbox import SANDBOX_ARTIFACT, SandboxNetwork
from adapters.signing import OperatorSigner
from core.config import AppSettings, Network
from core.domain.models import BytecodeRef, TokenSpec
from core.errors import ConfigurationError
from core.interfaces.services import (
    AuditSink,
    ContractExecutionService,
    IndexQueryService,
    LedgerAuthorityService,
    Signer,
)
from core.services.authority_executor import AuthorityTransactionExecutor
from core.services.contract_driver import ContractDriver
from core.services.migration import MigrationHooks, MigrationOptions, MigrationOrchestrator


@dataclass
class ServiceBundle:
    ledger: LedgerAuthorityService
    contracts: ContractExecutionService
    index: IndexQueryService
    signer: Signer
    operator_id: str
    artifact: BytecodeRef
    sandbox: SandboxNetwork | None = None
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()

    def executor(self) -> AuthorityTransactionExecutor:
        return AuthorityTransactionExecutor(ledger=self.ledger, signer=self.signer, operator_id=self.operator_id)

    def driver(self) -> ContractDriver:
        return ContractDriver.for_artifact(contracts=self.contracts, artifact=self.artifact)

    def orchestrator(
        self,
        settings: AppSettings,
        *,
        hooks: MigrationHooks | None = None,
        sinks: Sequence[AuditSink] = (),
    ) -> MigrationOrchestrator:
        return MigrationOrchestrator(
            executor=self.executor(),
            driver=self.driver(),
            index=self.index,
            options=MigrationOptions.from_settings(settings),
            hooks=hooks,
            sinks=sinks,
        )


def token_spec_from_settings(settings: AppSettings) -> TokenSpec:
    return TokenSpec(
        name=settings.token_name,
        symbol=settings.token_symbol,
        decimals=settings.token_decimals,
        initial_supply=settings.initial_supply,
        treasury_account=settings.operator_id or "",
    )


def load_provider(path: str) -> Callable[..., Any]:
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"ledger_provider must look like 'module:factory', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import ledger provider module {module_name!r}: {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigurationError(f"ledger provider {path!r} is not callable")
    return factory


def build_services(settings: AppSettings) -> ServiceBundle:
    """Arma los servicios. Falla con `ConfigurationError` antes de tocar la red."""

    settings.require("operator_id", "operator_key")
    assert settings.operator_key is not None and settings.operator_id is not None
    signer = OperatorSigner.from_string(settings.operator_key.get_secret_value(), settings.operator_key_type)

    if settings.network is Network.SANDBOX:
        network = SandboxNetwork(operator_id=settings.operator_id)
        artifact = load_artifact(settings.contract_artifact_path) if settings.contract_artifact_path else SANDBOX_ARTIFACT
        return ServiceBundle(
            ledger=network,
            contracts=network,
            index=network,
            signer=signer,
            operator_id=settings.operator_id,
            artifact=artifact,
            sandbox=network,
        )

    settings.require("ledger_provider", "contract_artifact_path")
    assert settings.ledger_provider is not None and settings.contract_artifact_path is not None
    artifact = load_artifact(settings.contract_artifact_path)
    factory = load_provider(settings.ledger_provider)
    provided = factory(settings, signer)
    if not isinstance(provided, tuple) or len(provided) != 2:
        raise ConfigurationError(f"ledger provider {settings.ledger_provider!r} must return (ledger, contracts)")
    ledger, contracts = provided

    index = MirrorNodeIndex(settings)
    bundle = ServiceBundle(
        ledger=ledger,
        contracts=contracts,
        index=index,
        signer=signer,
        operator_id=settings.operator_id,
        artifact=artifact,
    )
    bundle.closers.append(index.aclose)
    for service in {id(ledger): ledger, id(contracts): contracts}.values():
        close = getattr(service, "aclose", None)
        if callable(close):
            bundle.closers.append(close)
    return bundle
