"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Un único objeto explícito que se pasa a cada componente en construcción:
  nada lee el entorno por su cuenta.
- Acepta también los nombres de variables sin prefijo (`OPERATOR_KEY`,
  `TOKEN_ID`, ...) para que un `.env` existente siga sirviendo.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.identifiers import is_entity_id, is_evm_address
from core.errors import ConfigurationError


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "keyshift"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "keyshift"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "keyshift"
    return Path.home() / ".config" / "keyshift"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# keyshift user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class Network(str, Enum):
    SANDBOX = "sandbox"
    TESTNET = "testnet"
    PREVIEWNET = "previewnet"
    MAINNET = "mainnet"


class KeyType(str, Enum):
    ECDSA = "ecdsa"
    ED25519 = "ed25519"


MIRROR_NODE_URLS: dict[Network, str] = {
    Network.TESTNET: "https://testnet.mirrornode.hedera.com",
    Network.PREVIEWNET: "https://previewnet.mirrornode.hedera.com",
    Network.MAINNET: "https://mainnet-public.mirrornode.hedera.com",
}


def _env(name: str, *legacy: str) -> AliasChoices:
    return AliasChoices(f"KEYSHIFT_{name}", *legacy)


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSHIFT_",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    # Red y credenciales
    network: Network = Field(default=Network.TESTNET, description="Red destino.")
    operator_id: str | None = Field(
        default=None,
        validation_alias=_env("OPERATOR_ID", "OPERATOR_ID"),
        description="Cuenta del operador (shard.realm.num).",
    )
    operator_key: SecretStr | None = Field(
        default=None,
        validation_alias=_env("OPERATOR_KEY", "OPERATOR_KEY"),
        description="Clave privada del operador (hex raw o DER).",
    )
    operator_key_type: KeyType = Field(default=KeyType.ECDSA)
    json_rpc_url: str = Field(
        default="https://testnet.hashio.io/api",
        min_length=8,
        validation_alias=_env("JSON_RPC_URL", "TESTNET_ENDPOINT"),
        description="Endpoint JSON-RPC del relay EVM. Lo consume el `ledger_provider`; `doctor` lo muestra.",
    )
    mirror_node_url: str | None = Field(
        default=None,
        description="Base URL del mirror node (por defecto según la red).",
    )
    ledger_provider: str | None = Field(
        default=None,
        description="Import path `module:factory` que construye los servicios de ledger y contratos.",
    )
    contract_artifact_path: Path | None = Field(
        default=None,
        description="Artefacto compilado del contrato de capacidades (JSON estilo hardhat).",
    )

    # Workflow de rotación (contract -> contract)
    token_id: str | None = Field(default=None, validation_alias=_env("TOKEN_ID", "TOKEN_ID"))
    prior_contract_address: str | None = Field(
        default=None,
        validation_alias=_env("PRIOR_CONTRACT_ADDRESS", "KEY_MANAGER_1_ADDRESS"),
    )

    # Token
    token_name: str = Field(default="Test Token", min_length=1)
    token_symbol: str = Field(default="TST", min_length=1)
    token_decimals: int = Field(default=8, ge=0, le=18)
    initial_supply: int = Field(default=1_000_000, ge=0)
    mint_amount: int = Field(default=5000, gt=0)
    gas_limit: int = Field(default=1_000_000, gt=0)

    # Tiempos
    index_poll_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Espera entre consultas al índice mientras el contrato no está indexado.",
    )
    index_max_attempts: int = Field(default=10, ge=1, le=600)
    settle_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Pausa tras rotar la supply key antes del mint.",
    )
    deadline_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Deadline global de la migración (cubre todos los puntos de espera).",
    )

    # HTTP
    http_timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout por request (segundos).")
    user_agent: str = Field(default="keyshift/0.1", min_length=1)

    @field_validator("operator_id", "token_id")
    @classmethod
    def _check_entity_id(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return value
        if not is_entity_id(value):
            raise ValueError(f"expected shard.realm.num, got {value!r}")
        return value.strip()

    @field_validator("prior_contract_address")
    @classmethod
    def _check_evm_address(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return value
        if not is_evm_address(value):
            raise ValueError(f"expected a 20-byte hex EVM address, got {value!r}")
        return value.strip()

    def resolved_mirror_node_url(self) -> str | None:
        if self.mirror_node_url:
            return self.mirror_node_url.rstrip("/")
        return MIRROR_NODE_URLS.get(self.network)

    def require(self, *names: str) -> None:
        """Valida eagerly; lanza `ConfigurationError` con todos los campos ausentes."""

        missing = [name for name in names if _is_blank(getattr(self, name, None))]
        if missing:
            raise ConfigurationError(
                f"missing required configuration: {', '.join(missing)}",
                missing=missing,
            )

    def require_for_migration(self) -> None:
        names = ["operator_id", "operator_key"]
        if self.network is not Network.SANDBOX:
            names += ["ledger_provider", "contract_artifact_path"]
        self.require(*names)
        if self.network is not Network.SANDBOX and not self.resolved_mirror_node_url():
            raise ConfigurationError("missing required configuration: mirror_node_url", missing=["mirror_node_url"])

    def require_for_rotation(self) -> None:
        """En sandbox el token y el contrato previo se siembran en memoria."""

        self.require_for_migration()
        if self.network is not Network.SANDBOX:
            self.require("token_id", "prior_contract_address")


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, SecretStr):
        return not value.get_secret_value().strip()
    if isinstance(value, str):
        return not value.strip()
    return False


def load_settings(**overrides: object) -> AppSettings:
    """Construye `AppSettings`; un valor inválido es un `ConfigurationError`, no un traceback.

    `overrides` (p.ej. opciones de la CLI) pasan por la misma validación que el entorno.
    """

    try:
        return AppSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ConfigurationError(f"invalid configuration: {'; '.join(problems)}") from exc
