"""Carga del artefacto compilado del contrato de capacidades.

Formato esperado: JSON estilo hardhat (`contractName`, `abi`, `bytecode`).
`bytecode` puede venir como string o como `{"object": "..."}` (solc/foundry).
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import BytecodeRef
from core.errors import ConfigurationError


def load_artifact(path: Path) -> BytecodeRef:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"contract artifact not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"contract artifact is not valid JSON: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"contract artifact must be a JSON object: {path}")

    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not isinstance(bytecode, str) or not bytecode.removeprefix("0x"):
        raise ConfigurationError(f"contract artifact has no bytecode: {path}")
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    abi = data.get("abi") or []
    if not isinstance(abi, list):
        raise ConfigurationError(f"contract artifact abi must be a list: {path}")

    return BytecodeRef(
        contract_name=str(data.get("contractName") or path.stem),
        bytecode=bytecode,
        abi=tuple(entry for entry in abi if isinstance(entry, dict)),
    )
