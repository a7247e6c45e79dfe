"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.artifacts import load_artifact
from adapters.mirror_node import MirrorNodeIndex
from adapters.providers import load_provider
from adapters.signing import OperatorSigner
from core.config import AppSettings, Network, load_settings
from core.errors import ConfigurationError, KeyshiftError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_mirror(settings: AppSettings) -> tuple[bool, str, str | None]:
    index = MirrorNodeIndex(settings)
    try:
        status = await index.ping()
        token_detail = None
        if settings.token_id:
            try:
                token = await index.get_token(settings.token_id)
                token_detail = f"total_supply={token.get('total_supply')} supply_key={token.get('supply_key')}"
            except KeyshiftError as exc:
                token_detail = str(exc)
        return status == 200, f"HTTP {status}", token_detail
    except KeyshiftError as exc:
        return False, str(exc), None
    finally:
        await index.aclose()


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        _console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    table = Table(title="keyshift Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Network", "OK", settings.network.value)

    # Credencial
    if settings.operator_id and settings.operator_key:
        try:
            signer = OperatorSigner.from_string(settings.operator_key.get_secret_value(), settings.operator_key_type)
            table.add_row("Operator key", "OK", f"{settings.operator_id} {signer.scheme}:{signer.public_key[:16]}…")
        except KeyshiftError as exc:
            table.add_row("Operator key", "FAIL", str(exc))
    else:
        table.add_row("Operator key", "FAIL", "Set OPERATOR_ID and OPERATOR_KEY (or KEYSHIFT_*).")

    if settings.network is Network.SANDBOX:
        table.add_row("Ledger provider", "OK", "in-memory sandbox")
        _console.print(table)
        return

    # Provider + artefacto
    if settings.ledger_provider:
        try:
            load_provider(settings.ledger_provider)
            table.add_row("Ledger provider", "OK", settings.ledger_provider)
        except KeyshiftError as exc:
            table.add_row("Ledger provider", "FAIL", str(exc))
    else:
        table.add_row("Ledger provider", "FAIL", "Set KEYSHIFT_LEDGER_PROVIDER=module:factory.")

    if settings.contract_artifact_path:
        try:
            artifact = load_artifact(settings.contract_artifact_path)
            table.add_row("Contract artifact", "OK", f"{artifact.contract_name} ({artifact.version})")
        except KeyshiftError as exc:
            table.add_row("Contract artifact", "FAIL", str(exc))
    else:
        table.add_row("Contract artifact", "FAIL", "Set KEYSHIFT_CONTRACT_ARTIFACT_PATH.")

    table.add_row("JSON-RPC relay", "OK", f"{settings.json_rpc_url} (used by the ledger provider)")

    # Conectividad (best-effort)
    mirror_url = settings.resolved_mirror_node_url()
    if mirror_url:
        ok, detail, token_detail = asyncio.run(_check_mirror(settings))
        table.add_row("Mirror node", "OK" if ok else "FAIL", f"{mirror_url} {detail}")
        if token_detail:
            table.add_row("Token (indexed)", "OK", f"{settings.token_id} {token_detail}")
    else:
        table.add_row("Mirror node", "FAIL", "Set KEYSHIFT_MIRROR_NODE_URL.")

    _console.print(table)
