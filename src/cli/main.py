"""CLI (Typer).

Un comando por workflow. Exit codes:
- 0: `Done`
- 1: `Failed(stage, cause)` (trail y causa impresos)
- 2: configuración inválida o ausente (antes de cualquier llamada de red)
- 130: abortado por el usuario
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from adapters.json_exporter import JsonLinesAuditSink, export_report_json
from adapters.mirror_node import MirrorNodeIndex
from adapters.providers import ServiceBundle, build_services, token_spec_from_settings
from cli import doctor
from cli.ui_components import build_summary_panel, build_trail_table, console_hooks, print_banner
from core.config import AppSettings, Network, load_settings, write_user_env_vars
from core.domain.models import MigrationReport
from core.errors import ConfigurationError, KeyshiftError
from core.interfaces.services import AuditSink
from core.services.index_poller import resolve_registry_id
from core.services.polling import Deadline

app = typer.Typer(
    no_args_is_help=True,
    help="Rotate a token's supply key to a capability contract and verify it with a live mint.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()

NetworkOption = typer.Option(None, "--network", "-n", help="sandbox | testnet | previewnet | mainnet")
ReportOption = typer.Option(None, "--report", help="Write the final report (with trail) as JSON.")
AuditLogOption = typer.Option(None, "--audit-log", help="Append every step to a JSON-lines file as it happens.")
QuietOption = typer.Option(False, "--quiet", "-q", help="No banner, no step-by-step output.")


def _load_settings(network: Network | None, **overrides: str | None) -> AppSettings:
    try:
        return load_settings(network=network, **overrides)
    except ConfigurationError as exc:
        raise _fail_config(exc) from exc


def _fail_config(exc: ConfigurationError) -> typer.Exit:
    _console.print(f"[bold red]Configuration error:[/bold red] {exc}")
    return typer.Exit(code=2)


def _finish(report: MigrationReport, *, report_path: Path | None, quiet: bool) -> None:
    if not quiet:
        _console.print(build_trail_table(report.trail))
    _console.print(build_summary_panel(report))
    if report_path:
        written = export_report_json(report=report, output_path=report_path)
        _console.print(f"[green]Report written to:[/green] {written}")
    if not report.succeeded:
        raise typer.Exit(code=1)


def _sinks(audit_log: Path | None) -> list[AuditSink]:
    return [JsonLinesAuditSink(audit_log)] if audit_log else []


def _run(coro_factory) -> MigrationReport:
    try:
        return asyncio.run(coro_factory())
    except KeyboardInterrupt:
        _console.print("[yellow]Aborted by user.[/yellow]")
        raise typer.Exit(code=130)


@app.command()
def migrate(
    network: Optional[Network] = NetworkOption,
    report_path: Optional[Path] = ReportOption,
    audit_log: Optional[Path] = AuditLogOption,
    save_env: bool = typer.Option(
        False,
        "--save-env",
        help="Store TOKEN_ID and KEY_MANAGER_1_ADDRESS in the user .env for `rotate`.",
    ),
    quiet: bool = QuietOption,
) -> None:
    """Create a token, move its supply key from the operator to a new contract, mint through it."""

    settings = _load_settings(network)
    try:
        settings.require_for_migration()
        bundle = build_services(settings)
    except ConfigurationError as exc:
        raise _fail_config(exc) from exc

    if not quiet:
        print_banner(_console)

    async def go() -> MigrationReport:
        try:
            orchestrator = bundle.orchestrator(
                settings,
                hooks=None if quiet else console_hooks(_console),
                sinks=_sinks(audit_log),
            )
            return await orchestrator.run_initial(
                token_spec_from_settings(settings),
                bundle.artifact,
                deadline=Deadline(settings.deadline_seconds),
            )
        finally:
            await bundle.aclose()

    report = _run(go)
    if report.succeeded:
        _print_next_step(report, save_env=save_env)
    _finish(report, report_path=report_path, quiet=quiet)


@app.command()
def rotate(
    network: Optional[Network] = NetworkOption,
    token_id: Optional[str] = typer.Option(None, "--token-id", help="Existing token (overrides TOKEN_ID)."),
    prior_contract: Optional[str] = typer.Option(
        None,
        "--prior-contract",
        help="Contract that holds the supply key today (overrides KEY_MANAGER_1_ADDRESS).",
    ),
    report_path: Optional[Path] = ReportOption,
    audit_log: Optional[Path] = AuditLogOption,
    quiet: bool = QuietOption,
) -> None:
    """Move the supply key from an existing capability contract to a freshly deployed one."""

    settings = _load_settings(network, token_id=token_id, prior_contract_address=prior_contract)
    try:
        settings.require_for_rotation()
        bundle = build_services(settings)
    except ConfigurationError as exc:
        raise _fail_config(exc) from exc

    if not quiet:
        print_banner(_console)

    async def go() -> MigrationReport:
        try:
            current_token, current_contract = await _rotation_targets(settings, bundle)
            orchestrator = bundle.orchestrator(
                settings,
                hooks=None if quiet else console_hooks(_console),
                sinks=_sinks(audit_log),
            )
            return await orchestrator.run_rotation(
                token_id=current_token,
                prior_contract_address=current_contract,
                artifact=bundle.artifact,
                deadline=Deadline(settings.deadline_seconds),
            )
        finally:
            await bundle.aclose()

    _finish(_run(go), report_path=report_path, quiet=quiet)


@app.command()
def resolve(
    address: str = typer.Argument(..., help="Contract EVM address (0x...)."),
    network: Optional[Network] = NetworkOption,
    attempts: Optional[int] = typer.Option(None, "--attempts", min=1, help="Overrides index_max_attempts."),
    interval: Optional[float] = typer.Option(None, "--interval", min=0.0, help="Overrides the poll interval."),
) -> None:
    """Resolve a contract's registry id (shard.realm.num) through the mirror node."""

    settings = _load_settings(network)
    if settings.network is Network.SANDBOX or not settings.resolved_mirror_node_url():
        raise _fail_config(ConfigurationError("resolve needs a mirror node (non-sandbox network or mirror_node_url)"))

    max_attempts = attempts or settings.index_max_attempts
    wait = settings.index_poll_interval_seconds if interval is None else interval

    def on_retry(number: int, exc: BaseException) -> None:
        _console.print(f"[yellow]↻ attempt {number}/{max_attempts}:[/yellow] [dim]{exc}[/dim]")

    async def go() -> str:
        index = MirrorNodeIndex(settings)
        try:
            return await resolve_registry_id(
                index,
                address,
                max_attempts=max_attempts,
                interval=wait,
                deadline=Deadline(settings.deadline_seconds),
                on_retry=on_retry,
            )
        finally:
            await index.aclose()

    try:
        registry_id = asyncio.run(go())
    except KeyshiftError as exc:
        _console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    _console.print(f"[green]{address}[/green] → [bold]{registry_id}[/bold]")


async def _rotation_targets(settings: AppSettings, bundle: ServiceBundle) -> tuple[str, str]:
    if bundle.sandbox is not None:
        token_id, address = await bundle.sandbox.seed_capability_token(total_supply=settings.initial_supply)
        _console.print(f"[dim]sandbox: seeded token {token_id} held by contract {address}[/dim]")
        return token_id, address
    assert settings.token_id is not None and settings.prior_contract_address is not None
    return settings.token_id, settings.prior_contract_address


def _print_next_step(report: MigrationReport, *, save_env: bool) -> None:
    values = {
        "TOKEN_ID": report.summary.token_id or "",
        "KEY_MANAGER_1_ADDRESS": report.summary.contract_address or "",
    }
    if save_env:
        env_path = write_user_env_vars(values)
        _console.print(f"[green]Saved rotation inputs to:[/green] {env_path}")
        return
    _console.print("\n[bold]For `keyshift rotate`, add to your .env:[/bold]")
    for key, value in values.items():
        _console.print(f"{key}={value}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
