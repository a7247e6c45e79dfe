"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en `migrate`, `rotate` y `doctor`.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import MigrationReport, MigrationStage, StepOutcome, StepRecord
from core.services.migration import MigrationHooks

_OUTCOME_STYLE = {
    StepOutcome.SUCCESS: ("✓", "green"),
    StepOutcome.RETRYABLE_FAILURE: ("↻", "yellow"),
    StepOutcome.FATAL_FAILURE: ("✗", "red"),
}


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> doctor).
    - Permite desactivar banner en modos no interactivos (`--quiet`).
    """

    title = Text("keyshift", style="bold cyan")
    subtitle = Text("Supply key → capability contract • verified by a live mint", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def console_hooks(console: Console) -> MigrationHooks:
    """Hooks que pintan el progreso paso a paso."""

    def started(stage: MigrationStage) -> None:
        console.print(f"[dim]→ {stage.value}…[/dim]")

    def finished(record: StepRecord) -> None:
        mark, style = _OUTCOME_STYLE[record.outcome]
        detail = f" [dim]{record.detail}[/dim]" if record.detail else ""
        console.print(f"[{style}]{mark} {record.step.value}[/{style}]{detail}")

    return MigrationHooks(step_started=started, step_finished=finished)


def build_trail_table(trail: list[StepRecord]) -> Table:
    table = Table(title="Migration trail")
    table.add_column("Time (UTC)", style="dim", no_wrap=True)
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Outcome")
    table.add_column("Detail", style="white")
    for record in trail:
        mark, style = _OUTCOME_STYLE[record.outcome]
        table.add_row(
            record.timestamp.strftime("%H:%M:%S.%f")[:-3],
            record.step.value,
            Text(f"{mark} {record.outcome.value}", style=style),
            record.detail,
        )
    return table


def build_summary_panel(report: MigrationReport) -> Panel:
    """Panel final: configuración resultante o causa del fallo."""

    summary = report.summary
    body = Text()
    rows = [
        ("Token ID", summary.token_id),
        ("Token address (EVM)", summary.token_address),
        ("Contract address", summary.contract_address),
        ("Contract registry id", summary.contract_registry_id),
        ("Initial supply key", summary.initial_supply_key),
        ("Final supply key", summary.final_supply_key),
        ("Initial supply", summary.initial_supply),
        ("Final supply", summary.final_supply),
    ]
    for label, value in rows:
        if value is None:
            continue
        body.append(f"{label}: ", style="bold")
        body.append(f"{value}\n")

    if report.failure:
        failure = report.failure
        body.append("\nFailed at ", style="bold red")
        body.append(f"{failure.stage.value}", style="red")
        body.append(f" ({failure.error_type})\n", style="red")
        body.append(failure.message)
        if failure.category:
            body.append(f"\nCategory: {failure.category}", style="dim")
        return Panel(body, title=Text(f"{report.workflow}: FAILED", style="bold red"), border_style="red")

    return Panel(body, title=Text(f"{report.workflow}: DONE", style="bold green"), border_style="green")
