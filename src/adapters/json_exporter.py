"""Exportación JSON del reporte de migración.

Por qué JSON:
- Interoperabilidad con pipelines (CI, auditoría).
- Persiste el audit trail completo aunque la migración haya fallado.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import MigrationReport, StepRecord


def export_report_json(*, report: MigrationReport, output_path: Path) -> Path:
    """Exporta `MigrationReport` a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = report.model_dump(mode="json")
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path


class JsonLinesAuditSink:
    """`AuditSink` que agrega cada paso como una línea JSON (append-only)."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, step: StepRecord) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(step.model_dump(mode="json"), ensure_ascii=False, sort_keys=True) + "\n")
