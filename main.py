"""Atajo de desarrollo: `python main.py migrate --network sandbox`.

Sin `pip install -e .` los paquetes de `src/` no son importables; este script
los antepone al path y delega en la app Typer con el mismo nombre que el
console script `keyshift`.
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"


if __name__ == "__main__":
    sys.path.insert(0, str(SRC_DIR))

    from cli.main import app  # noqa: E402

    app(prog_name="keyshift")
