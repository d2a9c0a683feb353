"""File helpers shared by CLI commands for CSV import/export."""

from __future__ import annotations

from os import PathLike
from pathlib import Path


def load_csv_text(csv_path: str | PathLike[str]) -> str:
    """Read a CSV export as text.

    ``utf-8-sig`` drops a leading byte-order mark; Windows line endings are
    folded to ``\\n`` so trailing ``\\r`` never reaches a field.
    """

    p = Path(csv_path)
    with p.open(encoding="utf-8-sig", newline="") as f:
        text = f.read()
    return text.replace("\r\n", "\n")


def write_csv_text(csv_path: str | PathLike[str], text: str) -> Path:
    p = Path(csv_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8", newline="") as f:
        f.write(text)
    return p


__all__ = ["load_csv_text", "write_csv_text"]
