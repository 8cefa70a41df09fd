"""Delimited report and intermediate artifact writers."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from .models import ReportTable, RunStatistics
from .normalizer import render_rows

__all__ = ["write_text_atomic", "write_report", "write_statistics"]

logger = logging.getLogger(__name__)


def write_text_atomic(path: Union[str, Path], text: str) -> Path:
    """Atomically persist ``text`` to ``path``."""

    resolved = Path(path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(resolved.parent), delete=False, newline=""
    ) as handle:
        handle.write(text)
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except OSError:
            pass
        temp_name = handle.name
    Path(temp_name).replace(resolved)
    return resolved


def write_report(table: ReportTable, path: Union[str, Path], *, delimiter: str = "\t") -> Path:
    """Write ``table`` with one header row and one line per report row."""

    written = write_text_atomic(path, render_rows(table.header, table.rows, delimiter=delimiter))
    logger.info("Report written", extra={"path": str(written), "rows": len(table)})
    return written


def write_statistics(statistics: RunStatistics, path: Union[str, Path]) -> Path:
    """Persist run counters as JSON next to the report."""

    return write_text_atomic(path, json.dumps(statistics.as_dict(), indent=2, sort_keys=True) + "\n")
