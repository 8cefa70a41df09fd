# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.tabular",
#   "purpose": "Parse delimited exports with quoted fields and embedded newlines into content records",
#   "sections": [
#     {"id": "tabularreadresult", "name": "TabularReadResult", "anchor": "class-tabularreadresult", "kind": "class"},
#     {"id": "iter-logical-records", "name": "iter_logical_records", "anchor": "function-iter-logical-records", "kind": "function"},
#     {"id": "read-records", "name": "read_records", "anchor": "function-read-records", "kind": "function"},
#     {"id": "read-table", "name": "read_table", "anchor": "function-read-table", "kind": "function"},
#     {"id": "resolve-columns", "name": "resolve_columns", "anchor": "function-resolve-columns", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Tabular record reader for flat delimited exports.

Exports from list-management platforms quote any field that contains the
delimiter or a newline, so one logical record can span several physical
lines. Lines are grouped by quote parity first and each group is then parsed
with :mod:`csv` in strict mode, which keeps a malformed row from bleeding into
its neighbours.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple, Union

from .errors import InputMissingError, MalformedRecordError
from .models import ContentRecord, column_index

__all__ = [
    "TabularReadResult",
    "iter_logical_records",
    "read_records",
    "read_table",
    "resolve_columns",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TabularReadResult:
    """Header, parsed records and per-row errors of one export."""

    header: Tuple[str, ...]
    records: Tuple[ContentRecord, ...]
    errors: Tuple[MalformedRecordError, ...] = field(default=())


def _ends_inside_quotes(line: str, *, in_quote: bool, delimiter: str, quotechar: str) -> bool:
    """Return whether ``line`` leaves a quoted span open.

    A quote character opens a span only at the start of a field; elsewhere in
    an unquoted field it is a literal character. Inside a span a doubled quote
    is an escaped quote.
    """

    at_field_start = not in_quote
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if in_quote:
            if char == quotechar:
                if index + 1 < length and line[index + 1] == quotechar:
                    index += 2
                    continue
                in_quote = False
        elif char == delimiter:
            at_field_start = True
            index += 1
            continue
        elif char == quotechar and at_field_start:
            in_quote = True
        at_field_start = False
        index += 1
    return in_quote


def iter_logical_records(
    text: str,
    *,
    delimiter: str = ",",
    quotechar: str = '"',
) -> Iterator[Tuple[int, str]]:
    """Yield ``(start_line, record_text)`` for every logical record in ``text``.

    A physical line that leaves a quoted span open is joined with the next
    line, preserving the newline inside the field. If a span is still open at
    the end of the input, its first line is yielded on its own (the parser
    then rejects it) and grouping resumes at the following line, so one
    unbalanced quote costs one row.
    """

    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    lines = [line[:-1] if line.endswith("\r") else line for line in lines]

    start = 0
    while start < len(lines):
        end = start
        open_quote = _ends_inside_quotes(lines[end], in_quote=False, delimiter=delimiter, quotechar=quotechar)
        while open_quote and end + 1 < len(lines):
            end += 1
            open_quote = _ends_inside_quotes(lines[end], in_quote=True, delimiter=delimiter, quotechar=quotechar)
        if open_quote:
            logger.debug("Quoted span never closes; resyncing", extra={"line_number": start + 1})
            yield start + 1, lines[start]
            start += 1
            continue
        yield start + 1, "\n".join(lines[start : end + 1])
        start = end + 1


def _parse_record(record_text: str, line_number: int, *, delimiter: str, quotechar: str) -> List[str]:
    reader = csv.reader(
        io.StringIO(record_text, newline=""),
        delimiter=delimiter,
        quotechar=quotechar,
        doublequote=True,
        strict=True,
    )
    try:
        rows = list(reader)
    except csv.Error as exc:
        raise MalformedRecordError(f"Malformed record: {exc}", line_number=line_number, text=record_text) from exc
    if len(rows) != 1:
        raise MalformedRecordError(
            f"Expected one record, parsed {len(rows)}", line_number=line_number, text=record_text
        )
    return rows[0]


def read_records(
    text: str,
    *,
    delimiter: str = ",",
    quotechar: str = '"',
    strict: bool = False,
) -> TabularReadResult:
    """Parse ``text`` into a header and an ordered tuple of :class:`ContentRecord`.

    Exactly one header row is stripped. Blank lines are ignored. Malformed rows
    are skipped and collected on the result unless ``strict`` is set, in which
    case the first :class:`MalformedRecordError` propagates.
    """

    header: Tuple[str, ...] = ()
    records: List[ContentRecord] = []
    errors: List[MalformedRecordError] = []

    def _handle(error: MalformedRecordError) -> None:
        if strict:
            raise error
        logger.warning(
            "Skipping malformed record",
            extra={"line_number": error.line_number, "error": str(error)},
        )
        errors.append(error)

    logical = iter_logical_records(text.lstrip("\ufeff"), delimiter=delimiter, quotechar=quotechar)
    for line_number, record_text in logical:
        if not record_text.strip():
            continue
        try:
            values = _parse_record(record_text, line_number, delimiter=delimiter, quotechar=quotechar)
        except MalformedRecordError as exc:
            _handle(exc)
            continue
        if not header:
            header = tuple(values)
            continue
        records.append(ContentRecord(row_number=len(records) + 1, header=header, values=tuple(values)))

    logger.debug(
        "Parsed tabular export",
        extra={"records": len(records), "malformed": len(errors), "columns": len(header)},
    )
    return TabularReadResult(header=header, records=tuple(records), errors=tuple(errors))


def read_table(
    path: Union[str, Path],
    *,
    delimiter: str = ",",
    quotechar: str = '"',
    strict: bool = False,
    encoding: str = "utf-8",
) -> TabularReadResult:
    """Read an export file from disk.

    Raises:
        InputMissingError: If ``path`` does not exist.
    """

    source = Path(path)
    if not source.is_file():
        raise InputMissingError(source, description="tabular export")
    text = source.read_text(encoding=encoding, errors="replace")
    return read_records(text, delimiter=delimiter, quotechar=quotechar, strict=strict)


def resolve_columns(header: Sequence[str], refs: Sequence[Union[int, str]]) -> List[int]:
    """Map column names or 1-based positions onto 0-based indices."""

    return [column_index(header, ref) for ref in refs]
