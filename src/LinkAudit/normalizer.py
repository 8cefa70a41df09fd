# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.normalizer",
#   "purpose": "Repair raw link checker reports into one-record-per-line tables",
#   "sections": [
#     {"id": "normalizedreport", "name": "NormalizedReport", "anchor": "class-normalizedreport", "kind": "class"},
#     {"id": "collapse-wrapped-lines", "name": "collapse_wrapped_lines", "anchor": "function-collapse-wrapped-lines", "kind": "function"},
#     {"id": "normalize-oracle-output", "name": "normalize_oracle_output", "anchor": "function-normalize-oracle-output", "kind": "function"},
#     {"id": "render-rows", "name": "render_rows", "anchor": "function-render-rows", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Oracle output normalizer.

The link checker's report is close to, but not quite, a table: diagnostic
sentences wrap onto the next physical line, annotation lines start with
``#``, every invocation repeats the header and quoted spans may contain the
delimiter. The steps below run in order and each depends on the previous one:

1. join wrapped lines into logical rows
2. drop annotation and blank rows
3. split rows with :mod:`csv`, honouring quoted spans
4. drop repeated headers and excluded rows, then emit one header

Feeding the normalized output back in yields the same output.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import NormalizationError
from .models import FindingLayout, RunStatistics, ValidationFinding

__all__ = [
    "NormalizedReport",
    "collapse_wrapped_lines",
    "normalize_oracle_output",
    "render_rows",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedReport:
    """One header plus the findings recovered from a raw report."""

    header: Tuple[str, ...]
    findings: Tuple[ValidationFinding, ...]
    skipped: Tuple[NormalizationError, ...] = field(default=())

    def render(self, delimiter: str = "\t") -> str:
        """Return the normalized table as delimited text."""
        return render_rows(self.header, (finding.values for finding in self.findings), delimiter=delimiter)


def render_rows(
    header: Sequence[str],
    rows: Iterable[Sequence[str]],
    *,
    delimiter: str = "\t",
    quotechar: str = '"',
) -> str:
    """Write ``header`` and ``rows`` as delimited text with ``\\n`` line endings."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, quotechar=quotechar, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def collapse_wrapped_lines(
    lines: Iterable[str],
    *,
    comment_marker: str = "# ",
    wrap_marker: Optional[str] = ".",
    quotechar: str = '"',
) -> List[str]:
    """Join physical lines into logical rows.

    A break does not end a row when the line before it ends with
    ``wrap_marker`` or leaves a quoted span open; such breaks become a single
    space. Comment lines are never joined to a neighbour unless they sit
    inside an open quoted span.
    """

    rows: List[str] = []
    buffer: Optional[str] = None
    open_quote = False

    for raw_line in lines:
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        is_comment = bool(comment_marker) and line.startswith(comment_marker)

        if buffer is not None and is_comment and not open_quote:
            rows.append(buffer)
            buffer = None
        if buffer is None and is_comment:
            rows.append(line)
            continue

        buffer = line if buffer is None else f"{buffer} {line}"
        if line.count(quotechar) % 2:
            open_quote = not open_quote
        if open_quote:
            continue
        if wrap_marker and line.endswith(wrap_marker):
            continue
        rows.append(buffer)
        buffer = None

    if buffer is not None:
        rows.append(buffer)
    return rows


def _split_row(row: str, *, delimiter: str, quotechar: str) -> List[str]:
    reader = csv.reader(io.StringIO(row, newline=""), delimiter=delimiter, quotechar=quotechar, strict=True)
    try:
        parsed = list(reader)
    except csv.Error as exc:
        raise NormalizationError(f"Could not split oracle row: {exc}", row=row) from exc
    return parsed[0] if parsed else []


def _is_normalized(lines: Sequence[str], header_line: str, comment_marker: str) -> bool:
    for line in lines:
        text = line.rstrip("\r")
        if not text.strip() or (comment_marker and text.startswith(comment_marker)):
            continue
        return text == header_line
    return False


def normalize_oracle_output(
    raw: str,
    layout: FindingLayout,
    *,
    source_delimiter: str = ";",
    target_delimiter: str = "\t",
    comment_marker: str = "# ",
    wrap_marker: Optional[str] = ".",
    quotechar: str = '"',
    exclude_urls: Iterable[str] = (),
    strict: bool = False,
    statistics: Optional[RunStatistics] = None,
) -> NormalizedReport:
    """Normalize a raw oracle report into a :class:`NormalizedReport`.

    When the delimiters differ, input that already starts with the header in
    ``target_delimiter`` is treated as normalized output: it is split on the
    target delimiter and no wrap joining is applied, so normalizing twice is a
    no-op.

    Raises:
        NormalizationError: In strict mode, for the first row whose field count
            differs from the layout.
    """

    header = tuple(layout.fields)
    lines = raw.split("\n")
    already_normalized = target_delimiter != source_delimiter and _is_normalized(
        lines, target_delimiter.join(header), comment_marker
    )
    delimiter = target_delimiter if already_normalized else source_delimiter

    logical_rows = collapse_wrapped_lines(
        lines,
        comment_marker=comment_marker,
        wrap_marker=None if already_normalized else wrap_marker,
        quotechar=quotechar,
    )

    excluded = set(exclude_urls)
    url_index = layout.index(layout.url_field)
    findings: List[ValidationFinding] = []
    skipped: List[NormalizationError] = []
    headers_dropped = 0
    excluded_rows = 0

    for row in logical_rows:
        if not row.strip() and delimiter not in row:
            continue
        if comment_marker and row.startswith(comment_marker):
            continue
        try:
            values = _split_row(row, delimiter=delimiter, quotechar=quotechar)
            if len(values) != len(header):
                raise NormalizationError(
                    f"Expected {len(header)} fields, found {len(values)}",
                    row=row,
                    expected=len(header),
                    actual=len(values),
                )
        except NormalizationError as exc:
            if strict:
                raise
            logger.warning("Skipping unsplittable oracle row", extra={"error": str(exc), "row": row[:200]})
            skipped.append(exc)
            continue
        if tuple(values) == header:
            headers_dropped += 1
            continue
        if values[url_index] in excluded:
            excluded_rows += 1
            continue
        findings.append(ValidationFinding(layout=layout, values=tuple(values)))

    if statistics is not None:
        statistics.findings += len(findings)
        statistics.findings_skipped += len(skipped)
    logger.info(
        "Normalized oracle output",
        extra={
            "findings": len(findings),
            "skipped": len(skipped),
            "headers_dropped": headers_dropped,
            "excluded_rows": excluded_rows,
            "already_normalized": already_normalized,
        },
    )
    return NormalizedReport(header=header, findings=tuple(findings), skipped=tuple(skipped))
