"""Candidate link extraction from tabular export records.

Each record may carry its web address in one of several columns; the first
populated column in priority order wins. The chosen value is normalized (HTML
entity residue and stray quotes removed, multi-valued fields split) and paired
with the record's metadata so findings can be traced back to it later.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from .models import CandidateLink, ColumnRef, ContentRecord, RunStatistics, column_index

if TYPE_CHECKING:
    from .settings import ExportSettings

__all__ = [
    "ExtractionResult",
    "select_candidate",
    "normalize_candidate_url",
    "extract_links",
    "render_anchor_file",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Links retained per record plus the deduplicated URL list for the oracle."""

    links: Tuple[CandidateLink, ...]
    unique_urls: Tuple[str, ...]
    records_without_link: int


def select_candidate(record: ContentRecord, columns: Sequence[ColumnRef]) -> Optional[str]:
    """Return the first non-empty candidate field, or ``None``."""

    for column in columns:
        value = record.get(column)
        if value.strip():
            return value
    return None


def normalize_candidate_url(text: str, *, separator: str = ";", policy: str = "first") -> List[str]:
    """Clean a raw candidate field into zero or more URLs.

    ``&amp;`` becomes ``&`` and ``"`` characters are dropped. With the ``first``
    policy only the value before the first ``separator`` is kept; with ``all``
    every separated value is returned.
    """

    if policy not in {"first", "all"}:
        raise ValueError(f"Unknown multi-value policy {policy!r}")
    cleaned = text.replace("&amp;", "&").replace('"', "")
    parts = cleaned.split(separator) if separator else [cleaned]
    if policy == "first":
        parts = parts[:1]
    return [part.strip() for part in parts if part.strip()]


def extract_links(
    records: Iterable[ContentRecord],
    export_settings: ExportSettings,
    statistics: Optional[RunStatistics] = None,
) -> ExtractionResult:
    """Extract candidate links from records using :class:`~LinkAudit.settings.ExportSettings`."""

    links: List[CandidateLink] = []
    without_link = 0
    for record in records:
        raw = select_candidate(record, export_settings.candidate_columns)
        urls = (
            normalize_candidate_url(
                raw,
                separator=export_settings.multi_value_separator,
                policy=export_settings.multi_value_policy,
            )
            if raw is not None
            else []
        )
        if not urls:
            without_link += 1
            continue
        metadata = tuple(
            (record.header[column_index(record.header, column)], record.get(column))
            for column in export_settings.metadata_columns
        )
        for url in urls:
            links.append(
                CandidateLink(
                    url=url,
                    record=record,
                    metadata=((export_settings.link_column_name, url),) + metadata,
                )
            )

    unique_urls = tuple(sorted({link.url for link in links}))
    if statistics is not None:
        statistics.records_without_link += without_link
        statistics.candidates += len(links)
        statistics.unique_urls += len(unique_urls)
    logger.info(
        "Extracted candidate links",
        extra={"links": len(links), "unique_urls": len(unique_urls), "records_without_link": without_link},
    )
    return ExtractionResult(links=tuple(links), unique_urls=unique_urls, records_without_link=without_link)


def render_anchor_file(urls: Iterable[str], title: str = "Links") -> str:
    """Render an HTML document with one anchor per URL for the link checker."""

    lines = [
        "<!DOCTYPE html>",
        "<html>",
        f"<head><meta charset=\"utf-8\"><title>{html.escape(title)}</title></head>",
        "<body>",
    ]
    for url in urls:
        escaped = html.escape(url, quote=True)
        lines.append(f'<a href="{escaped}">{escaped}</a><br />')
    lines.extend(["</body>", "</html>", ""])
    return "\n".join(lines)
