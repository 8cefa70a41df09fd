# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.correlation",
#   "purpose": "Join oracle findings back to the content records that reference each URL",
#   "sections": [
#     {"id": "source-url", "name": "source_url", "anchor": "function-source-url", "kind": "function"},
#     {"id": "build-source-index", "name": "build_source_index", "anchor": "function-build-source-index", "kind": "function"},
#     {"id": "correlate", "name": "correlate", "anchor": "function-correlate", "kind": "function"},
#     {"id": "build-report", "name": "build_report", "anchor": "function-build-report", "kind": "function"},
#     {"id": "guidenamemapping", "name": "GuideNameMapping", "anchor": "class-guidenamemapping", "kind": "class"},
#     {"id": "correlate-guide-names", "name": "correlate_guide_names", "anchor": "function-correlate-guide-names", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Correlation engine.

Findings carry URLs; the people fixing them need the list, item or guide the
URL came from. Every source (an extracted candidate link or a resolved seed)
is indexed by its URL and each finding is joined on byte-exact equality of
one configured finding field. A URL referenced by several records yields one
report row per record.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError, InputMissingError
from .models import (
    CandidateLink,
    CorrelatedReport,
    ReportTable,
    ResolvedLink,
    RunStatistics,
    ValidationFinding,
)

if TYPE_CHECKING:
    from .settings import GuideSettings

__all__ = [
    "RESOLVED_METADATA_COLUMNS",
    "Source",
    "source_url",
    "source_metadata",
    "build_source_index",
    "correlate",
    "build_report",
    "GuideNameMapping",
    "correlate_guide_names",
]

logger = logging.getLogger(__name__)

Source = Union[CandidateLink, ResolvedLink]

#: Metadata emitted for resolved seeds, in report order.
RESOLVED_METADATA_COLUMNS: Tuple[str, ...] = ("Item URL", "Identifier", "Seed URI")


def source_url(source: Source) -> Optional[str]:
    """Return the URL a source is joined on (``None`` for failed resolutions)."""
    if isinstance(source, CandidateLink):
        return source.url
    return source.canonical_url


def source_metadata(source: Source) -> Tuple[Tuple[str, str], ...]:
    if isinstance(source, CandidateLink):
        return source.metadata
    return (
        ("Item URL", source.canonical_url or ""),
        ("Identifier", source.seed.identifier),
        ("Seed URI", source.seed.uri),
    )


def build_source_index(sources: Iterable[Source]) -> Dict[str, List[Source]]:
    """Map each URL to every source that references it, in source order."""
    index: Dict[str, List[Source]] = defaultdict(list)
    for source in sources:
        url = source_url(source)
        if url:
            index[url].append(source)
    return dict(index)


def correlate(
    findings: Iterable[ValidationFinding],
    sources: Iterable[Source],
    *,
    key_field: str = "urlname",
    statistics: Optional[RunStatistics] = None,
) -> List[CorrelatedReport]:
    """Join findings to sources on ``finding[key_field] == source URL``.

    Each finding yields one report per matching source; findings without a
    match are dropped and counted.
    """

    index = build_source_index(sources)
    reports: List[CorrelatedReport] = []
    unmatched = 0
    for finding in findings:
        matches = index.get(finding.get(key_field))
        if not matches:
            unmatched += 1
            logger.debug("Finding has no source", extra={"key_field": key_field, "key": finding.get(key_field)})
            continue
        for source in matches:
            reports.append(CorrelatedReport(metadata=source_metadata(source), finding=finding))

    if statistics is not None:
        statistics.unmatched_findings += unmatched
    logger.info(
        "Correlated findings",
        extra={"reports": len(reports), "unmatched_findings": unmatched, "key_field": key_field},
    )
    return reports


def build_report(
    reports: Iterable[CorrelatedReport],
    metadata_columns: Sequence[str],
    finding_columns: Sequence[str],
) -> ReportTable:
    """Assemble the final table: metadata columns first, then finding fields."""

    header = tuple(metadata_columns) + tuple(finding_columns)
    if len(set(header)) != len(header):
        raise ConfigurationError(f"Report columns must be unique: {header}")
    rows = tuple(report.row(finding_columns, metadata_columns) for report in reports)
    return ReportTable(header=header, rows=rows)


@dataclass(frozen=True)
class GuideNameMapping:
    """Base guide URLs (real and alias forms) mapped to guide names."""

    by_real: Dict[str, str]
    by_alias: Dict[str, str]
    real_pattern: "re.Pattern[str]"
    alias_pattern: "re.Pattern[str]"

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence[str]],
        *,
        real_pattern: str,
        alias_pattern: str,
    ) -> "GuideNameMapping":
        by_real: Dict[str, str] = {}
        by_alias: Dict[str, str] = {}
        for row in rows:
            if not row or not any(cell.strip() for cell in row):
                continue
            if len(row) < 3:
                logger.warning("Skipping short mapping row", extra={"row": list(row)})
                continue
            real, alias, name = (cell.strip() for cell in row[:3])
            if real:
                by_real.setdefault(real, name)
            if alias:
                by_alias.setdefault(alias, name)
        try:
            return cls(
                by_real=by_real,
                by_alias=by_alias,
                real_pattern=re.compile(real_pattern),
                alias_pattern=re.compile(alias_pattern),
            )
        except re.error as exc:
            raise ConfigurationError(f"Invalid guide URL pattern: {exc}") from exc

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        *,
        real_pattern: str,
        alias_pattern: str,
        delimiter: str = "\t",
    ) -> "GuideNameMapping":
        """Load a ``real<TAB>alias<TAB>name`` table without a header.

        Raises:
            InputMissingError: If ``path`` does not exist.
        """
        source = Path(path)
        if not source.is_file():
            raise InputMissingError(source, description="guide mapping table")
        text = source.read_text(encoding="utf-8")
        reader = csv.reader(io.StringIO(text), delimiter=delimiter, quoting=csv.QUOTE_NONE)
        mapping = cls.from_rows(reader, real_pattern=real_pattern, alias_pattern=alias_pattern)
        logger.debug(
            "Loaded guide mapping",
            extra={"path": str(source), "real": len(mapping.by_real), "alias": len(mapping.by_alias)},
        )
        return mapping

    @classmethod
    def from_settings(cls, guide_settings: GuideSettings) -> "GuideNameMapping":
        """Load the table named by :class:`~LinkAudit.settings.GuideSettings`."""
        if guide_settings.mapping_path is None:
            raise ConfigurationError("guides.mapping_path is required for guide-name correlation")
        return cls.load(
            guide_settings.mapping_path,
            real_pattern=guide_settings.real_pattern,
            alias_pattern=guide_settings.alias_pattern,
            delimiter=guide_settings.mapping_delimiter,
        )

    def trim(self, url: str) -> str:
        """Reduce a page URL to its base guide URL (real form first, then alias form)."""
        trimmed = url
        match = self.real_pattern.match(trimmed)
        if match:
            trimmed = match.group(1)
        match = self.alias_pattern.match(trimmed)
        if match:
            trimmed = match.group(1)
        return trimmed

    def lookup(self, url: str) -> Optional[str]:
        """Return the guide name for ``url``, or ``None`` when unmapped."""
        trimmed = self.trim(url)
        name = self.by_real.get(trimmed)
        if name is None:
            name = self.by_alias.get(trimmed)
        return name

    def name_for(self, url: str) -> str:
        """Return the guide name, or the trimmed URL when unmapped."""
        name = self.lookup(url)
        return name if name is not None else self.trim(url)


def correlate_guide_names(
    findings: Iterable[ValidationFinding],
    mapping: GuideNameMapping,
    *,
    guide_column: str = "Guide",
    statistics: Optional[RunStatistics] = None,
) -> List[CorrelatedReport]:
    """Attach a guide name, derived from each finding's parent URL, to every finding."""

    reports: List[CorrelatedReport] = []
    unmapped = 0
    for finding in findings:
        name = mapping.lookup(finding.parent_url)
        if name is None:
            unmapped += 1
            name = mapping.trim(finding.parent_url)
        reports.append(CorrelatedReport(metadata=((guide_column, name),), finding=finding))

    if statistics is not None:
        statistics.unmatched_findings += unmapped
    logger.info("Named guide findings", extra={"reports": len(reports), "unmapped": unmapped})
    return reports
