# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.pipeline",
#   "purpose": "Per-platform batch passes wiring harvest, resolution, validation, normalization and correlation",
#   "sections": [
#     {"id": "auditresult", "name": "AuditResult", "anchor": "class-auditresult", "kind": "class"},
#     {"id": "work-directory", "name": "work_directory", "anchor": "function-work-directory", "kind": "function"},
#     {"id": "audit-tabular-export", "name": "audit_tabular_export", "anchor": "function-audit-tabular-export", "kind": "function"},
#     {"id": "audit-repository", "name": "audit_repository", "anchor": "function-audit-repository", "kind": "function"},
#     {"id": "audit-guides", "name": "audit_guides", "anchor": "function-audit-guides", "kind": "function"},
#     {"id": "audit-site", "name": "audit_site", "anchor": "function-audit-site", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Batch passes for each kind of platform.

Every pass is a single-threaded, stateless run over a fresh snapshot:

* :func:`audit_tabular_export` - reading-list exports: extract candidate
  links, check them from one anchor file, correlate on the checked URL.
* :func:`audit_repository` - handle-based repositories: harvest seeds,
  resolve them to item pages, check each item page, correlate on the parent URL.
* :func:`audit_guides` - sitemap-seeded guide platforms: check from one seed,
  name each finding's guide.
* :func:`audit_site` - crawlable sites: check from one seed, normalize only.

Intermediate artifacts are written to a work directory that is removed at the
end of the run unless ``report.keep_intermediates`` is set.
"""

from __future__ import annotations

import contextlib
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from .correlation import (
    RESOLVED_METADATA_COLUMNS,
    GuideNameMapping,
    build_report,
    correlate,
    correlate_guide_names,
)
from .errors import ConfigurationError, RemoteCallError
from .extractor import extract_links, render_anchor_file
from .harvester import OaiPmhHarvester
from .logging_utils import setup_logging
from .models import FindingLayout, ReportTable, RunStatistics
from .network import PoliteHttpClient, RedirectResolver, create_http_client
from .normalizer import NormalizedReport, normalize_oracle_output
from .oracle import LinkCheckerOracle, LinkValidationOracle, input_artifact_urls
from .ratelimit import ThrottleManager
from .report import write_report, write_statistics, write_text_atomic
from .settings import LinkAuditSettings, get_settings
from .tabular import read_table, resolve_columns

__all__ = [
    "AuditResult",
    "configure_logging",
    "work_directory",
    "audit_tabular_export",
    "audit_repository",
    "audit_guides",
    "audit_site",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditResult:
    """Report, counters and output location of one pass."""

    report: ReportTable
    statistics: RunStatistics
    output_path: Path


def configure_logging(settings: Optional[LinkAuditSettings] = None) -> logging.Logger:
    """Apply :class:`~LinkAudit.settings.LoggingSettings` to the ``LinkAudit`` logger."""

    cfg = (settings or get_settings()).logging
    return setup_logging(
        level=cfg.level,
        retention_days=cfg.retention_days,
        max_log_size_mb=cfg.max_log_size_mb,
        log_dir=cfg.log_dir,
        emit_json_logs=cfg.emit_json_logs,
    )


@contextlib.contextmanager
def work_directory(settings: LinkAuditSettings, name: str) -> Iterator[Path]:
    """Yield a directory for intermediate artifacts of the ``name`` pass."""

    if settings.report.keep_intermediates:
        path = Path(settings.report.output_dir) / f"{name}-work"
        path.mkdir(parents=True, exist_ok=True)
        logger.debug("Keeping intermediates", extra={"work_dir": str(path)})
        yield path
        return
    with tempfile.TemporaryDirectory(prefix=f"linkaudit-{name}-") as tmp:
        yield Path(tmp)


def _default_oracle(settings: LinkAuditSettings) -> LinkValidationOracle:
    return LinkCheckerOracle.from_settings(settings.oracle, settings.http)


def _run_oracle(oracle: LinkValidationOracle, target: str, statistics: RunStatistics) -> Optional[str]:
    statistics.oracle_calls += 1
    try:
        return oracle.check(target)
    except RemoteCallError as exc:
        statistics.oracle_failures += 1
        statistics.record_failure("oracle")
        logger.error("Oracle call failed", extra={"target": target, "error": str(exc)})
        return None


def _normalize(
    raw: str,
    settings: LinkAuditSettings,
    statistics: RunStatistics,
    exclude_urls: Sequence[str] = (),
) -> NormalizedReport:
    oracle_cfg = settings.oracle
    return normalize_oracle_output(
        raw,
        FindingLayout.from_settings(oracle_cfg),
        source_delimiter=oracle_cfg.delimiter,
        target_delimiter=settings.report.delimiter,
        comment_marker=oracle_cfg.comment_marker,
        wrap_marker=oracle_cfg.wrap_marker,
        quotechar=oracle_cfg.quotechar,
        exclude_urls=exclude_urls,
        statistics=statistics,
    )


def _finish(
    name: str,
    table: ReportTable,
    statistics: RunStatistics,
    settings: LinkAuditSettings,
    output_path: Optional[Union[str, Path]],
) -> AuditResult:
    statistics.report_rows = len(table)
    target = Path(output_path) if output_path else Path(settings.report.output_dir) / f"{name}-broken-links.tsv"
    written = write_report(table, target, delimiter=settings.report.delimiter)
    write_statistics(statistics, written.with_suffix(".statistics.json"))
    logger.info("Run finished", extra={"pass": name, "output": str(written), **statistics.as_dict()})
    return AuditResult(report=table, statistics=statistics, output_path=written)


def audit_tabular_export(
    export_path: Union[str, Path],
    *,
    settings: Optional[LinkAuditSettings] = None,
    oracle: Optional[LinkValidationOracle] = None,
    output_path: Optional[Union[str, Path]] = None,
) -> AuditResult:
    """Check every link of a tabular export and trace findings to their records.

    Raises:
        InputMissingError: If ``export_path`` does not exist.
        ConfigurationError: If a configured column is not in the export header.
    """

    settings = settings or get_settings()
    export_cfg = settings.export
    statistics = RunStatistics()

    table = read_table(export_path, delimiter=export_cfg.delimiter, quotechar=export_cfg.quotechar)
    statistics.records_read = len(table.records)
    statistics.records_skipped = len(table.errors)
    resolve_columns(table.header, [*export_cfg.candidate_columns, *export_cfg.metadata_columns])

    extraction = extract_links(table.records, export_cfg, statistics=statistics)
    oracle = oracle or _default_oracle(settings)
    layout = FindingLayout.from_settings(settings.oracle)

    with work_directory(settings, "tabular") as work_dir:
        anchor_path = write_text_atomic(work_dir / "links.html", render_anchor_file(extraction.unique_urls))
        raw = _run_oracle(oracle, str(anchor_path), statistics) or ""
        write_text_atomic(work_dir / "oracle-output.csv", raw)
        normalized = _normalize(raw, settings, statistics, exclude_urls=input_artifact_urls(anchor_path))

        reports = correlate(
            normalized.findings, extraction.links, key_field=layout.url_field, statistics=statistics
        )
        metadata_columns = [export_cfg.link_column_name] + [
            table.header[index] for index in resolve_columns(table.header, export_cfg.metadata_columns)
        ]
        report = build_report(reports, metadata_columns, layout.fields)
        return _finish("tabular", report, statistics, settings, output_path)


def audit_repository(
    *,
    settings: Optional[LinkAuditSettings] = None,
    client: Optional[PoliteHttpClient] = None,
    oracle: Optional[LinkValidationOracle] = None,
    output_path: Optional[Union[str, Path]] = None,
) -> AuditResult:
    """Harvest, resolve and check a repository's item pages.

    Raises:
        ConfigurationError: If no listing endpoint or canonical prefix is configured.
    """

    settings = settings or get_settings()
    if not settings.resolver.canonical_prefix:
        raise ConfigurationError("resolver.canonical_prefix is required to audit a repository")
    statistics = RunStatistics()
    oracle = oracle or _default_oracle(settings)
    layout = FindingLayout.from_settings(settings.oracle)

    owns_client = client is None
    if client is None:
        client = PoliteHttpClient(
            http_client=create_http_client(settings.http),
            throttle=ThrottleManager.from_settings(settings.throttle),
        )
    try:
        harvest = OaiPmhHarvester(client, settings.harvest).harvest(statistics=statistics)
        resolved = RedirectResolver.from_settings(client, settings.resolver).resolve_all(
            harvest.seeds, statistics=statistics
        )
    finally:
        if owns_client:
            client.close()

    with work_directory(settings, "repository") as work_dir:
        write_text_atomic(work_dir / "seeds.txt", "".join(f"{seed.uri}\n" for seed in harvest.seeds))
        item_urls: List[str] = list(dict.fromkeys(link.canonical_url for link in resolved if link.ok))
        write_text_atomic(work_dir / "item-urls.txt", "".join(f"{url}\n" for url in item_urls))

        outputs: List[str] = []
        for url in item_urls:
            raw = _run_oracle(oracle, url, statistics)
            if raw:
                outputs.append(raw if raw.endswith("\n") else raw + "\n")
        raw_all = "".join(outputs)
        write_text_atomic(work_dir / "oracle-output.csv", raw_all)
        normalized = _normalize(raw_all, settings, statistics)

        reports = correlate(
            normalized.findings, resolved, key_field=layout.parent_field, statistics=statistics
        )
        report = build_report(reports, RESOLVED_METADATA_COLUMNS, layout.fields)
        return _finish("repository", report, statistics, settings, output_path)


def audit_guides(
    seed_url: str,
    *,
    settings: Optional[LinkAuditSettings] = None,
    oracle: Optional[LinkValidationOracle] = None,
    output_path: Optional[Union[str, Path]] = None,
) -> AuditResult:
    """Check a guide platform from its sitemap and name each finding's guide.

    Raises:
        InputMissingError: If the guide mapping table does not exist.
    """

    settings = settings or get_settings()
    guides = settings.guides
    mapping = GuideNameMapping.from_settings(guides)
    statistics = RunStatistics()
    oracle = oracle or _default_oracle(settings)

    with work_directory(settings, "guides") as work_dir:
        raw = _run_oracle(oracle, seed_url, statistics) or ""
        write_text_atomic(work_dir / "oracle-output.csv", raw)
        normalized = _normalize(raw, settings, statistics)
        reports = correlate_guide_names(
            normalized.findings, mapping, guide_column=guides.guide_column, statistics=statistics
        )
        report = build_report(reports, [guides.guide_column], guides.finding_columns)
        return _finish("guides", report, statistics, settings, output_path)


def audit_site(
    seed_url: str,
    *,
    settings: Optional[LinkAuditSettings] = None,
    oracle: Optional[LinkValidationOracle] = None,
    output_path: Optional[Union[str, Path]] = None,
) -> AuditResult:
    """Check a crawlable site from one seed; the report is the normalized findings."""

    settings = settings or get_settings()
    statistics = RunStatistics()
    oracle = oracle or _default_oracle(settings)

    with work_directory(settings, "site") as work_dir:
        raw = _run_oracle(oracle, seed_url, statistics) or ""
        write_text_atomic(work_dir / "oracle-output.csv", raw)
        normalized = _normalize(raw, settings, statistics)
        report = ReportTable(
            header=normalized.header,
            rows=tuple(finding.values for finding in normalized.findings),
        )
        return _finish("site", report, statistics, settings, output_path)
