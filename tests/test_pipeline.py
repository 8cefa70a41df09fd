# === NAVMAP v1 ===
# {
#   "module": "tests.test_pipeline",
#   "purpose": "End-to-end coverage of the per-platform batch passes",
#   "sections": [
#     {"id": "fakeoracle", "name": "FakeOracle", "anchor": "class-fakeoracle", "kind": "class"},
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Pipeline tests with a scripted oracle and ``httpx.MockTransport`` endpoints.

Each pass is run against temporary inputs and its written report is checked
alongside the returned :class:`~LinkAudit.pipeline.AuditResult`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from LinkAudit import audit_guides, audit_repository, audit_site, audit_tabular_export, configure_logging
from LinkAudit.errors import ConfigurationError, InputMissingError, RemoteCallError
from LinkAudit.settings import LINKCHECKER_FIELDS, build_settings
from tests.fixtures.linkchecker import render, row

EXPORT = (
    "List Link,Item Link,Title,Web Address,Primary Web Address,Online Resource Web Address,"
    "List Appearance,Time Period\n"
    "L1,I1,Dead article,http://dead.test/,,,Week 1,Fall\n"
    "L2,I2,Working site,,http://ok.test/,,Week 2,Fall\n"
    'L3,I3,"Dead, again",,,http://dead.test/,Week 3,Winter\n'
    "L4,I4,No link,,,,Week 4,Winter\n"
)


class FakeOracle:
    """Return a scripted report for every target and remember the targets."""

    def __init__(self, respond: Callable[[str], str]) -> None:
        self.respond = respond
        self.targets: List[str] = []

    def check(self, target: str) -> str:
        self.targets.append(target)
        return self.respond(target)


class FailingOracle:
    def check(self, target: str) -> str:
        raise RemoteCallError("link checker exited with status 2", target=target, status_code=2)


def _settings(tmp_path: Path, **sections):
    raw = {"report": {"output_dir": str(tmp_path / "out")}, "throttle": {"min_interval_ms": 0}}
    for name, values in sections.items():
        raw[name] = {**raw.get(name, {}), **values}
    return build_settings(raw)


def _read_report(path: Path) -> List[List[str]]:
    return [line.split("\t") for line in path.read_text(encoding="utf-8").splitlines()]


class TestTabularExport:
    def test_findings_are_traced_to_every_record(self, tmp_path):
        export = tmp_path / "all-list-items.csv"
        export.write_text(EXPORT, encoding="utf-8")

        def respond(target: str) -> str:
            anchor_file = Path(target)
            assert 'href="http://dead.test/"' in anchor_file.read_text(encoding="utf-8")
            parent = anchor_file.as_uri()
            return render(
                [
                    row(urlname=parent, result="200 OK", valid="True", level="0"),
                    row(urlname="http://dead.test/", parentname=parent),
                ]
            )

        oracle = FakeOracle(respond)
        result = audit_tabular_export(export, settings=_settings(tmp_path), oracle=oracle)

        assert len(oracle.targets) == 1
        assert result.report.header == (
            "Web Address",
            "List Link",
            "Item Link",
            "Title",
            "List Appearance",
            "Time Period",
            *LINKCHECKER_FIELDS,
        )
        assert [r[:4] for r in result.report.rows] == [
            ("http://dead.test/", "L1", "I1", "Dead article"),
            ("http://dead.test/", "L3", "I3", "Dead, again"),
        ]
        assert result.output_path == tmp_path / "out" / "tabular-broken-links.tsv"
        written = _read_report(result.output_path)
        assert len(written) == 3
        assert written[2][3] == "Dead, again"

        statistics = result.statistics
        assert statistics.records_read == 4
        assert statistics.records_without_link == 1
        assert statistics.unique_urls == 2
        assert statistics.findings == 1
        assert statistics.report_rows == 2

    def test_missing_export(self, tmp_path):
        with pytest.raises(InputMissingError):
            audit_tabular_export(tmp_path / "absent.csv", settings=_settings(tmp_path), oracle=FakeOracle(str))

    def test_missing_configured_column(self, tmp_path):
        export = tmp_path / "export.csv"
        export.write_text("Title,Web Address\nA,http://a.test/\n", encoding="utf-8")
        oracle = FakeOracle(lambda target: "")
        with pytest.raises(ConfigurationError):
            audit_tabular_export(export, settings=_settings(tmp_path), oracle=oracle)
        assert oracle.targets == []


class TestRepository:
    BASE_URL = "https://repo.example/oai/request"
    PREFIX = "https://repo.example/items/"

    def _handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(self.BASE_URL):
            identifiers = "".join(
                f'<record><metadata><mods:mods><mods:identifier type="uri">{uri}</mods:identifier>'
                "</mods:mods></metadata></record>"
                for uri in ("https://hdl.handle.net/1/1", "https://hdl.handle.net/1/2")
            )
            body = (
                '<OAI-PMH xmlns="http://www.openarchives.org/OAI/2.0/" xmlns:mods="http://www.loc.gov/mods/v3">'
                f"<ListRecords>{identifiers}</ListRecords></OAI-PMH>"
            )
            return httpx.Response(200, text=body)
        if url == "https://hdl.handle.net/1/1":
            return httpx.Response(301, headers={"Location": self.PREFIX + "a"})
        return httpx.Response(404)

    def test_harvest_resolve_check_and_correlate(self, tmp_path, mock_polite_client):
        settings = _settings(
            tmp_path,
            harvest={"base_url": self.BASE_URL},
            resolver={"canonical_prefix": self.PREFIX},
            report={"keep_intermediates": True},
        )
        oracle = FakeOracle(
            lambda target: render([row(urlname="http://dead.test/", parentname=target)], preamble=False)
        )
        result = audit_repository(settings=settings, client=mock_polite_client(self._handler), oracle=oracle)

        assert oracle.targets == [self.PREFIX + "a"]
        assert result.report.header[:3] == ("Item URL", "Identifier", "Seed URI")
        assert result.report.rows[0][:4] == (
            self.PREFIX + "a",
            "https://hdl.handle.net/1/1",
            "https://hdl.handle.net/1/1",
            "http://dead.test/",
        )
        assert result.statistics.seeds == 2
        assert result.statistics.resolved == 1
        assert result.statistics.resolution_failures == 1

        work_dir = tmp_path / "out" / "repository-work"
        assert (work_dir / "item-urls.txt").read_text(encoding="utf-8") == self.PREFIX + "a\n"
        statistics_path = tmp_path / "out" / "repository-broken-links.statistics.json"
        assert json.loads(statistics_path.read_text(encoding="utf-8"))["report_rows"] == 1

    def test_canonical_prefix_is_required(self, tmp_path, mock_polite_client):
        settings = _settings(tmp_path, harvest={"base_url": self.BASE_URL})
        with pytest.raises(ConfigurationError):
            audit_repository(settings=settings, client=mock_polite_client(self._handler), oracle=FakeOracle(str))


class TestGuides:
    def test_findings_are_named_by_guide(self, tmp_path):
        mapping = tmp_path / "guides.tsv"
        mapping.write_text(
            "https://guides.example/c.php?g=12\thttps://guides.example/guide-one\tGuide One\n",
            encoding="utf-8",
        )
        settings = _settings(tmp_path, guides={"mapping_path": str(mapping)})
        oracle = FakeOracle(
            lambda target: render(
                [row(urlname="http://dead.test/", parentname="https://guides.example/c.php?g=12&p=7")]
            )
        )
        result = audit_guides("https://guides.example/sitemap.xml", settings=settings, oracle=oracle)

        assert result.report.header[:3] == ("Guide", "parentname", "urlname")
        assert result.report.rows[0][:4] == (
            "Guide One",
            "https://guides.example/c.php?g=12&p=7",
            "http://dead.test/",
            "404 Not Found",
        )

    def test_missing_mapping_table_stops_before_checking(self, tmp_path):
        settings = _settings(tmp_path, guides={"mapping_path": str(tmp_path / "absent.tsv")})
        oracle = FakeOracle(str)
        with pytest.raises(InputMissingError):
            audit_guides("https://guides.example/sitemap.xml", settings=settings, oracle=oracle)
        assert oracle.targets == []


class TestSite:
    def test_report_is_the_normalized_findings(self, tmp_path):
        oracle = FakeOracle(lambda target: render([row(urlname="http://dead.test/", parentname=target)]) * 2)
        result = audit_site("https://site.example/", settings=_settings(tmp_path), oracle=oracle)
        assert result.report.header == tuple(LINKCHECKER_FIELDS)
        assert len(result.report) == 2
        assert _read_report(result.output_path)[0] == LINKCHECKER_FIELDS

    def test_oracle_failure_is_counted(self, tmp_path):
        result = audit_site("https://site.example/", settings=_settings(tmp_path), oracle=FailingOracle())
        assert result.statistics.oracle_calls == 1
        assert result.statistics.oracle_failures == 1
        assert result.statistics.failure_reasons == {"oracle": 1}
        assert len(result.report) == 0

    def test_explicit_output_path(self, tmp_path):
        target = tmp_path / "custom" / "report.tsv"
        result = audit_site(
            "https://site.example/",
            settings=_settings(tmp_path),
            oracle=FakeOracle(lambda target: ""),
            output_path=target,
        )
        assert result.output_path == target
        assert target.exists()

    def test_statistics_outlive_the_work_directory(self, tmp_path):
        oracle = FakeOracle(lambda target: render([row(urlname="http://dead.test/", parentname=target)]))
        result = audit_site("https://site.example/", settings=_settings(tmp_path), oracle=oracle)
        statistics_path = result.output_path.with_suffix(".statistics.json")
        assert statistics_path.name == "site-broken-links.statistics.json"
        saved = json.loads(statistics_path.read_text(encoding="utf-8"))
        assert saved["report_rows"] == 1
        assert saved["oracle_calls"] == 1


def test_configure_logging_uses_settings(tmp_path):
    settings = _settings(tmp_path, logging={"level": "debug", "log_dir": str(tmp_path / "logs")})
    logger = configure_logging(settings)
    assert logger.name == "LinkAudit"
    assert list((tmp_path / "logs").glob("linkaudit-*.jsonl"))
