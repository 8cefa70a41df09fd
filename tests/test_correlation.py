# === NAVMAP v1 ===
# {
#   "module": "tests.test_correlation",
#   "purpose": "Pytest coverage for the correlation engine and guide-name mapping",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Correlation engine tests: URL joins, fan-out, unmatched findings and guide names."""

from __future__ import annotations

import pytest

from LinkAudit.correlation import (
    RESOLVED_METADATA_COLUMNS,
    GuideNameMapping,
    build_report,
    correlate,
    correlate_guide_names,
)
from LinkAudit.errors import ConfigurationError, InputMissingError
from LinkAudit.models import (
    CandidateLink,
    ContentRecord,
    ResolvedLink,
    RunStatistics,
    SeedURI,
    ValidationFinding,
)
from LinkAudit.settings import GuideSettings
from tests.fixtures.linkchecker import row

REAL = GuideSettings().real_pattern
ALIAS = GuideSettings().alias_pattern


def _finding(layout, **values) -> ValidationFinding:
    return ValidationFinding(layout=layout, values=tuple(row(**values)))


def _candidate(url: str, title: str, row_number: int) -> CandidateLink:
    record = ContentRecord(row_number=row_number, header=("Title",), values=(title,))
    return CandidateLink(url=url, record=record, metadata=(("Web Address", url), ("Title", title)))


def test_finding_fans_out_to_every_referencing_record(finding_layout):
    sources = [
        _candidate("http://x.test/", "First list", 1),
        _candidate("http://other.test/", "Other", 2),
        _candidate("http://x.test/", "Second list", 3),
    ]
    findings = [_finding(finding_layout, urlname="http://x.test/", result="404 Not Found")]
    reports = correlate(findings, sources)
    assert [dict(report.metadata)["Title"] for report in reports] == ["First list", "Second list"]


def test_join_is_byte_exact_and_unmatched_findings_are_counted(finding_layout):
    statistics = RunStatistics()
    sources = [_candidate("http://x.test/", "List", 1)]
    findings = [
        _finding(finding_layout, urlname="http://x.test"),
        _finding(finding_layout, urlname="HTTP://x.test/"),
    ]
    assert correlate(findings, sources, statistics=statistics) == []
    assert statistics.unmatched_findings == 2


def test_resolved_links_join_on_parent_url(finding_layout):
    seed = SeedURI(uri="https://hdl.example/1/2", identifier="1/2")
    sources = [
        ResolvedLink(seed=seed, canonical_url="https://repo.example/items/a"),
        ResolvedLink(seed=SeedURI(uri="https://hdl.example/1/3", identifier="1/3"), failure="error status 404"),
    ]
    findings = [_finding(finding_layout, urlname="http://dead.test/", parentname="https://repo.example/items/a")]
    reports = correlate(findings, sources, key_field="parentname")
    table = build_report(reports, RESOLVED_METADATA_COLUMNS, ["urlname", "result"])
    assert table.header == ("Item URL", "Identifier", "Seed URI", "urlname", "result")
    assert table.rows == (
        ("https://repo.example/items/a", "1/2", "https://hdl.example/1/2", "http://dead.test/", "404 Not Found"),
    )


def test_build_report_orders_metadata_then_findings(finding_layout):
    reports = correlate(
        [_finding(finding_layout, urlname="http://x.test/")],
        [_candidate("http://x.test/", "List", 1)],
    )
    table = build_report(reports, ["Web Address", "Title"], ["result", "valid"])
    assert table.header == ("Web Address", "Title", "result", "valid")
    assert table.rows == (("http://x.test/", "List", "404 Not Found", "False"),)
    assert len(table) == 1


def test_build_report_rejects_duplicate_columns():
    with pytest.raises(ConfigurationError):
        build_report([], ["urlname"], ["urlname"])


class TestGuideNameMapping:
    @pytest.fixture
    def mapping(self) -> GuideNameMapping:
        return GuideNameMapping.from_rows(
            [
                ["https://guides.example/c.php?g=12", "https://guides.example/guide-one", "Guide One"],
                ["https://guides.example/c.php?g=34", "", "Guide Two"],
            ],
            real_pattern=REAL,
            alias_pattern=ALIAS,
        )

    def test_real_form_lookup(self, mapping):
        assert mapping.name_for("https://guides.example/c.php?g=34&p=99") == "Guide Two"

    def test_alias_form_lookup(self, mapping):
        assert mapping.name_for("https://guides.example/guide-one/databases") == "Guide One"

    def test_unmapped_url_passes_through_trimmed(self, mapping):
        assert mapping.lookup("https://guides.example/unknown/page") is None
        assert mapping.name_for("https://guides.example/unknown/page") == "https://guides.example/unknown"

    def test_correlate_guide_names(self, mapping, finding_layout):
        statistics = RunStatistics()
        findings = [
            _finding(finding_layout, urlname="http://dead.test/", parentname="https://guides.example/guide-one/x"),
            _finding(finding_layout, urlname="http://dead.test/", parentname="https://guides.example/nobody/x"),
        ]
        reports = correlate_guide_names(findings, mapping, statistics=statistics)
        assert [report.metadata for report in reports] == [
            (("Guide", "Guide One"),),
            (("Guide", "https://guides.example/nobody"),),
        ]
        assert statistics.unmatched_findings == 1

    def test_load_from_disk(self, tmp_path):
        path = tmp_path / "guides.tsv"
        path.write_text(
            "https://guides.example/c.php?g=12\thttps://guides.example/guide-one\tGuide One\n\n",
            encoding="utf-8",
        )
        mapping = GuideNameMapping.load(path, real_pattern=REAL, alias_pattern=ALIAS)
        assert mapping.by_alias == {"https://guides.example/guide-one": "Guide One"}

    def test_missing_mapping_table(self, tmp_path):
        with pytest.raises(InputMissingError):
            GuideNameMapping.load(tmp_path / "absent.tsv", real_pattern=REAL, alias_pattern=ALIAS)

    def test_mapping_path_is_required(self):
        with pytest.raises(ConfigurationError):
            GuideNameMapping.from_settings(GuideSettings())

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError):
            GuideNameMapping.from_rows([], real_pattern="(", alias_pattern=ALIAS)
