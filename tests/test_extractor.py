# === NAVMAP v1 ===
# {
#   "module": "tests.test_extractor",
#   "purpose": "Pytest coverage for candidate link extraction",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Candidate link extractor tests."""

from __future__ import annotations

import pytest

from LinkAudit.errors import ConfigurationError
from LinkAudit.extractor import (
    extract_links,
    normalize_candidate_url,
    render_anchor_file,
    select_candidate,
)
from LinkAudit.models import RunStatistics
from LinkAudit.settings import ExportSettings
from LinkAudit.tabular import read_records

EXPORT = (
    "List Link,Item Link,Title,Web Address,Primary Web Address,Online Resource Web Address,"
    "List Appearance,Time Period\n"
    "L1,I1,Only online,,,http://y.test/,Week 1,Fall\n"
    'L2,I2,Two links,"http://a.test/?x=1&amp;y=2; http://b.test/",http://ignored.test/,,Week 2,Fall\n'
    "L3,I3,No link,,,,Week 3,Fall\n"
    "L4,I4,Shared,http://y.test/,,,Week 4,Winter\n"
)


@pytest.fixture
def records():
    return read_records(EXPORT).records


def test_first_non_empty_candidate_wins(records):
    columns = ["Web Address", "Primary Web Address", "Online Resource Web Address"]
    assert select_candidate(records[0], columns) == "http://y.test/"
    assert select_candidate(records[2], columns) is None


def test_extract_links_keeps_metadata_and_counts(records):
    statistics = RunStatistics()
    result = extract_links(records, ExportSettings(), statistics=statistics)

    assert [link.url for link in result.links] == ["http://y.test/", "http://a.test/?x=1&y=2", "http://y.test/"]
    assert result.unique_urls == ("http://a.test/?x=1&y=2", "http://y.test/")
    assert result.records_without_link == 1
    assert dict(result.links[0].metadata) == {
        "Web Address": "http://y.test/",
        "List Link": "L1",
        "Item Link": "I1",
        "Title": "Only online",
        "List Appearance": "Week 1",
        "Time Period": "Fall",
    }
    assert result.links[1].record.row_number == 2
    assert statistics.candidates == 3
    assert statistics.unique_urls == 2
    assert statistics.records_without_link == 1


def test_all_policy_emits_every_value(records):
    settings = ExportSettings(multi_value_policy="all")
    urls = [link.url for link in extract_links(records, settings).links]
    assert urls == ["http://y.test/", "http://a.test/?x=1&y=2", "http://b.test/", "http://y.test/"]


def test_positional_metadata_columns(records):
    settings = ExportSettings(candidate_columns=[4], metadata_columns=[3])
    link = extract_links(records, settings).links[0]
    assert link.metadata == (("Web Address", "http://a.test/?x=1&y=2"), ("Title", "Two links"))


def test_unknown_column_is_a_configuration_error(records):
    with pytest.raises(ConfigurationError):
        extract_links(records, ExportSettings(candidate_columns=["Missing"]))


@pytest.mark.parametrize(
    ("raw", "policy", "expected"),
    [
        ('"http://a.test/"', "first", ["http://a.test/"]),
        ("http://a.test/?a=1&amp;b=2", "first", ["http://a.test/?a=1&b=2"]),
        ("http://a.test/;http://b.test/", "first", ["http://a.test/"]),
        ("http://a.test/ ; ;http://b.test/", "all", ["http://a.test/", "http://b.test/"]),
        ("   ", "first", []),
    ],
)
def test_normalize_candidate_url(raw, policy, expected):
    assert normalize_candidate_url(raw, separator=";", policy=policy) == expected


def test_normalize_candidate_url_rejects_unknown_policy():
    with pytest.raises(ValueError):
        normalize_candidate_url("http://a.test/", policy="random")


def test_render_anchor_file_escapes_urls():
    document = render_anchor_file(["http://a.test/?x=1&y=<2>"], title="Reading lists")
    assert '<a href="http://a.test/?x=1&amp;y=&lt;2&gt;">' in document
    assert "<title>Reading lists</title>" in document
    assert document.count("<a ") == 1
