"""Domain records passed between link audit stages.

Immutable result shapes for every stage of a run. All records are frozen
dataclasses; only :class:`RunStatistics` is mutable and it is owned by a
single pipeline invocation.

NAVMAP:
  - column_index: Resolve a header name or 1-based position
  - ContentRecord: One exported row describing an item, list or guide
  - SeedURI: Harvested identifier in its indirect form
  - ResolvedLink: Outcome of following a seed's redirect chain
  - CandidateLink: Selected URL plus retained record metadata
  - FindingLayout: Field layout of the oracle's report
  - ValidationFinding: One oracle row
  - CorrelatedReport: Metadata joined to a finding
  - ReportTable: Final header plus rows
  - RunStatistics: Per-run counters
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError, ResolutionFailure

if TYPE_CHECKING:
    from .settings import OracleSettings

#: A column is addressed by header name or by 1-based position.
ColumnRef = Union[int, str]

__all__ = [
    "ColumnRef",
    "column_index",
    "ContentRecord",
    "SeedURI",
    "ResolvedLink",
    "CandidateLink",
    "FindingLayout",
    "ValidationFinding",
    "CorrelatedReport",
    "ReportTable",
    "RunStatistics",
]


def column_index(header: Sequence[str], ref: ColumnRef) -> int:
    """Return the 0-based index addressed by ``ref``.

    ``ref`` is either a header name or a 1-based column position. Integer-like
    strings are treated as names, since export headers never auto-detect.

    Raises:
        ConfigurationError: If the name is absent or the position out of range.
    """

    if isinstance(ref, bool):
        raise ConfigurationError(f"Invalid column reference {ref!r}")
    if isinstance(ref, int):
        if ref < 1 or ref > len(header):
            raise ConfigurationError(
                f"Column position {ref} is outside the header (1..{len(header)})"
            )
        return ref - 1
    try:
        return list(header).index(ref)
    except ValueError:
        raise ConfigurationError(f"Column {ref!r} is not present in the header") from None


@dataclass(frozen=True)
class ContentRecord:
    """One exported data row.

    Attributes:
        row_number: 1-based position among data rows; the record's identity
        header: Column names from the export's header row
        values: Field values in column order
    """

    row_number: int
    header: Tuple[str, ...]
    values: Tuple[str, ...]

    def get(self, ref: ColumnRef) -> str:
        """Return the value addressed by name or 1-based position.

        Rows shorter than the header yield ``""`` for the missing trailing fields.
        """
        index = column_index(self.header, ref)
        if index >= len(self.values):
            return ""
        return self.values[index]

    def as_dict(self) -> Dict[str, str]:
        return {name: self.get(pos) for pos, name in enumerate(self.header, start=1)}


@dataclass(frozen=True)
class SeedURI:
    """A content-system identifier before redirect resolution."""

    uri: str
    identifier: str
    page: int = 1


@dataclass(frozen=True)
class ResolvedLink:
    """Outcome of resolving one :class:`SeedURI`.

    Attributes:
        seed: The seed that was resolved
        canonical_url: Final item-page URL, or ``None`` on failure
        trail: ``(url, status)`` pairs for every request issued
        failure: Failure reason, or ``None`` on success
        last_uri: Last URI visited before the chain stopped
    """

    seed: SeedURI
    canonical_url: Optional[str] = None
    trail: Tuple[Tuple[str, int], ...] = ()
    failure: Optional[str] = None
    last_uri: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.canonical_url is not None

    def raise_for_failure(self) -> None:
        """Raise :class:`ResolutionFailure` if resolution did not succeed."""
        if not self.ok:
            raise ResolutionFailure(
                self.seed.uri,
                self.failure or "unresolved",
                last_uri=self.last_uri,
                trail=self.trail,
            )


@dataclass(frozen=True)
class CandidateLink:
    """A selected URL plus the record metadata that travels with it."""

    url: str
    record: ContentRecord
    metadata: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class FindingLayout:
    """Ordered field names of the oracle's report and the roles of key fields."""

    fields: Tuple[str, ...]
    url_field: str = "urlname"
    parent_field: str = "parentname"
    result_field: str = "result"
    diagnostic_field: str = "warningstring"
    valid_field: str = "valid"

    def __post_init__(self) -> None:
        for name in (
            self.url_field,
            self.parent_field,
            self.result_field,
            self.diagnostic_field,
            self.valid_field,
        ):
            if name not in self.fields:
                raise ConfigurationError(f"Oracle field {name!r} is not in the layout")

    @classmethod
    def from_settings(cls, oracle_settings: OracleSettings) -> "FindingLayout":
        """Build a layout from :class:`~LinkAudit.settings.OracleSettings`."""
        return cls(
            fields=tuple(oracle_settings.fields),
            url_field=oracle_settings.url_field,
            parent_field=oracle_settings.parent_field,
            result_field=oracle_settings.result_field,
            diagnostic_field=oracle_settings.diagnostic_field,
            valid_field=oracle_settings.valid_field,
        )

    def index(self, name: str) -> int:
        try:
            return self.fields.index(name)
        except ValueError:
            raise ConfigurationError(f"Unknown oracle field {name!r}") from None


@dataclass(frozen=True)
class ValidationFinding:
    """One row of the oracle's normalized report."""

    layout: FindingLayout
    values: Tuple[str, ...]

    def get(self, name: str) -> str:
        return self.values[self.layout.index(name)]

    @property
    def url(self) -> str:
        return self.get(self.layout.url_field)

    @property
    def parent_url(self) -> str:
        return self.get(self.layout.parent_field)

    @property
    def result(self) -> str:
        return self.get(self.layout.result_field)

    @property
    def diagnostic(self) -> str:
        return self.get(self.layout.diagnostic_field)

    @property
    def valid(self) -> bool:
        return self.get(self.layout.valid_field).strip().lower() in {"true", "1", "yes"}

    def select(self, names: Iterable[str]) -> Tuple[str, ...]:
        return tuple(self.get(name) for name in names)

    def as_dict(self) -> Dict[str, str]:
        return dict(zip(self.layout.fields, self.values))


@dataclass(frozen=True)
class CorrelatedReport:
    """Record metadata paired with one finding that references it."""

    metadata: Tuple[Tuple[str, str], ...]
    finding: ValidationFinding

    def row(
        self,
        finding_columns: Sequence[str],
        metadata_columns: Optional[Sequence[str]] = None,
    ) -> Tuple[str, ...]:
        """Return metadata values followed by the selected finding fields.

        With ``metadata_columns`` the metadata is looked up by name (missing
        names yield ``""``); otherwise it is emitted in its own order.
        """
        if metadata_columns is None:
            head = tuple(value for _, value in self.metadata)
        else:
            by_name = dict(self.metadata)
            head = tuple(by_name.get(name, "") for name in metadata_columns)
        return head + self.finding.select(finding_columns)


@dataclass(frozen=True)
class ReportTable:
    """Final tabular report: one synthesized header plus data rows."""

    header: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = ()

    def __len__(self) -> int:
        return len(self.rows)


@dataclass
class RunStatistics:
    """Counters collected over one pipeline invocation."""

    records_read: int = 0
    records_skipped: int = 0
    records_without_link: int = 0
    candidates: int = 0
    unique_urls: int = 0
    pages_fetched: int = 0
    page_failures: int = 0
    seeds: int = 0
    resolved: int = 0
    resolution_failures: int = 0
    oracle_calls: int = 0
    oracle_failures: int = 0
    findings: int = 0
    findings_skipped: int = 0
    unmatched_findings: int = 0
    report_rows: int = 0
    failure_reasons: Dict[str, int] = field(default_factory=dict)

    def record_failure(self, reason: str) -> None:
        self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + 1

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)
