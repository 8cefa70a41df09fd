"""Exception hierarchy shared across harvesting, resolution, normalization and correlation.

A link audit run spans configuration parsing, remote listing requests,
redirect resolution, oracle invocation and table repair. This module groups
the failure modes into a small hierarchy so pipeline code can tell fatal
input problems apart from per-record failures that are counted and skipped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

__all__ = [
    "LinkAuditError",
    "ConfigurationError",
    "InputMissingError",
    "MalformedRecordError",
    "NormalizationError",
    "ResolutionFailure",
    "RemoteCallError",
]


class LinkAuditError(RuntimeError):
    """Base exception for link audit failures."""


class ConfigurationError(LinkAuditError):
    """Raised when settings, column references or config files are invalid."""


class InputMissingError(LinkAuditError):
    """Raised when a required input file or table is absent.

    This is the only pipeline-fatal input failure; it is raised before any
    remote work starts.
    """

    def __init__(self, path: Union[str, Path], *, description: str = "input file") -> None:
        self.path = Path(path)
        self.description = description
        super().__init__(f"The required {description} {str(self.path)!r} was not found")


class MalformedRecordError(LinkAuditError):
    """Raised when a tabular row cannot be parsed under the expected dialect."""

    def __init__(self, message: str, *, line_number: Optional[int] = None, text: str = "") -> None:
        self.line_number = line_number
        self.text = text
        location = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"{message}{location}")


class NormalizationError(LinkAuditError):
    """Raised when an oracle row cannot be split into the expected field count."""

    def __init__(
        self,
        message: str,
        *,
        row: str = "",
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> None:
        self.row = row
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class ResolutionFailure(LinkAuditError):
    """Raised for a seed whose redirect chain never reached a canonical URL.

    The resolver records failures on :class:`~LinkAudit.models.ResolvedLink`
    instead of raising; this type exists for callers that opt into raising.
    """

    def __init__(
        self,
        uri: str,
        reason: str,
        *,
        last_uri: Optional[str] = None,
        trail: Sequence[Tuple[str, int]] = (),
    ) -> None:
        self.uri = uri
        self.reason = reason
        self.last_uri = last_uri or uri
        self.trail = tuple(trail)
        super().__init__(f"Could not resolve {uri}: {reason} (last seen {self.last_uri})")


class RemoteCallError(LinkAuditError):
    """Raised when a listing request or oracle invocation fails.

    No automatic retry is attempted; callers record the failure and move on.
    """

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.target = target
        self.status_code = status_code
