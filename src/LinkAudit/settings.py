# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.settings",
#   "purpose": "Configuration models, YAML loading and environment overrides for link audit runs",
#   "sections": [
#     {"id": "httpsettings", "name": "HttpSettings", "anchor": "class-httpsettings", "kind": "class"},
#     {"id": "throttlesettings", "name": "ThrottleSettings", "anchor": "class-throttlesettings", "kind": "class"},
#     {"id": "harvestsettings", "name": "HarvestSettings", "anchor": "class-harvestsettings", "kind": "class"},
#     {"id": "resolversettings", "name": "ResolverSettings", "anchor": "class-resolversettings", "kind": "class"},
#     {"id": "exportsettings", "name": "ExportSettings", "anchor": "class-exportsettings", "kind": "class"},
#     {"id": "oraclesettings", "name": "OracleSettings", "anchor": "class-oraclesettings", "kind": "class"},
#     {"id": "guidesettings", "name": "GuideSettings", "anchor": "class-guidesettings", "kind": "class"},
#     {"id": "reportsettings", "name": "ReportSettings", "anchor": "class-reportsettings", "kind": "class"},
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "linkauditsettings", "name": "LinkAuditSettings", "anchor": "class-linkauditsettings", "kind": "class"},
#     {"id": "load-config", "name": "load_config", "anchor": "function-load-config", "kind": "function"},
#     {"id": "get-settings", "name": "get_settings", "anchor": "function-get-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for link audit runs.

Every tunable of the engine lives here: HTTP identity and timeouts, the
politeness throttle, the remote listing protocol, redirect resolution, the
tabular export layout, the oracle's report layout and the final report.
Sections are frozen pydantic models; the root :class:`LinkAuditSettings` is a
pydantic-settings class so any value can be overridden with
``LINKAUDIT_<SECTION>__<FIELD>`` environment variables.

Example:
    >>> settings = LinkAuditSettings()
    >>> settings.resolver.max_hops
    2
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

try:  # pragma: no cover - exercised when PyYAML missing
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover - provide actionable error
    raise ModuleNotFoundError(
        "PyYAML is required for configuration parsing. Install the 'linkaudit' package "
        "with its declared dependencies."
    ) from exc

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError, InputMissingError
from .models import ColumnRef
from .network.policy import (
    DEFAULT_MAX_HOPS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    MAX_CONNECTIONS,
)

__all__ = [
    "LINKCHECKER_FIELDS",
    "ColumnRef",
    "HttpSettings",
    "ThrottleSettings",
    "HarvestSettings",
    "ResolverSettings",
    "ExportSettings",
    "OracleSettings",
    "GuideSettings",
    "ReportSettings",
    "LoggingSettings",
    "LinkAuditSettings",
    "load_config",
    "get_settings",
    "reset_settings",
]

logger = logging.getLogger(__name__)

#: Column layout of LinkChecker's ``-o csv`` output.
LINKCHECKER_FIELDS: List[str] = [
    "urlname",
    "parentname",
    "base",
    "result",
    "warningstring",
    "infostring",
    "valid",
    "url",
    "line",
    "column",
    "name",
    "dltime",
    "size",
    "checktime",
    "cached",
    "level",
    "modified",
]

def _single_character(value: str, field_name: str) -> str:
    if len(value) != 1:
        raise ValueError(f"{field_name} must be a single character, got {value!r}")
    return value


class HttpSettings(BaseModel):
    """HTTP client identity and timeouts."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = Field(
        default="LinkAudit/0.1 (broken links checking operation)",
        description="User-Agent header sent with every listing and redirect request",
    )
    timeout_connect: float = Field(default=HTTP_CONNECT_TIMEOUT, gt=0.0, le=120.0, description="Connect timeout (s)")
    timeout_read: float = Field(default=HTTP_READ_TIMEOUT, gt=0.0, le=600.0, description="Read timeout (s)")
    timeout_write: float = Field(default=HTTP_WRITE_TIMEOUT, gt=0.0, le=600.0, description="Write timeout (s)")
    timeout_pool: float = Field(default=HTTP_POOL_TIMEOUT, gt=0.0, le=120.0, description="Pool acquire timeout (s)")
    max_connections: int = Field(default=MAX_CONNECTIONS, ge=1, le=256)
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    trust_env: bool = Field(default=True, description="Honor HTTP(S)_PROXY and NO_PROXY")


class ThrottleSettings(BaseModel):
    """Politeness throttle between successive remote calls."""

    model_config = ConfigDict(frozen=True)

    min_interval_ms: int = Field(
        default=500,
        ge=0,
        le=60_000,
        description="Minimum delay between remote calls in milliseconds; 0 disables the throttle",
    )
    rate: Optional[str] = Field(
        default=None,
        description="Rate string such as '2/second' or '750ms'; overrides min_interval_ms",
    )

    @field_validator("rate")
    @classmethod
    def validate_rate(cls, value: Optional[str]) -> Optional[str]:
        """Reject rate strings the throttle cannot parse."""
        if value is None:
            return None
        from .ratelimit.config import parse_rate_string

        parse_rate_string(value)
        return value.strip()


class HarvestSettings(BaseModel):
    """OAI-PMH listing protocol used to harvest seed identifiers."""

    model_config = ConfigDict(frozen=True)

    base_url: Optional[str] = Field(default=None, description="OAI-PMH request endpoint")
    metadata_prefix: str = Field(default="mods")
    page_size: int = Field(default=100, ge=1, description="Records returned per listing page")
    max_pages: Optional[int] = Field(
        default=None,
        ge=1,
        description="Page budget for counter-derived cursors; also caps token-driven listings",
    )
    corpus_size: Optional[int] = Field(
        default=None,
        ge=0,
        description="Approximate record count; page budget is ceil(corpus_size / page_size)",
    )
    resumption_template: str = Field(
        default="{prefix}////{offset}",
        description="Counter-derived resumption token; placeholders {prefix} and {offset}",
    )
    namespaces: Dict[str, str] = Field(
        default_factory=lambda: {
            "oai": "http://www.openarchives.org/OAI/2.0/",
            "mods": "http://www.loc.gov/mods/v3",
        }
    )
    identifier_path: str = Field(
        default="oai:ListRecords/oai:record/oai:metadata/mods:mods/mods:identifier[@type='uri']",
        description="ElementTree path, relative to the OAI-PMH root, of each record identifier",
    )
    rewrite_from: Optional[str] = Field(default="https://hdl.handle.net/")
    rewrite_to: Optional[str] = Field(default=None)

    def page_budget(self) -> Optional[int]:
        """Return the number of pages to request when no protocol token is available."""

        if self.max_pages is not None:
            return self.max_pages
        if self.corpus_size is not None:
            return max(1, math.ceil(self.corpus_size / self.page_size))
        return None


class ResolverSettings(BaseModel):
    """Redirect resolution policy."""

    model_config = ConfigDict(frozen=True)

    max_hops: int = Field(default=DEFAULT_MAX_HOPS, ge=1, le=10, description="Maximum redirects followed per seed")
    canonical_prefix: Optional[str] = Field(
        default=None,
        description="URL prefix of the platform's item pages, e.g. https://repo.example/items/",
    )
    method: Literal["HEAD", "GET"] = Field(default="HEAD")
    scan_body_links: bool = Field(
        default=True,
        description="On a 2xx non-item page, follow the first anchor that points at an item page",
    )


class ExportSettings(BaseModel):
    """Layout of the tabular metadata export."""

    model_config = ConfigDict(frozen=True)

    delimiter: str = Field(default=",")
    quotechar: str = Field(default='"')
    candidate_columns: List[ColumnRef] = Field(
        default_factory=lambda: ["Web Address", "Primary Web Address", "Online Resource Web Address"],
        description="Candidate URL columns in priority order",
    )
    metadata_columns: List[ColumnRef] = Field(
        default_factory=lambda: ["List Link", "Item Link", "Title", "List Appearance", "Time Period"],
        description="Record fields carried into the report, in report order",
    )
    link_column_name: str = Field(default="Web Address")
    multi_value_separator: str = Field(default=";")
    multi_value_policy: Literal["first", "all"] = Field(default="first")

    @field_validator("delimiter", "quotechar")
    @classmethod
    def validate_single_character(cls, value: str, info: Any) -> str:
        """CSV dialect characters must be exactly one character."""
        return _single_character(value, info.field_name)

    @field_validator("candidate_columns")
    @classmethod
    def validate_candidates(cls, value: List[ColumnRef]) -> List[ColumnRef]:
        """At least one candidate column is required."""
        if not value:
            raise ValueError("candidate_columns must name at least one column")
        return value


class OracleSettings(BaseModel):
    """Invocation and report layout of the link-validation oracle."""

    model_config = ConfigDict(frozen=True)

    command: List[str] = Field(default_factory=lambda: ["linkchecker"])
    extra_args: List[str] = Field(
        default_factory=lambda: ["--no-robots", "--no-warnings", "--no-status", "--check-extern"]
    )
    ignore_urls: List[str] = Field(default_factory=list, description="--ignore-url regexes")
    timeout_sec: Optional[float] = Field(default=None, gt=0.0)
    fields: List[str] = Field(default_factory=lambda: list(LINKCHECKER_FIELDS))
    url_field: str = Field(default="urlname")
    parent_field: str = Field(default="parentname")
    result_field: str = Field(default="result")
    diagnostic_field: str = Field(default="warningstring")
    valid_field: str = Field(default="valid")
    delimiter: str = Field(default=";")
    quotechar: str = Field(default='"')
    comment_marker: str = Field(default="# ", description="Prefix of annotation lines in the raw report")
    wrap_marker: str = Field(default=".")

    @field_validator("delimiter", "quotechar")
    @classmethod
    def validate_single_character(cls, value: str, info: Any) -> str:
        """CSV dialect characters must be exactly one character."""
        return _single_character(value, info.field_name)

    @model_validator(mode="after")
    def validate_layout(self) -> "OracleSettings":
        """Every named field must be part of the declared layout."""
        if len(set(self.fields)) != len(self.fields):
            raise ValueError("oracle fields must be unique")
        for attr in ("url_field", "parent_field", "result_field", "diagnostic_field", "valid_field"):
            name = getattr(self, attr)
            if name not in self.fields:
                raise ValueError(f"{attr}={name!r} is not one of the oracle fields")
        return self


class GuideSettings(BaseModel):
    """Guide-name correlation for sitemap-seeded platforms."""

    model_config = ConfigDict(frozen=True)

    mapping_path: Optional[Path] = Field(default=None, description="real<TAB>alias<TAB>name table")
    mapping_delimiter: str = Field(default="\t")
    real_pattern: str = Field(
        default=r"^(https?://[^/]+/c\.php\?g=[0-9]*)&p=.*$",
        description="Regex whose first group is the base guide URL in query-string form",
    )
    alias_pattern: str = Field(
        default=r"^(https?://[^/]+/[A-Za-z0-9_-]*)/.*$",
        description="Regex whose first group is the base guide URL in alias form",
    )
    guide_column: str = Field(default="Guide")
    finding_columns: List[str] = Field(
        default_factory=lambda: ["parentname", "urlname"] + LINKCHECKER_FIELDS[3:],
        description="Oracle fields in report order after the guide name",
    )


class ReportSettings(BaseModel):
    """Final report and intermediate artifacts."""

    model_config = ConfigDict(frozen=True)

    delimiter: str = Field(default="\t")
    output_dir: Path = Field(default_factory=Path.cwd)
    keep_intermediates: bool = Field(default=False)

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, value: str) -> str:
        """The report delimiter must be one character."""
        return _single_character(value, "delimiter")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    emit_json_logs: bool = Field(default=True)
    max_log_size_mb: int = Field(default=50, gt=0)
    retention_days: int = Field(default=30, ge=1)
    log_dir: Optional[Path] = Field(default=None)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class LinkAuditSettings(BaseSettings):
    """Root settings object for one link audit deployment."""

    model_config = SettingsConfigDict(
        env_prefix="LINKAUDIT_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    http: HttpSettings = Field(default_factory=HttpSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    harvest: HarvestSettings = Field(default_factory=HarvestSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    oracle: OracleSettings = Field(default_factory=OracleSettings)
    guides: GuideSettings = Field(default_factory=GuideSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def config_hash(self) -> str:
        """Return a short, stable fingerprint of the effective configuration."""

        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def load_config(config_path: Union[str, Path]) -> LinkAuditSettings:
    """Load settings from a YAML file, with environment overrides applied on top.

    Raises:
        InputMissingError: If ``config_path`` does not exist.
        ConfigurationError: If the file is not a YAML mapping or fails validation.
    """

    path = Path(config_path).expanduser()
    if not path.is_file():
        raise InputMissingError(path, description="configuration file")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return build_settings(raw)


def build_settings(raw: Mapping[str, Any]) -> LinkAuditSettings:
    """Validate a raw mapping into :class:`LinkAuditSettings`."""

    try:
        return LinkAuditSettings(**dict(raw))
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid link audit configuration: {exc}") from exc


_settings: Optional[LinkAuditSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> LinkAuditSettings:
    """Return the process-wide settings, loading ``LINKAUDIT_CONFIG`` on first use."""

    global _settings
    if _settings is not None:
        return _settings
    with _settings_lock:
        if _settings is None:
            config_path = os.environ.get("LINKAUDIT_CONFIG", "").strip()
            if config_path:
                _settings = load_config(config_path)
            else:
                _settings = build_settings({})
            logger.debug(
                "Settings loaded",
                extra={"config_hash": _settings.config_hash(), "config_path": config_path or None},
            )
        return _settings


def reset_settings() -> None:
    """Forget cached settings (primarily for testing)."""

    global _settings
    with _settings_lock:
        _settings = None
