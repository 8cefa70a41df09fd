# === NAVMAP v1 ===
# {
#   "module": "LinkAudit",
#   "purpose": "Package initialization for LinkAudit",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the LinkAudit link corpus resolution and correlation engine.

This facade exposes the batch passes that harvest candidate URLs, resolve
them through redirect indirections, hand them to a link-validation oracle and
correlate the oracle's findings back to the content records that contain them.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict, Tuple

__version__ = "0.1.0"

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "AuditResult": ("LinkAudit.pipeline", "AuditResult"),
    "audit_tabular_export": ("LinkAudit.pipeline", "audit_tabular_export"),
    "audit_repository": ("LinkAudit.pipeline", "audit_repository"),
    "audit_guides": ("LinkAudit.pipeline", "audit_guides"),
    "audit_site": ("LinkAudit.pipeline", "audit_site"),
    "configure_logging": ("LinkAudit.pipeline", "configure_logging"),
    "LinkAuditSettings": ("LinkAudit.settings", "LinkAuditSettings"),
    "load_config": ("LinkAudit.settings", "load_config"),
    "get_settings": ("LinkAudit.settings", "get_settings"),
    "LinkAuditError": ("LinkAudit.errors", "LinkAuditError"),
    "RunStatistics": ("LinkAudit.models", "RunStatistics"),
    "ReportTable": ("LinkAudit.models", "ReportTable"),
    "LinkValidationOracle": ("LinkAudit.oracle", "LinkValidationOracle"),
    "LinkCheckerOracle": ("LinkAudit.oracle", "LinkCheckerOracle"),
}

__all__ = ["__version__", *_EXPORT_MAP]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .errors import LinkAuditError
    from .models import ReportTable, RunStatistics
    from .oracle import LinkCheckerOracle, LinkValidationOracle
    from .pipeline import (
        AuditResult,
        audit_guides,
        audit_repository,
        audit_site,
        audit_tabular_export,
        configure_logging,
    )
    from .settings import LinkAuditSettings, get_settings, load_config


def __getattr__(name: str) -> Any:
    """Lazily import exports so importing a submodule stays cheap."""

    target = _EXPORT_MAP.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module_name, attribute = target
    value = getattr(import_module(module_name), attribute)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
