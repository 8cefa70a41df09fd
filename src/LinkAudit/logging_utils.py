# === NAVMAP v1 ===
# {
#   "module": "LinkAudit.logging_utils",
#   "purpose": "Structured JSON logging with rotation and retention for link audit runs",
#   "sections": [
#     {"id": "mask-sensitive-data", "name": "mask_sensitive_data", "anchor": "function-mask-sensitive-data", "kind": "function"},
#     {"id": "jsonformatter", "name": "JSONFormatter", "anchor": "class-jsonformatter", "kind": "class"},
#     {"id": "cleanup-logs", "name": "_cleanup_logs", "anchor": "function-cleanup-logs", "kind": "function"},
#     {"id": "setup-logging", "name": "setup_logging", "anchor": "function-setup-logging", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Structured logging helpers shared across link audit components."""

from __future__ import annotations

import gzip
import json
import logging
import os
import re
import sys
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

import platformdirs

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging", "default_log_dir"]

_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "token", "secret", "password", "cookie"}
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9+/=_-]{32,}$")

# Attributes present on every LogRecord; anything else arrived through ``extra=``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Return a copy of ``payload`` with secret-looking fields masked."""

    def _mask(value: object, key_hint: Optional[str] = None) -> object:
        if isinstance(value, dict):
            return {key: _mask(item, str(key).lower()) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(_mask(item, key_hint) for item in value)
        if key_hint in _SENSITIVE_KEYS:
            return "***masked***"
        if isinstance(value, str) and _TOKEN_PATTERN.match(value):
            return "***masked***"
        return value

    return {key: _mask(value, key.lower()) for key, value in payload.items()}


def default_log_dir() -> Path:
    """Return the log directory from ``LINKAUDIT_LOG_DIR`` or the platform log dir."""

    env_value = os.environ.get("LINKAUDIT_LOG_DIR", "").strip()
    if env_value:
        return Path(env_value)
    return Path(platformdirs.user_log_dir("linkaudit"))


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries for link audit runs."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including any ``extra`` fields."""

        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Compress stale logs and purge archives older than ``retention_days``."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
            actions.append(f"Compressed {file.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    *,
    level: str = "INFO",
    retention_days: int = 30,
    max_log_size_mb: int = 50,
    log_dir: Optional[Path] = None,
    emit_json_logs: bool = True,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``LinkAudit`` logger with a console handler and a JSONL sidecar."""

    logger = logging.getLogger("LinkAudit")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_linkaudit_managed", False):
            logger.removeHandler(handler)
            stream = getattr(handler, "stream", None)
            if stream in (sys.stdout, sys.stderr):
                continue
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._linkaudit_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if emit_json_logs:
        resolved_dir = log_dir or default_log_dir()
        resolved_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_logs(resolved_dir, retention_days)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            resolved_dir / f"linkaudit-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._linkaudit_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
