# === NAVMAP v1 ===
# {
#   "module": "tests.test_logging_utils",
#   "purpose": "Pytest coverage for structured JSON logging",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Structured logging tests: JSONL sidecar, extra fields, masking and retention."""

from __future__ import annotations

import json
import logging
import os
import time

from LinkAudit.logging_utils import _cleanup_logs, mask_sensitive_data, setup_logging


def _read_entries(log_dir):
    entries = []
    for path in sorted(log_dir.glob("linkaudit-*.jsonl")):
        for line in path.read_text(encoding="utf-8").splitlines():
            entries.append(json.loads(line))
    return entries


def test_json_sidecar_carries_extra_fields(tmp_path):
    log_dir = tmp_path / "logs"
    logger = setup_logging(level="DEBUG", log_dir=log_dir)
    logging.getLogger("LinkAudit.harvester").info("Listing page fetched", extra={"page": 3, "identifiers": 100})
    for handler in logger.handlers:
        handler.flush()

    entries = _read_entries(log_dir)
    entry = next(item for item in entries if item["message"] == "Listing page fetched")
    assert entry["level"] == "INFO"
    assert entry["logger"] == "LinkAudit.harvester"
    assert entry["page"] == 3
    assert entry["identifiers"] == 100


def test_setup_logging_replaces_its_own_handlers(tmp_path):
    setup_logging(log_dir=tmp_path / "a")
    logger = setup_logging(log_dir=tmp_path / "b", emit_json_logs=False)
    managed = [handler for handler in logger.handlers if getattr(handler, "_linkaudit_managed", False)]
    assert len(managed) == 1


def test_mask_sensitive_data():
    masked = mask_sensitive_data(
        {"token": "abc", "nested": {"Password": "pw"}, "url": "https://a.example/", "blob": "A" * 40}
    )
    assert masked["token"] == "***masked***"
    assert masked["nested"]["Password"] == "***masked***"
    assert masked["url"] == "https://a.example/"
    assert masked["blob"] == "***masked***"


def test_cleanup_compresses_and_expires_old_logs(tmp_path):
    stale = tmp_path / "linkaudit-20200101.jsonl"
    stale.write_text("{}\n", encoding="utf-8")
    expired = tmp_path / "linkaudit-20190101.jsonl.gz"
    expired.write_bytes(b"")
    old = time.time() - 40 * 86400
    os.utime(stale, (old, old))
    os.utime(expired, (old, old))

    actions = _cleanup_logs(tmp_path, retention_days=30)
    assert not stale.exists()
    assert not expired.exists()
    assert len(actions) == 2
