# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for the link audit suite",
#   "sections": [
#     {
#       "id": "isolate-process-state",
#       "name": "_isolate_process_state",
#       "anchor": "function-isolate-process-state",
#       "kind": "function"
#     },
#     {
#       "id": "mock-polite-client",
#       "name": "mock_polite_client",
#       "anchor": "function-mock-polite-client",
#       "kind": "function"
#     },
#     {
#       "id": "finding-layout",
#       "name": "finding_layout",
#       "anchor": "function-finding-layout",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures: every test starts with fresh settings, HTTP client and
throttle singletons, logs go to a temporary directory, and HTTP traffic is
served by ``httpx.MockTransport`` handlers.
"""

from __future__ import annotations

from typing import Callable, Iterator

import httpx
import pytest

from LinkAudit.models import FindingLayout
from LinkAudit.network import PoliteHttpClient, reset_http_client
from LinkAudit.ratelimit import ThrottleManager, reset_throttle
from LinkAudit.settings import LINKCHECKER_FIELDS, reset_settings

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _isolate_process_state(tmp_path, monkeypatch) -> Iterator[None]:
    for name in ("LINKAUDIT_CONFIG",):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LINKAUDIT_LOG_DIR", str(tmp_path / "logs"))
    reset_settings()
    reset_http_client()
    reset_throttle()
    yield
    reset_http_client()
    reset_throttle()
    reset_settings()


@pytest.fixture
def mock_polite_client() -> Iterator[Callable[[Handler], PoliteHttpClient]]:
    """Build unthrottled polite clients backed by a MockTransport handler."""

    created: list[PoliteHttpClient] = []

    def _factory(handler: Handler) -> PoliteHttpClient:
        client = PoliteHttpClient(
            http_client=httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=False),
            throttle=ThrottleManager(None),
        )
        created.append(client)
        return client

    yield _factory
    for client in created:
        client.close()


@pytest.fixture
def finding_layout() -> FindingLayout:
    return FindingLayout(fields=tuple(LINKCHECKER_FIELDS))
