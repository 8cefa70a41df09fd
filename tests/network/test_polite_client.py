# === NAVMAP v1 ===
# {
#   "module": "tests.network.test_polite_client",
#   "purpose": "Pytest coverage for the throttled HTTP facade and client factory",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Polite client and HTTPX factory tests."""

from __future__ import annotations

from typing import List

import httpx
import pytest

from LinkAudit.network import (
    PoliteHttpClient,
    create_http_client,
    get_http_client,
    get_polite_http_client,
    reset_http_client,
)
from LinkAudit.settings import HttpSettings, reset_settings


class RecordingThrottle:
    enabled = True

    def __init__(self) -> None:
        self.keys: List[str] = []

    def acquire(self, key: str = "default", weight: int = 1) -> bool:
        self.keys.append(key)
        return True


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=False)


def test_every_request_acquires_the_throttle():
    throttle = RecordingThrottle()
    client = PoliteHttpClient(_client(lambda request: httpx.Response(200)), throttle=throttle, key="listing")
    client.get("https://a.example/")
    client.head("https://a.example/", key="resolver")
    assert throttle.keys == ["listing", "resolver"]
    client.close()


def test_redirects_are_returned_not_followed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start":
            return httpx.Response(301, headers={"Location": "/end"})
        return httpx.Response(200)

    with PoliteHttpClient(_client(handler), throttle=RecordingThrottle()) as client:
        response = client.get("https://a.example/start")
    assert response.status_code == 301
    assert response.headers["location"] == "/end"


def test_transport_errors_propagate():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = PoliteHttpClient(_client(handler), throttle=RecordingThrottle())
    with pytest.raises(httpx.ReadTimeout):
        client.get("https://a.example/")


def test_closed_injected_client_is_not_reopened():
    client = PoliteHttpClient(_client(lambda request: httpx.Response(200)), throttle=RecordingThrottle())
    client.close()
    with pytest.raises(RuntimeError):
        client.get("https://a.example/")


def test_factory_sets_identity_and_disables_redirects():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    settings = HttpSettings(user_agent="LinkAudit-test/1.0")
    client = create_http_client(settings, transport=httpx.MockTransport(handler))
    try:
        client.get("https://a.example/")
        assert client.follow_redirects is False
        assert seen[0].headers["User-Agent"] == "LinkAudit-test/1.0"
    finally:
        client.close()


def test_shared_clients_are_singletons():
    assert get_http_client() is get_http_client()
    polite = get_polite_http_client()
    assert get_polite_http_client() is polite
    reset_http_client()
    assert get_http_client() is not None


def test_shared_client_is_replaced_after_close():
    first = get_http_client()
    first.close()
    second = get_http_client()
    assert second is not first
    assert not second.is_closed


def test_shared_client_picks_up_settings_after_reset(monkeypatch):
    first = get_http_client()
    monkeypatch.setenv("LINKAUDIT_HTTP__USER_AGENT", "audit-bot/2.0")
    reset_settings()
    assert get_http_client() is first
    reset_http_client()
    assert get_http_client().headers["User-Agent"] == "audit-bot/2.0"
