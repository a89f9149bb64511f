from __future__ import annotations

from fastapi.testclient import TestClient

from comanda.apps.api import deps
from comanda.apps.api.main import app
from comanda.core.cache.ttl import AsyncTTLCache


class _FakeUpstream:
    def __init__(self, reachable: bool) -> None:
        self.reachable = reachable
        self.pings = 0

    async def ping(self, timeout_s: float = 1.0) -> bool:
        self.pings += 1
        return self.reachable

    async def aclose(self) -> None:
        return None


def _install(monkeypatch, reachable: bool) -> _FakeUpstream:
    deps.reset_dependencies()
    fake = _FakeUpstream(reachable)
    monkeypatch.setattr("comanda.apps.api.main.get_upstream_client", lambda: fake)
    monkeypatch.setattr("comanda.apps.api.main._HEALTH_PING_CACHE", AsyncTTLCache(default_ttl_s=10))
    return fake


def test_healthz_always_unauthenticated(monkeypatch) -> None:
    monkeypatch.setenv("COMANDA_AUTH_MODE", "token")
    monkeypatch.delenv("COMANDA_AUTH_TOKENS", raising=False)
    _install(monkeypatch, reachable=True)

    with TestClient(app) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Correlation-ID"]


def test_healthz_full_defaults(tmp_path, monkeypatch) -> None:
    fake = _install(monkeypatch, reachable=True)

    with TestClient(app) as client:
        first = client.get("/healthz/full")
        second = client.get("/healthz/full")

    assert first.status_code == 200
    payload = first.json()
    assert payload["ok"] is True
    assert payload["python"]["version"]
    assert payload["state_dir"] == {"path": str(tmp_path / "state"), "writable": True}
    assert payload["auth"] == {"mode": "off", "ready": True}
    assert payload["data"] == {"backend": "memory", "ready": True}
    assert payload["upstream"] == {"reachable": True}
    assert payload["scanner"]["sentinel"] == "__TOOL_CALL__"
    assert len(payload["tools"]) == 5
    assert second.json()["upstream"]["reachable"] is True
    assert fake.pings == 1


def test_healthz_full_reports_missing_configuration(monkeypatch) -> None:
    monkeypatch.setenv("COMANDA_AUTH_MODE", "token")
    monkeypatch.delenv("COMANDA_AUTH_TOKENS", raising=False)
    _install(monkeypatch, reachable=False)

    with TestClient(app) as client:
        payload = client.get("/healthz/full").json()

    assert payload["ok"] is False
    assert payload["auth"] == {"mode": "token", "ready": False}
    assert payload["upstream"]["reachable"] is False
