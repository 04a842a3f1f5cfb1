"""Tests for the access-code gate and the health check."""
from datetime import datetime

import pytest

from vault.config import DEFAULT_ACCESS_CODE, reset_config
from vault.main import SECURITY_HEADERS


def test_validate_accepts_default_code(api_client):
    response = api_client.post("/api/validate", json={"code": DEFAULT_ACCESS_CODE})
    assert response.status_code == 200
    assert response.json() == {"success": True}


@pytest.mark.parametrize("code", ["wrong", "", DEFAULT_ACCESS_CODE.upper()])
def test_validate_rejects_other_codes(api_client, code):
    response = api_client.post("/api/validate", json={"code": code})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid access code."}


def test_validate_missing_code_rejected(api_client):
    response = api_client.post("/api/validate", json={})
    assert response.status_code == 401


def test_validate_uses_environment_override(api_client, monkeypatch):
    monkeypatch.setenv("ACCESS_CODE", "open sesame")
    reset_config()

    assert api_client.post("/api/validate", json={"code": "open sesame"}).status_code == 200
    assert api_client.post("/api/validate", json={"code": DEFAULT_ACCESS_CODE}).status_code == 401


def test_healthcheck(api_client):
    response = api_client.get("/healthcheck")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "alive"
    assert body["uptime"] >= 0
    datetime.fromisoformat(body["timestamp"])


@pytest.mark.parametrize("method,path,body", [
    ("get", "/healthcheck", None),
    ("post", "/api/validate", {"code": "wrong"}),
    ("get", "/chat/history", None),
])
def test_security_headers_on_every_response(api_client, method, path, body):
    kwargs = {"json": body} if body is not None else {}
    response = getattr(api_client, method)(path, **kwargs)

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert response.headers["referrer-policy"] == "no-referrer"
    assert response.headers["cross-origin-opener-policy"] == "same-origin"
    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value


def test_content_security_policy_left_unset(api_client):
    response = api_client.get("/healthcheck")
    assert "content-security-policy" not in response.headers
    assert "cross-origin-embedder-policy" not in response.headers
