"""Tests for hardening headers."""

import pytest

from qr_service.middleware.security_headers import SECURITY_HEADERS


@pytest.mark.parametrize(
    "path", ["/", "/health", "/auth/signin", "/api/qr", "/dashboard", "/qr/resolve?shortId=x"]
)
def test_headers_on_every_response(auth_client, path):
    client, _ = auth_client

    response = client.get(path, follow_redirects=False)

    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value


def test_header_values(auth_client):
    client, _ = auth_client

    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "default-src 'self' https:" in response.headers["Content-Security-Policy"]


def test_headers_on_rate_limited_response(auth_client, monkeypatch):
    from limits.storage import MemoryStorage

    from qr_service.rate_limiter import ClientRateLimiter, client_limiter

    client, _ = auth_client
    monkeypatch.setattr(client_limiter, "item", ClientRateLimiter("1/minute", MemoryStorage()).item)
    client.get("/auth/signin")

    response = client.get("/auth/signin")

    assert response.status_code == 429
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
