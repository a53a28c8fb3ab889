"""Integration tests for the QR codes API."""

from qr_service.models import QrCode

from tests.conftest import auth_header, register_and_verify_user

PASSWORD = "SecurePass123"


def _create(client, token, target_url="https://example.com", title="Menu") -> dict:
    response = client.post(
        "/api/qr",
        json={
            "targetUrl": target_url,
            "title": title,
            "textContent": "Scan me",
            "qrOptions": {"color": "#000000", "shape": "square", "margin": 2},
        },
        headers=auth_header(token),
    )
    assert response.status_code == 201
    return response.json()


def test_create_and_list(auth_client):
    client, session_maker = auth_client
    token = register_and_verify_user(client, session_maker, "a@example.com", PASSWORD)["access_token"]

    created = _create(client, token)

    assert len(created["shortId"]) == 8
    assert created["scanCount"] == 0
    assert created["qrOptions"] == {"color": "#000000", "shape": "square", "margin": 2}
    assert created["scanUrl"].endswith(
        f"/qr/resolve?shortId={created['shortId']}&targetUrl=https%3A%2F%2Fexample.com%2F"
    )

    listed = client.get("/api/qr", headers=auth_header(token)).json()
    assert [code["shortId"] for code in listed] == [created["shortId"]]


def test_create_rejects_non_url_target(auth_client):
    client, session_maker = auth_client
    token = register_and_verify_user(client, session_maker, "a@example.com", PASSWORD)["access_token"]

    response = client.post("/api/qr", json={"targetUrl": "not a url"}, headers=auth_header(token))

    assert response.status_code == 400
    assert response.json()["errors"][0].startswith("targetUrl:")


def test_other_users_codes_are_invisible(auth_client):
    client, session_maker = auth_client
    alice = register_and_verify_user(client, session_maker, "alice@example.com", PASSWORD)["access_token"]
    bob = register_and_verify_user(client, session_maker, "bob@example.com", PASSWORD)["access_token"]
    client.cookies.clear()
    code = _create(client, alice)

    assert client.get("/api/qr", headers=auth_header(bob)).json() == []
    assert client.get(f"/api/qr/{code['shortId']}", headers=auth_header(bob)).status_code == 404
    assert client.get(f"/api/qr/{code['shortId']}/scans", headers=auth_header(bob)).status_code == 404


def test_only_owner_can_delete(auth_client):
    client, session_maker = auth_client
    alice = register_and_verify_user(client, session_maker, "alice@example.com", PASSWORD)["access_token"]
    bob = register_and_verify_user(client, session_maker, "bob@example.com", PASSWORD)["access_token"]
    client.cookies.clear()
    code = _create(client, alice)

    denied = client.delete(f"/api/qr/{code['shortId']}", headers=auth_header(bob))
    assert denied.status_code == 404

    deleted = client.delete(f"/api/qr/{code['shortId']}", headers=auth_header(alice))
    assert deleted.status_code == 204

    db = session_maker()
    assert db.query(QrCode).count() == 0
    db.close()


def test_scans_and_summary_after_resolving(auth_client):
    client, session_maker = auth_client
    token = register_and_verify_user(client, session_maker, "a@example.com", PASSWORD)["access_token"]
    code = _create(client, token, title="Poster")
    _create(client, token, title="Flyer")

    for _ in range(3):
        client.get(f"/qr/resolve?shortId={code['shortId']}", follow_redirects=False)

    scans = client.get(f"/api/qr/{code['shortId']}/scans", headers=auth_header(token)).json()
    summary = client.get("/api/qr/summary", headers=auth_header(token)).json()

    assert len(scans) == 3
    assert summary == {
        "totalCodes": 2,
        "totalScans": 3,
        "averageScans": 2,
        "mostScanned": "Poster",
    }


def test_editor_fields_use_camel_case(auth_client):
    client, session_maker = auth_client
    token = register_and_verify_user(client, session_maker, "a@example.com", PASSWORD)["access_token"]

    response = client.post(
        "/api/qr",
        json={
            "targetUrl": "https://example.com",
            "textContent": "hi",
            "showTitle": False,
            "showText": True,
            "qrOptions": {"color": "#ff0000"},
        },
        headers=auth_header(token),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["textContent"] == "hi"
    assert body["showTitle"] is False
    assert body["qrOptions"] == {"color": "#ff0000"}
    assert body["scanUrl"].endswith(f"shortId={body['shortId']}&targetUrl=https%3A%2F%2Fexample.com%2F")
    assert "short_id" not in body
    assert "scan_url" not in body


def test_scan_history_uses_camel_case(auth_client):
    client, session_maker = auth_client
    token = register_and_verify_user(client, session_maker, "a@example.com", PASSWORD)["access_token"]
    code = _create(client, token)
    client.get(f"/qr/resolve?shortId={code['shortId']}", follow_redirects=False)

    scans = client.get(f"/api/qr/{code['shortId']}/scans", headers=auth_header(token)).json()

    assert scans[0]["shortId"] == code["shortId"]
    assert "scannedAt" in scans[0]
