"""Tests for PDF and Excel exports."""

import io
import threading
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

from qr_service.config import settings
from qr_service.errors import DocumentGenerationError, NotFoundError, ValidationError
from qr_service.models import User
from qr_service.services import export_service
from qr_service.services.auth_service import AuthService
from qr_service.services.export_service import (
    EXCEL_FILENAME,
    PDF_FILENAME,
    ExportFormat,
    ExportService,
    qr_png_data_uri,
)
from qr_service.services.repositories import QrCodeRepository

from tests.conftest import register_and_verify_user

HTML_TO_PDF = "qr_service.services.export_service._html_to_pdf"


def _user(db, email: str) -> User:
    user = User(email=email, password_hash=AuthService.hash_password("Password123"), is_verified=True)
    db.add(user)
    db.commit()
    return user


def _code(db, owner: User, title: str, target_url: str, scans: int = 0):
    codes = QrCodeRepository(db)
    qr_code = codes.create(owner_id=owner.id, target_url=target_url, title=title)
    for _ in range(scans):
        now = datetime.now(UTC)
        codes.record_scan(qr_code.id, now)
        codes.add_scan_event(qr_code, now, device="desktop", browser="Firefox", os="Linux")
    db.commit()
    db.refresh(qr_code)
    return qr_code


@pytest.fixture
def owners(db):
    alice = _user(db, "alice@example.com")
    bob = _user(db, "bob@example.com")
    _code(db, alice, "Alice menu", "https://alice.example.com", scans=2)
    _code(db, alice, "Alice poster", "https://alice.example.com/poster")
    _code(db, bob, "Bob secret", "https://bob.example.com", scans=1)
    return alice, bob


def test_excel_export_contains_only_owners_codes(db, owners):
    alice, _ = owners

    document = ExportService(db).export(alice.id, ExportFormat.EXCEL)

    assert document.filename == EXCEL_FILENAME
    wb = load_workbook(io.BytesIO(document.content))
    assert wb.sheetnames == ["QR Codes", "Scans"]

    codes = list(wb["QR Codes"].iter_rows(values_only=True))
    assert codes[0][:4] == ("QR Code ID", "Title", "Created Date", "Content")
    assert sorted(row[1] for row in codes[1:]) == ["Alice menu", "Alice poster"]
    assert wb["QR Codes"]["A1"].font.bold

    scans = list(wb["Scans"].iter_rows(values_only=True))
    assert len(scans) == 3
    assert all("bob" not in str(cell) for row in codes + scans for cell in row)


def test_pdf_export_renders_report_html(db, owners):
    alice, _ = owners

    with patch(HTML_TO_PDF, return_value=b"%PDF-1.7 fake") as mock_pdf:
        document = ExportService(db).export(alice.id, ExportFormat.PDF)

    assert document.content == b"%PDF-1.7 fake"
    assert document.filename == PDF_FILENAME
    assert document.media_type == "application/pdf"

    html = mock_pdf.call_args[0][0]
    assert "alice@example.com" in html
    assert "Alice menu" in html
    assert "Bob secret" not in html
    assert "data:image/png;base64," in html
    assert "Total scans" in html


def test_export_without_records_is_not_found(db):
    carol = _user(db, "carol@example.com")

    with pytest.raises(NotFoundError):
        ExportService(db).export(carol.id, ExportFormat.EXCEL)


def test_export_unknown_user_is_not_found(db):
    with pytest.raises(NotFoundError):
        ExportService(db).export("no-such-user", ExportFormat.PDF)


def test_renderer_failure_is_typed(db, owners):
    alice, _ = owners

    with patch(HTML_TO_PDF, side_effect=RuntimeError("cairo missing")):
        with pytest.raises(DocumentGenerationError):
            ExportService(db).export(alice.id, ExportFormat.PDF)


def test_empty_output_is_rejected(db, owners):
    alice, _ = owners

    with patch(HTML_TO_PDF, return_value=b""):
        with pytest.raises(DocumentGenerationError):
            ExportService(db).export(alice.id, ExportFormat.PDF)


def _hung_renderer(monkeypatch, release: threading.Event) -> None:
    monkeypatch.setattr(settings, "export_timeout_seconds", 0.05)
    monkeypatch.setattr(export_service, "render_workbook", lambda rows: release.wait(5) and b"late")


def test_timeout_is_typed(db, owners, monkeypatch):
    alice, _ = owners
    release = threading.Event()
    _hung_renderer(monkeypatch, release)

    try:
        with pytest.raises(DocumentGenerationError, match="timed out"):
            ExportService(db).export(alice.id, ExportFormat.EXCEL)
    finally:
        release.set()


def test_hung_renders_fail_fast_once_slots_are_taken(db, owners, monkeypatch):
    alice, _ = owners
    slots = threading.BoundedSemaphore(1)
    monkeypatch.setattr(export_service, "_render_slots", slots)
    release = threading.Event()
    _hung_renderer(monkeypatch, release)
    service = ExportService(db)

    try:
        with pytest.raises(DocumentGenerationError, match="timed out"):
            service.export(alice.id, ExportFormat.EXCEL)
        with pytest.raises(DocumentGenerationError, match="in progress"):
            service.export(alice.id, ExportFormat.EXCEL)
    finally:
        release.set()

    # The slot comes back once the hung render returns
    assert slots.acquire(timeout=5)


def test_parse_format():
    assert ExportFormat.parse("PDF") is ExportFormat.PDF
    assert ExportFormat.parse("excel") is ExportFormat.EXCEL
    with pytest.raises(ValidationError):
        ExportFormat.parse("csv")


def test_qr_png_data_uri():
    assert qr_png_data_uri("https://example.com").startswith("data:image/png;base64,iVBOR")


class TestExportEndpoint:
    def test_export_download_ignores_user_id_param(self, auth_client):
        client, session_maker = auth_client
        register_and_verify_user(client, session_maker, "alice@example.com", "Password123")
        register_and_verify_user(client, session_maker, "bob@example.com", "Password123")

        db = session_maker()
        alice = db.query(User).filter(User.email == "alice@example.com").one()
        bob = db.query(User).filter(User.email == "bob@example.com").one()
        _code(db, alice, "Alice menu", "https://alice.example.com")
        _code(db, bob, "Bob secret", "https://bob.example.com")
        alice_id = alice.id
        db.close()

        # Signed in as bob (last sign-in); a crafted userId must not matter
        response = client.get(f"/export?format=excel&userId={alice_id}")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == f'attachment; filename="{EXCEL_FILENAME}"'
        wb = load_workbook(io.BytesIO(response.content))
        titles = [row[1] for row in wb["QR Codes"].iter_rows(min_row=2, values_only=True)]
        assert titles == ["Bob secret"]

    def test_export_invalid_format(self, auth_client):
        client, session_maker = auth_client
        register_and_verify_user(client, session_maker, "alice@example.com", "Password123")

        response = client.get("/export?format=csv")

        assert response.status_code == 400

    def test_export_with_no_codes_is_404(self, auth_client):
        client, session_maker = auth_client
        register_and_verify_user(client, session_maker, "alice@example.com", "Password123")

        response = client.get("/export?format=excel")

        assert response.status_code == 404

    def test_export_requires_session(self, auth_client):
        client, _ = auth_client

        response = client.get("/export?format=pdf", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/auth/signin?callbackUrl=/export%3Fformat%3Dpdf"

    def test_export_failure_is_generic_500(self, auth_client):
        client, session_maker = auth_client
        register_and_verify_user(client, session_maker, "alice@example.com", "Password123")
        db = session_maker()
        alice = db.query(User).one()
        _code(db, alice, "Alice menu", "https://alice.example.com")
        db.close()

        with patch(HTML_TO_PDF, side_effect=RuntimeError("cairo missing")):
            response = client.get("/export?format=pdf")

        assert response.status_code == 500
        assert response.json()["code"] == "document_generation_failed"
        assert "cairo" not in response.json()["detail"]
