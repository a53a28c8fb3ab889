"""Tests for password change and reset flows."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

from qr_service.models import User

from tests.conftest import RESET_EMAIL_PATCH, auth_header, register_and_verify_user

NOTIFY_PATCH = "qr_service.routers.auth.EmailService.send_password_changed_notification"


def _request_reset(client, email="test@example.com") -> str:
    with patch(RESET_EMAIL_PATCH) as mock_send:
        response = client.post("/api/auth/forgot-password", json={"email": email})
    assert response.status_code == 200
    return mock_send.call_args[0][1]


class TestChangePassword:
    """Tests for change-password endpoint."""

    def test_change_password_success(self, auth_client):
        """Change password with correct current password should succeed."""
        test_client, db_session_maker = auth_client
        tokens = register_and_verify_user(
            test_client, db_session_maker, "test@example.com", "OldPassword123"
        )

        with patch(NOTIFY_PATCH):
            response = test_client.put(
                "/api/auth/change-password",
                json={"current_password": "OldPassword123", "new_password": "NewPassword456"},
                headers=auth_header(tokens["access_token"]),
            )

        assert response.status_code == 200
        assert "changed" in response.json()["message"].lower()

        response = test_client.post(
            "/api/auth/signin",
            json={"email": "test@example.com", "password": "NewPassword456"},
        )
        assert response.status_code == 200

    def test_change_password_wrong_current(self, auth_client):
        test_client, db_session_maker = auth_client
        tokens = register_and_verify_user(
            test_client, db_session_maker, "test@example.com", "OldPassword123"
        )

        response = test_client.put(
            "/api/auth/change-password",
            json={"current_password": "WrongPassword1", "new_password": "NewPassword456"},
            headers=auth_header(tokens["access_token"]),
        )

        assert response.status_code == 401

    def test_change_password_requires_session(self, auth_client):
        test_client, _ = auth_client

        response = test_client.put(
            "/api/auth/change-password",
            json={"current_password": "OldPassword123", "new_password": "NewPassword456"},
        )

        assert response.status_code == 401


class TestPasswordReset:
    """Tests for forgot-password and reset-password."""

    def test_forgot_password_unknown_email_same_response(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_verify_user(test_client, db_session_maker, "test@example.com", "OldPassword123")

        with patch(RESET_EMAIL_PATCH) as mock_send:
            known = test_client.post("/api/auth/forgot-password", json={"email": "test@example.com"})
            unknown = test_client.post("/api/auth/forgot-password", json={"email": "x@example.com"})

        assert known.json() == unknown.json()
        mock_send.assert_called_once()

    def test_reset_password_success(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_verify_user(test_client, db_session_maker, "test@example.com", "OldPassword123")
        token = _request_reset(test_client)

        with patch(NOTIFY_PATCH) as mock_notify:
            response = test_client.post(
                "/api/auth/reset-password",
                json={"token": token, "new_password": "NewPassword456"},
            )

        assert response.status_code == 200
        mock_notify.assert_called_once_with("test@example.com")

        test_client.cookies.clear()
        old = test_client.post(
            "/api/auth/signin", json={"email": "test@example.com", "password": "OldPassword123"}
        )
        new = test_client.post(
            "/api/auth/signin", json={"email": "test@example.com", "password": "NewPassword456"}
        )
        assert old.status_code == 401
        assert new.status_code == 200

    def test_reset_token_single_use(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_verify_user(test_client, db_session_maker, "test@example.com", "OldPassword123")
        token = _request_reset(test_client)

        with patch(NOTIFY_PATCH):
            first = test_client.post(
                "/api/auth/reset-password", json={"token": token, "new_password": "NewPassword456"}
            )
            second = test_client.post(
                "/api/auth/reset-password", json={"token": token, "new_password": "Another789"}
            )

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["code"] == "invalid_or_expired_token"

    def test_expired_reset_token_rejected_and_password_unchanged(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_verify_user(test_client, db_session_maker, "test@example.com", "OldPassword123")
        token = _request_reset(test_client)

        db = db_session_maker()
        user = db.query(User).filter(User.email == "test@example.com").one()
        old_hash = user.password_hash
        user.reset_password_expires = datetime.now(UTC) - timedelta(seconds=1)
        db.commit()
        db.close()

        response = test_client.post(
            "/api/auth/reset-password", json={"token": token, "new_password": "NewPassword456"}
        )

        assert response.status_code == 400
        db = db_session_maker()
        assert db.query(User).one().password_hash == old_hash
        db.close()

    def test_reset_link_page_checks_token_without_consuming(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_verify_user(test_client, db_session_maker, "test@example.com", "OldPassword123")
        token = _request_reset(test_client)
        test_client.cookies.clear()

        page = test_client.get(f"/reset-password?token={token}", follow_redirects=False)
        assert page.status_code == 200
        assert "new_password" in page.text

        with patch(NOTIFY_PATCH):
            response = test_client.post(
                "/api/auth/reset-password", json={"token": token, "new_password": "NewPassword456"}
            )
        assert response.status_code == 200

    def test_reset_link_page_invalid_token(self, auth_client):
        test_client, _ = auth_client

        page = test_client.get("/auth/reset-password?token=nope", follow_redirects=False)

        assert page.status_code == 400
