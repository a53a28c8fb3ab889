"""Email service using SendGrid."""

import logging
from html import escape

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from qr_service.config import settings
from qr_service.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails via SendGrid.

    Every send either succeeds or raises EmailDeliveryError; callers decide
    whether the failure is fatal.
    """

    @staticmethod
    def _send_email(to_email: str, subject: str, html_content: str) -> None:
        """Send email via SendGrid, bounded by the configured timeout."""
        if not settings.sendgrid_api_key:
            logger.warning("SendGrid API key not configured, cannot send email")
            raise EmailDeliveryError("Email delivery is not configured")

        message = Mail(
            from_email=(settings.email_from_address, settings.email_from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )

        sg = SendGridAPIClient(settings.sendgrid_api_key)
        sg.client.timeout = settings.email_timeout_seconds
        try:
            response = sg.send(message)
        except TimeoutError as e:
            logger.error(f"Timed out sending email to {to_email}")
            raise EmailDeliveryError(f"Timed out sending email to {to_email}") from e
        except Exception as e:
            # SendGrid raises HTTPError subclasses for rejected requests and
            # URLError when the API is unreachable
            logger.exception(f"Failed to send email to {to_email}")
            raise EmailDeliveryError(f"Failed to send email to {to_email}") from e

        if response.status_code not in (200, 201, 202):
            logger.error(f"Email to {to_email} rejected, status: {response.status_code}")
            raise EmailDeliveryError(f"Email provider rejected message ({response.status_code})")

        logger.info(f"Email sent to {to_email}, status: {response.status_code}")

    @classmethod
    def send_verification_email(cls, email: str, token: str) -> None:
        """Send email verification link."""
        verify_url = f"{settings.public_base_url}/verifyemail?token={token}"
        hours = settings.verification_token_expire_hours
        html = f"""
        <h2>Verify Your Email</h2>
        <p>Thank you for registering with {settings.app_name}.
        Click the link below to verify your email address:</p>
        <p><a href="{verify_url}">{verify_url}</a></p>
        <p>This link expires in {hours} hours.</p>
        <p>If you didn't create an account, you can ignore this email.</p>
        """
        cls._send_email(email, f"Verify your email - {settings.app_name}", html)

    @classmethod
    def send_password_reset_email(cls, email: str, token: str) -> None:
        """Send password reset link."""
        reset_url = f"{settings.public_base_url}/reset-password?token={token}"
        hours = settings.reset_token_expire_hours
        html = f"""
        <h2>Reset Your Password</h2>
        <p>We received a request to reset your password. Click the link below to choose a new one:</p>
        <p><a href="{reset_url}">{reset_url}</a></p>
        <p>This link expires in {hours} hour{"s" if hours != 1 else ""}.</p>
        <p>If you didn't request this, you can ignore this email. Your password will remain unchanged.</p>
        """
        cls._send_email(email, f"Reset your password - {settings.app_name}", html)

    @classmethod
    def send_password_changed_notification(cls, email: str) -> None:
        """Notify user their password was changed."""
        html = """
        <h2>Password Changed</h2>
        <p>Your password was successfully changed.</p>
        <p>If you didn't make this change, please contact support immediately.</p>
        """
        cls._send_email(email, f"Your password was changed - {settings.app_name}", html)

    @classmethod
    def send_login_notification(
        cls,
        email: str,
        name: str,
        login_time: str,
        browser: str | None = None,
        os: str | None = None,
        location: str | None = None,
    ) -> None:
        """Tell the user about a new sign-in and where it came from."""
        html = f"""
        <h2>New Login Alert</h2>
        <p>Hello {escape(name)},</p>
        <p>We detected a new login to your account with the following details:</p>
        <ul>
          <li>Time: {escape(login_time)}</li>
          <li>Browser: {escape(browser or "Unknown")}</li>
          <li>Operating System: {escape(os or "Unknown")}</li>
          <li>Location: {escape(location or "Unknown")}</li>
        </ul>
        <p>If this wasn't you, please secure your account immediately.</p>
        """
        cls._send_email(email, "New Login Detected", html)
