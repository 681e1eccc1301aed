"""Email service - Resend transactional email transport"""
import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
import resend
from sfgs_mailer.core.config import settings

logger = logging.getLogger(__name__)

# Resend test email addresses for safe testing
# See: https://resend.com/docs/dashboard/emails/send-test-emails
RESEND_TEST_DELIVERED = "delivered@resend.dev"

TEST_EMAIL_SUBJECT = "SFGS email configuration test"
TEST_EMAIL_TEXT = "This is a test email from the SFGS dispatch service. If you can read this, sending works."


@dataclass
class SendResult:
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def validate_email_config() -> tuple[bool, str]:
    """
    Validate email service configuration.

    Returns:
        tuple: (is_valid, error_message)
    """
    if not settings.RESEND_API_KEY:
        return False, "RESEND_API_KEY is not set in environment variables"

    if not settings.RESEND_FROM_EMAIL:
        return False, "RESEND_FROM_EMAIL is not set in environment variables"

    return True, ""


def format_sender(address: Optional[str] = None) -> str:
    """'"Name" <address>' using the configured display name"""
    address = address or settings.RESEND_FROM_EMAIL
    if settings.EMAIL_FROM_NAME:
        return f"{settings.EMAIL_FROM_NAME} <{address}>"
    return address


class ResendTransport:
    """Mail transport backed by the Resend API

    `send_email` never raises: every provider failure comes back as a
    SendResult with ok=False so the caller can record it on the entry.
    """

    def __init__(self, sender_email: Optional[str] = None):
        self.sender_email = sender_email

    def send_email(self, to: str, subject: str, html: str, text: str, attachments: Optional[List[Dict[str, Any]]] = None) -> SendResult:
        """
        Send one message.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML email content
            text: Plain text alternative
            attachments: [{"filename": ..., "content": bytes, "content_type": ...}]

        Returns:
            SendResult
        """
        is_valid, error = validate_email_config()
        if not is_valid:
            logger.warning(f"{error}; skipping email to {to}")
            return SendResult(ok=False, error=error)

        params = {
            "from": format_sender(self.sender_email),
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        if attachments:
            params["attachments"] = [
                {
                    "filename": a["filename"],
                    "content": list(a["content"]),
                    "content_type": a.get("content_type"),
                }
                for a in attachments
            ]

        try:
            resend.api_key = settings.RESEND_API_KEY
            response = resend.Emails.send(params)

            # Resend returns dict with 'id' field on success
            email_id = None
            if isinstance(response, dict):
                email_id = response.get('id')
            elif hasattr(response, 'id'):
                email_id = response.id

            if email_id:
                logger.info(f"Email sent successfully to {to} (id: {email_id})")
                return SendResult(ok=True, message_id=email_id)

            logger.error(f"Email send returned invalid response: {response} (type: {type(response)})")
            return SendResult(ok=False, error=f"Invalid response from email provider: {response}")

        except Exception as exc:
            logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
            return SendResult(ok=False, error=str(exc) or exc.__class__.__name__)


def send_test_email(to: str, transport: Optional[ResendTransport] = None) -> SendResult:
    """Send a short configuration test message straight through the transport, bypassing the queue"""
    transport = transport or ResendTransport()
    html = f"<p>{TEST_EMAIL_TEXT}</p>"
    return transport.send_email(to, TEST_EMAIL_SUBJECT, html, TEST_EMAIL_TEXT)
