"""SendGrid email delivery channel."""

import html
import logging

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from notifier.config import get_from_email, get_from_name, get_sendgrid_api_key

logger = logging.getLogger(__name__)

# Built lazily, rebuilt if SENDGRID_API_KEY changes
_client: SendGridAPIClient | None = None
_client_key: str | None = None


def text_to_html(text: str) -> str:
    """
    Wrap plain text in a paragraph for the HTML part.

    The text is escaped and newlines become <br> so user content renders
    literally.
    """
    escaped = html.escape(text).replace("\n", "<br>\n")
    return f"<p>{escaped}</p>"


def _get_sendgrid_client() -> SendGridAPIClient | None:
    """Get or create the SendGrid client for the current API key."""
    global _client, _client_key
    api_key = get_sendgrid_api_key()
    if not api_key:
        return None
    if _client is None or api_key != _client_key:
        _client = SendGridAPIClient(api_key)
        _client_key = api_key
    return _client


def send_email(
    to_email: str,
    subject: str,
    body: str,
    html_body: str | None = None,
) -> bool:
    """
    Send an email via SendGrid.

    Both plain text and HTML versions are sent; the HTML part is derived
    from the body when not given.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        body: Plain text body
        html_body: Optional HTML body

    Returns:
        True if sent successfully, False otherwise
    """
    client = _get_sendgrid_client()
    if not client:
        logger.warning("SendGrid not configured (SENDGRID_API_KEY not set)")
        return False

    from_email = get_from_email()
    from_name = get_from_name()
    try:
        message = Mail(
            from_email=(from_email, from_name) if from_name else from_email,
            to_emails=to_email,
            subject=subject,
            plain_text_content=body,
            html_content=html_body or text_to_html(body),
        )

        response = client.send(message)
        return response.status_code in (200, 201, 202)

    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False
