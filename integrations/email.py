"""
Email delivery via SendGrid.
"""

import sendgrid
from sendgrid.helpers.mail import Mail
import structlog

from config import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


def send_email(to: str, subject: str, body: str) -> bool:
    """
    Send a plain HTML email.

    Returns:
        True if SendGrid accepted the message, False if SendGrid is not configured

    Raises:
        ExternalServiceError: If the SendGrid call fails
    """
    if not settings.sendgrid_configured:
        logger.warning("sendgrid_not_configured_skipping_send", subject=subject)
        return False

    try:
        sg = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
        email = Mail(
            from_email=settings.email_from_address,
            to_emails=to,
            subject=subject,
            html_content=body,
        )
        response = sg.send(email)

        accepted = response.status_code in (200, 201, 202)
        logger.info("email_sent", subject=subject, status=response.status_code, accepted=accepted)
        return accepted

    except Exception as e:
        logger.error("sendgrid_send_failed", error=str(e))
        raise ExternalServiceError("email", f"Failed to send email: {str(e)}")
