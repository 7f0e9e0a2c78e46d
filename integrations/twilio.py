"""
Twilio REST integration for outbound SMS.

Talks to the Messages endpoint directly with requests.
"""

from typing import Optional
import requests
import structlog

from config import settings
from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioError(ExternalServiceError):
    """Twilio API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="twilio", message=message, details=details)


def mask_phone(phone: str) -> str:
    """Keep the last four digits for logs."""
    if not phone or len(phone) <= 4:
        return "****"
    return "*" * (len(phone) - 4) + phone[-4:]


def send_message(to: str, body: str, from_number: Optional[str] = None) -> dict:
    """
    Send one SMS through Twilio.

    Args:
        to: Recipient number in E.164 format
        body: Message text
        from_number: Sender; defaults to TWILIO_FROM_NUMBER

    Returns:
        Twilio message resource (contains "sid" and "status")

    Raises:
        TwilioError: If Twilio is not configured or rejects the message
    """
    if not settings.twilio_configured:
        logger.warning("twilio_not_configured")
        raise TwilioError("Twilio credentials are not configured")

    sender = from_number or settings.twilio_from_number
    if not sender:
        raise TwilioError("No sender number configured")

    url = f"{TWILIO_API_BASE}/Accounts/{settings.twilio_account_sid}/Messages.json"

    try:
        logger.info("sending_twilio_message", to=mask_phone(to))

        response = requests.post(
            url,
            data={"To": to, "From": sender, "Body": body},
            auth=(settings.twilio_account_sid, settings.twilio_auth_token),
            timeout=10,
        )

        result = response.json()

        if response.status_code >= 400:
            error_msg = result.get("message", "Unknown error")
            logger.error(
                "twilio_api_error",
                status=response.status_code,
                code=result.get("code"),
                error=error_msg
            )
            raise TwilioError(
                f"Twilio API error: {error_msg}",
                details={"status": response.status_code, "code": result.get("code")}
            )

        logger.info("twilio_message_sent", sid=result.get("sid"))
        return result

    except requests.exceptions.RequestException as e:
        logger.error("twilio_request_failed", error=str(e))
        raise TwilioError(f"Failed to send SMS: {str(e)}")
