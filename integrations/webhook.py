"""
Outbound webhook calls for automation rules.
"""

from typing import Any
import requests
import structlog

from exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


def post_json(url: str, payload: Any, timeout: int = 10) -> dict:
    """
    POST a JSON payload.

    Returns:
        {"status": <http status>, "ok": <2xx>}

    Raises:
        ExternalServiceError: If the request could not be made at all
    """
    try:
        response = requests.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        logger.error("webhook_request_failed", url=url[:60], error=str(e))
        raise ExternalServiceError("webhook", f"Webhook request failed: {str(e)}")

    ok = 200 <= response.status_code < 300
    logger.info("webhook_called", url=url[:60], status=response.status_code, ok=ok)
    return {"status": response.status_code, "ok": ok}
