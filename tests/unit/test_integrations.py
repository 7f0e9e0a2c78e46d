"""
Unit tests for outbound integrations. HTTP is patched at requests.post.

Run: pytest tests/unit/test_integrations.py -v
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from integrations import email, twilio, webhook
from integrations.twilio import TwilioError, mask_phone
from exceptions import ExternalServiceError


def http_response(status_code, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {}
    return response


@pytest.fixture
def twilio_settings():
    with patch("integrations.twilio.settings") as settings:
        settings.twilio_configured = True
        settings.twilio_account_sid = "AC123"
        settings.twilio_auth_token = "secret"
        settings.twilio_from_number = "+15550009999"
        yield settings


class TestTwilio:

    def test_mask_phone(self):
        assert mask_phone("+15550001111") == "********1111"
        assert mask_phone("12") == "****"

    def test_not_configured(self, twilio_settings):
        twilio_settings.twilio_configured = False

        with pytest.raises(TwilioError):
            twilio.send_message("+15550001111", "hi")

    def test_send(self, twilio_settings):
        with patch("integrations.twilio.requests.post", return_value=http_response(201, {"sid": "SM1"})) as post:
            result = twilio.send_message("+15550001111", "hi")

        assert result["sid"] == "SM1"
        url = post.call_args.args[0]
        assert url.endswith("/Accounts/AC123/Messages.json")
        assert post.call_args.kwargs["data"] == {"To": "+15550001111", "From": "+15550009999", "Body": "hi"}
        assert post.call_args.kwargs["auth"] == ("AC123", "secret")

    def test_api_error(self, twilio_settings):
        response = http_response(400, {"message": "Invalid 'To' number", "code": 21211})

        with patch("integrations.twilio.requests.post", return_value=response):
            with pytest.raises(TwilioError) as exc:
                twilio.send_message("+1", "hi")

        assert exc.value.status_code == 503
        assert exc.value.details["code"] == 21211

    def test_network_error(self, twilio_settings):
        with patch("integrations.twilio.requests.post", side_effect=requests.exceptions.ConnectionError("dns")):
            with pytest.raises(TwilioError):
                twilio.send_message("+15550001111", "hi")


class TestWebhook:

    def test_ok_follows_status(self):
        with patch("integrations.webhook.requests.post", return_value=http_response(204)) as post:
            result = webhook.post_json("https://hooks.test/a", {"id": 1})

        assert result == {"status": 204, "ok": True}
        assert post.call_args.kwargs["json"] == {"id": 1}

    def test_server_error_is_not_raised(self):
        with patch("integrations.webhook.requests.post", return_value=http_response(502)):
            assert webhook.post_json("https://hooks.test/a", {})["ok"] is False

    def test_unreachable(self):
        with patch("integrations.webhook.requests.post", side_effect=requests.exceptions.Timeout("slow")):
            with pytest.raises(ExternalServiceError):
                webhook.post_json("https://hooks.test/a", {})


class TestEmail:

    def test_skipped_without_api_key(self):
        with patch("integrations.email.settings") as settings:
            settings.sendgrid_configured = False

            assert email.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    def test_sent(self):
        client = MagicMock()
        client.send.return_value = MagicMock(status_code=202)

        with patch("integrations.email.settings") as settings, \
             patch("integrations.email.sendgrid.SendGridAPIClient", return_value=client):
            settings.sendgrid_configured = True
            settings.sendgrid_api_key = "SG.key"
            settings.email_from_address = "ops@example.com"

            assert email.send_email("a@example.com", "Hi", "<p>Hi</p>") is True

        client.send.assert_called_once()
