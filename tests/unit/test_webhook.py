"""Tests for the webhook endpoints and signature validation."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from app.api.middleware.signature import (
    SIGNATURE_HEADER,
    WebhookSignatureError,
    check_signature,
    compute_signature,
    validate_signature,
)
from app.config import settings
from app.main import app

SECRET = "test-app-secret"


def payload(messages=None, contacts=None, statuses=None) -> bytes:
    """Minimal Cloud API webhook body."""
    return json.dumps({
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "waba-1",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": "123"},
                    "contacts": contacts or [],
                    "messages": messages or [],
                    "statuses": statuses or [],
                },
            }],
        }],
    }).encode("utf-8")


TEXT_MESSAGE = {
    "id": "wamid.1",
    "from": "15551234567",
    "timestamp": "1717500000",
    "type": "text",
    "text": {"body": "book a haircut tomorrow"},
}


class TestValidateSignature:
    """Test HMAC validation."""

    def test_valid(self):
        """A correctly signed body validates."""
        body = payload([TEXT_MESSAGE])

        assert validate_signature(compute_signature(body, SECRET), body, SECRET)

    def test_single_bit_flip_rejected(self):
        """Any change to the body breaks the signature."""
        body = payload([TEXT_MESSAGE])
        header = compute_signature(body, SECRET)
        tampered = bytes([body[0] ^ 0x01]) + body[1:]

        assert not validate_signature(header, tampered, SECRET)

    @pytest.mark.parametrize("header", [None, "", "md5=abc", "sha256=deadbeef"])
    def test_malformed_headers(self, header):
        """Missing, wrong-prefix and wrong-digest headers fail."""
        assert not validate_signature(header, b"{}", SECRET)

    def test_empty_secret_never_validates(self):
        """An unset secret rejects even a matching signature."""
        assert not validate_signature(compute_signature(b"{}", ""), b"{}", "")

    def test_missing_secret_rejects(self):
        """Configuration without a secret fails closed."""
        with patch.object(settings, "whatsapp_app_secret", ""):
            with pytest.raises(WebhookSignatureError):
                check_signature("sha256=abc", b"{}")


class TestWebhookPost:
    """Test POST /webhook."""

    @pytest.fixture
    def client(self):
        """Test client without lifespan (no Redis)."""
        return TestClient(app)

    @pytest.fixture
    def message_router(self):
        """Mock router returned by get_message_router."""
        mock = MagicMock()
        mock.handle_message = AsyncMock(return_value=None)
        with patch("app.api.routes.webhook.get_message_router", return_value=mock):
            yield mock

    @pytest.fixture(autouse=True)
    def app_secret(self):
        with patch.object(settings, "whatsapp_app_secret", SECRET), \
                patch.object(settings, "disable_webhook_validation", False):
            yield

    def test_missing_signature_rejected(self, client, message_router):
        """No header means 401 and no processing or Redis access."""
        with patch("app.infra.redis.get_redis") as mock_get_redis:
            response = client.post("/webhook", content=payload([TEXT_MESSAGE]))

        assert response.status_code == 401
        message_router.handle_message.assert_not_called()
        mock_get_redis.assert_not_called()

    def test_bad_signature_rejected(self, client, message_router):
        """A signature for another body is rejected."""
        response = client.post(
            "/webhook",
            content=payload([TEXT_MESSAGE]),
            headers={SIGNATURE_HEADER: compute_signature(b"other", SECRET)},
        )

        assert response.status_code == 401
        message_router.handle_message.assert_not_called()

    def test_valid_message_processed(self, client, message_router):
        """Signed messages are routed with the contact name attached."""
        body = payload(
            [TEXT_MESSAGE],
            contacts=[{"wa_id": "15551234567", "profile": {"name": "Maria"}}],
        )

        response = client.post(
            "/webhook",
            content=body,
            headers={SIGNATURE_HEADER: compute_signature(body, SECRET)},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "processed": 1}
        message = message_router.handle_message.call_args.args[0]
        assert message.sender == "15551234567"
        assert message.text_body == "book a haircut tomorrow"
        assert message.contact_name == "Maria"

    def test_statuses_only(self, client, message_router):
        """Delivery receipts are acknowledged without routing."""
        body = payload(statuses=[{"id": "wamid.9", "status": "delivered", "recipient_id": "15551234567"}])

        response = client.post(
            "/webhook",
            content=body,
            headers={SIGNATURE_HEADER: compute_signature(body, SECRET)},
        )

        assert response.json() == {"status": "ok", "processed": 0}
        message_router.handle_message.assert_not_called()

    def test_malformed_body_acknowledged(self, client, message_router):
        """Authentic but unparseable bodies get 200 so Meta stops retrying."""
        body = b"not json"

        response = client.post(
            "/webhook",
            content=body,
            headers={SIGNATURE_HEADER: compute_signature(body, SECRET)},
        )

        assert response.status_code == 200
        assert response.json()["processed"] == 0

    def test_bypass_in_development(self, client, message_router):
        """The dev flag skips validation outside production."""
        with patch.object(settings, "disable_webhook_validation", True), \
                patch.object(settings, "app_env", "development"):
            response = client.post("/webhook", content=payload([TEXT_MESSAGE]))

        assert response.status_code == 200
        message_router.handle_message.assert_awaited_once()

    def test_bypass_ignored_in_production(self, client, message_router):
        """Production always validates."""
        with patch.object(settings, "disable_webhook_validation", True), \
                patch.object(settings, "app_env", "production"):
            response = client.post("/webhook", content=payload([TEXT_MESSAGE]))

        assert response.status_code == 401


class TestWebhookVerify:
    """Test GET /webhook."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    def test_matching_token_echoes_challenge(self, client):
        """Meta's challenge is echoed back as plain text."""
        with patch.object(settings, "whatsapp_verify_token", "verify-me"):
            response = client.get("/webhook", params={
                "hub.mode": "subscribe",
                "hub.verify_token": "verify-me",
                "hub.challenge": "1158201444",
            })

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_forbidden(self, client):
        """A mismatched token is refused."""
        with patch.object(settings, "whatsapp_verify_token", "verify-me"):
            response = client.get("/webhook", params={
                "hub.mode": "subscribe",
                "hub.verify_token": "guess",
                "hub.challenge": "1158201444",
            })

        assert response.status_code == 403
