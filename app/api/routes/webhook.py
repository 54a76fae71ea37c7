"""
WhatsApp Webhook Endpoints.

GET  /webhook - one-time verification challenge from Meta
POST /webhook - message and status events (signature checked first)

Once a POST is authenticated the answer is always 200: Meta retries
anything else, and a malformed or failing event must not be redelivered
forever.
"""

import json
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError

from app.api.middleware.signature import verify_webhook_signature
from app.config import settings
from app.core.booking.router import get_message_router
from app.infra.whatsapp import mask_phone
from app.models.webhook import InboundMessage, MessageStatus, WebhookPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])


@router.get(
    "",
    response_class=PlainTextResponse,
    summary="Webhook verification",
    responses={403: {"description": "Verify token mismatch"}},
)
async def verify_webhook(
    hub_mode: str = Query(default="", alias="hub.mode"),
    hub_verify_token: str = Query(default="", alias="hub.verify_token"),
    hub_challenge: str = Query(default="", alias="hub.challenge"),
) -> Response:
    """
    Echo `hub.challenge` when the verify token matches configuration.
    """
    if (
        hub_mode == "subscribe"
        and settings.whatsapp_verify_token
        and hub_verify_token == settings.whatsapp_verify_token
    ):
        logger.info("Webhook verified")
        return PlainTextResponse(content=hub_challenge, status_code=status.HTTP_200_OK)

    logger.warning(f"Webhook verification failed (mode={hub_mode!r})")
    return PlainTextResponse(content="Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post(
    "",
    summary="Receive WhatsApp events",
    responses={401: {"description": "Missing or invalid signature"}},
)
async def receive_webhook(raw_body: bytes = Depends(verify_webhook_signature)) -> dict:
    """
    Process inbound messages; statuses are logged only.
    """
    try:
        payload = WebhookPayload.model_validate(json.loads(raw_body))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Malformed webhook body dropped: {str(e)[:200]}")
        return {"status": "ok", "processed": 0}

    message_router = get_message_router()
    processed = 0

    for entry in payload.entry:
        for change in entry.changes:
            if change.field != "messages":
                logger.debug(f"Ignoring webhook change field: {change.field}")
                continue

            value = change.value
            names = {
                c.wa_id: c.profile.name
                for c in value.contacts
                if c.profile and c.profile.name
            }

            for raw_status in value.statuses:
                _log_status(raw_status)

            for raw_message in value.messages:
                try:
                    message = InboundMessage.model_validate(raw_message)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed message: {str(e)[:200]}")
                    continue

                message.contact_name = names.get(message.sender)
                await message_router.handle_message(message)
                processed += 1

    return {"status": "ok", "processed": processed}


def _log_status(raw_status: dict) -> None:
    try:
        delivery = MessageStatus.model_validate(raw_status)
    except ValidationError:
        logger.debug("Skipping malformed status event")
        return

    if delivery.status == "failed":
        logger.warning(
            f"Delivery failed for {mask_phone(delivery.recipient_id)} "
            f"(message {delivery.id}): {delivery.errors}"
        )
    else:
        logger.debug(f"Message {delivery.id} {delivery.status}")
