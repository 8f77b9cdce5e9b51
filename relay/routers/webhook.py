import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from relay.config import Settings
from relay.dependencies import get_processor, get_settings
from relay.logging_config import get_logger
from relay.schemas.whatsapp import WebhookPayload, extract_inbound_events
from relay.services.message_processor import MessageProcessor

logger = get_logger("webhook")

router = APIRouter()

EVENT_RECEIVED = "EVENT_RECEIVED"


async def parse_webhook_body(request: Request) -> Optional[dict]:
    """
    Parse the webhook body with tolerant decoding.
    Returns dict or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding")

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            return json.loads(raw.decode(enc, errors="replace"))
        except Exception:
            continue

    logger.error("Failed to decode webhook payload after fallbacks")
    return None


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    config: Settings = Depends(get_settings),
):
    """Subscription handshake from the WhatsApp Business platform."""
    if mode == "subscribe" and token == config.webhook_verify_token:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "", status_code=200)
    logger.warning("Webhook verification rejected", extra={"context": {"mode": mode}})
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/webhook")
async def handle_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: MessageProcessor = Depends(get_processor),
):
    """
    Acknowledge immediately, then process text messages in the background.
    Anything unusable is logged and acknowledged so the platform does not retry.
    """
    body = await parse_webhook_body(request)
    if body is None:
        return PlainTextResponse(EVENT_RECEIVED)

    logger.debug(f"Webhook received: {body}")

    try:
        payload = WebhookPayload(**body) if isinstance(body, dict) else None
    except ValidationError as e:
        logger.warning(f"Webhook payload rejected: {e}")
        payload = None

    if payload is None:
        return PlainTextResponse(EVENT_RECEIVED)

    events = extract_inbound_events(payload)
    if events:
        logger.info("Webhook events queued", extra={"context": {"count": len(events)}})
        background_tasks.add_task(processor.process_batch, events)

    return PlainTextResponse(EVENT_RECEIVED)
