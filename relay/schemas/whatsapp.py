from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relay.logging_config import get_logger

logger = get_logger("schemas.whatsapp")

WHATSAPP_OBJECT = "whatsapp_business_account"


class TextBody(BaseModel):
    body: Optional[str] = None


class WhatsAppMessage(BaseModel):
    id: Optional[str] = None
    from_user: Optional[str] = Field(default=None, alias="from")  # "from" is reserved in Python
    timestamp: Optional[str] = None
    type: Optional[str] = None
    text: Optional[TextBody] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChangeValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    messages: list[Any] = Field(default_factory=list)  # validated one by one

    model_config = ConfigDict(extra="allow")


class Change(BaseModel):
    field: Optional[str] = None
    value: Optional[ChangeValue] = None


class Entry(BaseModel):
    id: Optional[str] = None
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[Entry] = Field(default_factory=list)


class InboundEvent(BaseModel):
    """Normalized inbound message consumed by the message processor."""

    type: str
    from_user: Optional[str] = Field(default=None, alias="from")
    text: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


def extract_inbound_events(payload: WebhookPayload) -> list[InboundEvent]:
    """Flatten entry -> changes -> messages into events, in delivery order."""
    if payload.object != WHATSAPP_OBJECT:
        return []

    events = []
    for entry in payload.entry:
        for change in entry.changes:
            if change.field != "messages" or change.value is None:
                continue
            for raw in change.value.messages:
                try:
                    message = WhatsAppMessage.model_validate(raw)
                except ValidationError as e:
                    logger.warning(
                        "Skipping malformed message",
                        extra={"context": {"error": str(e)[:300]}},
                    )
                    continue
                events.append(
                    InboundEvent(
                        type=message.type or "unknown",
                        from_user=message.from_user,
                        text=message.text.body if message.text else None,
                    )
                )
    return events
