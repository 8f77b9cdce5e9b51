from relay.schemas.dev import DevAIRequest, DevWebhookRequest
from relay.schemas.whatsapp import InboundEvent, WebhookPayload, extract_inbound_events

__all__ = ["InboundEvent", "DevAIRequest", "DevWebhookRequest", "WebhookPayload", "extract_inbound_events"]
