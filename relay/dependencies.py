from datetime import timedelta
from typing import Optional

from relay.config import Settings, settings
from relay.services.action_dispatcher import ActionDispatcher
from relay.services.ai_service import AIResponder, get_llm_provider
from relay.services.automation_service import AutomationClient
from relay.services.command_router import CommandRouter
from relay.services.flows import default_registry
from relay.services.message_processor import MessageProcessor
from relay.services.session_store import SessionStore
from relay.services.state_machine import FlowEngine
from relay.services.whatsapp_service import WhatsAppService

_processor: Optional[MessageProcessor] = None


def build_processor(config: Settings) -> MessageProcessor:
    store = SessionStore(ttl=timedelta(minutes=config.session_ttl_minutes))
    registry = default_registry()
    return MessageProcessor(
        store=store,
        router=CommandRouter(store, registry),
        engine=FlowEngine(store, registry),
        dispatcher=ActionDispatcher(
            AutomationClient(config.automation_webhook_url, timeout_seconds=config.automation_timeout_seconds)
        ),
        ai=AIResponder(get_llm_provider(config)),
        sender=WhatsAppService(
            config.whatsapp_token,
            config.whatsapp_phone_id,
            api_version=config.whatsapp_api_version,
        ),
    )


def get_settings() -> Settings:
    return settings


def get_processor() -> MessageProcessor:
    global _processor
    if _processor is None:
        _processor = build_processor(settings)
    return _processor


def get_ai_responder() -> AIResponder:
    return get_processor().ai


def reset_processor() -> None:
    global _processor
    _processor = None
