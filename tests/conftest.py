from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from relay.services.action_dispatcher import ActionDispatcher
from relay.services.ai_service import AIResponse
from relay.services.command_router import CommandRouter
from relay.services.flows import default_registry
from relay.services.message_processor import MessageProcessor
from relay.services.result import Result, SendResult
from relay.services.session_store import SessionStore
from relay.services.state_machine import FlowEngine


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(ttl=timedelta(minutes=10), clock=clock)


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def engine(store, registry):
    return FlowEngine(store, registry)


@pytest.fixture
def router(store, registry):
    return CommandRouter(store, registry)


@pytest.fixture
def automation():
    """Automation webhook that always succeeds."""
    client = Mock()
    client.webhook_url = "https://automation.test/webhook/whatsapp-email"
    client.post = AsyncMock(return_value=Result.success({"ok": True}))
    return client


@pytest.fixture
def dispatcher(automation):
    return ActionDispatcher(automation)


@pytest.fixture
def sender():
    """WhatsApp sender that records every outbound message."""
    service = Mock()
    service.configured = True
    service.send_message = AsyncMock(return_value=SendResult(success=True))
    return service


@pytest.fixture
def ai():
    responder = Mock()
    responder.configured = True
    responder.complete = AsyncMock(return_value=AIResponse(reply="Hi there!"))
    return responder


@pytest.fixture
def processor(store, router, engine, dispatcher, ai, sender):
    return MessageProcessor(
        store=store,
        router=router,
        engine=engine,
        dispatcher=dispatcher,
        ai=ai,
        sender=sender,
    )


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("WHATSAPP_TOKEN", "test-token")
    monkeypatch.setenv("WHATSAPP_PHONE_ID", "1234567890")
    monkeypatch.setenv("WEBHOOK_VERIFY_TOKEN", "verify-me")
