"""Per-message orchestration: route, run the flow or the AI responder,
dispatch the resulting action and reply to the chat.

Each message is handled under its user's lock so one user's messages are
applied in arrival order. Any exception stays inside ``process_message``.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from relay.logging_config import UserLoggerAdapter, get_logger, mask_user_id
from relay.schemas.whatsapp import InboundEvent
from relay.services.action_dispatcher import NO_ACTION, ActionContext, ActionDispatcher
from relay.services.ai_service import AIResponder
from relay.services.command_router import CommandRouter, RouteKind
from relay.services.result import ActionResult
from relay.services.session_store import SessionStore
from relay.services.state_machine import FlowEngine, FlowOutcome, FlowStatus
from relay.services.whatsapp_service import WhatsAppService

logger = get_logger("message_processor")

MSG_APOLOGY = "Sorry, something went wrong while processing your message. Please try again later."


@dataclass
class ProcessedMessage:
    user_id: Optional[str]
    route: Optional[RouteKind] = None
    replies: list[str] = field(default_factory=list)
    action: Optional[str] = None
    action_result: Optional[ActionResult] = None
    flow_status: Optional[FlowStatus] = None
    session_closed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MessageProcessor:
    def __init__(
        self,
        store: SessionStore,
        router: CommandRouter,
        engine: FlowEngine,
        dispatcher: ActionDispatcher,
        ai: AIResponder,
        sender: WhatsAppService,
    ):
        self.store = store
        self.router = router
        self.engine = engine
        self.dispatcher = dispatcher
        self.ai = ai
        self.sender = sender

    async def process_batch(self, events: Iterable[InboundEvent]) -> list[ProcessedMessage]:
        results = []
        for event in events:
            result = await self.process_message(event)
            if result is not None:
                results.append(result)
        return results

    async def process_message(self, event: InboundEvent) -> Optional[ProcessedMessage]:
        """Handle one inbound event. Returns None for events that are ignored."""
        if event.type != "text":
            logger.debug(f"Ignoring {event.type} message")
            return None
        if not event.from_user or event.text is None:
            logger.warning(
                "Text message without sender or body",
                extra={"context": {"user": mask_user_id(event.from_user)}},
            )
            return None

        user_id = event.from_user
        report = ProcessedMessage(user_id=user_id)
        log = UserLoggerAdapter(logger, user_id)

        async with self.store.locked(user_id):
            try:
                await self._handle_text(user_id, event.text, report, log)
            except Exception as e:
                report.error = str(e) or e.__class__.__name__
                log.error(f"Error processing message: {e}", exc_info=True, context={"route": report.route})
                await self._apologize(user_id, log)
        return report

    async def _handle_text(self, user_id: str, text: str, report: ProcessedMessage, log: UserLoggerAdapter) -> None:
        route = self.router.route(text, user_id)
        report.route = route.kind
        log = log.bind(route=route.kind.value)

        if route.kind == RouteKind.SESSION:
            await self._deliver(user_id, self.engine.advance(user_id, route.state, text), report, log)
        elif route.kind == RouteKind.SESSION_EXPIRED:
            await self._deliver(user_id, self.engine.expired(), report, log)
        elif route.kind == RouteKind.COMMAND:
            await self._deliver(user_id, self.engine.start(user_id, route.flow), report, log)
        elif route.kind == RouteKind.HELP:
            await self._reply(user_id, self.router.help_text(), report, log)
        elif route.kind == RouteKind.UNKNOWN_COMMAND:
            await self._reply(user_id, self.router.unknown_command_text(route.command), report, log)
        else:
            response = await self.ai.complete(text)
            await self._reply(user_id, response.reply, report, log)
            if response.action != NO_ACTION:
                await self._dispatch(user_id, response.action, response.params, report, log)

    async def _deliver(
        self, user_id: str, outcome: FlowOutcome, report: ProcessedMessage, log: UserLoggerAdapter
    ) -> None:
        report.flow_status = outcome.status
        report.session_closed = outcome.terminal
        if outcome.terminal:
            log.info("Session closed", context={"status": outcome.status.value, "action": outcome.action})
        await self._reply(user_id, outcome.reply, report, log)
        if outcome.action:
            await self._dispatch(user_id, outcome.action, outcome.params, report, log)

    async def _dispatch(
        self, user_id: str, action: str, params: dict, report: ProcessedMessage, log: UserLoggerAdapter
    ) -> None:
        report.action = action
        result = await self.dispatcher.dispatch(action, params, ActionContext(user_id=user_id))
        report.action_result = result
        if not result.success:
            log.warning("Action failed", context={"action": action, "message": result.message})
        await self._reply(user_id, result.message, report, log)

    async def _reply(self, user_id: str, text: str, report: ProcessedMessage, log: UserLoggerAdapter) -> None:
        result = await self.sender.send_message(user_id, text)
        report.replies.append(text)
        if not result.success:
            log.warning("Reply not delivered", context={"error": result.error})

    async def _apologize(self, user_id: str, log: UserLoggerAdapter) -> None:
        try:
            result = await self.sender.send_message(user_id, MSG_APOLOGY)
        except Exception as e:
            log.error(f"Failed to send apology: {e}")
            return
        if not result.success:
            log.warning("Apology not delivered", context={"error": result.error})
