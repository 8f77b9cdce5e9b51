"""Maps an action name plus parameters to a side effect.

Both the slash-command flows and the AI responder end up here, so an
``email.send`` drafted by either path goes through the same handler.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from relay.logging_config import get_logger
from relay.services.automation_service import AutomationClient
from relay.services.result import ActionResult

logger = get_logger("action_dispatcher")

NO_ACTION = "none"
EMAIL_SEND = "email.send"
STUB_ACTIONS = ("calendar.add", "reminder.add", "notes.create", "weather.get", "search.web")

MSG_EMAIL_SENT = "Your email has been sent!"
MSG_EMAIL_FAILED = "Sorry, I was unable to send the email."
MSG_NOT_IMPLEMENTED = "The {action} action is not yet implemented."


@dataclass
class ActionContext:
    user_id: str
    now: Optional[datetime] = None

    def timestamp(self) -> str:
        return (self.now or datetime.now(timezone.utc)).isoformat()


ActionHandler = Callable[[dict, ActionContext], Awaitable[ActionResult]]


class ActionDispatcher:
    def __init__(self, automation: AutomationClient):
        self.automation = automation
        self._handlers: dict[str, ActionHandler] = {EMAIL_SEND: self._send_email}
        for action in STUB_ACTIONS:
            self._handlers[action] = self._not_implemented(action)

    @property
    def actions(self) -> list[str]:
        return sorted(self._handlers)

    def register(self, action: str, handler: ActionHandler) -> None:
        self._handlers[action] = handler

    async def dispatch(self, action: str, params: Optional[dict], context: ActionContext) -> ActionResult:
        if not action or action == NO_ACTION:
            return ActionResult(success=True, message="No action required.")

        handler = self._handlers.get(action)
        if handler is None:
            logger.warning("Unknown action", extra={"context": {"action": action, "user_id": context.user_id}})
            return ActionResult(success=False, message=f"Unknown action: {action}")

        try:
            result = await handler(params or {}, context)
        except Exception as e:
            logger.error(
                f"Action handler failed: {e}",
                exc_info=True,
                extra={"context": {"action": action, "user_id": context.user_id}},
            )
            return ActionResult(success=False, message=f"Action {action} failed.")

        logger.info(
            "Action dispatched",
            extra={"context": {"action": action, "user_id": context.user_id, "success": result.success}},
        )
        return result

    async def _send_email(self, params: dict, context: ActionContext) -> ActionResult:
        payload = {
            "to": params.get("to"),
            "subject": params.get("subject"),
            "body": params.get("body"),
            "from": context.user_id,
            "timestamp": context.timestamp(),
        }
        result = await self.automation.post(payload)
        if not result.ok:
            logger.warning(
                "Email automation failed",
                extra={"context": {"user_id": context.user_id, "error": result.error, "code": result.error_code}},
            )
            return ActionResult(success=False, message=MSG_EMAIL_FAILED, data={"error": result.error})
        return ActionResult(success=True, message=MSG_EMAIL_SENT, data=result.value or {})

    @staticmethod
    def _not_implemented(action: str) -> ActionHandler:
        async def handler(params: dict, context: ActionContext) -> ActionResult:
            return ActionResult(success=True, message=MSG_NOT_IMPLEMENTED.format(action=action))

        return handler
