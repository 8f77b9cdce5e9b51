import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from relay.logging_config import get_logger
from relay.services.session_store import ConversationState, SessionStore
from relay.services.state_machine import COMMAND_TOKEN, Flow, FlowRegistry

logger = get_logger("command_router")

COMMAND_PATTERN = re.compile(rf"^\s*({COMMAND_TOKEN.pattern})")
HELP_COMMAND = "/help"


class RouteKind(str, Enum):
    SESSION = "session"  # active session swallows the message
    SESSION_EXPIRED = "session_expired"  # stale session was just removed
    COMMAND = "command"  # starts a registered flow
    HELP = "help"  # lists available commands
    UNKNOWN_COMMAND = "unknown_command"
    FREE_TEXT = "free_text"  # goes to the AI responder


@dataclass
class Route:
    kind: RouteKind
    state: Optional[ConversationState] = None
    flow: Optional[Flow] = None
    command: Optional[str] = None


def parse_command(text: str) -> Optional[str]:
    """Return the leading ``/token`` of a message, lowercased, if any."""
    match = COMMAND_PATTERN.match(text or "")
    if not match:
        return None
    return match.group(1).lower()


class CommandRouter:
    """Classify an inbound message.

    An active session always wins, even when the text is itself a command.
    """

    def __init__(self, store: SessionStore, registry: FlowRegistry):
        self.store = store
        self.registry = registry

    def route(self, text: str, user_id: str) -> Route:
        state, expired = self.store.get_active(user_id)
        if state is not None:
            return Route(RouteKind.SESSION, state=state)
        if expired:
            return Route(RouteKind.SESSION_EXPIRED)

        command = parse_command(text)
        if command is None:
            return Route(RouteKind.FREE_TEXT)

        flow = self.registry.by_command(command)
        if flow is not None:
            return Route(RouteKind.COMMAND, flow=flow, command=command)
        if command == HELP_COMMAND:
            return Route(RouteKind.HELP, command=command)

        logger.info("Unrecognized command", extra={"context": {"user_id": user_id, "command": command}})
        return Route(RouteKind.UNKNOWN_COMMAND, command=command)

    def help_text(self) -> str:
        lines = ["Available commands:"]
        for flow in self.registry:
            lines.append(f"{flow.command} - {flow.description}")
        lines.append("Anything else is answered by the assistant.")
        return "\n".join(lines)

    def unknown_command_text(self, command: str) -> str:
        return f"Command not recognized: {command}. Send {HELP_COMMAND} to see what I can do."
