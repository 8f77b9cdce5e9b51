"""Multi-step conversation flows.

A flow is pure data: an ordered list of ``FlowStep`` descriptors, a
confirmation template and a terminal handler that turns the collected fields
into an action. ``FlowEngine`` drives any registered flow through
``step_1 -> ... -> step_n -> confirmation`` and ends it with *complete*
(the action is returned to the caller for dispatch) or *cancelled*.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from relay.logging_config import get_logger
from relay.services.session_store import ConversationState, SessionStore

logger = get_logger("state_machine")

CONFIRMATION_STEP = "confirmation"
SEND_KEYWORD = "send"
CANCEL_KEYWORD = "cancel"

COMMAND_TOKEN = re.compile(r"/[A-Za-z0-9_.-]+")

MSG_SESSION_EXPIRED = "Your previous session expired after a period of inactivity. Please start again."
MSG_FLOW_ERROR = "Something went wrong with your request, so I've reset it. Please start again."
MSG_NOT_UNDERSTOOD = "Sorry, I didn't understand. Reply 'send' to confirm or 'cancel' to discard."


class FlowStatus(str, Enum):
    PROMPT = "prompt"
    CONFIRM = "confirm"
    NOT_UNDERSTOOD = "not_understood"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    ERROR = "error"


TERMINAL_STATUSES = {FlowStatus.COMPLETED, FlowStatus.CANCELLED, FlowStatus.EXPIRED, FlowStatus.ERROR}


class UnknownStepError(Exception):
    def __init__(self, flow: str, step: str):
        self.flow = flow
        self.step = step
        super().__init__(f"Unknown step: {flow}:{step}")


class _TemplateData(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(template: str, data: dict[str, str]) -> str:
    return template.format_map(_TemplateData(data))


@dataclass(frozen=True)
class FlowStep:
    name: str
    prompt: str
    field_key: str


@dataclass(frozen=True)
class Flow:
    name: str
    command: str
    description: str
    steps: tuple[FlowStep, ...]
    confirmation_prompt: str
    on_complete: Callable[[dict[str, str]], tuple[str, dict]]
    completed_reply: str = "Done."
    cancelled_reply: str = "Cancelled."
    not_understood_reply: str = MSG_NOT_UNDERSTOOD

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps] + [CONFIRMATION_STEP]

    def step(self, name: str) -> Optional[FlowStep]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def next_step(self, current: str) -> str:
        """Step that follows ``current``; only forward moves are possible."""
        names = self.step_names
        if current not in names or current == CONFIRMATION_STEP:
            raise UnknownStepError(self.name, current)
        return names[names.index(current) + 1]


@dataclass
class FlowOutcome:
    status: FlowStatus
    reply: str
    action: Optional[str] = None
    params: dict = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class FlowRegistry:
    """Flows addressable by their slash command and by their tag."""

    def __init__(self, flows: Iterable[Flow] = ()):
        self._by_command: dict[str, Flow] = {}
        self._by_name: dict[str, Flow] = {}
        for flow in flows:
            self.register(flow)

    def register(self, flow: Flow) -> None:
        if not COMMAND_TOKEN.fullmatch(flow.command or ""):
            raise ValueError(f"Flow {flow.name} has an unusable command: {flow.command!r}")
        command = flow.command.lower()
        if command in self._by_command or flow.name in self._by_name:
            raise ValueError(f"Flow already registered: {flow.name} ({flow.command})")
        if not flow.steps:
            raise ValueError(f"Flow {flow.name} has no steps")
        self._by_command[command] = flow
        self._by_name[flow.name] = flow

    def by_command(self, command: str) -> Optional[Flow]:
        return self._by_command.get(command.lower())

    def by_name(self, name: str) -> Optional[Flow]:
        return self._by_name.get(name)

    def __iter__(self):
        return iter(self._by_name.values())


class FlowEngine:
    def __init__(self, store: SessionStore, registry: FlowRegistry):
        self.store = store
        self.registry = registry

    def start(self, user_id: str, flow: Flow) -> FlowOutcome:
        """Open a new session at the flow's first step."""
        first = flow.steps[0]
        state = ConversationState(flow=flow.name, step=first.name, last_activity=self.store.clock())
        self.store.set(user_id, state)
        logger.info("Flow started", extra={"context": {"user_id": user_id, "flow": flow.name}})
        return FlowOutcome(FlowStatus.PROMPT, render(first.prompt, state.data))

    def advance(self, user_id: str, state: ConversationState, text: str) -> FlowOutcome:
        """Apply one inbound message to an active, non-expired session."""
        try:
            return self._advance(user_id, state, text)
        except UnknownStepError as exc:
            logger.error(
                "Session in unknown step, discarding",
                extra={"context": {"user_id": user_id, "flow": exc.flow, "step": exc.step}},
            )
            self.store.delete(user_id)
            return FlowOutcome(FlowStatus.ERROR, MSG_FLOW_ERROR)

    def expired(self) -> FlowOutcome:
        return FlowOutcome(FlowStatus.EXPIRED, MSG_SESSION_EXPIRED)

    def _advance(self, user_id: str, state: ConversationState, text: str) -> FlowOutcome:
        flow = self.registry.by_name(state.flow)
        if flow is None:
            raise UnknownStepError(state.flow, state.step)

        state.touch(self.store.clock())

        if state.step == CONFIRMATION_STEP:
            return self._confirm(user_id, flow, state, text)

        step = flow.step(state.step)
        if step is None:
            raise UnknownStepError(flow.name, state.step)

        state.data[step.field_key] = (text or "").strip()
        state.step = flow.next_step(step.name)

        if state.step == CONFIRMATION_STEP:
            return FlowOutcome(FlowStatus.CONFIRM, render(flow.confirmation_prompt, state.data))
        return FlowOutcome(FlowStatus.PROMPT, render(flow.step(state.step).prompt, state.data))

    def _confirm(self, user_id: str, flow: Flow, state: ConversationState, text: str) -> FlowOutcome:
        answer = (text or "").strip().lower()

        if answer == SEND_KEYWORD:
            data = dict(state.data)
            action, params = flow.on_complete(data)
            self.store.delete(user_id)
            logger.info(
                "Flow completed",
                extra={"context": {"user_id": user_id, "flow": flow.name, "action": action}},
            )
            return FlowOutcome(FlowStatus.COMPLETED, render(flow.completed_reply, data), action, params)

        if answer == CANCEL_KEYWORD:
            self.store.delete(user_id)
            logger.info("Flow cancelled", extra={"context": {"user_id": user_id, "flow": flow.name}})
            return FlowOutcome(FlowStatus.CANCELLED, render(flow.cancelled_reply, state.data))

        return FlowOutcome(FlowStatus.NOT_UNDERSTOOD, flow.not_understood_reply)
