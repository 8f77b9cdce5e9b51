from relay.services.action_dispatcher import ActionContext, ActionDispatcher
from relay.services.ai_service import AIResponder, AIResponse
from relay.services.command_router import CommandRouter, Route, RouteKind
from relay.services.message_processor import MessageProcessor, ProcessedMessage
from relay.services.session_store import ConversationState, SessionStore
from relay.services.state_machine import Flow, FlowEngine, FlowOutcome, FlowRegistry, FlowStatus, FlowStep
