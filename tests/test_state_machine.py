import pytest

from relay.services.flows import EMAIL_FLOW
from relay.services.session_store import ConversationState
from relay.services.state_machine import (
    CONFIRMATION_STEP,
    MSG_FLOW_ERROR,
    MSG_SESSION_EXPIRED,
    Flow,
    FlowEngine,
    FlowRegistry,
    FlowStatus,
    FlowStep,
    UnknownStepError,
    render,
)


def _start(engine, store, user="u"):
    engine.start(user, EMAIL_FLOW)
    return store.get(user)


class TestStart:
    def test_creates_state_at_first_step(self, engine, store, clock):
        outcome = engine.start("u", EMAIL_FLOW)

        state = store.get("u")
        assert state.flow == "email-compose"
        assert state.step == "recipient"
        assert state.data == {}
        assert state.last_activity == clock()
        assert outcome.status == FlowStatus.PROMPT
        assert "recipient" in outcome.reply


class TestEmailFlow:
    def test_recipient_is_trimmed_and_moves_to_subject(self, engine, store):
        state = _start(engine, store)

        outcome = engine.advance("u", state, "  a@b.com  ")

        assert state.data == {"to": "a@b.com"}
        assert state.step == "subject"
        assert outcome.status == FlowStatus.PROMPT
        assert "a@b.com" in outcome.reply

    def test_body_moves_to_confirmation_with_draft(self, engine, store):
        state = _start(engine, store)
        engine.advance("u", state, "a@b.com")
        engine.advance("u", state, "Hi")

        outcome = engine.advance("u", state, " body text ")

        assert state.step == CONFIRMATION_STEP
        assert outcome.status == FlowStatus.CONFIRM
        assert "To: a@b.com" in outcome.reply
        assert "Subject: Hi" in outcome.reply
        assert "body text" in outcome.reply
        assert "send" in outcome.reply and "cancel" in outcome.reply

    @pytest.mark.parametrize("answer", ["send", "SEND", " Send "])
    def test_send_completes_with_email_action(self, engine, store, answer):
        state = _start(engine, store)
        for text in ["a@b.com", "Hi", "body text"]:
            engine.advance("u", state, text)

        outcome = engine.advance("u", state, answer)

        assert outcome.status == FlowStatus.COMPLETED
        assert outcome.terminal is True
        assert outcome.action == "email.send"
        assert outcome.params == {"to": "a@b.com", "subject": "Hi", "body": "body text"}
        assert store.get("u") is None

    @pytest.mark.parametrize("answer", ["cancel", "CANCEL", "Cancel"])
    def test_cancel_deletes_state_without_action(self, engine, store, answer):
        state = _start(engine, store)
        for text in ["a@b.com", "Hi", "body text"]:
            engine.advance("u", state, text)

        outcome = engine.advance("u", state, answer)

        assert outcome.status == FlowStatus.CANCELLED
        assert outcome.action is None
        assert store.get("u") is None

    def test_unrecognized_confirmation_repeats_step(self, engine, store):
        state = _start(engine, store)
        for text in ["a@b.com", "Hi", "body text"]:
            engine.advance("u", state, text)

        outcome = engine.advance("u", state, "maybe")

        assert outcome.status == FlowStatus.NOT_UNDERSTOOD
        assert outcome.terminal is False
        assert store.get("u") is state
        assert state.step == CONFIRMATION_STEP

    def test_each_transition_refreshes_activity(self, engine, store, clock):
        state = _start(engine, store)
        clock.advance(minutes=5)

        engine.advance("u", state, "a@b.com")

        assert state.last_activity == clock()

    def test_slash_text_is_ordinary_input_inside_flow(self, engine, store):
        state = _start(engine, store)

        engine.advance("u", state, "/email")

        assert state.data["to"] == "/email"
        assert state.step == "subject"


class TestCorruptedSession:
    def test_unknown_step_discards_session(self, engine, store, clock):
        state = ConversationState(flow="email-compose", step="attachments", last_activity=clock())
        store.set("u", state)

        outcome = engine.advance("u", state, "anything")

        assert outcome.status == FlowStatus.ERROR
        assert outcome.reply == MSG_FLOW_ERROR
        assert store.get("u") is None

    def test_unknown_flow_discards_session(self, engine, store, clock):
        state = ConversationState(flow="survey", step="q1", last_activity=clock())
        store.set("u", state)

        outcome = engine.advance("u", state, "anything")

        assert outcome.status == FlowStatus.ERROR
        assert store.get("u") is None


class TestExpiredOutcome:
    def test_expired_outcome(self, engine):
        outcome = engine.expired()
        assert outcome.status == FlowStatus.EXPIRED
        assert outcome.reply == MSG_SESSION_EXPIRED
        assert outcome.terminal is True


def _note_flow():
    return Flow(
        name="note-create",
        command="/note",
        description="save a note",
        steps=(
            FlowStep("title", "Title?", "title"),
            FlowStep("content", "Content for {title}?", "content"),
        ),
        confirmation_prompt="Save note '{title}'?",
        on_complete=lambda data: ("notes.create", {"title": data["title"], "content": data["content"]}),
    )


class TestAdditionalFlows:
    def test_new_flow_is_pure_data(self, store):
        registry = FlowRegistry([EMAIL_FLOW, _note_flow()])
        engine = FlowEngine(store, registry)

        engine.start("u", registry.by_command("/NOTE"))
        state = store.get("u")
        prompt = engine.advance("u", state, "Groceries")
        engine.advance("u", state, "milk, eggs")
        outcome = engine.advance("u", state, "send")

        assert prompt.reply == "Content for Groceries?"
        assert outcome.action == "notes.create"
        assert outcome.params == {"title": "Groceries", "content": "milk, eggs"}

    def test_duplicate_registration_rejected(self):
        registry = FlowRegistry([EMAIL_FLOW])
        with pytest.raises(ValueError):
            registry.register(EMAIL_FLOW)

    def test_flow_without_steps_rejected(self):
        flow = Flow(
            name="empty",
            command="/empty",
            description="nothing",
            steps=(),
            confirmation_prompt="",
            on_complete=lambda data: ("none", {}),
        )
        with pytest.raises(ValueError):
            FlowRegistry([flow])

    @pytest.mark.parametrize("command", ["note", "/two words", "/", ""])
    def test_flow_with_unusable_command_rejected(self, command):
        flow = Flow(
            name="bad-command",
            command=command,
            description="never reachable",
            steps=(FlowStep("title", "Title?", "title"),),
            confirmation_prompt="",
            on_complete=lambda data: ("none", {}),
        )
        with pytest.raises(ValueError):
            FlowRegistry([flow])


class TestStepOrder:
    def test_next_step_is_forward_only(self):
        assert EMAIL_FLOW.next_step("recipient") == "subject"
        assert EMAIL_FLOW.next_step("subject") == "body"
        assert EMAIL_FLOW.next_step("body") == CONFIRMATION_STEP

    def test_no_step_after_confirmation(self):
        with pytest.raises(UnknownStepError):
            EMAIL_FLOW.next_step(CONFIRMATION_STEP)

    def test_render_tolerates_missing_fields(self):
        assert render("To: {to}", {}) == "To: "
