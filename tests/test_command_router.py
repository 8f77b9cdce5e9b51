from relay.services.command_router import RouteKind, parse_command
from relay.services.flows import EMAIL_FLOW
from relay.services.session_store import ConversationState


class TestParseCommand:
    def test_leading_token(self):
        assert parse_command("/email") == "/email"

    def test_token_with_arguments(self):
        assert parse_command("/Email to bob") == "/email"

    def test_plain_text(self):
        assert parse_command("please email bob") is None

    def test_slash_alone(self):
        assert parse_command("/") is None

    def test_empty(self):
        assert parse_command("") is None


class TestRouting:
    def test_free_text_without_session(self, router):
        route = router.route("what's the weather?", "u")
        assert route.kind == RouteKind.FREE_TEXT

    def test_email_command_starts_flow(self, router):
        route = router.route("/email", "u")
        assert route.kind == RouteKind.COMMAND
        assert route.flow is EMAIL_FLOW

    def test_unknown_command(self, router, store):
        route = router.route("/dance", "u")
        assert route.kind == RouteKind.UNKNOWN_COMMAND
        assert route.command == "/dance"
        assert len(store) == 0

    def test_help_command(self, router):
        route = router.route("/help", "u")
        assert route.kind == RouteKind.HELP
        assert "/email" in router.help_text()

    def test_active_session_wins_over_command(self, router, store, clock):
        state = ConversationState(flow="email-compose", step="subject", last_activity=clock())
        store.set("u", state)

        route = router.route("/email", "u")

        assert route.kind == RouteKind.SESSION
        assert route.state is state

    def test_active_session_wins_over_help(self, router, store, clock):
        store.set("u", ConversationState(flow="email-compose", step="subject", last_activity=clock()))

        assert router.route("/help", "u").kind == RouteKind.SESSION

    def test_other_users_session_does_not_capture(self, router, store, clock):
        store.set("someone-else", ConversationState(flow="email-compose", step="subject", last_activity=clock()))

        assert router.route("hello", "u").kind == RouteKind.FREE_TEXT

    def test_expired_session_reported(self, router, store, clock):
        store.set("u", ConversationState(flow="email-compose", step="subject", last_activity=clock()))
        clock.advance(minutes=11)

        route = router.route("/email", "u")

        assert route.kind == RouteKind.SESSION_EXPIRED
        assert store.get("u") is None

    def test_unknown_command_text_names_command(self, router):
        assert "/dance" in router.unknown_command_text("/dance")
