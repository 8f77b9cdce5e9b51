from relay.services.state_machine import Flow, FlowRegistry, FlowStep


def _email_send(data: dict[str, str]) -> tuple[str, dict]:
    return "email.send", {
        "to": data.get("to", ""),
        "subject": data.get("subject", ""),
        "body": data.get("body", ""),
    }


EMAIL_FLOW = Flow(
    name="email-compose",
    command="/email",
    description="compose and send an email",
    steps=(
        FlowStep("recipient", "Who should I send the email to? Reply with the recipient's email address.", "to"),
        FlowStep("subject", "What's the subject of your email to {to}?", "subject"),
        FlowStep("body", "Now type the message body.", "body"),
    ),
    confirmation_prompt=(
        "Here is your draft:\n\n"
        "To: {to}\n"
        "Subject: {subject}\n\n"
        "{body}\n\n"
        "Reply 'send' to send it or 'cancel' to discard it."
    ),
    on_complete=_email_send,
    completed_reply="Sending your email to {to}...",
    cancelled_reply="Email cancelled. Nothing was sent.",
)


def default_registry() -> FlowRegistry:
    return FlowRegistry([EMAIL_FLOW])
