from typing import Optional

import httpx

from relay.logging_config import get_logger
from relay.services.result import Result

logger = get_logger("automation_service")


class AutomationClient:
    """Posts JSON payloads to the external automation webhook (n8n)."""

    def __init__(self, webhook_url: Optional[str], timeout_seconds: float = 30.0):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    async def post(self, payload: dict) -> Result[dict]:
        if not self.webhook_url:
            logger.warning("Automation webhook not configured")
            return Result.failure("Automation webhook not configured", "not_configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.webhook_url, json=payload)
        except Exception as e:
            logger.error(f"Automation webhook error: {e}")
            return Result.from_exception(e)

        logger.info(
            "Automation webhook response",
            extra={"context": {"status": response.status_code, "body": response.text[:200]}},
        )
        if response.status_code >= 400:
            return Result.failure(
                f"Automation webhook error: {response.status_code} - {response.text[:200]}",
                "http_error",
            )

        try:
            data = response.json()
        except ValueError:
            data = {"text": response.text}
        if not isinstance(data, dict):
            data = {"result": data}
        return Result.success(data)
