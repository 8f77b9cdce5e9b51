from typing import Optional

import httpx

from relay.logging_config import get_logger
from relay.services.result import SendResult

logger = get_logger("whatsapp_service")


class WhatsAppService:
    """Service for sending messages through the WhatsApp Cloud API."""

    BASE_URL = "https://graph.facebook.com/{version}/{phone_id}"

    def __init__(
        self,
        token: Optional[str],
        phone_id: Optional[str],
        api_version: str = "v17.0",
        timeout_seconds: float = 30.0,
    ):
        self.token = token
        self.phone_id = phone_id
        self.timeout_seconds = timeout_seconds
        self.base_url = self.BASE_URL.format(version=api_version, phone_id=phone_id)

    @property
    def configured(self) -> bool:
        return bool(self.token and self.phone_id)

    async def _make_request(self, method: str, data: dict) -> SendResult:
        """Make request to the Graph API. Never raises."""
        url = f"{self.base_url}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                    },
                    json=data,
                )
        except Exception as e:
            logger.error(f"WhatsApp API error: {e}")
            return SendResult(success=False, error=str(e))

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text}

        if response.status_code >= 400:
            logger.warning(
                "WhatsApp API rejected request",
                extra={"context": {"status": response.status_code, "body": response.text[:200]}},
            )
            return SendResult(success=False, error=body)
        return SendResult(success=True, data=body)

    async def send_message(self, to: str, text: str) -> SendResult:
        """Send a text message to a WhatsApp user."""
        if not self.configured:
            logger.warning(f"WhatsApp sender not configured, dropping message to {to}")
            return SendResult(success=False, error="Not configured")

        recipient = to[1:] if to.startswith("+") else to
        data = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "text": {"body": text},
        }
        result = await self._make_request("messages", data)
        if result.success:
            logger.info(f"Delivered via WhatsApp: to={recipient}")
        return result
