from typing import Optional

from pydantic import BaseModel


class DevAIRequest(BaseModel):
    message: str


class DevWebhookRequest(BaseModel):
    message: Optional[str] = None
    phone: str = "123456789"
