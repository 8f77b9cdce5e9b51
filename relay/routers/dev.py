from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from relay.dependencies import get_ai_responder
from relay.logging_config import get_logger
from relay.schemas.dev import DevAIRequest, DevWebhookRequest
from relay.services.ai_service import AIResponder

logger = get_logger("dev")

router = APIRouter()


@router.post("/test-ai")
async def try_ai(request: DevAIRequest, ai: AIResponder = Depends(get_ai_responder)):
    """Run the AI responder on a message without touching WhatsApp."""
    response = await ai.complete(request.message)
    return response.as_dict()


@router.post("/test-webhook")
async def simulate_webhook(request: DevWebhookRequest, ai: AIResponder = Depends(get_ai_responder)):
    """Simulate an inbound message and show what would be sent back."""
    if not request.message:
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    response = await ai.complete(request.message)
    return {
        "success": True,
        "response": response.as_dict(),
        "simulation": {
            "to": request.phone,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }
