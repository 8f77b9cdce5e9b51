from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relay.config import settings
from relay.dependencies import get_processor
from relay.logging_config import get_logger, setup_logging
from relay.routers import dev, webhook
from relay.services.message_processor import MessageProcessor

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="WhatsApp AI Relay",
    description="Relays WhatsApp messages to a generative AI assistant and automation hooks",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
if settings.dev_endpoints_enabled:
    app.include_router(dev.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error: {exc}",
        exc_info=exc,
        extra={"context": {"path": request.url.path}},
    )
    return JSONResponse(status_code=500, content={"error": "Something went wrong!", "message": str(exc)})


@app.get("/")
async def status(processor: MessageProcessor = Depends(get_processor)):
    return {
        "status": "WhatsApp AI relay is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "configuration": {
            "whatsappBusiness": "Active" if processor.sender.configured else "Inactive",
            "ai": "Active" if processor.ai.configured else "Inactive",
            "automation": "Active" if processor.dispatcher.automation.webhook_url else "Inactive",
        },
    }


@app.get("/health")
async def health():
    return {"status": "ok"}
