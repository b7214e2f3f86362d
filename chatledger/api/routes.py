import secrets

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from telegram import Update

from chatledger.config import get_settings
from chatledger.deps import classifier, orchestrator
from chatledger.errors import NLPServiceError
from chatledger.models.schemas import (
    ChatReply,
    ChatRequest,
    ClassifyRequest,
    IntentClassificationResult,
)

router = APIRouter()

settings = get_settings()


@router.post("/telegram/webhook/{secret}")
async def telegram_webhook(secret: str, request: Request):
    expected = settings.telegram_webhook_secret
    if not expected or not secrets.compare_digest(secret, expected):
        logger.warning("Webhook request with invalid secret")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    transport = getattr(request.app.state, "telegram", None)
    if transport is None:
        raise HTTPException(status_code=503, detail="Telegram bot is not configured")

    update = Update.de_json(await request.json(), transport.bot)
    await transport.process_update(update)
    return {"ok": True}


@router.post("/chat", response_model=ChatReply)
def chat(request: ChatRequest):
    logger.info("Chat message for {}: {}", request.conversation_id, request.text)
    reply = orchestrator.process_message(request.conversation_id, request.text)
    phase = orchestrator.store.get(request.conversation_id).phase
    return ChatReply(reply=reply, phase=phase)


@router.post("/classify", response_model=IntentClassificationResult)
def classify(request: ClassifyRequest):
    try:
        return classifier.classify(request.text)
    except NLPServiceError as e:
        raise HTTPException(status_code=502, detail=f"Language model unavailable: {e}")
