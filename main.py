import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from chatledger.api.routes import router
from chatledger.config import get_settings

# Configure loguru
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level:<7} | {message}")

app = FastAPI(title="Chat Ledger", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    response: Response = await call_next(request)
    logger.info("→ {}", response.status_code)
    return response


app.include_router(router)

settings = get_settings()


@app.on_event("startup")
async def startup():
    """Connect the Telegram bot used to send replies."""
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN not set — webhook replies are disabled")
        return

    from telegram import Bot

    from chatledger.bot.telegram import TelegramTransport
    from chatledger.deps import orchestrator

    bot = Bot(settings.telegram_bot_token)
    await bot.initialize()
    app.state.telegram = TelegramTransport(
        bot, orchestrator, authorized_chat_id=settings.telegram_authorized_chat_id
    )
    if not settings.telegram_authorized_chat_id:
        logger.warning("TELEGRAM_AUTHORIZED_CHAT_ID not set — accepting messages from any chat")
    logger.info("Telegram bot ready")


@app.on_event("shutdown")
async def shutdown():
    """Release the Telegram bot and the ledger database."""
    transport = getattr(app.state, "telegram", None)
    if transport:
        await transport.bot.shutdown()
        logger.info("Telegram bot stopped")

    from chatledger.deps import repo

    repo.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
