from loguru import logger
from starlette.concurrency import run_in_threadpool
from telegram import Bot, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError

from chatledger.conversation.orchestrator import ConversationOrchestrator

MEDIA_NOT_SUPPORTED = (
    "Recebi sua mídia! Infelizmente ainda não consigo processar áudio ou imagem.\n"
    "Você pode descrever a transação por texto?"
)


class TelegramTransport:
    """Bridges Telegram updates to the conversation orchestrator.

    Replies are sent through the Bot API rather than returned in the webhook
    response.
    """

    def __init__(
        self,
        bot: Bot,
        orchestrator: ConversationOrchestrator,
        authorized_chat_id: str = "",
    ):
        self.bot = bot
        self.orchestrator = orchestrator
        self.authorized_chat_id = authorized_chat_id.strip()

    def is_authorized(self, chat_id: int) -> bool:
        if not self.authorized_chat_id:
            return True
        return self.authorized_chat_id == str(chat_id)

    async def process_update(self, update: Update) -> bool:
        """Handle one webhook update. Returns True when a reply was produced."""
        message = update.message
        if message is None:
            return False

        chat_id = message.chat_id
        if not self.is_authorized(chat_id):
            logger.warning("Message from unauthorized chat {}", chat_id)
            return False

        text = message.text or message.caption
        if not text:
            if message.voice or message.audio or message.photo:
                logger.info("Media message from chat {} ignored", chat_id)
                await self.send_message(chat_id, MEDIA_NOT_SUPPORTED)
                return True
            return False

        logger.info("Telegram message from {}: {}", chat_id, text[:50])
        # The orchestrator blocks on the LLM and storage; keep it off the event loop.
        reply = await run_in_threadpool(self.orchestrator.process_message, chat_id, text)
        await self.send_message(chat_id, reply)
        return True

    async def send_message(self, chat_id: int, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.MARKDOWN)
            return
        except TelegramError as e:
            logger.error("Error sending message to chat {}: {}", chat_id, e)

        # Retry without Markdown in case the text did not parse.
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as e:
            logger.error("Error resending plain message to chat {}: {}", chat_id, e)
