from typing import Hashable, Iterable

from loguru import logger

from chatledger.conversation.handlers.base import IntentHandler
from chatledger.conversation.slots import SlotValueError
from chatledger.conversation.state import ConversationState
from chatledger.conversation.store import ConversationStateStore
from chatledger.errors import HandlerRegistryError, NLPServiceError
from chatledger.llm.classifier import IntentClassifier
from chatledger.models.schemas import ConversationPhase, IntentType

CONFIRMATION_YES = {"sim", "s", "confirma", "confirmo", "confirmar", "ok", "isso", "pode", "positivo", "yes", "y", "👍"}
CONFIRMATION_NO = {"não", "nao", "n", "cancela", "cancelar", "desistir", "no", "👎"}
CANCEL_COMMANDS = {"/cancelar", "/cancel", "/reset"}
HELP_COMMANDS = {"/start", "/help", "/ajuda"}

HELP_MESSAGE = """\
🤖 *Assistente Financeiro*

Posso te ajudar com:

💸 *Registrar despesa*
"Gastei 45 reais de almoço"
"Paguei 120 de internet"

💳 *Registrar compra no cartão*
"Comprei no Nubank 500 reais em 3x"
"Parcelei 2000 no Inter em 10 vezes"

📊 *Consulta financeira*
"Como estou esse mês?"
"Posso gastar 500 reais?"

📌 *Comandos:*
/start — Esta mensagem
/cancelar — Cancelar operação em andamento"""

CLARIFICATION = (
    "🤔 Não entendi. Você pode:\n"
    "• Registrar um gasto\n"
    "• Registrar compra no cartão\n"
    "• Fazer uma consulta financeira"
)
NOTHING_TO_CANCEL = "✅ Nada a cancelar. Estou pronto para ajudar!"
CANCELLED = "❌ Operação cancelada."
CLASSIFIER_UNAVAILABLE = "❌ Não consegui entender sua mensagem agora. Tente novamente em instantes."
UNEXPECTED_ERROR = "❌ Ocorreu um erro inesperado. Tente novamente."
INVALID_ANSWER = "🤔 Não consegui entender essa resposta."
AMBIGUOUS_CONFIRMATION = "Por favor, responda *sim* para confirmar ou *não* para cancelar."


def _normalize(text: str) -> str:
    return text.strip().lower()


def parse_confirmation(text: str) -> bool | None:
    """Map a reply to True (yes), False (no) or None when it is neither."""
    answer = _normalize(text).rstrip(".!")
    if answer in CONFIRMATION_YES:
        return True
    if answer in CONFIRMATION_NO:
        return False
    return None


class ConversationOrchestrator:
    """Drives one conversation through classify → collect → confirm → execute.

    States move Idle → CollectingData → AwaitingConfirmation → Idle. Every
    confirmation answer, accepted or rejected, ends in Idle with an empty
    slot bag.
    """

    def __init__(
        self,
        store: ConversationStateStore,
        classifier: IntentClassifier,
        handlers: Iterable[IntentHandler],
        confidence_threshold: float = 0.5,
        history_limit: int = 10,
    ):
        self.store = store
        self.classifier = classifier
        self.handlers = self._register(handlers)
        self.confidence_threshold = confidence_threshold
        self.history_limit = history_limit

    @staticmethod
    def _register(handlers: Iterable[IntentHandler]) -> dict[IntentType, IntentHandler]:
        registry: dict[IntentType, IntentHandler] = {}
        for handler in handlers:
            if handler.intent in registry:
                raise HandlerRegistryError(
                    f"More than one handler registered for {handler.intent.value}"
                )
            registry[handler.intent] = handler
        missing = [intent.value for intent in IntentType if intent not in registry]
        if missing:
            raise HandlerRegistryError(f"No handler registered for: {', '.join(missing)}")
        return registry

    def process_message(self, conversation_id: Hashable, text: str) -> str:
        self.store.evict_stale()
        with self.store.lock(conversation_id):
            state = self.store.get(conversation_id)
            try:
                reply = self._dispatch(state, text)
            except Exception:
                logger.exception("Error processing message from conversation {}", conversation_id)
                self._reset(state)
                reply = UNEXPECTED_ERROR

            state.append_history("user", text, self.history_limit)
            state.append_history("assistant", reply, self.history_limit)
            self.store.save(state)
            return reply

    def _reset(self, state: ConversationState) -> None:
        """Clear intent and slots and return the conversation to Idle."""
        state.reset()

    def _dispatch(self, state: ConversationState, text: str) -> str:
        command = _normalize(text)
        if command in HELP_COMMANDS:
            return HELP_MESSAGE
        if command in CANCEL_COMMANDS:
            if state.phase is ConversationPhase.IDLE:
                return NOTHING_TO_CANCEL
            logger.info("Conversation {} cancelled by user", state.conversation_id)
            self._reset(state)
            return CANCELLED

        if state.phase is ConversationPhase.IDLE:
            return self._handle_idle(state, text)
        if state.phase is ConversationPhase.COLLECTING_DATA:
            return self._handle_collecting(state, text)
        return self._handle_confirmation(state, text)

    def _run_handler(self, state: ConversationState, handler: IntentHandler) -> str:
        reply = handler.handle(state)
        if state.phase is ConversationPhase.IDLE:
            self._reset(state)
        return reply

    def _handle_idle(self, state: ConversationState, text: str) -> str:
        try:
            result = self.classifier.classify(text, history=state.history)
        except NLPServiceError:
            return CLASSIFIER_UNAVAILABLE

        if result.is_unknown or result.confidence < self.confidence_threshold:
            logger.info(
                "Unclear message in conversation {} (confidence {:.2f})",
                state.conversation_id, result.confidence,
            )
            return result.clarification_text or CLARIFICATION

        handler = self.handlers[result.intent]
        state.pending_intent = result.intent
        for name, value in result.extracted_slots.items():
            if name not in handler.slots:
                continue
            try:
                state.set(name, handler.coerce(name, value))
            except SlotValueError as e:
                logger.warning("Dropping slot {}={!r}: {}", name, value, e)
        for name, value in handler.default_slots(text).items():
            if not state.has(name):
                state.set(name, value)

        return self._run_handler(state, handler)

    def _handle_collecting(self, state: ConversationState, text: str) -> str:
        handler = self.handlers[state.pending_intent]
        field = state.awaiting_field
        if field is not None:
            try:
                value = handler.coerce(field, text)
            except SlotValueError:
                return f"{INVALID_ANSWER}\n{handler.question_for(field, state)}"
            state.set(field, value)
            state.awaiting_field = None
        return self._run_handler(state, handler)

    def _handle_confirmation(self, state: ConversationState, text: str) -> str:
        handler = self.handlers[state.pending_intent]
        confirmed = parse_confirmation(text)
        if confirmed is None:
            return f"{AMBIGUOUS_CONFIRMATION}\n\n{handler.build_confirmation_message(state)}"

        try:
            return handler.handle_confirmation(state, confirmed)
        finally:
            self._reset(state)
