from datetime import timedelta

from chatledger.config import get_settings
from chatledger.conversation.handlers.card_purchase import CreateCardPurchaseHandler
from chatledger.conversation.handlers.consulting import FinancialConsultingHandler
from chatledger.conversation.handlers.expense import CreateExpenseHandler
from chatledger.conversation.orchestrator import ConversationOrchestrator
from chatledger.conversation.store import ConversationStateStore
from chatledger.db.repository import LedgerRepository
from chatledger.llm.classifier import IntentClassifier

settings = get_settings()

repo = LedgerRepository(settings.db_path)
classifier = IntentClassifier(
    api_key=settings.openrouter_api_key,
    model=settings.llm_model,
    base_url=settings.openrouter_base_url,
    timeout=settings.llm_timeout_seconds,
)
store = ConversationStateStore(ttl=timedelta(minutes=settings.conversation_ttl_minutes))
orchestrator = ConversationOrchestrator(
    store=store,
    classifier=classifier,
    handlers=[
        CreateExpenseHandler(repo, category_color=settings.default_category_color),
        CreateCardPurchaseHandler(repo),
        FinancialConsultingHandler(repo, classifier),
    ],
    confidence_threshold=settings.confidence_threshold,
    history_limit=settings.history_limit,
)
