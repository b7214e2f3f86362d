import os
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

# Keep the module-level ledger used by the API out of the working directory.
os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp()) / "ledger.json"))
# The OpenAI client refuses an empty key at construction; tests never call the LLM.
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")

from chatledger.conversation.handlers.card_purchase import CreateCardPurchaseHandler  # noqa: E402
from chatledger.conversation.handlers.consulting import FinancialConsultingHandler  # noqa: E402
from chatledger.conversation.handlers.expense import CreateExpenseHandler  # noqa: E402
from chatledger.conversation.orchestrator import ConversationOrchestrator  # noqa: E402
from chatledger.conversation.store import ConversationStateStore  # noqa: E402
from chatledger.db.repository import LedgerRepository  # noqa: E402
from chatledger.errors import NLPServiceError  # noqa: E402
from chatledger.models.schemas import IntentClassificationResult, IntentType  # noqa: E402

TODAY = date(2026, 10, 19)


class FakeClassifier:
    """Stands in for the LLM: returns queued results in order."""

    def __init__(self):
        self.results: list[IntentClassificationResult | Exception] = []
        self.calls: list[str] = []
        self.questions: list[tuple[str, str]] = []
        self.answer = "📊 Suas finanças estão em dia!"

    def queue(self, intent: IntentType | None, confidence: float = 0.95, **slots):
        self.results.append(
            IntentClassificationResult(intent=intent, confidence=confidence, extracted_slots=slots)
        )

    def fail_next(self):
        self.results.append(NLPServiceError("timeout"))

    def classify(self, user_message, history=None, today=None):
        self.calls.append(user_message)
        if not self.results:
            return IntentClassificationResult()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def answer_question(self, question, summary):
        self.questions.append((question, summary))
        return self.answer


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def repo(tmp_path):
    repository = LedgerRepository(str(tmp_path / "ledger.json"))
    yield repository
    repository.close()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0))


@pytest.fixture
def store(clock):
    return ConversationStateStore(ttl=timedelta(minutes=10), clock=clock)


@pytest.fixture
def handlers(repo, classifier):
    today = lambda: TODAY  # noqa: E731
    return [
        CreateExpenseHandler(repo, today=today),
        CreateCardPurchaseHandler(repo, today=today),
        FinancialConsultingHandler(repo, classifier, today=today),
    ]


@pytest.fixture
def orchestrator(store, classifier, handlers):
    return ConversationOrchestrator(store=store, classifier=classifier, handlers=handlers)
