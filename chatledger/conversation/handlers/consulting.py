from datetime import date
from typing import Any, Callable

from loguru import logger

from chatledger.conversation.handlers.base import IntentHandler, format_brl
from chatledger.conversation.slots import SlotKind
from chatledger.conversation.state import ConversationState
from chatledger.db.repository import LedgerRepository
from chatledger.llm.classifier import IntentClassifier
from chatledger.models.schemas import (
    Budget,
    ConversationPhase,
    FinancialTransaction,
    IntentType,
)

DEFAULT_QUESTION = "como estou esse mês?"


def _budget_marker(percentage: float) -> str:
    if percentage >= 90:
        return "⚠️"
    if percentage >= 70:
        return "🟡"
    return "✅"


def build_financial_summary(
    transactions: list[FinancialTransaction],
    budgets: list[Budget],
    month: int,
    year: int,
) -> str:
    """Compact month summary handed to the language model as grounding data."""
    expenses = [t for t in transactions if t.type == "expense"]
    income = [t for t in transactions if t.type == "income"]

    total_expenses = sum(t.amount for t in expenses)
    paid_expenses = sum(t.amount for t in expenses if t.is_paid)
    total_income = sum(t.amount for t in income)
    received_income = sum(t.amount for t in income if t.is_paid)

    lines = [
        f"Dados financeiros de {month:02d}/{year}:",
        "",
        "RECEITAS:",
        f"- Total: {format_brl(total_income)}",
        f"- Recebido: {format_brl(received_income)}",
        f"- Pendente: {format_brl(total_income - received_income)}",
        "",
        "DESPESAS:",
        f"- Total: {format_brl(total_expenses)}",
        f"- Pagas: {format_brl(paid_expenses)}",
        f"- Em aberto: {format_brl(total_expenses - paid_expenses)}",
        "",
        "SALDO:",
        f"- Atual (realizado): {format_brl(received_income - paid_expenses)}",
        f"- Projetado: {format_brl(total_income - total_expenses)}",
        "",
        "ORÇAMENTOS:",
    ]

    if not budgets:
        lines.append("- Nenhum orçamento definido")
    for budget in budgets:
        used = sum(t.amount for t in expenses if t.budget_id == budget.id)
        percentage = used / budget.limit_amount * 100 if budget.limit_amount > 0 else 0
        lines.append(
            f"- {budget.name}: {format_brl(used)} / {format_brl(budget.limit_amount)} "
            f"({percentage:.0f}%) {_budget_marker(percentage)}"
        )

    return "\n".join(lines)


class FinancialConsultingHandler(IntentHandler):
    """Read-only intent: answers a question about the current month."""

    intent = IntentType.FINANCIAL_CONSULTING
    slots = {"question": SlotKind.TEXT}

    def __init__(
        self,
        repo: LedgerRepository,
        classifier: IntentClassifier,
        today: Callable[[], date] = date.today,
    ):
        self.repo = repo
        self.classifier = classifier
        self.today = today

    def default_slots(self, message: str) -> dict[str, Any]:
        return {"question": message}

    def build_confirmation_message(self, state: ConversationState) -> str:
        return ""

    def handle(self, state: ConversationState) -> str:
        # Consulting never waits for confirmation; the orchestrator resets
        # the conversation as soon as the answer is returned.
        state.phase = ConversationPhase.IDLE
        question = state.get("question") or DEFAULT_QUESTION
        today = self.today()
        try:
            summary = build_financial_summary(
                self.repo.list_transactions(today.month, today.year),
                self.repo.list_budgets(today.month, today.year),
                today.month,
                today.year,
            )
            return self.classifier.answer_question(question, summary)
        except Exception as e:
            logger.error("Error answering financial question: {}", e)
            return "❌ Desculpe, não consegui analisar seus dados financeiros no momento. Tente novamente."

    def handle_confirmation(self, state: ConversationState, confirmed: bool) -> str:
        return "Consulta encerrada."
