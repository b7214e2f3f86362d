from datetime import date
from typing import Callable

from loguru import logger

from chatledger.conversation.handlers.base import (
    CONFIRMATION_FOOTER,
    IntentHandler,
    format_brl,
)
from chatledger.conversation.slots import SlotKind
from chatledger.conversation.state import ConversationState
from chatledger.db.repository import LedgerRepository
from chatledger.errors import LedgerValidationError
from chatledger.models.schemas import IntentType

DEFAULT_CATEGORY_COLOR = "#607D8B"


class CreateExpenseHandler(IntentHandler):
    intent = IntentType.CREATE_EXPENSE
    slots = {
        "description": SlotKind.TEXT,
        "amount": SlotKind.AMOUNT,
        "categoryName": SlotKind.TEXT,
        "dueDate": SlotKind.DATE,
        "isPaid": SlotKind.BOOLEAN,
    }
    required = ("description", "amount", "categoryName")
    questions = {
        "description": "📝 Qual a descrição do gasto?",
        "amount": "💰 Qual o valor?",
    }

    def __init__(
        self,
        repo: LedgerRepository,
        category_color: str = DEFAULT_CATEGORY_COLOR,
        today: Callable[[], date] = date.today,
    ):
        self.repo = repo
        self.category_color = category_color
        self.today = today

    def question_for(self, field: str, state: ConversationState) -> str:
        if field != "categoryName":
            return super().question_for(field, state)

        description = state.get("description", "")
        amount = state.get("amount")
        amount_text = f" de {format_brl(amount)}" if amount else ""
        header = f"📂 Entendi! {description}{amount_text}.\nEm qual categoria devo lançar?"

        categories = self.repo.list_categories()
        if categories:
            names = ", ".join(c.name for c in categories)
            return f"{header}\nSuas categorias: {names}"
        return f"{header} (ex: Alimentação, Saúde, Lazer)"

    def build_confirmation_message(self, state: ConversationState) -> str:
        due_date = state.get("dueDate") or self.today()
        status = "✅ Pago" if state.get("isPaid", False) else "⏳ Pendente"
        return (
            "📝 *Confirma o lançamento?*\n\n"
            f"• Descrição: {state.get('description', 'N/A')}\n"
            f"• Valor: {format_brl(state.get('amount', 0.0))}\n"
            f"• Categoria: {state.get('categoryName', 'N/A')}\n"
            f"• Data: {due_date:%d/%m/%Y}\n"
            f"• Status: {status}\n"
            "• Tipo: Despesa\n\n"
            f"{CONFIRMATION_FOOTER}"
        )

    def handle_confirmation(self, state: ConversationState, confirmed: bool) -> str:
        if not confirmed:
            return "❌ Lançamento cancelado."

        category_name = state.get("categoryName")
        is_paid = bool(state.get("isPaid", False))
        try:
            category, created_category = self.repo.get_or_create_category(
                category_name, self.category_color
            )
            if created_category:
                logger.info("Category created from chat: {}", category_name)

            created = self.repo.create_expense(
                description=state.get("description"),
                amount=state.get("amount"),
                due_date=state.get("dueDate") or self.today(),
                category_id=category.id,
                is_paid=is_paid,
            )
        except LedgerValidationError as e:
            logger.warning("Expense rejected: {}", e)
            return f"❌ Não consegui registrar o lançamento: {e}"
        except Exception as e:
            logger.error("Error creating expense from chat: {}", e)
            return "❌ Desculpe, ocorreu um erro ao registrar o lançamento. Tente novamente."

        logger.info("Expense #{} created: {} {}", created.id, created.description, created.amount)
        paid_label = " ✅" if is_paid else ""
        return (
            "✅ Lançamento registrado com sucesso!\n"
            f"• {created.description} — {format_brl(created.amount)} em {category.name}{paid_label}"
        )
