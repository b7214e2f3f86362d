from datetime import date
from typing import Callable

from loguru import logger

from chatledger.conversation.handlers.base import (
    CONFIRMATION_FOOTER,
    IntentHandler,
    format_brl,
)
from chatledger.conversation.invoice import calculate_invoice_period
from chatledger.conversation.slots import SlotKind
from chatledger.conversation.state import ConversationState
from chatledger.db.repository import LedgerRepository
from chatledger.errors import LedgerValidationError
from chatledger.models.schemas import Card, ConversationPhase, IntentType


def _card_lines(cards: list[Card]) -> str:
    return "\n".join(f"• {c.name} ({c.issuing_bank})" for c in cards)


class CreateCardPurchaseHandler(IntentHandler):
    intent = IntentType.CREATE_CARD_PURCHASE
    slots = {
        "description": SlotKind.TEXT,
        "amount": SlotKind.AMOUNT,
        "cardName": SlotKind.TEXT,
        "installments": SlotKind.INTEGER,
    }
    required = ("description", "amount", "cardName")
    questions = {
        "description": "📝 Qual a descrição da compra?",
        "amount": "💰 Qual o valor total?",
    }

    def __init__(self, repo: LedgerRepository, today: Callable[[], date] = date.today):
        self.repo = repo
        self.today = today

    def question_for(self, field: str, state: ConversationState) -> str:
        if field != "cardName":
            return super().question_for(field, state)
        cards = self.repo.list_cards()
        if cards:
            return f"💳 Em qual cartão? Seus cartões: {', '.join(c.name for c in cards)}"
        return "💳 Em qual cartão?"

    def resolve(self, state: ConversationState) -> str | None:
        card_name = state.get("cardName")
        matches = self.repo.find_card_by_name(card_name)
        if len(matches) == 1:
            card = matches[0]
            state.set("cardId", card.id)
            state.set("cardName", card.name)
            return None

        state.discard("cardName")
        state.discard("cardId")
        cards = self.repo.list_cards()
        if not cards:
            state.phase = ConversationPhase.IDLE
            return "❌ Nenhum cartão cadastrado. Cadastre um cartão primeiro pelo app."

        if matches:
            logger.info("Card name {!r} is ambiguous: {} matches", card_name, len(matches))
            question = (
                f"💳 Encontrei mais de um cartão para \"{card_name}\":\n"
                f"{_card_lines(matches)}\n\nQual deseja usar?"
            )
        else:
            question = (
                "💳 Não encontrei um cartão com esse nome. Seus cartões são:\n"
                f"{_card_lines(cards)}\n\nQual deseja usar?"
            )
        return self.ask(state, "cardName", question)

    def build_confirmation_message(self, state: ConversationState) -> str:
        amount = state.get("amount", 0.0)
        installments = state.get("installments", 1)
        if installments > 1:
            installment_text = f"{installments}x de {format_brl(amount / installments)}"
        else:
            installment_text = "À vista"
        return (
            "💳 *Confirma a compra no cartão?*\n\n"
            f"• Descrição: {state.get('description', 'N/A')}\n"
            f"• Valor total: {format_brl(amount)}\n"
            f"• Parcelas: {installment_text}\n"
            f"• Cartão: {state.get('cardName', 'N/A')}\n\n"
            f"{CONFIRMATION_FOOTER}"
        )

    def handle_confirmation(self, state: ConversationState, confirmed: bool) -> str:
        if not confirmed:
            return "❌ Compra cancelada."

        try:
            card = self.repo.get_card(state.get("cardId"))
            if card is None:
                return "❌ Cartão não encontrado. Tente novamente."

            installments = state.get("installments", 1)
            amount = state.get("amount")
            purchase_date = self.today()
            period = calculate_invoice_period(purchase_date, card.closing_day, card.due_day)

            created = self.repo.create_card_transaction(
                card_id=card.id,
                description=state.get("description"),
                amount=amount,
                date=purchase_date,
                installment_count=installments,
                invoice_year=period.year,
                invoice_month=period.month,
            )
            card = self.repo.get_card(card.id)
        except LedgerValidationError as e:
            logger.warning("Card purchase rejected: {}", e)
            return f"❌ Não consegui registrar a compra: {e}"
        except Exception as e:
            logger.error("Error creating card transaction from chat: {}", e)
            return "❌ Desculpe, ocorreu um erro ao registrar a compra. Tente novamente."

        logger.info(
            "Card purchase on card #{} created: {} installment(s), first invoice {:02d}/{}",
            card.id, len(created), period.month, period.year,
        )
        if installments > 1:
            installment_text = f"{installments}x {format_brl(created[-1].amount)}"
        else:
            installment_text = format_brl(amount)
        return (
            "✅ Compra registrada com sucesso!\n"
            f"• {created[0].description} — {installment_text} no {card.name}\n"
            f"• Fatura: {period.month:02d}/{period.year}\n"
            f"• Limite restante: {format_brl(card.current_limit)}"
        )
