from abc import ABC, abstractmethod
from typing import Any

from chatledger.conversation.slots import SlotKind, coerce_slot
from chatledger.conversation.state import ConversationState
from chatledger.models.schemas import ConversationPhase, IntentType

CONFIRMATION_FOOTER = "Responda *sim* para confirmar ou *não* para cancelar."
_BRL_SEPARATORS = str.maketrans(",.", ".,")


def format_brl(amount: float) -> str:
    """Format `amount` the Brazilian way, e.g. `R$ 1.234,56`."""
    return "R$ " + f"{amount:,.2f}".translate(_BRL_SEPARATORS)


class IntentHandler(ABC):
    """Strategy for one intent type.

    Subclasses declare their slots and the order in which required slots are
    asked for; `handle` drives the collect → resolve → confirm steps and
    `handle_confirmation` performs the write.
    """

    intent: IntentType
    slots: dict[str, SlotKind] = {}
    required: tuple[str, ...] = ()
    questions: dict[str, str] = {}

    def get_missing_fields(self, state: ConversationState) -> list[str]:
        return [field for field in self.required if not state.has(field)]

    def coerce(self, field: str, value: Any) -> Any:
        return coerce_slot(self.slots.get(field, SlotKind.TEXT), value)

    def default_slots(self, message: str) -> dict[str, Any]:
        """Slots derived from the raw message that started the intent."""
        return {}

    def question_for(self, field: str, state: ConversationState) -> str:
        return self.questions.get(field, f"❓ Informe o campo: {field}")

    def ask(
        self, state: ConversationState, field: str, question: str | None = None
    ) -> str:
        state.phase = ConversationPhase.COLLECTING_DATA
        state.awaiting_field = field
        return question or self.question_for(field, state)

    def resolve(self, state: ConversationState) -> str | None:
        """Resolve references to stored records.

        Returns a follow-up question when something could not be resolved.
        """
        return None

    def handle(self, state: ConversationState) -> str:
        missing = self.get_missing_fields(state)
        if missing:
            return self.ask(state, missing[0])

        follow_up = self.resolve(state)
        if follow_up is not None:
            return follow_up

        state.phase = ConversationPhase.AWAITING_CONFIRMATION
        state.awaiting_field = None
        return self.build_confirmation_message(state)

    @abstractmethod
    def build_confirmation_message(self, state: ConversationState) -> str:
        ...

    @abstractmethod
    def handle_confirmation(self, state: ConversationState, confirmed: bool) -> str:
        ...
