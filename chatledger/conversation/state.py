from datetime import datetime
from typing import Any, Hashable

from pydantic import BaseModel, Field

from chatledger.models.schemas import ChatMessage, ConversationPhase, IntentType


class ConversationState(BaseModel):
    """Per-conversation slot-filling state.

    `data` only ever holds slots for `pending_intent`; both are cleared
    together by `reset`.
    """

    conversation_id: Hashable
    phase: ConversationPhase = ConversationPhase.IDLE
    pending_intent: IntentType | None = None
    awaiting_field: str | None = None
    data: dict[str, Any] = {}
    history: list[ChatMessage] = []
    last_updated: datetime = Field(default_factory=datetime.now)

    def get(self, key: str, default: Any = None) -> Any:
        value = self.data.get(key)
        return default if value is None else value

    def has(self, key: str) -> bool:
        value = self.data.get(key)
        if isinstance(value, str):
            return bool(value.strip())
        return value is not None

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def discard(self, key: str) -> None:
        self.data.pop(key, None)

    def append_history(self, role: str, content: str, limit: int) -> None:
        """Append a message to the history, trimming to the most recent `limit`."""
        self.history.append(ChatMessage(role=role, content=content))
        if len(self.history) > limit:
            self.history = self.history[-limit:]

    def reset(self) -> None:
        self.phase = ConversationPhase.IDLE
        self.pending_intent = None
        self.awaiting_field = None
        self.data = {}
        self.history = []

    def touch(self, now: datetime | None = None) -> None:
        self.last_updated = now or datetime.now()
