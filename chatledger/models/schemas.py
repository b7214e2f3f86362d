from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IntentType(str, Enum):
    CREATE_EXPENSE = "CREATE_EXPENSE"
    CREATE_CARD_PURCHASE = "CREATE_CARD_PURCHASE"
    FINANCIAL_CONSULTING = "FINANCIAL_CONSULTING"


# Classifier-only sentinel; never registered with a handler.
UNKNOWN_INTENT = "UNKNOWN"


class ConversationPhase(str, Enum):
    IDLE = "idle"
    COLLECTING_DATA = "collecting_data"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


class IntentClassificationResult(BaseModel):
    intent: IntentType | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    extracted_slots: dict[str, Any] = {}
    missing_slots: list[str] = []
    clarification_text: str | None = None

    @property
    def is_unknown(self) -> bool:
        return self.intent is None


class InvoicePeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(ge=1, le=12)


# ── Ledger records ────────────────────────────────────────────────


class Category(BaseModel):
    id: int | None = None
    name: str
    color: str = "#607D8B"

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()


class Card(BaseModel):
    id: int | None = None
    name: str
    issuing_bank: str
    closing_day: int = Field(ge=1, le=31)
    due_day: int = Field(ge=1, le=31)
    limit: float = Field(gt=0)
    current_limit: float | None = None


class Budget(BaseModel):
    id: int | None = None
    name: str
    limit_amount: float = Field(gt=0)
    month: int = Field(ge=1, le=12)
    year: int


class FinancialTransaction(BaseModel):
    id: int | None = None
    description: str
    amount: float = Field(gt=0)
    due_date: date
    type: Literal["expense", "income"] = "expense"
    category_id: int | None = None
    budget_id: int | None = None
    is_paid: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description cannot be empty")
        return v.strip()


class CardTransaction(BaseModel):
    id: int | None = None
    card_id: int
    description: str
    amount: float = Field(gt=0)
    date: date
    installment: str = "1/1"
    invoice_year: int
    invoice_month: int = Field(ge=1, le=12)
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description cannot be empty")
        return v.strip()


# ── HTTP payloads ─────────────────────────────────────────────────


class ChatRequest(BaseModel):
    conversation_id: str
    text: str


class ChatReply(BaseModel):
    reply: str
    phase: ConversationPhase


class ClassifyRequest(BaseModel):
    text: str
