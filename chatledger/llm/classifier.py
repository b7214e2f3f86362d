import json
from datetime import date
from typing import Any

from loguru import logger
from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError

from chatledger.errors import NLPServiceError
from chatledger.llm.prompts import ADVICE_PROMPT, SYSTEM_PROMPT, date_context
from chatledger.models.schemas import (
    UNKNOWN_INTENT,
    ChatMessage,
    IntentClassificationResult,
    IntentType,
)

# Only the most recent turns are sent as context.
HISTORY_WINDOW = 6


class _RawClassification(BaseModel):
    intent: str = UNKNOWN_INTENT
    confidence: float = 0.0
    data: dict[str, Any] = {}
    missing_fields: list[str] = Field(default=[], alias="missingFields")
    clarification_question: str | None = Field(default=None, alias="clarificationQuestion")


def _strip_code_fences(raw: str) -> str:
    if raw.startswith("```"):
        lines = raw.split("\n")
        lines = [l for l in lines if not l.startswith("```")]
        raw = "\n".join(lines)
    return raw


def _to_result(raw: _RawClassification) -> IntentClassificationResult:
    try:
        intent = IntentType(raw.intent.strip().upper())
    except ValueError:
        intent = None
    return IntentClassificationResult(
        intent=intent,
        confidence=min(max(raw.confidence, 0.0), 1.0),
        extracted_slots={k: v for k, v in raw.data.items() if v is not None},
        missing_slots=raw.missing_fields,
        clarification_text=raw.clarification_question,
    )


class IntentClassifier:
    def __init__(self, api_key: str, model: str, base_url: str, timeout: float = 30.0):
        self.client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
        self.model = model

    def _complete(self, messages: list[dict], temperature: float) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
            )
        except Exception as e:
            logger.error("LLM request failed: {}", e)
            raise NLPServiceError(str(e)) from e
        content = response.choices[0].message.content or ""
        return content.strip()

    def classify(
        self,
        user_message: str,
        history: list[ChatMessage] | None = None,
        today: date | None = None,
    ) -> IntentClassificationResult:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "system", "content": date_context(today or date.today())},
        ]
        for msg in (history or [])[-HISTORY_WINDOW:]:
            messages.append({"role": msg.role, "content": msg.content})
        messages.append({"role": "user", "content": user_message})

        raw = self._complete(messages, temperature=0.1)
        logger.debug("LLM raw response: {}", raw)

        try:
            parsed = _RawClassification.model_validate(json.loads(_strip_code_fences(raw)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Failed to parse LLM classification: {}", e)
            return IntentClassificationResult()

        result = _to_result(parsed)
        logger.info(
            "Classified as {} (confidence {:.2f})",
            result.intent.value if result.intent else UNKNOWN_INTENT,
            result.confidence,
        )
        return result

    def answer_question(self, question: str, summary: str) -> str:
        prompt = ADVICE_PROMPT.format(summary=summary, question=question)
        answer = self._complete([{"role": "user", "content": prompt}], temperature=0.7)
        if not answer:
            raise NLPServiceError("Empty answer from LLM")
        return answer
