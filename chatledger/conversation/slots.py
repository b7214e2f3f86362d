"""Coercion of slot values.

Slot values arrive either from the classifier (JSON scalars) or as the raw
text a user typed in answer to a follow-up question. Both go through
`coerce_slot` before they are stored on the conversation state.
"""

import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


class SlotKind(str, Enum):
    TEXT = "text"
    AMOUNT = "amount"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"


class SlotValueError(ValueError):
    pass


_NUMBER = re.compile(r"\d[\d.,]*")
_THOUSANDS_DOT = re.compile(r"^\d{1,3}(\.\d{3})+$")

TRUE_WORDS = {"sim", "s", "yes", "y", "true", "pago", "paga", "pagos", "pagas", "já paguei", "ja paguei", "quitado", "quitada"}
FALSE_WORDS = {"não", "nao", "n", "no", "false", "pendente", "em aberto", "aberto", "a pagar"}


def parse_amount(value: Any) -> float:
    """Parse a money amount such as `50`, `R$ 45,90`, `1.234,56` or `2k`."""
    if isinstance(value, bool):
        raise SlotValueError("not an amount")
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        text = str(value).strip().lower()
        match = _NUMBER.search(text)
        if not match:
            raise SlotValueError(f"no number in {value!r}")
        number = match.group().rstrip(".,")
        tail = text[match.end():].strip()

        if "," in number and "." in number:
            if number.rfind(",") > number.rfind("."):
                number = number.replace(".", "").replace(",", ".")
            else:
                number = number.replace(",", "")
        elif "," in number:
            number = number.replace(",", ".")
        elif _THOUSANDS_DOT.match(number):
            number = number.replace(".", "")

        try:
            amount = float(number)
        except ValueError as e:
            raise SlotValueError(f"invalid amount {value!r}") from e

        if tail.startswith("k") or tail.startswith("mil"):
            amount *= 1000

    if amount <= 0:
        raise SlotValueError("amount must be greater than zero")
    return round(amount, 2)


def parse_integer(value: Any) -> int:
    """Parse a positive count such as `3`, `3x` or `em 3 vezes`."""
    if isinstance(value, bool):
        raise SlotValueError("not a number")
    if isinstance(value, (int, float)):
        number = int(value)
    else:
        match = re.search(r"\d+", str(value))
        if not match:
            raise SlotValueError(f"no number in {value!r}")
        number = int(match.group())
    if number < 1:
        raise SlotValueError("must be at least 1")
    return number


def parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower().rstrip(".!")
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise SlotValueError(f"not a yes/no answer: {value!r}")


def parse_date(value: Any, today: date | None = None) -> date:
    """Parse `yyyy-mm-dd`, `dd/mm/yyyy`, `dd/mm`, `hoje`, `amanhã` or `ontem`."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    today = today or date.today()
    text = str(value).strip().lower()

    relative = {"hoje": 0, "today": 0, "amanhã": 1, "amanha": 1, "tomorrow": 1, "ontem": -1, "yesterday": -1}
    if text in relative:
        return today + timedelta(days=relative[text])

    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            pass

    match = re.fullmatch(r"(\d{1,2})/(\d{1,2})", text)
    if match:
        try:
            return date(today.year, int(match.group(2)), int(match.group(1)))
        except ValueError as e:
            raise SlotValueError(f"invalid date {value!r}") from e

    raise SlotValueError(f"invalid date {value!r}")


def parse_text(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        raise SlotValueError("not text")
    text = str(value).strip()
    if not text:
        raise SlotValueError("empty text")
    return text


def coerce_slot(kind: SlotKind, value: Any) -> Any:
    if kind is SlotKind.AMOUNT:
        return parse_amount(value)
    if kind is SlotKind.INTEGER:
        return parse_integer(value)
    if kind is SlotKind.BOOLEAN:
        return parse_boolean(value)
    if kind is SlotKind.DATE:
        return parse_date(value)
    return parse_text(value)
