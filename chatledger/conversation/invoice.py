import calendar
from datetime import date

from chatledger.models.schemas import InvoicePeriod


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping `day` to the last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def calculate_invoice_period(
    transaction_date: date, closing_day: int, due_day: int
) -> InvoicePeriod:
    """Return the card invoice (year, month) a purchase is billed to.

    A purchase made after the closing day falls into the cycle that closes
    next month. The invoice is then due either in the closing month itself
    (when the due day comes after the closing day) or in the following month.
    """
    if not 1 <= closing_day <= 31:
        raise ValueError(f"closing_day must be between 1 and 31, got {closing_day}")
    if not 1 <= due_day <= 31:
        raise ValueError(f"due_day must be between 1 and 31, got {due_day}")

    if transaction_date.day > closing_day:
        closing_year, closing_month = _add_months(
            transaction_date.year, transaction_date.month, 1
        )
    else:
        closing_year, closing_month = transaction_date.year, transaction_date.month
    effective_closing = _clamped_date(closing_year, closing_month, closing_day)

    if due_day <= closing_day:
        due_year, due_month = _add_months(
            effective_closing.year, effective_closing.month, 1
        )
    else:
        due_year, due_month = effective_closing.year, effective_closing.month
    due_date = _clamped_date(due_year, due_month, due_day)

    return InvoicePeriod(year=due_date.year, month=due_date.month)


def shift_invoice_period(period: InvoicePeriod, months: int) -> InvoicePeriod:
    year, month = _add_months(period.year, period.month, months)
    return InvoicePeriod(year=year, month=month)
