from datetime import date

import pytest

from chatledger.conversation.invoice import calculate_invoice_period, shift_invoice_period
from chatledger.models.schemas import InvoicePeriod


def test_purchase_after_closing_day_skips_to_following_invoice():
    # Closes on the 30th of May, due on the 7th of the month after.
    period = calculate_invoice_period(date(2026, 5, 31), closing_day=30, due_day=7)
    assert (period.year, period.month) == (2026, 7)


def test_purchase_before_closing_day_goes_to_next_month_invoice():
    period = calculate_invoice_period(date(2026, 5, 1), closing_day=30, due_day=7)
    assert (period.year, period.month) == (2026, 6)


def test_due_day_after_closing_day_is_billed_in_closing_month():
    period = calculate_invoice_period(date(2026, 3, 10), closing_day=5, due_day=20)
    assert (period.year, period.month) == (2026, 4)


def test_purchase_on_closing_day_stays_in_current_cycle():
    period = calculate_invoice_period(date(2026, 3, 5), closing_day=5, due_day=20)
    assert (period.year, period.month) == (2026, 3)


def test_year_rolls_over():
    period = calculate_invoice_period(date(2026, 12, 31), closing_day=30, due_day=7)
    assert (period.year, period.month) == (2027, 2)

    period = calculate_invoice_period(date(2026, 12, 25), closing_day=20, due_day=10)
    assert (period.year, period.month) == (2027, 2)


def test_closing_day_past_end_of_month_is_clamped():
    # January 31st is after a closing day of 30; February has no 30th.
    period = calculate_invoice_period(date(2026, 1, 31), closing_day=30, due_day=7)
    assert (period.year, period.month) == (2026, 3)

    period = calculate_invoice_period(date(2026, 2, 28), closing_day=31, due_day=10)
    assert (period.year, period.month) == (2026, 3)


def test_same_inputs_give_same_period():
    results = {
        calculate_invoice_period(date(2026, 10, 25), closing_day=20, due_day=10)
        for _ in range(5)
    }
    assert results == {InvoicePeriod(year=2026, month=12)}


@pytest.mark.parametrize("closing_day,due_day", [(0, 10), (32, 10), (10, 0), (10, 32)])
def test_rejects_days_out_of_range(closing_day, due_day):
    with pytest.raises(ValueError):
        calculate_invoice_period(date(2026, 1, 1), closing_day, due_day)


def test_shift_invoice_period_crosses_year():
    assert shift_invoice_period(InvoicePeriod(year=2026, month=11), 3) == InvoicePeriod(year=2027, month=2)
