import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from chatledger.db.repository import split_installments
from chatledger.errors import LedgerValidationError
from chatledger.models.schemas import Budget, Card, FinancialTransaction


def _card(repo, name="Nubank", bank="Nu Pagamentos", closing_day=20, due_day=10, limit=5000):
    return repo.add_card(
        Card(name=name, issuing_bank=bank, closing_day=closing_day, due_day=due_day, limit=limit)
    )


def test_category_lookup_is_case_insensitive(repo):
    created = repo.create_category("Alimentação", "#607D8B")
    found = repo.find_category_by_name("  alimentação ")
    assert found is not None
    assert found.id == created.id
    assert repo.find_category_by_name("Lazer") is None


def test_create_category_rejects_blank_name(repo):
    with pytest.raises(LedgerValidationError):
        repo.create_category("   ", "#000000")


def test_find_card_by_name_matches_substrings_both_ways(repo):
    nubank = _card(repo)
    _card(repo, name="Inter Gold", bank="Banco Inter")

    assert [c.id for c in repo.find_card_by_name("nubank")] == [nubank.id]
    assert [c.id for c in repo.find_card_by_name("meu cartão nubank")] == [nubank.id]
    assert [c.name for c in repo.find_card_by_name("banco inter")] == ["Inter Gold"]
    assert repo.find_card_by_name("itaú") == []
    assert repo.find_card_by_name("  ") == []


def test_create_expense_requires_existing_category(repo):
    with pytest.raises(LedgerValidationError):
        repo.create_expense("mercado", 50.0, date(2026, 10, 19), category_id=99)


def test_create_expense_validates_amount(repo):
    category = repo.create_category("Mercado", "#607D8B")
    with pytest.raises(LedgerValidationError):
        repo.create_expense("mercado", -5.0, date(2026, 10, 19), category_id=category.id)


def test_list_transactions_filters_by_month(repo):
    category = repo.create_category("Casa", "#607D8B")
    repo.create_expense("aluguel", 1500.0, date(2026, 10, 5), category.id)
    repo.create_expense("luz", 200.0, date(2026, 11, 5), category.id)

    october = repo.list_transactions(10, 2026)
    assert [t.description for t in october] == ["aluguel"]
    assert october[0].is_paid is False


def test_list_budgets_filters_by_month(repo):
    repo.add_budget(Budget(name="Mercado", limit_amount=800, month=10, year=2026))
    repo.add_budget(Budget(name="Mercado", limit_amount=800, month=11, year=2026))
    assert len(repo.list_budgets(10, 2026)) == 1


def test_split_installments_keeps_total():
    parts = split_installments(100.0, 3)
    assert parts == [33.34, 33.33, 33.33]
    assert round(sum(parts), 2) == 100.0


def test_card_transaction_installments_span_invoices(repo):
    card = _card(repo, limit=1000)
    created = repo.create_card_transaction(
        card_id=card.id,
        description="Tênis",
        amount=600.0,
        date=date(2026, 10, 19),
        installment_count=3,
        invoice_year=2026,
        invoice_month=11,
    )

    assert [t.installment for t in created] == ["1/3", "2/3", "3/3"]
    assert [(t.invoice_year, t.invoice_month) for t in created] == [(2026, 11), (2026, 12), (2027, 1)]
    assert sum(t.amount for t in created) == 600.0
    assert repo.get_card(card.id).current_limit == 400.0
    assert len(repo.list_card_transactions(card.id)) == 3


def test_card_transaction_unknown_card(repo):
    with pytest.raises(LedgerValidationError):
        repo.create_card_transaction(
            card_id=7, description="x", amount=10.0, date=date(2026, 1, 1),
            installment_count=1, invoice_year=2026, invoice_month=2,
        )


def test_add_transaction_round_trips_income(repo):
    repo.add_transaction(
        FinancialTransaction(description="Salário", amount=5000, due_date=date(2026, 10, 5), type="income", is_paid=True)
    )
    [income] = repo.list_transactions(10, 2026)
    assert income.type == "income"
    assert income.is_paid is True


def test_get_or_create_category_reuses_existing(repo):
    existing = repo.create_category("Farmácia", "#FF0000")

    category, created = repo.get_or_create_category("farmácia", "#607D8B")
    assert created is False
    assert category.id == existing.id

    category, created = repo.get_or_create_category("Pets", "#607D8B")
    assert created is True
    assert category.color == "#607D8B"
    assert len(repo.list_categories()) == 2


def test_parallel_card_purchases_keep_limit_consistent(repo):
    card = _card(repo, limit=10000)
    workers, purchases = 8, 20
    barrier = threading.Barrier(workers)

    def buy(_):
        barrier.wait()
        for _ in range(purchases):
            repo.create_card_transaction(
                card_id=card.id, description="café", amount=5.0, date=date(2026, 10, 19),
                installment_count=1, invoice_year=2026, invoice_month=11,
            )

    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(buy, range(workers)))

    assert len(repo.list_card_transactions(card.id)) == workers * purchases
    assert repo.get_card(card.id).current_limit == 10000 - 5.0 * workers * purchases
