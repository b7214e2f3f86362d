import threading
from datetime import date

from pydantic import ValidationError
from tinydb import Query, TinyDB

from chatledger.conversation.invoice import shift_invoice_period
from chatledger.errors import LedgerValidationError
from chatledger.models.schemas import (
    Budget,
    Card,
    CardTransaction,
    Category,
    FinancialTransaction,
    InvoicePeriod,
)


def _build(model, **fields):
    """Instantiate a record model, turning validation failures into domain errors."""
    try:
        return model(**fields)
    except ValidationError as e:
        raise LedgerValidationError(str(e)) from e


def split_installments(amount: float, count: int) -> list[float]:
    """Split `amount` into `count` parts; the rounding remainder goes to the first."""
    share = round(amount / count, 2)
    first = round(amount - share * (count - 1), 2)
    return [first] + [share] * (count - 1)


class LedgerRepository:
    """TinyDB-backed ledger shared by every conversation.

    TinyDB storage is not thread-safe, so every public method runs under one
    re-entrant lock.
    """

    def __init__(self, db_path: str = "chatledger.json"):
        self._lock = threading.RLock()
        self.db = TinyDB(db_path)
        self.categories = self.db.table("categories")
        self.cards = self.db.table("cards")
        self.budgets = self.db.table("budgets")
        self.transactions = self.db.table("transactions")
        self.card_transactions = self.db.table("card_transactions")
    def close(self) -> None:
        with self._lock:
            self.db.close()

    # ── Categories ────────────────────────────────────────────────

    def list_categories(self) -> list[Category]:
        with self._lock:
            return [Category(id=doc.doc_id, **doc) for doc in self.categories.all()]

    def find_category_by_name(self, name: str) -> Category | None:
        Cat = Query()
        target = name.strip().lower()
        with self._lock:
            doc = self.categories.get(Cat.name.test(lambda val: val.lower() == target))
        if doc is None:
            return None
        return Category(id=doc.doc_id, **doc)

    def create_category(self, name: str, color: str) -> Category:
        category = _build(Category, name=name, color=color)
        data = category.model_dump(mode="json", exclude={"id"})
        with self._lock:
            category.id = self.categories.insert(data)
        return category

    def get_or_create_category(self, name: str, color: str) -> tuple[Category, bool]:
        """Return the category named `name` (case-insensitive), creating it if needed.

        The second element tells whether the category was created.
        """
        with self._lock:
            category = self.find_category_by_name(name)
            if category is not None:
                return category, False
            return self.create_category(name, color), True

    # ── Cards ─────────────────────────────────────────────────────

    def add_card(self, card: Card) -> Card:
        if card.current_limit is None:
            card.current_limit = card.limit
        data = card.model_dump(mode="json", exclude={"id"})
        with self._lock:
            card.id = self.cards.insert(data)
        return card

    def list_cards(self) -> list[Card]:
        with self._lock:
            return [Card(id=doc.doc_id, **doc) for doc in self.cards.all()]

    def get_card(self, id: int) -> Card | None:
        with self._lock:
            doc = self.cards.get(doc_id=id)
        if doc is None:
            return None
        return Card(id=doc.doc_id, **doc)

    def find_card_by_name(self, fragment: str) -> list[Card]:
        """Cards whose name contains `fragment`, or is contained in it.

        Matching is case-insensitive and also checks the issuing bank.
        """
        needle = fragment.strip().lower()
        if not needle:
            return []
        matches = []
        for card in self.list_cards():
            name = card.name.strip().lower()
            bank = card.issuing_bank.strip().lower()
            if needle in name or name in needle or needle in bank:
                matches.append(card)
        return matches

    # ── Budgets ───────────────────────────────────────────────────

    def add_budget(self, budget: Budget) -> Budget:
        data = budget.model_dump(mode="json", exclude={"id"})
        with self._lock:
            budget.id = self.budgets.insert(data)
        return budget

    def list_budgets(self, month: int, year: int) -> list[Budget]:
        B = Query()
        with self._lock:
            docs = self.budgets.search((B.month == month) & (B.year == year))
        return [Budget(id=doc.doc_id, **doc) for doc in docs]

    # ── Transactions ──────────────────────────────────────────────

    def add_transaction(self, transaction: FinancialTransaction) -> FinancialTransaction:
        data = transaction.model_dump(mode="json", exclude={"id"})
        with self._lock:
            transaction.id = self.transactions.insert(data)
        return transaction

    def create_expense(
        self,
        description: str,
        amount: float,
        due_date: date,
        category_id: int,
        is_paid: bool = False,
    ) -> FinancialTransaction:
        transaction = _build(
            FinancialTransaction,
            description=description,
            amount=amount,
            due_date=due_date,
            type="expense",
            category_id=category_id,
            is_paid=is_paid,
        )
        with self._lock:
            if self.categories.get(doc_id=category_id) is None:
                raise LedgerValidationError(f"Category {category_id} does not exist")
            return self.add_transaction(transaction)

    def list_transactions(self, month: int, year: int) -> list[FinancialTransaction]:
        """Transactions whose due date falls in the given month."""
        prefix = f"{year:04d}-{month:02d}-"
        T = Query()
        with self._lock:
            docs = self.transactions.search(T.due_date.test(lambda val: val.startswith(prefix)))
        return [FinancialTransaction(id=doc.doc_id, **doc) for doc in docs]

    # ── Card transactions ─────────────────────────────────────────

    def create_card_transaction(
        self,
        card_id: int,
        description: str,
        amount: float,
        date: date,
        installment_count: int,
        invoice_year: int,
        invoice_month: int,
    ) -> list[CardTransaction]:
        """Record a card purchase, one document per installment.

        Installment i (1-based) is billed to the invoice i - 1 months after
        the given one. The card's available limit is reduced by the total.
        """
        if installment_count < 1:
            raise LedgerValidationError("installment_count must be at least 1")
        if amount <= 0:
            raise LedgerValidationError("amount must be greater than zero")

        first_period = _build(InvoicePeriod, year=invoice_year, month=invoice_month)
        created = []
        for index, share in enumerate(split_installments(amount, installment_count)):
            period = shift_invoice_period(first_period, index)
            created.append(
                _build(
                    CardTransaction,
                    card_id=card_id,
                    description=description,
                    amount=share,
                    date=date,
                    installment=f"{index + 1}/{installment_count}",
                    invoice_year=period.year,
                    invoice_month=period.month,
                )
            )

        # The limit read and its update must not interleave with another purchase.
        with self._lock:
            card_doc = self.cards.get(doc_id=card_id)
            if card_doc is None:
                raise LedgerValidationError(f"Card {card_id} does not exist")

            for transaction in created:
                data = transaction.model_dump(mode="json", exclude={"id"})
                transaction.id = self.card_transactions.insert(data)

            current_limit = card_doc.get("current_limit", card_doc["limit"])
            self.cards.update(
                {"current_limit": round(current_limit - amount, 2)}, doc_ids=[card_id]
            )
        return created

    def list_card_transactions(self, card_id: int | None = None) -> list[CardTransaction]:
        with self._lock:
            if card_id is None:
                docs = self.card_transactions.all()
            else:
                CT = Query()
                docs = self.card_transactions.search(CT.card_id == card_id)
        return [CardTransaction(id=doc.doc_id, **doc) for doc in docs]
