from collections.abc import Iterable
from typing import Protocol

from envelope_categorizer.models import Transaction


class TransactionHistoryProvider(Protocol):
    def fetch_transactions(self) -> list[Transaction]:
        """Return every transaction the classifiers should learn from."""
        ...


class InMemoryHistoryProvider:
    def __init__(self, transactions: Iterable[Transaction] | None = None) -> None:
        self.transactions: list[Transaction] = list(transactions or [])

    def add(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)

    def extend(self, transactions: Iterable[Transaction]) -> None:
        self.transactions.extend(transactions)

    def fetch_transactions(self) -> list[Transaction]:
        return list(self.transactions)
