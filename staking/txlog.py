from collections import defaultdict

from .models import Transaction


class TransactionLog:
    def __init__(self):
        self._entries: dict[str, list[Transaction]] = defaultdict(list)

    def append(self, user: str, tx: Transaction) -> Transaction:
        self._entries[user].append(tx)
        return tx

    def history(self, user: str) -> tuple[Transaction, ...]:
        return tuple(self._entries.get(user, ()))

    def count(self, user: str) -> int:
        return len(self._entries.get(user, ()))
