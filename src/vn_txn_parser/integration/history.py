import threading
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from vn_txn_parser.models import Direction


class HistoricalTransaction(BaseModel):
    category_id: str
    io: Direction
    amount: int
    occurred_at: datetime


class TransactionHistory(Protocol):
    """Read-only view of the host application's recorded transactions."""

    def category_counts(self, since: datetime, direction: Direction | None = None) -> dict[str, int]: ...


class InMemoryTransactionHistory:
    def __init__(self, transactions: Iterable[HistoricalTransaction] = ()) -> None:
        self._transactions = list(transactions)
        self._lock = threading.Lock()

    def add(self, transaction: HistoricalTransaction) -> None:
        with self._lock:
            self._transactions.append(transaction)

    def category_counts(self, since: datetime, direction: Direction | None = None) -> dict[str, int]:
        with self._lock:
            snapshot = list(self._transactions)
        counts = Counter(
            t.category_id
            for t in snapshot
            if t.occurred_at >= since and (direction is None or t.io is direction)
        )
        return dict(counts)
