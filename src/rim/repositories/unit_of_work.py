from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from rim.domain.models import StockLogEntry
from rim.domain.stock import StockTransaction


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def commit_stock_change(self, tx: StockTransaction) -> float: ...
    def commit_stock_batch(self, txs: Iterable[StockTransaction], reference_type: Optional[str] = None, reference_id: Optional[str] = None) -> list[float]: ...
    def receive_purchase_order(self, po_id: str, txs: Iterable[StockTransaction]) -> list[float]: ...


def _entries(txs: Iterable[StockTransaction]) -> list[StockLogEntry]:
    return [tx.entry for tx in txs]


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for stock-changing use-cases.

    Each commit maps to a single repository transaction: the log entries and
    the balance increments are written together or not at all.
    """

    repo: object

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def commit_stock_change(self, tx: StockTransaction) -> float:
        return float(self.repo.apply_stock_change(tx.entry))

    def commit_stock_batch(
        self,
        txs: Iterable[StockTransaction],
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> list[float]:
        return list(self.repo.apply_stock_batch(_entries(txs), reference_type=reference_type, reference_id=reference_id))

    def receive_purchase_order(self, po_id: str, txs: Iterable[StockTransaction]) -> list[float]:
        return list(self.repo.receive_purchase_order(po_id, _entries(txs)))
