from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from rim.domain.models import Ingredient, StockLogEntry, StockRecord


class StockRepository(Protocol):
    def get_ingredient_by_id(self, ingredient_id: str) -> Optional[Ingredient]: ...
    def list_ingredients(self) -> list[Ingredient]: ...
    def get_stock(self, ingredient_id: str) -> Optional[StockRecord]: ...
    def list_stock(self) -> dict[str, StockRecord]: ...
    def list_stock_logs(self, ingredient_id: Optional[str] = None, limit: int = 50) -> list[StockLogEntry]: ...
    def list_stock_logs_between(self, start: datetime, end: datetime) -> list[StockLogEntry]: ...
    def apply_stock_change(self, entry: StockLogEntry, reference_type: Optional[str] = None, reference_id: Optional[str] = None) -> float: ...
    def apply_stock_batch(self, entries: Iterable[StockLogEntry], reference_type: Optional[str] = None, reference_id: Optional[str] = None) -> list[float]: ...
