from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional

from rim.domain.conversion import Quantity, ensure_compatible
from rim.domain.errors import NotFoundError, ValidationError
from rim.domain.models import Ingredient, StockLogEntry
from rim.domain.stock import (
    ADJUSTMENT,
    CONSUMPTION,
    CORRECTION,
    EXPIRED,
    PURCHASE,
    WASTE,
    StockTransaction,
    evaluate_change,
    validate_change_amount,
)
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry
from rim.repositories.contracts import StockRepository
from rim.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("rim.stock")

USAGE_REASONS = (CONSUMPTION, WASTE, EXPIRED, ADJUSTMENT, CORRECTION)


class StockService:
    def __init__(
        self,
        repo: StockRepository,
        units: UnitRegistry = DEFAULT_REGISTRY,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.units = units
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def _ingredient(self, ingredient_id: str) -> Ingredient:
        ing = self.repo.get_ingredient_by_id(ingredient_id)
        if not ing:
            raise NotFoundError("Ingredient not found.")
        return ing

    def to_base(self, ingredient: Ingredient, amount: float, unit: str) -> float:
        validate_change_amount(amount)
        qty = Quantity(amount, unit)
        ensure_compatible(qty.unit, ingredient.unit, self.units)
        return qty.to_base(self.units)

    def current_quantity(self, ingredient_id: str) -> float:
        record = self.repo.get_stock(ingredient_id)
        return float(record.quantity) if record else 0.0

    def apply_change(
        self,
        ingredient_id: str,
        change_amount: float,
        reason: str,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> StockTransaction:
        """
        change_amount is signed and already in base units.
        Raises InsufficientStockError without touching storage when the
        balance would go below zero.
        """
        self._ingredient(ingredient_id)
        tx = evaluate_change(
            ingredient_id,
            change_amount,
            self.current_quantity(ingredient_id),
            reason,
            actor_id,
            notes=notes,
        )
        with self.uow_factory() as uow:
            stock_after = uow.commit_stock_change(tx)
        log.info(
            "stock_changed ingredient_id=%s delta=%s reason=%s stock_after=%s actor=%s",
            ingredient_id, tx.entry.change_amount, reason, stock_after, tx.entry.user_id,
        )
        return replace(tx, new_quantity=stock_after, entry=replace(tx.entry, stock_after=stock_after))

    def add_stock(
        self,
        ingredient_id: str,
        amount: float,
        unit: str,
        actor_id: str,
        notes: Optional[str] = None,
    ) -> StockTransaction:
        ing = self._ingredient(ingredient_id)
        return self.apply_change(ing.id, self.to_base(ing, amount, unit), PURCHASE, actor_id, notes)

    def use_stock(
        self,
        ingredient_id: str,
        amount: float,
        unit: str,
        actor_id: str,
        reason: str = CONSUMPTION,
        notes: Optional[str] = None,
    ) -> StockTransaction:
        if reason not in USAGE_REASONS:
            raise ValidationError(f"Usage reason must be one of {', '.join(USAGE_REASONS)}.")
        ing = self._ingredient(ingredient_id)
        return self.apply_change(ing.id, -self.to_base(ing, amount, unit), reason, actor_id, notes)

    def adjust_stock(
        self,
        ingredient_id: str,
        change: float,
        unit: str,
        actor_id: str,
        reason: str = ADJUSTMENT,
        notes: Optional[str] = None,
    ) -> StockTransaction:
        if reason not in (ADJUSTMENT, CORRECTION):
            raise ValidationError("Adjustments must use reason 'adjustment' or 'correction'.")
        ing = self._ingredient(ingredient_id)
        signed = validate_change_amount(change)
        base = self.to_base(ing, abs(signed), unit)
        return self.apply_change(ing.id, base if signed > 0 else -base, reason, actor_id, notes)

    def stock_logs(self, ingredient_id: Optional[str] = None, limit: int = 50) -> list[StockLogEntry]:
        return self.repo.list_stock_logs(ingredient_id, limit)
