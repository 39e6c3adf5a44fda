from __future__ import annotations

import logging
from typing import Optional

from rim.domain.conversion import format_for_display
from rim.domain.errors import NotFoundError, ValidationError
from rim.domain.models import Ingredient, InventoryItem
from rim.domain.stock import ADJUSTMENT, GOOD, classify_stock, evaluate_change, reorder_quantity
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry

log = logging.getLogger(__name__)

SYNC_TOLERANCE = 1e-6

# update_ingredient default meaning "leave max_stock_level as it is"
KEEP = object()


class InventoryService:
    def __init__(self, repo, units: UnitRegistry = DEFAULT_REGISTRY):
        self.repo = repo
        self.units = units

    def _validate_levels(self, cost: float, min_level: float, max_level: Optional[float]) -> None:
        if cost < 0:
            raise ValidationError("Cost per unit must be >= 0.")
        if min_level < 0:
            raise ValidationError("Min stock level must be >= 0.")
        if max_level is not None and max_level < min_level:
            raise ValidationError("Max stock level must be >= min stock level.")

    def _require_supplier(self, supplier_id: Optional[str]) -> None:
        if supplier_id and not self.repo.get_supplier_by_id(supplier_id):
            raise NotFoundError("Supplier not found.")

    def list_ingredients(self) -> list[Ingredient]:
        return self.repo.list_ingredients()

    def catalog(self) -> dict[str, Ingredient]:
        return {ing.id: ing for ing in self.repo.list_ingredients()}

    def get_ingredient(self, ingredient_id: str) -> Ingredient:
        ing = self.repo.get_ingredient_by_id(ingredient_id)
        if not ing:
            raise NotFoundError("Ingredient not found.")
        return ing

    def add_ingredient(
        self,
        name: str,
        unit: str,
        cost_per_unit: float,
        min_stock_level: float = 0,
        max_stock_level: Optional[float] = None,
        supplier_id: Optional[str] = None,
        category: Optional[str] = None,
        initial_quantity: float = 0,
        actor_id: str = "system",
    ) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required.")
        definition = self.units.lookup(unit)
        if definition.symbol != self.units.base_unit(definition.type).symbol:
            raise ValidationError(
                f"Ingredients are stored in base units. Use {self.units.base_unit(definition.type).symbol} instead of {unit}."
            )
        self._validate_levels(float(cost_per_unit), float(min_stock_level), max_stock_level)
        if initial_quantity < 0:
            raise ValidationError("Initial quantity must be >= 0.")
        self._require_supplier(supplier_id)

        ingredient_id = self.repo.add_ingredient(
            name,
            definition.symbol,
            float(cost_per_unit),
            float(min_stock_level),
            (float(max_stock_level) if max_stock_level is not None else None),
            supplier_id,
            category,
        )
        if initial_quantity > 0:
            # opening balance goes through the log so replaying it reconstructs stock
            tx = evaluate_change(ingredient_id, float(initial_quantity), 0.0, ADJUSTMENT, actor_id, notes="Opening stock")
            self.repo.apply_stock_change(tx.entry)
        log.info("ingredient_created id=%s name=%s unit=%s initial=%s", ingredient_id, name, definition.symbol, initial_quantity)
        return ingredient_id

    def update_ingredient(
        self,
        ingredient_id: str,
        name: Optional[str] = None,
        cost_per_unit: Optional[float] = None,
        min_stock_level: Optional[float] = None,
        max_stock_level: Optional[float] | object = KEEP,
        supplier_id: Optional[str] = None,
        category: Optional[str] = None,
    ) -> None:
        """None leaves a field unchanged, except max_stock_level where None clears it."""
        current = self.get_ingredient(ingredient_id)
        new_name = (name if name is not None else current.name).strip()
        if not new_name:
            raise ValidationError("Name is required.")
        cost = float(cost_per_unit) if cost_per_unit is not None else current.cost_per_unit
        min_level = float(min_stock_level) if min_stock_level is not None else current.min_stock_level
        if max_stock_level is KEEP:
            max_level = current.max_stock_level
        else:
            max_level = float(max_stock_level) if max_stock_level is not None else None
        self._validate_levels(cost, min_level, max_level)
        self._require_supplier(supplier_id)

        updated = self.repo.update_ingredient(
            ingredient_id,
            new_name,
            cost,
            min_level,
            max_level,
            supplier_id if supplier_id is not None else current.supplier_id,
            category if category is not None else current.category,
        )
        if not updated:
            raise NotFoundError("Ingredient not found.")

    def deactivate_ingredient(self, ingredient_id: str) -> None:
        if not self.repo.deactivate_ingredient(ingredient_id):
            raise NotFoundError("Ingredient not found.")

    def inventory_with_status(self) -> list[InventoryItem]:
        stock = self.repo.list_stock()
        out: list[InventoryItem] = []
        for ing in self.repo.list_ingredients():
            record = stock.get(ing.id)
            quantity = float(record.quantity) if record else 0.0
            out.append(
                InventoryItem(
                    ingredient=ing,
                    quantity=quantity,
                    status=classify_stock(quantity, ing.min_stock_level, ing.max_stock_level),
                    display=format_for_display(quantity, self.units.lookup(ing.unit).type, self.units),
                    last_updated=record.last_updated if record else None,
                )
            )
        return out

    def low_stock(self, limit: int = 10) -> list[tuple[InventoryItem, float]]:
        """Items that are low or out, worst shortfall first, with the amount needed to reach max."""
        if int(limit) < 1:
            raise ValidationError("Limit must be >= 1.")
        items = [it for it in self.inventory_with_status() if it.status != GOOD]
        items.sort(key=lambda it: (it.quantity - it.ingredient.min_stock_level, it.ingredient.name))
        return [
            (it, reorder_quantity(it.quantity, it.ingredient.min_stock_level, it.ingredient.max_stock_level))
            for it in items[: int(limit)]
        ]

    def total_inventory_value(self) -> float:
        return sum(it.value for it in self.inventory_with_status())

    def check_stock_sync(self) -> list[tuple[str, float, float]]:
        """Returns (ingredient_id, stored, replayed) for every balance that disagrees with its log."""
        totals = self.repo.ledger_totals()
        stock = self.repo.list_stock()
        mismatches: list[tuple[str, float, float]] = []
        for ingredient_id in sorted(set(totals) | set(stock)):
            stored = float(stock[ingredient_id].quantity) if ingredient_id in stock else 0.0
            replayed = float(totals.get(ingredient_id, 0.0))
            if abs(stored - replayed) > SYNC_TOLERANCE:
                mismatches.append((ingredient_id, stored, replayed))
        if mismatches:
            log.warning("stock_sync_mismatch count=%s", len(mismatches))
        return mismatches
