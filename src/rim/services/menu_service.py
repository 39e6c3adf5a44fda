from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Callable, Iterable, Optional

from rim.domain.conversion import ensure_compatible, to_base
from rim.domain.errors import NotFoundError, ValidationError
from rim.domain.models import MenuItem, RecipeLine
from rim.domain.stock import CONSUMPTION, StockTransaction, evaluate_change, with_committed_balances
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry
from rim.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("rim.stock")


class MenuService:
    def __init__(
        self,
        repo,
        units: UnitRegistry = DEFAULT_REGISTRY,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.units = units
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def add_menu_item(self, name: str, category: str, price: float, recipe: Iterable[dict]) -> str:
        """
        recipe: [{ingredient_id, quantity, unit}] per single serving.
        The unit defaults to the ingredient's base unit.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Menu item name is required.")
        if float(price) < 0:
            raise ValidationError("Price must be >= 0.")

        per_ingredient: dict[str, float] = defaultdict(float)
        for line in recipe:
            ing = self.repo.get_ingredient_by_id(str(line.get("ingredient_id", "")))
            if not ing:
                raise NotFoundError("Ingredient not found.")
            qty = float(line.get("quantity", 0))
            if not math.isfinite(qty) or qty <= 0:
                raise ValidationError("Recipe quantity must be > 0.")
            unit = str(line.get("unit") or ing.unit)
            ensure_compatible(unit, ing.unit, self.units)
            per_ingredient[ing.id] += to_base(qty, unit, self.units)

        if not per_ingredient:
            raise ValidationError("Recipe must have at least one ingredient.")
        lines = [RecipeLine(ingredient_id=k, quantity_used=v) for k, v in per_ingredient.items()]
        return self.repo.add_menu_item(name, (category or "").strip(), float(price), lines)

    def get_menu_item(self, menu_item_id: str) -> MenuItem:
        item = self.repo.get_menu_item(menu_item_id)
        if not item:
            raise NotFoundError("Menu item not found.")
        return item

    def list_menu_items(self) -> list[MenuItem]:
        return self.repo.list_menu_items()

    def recipe(self, menu_item_id: str) -> list[RecipeLine]:
        return self.repo.recipe_for(menu_item_id)

    def recipe_cost(self, menu_item_id: str) -> float:
        total = 0.0
        for line in self.repo.recipe_for(menu_item_id):
            ing = self.repo.get_ingredient_by_id(line.ingredient_id)
            if ing:
                total += line.quantity_used * ing.cost_per_unit
        return total

    def record_order(self, lines: Iterable[dict], actor_id: str, notes: Optional[str] = None) -> list[StockTransaction]:
        """
        lines: [{menu_item_id, servings}]

        Consumes the recipe ingredients of every line in one transaction.
        Usage is summed per ingredient first, so two dishes sharing an
        ingredient can not oversell it.
        """
        lines = list(lines)
        if not lines:
            raise ValidationError("Order is empty.")

        need: dict[str, float] = defaultdict(float)
        labels: list[str] = []
        for line in lines:
            servings = line.get("servings", 1)
            if isinstance(servings, bool) or not isinstance(servings, int) or servings < 1:
                raise ValidationError("Servings must be a whole number >= 1.")
            item = self.get_menu_item(str(line.get("menu_item_id", "")))
            recipe = self.repo.recipe_for(item.id)
            if not recipe:
                raise ValidationError(f"Menu item '{item.name}' has no recipe.")
            for r in recipe:
                need[r.ingredient_id] += r.quantity_used * servings
            labels.append(f"{servings} x {item.name}")

        note = notes or "Sold " + ", ".join(labels)
        txs: list[StockTransaction] = []
        for ingredient_id, amount in need.items():
            record = self.repo.get_stock(ingredient_id)
            current = float(record.quantity) if record else 0.0
            txs.append(evaluate_change(ingredient_id, -amount, current, CONSUMPTION, actor_id, notes=note))

        with self.uow_factory() as uow:
            committed = uow.commit_stock_batch(txs, reference_type="menu_order")
        txs = with_committed_balances(txs, committed)
        log.info("menu_order_recorded lines=%s ingredients=%s actor=%s", len(lines), len(txs), actor_id)
        return txs

    def record_sale(self, menu_item_id: str, servings: int, actor_id: str) -> list[StockTransaction]:
        return self.record_order([{"menu_item_id": menu_item_id, "servings": servings}], actor_id)
