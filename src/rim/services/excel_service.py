from __future__ import annotations

import logging
import math

from openpyxl import load_workbook

from rim.domain.conversion import ensure_compatible
from rim.domain.errors import AppError, ValidationError
from rim.services.inventory_service import KEEP

log = logging.getLogger(__name__)

REQUIRED_HEADERS = ["name", "unit", "cost_per_unit", "min_stock_level", "max_stock_level", "restock_amount", "restock_unit"]


class ExcelService:
    def __init__(self, repo, inventory_service, stock_service):
        self.repo = repo
        self.inventory = inventory_service
        self.stock = stock_service

    def import_restock_excel(self, path: str, actor_id: str) -> tuple[int, int]:
        """
        Excel represents RESTOCK (amount to add), not absolute stock.
        Headers:
          name | unit | cost_per_unit | min_stock_level | max_stock_level | restock_amount | restock_unit
        unit is the ingredient's base unit (g, mL, piece); restock_unit may be any
        unit of the same type (kg, sack_25kg, L, dozen...).
        """
        wb = load_workbook(path)
        ws = wb.active

        headers = {}
        for col in range(1, ws.max_column + 1):
            v = ws.cell(row=1, column=col).value
            if isinstance(v, str):
                headers[v.strip().lower()] = col

        for r in REQUIRED_HEADERS:
            if r not in headers:
                raise ValidationError(f"Missing column header: {r}")

        ok = 0
        skipped = 0

        for row in range(2, ws.max_row + 1):
            def cell(key: str):
                return ws.cell(row=row, column=headers[key]).value

            try:
                name = cell("name")
                unit = cell("unit")
                cost = cell("cost_per_unit")
                min_level = cell("min_stock_level")
                max_level = cell("max_stock_level")
                restock = cell("restock_amount")
                restock_unit = cell("restock_unit") or unit

                if not name or not unit or cost is None:
                    skipped += 1
                    continue

                name = str(name).strip()
                unit = str(unit).strip()
                cost = float(cost)
                min_level = float(min_level) if min_level is not None else 0.0
                max_level = float(max_level) if max_level not in (None, "") else None
                restock = float(restock) if restock not in (None, "") else 0.0

                restock_unit = str(restock_unit).strip()
                if not math.isfinite(restock) or restock < 0:
                    skipped += 1
                    continue

                existing = self.repo.get_ingredient_by_name(name)
                if restock > 0:
                    # checked up front so a bad restock leaves the catalog untouched
                    ensure_compatible(restock_unit, existing.unit if existing else unit, self.stock.units)
                if existing:
                    # catalog fields only; stock changes go through the log
                    self.inventory.update_ingredient(
                        existing.id,
                        cost_per_unit=cost,
                        min_stock_level=min_level,
                        max_stock_level=max_level if max_level is not None else KEEP,
                    )
                    ingredient_id = existing.id
                else:
                    ingredient_id = self.inventory.add_ingredient(
                        name, unit, cost, min_level, max_level, actor_id=actor_id
                    )

                if restock > 0:
                    self.stock.add_stock(
                        ingredient_id,
                        restock,
                        restock_unit,
                        actor_id,
                        notes=f"Excel restock (+{restock:g} {restock_unit}) for {name}",
                    )
                ok += 1
            except (AppError, TypeError, ValueError) as e:
                log.warning("Excel import skipped row %s: %s", row, e)
                skipped += 1

        return ok, skipped
