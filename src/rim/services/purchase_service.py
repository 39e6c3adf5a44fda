from __future__ import annotations

import logging
import math
import secrets
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from rim.domain.conversion import ensure_compatible, to_base
from rim.domain.errors import DuplicatePoNumberError, NotFoundError, PartialBatchFailureError, ValidationError
from rim.domain.models import PurchaseOrder, PurchaseOrderItem
from rim.domain.stock import PURCHASE, StockTransaction, evaluate_change, with_committed_balances
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry
from rim.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("rim.stock")

PO_STATUSES = ("pending", "approved", "received", "cancelled")
PO_NUMBER_ATTEMPTS = 5


def generate_po_number(today: date | None = None) -> str:
    """PO-YYYYMMDD-XXXX"""
    d = today or date.today()
    return f"PO-{d.strftime('%Y%m%d')}-{1000 + secrets.randbelow(9000)}"


class PurchaseService:
    def __init__(
        self,
        repo,
        units: UnitRegistry = DEFAULT_REGISTRY,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        po_number_factory: Callable[[], str] | None = None,
    ):
        self.repo = repo
        self.units = units
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))
        self.po_number_factory = po_number_factory or generate_po_number

    def create_purchase_order(
        self,
        supplier_id: str,
        items: Iterable[dict],
        expected_delivery_date: Optional[date] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
        recommended_by_ai: bool = False,
    ) -> str:
        """
        items: [{ingredient_id, quantity, unit, cost_per_unit}]

        quantity/cost are in the ordered unit (e.g. 2 sack_25kg at 40.0 each).
        """
        items = list(items)
        if not items:
            raise ValidationError("Purchase order has no items.")
        if not self.repo.get_supplier_by_id(supplier_id):
            raise NotFoundError("Supplier not found.")

        clean: list[dict] = []
        for it in items:
            try:
                qty = float(it["quantity"])
                cost = float(it["cost_per_unit"])
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"Invalid purchase order line: {it!r}") from e
            if not math.isfinite(qty) or qty <= 0:
                raise ValidationError("Quantity must be > 0.")
            if not math.isfinite(cost) or cost < 0:
                raise ValidationError("Cost per unit must be >= 0.")
            ing = self.repo.get_ingredient_by_id(str(it.get("ingredient_id", "")))
            if not ing:
                raise NotFoundError("Ingredient not found.")
            unit = str(it.get("unit") or ing.unit)
            ensure_compatible(unit, ing.unit, self.units)
            clean.append({"ingredient_id": ing.id, "quantity": qty, "unit": unit, "cost_per_unit": cost})

        po_id = None
        for attempt in range(1, PO_NUMBER_ATTEMPTS + 1):
            try:
                po_id = self.repo.create_purchase_order_with_items(
                    po_number=self.po_number_factory(),
                    supplier_id=supplier_id,
                    expected_delivery_date=expected_delivery_date,
                    notes=notes,
                    items=clean,
                    created_by=actor_id,
                    recommended_by_ai=recommended_by_ai,
                )
                break
            except DuplicatePoNumberError as e:
                log.warning("po_number_collision number=%s attempt=%s", e.po_number, attempt)
        if po_id is None:
            raise ValidationError(f"Could not allocate a unique purchase order number after {PO_NUMBER_ATTEMPTS} attempts.")
        log.info("purchase_order_created id=%s supplier=%s items=%s actor=%s", po_id, supplier_id, len(clean), actor_id)
        return po_id

    def get_purchase_order(self, po_id: str) -> PurchaseOrder:
        po = self.repo.get_purchase_order(po_id)
        if not po:
            raise NotFoundError("Purchase order not found.")
        return po

    def list_purchase_orders(self, status: Optional[str] = None, supplier_id: Optional[str] = None) -> list[PurchaseOrder]:
        if status is not None and status not in PO_STATUSES:
            raise ValidationError(f"Unknown purchase order status: {status}")
        return self.repo.list_purchase_orders(status, supplier_id)

    def purchase_order_items(self, po_id: str) -> list[PurchaseOrderItem]:
        return self.repo.purchase_order_items(po_id)

    def _transition(self, po_id: str, status: str, allowed_from: tuple[str, ...]) -> None:
        po = self.get_purchase_order(po_id)
        if not self.repo.set_purchase_order_status(po_id, status, allowed_from):
            raise ValidationError(f"Purchase order {po.po_number} can not move from '{po.status}' to '{status}'.")

    def approve_purchase_order(self, po_id: str) -> None:
        self._transition(po_id, "approved", ("pending",))

    def cancel_purchase_order(self, po_id: str) -> None:
        self._transition(po_id, "cancelled", ("pending", "approved"))

    def receive_purchase_order(self, po_id: str, actor_id: str) -> list[StockTransaction]:
        """
        Applies one purchase entry per line item as a single transaction.
        Any line whose ingredient no longer exists fails the whole batch and
        the order stays unreceived.
        """
        po = self.get_purchase_order(po_id)
        if po.status not in ("pending", "approved"):
            raise ValidationError(f"Purchase order {po.po_number} is already {po.status}.")
        items = self.repo.purchase_order_items(po_id)
        if not items:
            raise ValidationError(f"Purchase order {po.po_number} has no items.")

        ingredients = {it.ingredient_id: self.repo.get_ingredient_by_id(it.ingredient_id) for it in items}
        missing = [iid for iid, ing in ingredients.items() if ing is None]
        if missing:
            log.warning("purchase_order_receive_failed id=%s missing=%s", po_id, ",".join(missing))
            raise PartialBatchFailureError(missing)

        received_at = datetime.now().replace(microsecond=0)
        running: dict[str, float] = {}
        txs: list[StockTransaction] = []
        for it in items:
            ing = ingredients[it.ingredient_id]
            ensure_compatible(it.unit, ing.unit, self.units)
            if ing.id not in running:
                record = self.repo.get_stock(ing.id)
                running[ing.id] = float(record.quantity) if record else 0.0
            tx = evaluate_change(
                ing.id,
                to_base(it.quantity, it.unit, self.units),
                running[ing.id],
                PURCHASE,
                actor_id,
                notes=f"Received PO #{po.po_number}",
                now=received_at,
            )
            running[ing.id] = tx.new_quantity
            txs.append(tx)

        with self.uow_factory() as uow:
            committed = uow.receive_purchase_order(po_id, txs)
        txs = with_committed_balances(txs, committed)
        log.info("purchase_order_received id=%s po_number=%s lines=%s actor=%s", po_id, po.po_number, len(txs), actor_id)
        return txs
