from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Optional

from rim.domain.errors import InsufficientStockError, InvalidChangeAmountError, ValidationError
from rim.domain.models import StockLogEntry

PURCHASE = "purchase"
CONSUMPTION = "consumption"
WASTE = "waste"
EXPIRED = "expired"
ADJUSTMENT = "adjustment"
CORRECTION = "correction"
REASONS = (PURCHASE, CONSUMPTION, WASTE, EXPIRED, ADJUSTMENT, CORRECTION)

OUT_OF_STOCK = "out_of_stock"
LOW = "low"
GOOD = "good"


@dataclass(frozen=True)
class StockTransaction:
    ingredient_id: str
    previous_quantity: float
    new_quantity: float
    entry: StockLogEntry


def validate_change_amount(value: object) -> float:
    if isinstance(value, bool):
        raise InvalidChangeAmountError(value)
    try:
        amount = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidChangeAmountError(value) from None
    if not math.isfinite(amount) or amount == 0:
        raise InvalidChangeAmountError(value)
    return amount


def evaluate_change(
    ingredient_id: str,
    change_amount: float,
    current_quantity: float,
    reason: str,
    actor_id: str,
    *,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StockTransaction:
    """
    Computes the balance after applying ``change_amount`` (base units, signed)
    and the log entry that records it. Nothing is persisted here; the caller
    commits ``entry`` and ``new_quantity`` together or not at all.
    """
    amount = validate_change_amount(change_amount)
    if not ingredient_id:
        raise ValidationError("Ingredient is required.")
    if reason not in REASONS:
        raise ValidationError(f"Reason must be one of {', '.join(REASONS)}. Received: {reason!r}")
    if not actor_id or not str(actor_id).strip():
        raise ValidationError("Actor is required.")

    current = float(current_quantity)
    if not math.isfinite(current) or current < 0:
        raise ValidationError(f"Current stock must be a finite value >= 0. Received: {current_quantity!r}")

    new_quantity = current + amount
    if new_quantity < 0:
        raise InsufficientStockError(str(ingredient_id), current, amount)

    entry = StockLogEntry(
        ingredient_id=str(ingredient_id),
        change_amount=amount,
        reason=reason,
        user_id=str(actor_id).strip(),
        created_at=now or datetime.now().replace(microsecond=0),
        notes=notes,
        stock_after=new_quantity,
    )
    return StockTransaction(str(ingredient_id), current, new_quantity, entry)


def replay_balance(baseline: float, entries: Iterable[StockLogEntry]) -> float:
    return float(baseline) + sum(float(e.change_amount) for e in entries)


def classify_stock(quantity: float, min_level: Optional[float], max_level: Optional[float] = None) -> str:
    # max_level is only used for reorder sizing
    q = float(quantity or 0)
    if q <= 0:
        return OUT_OF_STOCK
    if min_level and q <= float(min_level):
        return LOW
    return GOOD


def reorder_quantity(quantity: float, min_level: Optional[float], max_level: Optional[float]) -> float:
    if classify_stock(quantity, min_level, max_level) == GOOD or not max_level:
        return 0.0
    return max(float(max_level) - max(float(quantity), 0.0), 0.0)


def with_committed_balances(txs: Iterable[StockTransaction], balances: Iterable[float]) -> list[StockTransaction]:
    """Replaces evaluated balances with the ones storage actually committed."""
    return [
        replace(tx, new_quantity=float(b), entry=replace(tx.entry, stock_after=float(b)))
        for tx, b in zip(txs, balances)
    ]
