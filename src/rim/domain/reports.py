from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping

from rim.domain.errors import ValidationError
from rim.domain.models import Ingredient, StockLogEntry
from rim.domain.stock import ADJUSTMENT, CONSUMPTION, CORRECTION, EXPIRED, WASTE

REASON_BUCKETS = (CONSUMPTION, WASTE, EXPIRED, ADJUSTMENT)

# reasons kept out of the consumption ranking
_LOSS_REASONS = {WASTE, EXPIRED}


@dataclass(frozen=True)
class DailyActivity:
    day: date
    added: float
    removed: float


@dataclass(frozen=True)
class ConsumptionRank:
    ingredient_id: str
    name: str
    total: float
    value: float


@dataclass(frozen=True)
class ReasonTotal:
    reason: str
    total: float


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ValidationError(f"Expected a date or datetime. Received: {value!r}")


def _bucket(reason: str) -> str:
    if reason in (WASTE, EXPIRED, ADJUSTMENT):
        return reason
    if reason == CORRECTION:
        return ADJUSTMENT
    return CONSUMPTION


def daily_activity(entries: Iterable[StockLogEntry], start: date | datetime, end: date | datetime) -> list[DailyActivity]:
    first = _as_day(start)
    last = _as_day(end)
    if last < first:
        raise ValidationError("Report window end must not be before its start.")

    added: dict[date, float] = defaultdict(float)
    removed: dict[date, float] = defaultdict(float)
    for e in entries:
        day = _as_day(e.created_at)
        if day < first or day > last:
            continue
        amount = float(e.change_amount)
        if amount > 0:
            added[day] += amount
        elif amount < 0:
            removed[day] += -amount

    out: list[DailyActivity] = []
    day = first
    while day <= last:
        out.append(DailyActivity(day=day, added=added.get(day, 0.0), removed=removed.get(day, 0.0)))
        day += timedelta(days=1)
    return out


def top_consumption(
    entries: Iterable[StockLogEntry],
    catalog: Mapping[str, Ingredient],
    limit: int = 5,
) -> list[ConsumptionRank]:
    totals: dict[str, float] = defaultdict(float)
    for e in entries:
        amount = float(e.change_amount)
        if amount < 0 and e.reason not in _LOSS_REASONS:
            totals[e.ingredient_id] += -amount

    ranked = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))[: max(int(limit), 0)]
    out: list[ConsumptionRank] = []
    for ingredient_id, total in ranked:
        ing = catalog.get(ingredient_id)
        out.append(
            ConsumptionRank(
                ingredient_id=ingredient_id,
                name=ing.name if ing else "Unknown",
                total=total,
                value=total * float(ing.cost_per_unit) if ing else 0.0,
            )
        )
    return out


def reason_breakdown(entries: Iterable[StockLogEntry]) -> list[ReasonTotal]:
    totals: dict[str, float] = defaultdict(float)
    for e in entries:
        amount = float(e.change_amount)
        if amount < 0:
            totals[_bucket(e.reason)] += -amount
    return [ReasonTotal(reason=r, total=totals[r]) for r in REASON_BUCKETS if totals.get(r, 0.0) > 0]
