from datetime import date, datetime

import pytest

from rim.domain.errors import ValidationError
from rim.domain.models import Ingredient, StockLogEntry
from rim.domain.reports import daily_activity, reason_breakdown, top_consumption


def entry(ingredient_id: str, change: float, reason: str, when: datetime) -> StockLogEntry:
    return StockLogEntry(ingredient_id=ingredient_id, change_amount=change, reason=reason, user_id="u1", created_at=when)


def ingredient(iid: str, name: str, cost: float) -> Ingredient:
    return Ingredient(
        id=iid, name=name, unit="g", cost_per_unit=cost, min_stock_level=0, max_stock_level=None, supplier_id=None
    )


def test_daily_activity_zero_fills_gaps():
    entries = [
        entry("a", 1000, "purchase", datetime(2024, 5, 1, 8)),
        entry("a", -200, "consumption", datetime(2024, 5, 1, 12)),
        entry("a", -50, "waste", datetime(2024, 5, 3, 22)),
    ]

    series = daily_activity(entries, date(2024, 5, 1), date(2024, 5, 3))

    assert [p.day for p in series] == [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3)]
    assert (series[0].added, series[0].removed) == (1000, 200)
    assert (series[1].added, series[1].removed) == (0, 0)
    assert (series[2].added, series[2].removed) == (0, 50)


def test_daily_activity_ignores_entries_outside_window():
    entries = [entry("a", 10, "purchase", datetime(2024, 4, 30, 23, 59)), entry("a", 5, "purchase", datetime(2024, 5, 2))]
    series = daily_activity(entries, date(2024, 5, 1), date(2024, 5, 1))
    assert len(series) == 1
    assert series[0].added == 0


def test_daily_activity_rejects_inverted_window():
    with pytest.raises(ValidationError):
        daily_activity([], date(2024, 5, 3), date(2024, 5, 1))


def test_top_consumption_excludes_losses_and_breaks_ties_by_id():
    when = datetime(2024, 5, 1, 10)
    catalog = {"b": ingredient("b", "Butter", 0.01), "a": ingredient("a", "Flour", 0.002)}
    entries = [
        entry("b", -300, "consumption", when),
        entry("a", -300, "consumption", when),
        entry("c", -100, "consumption", when),
        entry("a", -999, "waste", when),
        entry("b", -999, "expired", when),
        entry("a", 5000, "purchase", when),
    ]

    ranked = top_consumption(entries, catalog, limit=5)

    assert [r.ingredient_id for r in ranked] == ["a", "b", "c"]
    assert ranked[0].total == 300
    assert ranked[0].value == pytest.approx(0.6)
    assert ranked[2].name == "Unknown"
    assert ranked[2].value == 0


def test_top_consumption_truncates_to_limit():
    when = datetime(2024, 5, 1)
    entries = [entry(str(i), -(i + 1), "consumption", when) for i in range(8)]
    ranked = top_consumption(entries, {}, limit=3)
    assert [r.ingredient_id for r in ranked] == ["7", "6", "5"]


def test_reason_breakdown_buckets_and_omits_empty():
    when = datetime(2024, 5, 1)
    entries = [
        entry("a", -100, "consumption", when),
        entry("a", -20, "correction", when),
        entry("a", -5, "adjustment", when),
        entry("a", -7, "expired", when),
        entry("a", 500, "purchase", when),
        entry("a", 30, "correction", when),
    ]

    totals = {r.reason: r.total for r in reason_breakdown(entries)}

    assert totals == {"consumption": 100, "expired": 7, "adjustment": 25}
