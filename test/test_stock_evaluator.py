import math
from datetime import datetime

import pytest

from rim.domain.errors import InsufficientStockError, InvalidChangeAmountError, ValidationError
from rim.domain.stock import (
    ADJUSTMENT,
    CONSUMPTION,
    GOOD,
    LOW,
    OUT_OF_STOCK,
    PURCHASE,
    WASTE,
    classify_stock,
    evaluate_change,
    reorder_quantity,
    replay_balance,
)


def test_replaying_accepted_changes_reconstructs_balance():
    baseline = 500.0
    balance = baseline
    entries = []
    for change, reason in [(2000, PURCHASE), (-300, CONSUMPTION), (-45.5, WASTE), (120, ADJUSTMENT), (-900, CONSUMPTION)]:
        tx = evaluate_change("beans", change, balance, reason, "chef-1")
        assert tx.previous_quantity == balance
        balance = tx.new_quantity
        entries.append(tx.entry)

    assert balance == pytest.approx(baseline + sum(e.change_amount for e in entries))
    assert replay_balance(baseline, entries) == pytest.approx(balance)


def test_rejected_change_never_goes_negative():
    with pytest.raises(InsufficientStockError) as exc:
        evaluate_change("beans", -600, 500, CONSUMPTION, "chef-1")

    assert exc.value.ingredient_id == "beans"
    assert exc.value.available == 500
    assert exc.value.requested == -600


def test_change_to_exactly_zero_is_accepted():
    tx = evaluate_change("beans", -500, 500, CONSUMPTION, "chef-1")
    assert tx.new_quantity == 0
    assert tx.entry.stock_after == 0


@pytest.mark.parametrize("bad", [0, 0.0, math.nan, math.inf, -math.inf, True, "abc", None])
def test_invalid_change_amounts(bad):
    with pytest.raises(InvalidChangeAmountError):
        evaluate_change("beans", bad, 100, PURCHASE, "chef-1")


def test_entry_carries_actor_reason_and_time():
    when = datetime(2024, 5, 1, 9, 30)
    tx = evaluate_change("beans", 250, 0, PURCHASE, "  chef-1 ", notes="delivery", now=when)

    assert tx.entry.user_id == "chef-1"
    assert tx.entry.reason == PURCHASE
    assert tx.entry.created_at == when
    assert tx.entry.notes == "delivery"
    assert tx.entry.stock_after == 250


def test_evaluator_requires_reason_actor_and_valid_balance():
    with pytest.raises(ValidationError):
        evaluate_change("beans", 10, 0, "gift", "chef-1")
    with pytest.raises(ValidationError):
        evaluate_change("beans", 10, 0, PURCHASE, "  ")
    with pytest.raises(ValidationError):
        evaluate_change("", 10, 0, PURCHASE, "chef-1")
    with pytest.raises(ValidationError):
        evaluate_change("beans", 10, -1, PURCHASE, "chef-1")


def test_classification_boundaries():
    assert classify_stock(0, 10, 100) == OUT_OF_STOCK
    assert classify_stock(10, 10, 100) == LOW
    assert classify_stock(10.01, 10, 100) == GOOD
    for x in (0.001, 1, 50, 1000):
        assert classify_stock(x, 0, 100) == GOOD
        assert classify_stock(x, None) == GOOD


def test_reorder_quantity_fills_to_max():
    assert reorder_quantity(5, 10, 100) == 95
    assert reorder_quantity(0, 10, 100) == 100
    assert reorder_quantity(50, 10, 100) == 0
    assert reorder_quantity(5, 10, None) == 0
