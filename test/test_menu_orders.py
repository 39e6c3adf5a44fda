from pathlib import Path

import pytest
from conftest import add_espresso_beans, add_whole_milk, make_repo

from rim.domain.errors import InsufficientStockError, NotFoundError, ValidationError
from rim.domain.stock import CONSUMPTION, evaluate_change
from rim.repositories.unit_of_work import RepositoryUnitOfWork
from rim.services.inventory_service import InventoryService
from rim.services.menu_service import MenuService


def setup_menu(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    beans = add_espresso_beans(inv, 1000)
    milk = add_whole_milk(inv, 1000)
    menu = MenuService(repo)
    latte = menu.add_menu_item(
        "Latte",
        "Coffee",
        4.5,
        [
            {"ingredient_id": beans, "quantity": 18, "unit": "g"},
            {"ingredient_id": milk, "quantity": 0.2, "unit": "L"},
        ],
    )
    flat_white = menu.add_menu_item(
        "Flat White",
        "Coffee",
        4.0,
        [
            {"ingredient_id": beans, "quantity": 18},
            {"ingredient_id": milk, "quantity": 300, "unit": "mL"},
        ],
    )
    return repo, menu, beans, milk, latte, flat_white


def test_recipe_stored_in_base_units(tmp_path: Path):
    _, menu, beans, milk, latte, _ = setup_menu(tmp_path)

    recipe = {r.ingredient_id: r.quantity_used for r in menu.recipe(latte)}

    assert recipe == {beans: 18, milk: pytest.approx(200)}
    assert menu.recipe_cost(latte) == pytest.approx(18 * 0.02 + 200 * 0.001)
    assert [m.name for m in menu.list_menu_items()] == ["Flat White", "Latte"]


def test_record_sale_consumes_recipe(tmp_path: Path):
    repo, menu, beans, milk, latte, _ = setup_menu(tmp_path)

    txs = menu.record_sale(latte, 2, "till-1")

    assert len(txs) == 2
    assert repo.get_stock(beans).quantity == 964
    assert repo.get_stock(milk).quantity == pytest.approx(600)
    entry = repo.list_stock_logs(milk)[0]
    assert entry.reason == CONSUMPTION
    assert entry.notes == "Sold 2 x Latte"


def test_order_sharing_ingredient_can_not_oversell(tmp_path: Path):
    repo, menu, beans, milk, latte, flat_white = setup_menu(tmp_path)

    # 3 x 200 mL + 2 x 300 mL = 1200 mL against 1000 mL on hand
    with pytest.raises(InsufficientStockError):
        menu.record_order(
            [{"menu_item_id": latte, "servings": 3}, {"menu_item_id": flat_white, "servings": 2}],
            "till-1",
        )

    assert repo.get_stock(beans).quantity == 1000
    assert repo.get_stock(milk).quantity == 1000
    assert len(repo.list_stock_logs(beans)) == 1


def test_record_order_validation(tmp_path: Path):
    _, menu, beans, _, latte, _ = setup_menu(tmp_path)

    with pytest.raises(ValidationError):
        menu.record_order([], "till-1")
    with pytest.raises(ValidationError):
        menu.record_sale(latte, 0, "till-1")
    with pytest.raises(ValidationError):
        menu.record_order([{"menu_item_id": latte, "servings": 1.5}], "till-1")
    with pytest.raises(NotFoundError):
        menu.record_sale("nope", 1, "till-1")
    with pytest.raises(ValidationError):
        menu.add_menu_item("Mocha", "Coffee", 5.0, [{"ingredient_id": beans, "quantity": 18, "unit": "mL"}])
    with pytest.raises(ValidationError):
        menu.add_menu_item("Empty", "Coffee", 5.0, [])


class OtherTillUnitOfWork(RepositoryUnitOfWork):
    """Another till sells 100 units of one ingredient between evaluation and commit."""

    def __init__(self, repo, ingredient_id: str):
        super().__init__(repo)
        self.ingredient_id = ingredient_id

    def commit_stock_batch(self, txs, reference_type=None, reference_id=None):
        current = self.repo.get_stock(self.ingredient_id).quantity
        other = evaluate_change(self.ingredient_id, -100, current, CONSUMPTION, "till-2")
        self.repo.apply_stock_change(other.entry)
        return super().commit_stock_batch(txs, reference_type, reference_id)


def test_record_order_returns_committed_balances(tmp_path: Path):
    repo, _, beans, _, latte, _ = setup_menu(tmp_path)
    menu = MenuService(repo, uow_factory=lambda: OtherTillUnitOfWork(repo, beans))

    txs = menu.record_sale(latte, 1, "u1")

    by_id = {tx.ingredient_id: tx for tx in txs}
    assert by_id[beans].new_quantity == 882
    assert by_id[beans].entry.stock_after == 882
    assert repo.get_stock(beans).quantity == 882
