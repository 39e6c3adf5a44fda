from pathlib import Path

import pytest
from conftest import add_espresso_beans, add_whole_milk, make_repo

from rim.domain.errors import NotFoundError, ValidationError
from rim.domain.stock import LOW, OUT_OF_STOCK
from rim.services.inventory_service import InventoryService
from rim.services.stock_service import StockService
from rim.services.supplier_service import SupplierService


def test_ingredient_must_use_base_unit(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    with pytest.raises(ValidationError):
        inv.add_ingredient("Flour", "kg", 0.001)
    with pytest.raises(ValidationError):
        inv.add_ingredient("Flour", "bushel", 0.001)


def test_ingredient_level_validation(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    with pytest.raises(ValidationError):
        inv.add_ingredient("Flour", "g", -1)
    with pytest.raises(ValidationError):
        inv.add_ingredient("Flour", "g", 0.001, min_stock_level=500, max_stock_level=100)
    with pytest.raises(NotFoundError):
        inv.add_ingredient("Flour", "g", 0.001, supplier_id="nope")


def test_duplicate_names_rejected(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    add_espresso_beans(inv)
    with pytest.raises(ValidationError):
        inv.add_ingredient("Espresso Beans", "g", 0.03)


def test_update_keeps_unspecified_fields(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    sid = SupplierService(repo).add_supplier("Bean Co", email="orders@beanco.example", delivery_days=["Friday", "monday"])
    beans = add_espresso_beans(inv)

    inv.update_ingredient(beans, cost_per_unit=0.025, supplier_id=sid)
    ing = inv.get_ingredient(beans)

    assert ing.cost_per_unit == 0.025
    assert ing.min_stock_level == 1000
    assert ing.category == "Coffee"
    assert ing.supplier_id == sid


def test_deactivated_ingredient_disappears(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    beans = add_espresso_beans(inv)

    inv.deactivate_ingredient(beans)

    assert inv.list_ingredients() == []
    with pytest.raises(NotFoundError):
        inv.get_ingredient(beans)
    with pytest.raises(NotFoundError):
        inv.deactivate_ingredient(beans)


def test_low_stock_sorted_by_shortfall_with_reorder(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    add_espresso_beans(inv, 5000)
    milk = add_whole_milk(inv, 1000)
    sugar = inv.add_ingredient("Sugar", "g", 0.002, min_stock_level=500, max_stock_level=3000)

    rows = inv.low_stock()

    assert [(it.ingredient.id, it.status) for it, _ in rows] == [(milk, LOW), (sugar, OUT_OF_STOCK)]
    assert rows[0][1] == 11000
    assert rows[1][1] == 3000


def test_total_inventory_value(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    add_espresso_beans(inv, 5000)
    add_whole_milk(inv, 1000)

    assert inv.total_inventory_value() == pytest.approx(5000 * 0.02 + 1000 * 0.001)


def test_check_stock_sync_reports_tampered_balance(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    stock = StockService(repo)
    beans = add_espresso_beans(inv, 5000)
    stock.use_stock(beans, 1, "kg", "u1")

    assert inv.check_stock_sync() == []

    conn = repo._conn()
    conn.execute("UPDATE ingredient_stock SET quantity = 1 WHERE ingredient_id = ?", (beans,))
    conn.commit()
    conn.close()

    assert inv.check_stock_sync() == [(beans, 1.0, 4000.0)]


def test_supplier_validation(tmp_path: Path):
    suppliers = SupplierService(make_repo(tmp_path))
    with pytest.raises(ValidationError):
        suppliers.add_supplier("")
    with pytest.raises(ValidationError):
        suppliers.add_supplier("Dairy Ltd", email="not-an-email")
    with pytest.raises(ValidationError):
        suppliers.add_supplier("Dairy Ltd", delivery_days=["someday"])

    sid = suppliers.add_supplier("Dairy Ltd", delivery_days=["friday", "Monday", "monday"])
    assert suppliers.get_supplier(sid).delivery_days == ("monday", "friday")

    suppliers.update_supplier(sid, "Dairy Ltd.", phone="555-0100")
    assert suppliers.get_supplier(sid).phone == "555-0100"
    assert [s.name for s in suppliers.list_suppliers()] == ["Dairy Ltd."]


def test_update_ingredient_clears_max_only_when_asked(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    beans = add_espresso_beans(inv, 0)

    inv.update_ingredient(beans, cost_per_unit=0.03)
    assert inv.get_ingredient(beans).max_stock_level == 10000

    inv.update_ingredient(beans, max_stock_level=None)
    assert inv.get_ingredient(beans).max_stock_level is None


@pytest.mark.parametrize("limit", [0, -1])
def test_low_stock_limit_must_be_positive(tmp_path: Path, limit):
    inv = InventoryService(make_repo(tmp_path))
    with pytest.raises(ValidationError):
        inv.low_stock(limit)
