import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_repo(tmp_path: Path, name: str = "inventory.db"):
    from rim.repositories.sqlite_repo import SqliteRepository

    repo = SqliteRepository(tmp_path / name)
    repo.init_db()
    return repo


def add_espresso_beans(inventory, quantity: float = 5000.0) -> str:
    return inventory.add_ingredient(
        "Espresso Beans",
        "g",
        0.02,
        min_stock_level=1000,
        max_stock_level=10000,
        category="Coffee",
        initial_quantity=quantity,
        actor_id="setup",
    )


def add_whole_milk(inventory, quantity: float = 1000.0) -> str:
    return inventory.add_ingredient(
        "Whole Milk",
        "mL",
        0.001,
        min_stock_level=2000,
        max_stock_level=12000,
        category="Dairy",
        initial_quantity=quantity,
        actor_id="setup",
    )
