from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rim.config import Settings
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry
from rim.repositories.sqlite_repo import SqliteRepository
from rim.services.ai_service import AiFunctionsClient
from rim.services.excel_service import ExcelService
from rim.services.inventory_service import InventoryService
from rim.services.menu_service import MenuService
from rim.services.purchase_service import PurchaseService
from rim.services.reporting_service import ReportingService
from rim.services.stock_service import StockService
from rim.services.supplier_service import SupplierService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    units: UnitRegistry
    inventory: InventoryService
    stock: StockService
    suppliers: SupplierService
    purchases: PurchaseService
    menu: MenuService
    excel: ExcelService
    reporting: ReportingService
    ai: AiFunctionsClient


def build_container(
    db_path: Path | str,
    settings: Optional[Settings] = None,
    units: UnitRegistry = DEFAULT_REGISTRY,
) -> AppContainer:
    settings = settings or Settings()

    repo = SqliteRepository(db_path)
    repo.init_db()

    inventory = InventoryService(repo, units)
    stock = StockService(repo, units)
    suppliers = SupplierService(repo)
    purchases = PurchaseService(repo, units)
    menu = MenuService(repo, units)
    excel = ExcelService(repo, inventory, stock)
    reporting = ReportingService(repo, units)
    ai = AiFunctionsClient(settings.functions_url, timeout=settings.functions_timeout)

    return AppContainer(
        repo=repo,
        units=units,
        inventory=inventory,
        stock=stock,
        suppliers=suppliers,
        purchases=purchases,
        menu=menu,
        excel=excel,
        reporting=reporting,
        ai=ai,
    )
