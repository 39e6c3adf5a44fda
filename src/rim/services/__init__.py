
from .ai_service import AiFunctionsClient
from .inventory_service import InventoryService
from .stock_service import StockService
from .supplier_service import SupplierService
from .purchase_service import PurchaseService
from .menu_service import MenuService
from .excel_service import ExcelService
from .reporting_service import ReportingService

__all__ = [
    "AiFunctionsClient",
    "InventoryService",
    "StockService",
    "SupplierService",
    "PurchaseService",
    "MenuService",
    "ExcelService",
    "ReportingService",
]
