from .models import (
    Ingredient,
    StockRecord,
    StockLogEntry,
    Supplier,
    PurchaseOrder,
    PurchaseOrderItem,
    MenuItem,
    RecipeLine,
    InventoryItem,
)
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    UnknownUnitError,
    InvalidChangeAmountError,
    InsufficientStockError,
    PartialBatchFailureError,
    AiUnavailableError,
    DuplicatePoNumberError,
)

__all__ = [
    "Ingredient",
    "StockRecord",
    "StockLogEntry",
    "Supplier",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "MenuItem",
    "RecipeLine",
    "InventoryItem",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "UnknownUnitError",
    "InvalidChangeAmountError",
    "InsufficientStockError",
    "PartialBatchFailureError",
    "AiUnavailableError",
    "DuplicatePoNumberError",
]
