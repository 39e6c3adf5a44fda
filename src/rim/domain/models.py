from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class Ingredient:
    id: str
    name: str
    unit: str
    cost_per_unit: float
    min_stock_level: float
    max_stock_level: Optional[float]
    supplier_id: Optional[str]
    category: Optional[str] = None
    active: int = 1


@dataclass(frozen=True)
class StockRecord:
    ingredient_id: str
    quantity: float
    last_updated: datetime


@dataclass(frozen=True)
class StockLogEntry:
    ingredient_id: str
    change_amount: float
    reason: str
    user_id: str
    created_at: datetime
    notes: Optional[str] = None
    stock_after: Optional[float] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    phone: str
    email: str
    contact_person: Optional[str]
    address: Optional[str]
    payment_terms: Optional[str]
    delivery_days: tuple[str, ...] = ()
    active: int = 1


@dataclass(frozen=True)
class PurchaseOrder:
    id: str
    po_number: str
    supplier_id: str
    status: str
    expected_delivery_date: Optional[date]
    total_cost: float
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    recommended_by_ai: int = 0


@dataclass(frozen=True)
class PurchaseOrderItem:
    purchase_order_id: str
    ingredient_id: str
    quantity: float
    unit: str
    cost_per_unit: float
    id: Optional[int] = None

    @property
    def total_cost(self) -> float:
        return self.quantity * self.cost_per_unit


@dataclass(frozen=True)
class MenuItem:
    id: str
    name: str
    category: str
    price: float
    active: int = 1


@dataclass(frozen=True)
class RecipeLine:
    ingredient_id: str
    quantity_used: float


@dataclass(frozen=True)
class InventoryItem:
    ingredient: Ingredient
    quantity: float
    status: str
    display: str
    last_updated: Optional[datetime] = None

    @property
    def value(self) -> float:
        return self.quantity * self.ingredient.cost_per_unit
