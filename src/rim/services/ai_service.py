from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Optional

import requests

from rim.domain.errors import AiUnavailableError, ValidationError
from rim.repositories.timestamps import to_instant

log = logging.getLogger("rim.ai")

ANOMALY_TYPES = ("usage_spike", "price_creep", "ghost_inventory", "theoretical_variance")


@dataclass(frozen=True)
class ForecastPoint:
    day: date
    quantity: float
    day_of_week: int


@dataclass(frozen=True)
class Forecast:
    ingredient_id: str
    points: list[ForecastPoint]
    confidence: float
    historical_average: float


@dataclass(frozen=True)
class MenuRequirement:
    ingredient_id: str
    required_quantity: float
    used_in_menu_items: tuple[str, ...]


@dataclass(frozen=True)
class ParLevel:
    recommended_min: float
    recommended_max: float
    avg_daily_usage: float
    usage_variance: float


@dataclass(frozen=True)
class ExpiryRisk:
    ingredient_id: str
    predicted_waste: float
    risk_level: str
    expiry_date: Optional[datetime]
    days_until_expiry: int
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class StockTakeItem:
    item_name: str
    estimated_quantity: float
    unit: str
    confidence: float
    matched_ingredient_id: Optional[str] = None
    current_stock: Optional[float] = None
    difference: Optional[float] = None


class AiFunctionsClient:
    """Client for the hosted forecasting / anomaly / OCR functions.

    Uses the HTTPS callable convention: the request body is ``{"data": ...}``
    and the reply is ``{"result": ...}`` or ``{"error": {...}}``. All the
    modelling happens server side; this class only marshals arguments and
    unwraps results.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, auth_token: Optional[str] = None):
        self.base_url = (base_url or "").strip().rstrip("/")
        self.timeout = float(timeout)
        self.auth_token = auth_token

    def _post(self, url: str, payload: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        r = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def call(self, name: str, data: Optional[dict] = None) -> Any:
        if not self.base_url:
            raise AiUnavailableError("AI functions endpoint is not configured (RIM_FUNCTIONS_URL).")
        url = f"{self.base_url}/{name}"
        try:
            body = self._post(url, {"data": data if data is not None else {}})
        except (requests.RequestException, ValueError) as e:
            log.warning("ai_call_failed name=%s error=%s", name, e)
            raise AiUnavailableError(f"{name} call failed: {e}") from e

        if not isinstance(body, dict):
            raise AiUnavailableError(f"{name} returned an unexpected payload: {body!r}")
        if "error" in body:
            err = body["error"] if isinstance(body["error"], dict) else {"message": body["error"]}
            log.warning("ai_call_error name=%s status=%s", name, err.get("status"))
            raise AiUnavailableError(f"{name} failed: {err.get('message', 'unknown error')}")
        if "result" not in body:
            raise AiUnavailableError(f"{name} response missing result. Raw: {body}")

        result = body["result"]
        if not isinstance(result, dict):
            raise AiUnavailableError(f"{name} returned a malformed result: {result!r}")
        if result.get("success") is False:
            raise AiUnavailableError(f"{name} failed: {result.get('error', 'unknown error')}")
        log.info("ai_call_ok name=%s", name)
        return result

    @staticmethod
    @contextmanager
    def _unmarshal(name: str) -> Iterator[None]:
        # a result missing fields or carrying wrong types is as unusable as no result
        try:
            yield
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
            log.warning("ai_result_malformed name=%s error=%s", name, e)
            raise AiUnavailableError(f"{name} returned a malformed result: {e}") from e

    def run_anomaly_detection(self, types: Optional[Iterable[str]] = None) -> dict[str, int]:
        data: dict = {}
        if types is not None:
            selected = list(types)
            unknown = [t for t in selected if t not in ANOMALY_TYPES]
            if unknown:
                raise ValidationError(f"Unknown anomaly types: {', '.join(unknown)}")
            data["types"] = selected
        result = self.call("runAnomalyDetection", data)
        with self._unmarshal("runAnomalyDetection"):
            return {str(k): int(v) for k, v in (result.get("results") or {}).items()}

    def generate_forecast(self, ingredient_id: str, days: int = 7) -> Forecast:
        if days < 1:
            raise ValidationError("Days must be >= 1.")
        result = self.call("generateForecast", {"ingredientId": ingredient_id, "days": int(days)})
        with self._unmarshal("generateForecast"):
            raw = result.get("forecast") or {}
            points = [
                ForecastPoint(
                    day=to_instant(p["date"]).date(),
                    quantity=float(p["quantity"]),
                    day_of_week=int(p.get("dayOfWeek", 0)),
                )
                for p in raw.get("forecasts", [])
            ]
            return Forecast(
                ingredient_id=str(raw.get("ingredientId", ingredient_id)),
                points=points,
                confidence=float(raw.get("confidence", 0.0)),
                historical_average=float(raw.get("historicalAverage", 0.0)),
            )

    def menu_driven_forecast(self, days: int = 7) -> list[MenuRequirement]:
        result = self.call("getMenuDrivenForecast", {"days": int(days)})
        with self._unmarshal("getMenuDrivenForecast"):
            return [
                MenuRequirement(
                    ingredient_id=str(r["ingredientId"]),
                    required_quantity=float(r["requiredQuantity"]),
                    used_in_menu_items=tuple(r.get("usedInMenuItems", [])),
                )
                for r in result.get("requirements", [])
            ]

    def par_level_recommendation(self, ingredient_id: str, lead_time_days: int = 3) -> ParLevel:
        result = self.call(
            "getParLevelRecommendation",
            {"ingredientId": ingredient_id, "leadTimeDays": int(lead_time_days)},
        )
        with self._unmarshal("getParLevelRecommendation"):
            return ParLevel(
                recommended_min=float(result["recommendedMin"]),
                recommended_max=float(result["recommendedMax"]),
                avg_daily_usage=float(result.get("avgDailyUsage", 0.0)),
                usage_variance=float(result.get("usageVariance", 0.0)),
            )

    def expiry_risks(self) -> list[ExpiryRisk]:
        result = self.call("getExpiryRisks")
        with self._unmarshal("getExpiryRisks"):
            return [
                ExpiryRisk(
                    ingredient_id=str(r["ingredient_id"]),
                    predicted_waste=float(r.get("predicted_waste", 0.0)),
                    risk_level=str(r.get("risk_level", "low")),
                    expiry_date=to_instant(r["expiry_date"]) if r.get("expiry_date") else None,
                    days_until_expiry=int(r.get("days_until_expiry", 0)),
                    recommendation=r.get("ai_recommendation"),
                )
                for r in result.get("risks", [])
            ]

    def scan_invoice(self, image_base64: str, mime_type: str = "image/jpeg") -> dict:
        if not image_base64:
            raise ValidationError("Invoice image is required.")
        result = self.call("processInvoiceOCR", {"imageBase64": image_base64, "mimeType": mime_type})
        with self._unmarshal("processInvoiceOCR"):
            return dict(result.get("data") or {})

    def create_po_from_invoice(self, invoice_data: dict, supplier_id: str) -> str:
        """Turns a scanned invoice (see scan_invoice) into a purchase order; returns its id."""
        if not isinstance(invoice_data, dict) or not invoice_data.get("items"):
            raise ValidationError("Invoice data with at least one item is required.")
        if not supplier_id:
            raise ValidationError("Supplier is required.")
        result = self.call("createPOFromInvoice", {"invoiceData": invoice_data, "supplierId": supplier_id})
        with self._unmarshal("createPOFromInvoice"):
            return str(result["purchaseOrderId"])

    def visual_stock_take(
        self, image_base64: str, mime_type: str = "image/jpeg", notes: Optional[str] = None
    ) -> list[StockTakeItem]:
        if not image_base64:
            raise ValidationError("Shelf image is required.")
        data: dict = {"imageBase64": image_base64, "mimeType": mime_type}
        if notes:
            data["notes"] = notes
        result = self.call("visualStockTake", data)
        with self._unmarshal("visualStockTake"):
            return [
                StockTakeItem(
                    item_name=str(r["item_name"]),
                    estimated_quantity=float(r["estimated_quantity"]),
                    unit=str(r["unit"]),
                    confidence=float(r.get("confidence", 0.0)),
                    matched_ingredient_id=r.get("matched_ingredient_id"),
                    current_stock=float(r["current_stock"]) if r.get("current_stock") is not None else None,
                    difference=float(r["difference"]) if r.get("difference") is not None else None,
                )
                for r in (result.get("data") or [])
            ]

    def apply_stock_take_results(self, items: Iterable[StockTakeItem | dict]) -> int:
        """Sends matched stock-take counts back; returns how many ingredients were updated."""
        payload: list[dict] = []
        for it in items:
            if isinstance(it, StockTakeItem):
                it = {
                    "matched_ingredient_id": it.matched_ingredient_id,
                    "estimated_quantity": it.estimated_quantity,
                    "unit": it.unit,
                }
            if not it.get("matched_ingredient_id"):
                continue
            payload.append(
                {
                    "matched_ingredient_id": str(it["matched_ingredient_id"]),
                    "estimated_quantity": float(it["estimated_quantity"]),
                    "unit": str(it["unit"]),
                }
            )
        if not payload:
            raise ValidationError("No stock-take items are matched to an ingredient.")
        result = self.call("applyStockTakeResults", {"items": payload})
        with self._unmarshal("applyStockTakeResults"):
            return int(result.get("updatedCount", 0))
