from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from rim.domain.conversion import format_for_display
from rim.domain.errors import ValidationError
from rim.domain.models import StockLogEntry
from rim.domain.reports import (
    ConsumptionRank,
    DailyActivity,
    ReasonTotal,
    daily_activity,
    reason_breakdown,
    top_consumption,
)
from rim.domain.stock import classify_stock
from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry


@dataclass(frozen=True)
class StockReport:
    start: date
    end: date
    daily: list[DailyActivity]
    top_consumption: list[ConsumptionRank]
    reasons: list[ReasonTotal]


class ReportingService:
    def __init__(self, repo, units: UnitRegistry = DEFAULT_REGISTRY):
        self.repo = repo
        self.units = units

    def logs_between(self, start: date, end: date) -> list[StockLogEntry]:
        if end < start:
            raise ValidationError("Report window end must not be before its start.")
        lo = datetime.combine(start, time.min)
        hi = datetime.combine(end + timedelta(days=1), time.min)
        return self.repo.list_stock_logs_between(lo, hi)

    def stock_report(self, start: date, end: date, top_n: int = 5) -> StockReport:
        entries = self.logs_between(start, end)
        catalog = {ing.id: ing for ing in self.repo.list_ingredients()}
        return StockReport(
            start=start,
            end=end,
            daily=daily_activity(entries, start, end),
            top_consumption=top_consumption(entries, catalog, top_n),
            reasons=reason_breakdown(entries),
        )

    def last_days(self, days: int = 7, top_n: int = 5, today: date | None = None) -> StockReport:
        if days < 1:
            raise ValidationError("Days must be >= 1.")
        end = today or date.today()
        return self.stock_report(end - timedelta(days=days - 1), end, top_n)

    def export_stock_report_excel(self, path: str, start: date, end: date, top_n: int = 5) -> None:
        report = self.stock_report(start, end, top_n)
        wb = Workbook()

        def qty(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        total_added = sum(p.added for p in report.daily)
        total_removed = sum(p.removed for p in report.daily)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Stock activity"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Window"
        ws["B3"] = f"{start.isoformat()}  ->  {end.isoformat()}"

        rows = [
            ("Days", len(report.daily)),
            ("Total added (base units)", float(total_added)),
            ("Total removed (base units)", float(total_removed)),
        ]
        for r in report.reasons:
            rows.append((f"Removed: {r.reason}", float(r.total)))

        start_row = 5
        for i, (label, val) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if isinstance(val, float):
                qty(ws[f"B{r}"])
        set_widths(ws, {"A": 30, "B": 34})

        # -------- 2) Daily activity --------
        ws2 = wb.create_sheet("Daily Activity")
        ws2.append(["Day", "Added", "Removed"])
        bold_row(ws2, 1)
        for i, p in enumerate(report.daily, start=2):
            ws2.append([p.day, float(p.added), float(p.removed)])
            ws2[f"A{i}"].number_format = "yyyy-mm-dd"
            qty(ws2[f"B{i}"])
            qty(ws2[f"C{i}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 14, "B": 16, "C": 16})
        add_table(ws2, "DailyActivity", 1, 1, ws2.max_row, 3)

        # -------- 3) Top consumption --------
        ws3 = wb.create_sheet("Top Consumption")
        ws3.append(["Ingredient", "Consumed (base units)", "Cost"])
        bold_row(ws3, 1)
        for i, c in enumerate(report.top_consumption, start=2):
            ws3.append([c.name, float(c.total), float(c.value)])
            qty(ws3[f"B{i}"])
            qty(ws3[f"C{i}"])
        set_widths(ws3, {"A": 32, "B": 22, "C": 14})
        if ws3.max_row >= 2:
            add_table(ws3, "TopConsumption", 1, 1, ws3.max_row, 3)

        # -------- 4) Inventory --------
        ws4 = wb.create_sheet("Inventory")
        ws4.append(["Ingredient", "Category", "Quantity", "Unit", "Display", "Min", "Max", "Status", "Value"])
        bold_row(ws4, 1)
        stock = self.repo.list_stock()
        for i, ing in enumerate(self.repo.list_ingredients(), start=2):
            record = stock.get(ing.id)
            quantity = float(record.quantity) if record else 0.0
            ws4.append([
                ing.name,
                ing.category or "",
                quantity,
                ing.unit,
                format_for_display(quantity, self.units.lookup(ing.unit).type, self.units),
                float(ing.min_stock_level),
                float(ing.max_stock_level) if ing.max_stock_level is not None else None,
                classify_stock(quantity, ing.min_stock_level, ing.max_stock_level),
                quantity * float(ing.cost_per_unit),
            ])
            qty(ws4[f"C{i}"])
            qty(ws4[f"I{i}"])
        ws4.freeze_panes = "A2"
        set_widths(ws4, {"A": 32, "B": 16, "C": 14, "D": 8, "E": 14, "F": 10, "G": 10, "H": 14, "I": 14})
        if ws4.max_row >= 2:
            add_table(ws4, "InventoryLevels", 1, 1, ws4.max_row, 9)

        wb.save(path)
