from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rim.application.container import AppContainer, build_container
from rim.config import get_app_paths, load_settings, load_units
from rim.domain.conversion import format_for_display
from rim.domain.errors import AppError
from rim.logging_config import setup_logging

log = logging.getLogger(__name__)


def _print_inventory(c: AppContainer) -> None:
    items = c.inventory.inventory_with_status()
    if not items:
        print("No ingredients.")
        return
    for it in items:
        print(f"{it.ingredient.name:<30} {it.display:>14}  {it.status:<12} {it.value:>10.2f}")
    print(f"{'Total value':<30} {'':>14}  {'':<12} {c.inventory.total_inventory_value():>10.2f}")


def _print_low_stock(c: AppContainer, limit: int) -> None:
    rows = c.inventory.low_stock(limit)
    if not rows:
        print("All ingredients are above their minimum level.")
        return
    for it, reorder in rows:
        unit_type = c.units.lookup(it.ingredient.unit).type
        print(
            f"{it.ingredient.name:<30} {it.display:>14}  {it.status:<12} "
            f"reorder {format_for_display(reorder, unit_type, c.units)}"
        )


def _print_report(c: AppContainer, days: int, export: Optional[str]) -> None:
    report = c.reporting.last_days(days)
    print(f"Stock activity {report.start.isoformat()} -> {report.end.isoformat()}")
    for p in report.daily:
        print(f"  {p.day.isoformat()}  +{p.added:.2f}  -{p.removed:.2f}")
    print("Top consumption:")
    for r in report.top_consumption:
        print(f"  {r.name:<30} {r.total:>12.2f} {r.value:>10.2f}")
    print("Removed by reason:")
    for r in report.reasons:
        print(f"  {r.reason:<12} {r.total:>12.2f}")
    if export:
        c.reporting.export_stock_report_excel(export, report.start, report.end)
        print(f"Exported to {export}")


def _sync_check(c: AppContainer) -> int:
    mismatches = c.inventory.check_stock_sync()
    if not mismatches:
        print("Stock balances match the log.")
        return 0
    for ingredient_id, stored, replayed in mismatches:
        print(f"{ingredient_id}: stored={stored:g} log={replayed:g}")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rim", description="Restaurant inventory manager")
    p.add_argument("--db", help="SQLite database path (defaults to the app directory)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("inventory", help="List ingredients with stock level and status")

    low = sub.add_parser("low-stock", help="List low and out-of-stock ingredients")
    low.add_argument("--limit", type=int, default=10)

    rep = sub.add_parser("report", help="Stock activity report")
    rep.add_argument("--days", type=int, default=7)
    rep.add_argument("--export", metavar="PATH", help="Write the report to an .xlsx file")

    sub.add_parser("sync-check", help="Compare stored balances with the stock log")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    paths = get_app_paths()
    settings = load_settings()
    setup_logging(paths.logs_dir, level=settings.log_level)

    try:
        container = build_container(
            Path(args.db) if args.db else paths.db_path,
            settings=settings,
            units=load_units(settings, paths),
        )
        if args.command == "inventory":
            _print_inventory(container)
        elif args.command == "low-stock":
            _print_low_stock(container, args.limit)
        elif args.command == "report":
            _print_report(container, args.days, args.export)
        elif args.command == "sync-check":
            return _sync_check(container)
    except AppError as e:
        log.error("command_failed command=%s error=%s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
