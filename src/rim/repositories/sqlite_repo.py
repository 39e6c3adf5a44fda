from __future__ import annotations

import json
import shutil
import sqlite3
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from rim.domain.errors import (
    DuplicatePoNumberError,
    InsufficientStockError,
    NotFoundError,
    PartialBatchFailureError,
    ValidationError,
)
from rim.domain.models import (
    Ingredient,
    MenuItem,
    PurchaseOrder,
    PurchaseOrderItem,
    RecipeLine,
    StockLogEntry,
    StockRecord,
    Supplier,
)
from rim.repositories.timestamps import to_instant, to_storage

RECEIVABLE_STATUSES = ("pending", "approved")


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_catalog_and_stock),
                (2, self._migration_v2_purchasing),
                (3, self._migration_v3_menu),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()

    def schema_version(self) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        version = int(cur.fetchone()[0])
        conn.close()
        return version

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_catalog_and_stock(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS ingredients (
            id TEXT PRIMARY KEY,
            name TEXT UNIQUE NOT NULL,
            unit TEXT NOT NULL,
            cost_per_unit REAL NOT NULL CHECK(cost_per_unit >= 0),
            min_stock_level REAL NOT NULL DEFAULT 0 CHECK(min_stock_level >= 0),
            max_stock_level REAL CHECK(max_stock_level IS NULL OR max_stock_level >= 0),
            supplier_id TEXT,
            category TEXT,
            active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
            created_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS ingredient_stock (
            ingredient_id TEXT PRIMARY KEY,
            quantity REAL NOT NULL DEFAULT 0 CHECK(quantity >= 0),
            last_updated TEXT NOT NULL,
            FOREIGN KEY(ingredient_id) REFERENCES ingredients(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS stock_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ingredient_id TEXT NOT NULL,
            change_amount REAL NOT NULL CHECK(change_amount <> 0),
            reason TEXT NOT NULL CHECK(reason IN ('purchase','consumption','waste','expired','adjustment','correction')),
            user_id TEXT NOT NULL,
            stock_after REAL NOT NULL CHECK(stock_after >= 0),
            reference_type TEXT,
            reference_id TEXT,
            notes TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY(ingredient_id) REFERENCES ingredients(id)
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_stock_logs_created ON stock_logs(created_at)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_stock_logs_ingredient ON stock_logs(ingredient_id, id)")

    def _migration_v2_purchasing(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS suppliers (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                phone TEXT NOT NULL DEFAULT '',
                email TEXT NOT NULL DEFAULT '',
                contact_person TEXT,
                address TEXT,
                payment_terms TEXT,
                delivery_days TEXT NOT NULL DEFAULT '[]',
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
                created_at TEXT NOT NULL
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_orders (
                id TEXT PRIMARY KEY,
                po_number TEXT NOT NULL UNIQUE,
                supplier_id TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('pending','approved','received','cancelled')),
                expected_delivery_date TEXT,
                total_cost REAL NOT NULL CHECK(total_cost >= 0),
                notes TEXT,
                created_by TEXT,
                recommended_by_ai INTEGER NOT NULL DEFAULT 0 CHECK(recommended_by_ai IN (0,1)),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(supplier_id) REFERENCES suppliers(id)
            )
            """
        )

        # ingredient_id is not a foreign key: orders keep referencing ingredients that were removed later
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS purchase_order_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                purchase_order_id TEXT NOT NULL,
                ingredient_id TEXT NOT NULL,
                quantity REAL NOT NULL CHECK(quantity > 0),
                unit TEXT NOT NULL,
                cost_per_unit REAL NOT NULL CHECK(cost_per_unit >= 0),
                FOREIGN KEY(purchase_order_id) REFERENCES purchase_orders(id) ON DELETE CASCADE
            )
            """
        )

    def _migration_v3_menu(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS menu_items (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                category TEXT NOT NULL DEFAULT '',
                price REAL NOT NULL CHECK(price >= 0),
                active INTEGER NOT NULL DEFAULT 1 CHECK(active IN (0,1)),
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS menu_item_ingredients (
                menu_item_id TEXT NOT NULL,
                ingredient_id TEXT NOT NULL,
                quantity_used REAL NOT NULL CHECK(quantity_used > 0),
                PRIMARY KEY(menu_item_id, ingredient_id),
                FOREIGN KEY(menu_item_id) REFERENCES menu_items(id) ON DELETE CASCADE,
                FOREIGN KEY(ingredient_id) REFERENCES ingredients(id)
            )
            """
        )

    # ---------- Ingredients ----------
    _INGREDIENT_COLUMNS = "id, name, unit, cost_per_unit, min_stock_level, max_stock_level, supplier_id, category, active"

    @staticmethod
    def _ingredient_from_row(r) -> Ingredient:
        return Ingredient(
            id=str(r[0]),
            name=str(r[1]),
            unit=str(r[2]),
            cost_per_unit=float(r[3]),
            min_stock_level=float(r[4]),
            max_stock_level=(float(r[5]) if r[5] is not None else None),
            supplier_id=(str(r[6]) if r[6] is not None else None),
            category=(str(r[7]) if r[7] is not None else None),
            active=int(r[8]),
        )

    def add_ingredient(
        self,
        name: str,
        unit: str,
        cost_per_unit: float,
        min_stock_level: float,
        max_stock_level: Optional[float],
        supplier_id: Optional[str],
        category: Optional[str],
    ) -> str:
        ingredient_id = self._new_id()
        now_iso = to_storage(datetime.now())
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO ingredients (id, name, unit, cost_per_unit, min_stock_level, max_stock_level,
                                         supplier_id, category, active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (ingredient_id, name, unit, float(cost_per_unit), float(min_stock_level), max_stock_level,
                 supplier_id, category, now_iso),
            )
            cur.execute(
                "INSERT INTO ingredient_stock (ingredient_id, quantity, last_updated) VALUES (?, 0, ?)",
                (ingredient_id, now_iso),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ValidationError(f"Could not create ingredient '{name}': {exc}") from exc
        finally:
            conn.close()
        return ingredient_id

    def update_ingredient(
        self,
        ingredient_id: str,
        name: str,
        cost_per_unit: float,
        min_stock_level: float,
        max_stock_level: Optional[float],
        supplier_id: Optional[str],
        category: Optional[str],
    ) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                UPDATE ingredients
                SET name=?, cost_per_unit=?, min_stock_level=?, max_stock_level=?, supplier_id=?, category=?
                WHERE id=? AND active=1
                """,
                (name, float(cost_per_unit), float(min_stock_level), max_stock_level, supplier_id, category,
                 ingredient_id),
            )
            changed = cur.rowcount > 0
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ValidationError(f"Could not update ingredient '{name}': {exc}") from exc
        finally:
            conn.close()
        return bool(changed)

    def deactivate_ingredient(self, ingredient_id: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("UPDATE ingredients SET active=0 WHERE id=? AND active=1", (ingredient_id,))
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def get_ingredient_by_id(self, ingredient_id: str) -> Optional[Ingredient]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {self._INGREDIENT_COLUMNS} FROM ingredients WHERE active=1 AND id=?",
            (ingredient_id,),
        )
        r = cur.fetchone()
        conn.close()
        return self._ingredient_from_row(r) if r else None

    def get_ingredient_by_name(self, name: str) -> Optional[Ingredient]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {self._INGREDIENT_COLUMNS} FROM ingredients WHERE active=1 AND name=? COLLATE NOCASE",
            (name,),
        )
        r = cur.fetchone()
        conn.close()
        return self._ingredient_from_row(r) if r else None

    def list_ingredients(self) -> list[Ingredient]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {self._INGREDIENT_COLUMNS} FROM ingredients WHERE active=1 ORDER BY name")
        rows = cur.fetchall()
        conn.close()
        return [self._ingredient_from_row(r) for r in rows]

    # ---------- Stock ----------
    def get_stock(self, ingredient_id: str) -> Optional[StockRecord]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "SELECT ingredient_id, quantity, last_updated FROM ingredient_stock WHERE ingredient_id=?",
            (ingredient_id,),
        )
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return StockRecord(ingredient_id=str(r[0]), quantity=float(r[1]), last_updated=to_instant(r[2]))

    def list_stock(self) -> dict[str, StockRecord]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT ingredient_id, quantity, last_updated FROM ingredient_stock")
        rows = cur.fetchall()
        conn.close()
        return {
            str(r[0]): StockRecord(ingredient_id=str(r[0]), quantity=float(r[1]), last_updated=to_instant(r[2]))
            for r in rows
        }

    def _missing_ingredients(self, cur: sqlite3.Cursor, ingredient_ids: Iterable[str]) -> list[str]:
        missing: list[str] = []
        for ingredient_id in dict.fromkeys(ingredient_ids):
            cur.execute("SELECT 1 FROM ingredients WHERE id=? AND active=1", (ingredient_id,))
            if cur.fetchone() is None:
                missing.append(ingredient_id)
        return missing

    def _apply_change(
        self,
        cur: sqlite3.Cursor,
        entry: StockLogEntry,
        reference_type: Optional[str],
        reference_id: Optional[str],
    ) -> float:
        created_iso = to_storage(entry.created_at)
        delta = float(entry.change_amount)
        cur.execute(
            "INSERT OR IGNORE INTO ingredient_stock (ingredient_id, quantity, last_updated) VALUES (?, 0, ?)",
            (entry.ingredient_id, created_iso),
        )
        # atomic increment; the guard keeps concurrent writers from driving stock negative
        cur.execute(
            """
            UPDATE ingredient_stock
            SET quantity = quantity + ?, last_updated = ?
            WHERE ingredient_id = ? AND quantity + ? >= 0
            """,
            (delta, created_iso, entry.ingredient_id, delta),
        )
        if cur.rowcount == 0:
            cur.execute("SELECT quantity FROM ingredient_stock WHERE ingredient_id=?", (entry.ingredient_id,))
            row = cur.fetchone()
            raise InsufficientStockError(entry.ingredient_id, float(row[0]) if row else 0.0, delta)

        cur.execute("SELECT quantity FROM ingredient_stock WHERE ingredient_id=?", (entry.ingredient_id,))
        stock_after = float(cur.fetchone()[0])
        cur.execute(
            """
            INSERT INTO stock_logs (
                ingredient_id, change_amount, reason, user_id, stock_after,
                reference_type, reference_id, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (entry.ingredient_id, delta, entry.reason, entry.user_id, stock_after,
             reference_type, reference_id, entry.notes, created_iso),
        )
        return stock_after

    def apply_stock_change(
        self,
        entry: StockLogEntry,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> float:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            if self._missing_ingredients(cur, [entry.ingredient_id]):
                raise NotFoundError(f"Ingredient not found: {entry.ingredient_id}")
            stock_after = self._apply_change(cur, entry, reference_type, reference_id)
            conn.commit()
            return stock_after
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def apply_stock_batch(
        self,
        entries: Iterable[StockLogEntry],
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> list[float]:
        entries = list(entries)
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            missing = self._missing_ingredients(cur, [e.ingredient_id for e in entries])
            if missing:
                raise PartialBatchFailureError(missing)
            out = [self._apply_change(cur, e, reference_type, reference_id) for e in entries]
            conn.commit()
            return out
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    _LOG_COLUMNS = "id, ingredient_id, change_amount, reason, user_id, created_at, notes, stock_after"

    @staticmethod
    def _log_from_row(r) -> StockLogEntry:
        return StockLogEntry(
            id=int(r[0]),
            ingredient_id=str(r[1]),
            change_amount=float(r[2]),
            reason=str(r[3]),
            user_id=str(r[4]),
            created_at=to_instant(r[5]),
            notes=(r[6] if r[6] is not None else None),
            stock_after=float(r[7]),
        )

    def list_stock_logs(self, ingredient_id: Optional[str] = None, limit: int = 50) -> list[StockLogEntry]:
        conn = self._conn()
        cur = conn.cursor()
        if ingredient_id:
            cur.execute(
                f"""
                SELECT {self._LOG_COLUMNS} FROM stock_logs
                WHERE ingredient_id=?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (ingredient_id, int(limit)),
            )
        else:
            cur.execute(
                f"SELECT {self._LOG_COLUMNS} FROM stock_logs ORDER BY created_at DESC, id DESC LIMIT ?",
                (int(limit),),
            )
        rows = cur.fetchall()
        conn.close()
        return [self._log_from_row(r) for r in rows]

    def list_stock_logs_between(self, start: datetime, end: datetime) -> list[StockLogEntry]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {self._LOG_COLUMNS} FROM stock_logs
            WHERE created_at >= ? AND created_at < ?
            ORDER BY created_at, id
            """,
            (to_storage(start), to_storage(end)),
        )
        rows = cur.fetchall()
        conn.close()
        return [self._log_from_row(r) for r in rows]

    def ledger_totals(self) -> dict[str, float]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT ingredient_id, COALESCE(SUM(change_amount), 0) FROM stock_logs GROUP BY ingredient_id")
        rows = cur.fetchall()
        conn.close()
        return {str(r[0]): float(r[1]) for r in rows}

    # ---------- Suppliers ----------
    _SUPPLIER_COLUMNS = "id, name, phone, email, contact_person, address, payment_terms, delivery_days, active"

    @staticmethod
    def _supplier_from_row(r) -> Supplier:
        return Supplier(
            id=str(r[0]),
            name=str(r[1]),
            phone=str(r[2]),
            email=str(r[3]),
            contact_person=(r[4] if r[4] is not None else None),
            address=(r[5] if r[5] is not None else None),
            payment_terms=(r[6] if r[6] is not None else None),
            delivery_days=tuple(json.loads(r[7] or "[]")),
            active=int(r[8]),
        )

    def add_supplier(
        self,
        name: str,
        phone: str,
        email: str,
        contact_person: Optional[str],
        address: Optional[str],
        payment_terms: Optional[str],
        delivery_days: Iterable[str],
    ) -> str:
        supplier_id = self._new_id()
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO suppliers (id, name, phone, email, contact_person, address, payment_terms,
                                   delivery_days, active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
            """,
            (supplier_id, name, phone, email, contact_person, address, payment_terms,
             json.dumps(list(delivery_days)), to_storage(datetime.now())),
        )
        conn.commit()
        conn.close()
        return supplier_id

    def update_supplier(
        self,
        supplier_id: str,
        name: str,
        phone: str,
        email: str,
        contact_person: Optional[str],
        address: Optional[str],
        payment_terms: Optional[str],
        delivery_days: Iterable[str],
    ) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE suppliers
            SET name=?, phone=?, email=?, contact_person=?, address=?, payment_terms=?, delivery_days=?
            WHERE id=? AND active=1
            """,
            (name, phone, email, contact_person, address, payment_terms, json.dumps(list(delivery_days)),
             supplier_id),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def get_supplier_by_id(self, supplier_id: str) -> Optional[Supplier]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {self._SUPPLIER_COLUMNS} FROM suppliers WHERE active=1 AND id=?", (supplier_id,))
        r = cur.fetchone()
        conn.close()
        return self._supplier_from_row(r) if r else None

    def list_suppliers(self) -> list[Supplier]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {self._SUPPLIER_COLUMNS} FROM suppliers WHERE active=1 ORDER BY name")
        rows = cur.fetchall()
        conn.close()
        return [self._supplier_from_row(r) for r in rows]

    # ---------- Purchase orders ----------
    _PO_COLUMNS = (
        "id, po_number, supplier_id, status, expected_delivery_date, total_cost, notes, "
        "created_at, updated_at, created_by, recommended_by_ai"
    )

    @staticmethod
    def _po_from_row(r) -> PurchaseOrder:
        return PurchaseOrder(
            id=str(r[0]),
            po_number=str(r[1]),
            supplier_id=str(r[2]),
            status=str(r[3]),
            expected_delivery_date=(date.fromisoformat(r[4]) if r[4] else None),
            total_cost=float(r[5]),
            notes=(r[6] if r[6] is not None else None),
            created_at=to_instant(r[7]),
            updated_at=to_instant(r[8]),
            created_by=(r[9] if r[9] is not None else None),
            recommended_by_ai=int(r[10]),
        )

    def create_purchase_order_with_items(
        self,
        po_number: str,
        supplier_id: str,
        expected_delivery_date: Optional[date],
        notes: Optional[str],
        items: Iterable[dict],
        created_by: Optional[str] = None,
        recommended_by_ai: bool = False,
    ) -> str:
        items = list(items)
        total_cost = sum(float(it["quantity"]) * float(it["cost_per_unit"]) for it in items)
        po_id = self._new_id()
        now_iso = to_storage(datetime.now())
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO purchase_orders (id, po_number, supplier_id, status, expected_delivery_date,
                                             total_cost, notes, created_by, recommended_by_ai,
                                             created_at, updated_at)
                VALUES (?, ?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?)
                """,
                (po_id, po_number, supplier_id,
                 expected_delivery_date.isoformat() if expected_delivery_date else None,
                 float(total_cost), notes, created_by, 1 if recommended_by_ai else 0, now_iso, now_iso),
            )
            for it in items:
                cur.execute(
                    """
                    INSERT INTO purchase_order_items (purchase_order_id, ingredient_id, quantity, unit, cost_per_unit)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (po_id, str(it["ingredient_id"]), float(it["quantity"]), str(it["unit"]),
                     float(it["cost_per_unit"])),
                )
            conn.commit()
            return po_id
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "po_number" in str(exc):
                raise DuplicatePoNumberError(po_number) from exc
            raise
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_purchase_order(self, po_id: str) -> Optional[PurchaseOrder]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {self._PO_COLUMNS} FROM purchase_orders WHERE id=?", (po_id,))
        r = cur.fetchone()
        conn.close()
        return self._po_from_row(r) if r else None

    def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[str] = None,
    ) -> list[PurchaseOrder]:
        clauses = []
        params: list = []
        if status:
            clauses.append("status=?")
            params.append(status)
        if supplier_id:
            clauses.append("supplier_id=?")
            params.append(supplier_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {self._PO_COLUMNS} FROM purchase_orders {where} ORDER BY created_at DESC, po_number DESC", params)
        rows = cur.fetchall()
        conn.close()
        return [self._po_from_row(r) for r in rows]

    def purchase_order_items(self, po_id: str) -> list[PurchaseOrderItem]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, purchase_order_id, ingredient_id, quantity, unit, cost_per_unit
            FROM purchase_order_items
            WHERE purchase_order_id=?
            ORDER BY id
            """,
            (po_id,),
        )
        rows = cur.fetchall()
        conn.close()
        return [
            PurchaseOrderItem(
                id=int(r[0]),
                purchase_order_id=str(r[1]),
                ingredient_id=str(r[2]),
                quantity=float(r[3]),
                unit=str(r[4]),
                cost_per_unit=float(r[5]),
            )
            for r in rows
        ]

    def set_purchase_order_status(self, po_id: str, status: str, allowed_from: Iterable[str]) -> bool:
        allowed = list(allowed_from)
        placeholders = ",".join("?" for _ in allowed)
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"UPDATE purchase_orders SET status=?, updated_at=? WHERE id=? AND status IN ({placeholders})",
            (status, to_storage(datetime.now()), po_id, *allowed),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        return bool(changed)

    def receive_purchase_order(self, po_id: str, entries: Iterable[StockLogEntry]) -> list[float]:
        entries = list(entries)
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            cur.execute("SELECT status FROM purchase_orders WHERE id=?", (po_id,))
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Purchase order not found.")
            if str(row[0]) not in RECEIVABLE_STATUSES:
                raise ValidationError(f"Purchase order can not be received from status '{row[0]}'.")

            missing = self._missing_ingredients(cur, [e.ingredient_id for e in entries])
            if missing:
                raise PartialBatchFailureError(missing)

            out = [self._apply_change(cur, e, "purchase_order", po_id) for e in entries]
            cur.execute(
                "UPDATE purchase_orders SET status='received', updated_at=? WHERE id=?",
                (to_storage(datetime.now()), po_id),
            )
            conn.commit()
            return out
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---------- Menu ----------
    def add_menu_item(self, name: str, category: str, price: float, recipe: Iterable[RecipeLine]) -> str:
        menu_item_id = self._new_id()
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                "INSERT INTO menu_items (id, name, category, price, active, created_at) VALUES (?, ?, ?, ?, 1, ?)",
                (menu_item_id, name, category, float(price), to_storage(datetime.now())),
            )
            for line in recipe:
                cur.execute(
                    """
                    INSERT INTO menu_item_ingredients (menu_item_id, ingredient_id, quantity_used)
                    VALUES (?, ?, ?)
                    """,
                    (menu_item_id, line.ingredient_id, float(line.quantity_used)),
                )
            conn.commit()
            return menu_item_id
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ValidationError(f"Could not create menu item '{name}': {exc}") from exc
        finally:
            conn.close()

    def get_menu_item(self, menu_item_id: str) -> Optional[MenuItem]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "SELECT id, name, category, price, active FROM menu_items WHERE active=1 AND id=?",
            (menu_item_id,),
        )
        r = cur.fetchone()
        conn.close()
        if not r:
            return None
        return MenuItem(id=str(r[0]), name=str(r[1]), category=str(r[2]), price=float(r[3]), active=int(r[4]))

    def list_menu_items(self) -> list[MenuItem]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT id, name, category, price, active FROM menu_items WHERE active=1 ORDER BY category, name")
        rows = cur.fetchall()
        conn.close()
        return [MenuItem(id=str(r[0]), name=str(r[1]), category=str(r[2]), price=float(r[3]), active=int(r[4])) for r in rows]

    def recipe_for(self, menu_item_id: str) -> list[RecipeLine]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT ingredient_id, quantity_used
            FROM menu_item_ingredients
            WHERE menu_item_id=?
            ORDER BY ingredient_id
            """,
            (menu_item_id,),
        )
        rows = cur.fetchall()
        conn.close()
        return [RecipeLine(ingredient_id=str(r[0]), quantity_used=float(r[1])) for r in rows]
