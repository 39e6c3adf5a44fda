from __future__ import annotations

import re
from typing import Iterable, Optional

from rim.domain.errors import NotFoundError, ValidationError
from rim.domain.models import Supplier

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean_days(days: Iterable[str]) -> list[str]:
    out: list[str] = []
    for d in days:
        day = str(d).strip().lower()
        if day not in WEEKDAYS:
            raise ValidationError(f"Unknown delivery day: {d}")
        if day not in out:
            out.append(day)
    return sorted(out, key=WEEKDAYS.index)


class SupplierService:
    def __init__(self, repo):
        self.repo = repo

    def _validate(self, name: str, email: str) -> tuple[str, str]:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name:
            raise ValidationError("Supplier name is required.")
        if email and not _EMAIL.match(email):
            raise ValidationError(f"Invalid email: {email}")
        return name, email

    def add_supplier(
        self,
        name: str,
        phone: str = "",
        email: str = "",
        contact_person: Optional[str] = None,
        address: Optional[str] = None,
        payment_terms: Optional[str] = None,
        delivery_days: Iterable[str] = (),
    ) -> str:
        name, email = self._validate(name, email)
        return self.repo.add_supplier(
            name, (phone or "").strip(), email, contact_person, address, payment_terms, _clean_days(delivery_days)
        )

    def update_supplier(
        self,
        supplier_id: str,
        name: str,
        phone: str = "",
        email: str = "",
        contact_person: Optional[str] = None,
        address: Optional[str] = None,
        payment_terms: Optional[str] = None,
        delivery_days: Iterable[str] = (),
    ) -> None:
        name, email = self._validate(name, email)
        updated = self.repo.update_supplier(
            supplier_id, name, (phone or "").strip(), email, contact_person, address, payment_terms,
            _clean_days(delivery_days),
        )
        if not updated:
            raise NotFoundError("Supplier not found.")

    def get_supplier(self, supplier_id: str) -> Supplier:
        s = self.repo.get_supplier_by_id(supplier_id)
        if not s:
            raise NotFoundError("Supplier not found.")
        return s

    def list_suppliers(self) -> list[Supplier]:
        return self.repo.list_suppliers()
