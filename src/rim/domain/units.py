from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from rim.domain.errors import UnknownUnitError, ValidationError

WEIGHT = "weight"
VOLUME = "volume"
COUNT = "count"
UNIT_TYPES = (WEIGHT, VOLUME, COUNT)

BASE_UNITS: dict[str, str] = {WEIGHT: "g", VOLUME: "mL", COUNT: "piece"}


@dataclass(frozen=True)
class UnitDefinition:
    symbol: str
    type: str
    to_base_factor: float
    display_name: str
    abbreviation: str = ""

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValidationError("Unit symbol is required.")
        if self.type not in UNIT_TYPES:
            raise ValidationError(f"Unit type must be one of {', '.join(UNIT_TYPES)}. Received: {self.type!r}")
        if not float(self.to_base_factor) > 0:
            raise ValidationError(f"Unit factor must be > 0 for {self.symbol}.")

    @property
    def label(self) -> str:
        return self.abbreviation or self.symbol


DEFAULT_UNITS: tuple[UnitDefinition, ...] = (
    UnitDefinition("g", WEIGHT, 1, "Grams", "g"),
    UnitDefinition("kg", WEIGHT, 1000, "Kilograms", "kg"),
    UnitDefinition("sack_10kg", WEIGHT, 10_000, "Sack (10kg)", "sack"),
    UnitDefinition("sack_25kg", WEIGHT, 25_000, "Sack (25kg)", "sack"),
    UnitDefinition("sack_50kg", WEIGHT, 50_000, "Sack (50kg)", "sack"),
    UnitDefinition("mL", VOLUME, 1, "Milliliters", "mL"),
    UnitDefinition("L", VOLUME, 1000, "Liters", "L"),
    UnitDefinition("gallon", VOLUME, 3785, "Gallons", "gal"),
    UnitDefinition("piece", COUNT, 1, "Pieces", "pc"),
    UnitDefinition("dozen", COUNT, 12, "Dozen", "dz"),
)


class UnitRegistry:
    """Read-only table of unit definitions, validated once at construction.

    Every type routes through a single base unit (see ``BASE_UNITS``), so any
    two units of the same type convert via their ``to_base_factor``.
    """

    def __init__(self, definitions: Iterable[UnitDefinition]):
        by_symbol: dict[str, UnitDefinition] = {}
        for d in definitions:
            if d.symbol in by_symbol:
                raise ValidationError(f"Duplicate unit symbol: {d.symbol}")
            by_symbol[d.symbol] = d

        for unit_type, base in BASE_UNITS.items():
            found = by_symbol.get(base)
            if found is None or found.type != unit_type or float(found.to_base_factor) != 1.0:
                raise ValidationError(f"Base unit {base!r} for {unit_type} must be defined with factor 1.")

        self._by_symbol = by_symbol
        self._aliases = self._build_aliases(by_symbol.values())

    @staticmethod
    def _build_aliases(definitions: Iterable[UnitDefinition]) -> dict[str, str]:
        # case-insensitive names that point at exactly one unit; ambiguous ones are dropped
        candidates: dict[str, set[str]] = {}
        for d in definitions:
            for name in {d.symbol, d.abbreviation, d.display_name}:
                if name:
                    candidates.setdefault(name.strip().lower(), set()).add(d.symbol)
        return {k: next(iter(v)) for k, v in candidates.items() if len(v) == 1}

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._by_symbol

    def __iter__(self) -> Iterator[UnitDefinition]:
        return iter(self._by_symbol.values())

    def __len__(self) -> int:
        return len(self._by_symbol)

    def lookup(self, symbol: str) -> UnitDefinition:
        try:
            return self._by_symbol[symbol]
        except (KeyError, TypeError):
            raise UnknownUnitError(symbol) from None

    def parse(self, text: str) -> UnitDefinition:
        if not isinstance(text, str):
            raise UnknownUnitError(text)
        if text in self._by_symbol:
            return self._by_symbol[text]
        key = self._aliases.get(text.strip().lower())
        if key is None:
            raise UnknownUnitError(text)
        return self._by_symbol[key]

    def units_for_type(self, unit_type: str) -> list[UnitDefinition]:
        if unit_type not in UNIT_TYPES:
            raise ValidationError(f"Unknown unit type: {unit_type!r}")
        units = [d for d in self._by_symbol.values() if d.type == unit_type]
        return sorted(units, key=lambda d: (float(d.to_base_factor), d.symbol))

    def base_unit(self, unit_type: str) -> UnitDefinition:
        if unit_type not in BASE_UNITS:
            raise ValidationError(f"Unknown unit type: {unit_type!r}")
        return self._by_symbol[BASE_UNITS[unit_type]]

    def extended(self, definitions: Iterable[UnitDefinition]) -> "UnitRegistry":
        return UnitRegistry([*self._by_symbol.values(), *definitions])


def load_unit_definitions(path: Path | str) -> list[UnitDefinition]:
    """
    Reads extra pack sizes from a JSON list:
      [{"symbol": "case_flour", "type": "weight", "to_base_factor": 12000,
        "display_name": "Flour case (12kg)", "abbreviation": "case"}]
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValidationError(f"Unit file must contain a JSON list: {path}")
    out: list[UnitDefinition] = []
    for item in raw:
        try:
            out.append(
                UnitDefinition(
                    symbol=str(item["symbol"]).strip(),
                    type=str(item["type"]).strip().lower(),
                    to_base_factor=float(item["to_base_factor"]),
                    display_name=str(item.get("display_name") or item["symbol"]),
                    abbreviation=str(item.get("abbreviation") or ""),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid unit definition in {path}: {item!r}") from e
    return out


DEFAULT_REGISTRY = UnitRegistry(DEFAULT_UNITS)
