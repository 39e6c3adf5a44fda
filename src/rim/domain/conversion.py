from __future__ import annotations

import math
from dataclasses import dataclass

from rim.domain.errors import UnknownUnitError, ValidationError
from rim.domain.units import COUNT, DEFAULT_REGISTRY, VOLUME, WEIGHT, UnitRegistry

# (unit symbol, label) pairs used when rendering stock, smallest first
DISPLAY_SCALE: dict[str, tuple[tuple[str, str], ...]] = {
    WEIGHT: (("g", "g"), ("kg", "kg")),
    VOLUME: (("mL", "mL"), ("L", "L")),
    COUNT: (("piece", "pcs"),),
}

DISPLAY_DECIMALS: dict[str, int] = {WEIGHT: 2, VOLUME: 2, COUNT: 0}


def _finite(value: object, what: str) -> float:
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number. Received: {value!r}") from None
    if not math.isfinite(v):
        raise ValidationError(f"{what} must be finite. Received: {value!r}")
    return v


@dataclass(frozen=True)
class Quantity:
    amount: float
    unit: str

    def __post_init__(self) -> None:
        amount = _finite(self.amount, "Amount")
        if amount < 0:
            raise ValidationError("Amount must be >= 0.")
        if not isinstance(self.unit, str) or not self.unit.strip():
            raise UnknownUnitError(self.unit)
        object.__setattr__(self, "amount", amount)

    def to_base(self, registry: UnitRegistry = DEFAULT_REGISTRY) -> float:
        return to_base(self.amount, self.unit, registry)


def to_base(amount: float, unit: str, registry: UnitRegistry = DEFAULT_REGISTRY) -> float:
    definition = registry.lookup(unit)
    return _finite(amount, "Amount") * float(definition.to_base_factor)


def from_base(base_amount: float, unit: str, registry: UnitRegistry = DEFAULT_REGISTRY) -> float:
    definition = registry.lookup(unit)
    return _finite(base_amount, "Base amount") / float(definition.to_base_factor)


def ensure_compatible(unit: str, base_unit: str, registry: UnitRegistry = DEFAULT_REGISTRY) -> None:
    entered = registry.lookup(unit)
    target = registry.lookup(base_unit)
    if entered.type != target.type:
        raise ValidationError(
            f"Unit {unit} ({entered.type}) can not be used for an ingredient measured in {base_unit} ({target.type})."
        )


def format_for_display(base_amount: float, unit_type: str, registry: UnitRegistry = DEFAULT_REGISTRY) -> str:
    """Render a base amount with the largest scale unit that keeps the value >= 1.

    1500 g -> "1.50 kg", 250 mL -> "250.00 mL", 12 pieces -> "12 pcs".
    """
    if unit_type not in DISPLAY_SCALE:
        raise ValidationError(f"Unknown unit type: {unit_type!r}")
    base = _finite(base_amount, "Base amount")
    scale = DISPLAY_SCALE[unit_type]

    symbol, label = scale[0]
    for candidate, candidate_label in scale:
        if abs(base) / float(registry.lookup(candidate).to_base_factor) >= 1:
            symbol, label = candidate, candidate_label

    decimals = DISPLAY_DECIMALS[unit_type]
    value = round(base / float(registry.lookup(symbol).to_base_factor), decimals) + 0.0
    return f"{value:.{decimals}f} {label}"


def conversion_preview(amount: float, unit: str, registry: UnitRegistry = DEFAULT_REGISTRY) -> str:
    definition = registry.lookup(unit)
    base = to_base(amount, unit, registry)
    return f"Will add {format_for_display(base, definition.type, registry)} to inventory"
