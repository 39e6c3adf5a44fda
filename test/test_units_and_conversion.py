import json
from pathlib import Path

import pytest

from rim.domain.conversion import (
    Quantity,
    conversion_preview,
    ensure_compatible,
    format_for_display,
    from_base,
    to_base,
)
from rim.domain.errors import UnknownUnitError, ValidationError
from rim.domain.units import (
    COUNT,
    DEFAULT_REGISTRY,
    DEFAULT_UNITS,
    VOLUME,
    WEIGHT,
    UnitDefinition,
    UnitRegistry,
    load_unit_definitions,
)


@pytest.mark.parametrize("unit", [d.symbol for d in DEFAULT_UNITS])
@pytest.mark.parametrize("amount", [0, 0.001, 1, 2.5, 18000, 123456.789])
def test_from_base_reverses_to_base(unit: str, amount: float):
    back = from_base(to_base(amount, unit), unit)
    assert back == pytest.approx(amount, rel=1e-9, abs=1e-12)


def test_pack_sizes_convert_to_grams():
    assert to_base(25, "kg") == 25000
    assert to_base(2, "sack_25kg") == 50000
    assert to_base(1, "gallon") == 3785
    assert to_base(3, "dozen") == 36


def test_unknown_unit_is_never_defaulted():
    with pytest.raises(UnknownUnitError) as exc:
        to_base(1, "bushel")
    assert exc.value.unit == "bushel"

    with pytest.raises(UnknownUnitError):
        DEFAULT_REGISTRY.parse("bushel")


def test_parse_accepts_case_insensitive_names():
    assert DEFAULT_REGISTRY.parse("KG").symbol == "kg"
    assert DEFAULT_REGISTRY.parse("Kilograms").symbol == "kg"
    assert DEFAULT_REGISTRY.parse("gal").symbol == "gallon"
    assert DEFAULT_REGISTRY.parse("ml").symbol == "mL"


def test_parse_rejects_ambiguous_abbreviation():
    # three sack sizes share the "sack" abbreviation
    with pytest.raises(UnknownUnitError):
        DEFAULT_REGISTRY.parse("sack")


def test_units_for_type_sorted_by_factor():
    assert [d.symbol for d in DEFAULT_REGISTRY.units_for_type(WEIGHT)] == [
        "g", "kg", "sack_10kg", "sack_25kg", "sack_50kg",
    ]
    assert DEFAULT_REGISTRY.base_unit(VOLUME).symbol == "mL"
    assert DEFAULT_REGISTRY.base_unit(COUNT).symbol == "piece"


def test_registry_rejects_duplicate_symbols():
    with pytest.raises(ValidationError):
        UnitRegistry([*DEFAULT_UNITS, UnitDefinition("kg", WEIGHT, 1000, "Kilos")])


def test_registry_requires_base_units():
    with pytest.raises(ValidationError):
        UnitRegistry([d for d in DEFAULT_UNITS if d.symbol != "mL"])


def test_unit_definition_rejects_bad_factor_and_type():
    with pytest.raises(ValidationError):
        UnitDefinition("crate", WEIGHT, 0, "Crate")
    with pytest.raises(ValidationError):
        UnitDefinition("crate", "length", 1, "Crate")


def test_extended_registry_leaves_default_untouched(tmp_path: Path):
    path = tmp_path / "units.json"
    path.write_text(
        json.dumps([
            {"symbol": "case_flour", "type": "weight", "to_base_factor": 12000,
             "display_name": "Flour case (12kg)", "abbreviation": "case"},
        ]),
        encoding="utf-8",
    )

    registry = DEFAULT_REGISTRY.extended(load_unit_definitions(path))

    assert to_base(2, "case_flour", registry) == 24000
    assert registry.parse("case").symbol == "case_flour"
    assert "case_flour" not in DEFAULT_REGISTRY
    assert len(registry) == len(DEFAULT_REGISTRY) + 1


def test_load_unit_definitions_rejects_bad_entries(tmp_path: Path):
    path = tmp_path / "units.json"
    path.write_text(json.dumps([{"symbol": "tray"}]), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_unit_definitions(path)


def test_quantity_validates_amount_and_unit():
    assert Quantity(2, "kg").to_base() == 2000

    with pytest.raises(ValidationError):
        Quantity(-1, "g")
    with pytest.raises(ValidationError):
        Quantity(float("nan"), "g")
    with pytest.raises(UnknownUnitError):
        Quantity(1, "")


def test_ensure_compatible_rejects_cross_type_units():
    ensure_compatible("kg", "g")
    with pytest.raises(ValidationError):
        ensure_compatible("L", "g")


@pytest.mark.parametrize(
    "amount, unit_type, expected",
    [
        (30000, WEIGHT, "30.00 kg"),
        (1500, WEIGHT, "1.50 kg"),
        (250, WEIGHT, "250.00 g"),
        (0, WEIGHT, "0.00 g"),
        (1500, VOLUME, "1.50 L"),
        (999, VOLUME, "999.00 mL"),
        (12, COUNT, "12 pcs"),
    ],
)
def test_format_for_display_picks_largest_readable_unit(amount, unit_type, expected):
    assert format_for_display(amount, unit_type) == expected


def test_conversion_preview_uses_display_units():
    assert conversion_preview(2, "sack_25kg") == "Will add 50.00 kg to inventory"
    assert conversion_preview(2, "dozen") == "Will add 24 pcs to inventory"
