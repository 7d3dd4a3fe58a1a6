from decimal import Decimal
from itertools import product

import pytest

from protrack.core.errors import LogValidationError
from protrack.models.enums import Category, Platform
from protrack.services.business_rules import (
    RULES,
    compute_tonnage,
    normalise_submission,
    rule_for,
    validate_submission,
)


def _export_big_bag(**overrides):
    data = {
        "platform": "BIG_BAG",
        "category": "EXPORT",
        "shift": "morning",
        "article_code": "4301",
        "truck_count": 2,
        "units_per_truck": None,
        "weight_per_unit": None,
        "pallet_type": None,
        "file_number": "EXP-001",
        "bl_number": "BL1",
        "tc_number": "TC1",
        "seal_number": "SEAL1",
        "truck_matricul": None,
    }
    data.update(overrides)
    return data


def _field_errors(excinfo):
    return {error["field"] for error in excinfo.value.errors}


def test_matrix_is_total():
    assert set(RULES) == set(product(Platform, Category))
    assert rule_for("50KG", "LOCAL") is RULES[(Platform.BAG_50KG, Category.LOCAL)]


def test_rules_are_immutable():
    rule = rule_for(Platform.BIG_BAG, Category.EXPORT)
    with pytest.raises(AttributeError):
        rule.default_units = 99  # type: ignore[misc]


def test_unknown_pair_is_rejected():
    with pytest.raises(ValueError):
        rule_for("BIG_BAG", "TRANSFER")


def test_normalise_fills_defaults_and_uppercases_shift():
    data = normalise_submission(_export_big_bag())
    assert data["shift"] == "MORNING"
    assert data["units_per_truck"] == 20
    assert data["weight_per_unit"] == Decimal("1.1")
    assert data["pallet_type"] == "Avec Palet"
    validate_submission(data)


def test_normalise_drops_fields_the_rule_does_not_use():
    data = normalise_submission(
        {
            "platform": "50KG",
            "category": "DEBARDAGE",
            "shift": "NIGHT",
            "article_code": "4002",
            "truck_count": 1,
            "units_per_truck": None,
            "weight_per_unit": None,
            "pallet_type": "Avec Palet",
            "bl_number": "BL",
            "truck_matricul": "12345-A-6",
        }
    )
    assert data["units_per_truck"] == 560
    assert data["weight_per_unit"] == Decimal("0.05")
    assert data["pallet_type"] is None
    assert data["bl_number"] is None
    assert data["truck_matricul"] is None
    validate_submission(data)


def test_export_requires_logistics_fields():
    data = normalise_submission(_export_big_bag(file_number="  ", bl_number=None, seal_number=""))
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(data)
    assert _field_errors(excinfo) == {"file_number", "bl_number", "seal_number"}
    assert excinfo.value.status_code == 422


def test_fixed_units_and_weights_are_enforced():
    data = normalise_submission(_export_big_bag(units_per_truck=21, weight_per_unit=Decimal("1.3")))
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(data)
    assert _field_errors(excinfo) == {"units_per_truck", "weight_per_unit"}


def test_export_weight_choice_is_allowed():
    validate_submission(normalise_submission(_export_big_bag(weight_per_unit=Decimal("1.2"))))


def test_local_big_bag_needs_truck_plate_and_allowed_article():
    data = normalise_submission(
        _export_big_bag(category="LOCAL", article_code="4301", file_number=None)
    )
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(data)
    assert _field_errors(excinfo) == {"truck_matricul", "article_code"}


def test_pallet_outside_allowed_set():
    data = normalise_submission(_export_big_bag(pallet_type="Palet Plastic"))
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(data)
    assert _field_errors(excinfo) == {"pallet_type"}


def test_50kg_local_requires_bag_count():
    data = normalise_submission(
        {
            "platform": "50KG",
            "category": "LOCAL",
            "shift": "AFTERNOON",
            "article_code": "4317",
            "truck_count": 1,
            "units_per_truck": None,
            "weight_per_unit": None,
        }
    )
    assert data["units_per_truck"] == 0
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(data)
    assert _field_errors(excinfo) == {"units_per_truck"}

    data["units_per_truck"] = 400
    validate_submission(data)


def test_50kg_export_bags_are_editable():
    data = normalise_submission(
        _export_big_bag(platform="50KG", article_code="4500", units_per_truck=480)
    )
    validate_submission(data)


def test_zero_trucks_rejected():
    with pytest.raises(LogValidationError) as excinfo:
        validate_submission(normalise_submission(_export_big_bag(truck_count=0)))
    assert "truck_count" in _field_errors(excinfo)


def test_tonnage_rounds_half_up_to_three_places():
    assert compute_tonnage(2, 20, Decimal("1.1")) == Decimal("44.000")
    assert compute_tonnage(3, 500, Decimal("0.05")) == Decimal("75.000")
    assert compute_tonnage(1, 1, Decimal("0.0005")) == Decimal("0.001")
    assert compute_tonnage(1, 1, Decimal("0.0004")) == Decimal("0.000")
