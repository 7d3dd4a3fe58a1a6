"""Platform x category rule matrix and production log validation.

``RULES`` is a total table over the closed ``(Platform, Category)`` pair;
``rule_for`` never falls back to a default. Submissions are normalised from
the matching rule (units, weight, pallet) and then validated before any
write happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from itertools import product
from typing import Any, Mapping

from protrack.core.errors import LogValidationError
from protrack.models.enums import Category, PalletType, Platform

THREE_PLACES = Decimal("0.001")

BAG_50KG_ARTICLES = (
    "4002", "4317", "4304", "4312", "4303", "4300", "4302", "4301",
    "4409", "4406", "4405", "4532", "4512", "4514", "4500",
)

ARTICLE_LABELS = {
    "4301": "Ciment CPJ 45",
    "4302": "Ciment CPJ 35",
    "4300": "Clinker",
    "4318": "Ciment VRAC",
    "4312": "Ciment SAC",
    "4303": "Special",
}

LOGISTICS_FIELDS = ("file_number", "bl_number", "tc_number", "seal_number")


@dataclass(frozen=True, slots=True)
class PlatformRule:
    label: str
    unit_label: str
    default_units: int
    units_fixed: bool
    default_weight: Decimal
    fixed_weight: Decimal | None
    allowed_weights: tuple[Decimal, ...]
    allowed_pallets: tuple[str, ...]
    articles: tuple[str, ...]
    requires_logistics: bool
    shows_pallet_type: bool
    shows_reste_input: bool
    requires_truck_matricul: bool


RULES: Mapping[tuple[Platform, Category], PlatformRule] = {
    (Platform.BIG_BAG, Category.EXPORT): PlatformRule(
        label="Export",
        unit_label="Columns",
        default_units=20,
        units_fixed=True,
        default_weight=Decimal("1.1"),
        fixed_weight=None,
        allowed_weights=(Decimal("1.1"), Decimal("1.2")),
        allowed_pallets=(PalletType.AVEC_PALET.value, PalletType.SANS_PALET.value),
        articles=("4301", "4302"),
        requires_logistics=True,
        shows_pallet_type=True,
        shows_reste_input=False,
        requires_truck_matricul=False,
    ),
    (Platform.BIG_BAG, Category.LOCAL): PlatformRule(
        label="Local",
        unit_label="Columns",
        default_units=22,
        units_fixed=True,
        default_weight=Decimal("1.2"),
        fixed_weight=Decimal("1.2"),
        allowed_weights=(),
        allowed_pallets=(PalletType.SANS_PALET.value,),
        articles=("4300", "4318", "4312", "4303"),
        requires_logistics=False,
        shows_pallet_type=True,
        shows_reste_input=False,
        requires_truck_matricul=True,
    ),
    (Platform.BIG_BAG, Category.DEBARDAGE): PlatformRule(
        label="Débardage",
        unit_label="Columns",
        default_units=20,
        units_fixed=True,
        default_weight=Decimal("1.2"),
        fixed_weight=Decimal("1.2"),
        allowed_weights=(),
        allowed_pallets=(PalletType.AVEC_PALET_PLASTIC.value,),
        articles=("4303",),
        requires_logistics=False,
        shows_pallet_type=True,
        shows_reste_input=False,
        requires_truck_matricul=False,
    ),
    (Platform.BAG_50KG, Category.EXPORT): PlatformRule(
        label="Export",
        unit_label="Sacs (Bags)",
        default_units=500,
        units_fixed=False,
        default_weight=Decimal("0.05"),
        fixed_weight=Decimal("0.05"),
        allowed_weights=(),
        allowed_pallets=(),
        articles=BAG_50KG_ARTICLES,
        requires_logistics=True,
        shows_pallet_type=False,
        shows_reste_input=False,
        requires_truck_matricul=False,
    ),
    (Platform.BAG_50KG, Category.LOCAL): PlatformRule(
        label="Local",
        unit_label="Sacs (Bags)",
        default_units=0,  # operator must enter the bag count
        units_fixed=False,
        default_weight=Decimal("0.05"),
        fixed_weight=Decimal("0.05"),
        allowed_weights=(),
        allowed_pallets=(),
        articles=BAG_50KG_ARTICLES,
        requires_logistics=False,
        shows_pallet_type=False,
        shows_reste_input=True,
        requires_truck_matricul=False,
    ),
    (Platform.BAG_50KG, Category.DEBARDAGE): PlatformRule(
        label="Débardage",
        unit_label="Sacs (Bags)",
        default_units=560,
        units_fixed=True,
        default_weight=Decimal("0.05"),
        fixed_weight=Decimal("0.05"),
        allowed_weights=(),
        allowed_pallets=(),
        articles=BAG_50KG_ARTICLES,
        requires_logistics=False,
        shows_pallet_type=False,
        shows_reste_input=True,
        requires_truck_matricul=False,
    ),
}

_missing = set(product(Platform, Category)) - set(RULES)
if _missing:  # pragma: no cover - guards edits to the table above
    raise RuntimeError(f"Rule matrix is missing entries: {sorted(_missing)}")


def rule_for(platform: Platform | str, category: Category | str) -> PlatformRule:
    return RULES[(Platform(platform), Category(category))]


def compute_tonnage(truck_count: int, units_per_truck: int, weight_per_unit: Decimal) -> Decimal:
    """trucks x units x weight, rounded half-up to three decimals."""

    total = Decimal(truck_count) * Decimal(units_per_truck) * Decimal(weight_per_unit)
    return total.quantize(THREE_PLACES, rounding=ROUND_HALF_UP)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalise_submission(data: dict[str, Any]) -> dict[str, Any]:
    """Fill rule-driven defaults into a raw submission and upper-case the shift.

    Returns a new dict; values the operator supplied explicitly are kept so
    that validation can reject them if they break the rule.
    """

    rule = rule_for(data["platform"], data["category"])
    result = dict(data)
    if isinstance(result.get("shift"), str):
        result["shift"] = result["shift"].strip().upper()
    if result.get("units_per_truck") is None:
        result["units_per_truck"] = rule.default_units
    if result.get("weight_per_unit") is None:
        result["weight_per_unit"] = rule.fixed_weight or rule.default_weight
    if rule.shows_pallet_type and _blank(result.get("pallet_type")) and rule.allowed_pallets:
        result["pallet_type"] = rule.allowed_pallets[0]
    if not rule.shows_pallet_type:
        result["pallet_type"] = None
    if not rule.requires_logistics:
        for field in ("bl_number", "tc_number", "seal_number"):
            result[field] = None
    if not rule.requires_truck_matricul:
        result["truck_matricul"] = None
    for field in LOGISTICS_FIELDS:
        if isinstance(result.get(field), str):
            result[field] = result[field].strip() or None
    return result


def validate_submission(data: Mapping[str, Any]) -> PlatformRule:
    """Raise :class:`LogValidationError` listing every rule the submission breaks."""

    rule = rule_for(data["platform"], data["category"])
    errors: list[dict[str, str]] = []

    def fail(field: str, message: str) -> None:
        errors.append({"field": field, "message": message})

    truck_count = data.get("truck_count")
    if truck_count is None or truck_count <= 0:
        fail("truck_count", "Truck count must be greater than zero.")

    units = data.get("units_per_truck")
    if units is None or units <= 0:
        fail("units_per_truck", f"{rule.unit_label} per truck must be greater than zero.")
    elif rule.units_fixed and units != rule.default_units:
        fail("units_per_truck", f"{rule.unit_label} per truck is fixed at {rule.default_units}.")

    weight = data.get("weight_per_unit")
    weight = Decimal(str(weight)) if weight is not None else None
    if weight is None or weight <= 0:
        fail("weight_per_unit", "Weight per unit must be greater than zero.")
    elif rule.fixed_weight is not None and weight != rule.fixed_weight:
        fail("weight_per_unit", f"Weight per unit is fixed at {rule.fixed_weight} t.")
    elif rule.allowed_weights and weight not in rule.allowed_weights:
        allowed = ", ".join(str(w) for w in rule.allowed_weights)
        fail("weight_per_unit", f"Weight per unit must be one of: {allowed}.")

    if data.get("article_code") not in rule.articles:
        fail("article_code", f"Article {data.get('article_code')} is not allowed for {rule.label}.")

    pallet = data.get("pallet_type")
    if rule.shows_pallet_type and rule.allowed_pallets and pallet not in rule.allowed_pallets:
        fail("pallet_type", f"Pallet type must be one of: {', '.join(rule.allowed_pallets)}.")

    if rule.requires_logistics:
        for field in LOGISTICS_FIELDS:
            if _blank(data.get(field)):
                fail(field, f"{field} is required for {rule.label}.")

    if rule.requires_truck_matricul and _blank(data.get("truck_matricul")):
        fail("truck_matricul", "Truck Matricul is required.")

    if errors:
        raise LogValidationError(errors)
    return rule
