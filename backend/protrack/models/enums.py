"""Closed vocabularies shared by the ORM models, schemas and services."""

from __future__ import annotations

from enum import Enum


class Platform(str, Enum):
    BIG_BAG = "BIG_BAG"
    BAG_50KG = "50KG"


class Category(str, Enum):
    EXPORT = "EXPORT"
    LOCAL = "LOCAL"
    DEBARDAGE = "DEBARDAGE"


class Shift(str, Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    NIGHT = "NIGHT"
    EVENING = "EVENING"


class ProgramStatus(str, Enum):
    """Status stored on the dossier row."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Role(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"


class PlatformAssignment(str, Enum):
    BIG_BAG = "BIG_BAG"
    BAG_50KG = "50KG"
    BOTH = "BOTH"


class PalletType(str, Enum):
    AVEC_PALET = "Avec Palet"
    SANS_PALET = "Sans Palet"
    PALET_PLASTIC = "Palet Plastic"
    AVEC_PALET_PLASTIC = "Avec Palet Plastic"


def sql_in(enum_cls: type[Enum]) -> str:
    """Render the enum values as a SQL ``IN`` list for CHECK constraints."""

    return "(" + ", ".join(f"'{member.value}'" for member in enum_cls) + ")"
