"""Nutrition domain models."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class NutritionTotals:
    """Calories and macronutrients, always derived and never persisted."""

    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float

    @classmethod
    def zero(cls) -> "NutritionTotals":
        return cls(0.0, 0.0, 0.0, 0.0)

    def __add__(self, other: "NutritionTotals") -> "NutritionTotals":
        return NutritionTotals(
            calories=self.calories + other.calories,
            protein_g=self.protein_g + other.protein_g,
            fat_g=self.fat_g + other.fat_g,
            carbs_g=self.carbs_g + other.carbs_g,
        )


@dataclass(frozen=True)
class FoodRecord:
    """A food file: values are per serving of `serving_grams` grams."""

    name: str
    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float
    serving_grams: float | None


@dataclass(frozen=True)
class NutritionProfile:
    """Nutrition of one food reference scaled to the requested grams."""

    name: str
    grams: float
    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float


class ResolutionStatus(str, Enum):
    """Outcome of matching a food name against the food files."""

    FOUND = "found"
    MISSING = "missing"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class FoodResolution:
    """Result of a food lookup, distinguishing missing from ambiguous."""

    query: str
    status: ResolutionStatus
    food: FoodRecord | None = None
    candidates: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status is ResolutionStatus.FOUND


@dataclass(frozen=True)
class LedgerTotals:
    """Totals for a single ledger id within a rollup."""

    ledger_id: str
    totals: NutritionTotals


@dataclass(frozen=True)
class RollupSummary:
    """Grand total across several ledgers plus the per-ledger breakdown."""

    aggregate: NutritionTotals
    breakdown: list[LedgerTotals]
