"""Food-name resolution against the food files."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from macro_ledger.domain.nutrition import (
    FoodRecord,
    FoodResolution,
    NutritionProfile,
    ResolutionStatus,
)
from macro_ledger.services.cache import Cache

_FOODS_CACHE_KEY = "foods:listing"
_ONE_DECIMAL = Decimal("0.1")

_logger = logging.getLogger(__name__)


class FoodRepository(Protocol):
    """Read-only access to the food files."""

    def list_foods(self) -> list[FoodRecord]:
        """Return every food record currently stored."""


def round_one(value: float) -> float:
    """Round half away from zero to one decimal, on the exact binary value."""
    return float(Decimal(value).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


@dataclass
class NutritionResolver:
    """Resolve food-name tokens to food records and scaled profiles.

    Matching: a single case-insensitive exact name match wins; otherwise a
    single substring match wins; several substring matches are ambiguous and
    nothing matching is missing. There is no ranking beyond hit counts.
    """

    repository: FoodRepository
    cache: Cache
    ttl_seconds: int | None = 300

    def list_foods(self) -> list[FoodRecord]:
        """Return all food records, cached until invalidated or expired."""
        cached = self.cache.get(_FOODS_CACHE_KEY)
        if isinstance(cached, list):
            return cached
        foods = self.repository.list_foods()
        self.cache.set(_FOODS_CACHE_KEY, foods, ttl_seconds=self.ttl_seconds)
        return foods

    def food_names(self) -> list[str]:
        return [food.name for food in self.list_foods()]

    def find_foods(self, term: str) -> list[FoodRecord]:
        """Return every food whose name contains `term`, ignoring case."""
        if not term or not term.strip():
            return []
        term_lower = term.lower()
        return [food for food in self.list_foods() if term_lower in food.name.lower()]

    def find_food(self, query: str) -> FoodResolution:
        """Match a query against food names."""
        if not query or not query.strip():
            return FoodResolution(query=query, status=ResolutionStatus.MISSING)
        foods = self.list_foods()
        query_lower = query.lower()

        exact = [food for food in foods if food.name.lower() == query_lower]
        if len(exact) == 1:
            return FoodResolution(
                query=query, status=ResolutionStatus.FOUND, food=exact[0]
            )

        partial = self.find_foods(query)
        if len(partial) == 1:
            return FoodResolution(
                query=query, status=ResolutionStatus.FOUND, food=partial[0]
            )
        if len(partial) > 1:
            names = [food.name for food in partial]
            _logger.warning(
                "Ambiguous food query %r matches multiple foods: %s",
                query,
                ", ".join(names),
            )
            return FoodResolution(
                query=query, status=ResolutionStatus.AMBIGUOUS, candidates=names
            )
        return FoodResolution(query=query, status=ResolutionStatus.MISSING)

    def default_serving(self, food_name: str) -> float | None:
        """Serving size in grams of the matching food, if any."""
        resolution = self.find_food(food_name)
        if resolution.food is None:
            return None
        return resolution.food.serving_grams

    def resolve(
        self, query: str, grams: float | None = None
    ) -> NutritionProfile | None:
        """Return the profile for `grams` of the matching food.

        Without `grams` the food's own serving is used. Missing and ambiguous
        references, and foods without a gram serving size, resolve to None.
        """
        return self.resolve_reference(query, grams)[1]

    def resolve_reference(
        self, query: str, grams: float | None = None, multiplier: int = 1
    ) -> tuple[FoodResolution, NutritionProfile | None]:
        """Match `query` and scale the food to `grams` times `multiplier`."""
        resolution = self.find_food(query)
        if not resolution.found:
            if resolution.status is ResolutionStatus.MISSING:
                _logger.warning("No food file matches %r", query)
            return resolution, None
        return resolution, scale_food(resolution.food, grams, multiplier)

    def invalidate(self) -> None:
        self.cache.invalidate(_FOODS_CACHE_KEY)


def scale_food(
    food: FoodRecord, grams: float | None = None, multiplier: int = 1
) -> NutritionProfile | None:
    """Scale per-serving values to `grams` times `multiplier`, unrounded.

    Without `grams` the food's serving size is used.
    """
    serving = food.serving_grams
    if not serving:
        return None
    quantity = (serving if grams is None else grams) * multiplier
    scale = quantity / serving
    return NutritionProfile(
        name=food.name,
        grams=quantity,
        calories=food.calories * scale,
        protein_g=food.protein_g * scale,
        fat_g=food.fat_g * scale,
        carbs_g=food.carbs_g * scale,
    )
