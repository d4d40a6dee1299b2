"""Tests for food-name resolution."""

import pytest

from macro_ledger.domain.nutrition import ResolutionStatus
from macro_ledger.services.cache import InMemoryCache
from macro_ledger.services.foods import NutritionResolver, round_one, scale_food
from tests.conftest import StaticFoodRepository, make_food


def test_partial_match_with_several_hits_is_ambiguous() -> None:
    repository = StaticFoodRepository(
        foods=[
            make_food("Chicken Breast", 165, 31, 3.6, 0),
            make_food("Chicken Thigh", 209, 26, 10.9, 0),
        ]
    )
    resolver = NutritionResolver(repository=repository, cache=InMemoryCache())

    resolution = resolver.find_food("chicken")

    assert resolution.status is ResolutionStatus.AMBIGUOUS
    assert resolution.food is None
    assert resolution.candidates == ["Chicken Breast", "Chicken Thigh"]
    assert resolver.resolve("chicken", 100) is None


def test_exact_match_wins_over_partial_matches(resolver: NutritionResolver) -> None:
    resolution = resolver.find_food("chicken breast")

    assert resolution.found
    assert resolution.food.name == "Chicken Breast"


def test_single_partial_match_is_found(resolver: NutritionResolver) -> None:
    resolution = resolver.find_food("oat")

    assert resolution.found
    assert resolution.food.name == "Oatmeal"


def test_unknown_and_blank_queries_are_missing(resolver: NutritionResolver) -> None:
    assert resolver.find_food("Tofu").status is ResolutionStatus.MISSING
    assert resolver.find_food("  ").status is ResolutionStatus.MISSING
    assert resolver.resolve("Tofu", 100) is None


def test_find_foods_lists_substring_matches(resolver: NutritionResolver) -> None:
    names = [food.name for food in resolver.find_foods("CHICKEN")]

    assert names == ["Chicken Breast", "Chicken Breast Grilled"]
    assert resolver.find_foods("") == []


def test_resolve_scales_per_serving_values(resolver: NutritionResolver) -> None:
    profile = resolver.resolve("Eggs", 100)

    assert profile is not None
    assert profile.grams == 100
    assert profile.calories == 140
    assert profile.protein_g == 12
    assert profile.fat_g == 10
    assert profile.carbs_g == 1.2


def test_resolve_without_grams_uses_serving(resolver: NutritionResolver) -> None:
    profile = resolver.resolve("Banana")

    assert profile.grams == 120
    assert profile.calories == 105


def test_food_without_serving_size_has_no_profile(
    resolver: NutritionResolver,
) -> None:
    assert resolver.find_food("Butter").found
    assert resolver.resolve("Butter", 10) is None
    assert resolver.default_serving("Butter") is None


def test_default_serving_of_matching_food(resolver: NutritionResolver) -> None:
    assert resolver.default_serving("banana") == 120
    assert resolver.default_serving("Tofu") is None


def test_food_listing_is_cached_until_invalidated(
    resolver: NutritionResolver, food_repository: StaticFoodRepository
) -> None:
    resolver.find_food("Eggs")
    resolver.find_food("Rice")
    assert food_repository.calls == 1

    food_repository.foods.append(make_food("Tofu", 76, 8, 4.8, 1.9))
    assert not resolver.find_food("Tofu").found

    resolver.invalidate()

    assert resolver.find_food("Tofu").found
    assert food_repository.calls == 2


def test_round_one_rounds_half_away_from_zero() -> None:
    assert round_one(0.25) == 0.3
    assert round_one(2.675) == 2.7
    assert round_one(1.05) == 1.1
    assert round_one(-0.25) == -0.3


def test_scale_food_leaves_values_unrounded() -> None:
    food = make_food("Almonds", 164, 6, 14, 6, serving_grams=28)

    profile = scale_food(food, 10)

    assert profile.calories == pytest.approx(164 * 10 / 28)
    assert profile.protein_g == pytest.approx(6 * 10 / 28)
    assert profile.fat_g == pytest.approx(5.0)


def test_scale_food_applies_multiplier_to_serving() -> None:
    food = make_food("Banana", 105, 1.3, 0.4, 27, serving_grams=120)

    profile = scale_food(food, multiplier=2)

    assert profile.grams == 240
    assert profile.calories == 210


def test_resolve_reference_reports_status_with_profile(
    resolver: NutritionResolver,
) -> None:
    resolution, profile = resolver.resolve_reference("eggs", 50, multiplier=3)
    missing, no_profile = resolver.resolve_reference("Tofu", 50)

    assert resolution.found
    assert profile.grams == 150
    assert profile.calories == 210
    assert missing.status is ResolutionStatus.MISSING
    assert no_profile is None
