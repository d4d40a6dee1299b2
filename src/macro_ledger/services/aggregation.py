"""Nutrition totals computed from ledger lines."""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from macro_ledger.domain.ledger import LineKind
from macro_ledger.domain.nutrition import (
    FoodResolution,
    LedgerTotals,
    NutritionProfile,
    NutritionTotals,
    RollupSummary,
)
from macro_ledger.services.foods import NutritionResolver, round_one
from macro_ledger.services.merge import MealTemplateLookup
from macro_ledger.services.parsing import parse_item, tokenize

_MULTIPLIER = re.compile(r"^(.*)\s+×\s+(\d+)$")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FoodReference:
    """A food token with explicit grams, or None to use its serving size."""

    food_name: str
    grams: float | None
    multiplier: int = 1


@dataclass(frozen=True)
class ItemContribution:
    """How one reference resolved and what it adds to the totals."""

    reference: FoodReference
    resolution: FoodResolution
    profile: NutritionProfile | None


def split_multiplier(header: str) -> tuple[str, int]:
    """Split `Lunch × 2` into (`Lunch`, 2); headers without a suffix count once."""
    match = _MULTIPLIER.match(header)
    if match is None:
        return header, 1
    return match.group(1), int(match.group(2))


@dataclass
class MacroAggregator:
    """Expand meals, resolve foods and sum their nutrition."""

    resolver: NutritionResolver
    find_template: MealTemplateLookup

    def expand(self, lines: Iterable[str]) -> list[FoodReference]:
        """Turn ledger lines into food references.

        A meal header expands its template only when no bullet lines follow
        it; a `× N` suffix scales every quantity of that meal.
        """
        tokens = [
            line
            for line in tokenize(lines)
            if line.kind not in {LineKind.INTERACTIVE, LineKind.ID}
        ]
        references: list[FoodReference] = []
        current_meal: str | None = None
        multiplier = 1
        for index, line in enumerate(tokens):
            if line.kind is LineKind.MEAL_HEADER:
                current_meal, multiplier = split_multiplier(line.payload)
                has_bullets = (
                    index + 1 < len(tokens)
                    and tokens[index + 1].kind is LineKind.BULLET_ITEM
                )
                if has_bullets:
                    continue
                template = self.find_template(current_meal)
                if template is None:
                    continue
                for item_text in template.items:
                    _append_reference(references, item_text, multiplier)
            elif line.kind is LineKind.BULLET_ITEM:
                if current_meal:
                    _append_reference(references, line.payload, multiplier)
            else:
                current_meal, multiplier = None, 1
                _append_reference(references, line.payload, 1)
        return references

    def evaluate(self, lines: Iterable[str]) -> list[ItemContribution]:
        """Resolve every reference; unresolved ones carry no profile."""
        contributions: list[ItemContribution] = []
        for reference in self.expand(lines):
            resolution, profile = self.resolver.resolve_reference(
                reference.food_name, reference.grams, reference.multiplier
            )
            contributions.append(ItemContribution(reference, resolution, profile))
        return contributions

    def aggregate(self, lines: Iterable[str]) -> NutritionTotals:
        """Sum contributions; calories are rounded per item and again at the end."""
        calories = protein = fat = carbs = 0.0
        for contribution in self.evaluate(lines):
            profile = contribution.profile
            if profile is None:
                continue
            calories += round_one(profile.calories)
            protein += profile.protein_g
            fat += profile.fat_g
            carbs += profile.carbs_g
        return NutritionTotals(
            calories=round_one(calories),
            protein_g=round_one(protein),
            fat_g=round_one(fat),
            carbs_g=round_one(carbs),
        )

    def aggregate_many(
        self, ledgers: Mapping[str, Iterable[str] | None]
    ) -> RollupSummary:
        """Total each ledger and the grand total; missing ledgers count as zero."""
        aggregate = NutritionTotals.zero()
        breakdown: list[LedgerTotals] = []
        for ledger_id, lines in ledgers.items():
            totals = self.aggregate(lines) if lines else NutritionTotals.zero()
            breakdown.append(LedgerTotals(ledger_id=ledger_id, totals=totals))
            aggregate = aggregate + totals
        _logger.debug(
            "Aggregated %s ledgers: calories=%.1f protein=%.1f fat=%.1f carbs=%.1f",
            len(breakdown),
            aggregate.calories,
            aggregate.protein_g,
            aggregate.fat_g,
            aggregate.carbs_g,
        )
        return RollupSummary(aggregate=aggregate, breakdown=breakdown)


def _append_reference(
    references: list[FoodReference], item_text: str, multiplier: int
) -> None:
    item = parse_item(item_text)
    if not item.food_name:
        return
    grams = item.quantity if item.explicit else None
    references.append(FoodReference(item.food_name, grams, multiplier))
