"""Folding pending interactive additions into an existing ledger structure."""

from collections.abc import Callable, Iterable

from macro_ledger.config import MealTemplate
from macro_ledger.domain.ledger import (
    GROUP_PREFIX,
    INTERACTIVE_PREFIX,
    MEAL_PREFIX,
    LedgerStructure,
)
from macro_ledger.services.parsing import DefaultServingLookup, ParsedItem, parse_item

MealTemplateLookup = Callable[[str], MealTemplate | None]


def build_new_items(
    pending_lines: Iterable[str],
    find_template: MealTemplateLookup,
    default_serving: DefaultServingLookup | None = None,
) -> LedgerStructure:
    """Turn pending addition lines into a structure of new items.

    `meal:<name>` expands a configured template (unknown names add nothing),
    `group:<name>` opens an ad-hoc meal filled by following `- ` lines, and
    any other line is a standalone item. A non-bullet line closes the open
    group; groups without items are dropped.
    """
    result = LedgerStructure()
    group_name: str | None = None
    group_items: dict[str, float] = {}

    def finalize_group() -> None:
        if group_name and group_items:
            target = result.meals.setdefault(
                meal_key(result.meals, group_name), {}
            )
            for food_name, quantity in group_items.items():
                target[food_name] = target.get(food_name, 0.0) + quantity

    for raw in pending_lines:
        text = raw.strip()
        if text.startswith(INTERACTIVE_PREFIX):
            text = text[len(INTERACTIVE_PREFIX) :].strip()
        if not text:
            continue
        lowered = text.lower()

        if lowered.startswith(MEAL_PREFIX):
            finalize_group()
            group_name, group_items = None, {}
            meal_name = text[len(MEAL_PREFIX) :].strip()
            template = find_template(meal_name)
            if template is None:
                continue
            target = result.meals.setdefault(meal_key(result.meals, meal_name), {})
            for template_item in template.items:
                _accumulate(target, parse_item(template_item, default_serving))
        elif lowered.startswith(GROUP_PREFIX):
            finalize_group()
            group_name, group_items = text[len(GROUP_PREFIX) :].strip(), {}
        elif text.startswith("- "):
            if group_name:
                _accumulate(group_items, parse_item(text[2:].strip(), default_serving))
        elif not text.startswith("-"):
            finalize_group()
            group_name, group_items = None, {}
            _accumulate(result.standalone_items, parse_item(text, default_serving))

    finalize_group()
    return result


def merge_structures(
    existing: LedgerStructure, new_items: LedgerStructure
) -> LedgerStructure:
    """Add new quantities on top of a snapshot of `existing`; never replace."""
    merged = existing.copy()
    for meal_name, items in new_items.meals.items():
        key = meal_key(merged.meals, meal_name)
        if key not in merged.meals:
            merged.meals[key] = dict(items)
            continue
        target = merged.meals[key]
        for food_name, quantity in items.items():
            target[food_name] = target.get(food_name, 0.0) + quantity
    for food_name, quantity in new_items.standalone_items.items():
        merged.standalone_items[food_name] = (
            merged.standalone_items.get(food_name, 0.0) + quantity
        )
    return merged


def meal_key(meals: dict[str, dict[str, float]], name: str) -> str:
    """Return the existing key matching `name` case-insensitively, else `name`."""
    wanted = name.lower()
    for existing in meals:
        if existing.lower() == wanted:
            return existing
    return name


def _accumulate(target: dict[str, float], item: ParsedItem) -> None:
    if item.food_name:
        target[item.food_name] = target.get(item.food_name, 0.0) + item.quantity
