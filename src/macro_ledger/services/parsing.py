"""Line-oriented tokenizer and parser for ledger block text.

Grammar, one trimmed line at a time:

    interactive-line := "interactive:" <anything>      (merge input only)
    meal-header      := "meal:" <name>                 (case-insensitive prefix)
    bullet-item      := "-" <item>                     (only inside a meal scope)
    standalone-item  := <item>                         (closes the meal scope)
    item             := <food> [":" <quantity> ["g"]]
"""

import math
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from macro_ledger.domain.ledger import (
    ID_PREFIX,
    INTERACTIVE_PREFIX,
    MEAL_PREFIX,
    LedgerLine,
    LedgerStructure,
    LineKind,
)

DEFAULT_SERVING_GRAMS = 100.0

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_FIRST_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_TRAILING_GRAM = re.compile(r"g$", re.IGNORECASE)

DefaultServingLookup = Callable[[str], float | None]


@dataclass(frozen=True)
class QuantityParse:
    """A parsed gram quantity; malformed tokens read as zero."""

    value: float
    malformed: bool = False


@dataclass(frozen=True)
class ParsedItem:
    """A `food[:quantity]` item after applying the default-serving rule."""

    food_name: str
    quantity: float
    explicit: bool = True
    malformed: bool = False


def read_leading_number(text: str) -> float | None:
    """Read the longest numeric prefix of `text`, or None if there is none."""
    match = _LEADING_NUMBER.match(text.lstrip())
    if match is None:
        return None
    value = float(match.group(0))
    return value if math.isfinite(value) else None


def parse_grams(text: str) -> float | None:
    """Return the first unsigned number found anywhere in `text`."""
    match = _FIRST_NUMBER.search(text)
    if match is None:
        return None
    return float(match.group(0))


def parse_quantity(token: str) -> QuantityParse:
    """Parse a quantity token such as `200g`, `80.5` or `abc`."""
    value = read_leading_number(_TRAILING_GRAM.sub("", token.strip(), count=1))
    if value is None:
        return QuantityParse(0.0, malformed=True)
    return QuantityParse(value)


def parse_item(
    text: str, default_serving: DefaultServingLookup | None = None
) -> ParsedItem:
    """Split an item into food name and grams.

    Without a quantity the food's default serving is used, falling back to
    100g when no food matches or it has no usable serving size.
    """
    if ":" in text:
        parts = [part.strip() for part in text.split(":")]
        quantity = parse_quantity(parts[1])
        return ParsedItem(
            food_name=parts[0],
            quantity=quantity.value,
            malformed=quantity.malformed,
        )
    food_name = text.strip()
    serving = default_serving(food_name) if default_serving and food_name else None
    return ParsedItem(
        food_name=food_name,
        quantity=serving if serving else DEFAULT_SERVING_GRAMS,
        explicit=False,
    )


def classify_line(line: str) -> LedgerLine:
    """Assign a trimmed line to its grammar class."""
    lowered = line.lower()
    if line.startswith(INTERACTIVE_PREFIX):
        return LedgerLine(
            LineKind.INTERACTIVE, line, line[len(INTERACTIVE_PREFIX) :].strip()
        )
    if lowered.startswith(MEAL_PREFIX):
        return LedgerLine(LineKind.MEAL_HEADER, line, line[len(MEAL_PREFIX) :].strip())
    if line.startswith("-"):
        return LedgerLine(LineKind.BULLET_ITEM, line, line[1:].strip())
    if lowered.startswith(ID_PREFIX):
        return LedgerLine(LineKind.ID, line, line[len(ID_PREFIX) :].strip())
    return LedgerLine(LineKind.STANDALONE_ITEM, line, line)


def tokenize(source: str | Iterable[str]) -> list[LedgerLine]:
    """Split block text (or pre-split lines) into classified, non-empty lines."""
    raw_lines = source.split("\n") if isinstance(source, str) else source
    return [classify_line(line.strip()) for line in raw_lines if line.strip()]


def parse_ledger(
    source: str | Iterable[str],
    default_serving: DefaultServingLookup | None = None,
) -> LedgerStructure:
    """Parse block text into meals and standalone items.

    Interactive lines and the `id:` line are skipped. Repeated foods in one
    scope accumulate.
    """
    structure = LedgerStructure()
    current_meal: str | None = None
    for line in tokenize(source):
        if line.kind is LineKind.MEAL_HEADER:
            current_meal = line.payload
            structure.meals.setdefault(current_meal, {})
        elif line.kind is LineKind.BULLET_ITEM:
            if not current_meal:
                continue
            item = parse_item(line.payload, default_serving)
            if item.food_name:
                _accumulate(structure.meals[current_meal], item)
        elif line.kind is LineKind.STANDALONE_ITEM:
            current_meal = None
            item = parse_item(line.payload, default_serving)
            if item.food_name:
                _accumulate(structure.standalone_items, item)
    return structure


def _accumulate(target: dict[str, float], item: ParsedItem) -> None:
    target[item.food_name] = target.get(item.food_name, 0.0) + item.quantity
