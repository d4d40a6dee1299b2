"""Canonical text form of a ledger structure."""

import math
from decimal import Decimal

from macro_ledger.domain.ledger import BLOCK_MARKER, MEAL_PREFIX, LedgerStructure

_MAX_PLAIN_INTEGER = 1e21


def serialize_ledger(structure: LedgerStructure) -> str:
    """Emit all meals (header then `- food:Ng` bullets), then standalone items."""
    lines: list[str] = []
    for meal_name, items in structure.meals.items():
        lines.append(f"{MEAL_PREFIX}{meal_name}")
        lines.extend(
            f"- {food_name}:{format_quantity(quantity)}g"
            for food_name, quantity in items.items()
        )
    lines.extend(
        f"{food_name}:{format_quantity(quantity)}g"
        for food_name, quantity in structure.standalone_items.items()
    )
    return "\n".join(lines)


def render_block(ledger_id: str, content: str) -> str:
    """Wrap serialized content in a fenced ledger block."""
    return f"```{BLOCK_MARKER}\nid: {ledger_id}\n{content}\n```"


def format_quantity(value: float) -> str:
    """Shortest decimal that round-trips, without a trailing `.0`."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < _MAX_PLAIN_INTEGER:
        return str(int(value))
    text = repr(float(value))
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    power = int(exponent)
    if -7 < power < 21:  # noqa: PLR2004
        return format(Decimal(text), "f")
    return f"{mantissa}e{power:+d}"
