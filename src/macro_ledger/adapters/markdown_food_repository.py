"""Food files stored as markdown with YAML front matter."""

import logging
from dataclasses import dataclass
from pathlib import Path

import frontmatter
import yaml

from macro_ledger.domain.nutrition import FoodRecord
from macro_ledger.services.foods import FoodRepository
from macro_ledger.services.parsing import parse_grams, read_leading_number

_logger = logging.getLogger(__name__)


@dataclass
class MarkdownFoodRepository(FoodRepository):
    """Reads `<folder>/**/*.md`; the file stem is the food name.

    Front matter keys: `calories`, `protein`, `fat`, `carbs` per serving and
    `serving_size` such as `150g`.
    """

    folder: Path

    def list_foods(self) -> list[FoodRecord]:
        if not self.folder.is_dir():
            return []
        foods: list[FoodRecord] = []
        for path in sorted(self.folder.rglob("*.md")):
            try:
                post = frontmatter.load(path)
            except (OSError, UnicodeDecodeError, yaml.YAMLError):
                _logger.exception("Skipping unreadable food file %s", path)
                continue
            foods.append(_parse_food(path.stem, post.metadata))
        return foods


def _parse_food(name: str, metadata: dict[str, object]) -> FoodRecord:
    return FoodRecord(
        name=name,
        calories=_to_float(metadata.get("calories")),
        protein_g=_to_float(metadata.get("protein")),
        fat_g=_to_float(metadata.get("fat")),
        carbs_g=_to_float(metadata.get("carbs")),
        serving_grams=parse_serving_grams(metadata.get("serving_size")),
    )


def parse_serving_grams(value: object) -> float | None:
    """Grams in a serving size; only values carrying a gram unit count."""
    if value is None:
        return None
    text = str(value)
    if "g" not in text.lower():
        return None
    return parse_grams(text)


def _to_float(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        return read_leading_number(value) or 0.0
    return 0.0
