"""Domain models for ledger blocks."""

from dataclasses import dataclass, field
from enum import Enum

INTERACTIVE_PREFIX = "interactive:"
MEAL_PREFIX = "meal:"
GROUP_PREFIX = "group:"
ID_PREFIX = "id:"
BLOCK_MARKER = "macros"


class LineKind(str, Enum):
    """Grammar classes of a single ledger line."""

    MEAL_HEADER = "meal_header"
    BULLET_ITEM = "bullet_item"
    STANDALONE_ITEM = "standalone_item"
    INTERACTIVE = "interactive"
    ID = "id"


@dataclass(frozen=True)
class LedgerLine:
    """A trimmed ledger line with its grammar class and payload text."""

    kind: LineKind
    text: str
    payload: str


@dataclass
class LedgerStructure:
    """Meals (name -> food -> grams) followed by standalone items (food -> grams)."""

    meals: dict[str, dict[str, float]] = field(default_factory=dict)
    standalone_items: dict[str, float] = field(default_factory=dict)

    def copy(self) -> "LedgerStructure":
        """Return a snapshot that shares no mutable maps with this one."""
        return LedgerStructure(
            meals={name: dict(items) for name, items in self.meals.items()},
            standalone_items=dict(self.standalone_items),
        )

    def is_empty(self) -> bool:
        return not self.meals and not self.standalone_items


@dataclass(frozen=True)
class Document:
    """A document in the host store, addressed by its vault-relative path."""

    path: str


@dataclass(frozen=True)
class LedgerBlock:
    """A located ledger block: its id, the document holding it and its body."""

    ledger_id: str
    document: Document
    body: str
    source: str

    @property
    def lines(self) -> list[str]:
        """Trimmed, non-empty lines of the block body."""
        return [line.strip() for line in self.body.split("\n") if line.strip()]
