"""Propagating a food rename into ledger blocks."""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from macro_ledger.domain.ledger import Document
from macro_ledger.services.foods import NutritionResolver
from macro_ledger.services.ledgers import DocumentStore, LedgerService, StorageError
from macro_ledger.services.scheduler import UpdateOutcome, UpdateScheduler

PREVIEW_LENGTH = 120

_FENCE = re.compile(r"^\s*(```|~~~)\s*(macros|macroscalc)\b.*$", re.IGNORECASE)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceMatch:
    """A ledger line that references a food by name."""

    line: int
    content: str
    preview: str


@dataclass(frozen=True)
class AffectedDocument:
    document: Document
    matches: list[ReferenceMatch]


@dataclass(frozen=True)
class RenameValidation:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class RenameResult:
    """What a rename changed, or why it was refused."""

    validation: RenameValidation
    outcome: UpdateOutcome | None = None
    documents: list[str] = field(default_factory=list)
    lines_updated: int = 0


def food_key_pattern(food_name: str, case_sensitive: bool) -> re.Pattern[str]:
    """Match `food:` keys, keeping indentation, bullet and the rest of the line."""
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(rf"^(\s*(?:[-*]\s*)?){re.escape(food_name)}(\s*:\s*)(.*)$", flags)


def replace_food_name(
    line: str, old_name: str, new_name: str, case_sensitive: bool
) -> str:
    pattern = food_key_pattern(old_name, case_sensitive)
    return pattern.sub(
        lambda match: f"{match.group(1)}{new_name}{match.group(2)}{match.group(3)}",
        line,
    )


def iter_block_lines(lines: list[str]) -> Iterator[int]:
    """Yield indexes of lines inside ledger or calculation fences."""
    fence: str | None = None
    for index, line in enumerate(lines):
        if fence is None:
            match = _FENCE.match(line)
            if match:
                fence = match.group(1)
            continue
        if re.match(rf"^\s*{re.escape(fence)}\s*$", line):
            fence = None
            continue
        yield index


def validate_rename(
    old_name: str, new_name: str, existing_names: list[str], case_sensitive: bool
) -> RenameValidation:
    if not new_name.strip():
        return RenameValidation(False, "New name cannot be empty")

    def same(left: str, right: str) -> bool:
        return left == right if case_sensitive else left.lower() == right.lower()

    if any(
        same(name, new_name) and not same(name, old_name) for name in existing_names
    ):
        return RenameValidation(False, f'Food name "{new_name}" already exists')
    if ":" in new_name:
        return RenameValidation(False, "Food name cannot contain colon (:)")
    return RenameValidation(True)


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[: PREVIEW_LENGTH - 3] + "..."


@dataclass
class FoodRenameService:
    """Find and rewrite food references in ledger blocks across documents."""

    store: DocumentStore
    ledgers: LedgerService
    scheduler: UpdateScheduler
    resolver: NutritionResolver
    food_folder: str

    async def scan_references(
        self, food_name: str, case_sensitive: bool = False
    ) -> list[AffectedDocument]:
        """Documents whose ledger blocks mention `food_name` as a food key."""
        pattern = food_key_pattern(food_name, case_sensitive)
        affected: list[AffectedDocument] = []
        for document in await self.store.list_documents():
            if self._in_food_folder(document):
                continue
            try:
                content = await self.ledgers.read_document(document)
            except StorageError:
                _logger.exception("Error reading %s while scanning", document.path)
                continue
            lines = content.split("\n")
            matches = [
                ReferenceMatch(
                    line=index + 1, content=lines[index], preview=_preview(lines[index])
                )
                for index in iter_block_lines(lines)
                if pattern.match(lines[index])
            ]
            if matches:
                affected.append(AffectedDocument(document=document, matches=matches))
        return affected

    async def rename_food(
        self, old_name: str, new_name: str, case_sensitive: bool = False
    ) -> RenameResult:
        """Validate, then rewrite every reference in one scheduled update."""
        validation = validate_rename(
            old_name, new_name, self.resolver.food_names(), case_sensitive
        )
        if not validation.valid:
            _logger.info("Rename of %r refused: %s", old_name, validation.reason)
            return RenameResult(validation=validation)

        pattern = food_key_pattern(old_name, case_sensitive)
        updated_documents: list[str] = []
        updated_lines = 0

        async def update() -> None:
            nonlocal updated_lines
            for document in await self.store.list_documents():
                if self._in_food_folder(document):
                    continue
                content = await self.ledgers.read_document(document, force_refresh=True)
                lines = content.split("\n")
                changed = 0
                for index in list(iter_block_lines(lines)):
                    if pattern.match(lines[index]):
                        lines[index] = replace_food_name(
                            lines[index], old_name, new_name, case_sensitive
                        )
                        changed += 1
                if not changed:
                    continue
                new_content = "\n".join(lines)
                await self.store.write(document, new_content)
                self.ledgers.record_write(document, new_content)
                updated_documents.append(document.path)
                updated_lines += changed
            self.resolver.invalidate()

        outcome = await self.scheduler.queue_update(update)
        _logger.info(
            "Renamed %r to %r in %s lines across %s documents",
            old_name,
            new_name,
            updated_lines,
            len(updated_documents),
        )
        return RenameResult(
            validation=validation,
            outcome=outcome,
            documents=updated_documents,
            lines_updated=updated_lines,
        )

    def _in_food_folder(self, document: Document) -> bool:
        folder = self.food_folder.strip("/")
        return document.path == folder or document.path.startswith(f"{folder}/")
