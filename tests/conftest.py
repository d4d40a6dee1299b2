"""Shared test fixtures."""

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

import pytest

from macro_ledger.config import MealTemplate, Settings, find_meal_template
from macro_ledger.containers import AppContainer
from macro_ledger.domain.ledger import Document
from macro_ledger.domain.nutrition import FoodRecord
from macro_ledger.services.aggregation import MacroAggregator
from macro_ledger.services.cache import InMemoryCache
from macro_ledger.services.foods import FoodRepository, NutritionResolver
from macro_ledger.services.ledgers import DocumentStore, LedgerService, StorageError
from macro_ledger.services.rename import FoodRenameService
from macro_ledger.services.scheduler import UpdateScheduler

DAILY_NOTE = (
    "# Monday\n"
    "\n"
    "```macros\n"
    "id: day1\n"
    "meal:Breakfast\n"
    "- Oatmeal:50g\n"
    "- Banana:120g\n"
    "Eggs:100g\n"
    "```\n"
    "\n"
    "Notes\n"
)


@dataclass
class InMemoryDocumentStore(DocumentStore):
    """In-memory document store for tests; enumerates in insertion order."""

    documents: dict[str, str] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)
    notified: list[str] = field(default_factory=list)
    reads: int = 0
    fail_reads: set[str] = field(default_factory=set)
    fail_writes: set[str] = field(default_factory=set)

    async def list_documents(self) -> list[Document]:
        return [Document(path=path) for path in self.documents]

    async def read(self, document: Document) -> str:
        self.reads += 1
        if document.path in self.fail_reads or document.path not in self.documents:
            raise StorageError(f"Failed to read {document.path}")
        return self.documents[document.path]

    async def write(self, document: Document, text: str) -> None:
        if document.path in self.fail_writes:
            raise StorageError(f"Failed to write {document.path}")
        self.documents[document.path] = text
        self.writes.append(document.path)

    def notify_changed(self, document: Document) -> None:
        self.notified.append(document.path)


@dataclass
class StaticFoodRepository(FoodRepository):
    """Food repository returning a fixed list and counting lookups."""

    foods: list[FoodRecord] = field(default_factory=list)
    calls: int = 0

    def list_foods(self) -> list[FoodRecord]:
        self.calls += 1
        return list(self.foods)


def make_food(  # noqa: PLR0913
    name: str,
    calories: float,
    protein_g: float,
    fat_g: float,
    carbs_g: float,
    serving_grams: float | None = 100.0,
) -> FoodRecord:
    return FoodRecord(
        name=name,
        calories=calories,
        protein_g=protein_g,
        fat_g=fat_g,
        carbs_g=carbs_g,
        serving_grams=serving_grams,
    )


def default_foods() -> list[FoodRecord]:
    return [
        make_food("Oatmeal", 380, 13, 7, 68),
        make_food("Banana", 105, 1.3, 0.4, 27, serving_grams=120),
        make_food("Eggs", 70, 6, 5, 0.6, serving_grams=50),
        make_food("Chicken Breast", 165, 31, 3.6, 0),
        make_food("Chicken Breast Grilled", 180, 33, 4.5, 0),
        make_food("Rice", 130, 2.7, 0.3, 28),
        make_food("Almonds", 164, 6, 14, 6, serving_grams=28),
        make_food("Butter", 717, 0.9, 81, 0.1, serving_grams=None),
    ]


def default_templates() -> list[MealTemplate]:
    return [
        MealTemplate(name="Breakfast", items=["Oatmeal:30g"]),
        MealTemplate(name="Lunch", items=["Chicken Breast:150g", "Rice:200g"]),
    ]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        vault_path=tmp_path,
        food_folder="Nutrition",
        meal_templates=default_templates(),
        update_timeout_seconds=5.0,
    )


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def food_repository() -> StaticFoodRepository:
    return StaticFoodRepository(foods=default_foods())


@pytest.fixture
def resolver(
    food_repository: StaticFoodRepository, cache: InMemoryCache
) -> NutritionResolver:
    return NutritionResolver(repository=food_repository, cache=cache)


@pytest.fixture
def find_template(settings: Settings):
    return partial(find_meal_template, settings.meal_templates)


@pytest.fixture
def aggregator(resolver: NutritionResolver, find_template) -> MacroAggregator:
    return MacroAggregator(resolver=resolver, find_template=find_template)


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(documents={"Daily.md": DAILY_NOTE})


@pytest.fixture
def scheduler(settings: Settings) -> UpdateScheduler:
    return UpdateScheduler(timeout_seconds=settings.update_timeout_seconds)


@pytest.fixture
def ledger_service(  # noqa: PLR0913
    document_store: InMemoryDocumentStore,
    cache: InMemoryCache,
    scheduler: UpdateScheduler,
    resolver: NutritionResolver,
    aggregator: MacroAggregator,
    find_template,
) -> LedgerService:
    return LedgerService(
        store=document_store,
        cache=cache,
        scheduler=scheduler,
        resolver=resolver,
        aggregator=aggregator,
        find_template=find_template,
    )


@pytest.fixture
def rename_service(
    document_store: InMemoryDocumentStore,
    ledger_service: LedgerService,
    scheduler: UpdateScheduler,
    resolver: NutritionResolver,
) -> FoodRenameService:
    return FoodRenameService(
        store=document_store,
        ledgers=ledger_service,
        scheduler=scheduler,
        resolver=resolver,
        food_folder="Nutrition",
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    cache: InMemoryCache,
    scheduler: UpdateScheduler,
    document_store: InMemoryDocumentStore,
    resolver: NutritionResolver,
    aggregator: MacroAggregator,
    ledger_service: LedgerService,
    rename_service: FoodRenameService,
) -> AppContainer:
    async def close_resources() -> None:
        await scheduler.drain()

    return AppContainer(
        settings=settings,
        cache=cache,
        scheduler=scheduler,
        document_store=document_store,
        nutrition_resolver=resolver,
        macro_aggregator=aggregator,
        ledger_service=ledger_service,
        rename_service=rename_service,
        close_resources=close_resources,
    )
