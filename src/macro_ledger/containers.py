"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from macro_ledger.adapters.filesystem_document_store import FilesystemDocumentStore
from macro_ledger.adapters.markdown_food_repository import MarkdownFoodRepository
from macro_ledger.config import Settings, find_meal_template
from macro_ledger.services.aggregation import MacroAggregator
from macro_ledger.services.cache import InMemoryCache
from macro_ledger.services.foods import NutritionResolver
from macro_ledger.services.ledgers import DocumentStore, LedgerService
from macro_ledger.services.rename import FoodRenameService
from macro_ledger.services.scheduler import UpdateScheduler


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    cache: InMemoryCache
    scheduler: UpdateScheduler
    document_store: DocumentStore
    nutrition_resolver: NutritionResolver
    macro_aggregator: MacroAggregator
    ledger_service: LedgerService
    rename_service: FoodRenameService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    cache = InMemoryCache()
    scheduler = UpdateScheduler(
        timeout_seconds=resolved_settings.update_timeout_seconds
    )
    document_store = FilesystemDocumentStore(resolved_settings.vault_path)
    food_repository = MarkdownFoodRepository(
        resolved_settings.vault_path / resolved_settings.food_folder
    )
    nutrition_resolver = NutritionResolver(
        repository=food_repository,
        cache=cache,
        ttl_seconds=resolved_settings.food_cache_ttl_seconds,
    )
    find_template = partial(find_meal_template, resolved_settings.meal_templates)
    macro_aggregator = MacroAggregator(
        resolver=nutrition_resolver,
        find_template=find_template,
    )
    ledger_service = LedgerService(
        store=document_store,
        cache=cache,
        scheduler=scheduler,
        resolver=nutrition_resolver,
        aggregator=macro_aggregator,
        find_template=find_template,
    )
    document_store.subscribe(ledger_service.handle_document_changed)
    rename_service = FoodRenameService(
        store=document_store,
        ledgers=ledger_service,
        scheduler=scheduler,
        resolver=nutrition_resolver,
        food_folder=resolved_settings.food_folder,
    )

    async def close_resources() -> None:
        await scheduler.drain()
        cache.invalidate_all()

    return AppContainer(
        settings=resolved_settings,
        cache=cache,
        scheduler=scheduler,
        document_store=document_store,
        nutrition_resolver=nutrition_resolver,
        macro_aggregator=macro_aggregator,
        ledger_service=ledger_service,
        rename_service=rename_service,
        close_resources=close_resources,
    )
