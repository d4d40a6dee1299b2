"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, status

from macro_ledger.api.models import AdditionRequest, RenameRequest, StorageEvent
from macro_ledger.app_logging import configure_logging
from macro_ledger.containers import AppContainer
from macro_ledger.domain.ledger import LedgerStructure
from macro_ledger.domain.nutrition import FoodResolution, NutritionTotals
from macro_ledger.services.scheduler import UpdateOutcome


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(debug=container.settings.debug)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/ledgers/{ledger_id}")
    async def ledger_detail(ledger_id: str, request: Request) -> dict[str, object]:
        """Return a ledger's meals and standalone items."""
        state_container: AppContainer = request.app.state.container
        structure = await state_container.ledger_service.load_structure(ledger_id)
        if structure is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"id": ledger_id, **_structure_payload(structure)}

    @app.get("/ledgers/{ledger_id}/totals")
    async def ledger_totals(ledger_id: str, request: Request) -> dict[str, object]:
        """Return nutrition totals for one ledger."""
        state_container: AppContainer = request.app.state.container
        totals = await state_container.ledger_service.totals(ledger_id)
        if totals is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"id": ledger_id, "totals": _totals_payload(totals)}

    @app.post("/ledgers/{ledger_id}/additions")
    async def add_to_ledger(
        ledger_id: str, body: AdditionRequest, request: Request
    ) -> dict[str, str]:
        """Queue interactive additions and merge them into the ledger."""
        state_container: AppContainer = request.app.state.container
        outcome = await state_container.ledger_service.add_selection(
            ledger_id, body.lines
        )
        if outcome is not UpdateOutcome.COMPLETED:
            logger.warning(
                "Merge for ledger %s ended with %s", ledger_id, outcome.value
            )
        return {"status": outcome.value}

    @app.get("/totals")
    async def rollup(
        request: Request, ids: list[str] = Query(default=[])
    ) -> dict[str, object]:
        """Return the grand total and per-ledger breakdown for several ledgers."""
        state_container: AppContainer = request.app.state.container
        summary = await state_container.ledger_service.totals_many(ids)
        return {
            "aggregate": _totals_payload(summary.aggregate),
            "breakdown": [
                {"id": entry.ledger_id, "totals": _totals_payload(entry.totals)}
                for entry in summary.breakdown
            ],
        }

    @app.get("/foods/resolve")
    async def resolve_food(query: str, request: Request) -> dict[str, object]:
        """Show how a food name resolves against the food files."""
        state_container: AppContainer = request.app.state.container
        resolution = state_container.nutrition_resolver.find_food(query)
        return _resolution_payload(resolution)

    @app.get("/foods/references")
    async def food_references(
        name: str, request: Request, case_sensitive: bool = False
    ) -> dict[str, object]:
        """List ledger lines that reference a food."""
        state_container: AppContainer = request.app.state.container
        affected = await state_container.rename_service.scan_references(
            name, case_sensitive
        )
        return {
            "documents": [
                {
                    "path": entry.document.path,
                    "matches": [
                        {"line": match.line, "preview": match.preview}
                        for match in entry.matches
                    ],
                }
                for entry in affected
            ]
        }

    @app.post("/foods/rename")
    async def rename_food(body: RenameRequest, request: Request) -> dict[str, object]:
        """Rename a food in every ledger that references it."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.rename_service.rename_food(
            body.old_name, body.new_name, body.case_sensitive
        )
        if not result.validation.valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=result.validation.reason,
            )
        return {
            "status": result.outcome.value if result.outcome else None,
            "documents": result.documents,
            "lines_updated": result.lines_updated,
        }

    @app.post("/storage/events")
    async def storage_event(body: StorageEvent, request: Request) -> dict[str, str]:
        """Invalidate caches after the store reports a change."""
        state_container: AppContainer = request.app.state.container
        state_container.ledger_service.handle_document_changed(body.path)
        if body.old_path:
            state_container.ledger_service.handle_document_changed(body.old_path)
        logger.debug("Storage %s event for %s", body.event, body.path)
        return {"status": "ok"}

    return app


def _totals_payload(totals: NutritionTotals) -> dict[str, float]:
    return {
        "calories": totals.calories,
        "protein_g": totals.protein_g,
        "fat_g": totals.fat_g,
        "carbs_g": totals.carbs_g,
    }


def _structure_payload(structure: LedgerStructure) -> dict[str, object]:
    return {
        "meals": structure.meals,
        "standalone_items": structure.standalone_items,
    }


def _resolution_payload(resolution: FoodResolution) -> dict[str, object]:
    food = resolution.food
    return {
        "query": resolution.query,
        "status": resolution.status.value,
        "food": (
            {
                "name": food.name,
                "calories": food.calories,
                "protein_g": food.protein_g,
                "fat_g": food.fat_g,
                "carbs_g": food.carbs_g,
                "serving_grams": food.serving_grams,
            }
            if food
            else None
        ),
        "candidates": resolution.candidates,
    }
