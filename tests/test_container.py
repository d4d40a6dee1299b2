"""Tests for container wiring."""

import asyncio

from macro_ledger.config import Settings
from macro_ledger.containers import build_container


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)
    assert container.ledger_service is not None
    assert container.rename_service is not None
    asyncio.run(container.close_resources())


def test_container_reads_vault_and_food_folder(settings: Settings) -> None:
    foods = settings.vault_path / settings.food_folder
    foods.mkdir()
    (foods / "Eggs.md").write_text(
        "---\ncalories: 70\nprotein: 6\nfat: 5\ncarbs: 0.6\nserving_size: 50g\n---\n",
        encoding="utf-8",
    )
    (settings.vault_path / "Daily.md").write_text(
        "```macros\nid: day1\nEggs:100g\n```\n", encoding="utf-8"
    )
    container = build_container(settings)

    async def run() -> None:
        await container.ledger_service.add_selection("day1", ["Eggs:50g"])
        await container.close_resources()

    asyncio.run(run())
    totals = asyncio.run(container.ledger_service.totals("day1"))

    assert (settings.vault_path / "Daily.md").read_text(encoding="utf-8") == (
        "```macros\nid: day1\nEggs:150g\n```\n"
    )
    assert totals.calories == 210.0
