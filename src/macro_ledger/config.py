"""Application configuration."""

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class MealTemplate(BaseModel):
    """Reusable list of `food[:quantity]` items applied under a meal name."""

    name: str
    items: list[str] = Field(default_factory=list)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    vault_path: Path = Path()
    food_folder: str = "Nutrition"
    meal_templates: list[MealTemplate] = Field(default_factory=list)
    update_timeout_seconds: float = 30.0
    food_cache_ttl_seconds: int = 300
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def find_meal_template(
    templates: list[MealTemplate], name: str
) -> MealTemplate | None:
    """Return the first template whose name matches case-insensitively."""
    wanted = name.lower()
    for template in templates:
        if template.name.lower() == wanted:
            return template
    return None
