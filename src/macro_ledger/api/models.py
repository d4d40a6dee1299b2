"""Pydantic models for HTTP request bodies."""

from pydantic import BaseModel, Field


class AdditionRequest(BaseModel):
    """Interactive additions selected for a ledger."""

    lines: list[str] = Field(min_length=1)


class RenameRequest(BaseModel):
    """Rename a food in every ledger that references it."""

    old_name: str
    new_name: str
    case_sensitive: bool = False


class StorageEvent(BaseModel):
    """Change notification from the document store."""

    path: str
    event: str = "modify"
    old_path: str | None = None
