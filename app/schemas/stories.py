from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StoryListOut(BaseModel):
    """Catalog listing as returned by the catalog, each story extended with `paid`."""

    model_config = ConfigDict(populate_by_name=True)

    error: bool = False
    message: str = "Stories fetched successfully"
    list_story: list[dict[str, Any]] = Field(default_factory=list, alias="listStory")


class StoryDetailOut(BaseModel):
    error: bool = False
    message: str = "Story fetched"
    story: dict[str, Any]
    paid: bool
