"""
Story catalog contract. The catalog is read-only and owned by a third party;
stories are passed through as plain dicts so unknown fields survive untouched.
"""
from abc import ABC, abstractmethod
from typing import Any


class StoryCatalog(ABC):
    """Base class for story catalogs."""

    @abstractmethod
    def list_stories(self, page: int | None = None, size: int | None = None) -> list[dict[str, Any]]:
        """One page of stories in catalog order. Raises GatewayError on failure."""
        pass

    @abstractmethod
    def get_story(self, story_id: str) -> dict[str, Any]:
        """Single story. Raises NotFoundError for unknown ids, GatewayError on failure."""
        pass
