"""
StoryEnrichmentService — catalog stories + per-user `paid` flag.
The catalog payload is never mutated: each story is shallow-copied before `paid` is attached.
"""
import logging
from typing import Any

from app.services.catalog.base import StoryCatalog
from app.services.entitlements.service import EntitlementStore

logger = logging.getLogger(__name__)


class StoryEnrichmentService:
    def __init__(self, catalog: StoryCatalog, store: EntitlementStore):
        self.catalog = catalog
        self.store = store

    def list_stories(
        self,
        user_id: str,
        page: int | None = None,
        size: int | None = None,
    ) -> list[dict[str, Any]]:
        stories = self.catalog.list_stories(page=page, size=size)
        if not stories:
            return []

        paid_ids = self.store.list_paid_story_ids(user_id, [s.get("id") for s in stories])
        return [{**story, "paid": story.get("id") in paid_ids} for story in stories]

    def get_story(self, user_id: str, story_id: str) -> dict[str, Any]:
        story = self.catalog.get_story(story_id)
        return {**story, "paid": self.store.has_paid(user_id, story_id)}
