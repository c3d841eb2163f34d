from fastapi import APIRouter, Depends, Query

from app.api.deps import get_enrichment_service
from app.schemas.stories import StoryDetailOut, StoryListOut
from app.services.auth.jwt import CurrentUser, get_current_user
from app.services.enrichment.service import StoryEnrichmentService


router = APIRouter(prefix="/api/stories", tags=["stories"])


@router.get("", response_model=StoryListOut)
def list_stories(
    page: int | None = Query(None, ge=1),
    size: int | None = Query(None, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    service: StoryEnrichmentService = Depends(get_enrichment_service),
) -> StoryListOut:
    """Catalog page with `paid` per story for the current user."""
    stories = service.list_stories(user.user_id, page=page, size=size)
    return StoryListOut(list_story=stories)


@router.get("/{story_id}", response_model=StoryDetailOut)
def get_story(
    story_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: StoryEnrichmentService = Depends(get_enrichment_service),
) -> StoryDetailOut:
    story = service.get_story(user.user_id, story_id)
    return StoryDetailOut(story=story, paid=story["paid"])
