"""Tests for StoryEnrichmentService: per-user paid flag on catalog stories."""
from unittest.mock import MagicMock

import pytest

from app.core.errors import GatewayError, NotFoundError
from app.models.purchase import PurchaseStatus
from app.services.enrichment.service import StoryEnrichmentService


def _pay(store, user_id, story_id):
    store.resolve(store.create_pending(user_id, story_id, 50000), PurchaseStatus.SUCCESS)


def test_list_flags_only_the_users_paid_stories(store, fake_catalog):
    _pay(store, "u1", "story-S1")
    _pay(store, "u2", "story-S2")
    store.create_pending("u1", "story-S3", 50000)

    stories = StoryEnrichmentService(fake_catalog, store).list_stories("u1", page=1, size=3)

    assert [(s["id"], s["paid"]) for s in stories] == [
        ("story-S1", True),
        ("story-S2", False),
        ("story-S3", False),
    ]
    assert fake_catalog.list_calls == [(1, 3)]


def test_list_keeps_catalog_fields_and_does_not_mutate_them(store, fake_catalog):
    original = [dict(s) for s in fake_catalog.stories]

    stories = StoryEnrichmentService(fake_catalog, store).list_stories("u1")

    assert stories[0]["photoUrl"] == "https://img/1.jpg"
    assert stories[0]["name"] == "Sunset"
    assert fake_catalog.stories == original


def test_empty_page_skips_entitlement_lookup(fake_catalog):
    fake_catalog.stories = []
    store = MagicMock()

    assert StoryEnrichmentService(fake_catalog, store).list_stories("u1") == []
    store.list_paid_story_ids.assert_not_called()


def test_list_uses_a_single_batch_lookup(fake_catalog):
    store = MagicMock()
    store.list_paid_story_ids.return_value = {"story-S2"}

    stories = StoryEnrichmentService(fake_catalog, store).list_stories("u1")

    store.list_paid_story_ids.assert_called_once_with("u1", ["story-S1", "story-S2", "story-S3"])
    assert [s["paid"] for s in stories] == [False, True, False]


def test_catalog_failure_propagates(store):
    catalog = MagicMock()
    catalog.list_stories.side_effect = GatewayError("Failed to fetch stories from the catalog.")

    with pytest.raises(GatewayError):
        StoryEnrichmentService(catalog, store).list_stories("u1")


def test_get_story_paid_flag(store, fake_catalog):
    service = StoryEnrichmentService(fake_catalog, store)
    assert service.get_story("u1", "story-S1")["paid"] is False

    _pay(store, "u1", "story-S1")

    story = service.get_story("u1", "story-S1")
    assert story["paid"] is True
    assert story["description"] == "Beach"


def test_get_story_unknown(store, fake_catalog):
    with pytest.raises(NotFoundError):
        StoryEnrichmentService(fake_catalog, store).get_story("u1", "story-missing")
