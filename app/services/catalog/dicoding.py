"""
Dicoding Story API client using httpx sync client.
Authenticates with the service token from settings, never with the end user's token.
"""
import logging
import time
from typing import Any

import httpx

from app.core.config import settings
from app.core.errors import GatewayError, NotFoundError
from app.services.catalog.base import StoryCatalog
from app.utils.metrics import catalog_requests_total, catalog_request_duration_seconds


logger = logging.getLogger(__name__)


class DicodingCatalogClient(StoryCatalog):
    def __init__(
        self,
        api_base: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_base = (api_base or settings.catalog_api_base).rstrip("/")
        self._api_token = api_token if api_token is not None else settings.catalog_api_token
        self._timeout = timeout if timeout is not None else settings.catalog_timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        catalog_requests_total.labels(method=method, status=status).inc()
        catalog_request_duration_seconds.labels(method=method).observe(duration)

    def _get(self, method: str, path: str, params: dict | None = None) -> tuple[int, dict]:
        start = time.time()
        try:
            resp = self.client.get(
                f"{self._api_base}{path}",
                params=params,
                headers={"Authorization": f"Bearer {self._api_token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            self._record_request(method, "transport_error", time.time() - start)
            logger.warning("catalog_transport_error", extra={"error": f"{method}: {type(e).__name__}"})
            raise GatewayError("Failed to fetch stories from the catalog.") from e
        self._record_request(method, str(resp.status_code), time.time() - start)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        return resp.status_code, data if isinstance(data, dict) else {}

    def list_stories(self, page: int | None = None, size: int | None = None) -> list[dict[str, Any]]:
        params = {k: v for k, v in (("page", page), ("size", size)) if v is not None}
        status_code, data = self._get("list_stories", "/stories", params=params)
        if status_code >= 400 or data.get("error"):
            logger.warning(
                "catalog_list_failed",
                extra={"status_code": status_code, "error": data.get("message")},
            )
            raise GatewayError("Failed to fetch stories from the catalog.")
        stories = data.get("listStory")
        if not isinstance(stories, list):
            raise GatewayError("Failed to fetch stories from the catalog.")
        return stories

    def get_story(self, story_id: str) -> dict[str, Any]:
        status_code, data = self._get("get_story", f"/stories/{story_id}")
        if status_code == 404 or (status_code < 400 and data.get("error")):
            raise NotFoundError(data.get("message") or "Story not found.", detail={"story_id": story_id})
        if status_code >= 400:
            logger.warning(
                "catalog_get_failed",
                extra={"story_id": story_id, "status_code": status_code, "error": data.get("message")},
            )
            raise GatewayError("Failed to fetch story from the catalog.")
        story = data.get("story")
        if not isinstance(story, dict):
            raise GatewayError("Failed to fetch story from the catalog.")
        return story
