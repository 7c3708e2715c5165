# services/pexels_service.py
# ============================================================================
# SURPRISE ARTWORK SHOP — PEXELS ARTWORK CLIENT
# ============================================================================
# Purpose: Pick a random photo for a search category
#
# FAILURE HANDLING:
# - HTTP / decode errors are logged and surface as "no artwork" (None)
# - The pipeline decides what a missing artwork means
# ============================================================================

import random
from typing import List, Optional

import httpx
import structlog

from schemas.event_definitions import ArtworkImage
from pipeline.orchestrator import IEnrichmentClient

DEFAULT_BASE_URL = "https://api.pexels.com/v1"
DEFAULT_QUERY = "nature art landscape abstract"


class PexelsService(IEnrichmentClient):
    """Image search client backed by the Pexels API."""

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = 20,
        max_page: int = 100,
        rng: Optional[random.Random] = None,
        timeout_seconds: float = 10.0,
    ):
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.max_page = max_page
        self._rng = rng or random.Random()
        self._logger = structlog.get_logger().bind(component="pexels_service")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def search_photos(
        self,
        query: str,
        page: int = 1,
        per_page: int = 20,
    ) -> List[ArtworkImage]:
        """
        Search photos by query.

        Raises:
            httpx.HTTPError: transport failure or non-2xx response
            ValueError: the response body is not a photo listing
        """
        response = await self._client.get(
            f"{self.base_url}/search",
            params={"query": query, "per_page": per_page, "page": page},
            headers={"Authorization": self._api_key},
        )
        response.raise_for_status()
        data = response.json()
        return [ArtworkImage.model_validate(photo) for photo in data.get("photos") or []]

    async def get_random_photo(self, query: str = DEFAULT_QUERY) -> Optional[ArtworkImage]:
        """Random page (1..max_page), then a random photo from that page."""
        page = self._rng.randint(1, self.max_page)
        try:
            photos = await self.search_photos(query, page=page, per_page=self.per_page)
        except httpx.HTTPStatusError as e:
            self._logger.error("pexels_fetch_failed", query=query, page=page,
                               status_code=e.response.status_code)
            return None
        except httpx.HTTPError as e:
            self._logger.error("pexels_fetch_failed", query=query, page=page,
                               error=str(e), error_type=type(e).__name__)
            return None
        except ValueError as e:
            self._logger.error("pexels_response_invalid", query=query, page=page, error=str(e))
            return None

        if not photos:
            self._logger.warning("pexels_no_results", query=query, page=page)
            return None

        photo = self._rng.choice(photos)
        self._logger.info("pexels_photo_selected", query=query, page=page,
                          photo_id=photo.id, photographer=photo.photographer)
        return photo

    async def fetch(self, category: str) -> Optional[ArtworkImage]:
        return await self.get_random_photo(category)
