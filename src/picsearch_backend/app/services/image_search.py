# src/picsearch_backend/app/services/image_search.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from picsearch_backend.app.core.errors import ImageSearchError
from picsearch_backend.app.schemas import ImageOut, SearchResponse

logger = logging.getLogger(__name__)

UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
PER_PAGE = 20


def _first_error(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            return str(errors[0])
    return None


def _image(item: Dict[str, Any], term: str) -> ImageOut:
    urls = item.get("urls") or {}
    user = item.get("user") or {}
    links = user.get("links") or {}
    return ImageOut(
        id=str(item.get("id", "")),
        url=urls.get("regular", ""),
        thumb=urls.get("small", ""),
        alt=item.get("alt_description") or term,
        author=user.get("name", ""),
        authorUrl=links.get("html", ""),
    )


class UnsplashClient:
    """Thin async proxy over Unsplash photo search."""

    def __init__(
        self,
        access_key: Optional[str],
        *,
        url: str = UNSPLASH_SEARCH_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.access_key = access_key
        self.url = url
        self._client = client

    async def search(self, term: str, page: int) -> SearchResponse:
        if not self.access_key:
            raise ImageSearchError("image search not configured (UNSPLASH_ACCESS_KEY missing)")

        params = {
            "query": term,
            "per_page": PER_PAGE,
            "page": page,
            "client_id": self.access_key,
        }
        own = self._client or httpx.AsyncClient(timeout=15)
        try:
            r = await own.get(self.url, params=params, headers={"Accept-Version": "v1"})
        except httpx.HTTPError as ex:
            logger.error("unsplash request failed: %s", ex)
            raise ImageSearchError("Failed to search images") from ex
        finally:
            if self._client is None:
                await own.aclose()

        if r.status_code != 200:
            try:
                message = _first_error(r.json())
            except ValueError:
                message = None
            logger.warning("unsplash answered %s for term=%r", r.status_code, term)
            raise ImageSearchError(message or "Failed to search images", status=r.status_code)

        data = r.json()
        results: List[Dict[str, Any]] = data.get("results") or []
        return SearchResponse(
            term=term,
            total=int(data.get("total") or 0),
            totalPages=int(data.get("total_pages") or 0),
            currentPage=page,
            images=[_image(item, term) for item in results],
        )
