# src/picsearch_backend/app/api/routes/search.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from picsearch_backend.app.auth.deps import get_services, require_account
from picsearch_backend.app.core.errors import ImageSearchError, SearchStoreError
from picsearch_backend.app.models import Account
from picsearch_backend.app.schemas import SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/search",
    tags=["search"],
    dependencies=[Depends(require_account)],  # every search route needs a live session
)


@router.get("/top-searches")
async def top_searches(request: Request) -> List[Dict[str, Any]]:
    """Five most searched terms across all users."""
    try:
        rows = await get_services(request).searches.top_terms()
    except SearchStoreError:
        logger.error("top searches query failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch top searches")
    return [{"term": r.term, "count": r.count} for r in rows]


@router.post("/search", response_model=SearchResponse)
async def search_images(
    req: SearchRequest,
    request: Request,
    account: Account = Depends(require_account),
):
    """
    Proxy an image search. The first page of a search is recorded in the
    caller's history; later pages are not.
    """
    term = (req.term or "").strip()
    if not term:
        raise HTTPException(status_code=400, detail="Search term is required")
    if req.page < 1:
        raise HTTPException(status_code=400, detail="Invalid page number")

    services = get_services(request)
    if req.page == 1:
        try:
            await services.searches.record(account.id, term)
        except SearchStoreError:
            logger.error("failed to record search for account %s", account.id, exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to search images")

    try:
        return await services.images.search(term, req.page)
    except ImageSearchError as ex:
        if ex.status is not None:
            return JSONResponse({"error": str(ex)}, status_code=ex.status)
        raise HTTPException(status_code=500, detail="Failed to search images")
