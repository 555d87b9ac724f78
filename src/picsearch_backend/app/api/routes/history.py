# src/picsearch_backend/app/api/routes/history.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from picsearch_backend.app.auth.deps import get_services, require_account
from picsearch_backend.app.core.errors import SearchStoreError
from picsearch_backend.app.models import Account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/history")
async def get_history(
    request: Request,
    account: Account = Depends(require_account),
) -> List[Dict[str, Any]]:
    """The caller's last 50 searches, newest first."""
    try:
        rows = await get_services(request).searches.history(account.id)
    except SearchStoreError:
        logger.error("history query failed for account %s", account.id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch search history")
    return [{"term": r.term, "timestamp": r.created_at.isoformat()} for r in rows]
