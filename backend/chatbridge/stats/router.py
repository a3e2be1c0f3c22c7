"""Unread statistics endpoint."""
from fastapi import APIRouter, Depends, Query

from chatbridge.deps import get_stats_service

from .schemas import UnreadStats
from .service import StatsService

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=UnreadStats, response_model_exclude_none=True)
async def get_stats(
    nocache: bool = Query(default=False),
    service: StatsService = Depends(get_stats_service),
) -> UnreadStats:
    """Unread totals, cached briefly so dashboards can poll freely.

    Never fails; session problems are reported in ``status``.
    """
    return await service.get_stats(use_cache=not nocache)
