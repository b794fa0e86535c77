import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from little_lemon.exceptions import QueryError
from little_lemon.routers.dependencies import get_menu_store, get_orchestrator, request_id
from little_lemon.schemas.menu_item import CATEGORIES, MenuItemResponse
from little_lemon.services.menu_store import MenuStore
from little_lemon.services.sync import SyncOrchestrator, SyncResult, SyncState

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncStatusResponse(BaseModel):
    state: SyncState
    cold_start: bool = False
    item_count: int = 0
    duration_ms: int = 0
    error: str | None = None


def _status(result: SyncResult | None, orchestrator: SyncOrchestrator) -> SyncStatusResponse:
    if result is None:
        return SyncStatusResponse(state=orchestrator.state)
    return SyncStatusResponse(
        state=result.state,
        cold_start=result.cold_start,
        item_count=len(result.items),
        duration_ms=result.duration_ms,
        error=str(result.error) if result.error else None,
    )


@router.get("", response_model=list[MenuItemResponse])
async def list_menu(
    request: Request,
    q: str | None = None,
    category: list[str] = Query(default=[]),
    store: MenuStore = Depends(get_menu_store),
) -> list[MenuItemResponse]:
    logger.info(
        "Received list_menu request",
        extra={"request_id": request_id(request), "query": q, "categories": category},
    )
    try:
        if q is not None:
            return await store.search(q, category)
        return await store.read_by_categories(category)
    except QueryError as exc:
        logger.error("Menu query failed", extra={"request_id": request_id(request), "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load menu items",
        )


@router.get("/categories", response_model=list[str])
async def list_categories() -> list[str]:
    return list(CATEGORIES)


@router.get("/sync", response_model=SyncStatusResponse)
async def sync_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> SyncStatusResponse:
    return _status(orchestrator.last_result, orchestrator)


@router.post("/sync", response_model=SyncStatusResponse)
async def run_sync(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncStatusResponse:
    logger.info("Received run_sync request", extra={"request_id": request_id(request)})
    result = await orchestrator.run()
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Menu sync failed: {result.error}",
        )
    return _status(result, orchestrator)
