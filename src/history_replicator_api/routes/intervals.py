"""GET /intervals/{store_id}: paginated, filtered, sorted reads from one store."""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from history_replicator.storage.query import ReadService

router = APIRouter(tags=["intervals"])


def get_read_service(request: Request) -> ReadService:
    return request.app.state.read_service


@router.get("/intervals/{store_id}")
async def read_intervals(
    store_id: str,
    page: int = Query(0, ge=0, description="Zero-based page number"),
    limit: int | None = Query(None, ge=1, description="Page size (clamped to the maximum)"),
    start: int | None = Query(None, ge=0, description="Range start, unix seconds"),
    end: int | None = Query(None, ge=0, description="Range end, unix seconds"),
    date_range: str | None = Query(None, description="Relative range: <n>h, <n>d or <n>w"),
    units_gt: int | None = Query(None, ge=0, description="Only intervals with units above this"),
    sort_by: str | None = Query(None, description="start_time, count or units"),
    order: str | None = Query(None, description="asc or desc"),
    service: ReadService = Depends(get_read_service),
) -> dict[str, Any]:
    query = service.build_query(
        page=page,
        limit=limit,
        start=start,
        end=end,
        date_range=date_range,
        units_gt=units_gt,
        sort_by=sort_by,
        order=order,
    )
    result = await service.read(store_id, query)
    return result.to_api()
