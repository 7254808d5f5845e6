# insight_bff/api/routes/feed.py
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from insight_bff.api.dependencies import get_coordinator, get_lang, language_headers
from insight_bff.coordinator import Coordinator

router = APIRouter(tags=["feed"])

PENDING_HEADER = "X-Pending-Cluster-Ids"


@router.get("/feed")
async def list_feed(
    lang: str = Depends(get_lang),
    limit: int | None = Query(default=None),
    strict: bool = Query(default=False),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    page = await coordinator.feed.list_feed(lang, limit=limit, strict=strict)
    headers = language_headers(lang)
    if not strict:
        headers[PENDING_HEADER] = ",".join(page.pending_ids)
    return JSONResponse(
        content=[card.model_dump(mode="json") for card in page.cards],
        headers=headers,
    )
