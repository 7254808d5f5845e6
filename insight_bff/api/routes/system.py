# insight_bff/api/routes/system.py
"""健康检查、运行时计数器与市场配置。"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from insight_bff.api.dependencies import get_coordinator
from insight_bff.coordinator import Coordinator

router = APIRouter(tags=["system"])


@router.get("/health")
async def health() -> dict[str, object]:
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


@router.get("/metrics")
async def metrics(coordinator: Coordinator = Depends(get_coordinator)) -> dict[str, object]:
    return coordinator.snapshot()


@router.get("/config")
async def market_config(
    market: str | None = Query(default=None),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    if market:
        found = await coordinator.markets.get_market(market)
        if found is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "market_not_found", "market": market},
            )
        return JSONResponse(content=found.model_dump(mode="json"))

    markets = await coordinator.markets.get_markets()
    return JSONResponse(
        content={"markets": [m.model_dump(mode="json") for m in markets]}
    )
