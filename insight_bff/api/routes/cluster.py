# insight_bff/api/routes/cluster.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from insight_bff.api.dependencies import get_coordinator, get_lang, language_headers
from insight_bff.coordinator import Coordinator

router = APIRouter(tags=["cluster"])


@router.get("/cluster/{cluster_id}")
async def get_cluster(
    cluster_id: str,
    lang: str = Depends(get_lang),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    # ClusterNotFoundError 由应用级异常处理器转换为 404
    detail = await coordinator.clusters.get_cluster(cluster_id, lang)
    return JSONResponse(
        content=detail.model_dump(mode="json"), headers=language_headers(lang)
    )
