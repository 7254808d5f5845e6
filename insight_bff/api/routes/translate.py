# insight_bff/api/routes/translate.py
import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from insight_bff.api.dependencies import get_coordinator, get_lang, language_headers
from insight_bff.coordinator import Coordinator

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["translate"])


class BatchTranslateRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/translate/batch")
async def translate_batch(
    body: BatchTranslateRequest,
    request: Request,
    lang: str = Depends(get_lang),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    ctx = coordinator.context
    ctx.batch_metrics.requests += 1
    client = _client_key(request)
    if not ctx.batch_limiter.try_acquire(client):
        ctx.batch_metrics.rate_limited += 1
        logger.warning("批量翻译请求被限流。", lang=lang, ids=len(body.ids), client=client)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": "rate_limited"},
        )

    result = await coordinator.batch.translate_batch(body.ids, lang)
    return JSONResponse(
        content=result.model_dump(mode="json"), headers=language_headers(lang)
    )
