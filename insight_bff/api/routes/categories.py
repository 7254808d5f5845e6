# insight_bff/api/routes/categories.py
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from insight_bff.api.dependencies import get_coordinator, get_lang, language_headers
from insight_bff.coordinator import Coordinator

router = APIRouter(prefix="/categories", tags=["categories"])

NAVIGATION_FIELDS = {
    "id",
    "name",
    "slug",
    "icon_emoji",
    "color_hex",
    "display_order",
    "article_count",
}


@router.get("/navigation")
async def navigation(
    lang: str = Depends(get_lang),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    items = await coordinator.categories.navigation()
    return JSONResponse(
        content={
            "categories": [i.model_dump(mode="json", include=NAVIGATION_FIELDS) for i in items],
            "language": lang,
        },
        headers=language_headers(lang),
    )


@router.get("")
async def list_categories(
    main_nav: bool = Query(default=False),
    lang: str = Depends(get_lang),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    tree = await coordinator.categories.tree(main_nav_only=main_nav)
    return JSONResponse(
        content={**tree.model_dump(mode="json"), "language": lang},
        headers=language_headers(lang),
    )


@router.get("/{slug}/articles")
async def category_articles(
    slug: str,
    limit: int | None = Query(default=None),
    offset: int | None = Query(default=None),
    lang: str = Depends(get_lang),
    coordinator: Coordinator = Depends(get_coordinator),
) -> JSONResponse:
    # CategoryNotFoundError 由应用级异常处理器转换为 404
    page = await coordinator.categories.articles(slug, lang, limit=limit, offset=offset)
    return JSONResponse(
        content={**page.model_dump(mode="json"), "language": lang},
        headers=language_headers(lang),
    )
