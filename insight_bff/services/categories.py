# insight_bff/services/categories.py
"""分类导航、分类树与分类下的文章列表。"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from insight_bff.core.exceptions import CategoryNotFoundError
from insight_bff.core.types import (
    ArticleRecord,
    ArticleTranslationRecord,
    CategoryArticle,
    CategoryArticlesPage,
    CategoryItem,
    CategoryRecord,
    CategoryRef,
    CategoryTree,
    Pagination,
)
from insight_bff.utils import base_lang, dir_for, normalize_bcp47, with_timeout

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext

logger = structlog.get_logger(__name__)

UNKNOWN_SOURCE = "Unknown Source"
DEFAULT_ICON = "📰"
DEFAULT_COLOR = "#6B7280"
DEFAULT_DISPLAY_ORDER = 99


def to_item(record: CategoryRecord, article_count: int = 0) -> CategoryItem:
    return CategoryItem(
        id=record.id,
        name=record.name,
        slug=record.slug,
        display_order=(
            DEFAULT_DISPLAY_ORDER if record.display_order is None else record.display_order
        ),
        icon_emoji=record.icon_emoji or DEFAULT_ICON,
        color_hex=record.color_hex or DEFAULT_COLOR,
        parent_id=record.parent_id,
        is_main_nav=record.is_main_nav,
        article_count=article_count,
    )


def build_tree(items: list[CategoryItem]) -> CategoryTree:
    """
    把扁平的分类列表整理成两级结构。

    一级分类保持输入顺序；子分类按 (display_order, name) 排序。父分类不在
    列表中的子分类不出现在树里，但仍计入 `total_categories`。
    """
    children: dict[int, list[CategoryItem]] = {}
    for item in items:
        if item.parent_id is not None:
            children.setdefault(item.parent_id, []).append(item)

    primaries = [
        item.model_copy(
            update={
                "subcategories": sorted(
                    children.get(item.id, []), key=lambda c: (c.display_order, c.name)
                )
            }
        )
        for item in items
        if item.parent_id is None
    ]
    return CategoryTree(
        categories=primaries,
        total_categories=len(items),
        main_nav_count=sum(1 for item in items if item.is_main_nav),
    )


def to_category_article(
    article: ArticleRecord,
    translation: ArticleTranslationRecord | None,
    source_name: str | None,
    lang: str,
) -> CategoryArticle:
    source_lang = normalize_bcp47(article.language)
    is_translated = bool(
        translation
        and source_lang
        and base_lang(translation.dst_lang) != base_lang(source_lang)
    )
    language = translation.dst_lang if translation else lang
    return CategoryArticle(
        id=article.id,
        title=(translation.headline if translation else "") or article.title or "",
        summary=(translation.summary_ai if translation else "") or article.snippet or "",
        published_at=article.published_at,
        url=article.canonical_url or article.url,
        image_url=article.thumbnail_url,
        source_name=source_name or UNKNOWN_SOURCE,
        language=language,
        is_translated=is_translated,
        translated_from=source_lang if is_translated else None,
        dir=dir_for(language),
    )


class CategoryService:
    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx

    def clamp_limit(self, limit: int | None) -> int:
        cfg = self.ctx.config.categories
        if not limit or limit <= 0:
            return cfg.default_limit
        return min(limit, cfg.max_limit)

    async def _items(self, main_nav_only: bool) -> list[CategoryItem]:
        records = await with_timeout(
            self.ctx.handler.list_categories(main_nav_only=main_nav_only),
            self.ctx.config.storage_timeout,
            "list_categories",
        )
        counts = await self.ctx.lookups.category_counts([r.id for r in records])
        return [to_item(r, counts.value.get(r.id, 0)) for r in records]

    async def navigation(self) -> list[CategoryItem]:
        """主导航中的分类，按 display_order 排序，附带文章数。"""
        return await self._items(main_nav_only=True)

    async def tree(self, main_nav_only: bool = False) -> CategoryTree:
        return build_tree(await self._items(main_nav_only))

    async def articles(
        self,
        slug: str,
        lang: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> CategoryArticlesPage:
        """
        分页返回分类下的文章，按发布时间倒序。

        标题与摘要优先使用目标语言的文章译文，其次是任意一种语言的译文，
        最后是文章原文。分类不存在时抛出 `CategoryNotFoundError`；分类与
        文章列表的存储失败以 `DatabaseError` 上抛，来源名称与译文的查询
        失败只会退化为默认值。
        """
        limit = self.clamp_limit(limit)
        offset = max(offset or 0, 0)
        timeout = self.ctx.config.storage_timeout

        category = await with_timeout(
            self.ctx.handler.get_category_by_slug(slug), timeout, "get_category_by_slug"
        )
        if category is None:
            raise CategoryNotFoundError(f"分类 '{slug}' 不存在。")
        ref = CategoryRef(id=category.id, name=category.name, slug=category.slug)

        counts = await with_timeout(
            self.ctx.handler.count_articles_by_category([category.id]),
            timeout,
            "count_category_articles",
        )
        total = counts.get(category.id, 0)
        articles: list[ArticleRecord] = []
        if total and offset < total:
            articles = await with_timeout(
                self.ctx.handler.list_category_articles(category.id, limit, offset),
                timeout,
                "list_category_articles",
            )

        lookups = self.ctx.lookups
        sources, translations = await asyncio.gather(
            lookups.source_names(articles),
            lookups.article_translations([a.id for a in articles], lang),
        )
        if not (sources.ok and translations.ok):
            logger.info(
                "分类文章的补充查询降级。",
                category=slug,
                sources_error=sources.error,
                translations_error=translations.error,
            )

        items = [
            to_category_article(
                article,
                translations.value.get(article.id),
                sources.value.get(article.source_id) if article.source_id else None,
                lang,
            )
            for article in articles
        ]
        return CategoryArticlesPage(
            category=ref,
            articles=items,
            pagination=Pagination(
                total=total, limit=limit, offset=offset, has_more=offset + limit < total
            ),
        )
