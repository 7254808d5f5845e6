# insight_bff/policies/feed.py
"""
Feed 的两种请求期策略。

- 尽力而为（默认）：只做一次批量读取，缺失的目标语言返回占位卡片，
  并把解析任务交给后台队列。
- 严格：在总预算内等待解析完成，未完成的条目直接省略。

两者都通过同一个（去重的）解析器工作，只是调用约定不同。
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import structlog

from insight_bff.core.types import (
    ClusterTranslationRow,
    FeedCard,
    FeedPage,
    ResolvedClusterText,
    TranslationStatus,
)
from insight_bff.utils import dir_for, normalize_bcp47, same_base_lang, with_timeout

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext

logger = structlog.get_logger(__name__)


def card_from_resolved(resolved: ResolvedClusterText) -> FeedCard:
    return FeedCard(
        id=resolved.cluster_id,
        title=resolved.title,
        summary=resolved.summary,
        language=resolved.lang,
        is_translated=resolved.is_translated,
        translated_from=resolved.translated_from,
        translation_status=TranslationStatus.READY,
        dir=dir_for(resolved.lang),
    )


def background_key(cluster_id: str, lang: str) -> str:
    return f"{cluster_id}:{lang}"


class FeedPolicy(Protocol):
    async def build_page(
        self, cluster_ids: list[str], lang: str, limit: int, ctx: ServiceContext
    ) -> FeedPage: ...


class BestEffortFeedPolicy(FeedPolicy):
    """默认策略：永不等待提供方。"""

    def _card_from_row(
        self, row: ClusterTranslationRow, pivot: ClusterTranslationRow, lang: str
    ) -> FeedCard:
        translated = not same_base_lang(lang, pivot.lang)
        return FeedCard(
            id=row.cluster_id,
            title=row.title,
            summary=row.summary,
            language=lang,
            is_translated=translated,
            translated_from=pivot.lang if translated else None,
            translation_status=TranslationStatus.READY,
            dir=dir_for(lang),
        )

    def _placeholder(self, pivot: ClusterTranslationRow) -> FeedCard:
        pivot_lang = normalize_bcp47(pivot.lang) or pivot.lang
        return FeedCard(
            id=pivot.cluster_id,
            title=pivot.title,
            summary=pivot.summary,
            language=pivot_lang,
            is_translated=False,
            translated_from=None,
            translation_status=TranslationStatus.PENDING,
            dir=dir_for(pivot_lang),
        )

    def _schedule(self, cluster_id: str, lang: str, ctx: ServiceContext) -> bool:
        resolver = ctx.resolver
        return ctx.queue.enqueue(
            lambda: resolver.ensure(cluster_id, lang),
            key=background_key(cluster_id, lang),
        )

    async def build_page(
        self, cluster_ids: list[str], lang: str, limit: int, ctx: ServiceContext
    ) -> FeedPage:
        rows_by_cluster = await with_timeout(
            ctx.handler.list_current_translations_for_clusters(cluster_ids),
            ctx.config.storage_timeout,
            "list_current_translations_for_clusters",
        )

        page = FeedPage()
        for cluster_id in cluster_ids:
            if len(page.cards) >= limit:
                break
            rows = rows_by_cluster.get(cluster_id, [])
            pivot = ctx.resolver.pick_pivot(rows)
            if pivot is None:
                continue

            target = next(
                (row for row in rows if normalize_bcp47(row.lang) == lang), None
            )
            if target is not None:
                page.cards.append(self._card_from_row(target, pivot, lang))
                continue

            page.cards.append(self._placeholder(pivot))
            page.pending_ids.append(cluster_id)
            self._schedule(cluster_id, lang, ctx)

        if page.pending_ids:
            logger.info(
                "已为缺失的译文安排后台解析。",
                lang=lang,
                pending=len(page.pending_ids),
            )
        return page


class StrictFeedPolicy(FeedPolicy):
    """严格策略：在预算内等待解析，返回的卡片全部为 ready。"""

    async def _resolve_pass(
        self, cluster_ids: list[str], lang: str, timeout: float, ctx: ServiceContext
    ) -> dict[str, ResolvedClusterText]:
        results = await asyncio.gather(
            *(
                asyncio.wait_for(ctx.resolver.ensure(cid, lang), timeout=timeout)
                for cid in cluster_ids
            ),
            return_exceptions=True,
        )
        resolved: dict[str, ResolvedClusterText] = {}
        for cluster_id, result in zip(cluster_ids, results):
            if isinstance(result, ResolvedClusterText):
                resolved[cluster_id] = result
            elif isinstance(result, asyncio.TimeoutError):
                logger.debug("严格模式条目超时，已省略。", cluster_id=cluster_id)
            elif isinstance(result, Exception):
                logger.warning(
                    "严格模式条目解析失败，已省略。",
                    cluster_id=cluster_id,
                    error=str(result),
                )
        return resolved

    async def build_page(
        self, cluster_ids: list[str], lang: str, limit: int, ctx: ServiceContext
    ) -> FeedPage:
        feed_cfg = ctx.config.feed
        ids = cluster_ids[: min(limit, feed_cfg.strict_max_items)]
        if not ids:
            return FeedPage()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + feed_cfg.strict_budget

        resolved = await self._resolve_pass(ids, lang, feed_cfg.strict_item_timeout, ctx)
        remaining = deadline - loop.time()
        if not resolved and remaining > 0:
            relaxed = min(feed_cfg.strict_relaxed_timeout, remaining)
            logger.info(
                "严格模式首轮无结果，使用放宽的超时重试。", lang=lang, timeout=relaxed
            )
            resolved = await self._resolve_pass(ids, lang, relaxed, ctx)

        cards = [card_from_resolved(resolved[cid]) for cid in ids if cid in resolved]
        return FeedPage(cards=cards)
