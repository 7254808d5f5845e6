# insight_bff/services/feed.py
"""Feed 列表编排器。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from insight_bff.core.types import ClusterRecord, FeedPage
from insight_bff.policies.feed import BestEffortFeedPolicy, FeedPolicy, StrictFeedPolicy
from insight_bff.utils import with_timeout

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FeedService:
    def __init__(
        self,
        ctx: ServiceContext,
        best_effort: FeedPolicy | None = None,
        strict: FeedPolicy | None = None,
    ):
        self.ctx = ctx
        self.best_effort = best_effort or BestEffortFeedPolicy()
        self.strict = strict or StrictFeedPolicy()

    def clamp_limit(self, limit: int | None) -> int:
        cfg = self.ctx.config.feed
        if not limit or limit <= 0:
            return cfg.default_limit
        return min(limit, cfg.max_limit)

    async def list_feed(
        self, lang: str, limit: int | None = None, strict: bool = False
    ) -> FeedPage:
        """
        列出最近的集群卡片。

        先取 `limit * 3` 个候选集群，按代表文章的发布时间倒序排列后截取
        `limit` 个，再交给对应的策略解析文本，最后补充覆盖数和缩略图。
        """
        limit = self.clamp_limit(limit)
        clusters = await with_timeout(
            self.ctx.handler.list_clusters(limit * 3),
            self.ctx.config.storage_timeout,
            "list_clusters",
        )
        if not clusters:
            return FeedPage()

        reps = await self.ctx.lookups.rep_articles(clusters)

        def published(cluster: ClusterRecord) -> datetime:
            article = reps.value.get(cluster.id)
            return _sort_key(article.published_at if article else None)

        picked = sorted(clusters, key=published, reverse=True)[:limit]
        cluster_ids = [c.id for c in picked]

        policy = self.strict if strict else self.best_effort
        page = await policy.build_page(cluster_ids, lang, limit, self.ctx)

        counts = await self.ctx.lookups.coverage_counts([card.id for card in page.cards])
        for card in page.cards:
            card.coverage_count = max(1, counts.value.get(card.id, 0))
            article = reps.value.get(card.id)
            card.image_url = article.thumbnail_url if article else None

        logger.debug(
            "Feed 已生成。",
            lang=lang,
            strict=strict,
            cards=len(page.cards),
            pending=len(page.pending_ids),
        )
        return page
