# insight_bff/services/cluster.py
"""单集群详情编排器。"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from insight_bff.core.exceptions import ClusterNotFoundError
from insight_bff.core.types import Citation, ClusterDetail, TimelineEntry
from insight_bff.utils import dir_for, with_timeout

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext

logger = structlog.get_logger(__name__)

MIN_DETAILS_LENGTH = 240
TIMELINE_BULLETS = 5
CITATION_LIMIT = 3


def _squash(value: str) -> str:
    return " ".join(value.split())


def compose_details(
    summary: str,
    details: str,
    timeline: list[TimelineEntry],
    citations: list[Citation],
) -> str:
    """详情缺失、过短或与摘要相同时，用摘要、时间线和来源拼出正文。"""
    same_as_summary = bool(_squash(details)) and _squash(details) == _squash(summary)
    if details and len(details) >= MIN_DETAILS_LENGTH and not same_as_summary:
        return details

    parts: list[str] = []
    if summary:
        parts.append(summary.strip())
    if timeline:
        bullets = "\n".join(f"• {entry.text}" for entry in timeline[:TIMELINE_BULLETS])
        parts.append(f"\nTimeline updates:\n{bullets}")
    if citations:
        cites = "\n".join(
            f"• {c.source_name or 'Source'}: {c.title}" for c in citations
        )
        parts.append(f"\nSources:\n{cites}")
    return "\n\n".join(parts)


class ClusterService:
    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx

    async def get_cluster(self, cluster_id: str, lang: str) -> ClusterDetail:
        """
        同步解析集群文本并补充时间线、覆盖数、缩略图与引用。

        集群不存在或没有任何当前行时抛出 `ClusterNotFoundError`；
        存储读取失败以 `DatabaseError` 上抛。
        """
        cluster = await with_timeout(
            self.ctx.handler.get_cluster(cluster_id),
            self.ctx.config.storage_timeout,
            "get_cluster",
        )
        if cluster is None:
            raise ClusterNotFoundError(f"集群 '{cluster_id}' 不存在。")

        resolved = await self.ctx.resolver.ensure(cluster.id, lang)
        if resolved is None:
            raise ClusterNotFoundError(f"集群 '{cluster_id}' 没有任何可用文本。")

        lookups = self.ctx.lookups
        timeline, counts, thumbnail, citations = await asyncio.gather(
            lookups.timeline(cluster.id, resolved.lang),
            lookups.coverage_counts([cluster.id]),
            lookups.thumbnail(cluster),
            lookups.citations(cluster.id, CITATION_LIMIT),
        )

        detail = ClusterDetail(
            id=cluster.id,
            title=resolved.title,
            summary=resolved.summary,
            ai_details=compose_details(
                resolved.summary, resolved.details, timeline.value, citations.value
            ),
            language=resolved.lang,
            is_translated=resolved.is_translated,
            translated_from=resolved.translated_from,
            dir=dir_for(resolved.lang),
            image_url=thumbnail.value,
            coverage_count=max(1, counts.value.get(cluster.id, 0)),
            timeline=timeline.value,
            citations=citations.value,
        )
        logger.debug(
            "集群详情已生成。",
            cluster_id=cluster.id,
            lang=resolved.lang,
            updates=len(timeline.value),
            citations=len(citations.value),
        )
        return detail
