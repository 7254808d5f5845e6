# insight_bff/services/lookups.py
"""
非关键的补充查询：代表文章、覆盖数、缩略图、引用与时间线，以及分类页用到的
分类文章数、来源名称与文章译文。

每个查询都返回 `Lookup[T]`。存储失败或超时只会让结果退化为空默认值，
并把错误描述带在结果上，响应本身仍然成功。
"""

from collections.abc import Awaitable
from typing import TypeVar

import structlog

from insight_bff.core.exceptions import DatabaseError
from insight_bff.core.interfaces import PersistenceHandler
from insight_bff.core.types import (
    ArticleRecord,
    ArticleTranslationRecord,
    Citation,
    ClusterRecord,
    Lookup,
    TimelineEntry,
)
from insight_bff.translator import TextTranslator
from insight_bff.utils import base_lang, normalize_bcp47, with_timeout

logger = structlog.get_logger(__name__)

_T = TypeVar("_T")


class EnrichmentLookups:
    def __init__(
        self,
        handler: PersistenceHandler,
        translator: TextTranslator,
        timeout: float = 1.5,
    ):
        self.handler = handler
        self.translator = translator
        self.timeout = timeout

    async def _guard(self, awaitable: Awaitable[_T], default: _T, label: str) -> Lookup[_T]:
        try:
            return Lookup(await with_timeout(awaitable, self.timeout, label))
        except DatabaseError as e:
            logger.warning("补充查询失败，使用空结果。", lookup=label, error=str(e))
            return Lookup(default, error=str(e))

    async def rep_articles(
        self, clusters: list[ClusterRecord]
    ) -> Lookup[dict[str, ArticleRecord]]:
        """cluster_id -> 代表文章。"""
        rep_ids = [c.rep_article for c in clusters if c.rep_article]
        if not rep_ids:
            return Lookup({})
        found = await self._guard(self.handler.get_articles(rep_ids), [], "rep_articles")
        by_id = {a.id: a for a in found.value}
        mapping = {
            c.id: by_id[c.rep_article]
            for c in clusters
            if c.rep_article and c.rep_article in by_id
        }
        return Lookup(mapping, error=found.error)

    async def coverage_counts(self, cluster_ids: list[str]) -> Lookup[dict[str, int]]:
        if not cluster_ids:
            return Lookup({})
        return await self._guard(
            self.handler.count_articles_by_cluster(cluster_ids), {}, "coverage_counts"
        )

    async def thumbnail(self, cluster: ClusterRecord) -> Lookup[str | None]:
        reps = await self.rep_articles([cluster])
        article = reps.value.get(cluster.id)
        return Lookup(article.thumbnail_url if article else None, error=reps.error)

    async def citations(self, cluster_id: str, limit: int = 3) -> Lookup[list[Citation]]:
        articles = await self._guard(
            self.handler.list_cluster_articles(cluster_id, limit), [], "citations"
        )
        if not articles.ok:
            return Lookup([], error=articles.error)

        sources = await self.source_names(articles.value)
        names = sources.value

        citations = [
            Citation(
                id=a.id,
                title=a.title,
                url=a.canonical_url or a.url,
                source_id=a.source_id,
                source_name=names.get(a.source_id) if a.source_id else None,
            )
            for a in articles.value
        ]
        return Lookup(citations, error=sources.error)

    async def timeline(self, cluster_id: str, lang: str) -> Lookup[list[TimelineEntry]]:
        """时间线条目按需即时翻译，结果不落库。"""
        updates = await self._guard(
            self.handler.list_cluster_updates(cluster_id), [], "timeline"
        )
        entries: list[TimelineEntry] = []
        for update in updates.value:
            text = update.summary or update.claim or ""
            src = normalize_bcp47(update.lang)
            needs = bool(src) and base_lang(src) != base_lang(lang)
            if needs:
                text = await self.translator.translate_text_cached(text, src, lang)
            entries.append(
                TimelineEntry(
                    id=update.id,
                    text=text,
                    language=lang if needs else (src or lang),
                    translated_from=src if needs else None,
                    happened_at=update.happened_at or update.created_at,
                    source_id=update.source_id,
                )
            )
        return Lookup(entries, error=updates.error)

    async def source_names(self, articles: list[ArticleRecord]) -> Lookup[dict[str, str]]:
        """source_id -> 来源名称。"""
        source_ids = list(dict.fromkeys(a.source_id for a in articles if a.source_id))
        if not source_ids:
            return Lookup({})
        sources = await self._guard(self.handler.get_sources(source_ids), [], "sources")
        return Lookup({s.id: s.name for s in sources.value}, error=sources.error)

    async def category_counts(self, category_ids: list[int]) -> Lookup[dict[int, int]]:
        if not category_ids:
            return Lookup({})
        return await self._guard(
            self.handler.count_articles_by_category(category_ids), {}, "category_counts"
        )

    async def article_translations(
        self, article_ids: list[str], lang: str
    ) -> Lookup[dict[str, ArticleTranslationRecord]]:
        """
        article_id -> 文章译文。

        优先取 dst_lang 与目标语言完全相同的一行；没有时取该文章的任意一行
        （按语言标签排序的第一行）。没有任何译文的文章不出现在结果中。
        """
        if not article_ids:
            return Lookup({})
        found = await self._guard(
            self.handler.list_article_translations(article_ids), [], "article_translations"
        )
        picked: dict[str, ArticleTranslationRecord] = {}
        for row in sorted(found.value, key=lambda t: (t.dst_lang != lang, t.dst_lang)):
            picked.setdefault(row.article_id, row)
        return Lookup(picked, error=found.error)
