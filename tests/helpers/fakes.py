# tests/helpers/fakes.py
"""
测试替身：可编排的 LLM 引擎与纯内存的持久化处理器。

两者都实现了生产代码依赖的同一套接口，使解析器、编排器和 HTTP 层可以在
没有网络和数据库的情况下被完整地驱动。
"""

from __future__ import annotations

import asyncio
import json
import re
import uuid
from collections import Counter
from datetime import datetime, timezone

from insight_bff.core.exceptions import APIError, DatabaseError
from insight_bff.core.types import (
    ArticleRecord,
    ArticleTranslationRecord,
    CategoryRecord,
    ClusterRecord,
    ClusterTranslationRow,
    ClusterUpdateRecord,
    MarketRecord,
    SourceRecord,
)
from insight_bff.engines.base import BaseEngineConfig, BaseLLMEngine

_DEST_PATTERN = re.compile(r" to (.+?)\. ")

Reply = str | Exception


class FakeEngineConfig(BaseEngineConfig):
    pass


class FakeLLMEngine(BaseLLMEngine[FakeEngineConfig]):
    """
    可编排的引擎。

    - `script` 中的条目按顺序被消费：字符串原样返回，异常则被抛出；
    - 脚本耗尽后，回显提示词正文并加上 ``[<目标语言名>] `` 前缀，
      JSON 对象正文会逐个值加前缀；
    - `delay` 让每次调用先等待若干秒，用于并发和超时场景；
    - `fail` 为真时每次调用都抛出 `APIError`。
    """

    CONFIG_MODEL = FakeEngineConfig

    def __init__(
        self,
        script: list[Reply] | None = None,
        *,
        delay: float = 0.0,
        fail: bool = False,
    ):
        super().__init__(FakeEngineConfig())
        self.script: list[Reply] = list(script or [])
        self.delay = delay
        self.fail = fail
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def _execute_generation(
        self, prompt: str, temperature: float | None, max_tokens: int | None
    ) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise APIError("fake provider failure")
        if self.script:
            reply = self.script.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return self.echo(prompt)

    @staticmethod
    def echo(prompt: str) -> str:
        match = _DEST_PATTERN.search(prompt)
        prefix = f"[{match.group(1)}] " if match else "[?] "
        body = prompt.rsplit("\n\n", 1)[-1]
        try:
            payload = json.loads(body)
        except ValueError:
            return prefix + body
        if not isinstance(payload, dict):
            return prefix + body
        return json.dumps(
            {k: prefix + v if isinstance(v, str) and v else v for k, v in payload.items()},
            ensure_ascii=False,
        )


class InMemoryPersistenceHandler:
    """
    `PersistenceHandler` 的内存实现。

    `fail_reads` / `fail_writes` 让对应的调用抛出 `DatabaseError`；
    `write_counts` 记录每个 (cluster_id, lang) 的 cluster_ai 写入次数。
    """

    def __init__(self) -> None:
        self.clusters: dict[str, ClusterRecord] = {}
        self.articles: dict[str, ArticleRecord] = {}
        self.sources: dict[str, SourceRecord] = {}
        self.updates: list[ClusterUpdateRecord] = []
        self.rows: list[ClusterTranslationRow] = []
        self.cache: dict[str, str] = {}
        self.markets: list[MarketRecord] = []
        self.categories: list[CategoryRecord] = []
        self.article_categories: list[tuple[str, int]] = []
        self.article_translations: list[ArticleTranslationRecord] = []
        self.fail_reads = False
        self.fail_writes = False
        self.read_delay = 0.0
        self.write_counts: Counter[tuple[str, str]] = Counter()
        self.connected = False

    async def _read(self) -> None:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.fail_reads:
            raise DatabaseError("simulated read failure")

    def _write(self) -> None:
        if self.fail_writes:
            raise DatabaseError("simulated write failure")

    # --- 测试装配 ---

    def add_cluster(self, cluster: ClusterRecord) -> None:
        self.clusters[cluster.id] = cluster

    def add_article(self, article: ArticleRecord) -> None:
        self.articles[article.id] = article

    def add_source(self, source: SourceRecord) -> None:
        self.sources[source.id] = source

    def add_category(self, category: CategoryRecord, *article_ids: str) -> None:
        self.categories.append(category)
        self.article_categories.extend((a, category.id) for a in article_ids)

    def add_row(self, row: ClusterTranslationRow) -> ClusterTranslationRow:
        if row.id is None:
            row = row.model_copy(update={"id": str(uuid.uuid4())})
        if row.created_at is None:
            row = row.model_copy(update={"created_at": datetime.now(timezone.utc)})
        self.rows.append(row)
        return row

    def current_rows(self, cluster_id: str, lang: str) -> list[ClusterTranslationRow]:
        return [
            r
            for r in self.rows
            if r.cluster_id == cluster_id and r.lang == lang and r.is_current
        ]

    # --- PersistenceHandler ---

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def get_cluster(self, cluster_id: str) -> ClusterRecord | None:
        await self._read()
        return self.clusters.get(cluster_id)

    async def list_clusters(self, limit: int) -> list[ClusterRecord]:
        await self._read()
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        ordered = sorted(
            self.clusters.values(),
            key=lambda c: c.created_at or epoch,
            reverse=True,
        )
        return ordered[:limit]

    async def get_articles(self, article_ids: list[str]) -> list[ArticleRecord]:
        await self._read()
        return [self.articles[i] for i in article_ids if i in self.articles]

    async def count_articles_by_cluster(self, cluster_ids: list[str]) -> dict[str, int]:
        await self._read()
        counts: Counter[str] = Counter(
            a.cluster_id for a in self.articles.values() if a.cluster_id in cluster_ids
        )
        return dict(counts)

    async def list_cluster_articles(
        self, cluster_id: str, limit: int
    ) -> list[ArticleRecord]:
        await self._read()
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        found = [a for a in self.articles.values() if a.cluster_id == cluster_id]
        found.sort(key=lambda a: a.published_at or epoch, reverse=True)
        return found[:limit]

    async def get_sources(self, source_ids: list[str]) -> list[SourceRecord]:
        await self._read()
        return [self.sources[i] for i in source_ids if i in self.sources]

    async def list_cluster_updates(
        self, cluster_id: str, limit: int | None = None
    ) -> list[ClusterUpdateRecord]:
        await self._read()
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        found = [u for u in self.updates if u.cluster_id == cluster_id]
        found.sort(key=lambda u: u.happened_at or u.created_at or epoch, reverse=True)
        return found[:limit] if limit else found

    async def list_categories(self, main_nav_only: bool = False) -> list[CategoryRecord]:
        await self._read()
        found = [c for c in self.categories if c.is_main_nav or not main_nav_only]
        return sorted(
            found,
            key=lambda c: (c.display_order is None, c.display_order or 0, c.name),
        )

    async def get_category_by_slug(self, slug: str) -> CategoryRecord | None:
        await self._read()
        return next((c for c in self.categories if c.slug == slug), None)

    async def count_articles_by_category(self, category_ids: list[int]) -> dict[int, int]:
        await self._read()
        counts: Counter[int] = Counter(
            cid for _, cid in self.article_categories if cid in category_ids
        )
        return dict(counts)

    async def list_category_articles(
        self, category_id: int, limit: int, offset: int = 0
    ) -> list[ArticleRecord]:
        await self._read()
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        linked = {a for a, cid in self.article_categories if cid == category_id}
        found = [self.articles[a] for a in sorted(linked) if a in self.articles]
        found.sort(key=lambda a: a.published_at or epoch, reverse=True)
        return found[offset : offset + limit]

    async def list_article_translations(
        self, article_ids: list[str]
    ) -> list[ArticleTranslationRecord]:
        await self._read()
        return [t for t in self.article_translations if t.article_id in article_ids]

    async def get_current_translation(
        self, cluster_id: str, lang: str
    ) -> ClusterTranslationRow | None:
        await self._read()
        rows = self.current_rows(cluster_id, lang)
        return rows[0] if rows else None

    async def list_current_translations(
        self, cluster_id: str
    ) -> list[ClusterTranslationRow]:
        await self._read()
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        rows = [r for r in self.rows if r.cluster_id == cluster_id and r.is_current]
        return sorted(rows, key=lambda r: r.created_at or epoch)

    async def list_current_translations_for_clusters(
        self, cluster_ids: list[str]
    ) -> dict[str, list[ClusterTranslationRow]]:
        result: dict[str, list[ClusterTranslationRow]] = {}
        for cluster_id in cluster_ids:
            rows = await self.list_current_translations(cluster_id)
            if rows:
                result[cluster_id] = rows
        return result

    async def insert_translation_if_absent(self, row: ClusterTranslationRow) -> bool:
        self._write()
        if self.current_rows(row.cluster_id, row.lang):
            return False
        self.rows.append(row.model_copy(update={"is_current": True}))
        self.write_counts[(row.cluster_id, row.lang)] += 1
        return True

    async def replace_current_translation(
        self, old_row_id: str, row: ClusterTranslationRow
    ) -> None:
        self._write()
        await self.mark_translation_not_current(old_row_id)
        self.rows.append(row.model_copy(update={"is_current": True}))
        self.write_counts[(row.cluster_id, row.lang)] += 1

    async def mark_translation_not_current(self, row_id: str) -> None:
        self._write()
        self.rows = [
            r.model_copy(update={"is_current": False}) if r.id == row_id else r
            for r in self.rows
        ]

    async def find_cached_translation(self, key: str) -> str | None:
        await self._read()
        return self.cache.get(key)

    async def save_cached_translation(
        self, key: str, src_lang: str, dst_lang: str, text: str
    ) -> None:
        self._write()
        self.cache.setdefault(key, text)

    async def list_markets(self, enabled_only: bool = True) -> list[MarketRecord]:
        await self._read()
        return [m for m in self.markets if m.enabled or not enabled_only]
