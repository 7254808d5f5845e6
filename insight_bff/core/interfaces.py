# insight_bff/core/interfaces.py
"""定义了持久化处理器的纯异步接口协议。"""

from __future__ import annotations

from typing import Protocol

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


class PersistenceHandler(Protocol):
    """
    insight-bff 消费的存储操作集合。

    所有方法在失败时抛出 `DatabaseError`（或其子类）；调用方自行决定
    是降级为空结果、记录日志还是上抛。
    """

    async def connect(self) -> None:
        """建立与数据库的连接。"""
        ...

    async def close(self) -> None:
        """关闭与数据库的连接。"""
        ...

    # --- clusters / articles / sources ---

    async def get_cluster(self, cluster_id: str) -> ClusterRecord | None: ...

    async def list_clusters(self, limit: int) -> list[ClusterRecord]: ...

    async def get_articles(self, article_ids: list[str]) -> list[ArticleRecord]: ...

    async def count_articles_by_cluster(
        self, cluster_ids: list[str]
    ) -> dict[str, int]: ...

    async def list_cluster_articles(
        self, cluster_id: str, limit: int
    ) -> list[ArticleRecord]:
        """按发布时间倒序返回集群内的文章。"""
        ...

    async def get_sources(self, source_ids: list[str]) -> list[SourceRecord]: ...

    async def list_cluster_updates(
        self, cluster_id: str, limit: int | None = None
    ) -> list[ClusterUpdateRecord]:
        """按发生时间倒序返回集群时间线。"""
        ...

    # --- categories ---

    async def list_categories(self, main_nav_only: bool = False) -> list[CategoryRecord]:
        """按 display_order（空值在后）与名称升序返回分类。"""
        ...

    async def get_category_by_slug(self, slug: str) -> CategoryRecord | None: ...

    async def count_articles_by_category(
        self, category_ids: list[int]
    ) -> dict[int, int]: ...

    async def list_category_articles(
        self, category_id: int, limit: int, offset: int = 0
    ) -> list[ArticleRecord]:
        """按发布时间倒序分页返回分类下的文章。"""
        ...

    async def list_article_translations(
        self, article_ids: list[str]
    ) -> list[ArticleTranslationRecord]: ...

    # --- cluster_ai ---

    async def get_current_translation(
        self, cluster_id: str, lang: str
    ) -> ClusterTranslationRow | None: ...

    async def list_current_translations(
        self, cluster_id: str
    ) -> list[ClusterTranslationRow]:
        """返回集群在所有语言下的当前行，按创建时间升序。"""
        ...

    async def list_current_translations_for_clusters(
        self, cluster_ids: list[str]
    ) -> dict[str, list[ClusterTranslationRow]]: ...

    async def insert_translation_if_absent(self, row: ClusterTranslationRow) -> bool:
        """
        幂等插入：若 (cluster_id, lang) 已存在当前行则什么也不做并返回 False。
        检查与插入在同一事务中完成。
        """
        ...

    async def replace_current_translation(
        self, old_row_id: str, row: ClusterTranslationRow
    ) -> None:
        """在同一事务中将旧行标记为非当前，并插入新的当前行。"""
        ...

    async def mark_translation_not_current(self, row_id: str) -> None: ...

    # --- translations (content-addressed cache table) ---

    async def find_cached_translation(self, key: str) -> str | None: ...

    async def save_cached_translation(
        self, key: str, src_lang: str, dst_lang: str, text: str
    ) -> None: ...

    # --- app_markets ---

    async def list_markets(self, enabled_only: bool = True) -> list[MarketRecord]: ...
