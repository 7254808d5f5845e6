# insight_bff/persistence/base.py
# 持久化基类：用 SQLAlchemy ORM Session 实现 PersistenceHandler 的共享逻辑。
# 方言相关的连接检查与“插入或忽略”语句由子类覆盖。
from __future__ import annotations

from abc import ABC, abstractmethod

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from insight_bff.core.exceptions import DatabaseError, DuplicateKeyError
from insight_bff.core.interfaces import PersistenceHandler
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
from insight_bff.db.schema import (
    AppMarkets,
    ArticleCategories,
    Articles,
    ArticleTranslations,
    Categories,
    ClusterAi,
    Clusters,
    ClusterUpdates,
    Sources,
    Translations,
)
from insight_bff.db.schema_manager import create_all

logger = structlog.get_logger(__name__)


def _to_translation_row(orm: ClusterAi) -> ClusterTranslationRow:
    return ClusterTranslationRow(
        id=orm.id,
        cluster_id=orm.cluster_id,
        lang=orm.lang,
        title=orm.ai_title or "",
        summary=orm.ai_summary or "",
        details=orm.ai_details or "",
        is_current=orm.is_current,
        created_at=orm.created_at,
        model=orm.model,
        pivot_hash=orm.pivot_hash,
    )


def _to_article(orm: Articles) -> ArticleRecord:
    return ArticleRecord(
        id=orm.id,
        cluster_id=orm.cluster_id,
        source_id=orm.source_id,
        title=orm.title or "",
        snippet=orm.snippet or "",
        language=orm.language,
        canonical_url=orm.canonical_url,
        url=orm.url,
        thumbnail_url=orm.thumbnail_url,
        published_at=orm.published_at,
    )


def _to_category(orm: Categories) -> CategoryRecord:
    return CategoryRecord(
        id=orm.id,
        name=orm.name,
        slug=orm.slug,
        parent_id=orm.parent_id,
        display_order=orm.display_order,
        is_main_nav=bool(orm.is_main_nav),
        icon_emoji=orm.icon_emoji,
        color_hex=orm.color_hex,
    )


def _cluster_ai_values(row: ClusterTranslationRow) -> dict[str, object]:
    values: dict[str, object] = dict(
        cluster_id=row.cluster_id,
        lang=row.lang,
        ai_title=row.title,
        ai_summary=row.summary,
        ai_details=row.details,
        is_current=True,
        model=row.model,
        pivot_hash=row.pivot_hash,
    )
    if row.id is not None:
        values["id"] = row.id
    if row.created_at is not None:
        values["created_at"] = row.created_at
    return values


class BasePersistenceHandler(PersistenceHandler, ABC):
    """持久化处理器的基类。所有 SQLAlchemy 异常都被包装为 `DatabaseError`。"""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], is_sqlite: bool):
        self._sessionmaker = sessionmaker
        self._is_sqlite = is_sqlite

    @property
    def engine(self) -> AsyncEngine | None:
        return self._sessionmaker.kw.get("bind")

    async def create_schema(self) -> None:
        """创建所有缺失的表。供 `db init` 命令与测试使用。"""
        if self.engine is None:
            raise DatabaseError("sessionmaker 未绑定引擎，无法创建表。")
        try:
            await create_all(self.engine)
        except SQLAlchemyError as e:
            raise DatabaseError(f"创建数据库表失败: {e}") from e

    @abstractmethod
    async def connect(self) -> None:
        """[子类实现] 确保与数据库的连接是活跃的。"""
        ...

    async def close(self) -> None:
        """[通用实现] 安全地关闭 SQLAlchemy 引擎及其底层连接池。"""
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("持久化层引擎已关闭。")

    # --- clusters / articles / sources ---

    async def get_cluster(self, cluster_id: str) -> ClusterRecord | None:
        try:
            async with self._sessionmaker() as session:
                orm = await session.get(Clusters, cluster_id)
                if orm is None:
                    return None
                return ClusterRecord(
                    id=orm.id, rep_article=orm.rep_article, created_at=orm.created_at
                )
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取集群失败: {e}") from e

    async def list_clusters(self, limit: int) -> list[ClusterRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = select(Clusters).order_by(Clusters.created_at.desc()).limit(limit)
                rows = (await session.execute(stmt)).scalars().all()
                return [
                    ClusterRecord(id=r.id, rep_article=r.rep_article, created_at=r.created_at)
                    for r in rows
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"列出集群失败: {e}") from e

    async def get_articles(self, article_ids: list[str]) -> list[ArticleRecord]:
        if not article_ids:
            return []
        try:
            async with self._sessionmaker() as session:
                stmt = select(Articles).where(Articles.id.in_(article_ids))
                return [_to_article(a) for a in (await session.execute(stmt)).scalars()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取文章失败: {e}") from e

    async def count_articles_by_cluster(self, cluster_ids: list[str]) -> dict[str, int]:
        if not cluster_ids:
            return {}
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(Articles.cluster_id, func.count(Articles.id))
                    .where(Articles.cluster_id.in_(cluster_ids))
                    .group_by(Articles.cluster_id)
                )
                return {cid: count for cid, count in (await session.execute(stmt)).all()}
        except SQLAlchemyError as e:
            raise DatabaseError(f"统计覆盖数失败: {e}") from e

    async def list_cluster_articles(
        self, cluster_id: str, limit: int
    ) -> list[ArticleRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(Articles)
                    .where(Articles.cluster_id == cluster_id)
                    .order_by(Articles.published_at.desc())
                    .limit(limit)
                )
                return [_to_article(a) for a in (await session.execute(stmt)).scalars()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取集群文章失败: {e}") from e

    async def get_sources(self, source_ids: list[str]) -> list[SourceRecord]:
        if not source_ids:
            return []
        try:
            async with self._sessionmaker() as session:
                stmt = select(Sources).where(Sources.id.in_(source_ids))
                return [
                    SourceRecord(id=s.id, name=s.name, homepage=s.homepage)
                    for s in (await session.execute(stmt)).scalars()
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取来源失败: {e}") from e

    async def list_cluster_updates(
        self, cluster_id: str, limit: int | None = None
    ) -> list[ClusterUpdateRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(ClusterUpdates)
                    .where(ClusterUpdates.cluster_id == cluster_id)
                    .order_by(ClusterUpdates.happened_at.desc())
                )
                if limit:
                    stmt = stmt.limit(limit)
                return [
                    ClusterUpdateRecord(
                        id=u.id,
                        cluster_id=u.cluster_id,
                        claim=u.claim or "",
                        summary=u.summary or "",
                        source_id=u.source_id,
                        lang=u.lang,
                        happened_at=u.happened_at,
                        created_at=u.created_at,
                    )
                    for u in (await session.execute(stmt)).scalars()
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取集群时间线失败: {e}") from e

    # --- categories ---

    async def list_categories(self, main_nav_only: bool = False) -> list[CategoryRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = select(Categories).order_by(
                    Categories.display_order.asc().nulls_last(), Categories.name.asc()
                )
                if main_nav_only:
                    stmt = stmt.where(Categories.is_main_nav.is_(True))
                return [_to_category(c) for c in (await session.execute(stmt)).scalars()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"列出分类失败: {e}") from e

    async def get_category_by_slug(self, slug: str) -> CategoryRecord | None:
        try:
            async with self._sessionmaker() as session:
                stmt = select(Categories).where(Categories.slug == slug)
                orm = (await session.execute(stmt)).scalar_one_or_none()
                return _to_category(orm) if orm else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"按 slug 获取分类失败: {e}") from e

    async def count_articles_by_category(self, category_ids: list[int]) -> dict[int, int]:
        if not category_ids:
            return {}
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(ArticleCategories.category_id, func.count(ArticleCategories.article_id))
                    .where(ArticleCategories.category_id.in_(category_ids))
                    .group_by(ArticleCategories.category_id)
                )
                return {cid: count for cid, count in (await session.execute(stmt)).all()}
        except SQLAlchemyError as e:
            raise DatabaseError(f"统计分类文章数失败: {e}") from e

    async def list_category_articles(
        self, category_id: int, limit: int, offset: int = 0
    ) -> list[ArticleRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(Articles)
                    .join(ArticleCategories, ArticleCategories.article_id == Articles.id)
                    .where(ArticleCategories.category_id == category_id)
                    .order_by(Articles.published_at.desc().nulls_last(), Articles.id)
                    .offset(offset)
                    .limit(limit)
                )
                return [_to_article(a) for a in (await session.execute(stmt)).scalars()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取分类文章失败: {e}") from e

    async def list_article_translations(
        self, article_ids: list[str]
    ) -> list[ArticleTranslationRecord]:
        if not article_ids:
            return []
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(ArticleTranslations)
                    .where(ArticleTranslations.article_id.in_(article_ids))
                    .order_by(ArticleTranslations.article_id, ArticleTranslations.dst_lang)
                )
                return [
                    ArticleTranslationRecord(
                        article_id=t.article_id,
                        dst_lang=t.dst_lang,
                        headline=t.headline or "",
                        summary_ai=t.summary_ai or "",
                    )
                    for t in (await session.execute(stmt)).scalars()
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取文章译文失败: {e}") from e

    # --- cluster_ai ---

    async def get_current_translation(
        self, cluster_id: str, lang: str
    ) -> ClusterTranslationRow | None:
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(ClusterAi)
                    .where(
                        ClusterAi.cluster_id == cluster_id,
                        ClusterAi.lang == lang,
                        ClusterAi.is_current.is_(True),
                    )
                    .order_by(ClusterAi.created_at.desc())
                    .limit(1)
                )
                orm = (await session.execute(stmt)).scalar_one_or_none()
                return _to_translation_row(orm) if orm else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取当前译文行失败: {e}") from e

    async def list_current_translations(
        self, cluster_id: str
    ) -> list[ClusterTranslationRow]:
        rows = await self.list_current_translations_for_clusters([cluster_id])
        return rows.get(cluster_id, [])

    async def list_current_translations_for_clusters(
        self, cluster_ids: list[str]
    ) -> dict[str, list[ClusterTranslationRow]]:
        if not cluster_ids:
            return {}
        try:
            async with self._sessionmaker() as session:
                stmt = (
                    select(ClusterAi)
                    .where(
                        ClusterAi.cluster_id.in_(cluster_ids),
                        ClusterAi.is_current.is_(True),
                    )
                    .order_by(ClusterAi.created_at.asc())
                )
                grouped: dict[str, list[ClusterTranslationRow]] = {}
                for orm in (await session.execute(stmt)).scalars():
                    grouped.setdefault(orm.cluster_id, []).append(_to_translation_row(orm))
                return grouped
        except SQLAlchemyError as e:
            raise DatabaseError(f"批量获取当前译文行失败: {e}") from e

    async def insert_translation_if_absent(self, row: ClusterTranslationRow) -> bool:
        try:
            async with self._sessionmaker.begin() as session:
                # 事务内的第二次读取，防止并发请求重复插入
                existing = (
                    await session.execute(
                        select(ClusterAi.id)
                        .where(
                            ClusterAi.cluster_id == row.cluster_id,
                            ClusterAi.lang == row.lang,
                            ClusterAi.is_current.is_(True),
                        )
                        .limit(1)
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    return False
                await session.execute(insert(ClusterAi).values(**_cluster_ai_values(row)))
                return True
        except IntegrityError as e:
            raise DuplicateKeyError(f"插入译文行时发生键冲突: {e}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"插入译文行失败: {e}") from e

    async def replace_current_translation(
        self, old_row_id: str, row: ClusterTranslationRow
    ) -> None:
        try:
            async with self._sessionmaker.begin() as session:
                await session.execute(
                    update(ClusterAi)
                    .where(ClusterAi.id == old_row_id)
                    .values(is_current=False)
                )
                await session.execute(insert(ClusterAi).values(**_cluster_ai_values(row)))
        except IntegrityError as e:
            raise DuplicateKeyError(f"替换译文行时发生键冲突: {e}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"替换译文行失败: {e}") from e

    async def mark_translation_not_current(self, row_id: str) -> None:
        try:
            async with self._sessionmaker.begin() as session:
                await session.execute(
                    update(ClusterAi).where(ClusterAi.id == row_id).values(is_current=False)
                )
        except SQLAlchemyError as e:
            raise DatabaseError(f"更新译文行状态失败: {e}") from e

    # --- translations ---

    async def find_cached_translation(self, key: str) -> str | None:
        try:
            async with self._sessionmaker() as session:
                stmt = select(Translations.text).where(Translations.key == key)
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"读取翻译缓存失败: {e}") from e

    async def save_cached_translation(
        self, key: str, src_lang: str, dst_lang: str, text: str
    ) -> None:
        """[通用实现] 先查后插。方言子类可覆盖为单条“插入或忽略”语句。"""
        try:
            async with self._sessionmaker.begin() as session:
                if await session.get(Translations, key) is not None:
                    return
                session.add(
                    Translations(key=key, src_lang=src_lang, dst_lang=dst_lang, text=text)
                )
        except IntegrityError as e:
            raise DuplicateKeyError(f"翻译缓存键冲突: {e}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"写入翻译缓存失败: {e}") from e

    # --- app_markets ---

    async def list_markets(self, enabled_only: bool = True) -> list[MarketRecord]:
        try:
            async with self._sessionmaker() as session:
                stmt = select(AppMarkets).order_by(AppMarkets.market_code)
                if enabled_only:
                    stmt = stmt.where(AppMarkets.enabled.is_(True))
                return [
                    MarketRecord(
                        market_code=m.market_code,
                        enabled=m.enabled,
                        show_langs=list(m.show_langs or []),
                        pretranslate_langs=list(m.pretranslate_langs or []),
                        default_lang=m.default_lang,
                        pivot_lang=m.pivot_lang,
                    )
                    for m in (await session.execute(stmt)).scalars()
                ]
        except SQLAlchemyError as e:
            raise DatabaseError(f"获取市场配置失败: {e}") from e
