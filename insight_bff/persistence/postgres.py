# insight_bff/persistence/postgres.py
"""`PersistenceHandler` 协议的 PostgreSQL 实现（asyncpg 驱动）。"""

from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insight_bff.core.exceptions import DatabaseError
from insight_bff.db.schema import Translations
from insight_bff.persistence.base import BasePersistenceHandler

logger = structlog.get_logger(__name__)


class PostgresPersistenceHandler(BasePersistenceHandler):
    """只包含方言特有的连接检查与 `ON CONFLICT DO NOTHING` 写入。"""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], dsn: str):
        super().__init__(sessionmaker, is_sqlite=False)
        self.dsn = dsn

    async def connect(self) -> None:
        """[覆盖] 健康检查以确保 PostgreSQL 连接正常。"""
        try:
            async with self._sessionmaker() as session:
                await session.execute(text("SELECT 1"))
            logger.info("PostgreSQL 数据库连接已建立并通过健康检查")
        except SQLAlchemyError as e:
            logger.error("连接 PostgreSQL 数据库失败", exc_info=True)
            raise DatabaseError(f"数据库连接失败: {e}") from e

    async def save_cached_translation(
        self, key: str, src_lang: str, dst_lang: str, text: str
    ) -> None:
        try:
            async with self._sessionmaker.begin() as session:
                stmt = (
                    pg_insert(Translations)
                    .values(key=key, src_lang=src_lang, dst_lang=dst_lang, text=text)
                    .on_conflict_do_nothing(index_elements=[Translations.key])
                )
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(f"PostgreSQL 写入翻译缓存失败: {e}") from e
