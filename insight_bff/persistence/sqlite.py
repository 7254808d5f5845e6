# insight_bff/persistence/sqlite.py
"""`PersistenceHandler` 协议的 SQLite 实现（aiosqlite 驱动）。"""

from __future__ import annotations

import structlog
from sqlalchemy import insert, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insight_bff.core.exceptions import DatabaseError
from insight_bff.db.schema import Translations
from insight_bff.persistence.base import BasePersistenceHandler

logger = structlog.get_logger(__name__)


class SQLitePersistenceHandler(BasePersistenceHandler):
    """`PersistenceHandler` 协议的 SQLite 实现。"""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], db_path: str):
        super().__init__(sessionmaker, is_sqlite=True)
        self.db_path = db_path

    async def connect(self) -> None:
        """[覆盖] 建立连接并为 SQLite 设置必要的 PRAGMA。"""
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    await session.execute(text("PRAGMA foreign_keys = ON;"))
                    if self.db_path != ":memory:":
                        await session.execute(text("PRAGMA journal_mode=WAL;"))
        except SQLAlchemyError as e:
            raise DatabaseError(f"SQLite 连接失败: {e}") from e
        logger.info("SQLite 数据库连接已建立并通过 PRAGMA 检查", db_path=self.db_path)

    async def save_cached_translation(
        self, key: str, src_lang: str, dst_lang: str, text: str
    ) -> None:
        """[覆盖] 使用 'INSERT OR IGNORE'，并发写入同一个键是无害的。"""
        try:
            async with self._sessionmaker.begin() as session:
                await session.execute(
                    insert(Translations)
                    .values(key=key, src_lang=src_lang, dst_lang=dst_lang, text=text)
                    .prefix_with("OR IGNORE")
                )
        except SQLAlchemyError as e:
            raise DatabaseError(f"SQLite 写入翻译缓存失败: {e}") from e
