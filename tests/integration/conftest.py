# tests/integration/conftest.py
"""
集成测试的 Fixtures。

每个测试函数都会获得一个全新的、已建表的内存 SQLite 数据库；内存库通过
StaticPool 共享同一个连接，因此所有会话看到的是同一份数据。
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest_asyncio

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
)
from insight_bff.persistence import create_persistence_handler
from insight_bff.persistence.base import BasePersistenceHandler

from tests.helpers.factories import make_config

Seeder = Callable[..., Awaitable[None]]


@pytest_asyncio.fixture
async def sqlite_handler() -> AsyncGenerator[BasePersistenceHandler, None]:
    handler = create_persistence_handler(
        make_config(database_url="sqlite+aiosqlite:///:memory:")
    )
    await handler.connect()
    await handler.create_schema()
    yield handler
    await handler.close()


@pytest_asyncio.fixture
async def seed(sqlite_handler: BasePersistenceHandler) -> Seeder:
    """
    按外键依赖顺序写入测试数据。

    接受 `clusters`、`sources`、`articles`、`updates`、`rows`、`markets`、
    `categories`、`article_categories`、`article_translations` 等关键字参数，
    每个都是字段字典的列表。
    """

    async def _seed(**tables: list[dict[str, Any]]) -> None:
        order = [
            ("clusters", Clusters),
            ("sources", Sources),
            ("articles", Articles),
            ("updates", ClusterUpdates),
            ("rows", ClusterAi),
            ("markets", AppMarkets),
            ("categories", Categories),
            ("article_categories", ArticleCategories),
            ("article_translations", ArticleTranslations),
        ]
        async with sqlite_handler._sessionmaker.begin() as session:
            for name, model in order:
                for values in tables.get(name, []):
                    session.add(model(**values))
                await session.flush()

    return _seed
