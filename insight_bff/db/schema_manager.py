# insight_bff/db/schema_manager.py
"""本模块负责创建数据库 Schema。"""

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from insight_bff.db.schema import Base

logger = structlog.get_logger(__name__)


async def create_all(engine: AsyncEngine) -> None:
    """创建所有缺失的表。已存在的表保持不变。"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表已就绪。", tables=sorted(Base.metadata.tables))

