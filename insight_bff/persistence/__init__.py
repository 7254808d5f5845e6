# insight_bff/persistence/__init__.py
"""本模块作为持久化层的公共入口，导出核心组件。"""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from insight_bff.config import BffConfig
from insight_bff.core.exceptions import ConfigurationError
from insight_bff.core.interfaces import PersistenceHandler
from insight_bff.persistence.base import BasePersistenceHandler
from insight_bff.persistence.sqlite import SQLitePersistenceHandler


def _sqlite_path(db_url: str) -> str:
    # 'sqlite+aiosqlite:///path/to/db' -> 'path/to/db'；无路径时为内存库
    path = db_url.split("://", 1)[1].lstrip("/") if "://" in db_url else ""
    if db_url.startswith("sqlite+aiosqlite:////"):
        path = "/" + path
    return path or ":memory:"


def create_persistence_handler(config: BffConfig) -> BasePersistenceHandler:
    """
    根据配置创建、配置并返回一个具体的持久化处理器实例。
    这是实例化持久化层的唯一入口。
    """
    db_url = config.database_url

    if db_url.startswith("sqlite"):
        db_path = _sqlite_path(db_url)
        if db_path == ":memory:" or ":memory:" in db_url:
            # 内存库必须共享同一个连接，否则每个会话看到的是不同的数据库
            engine = create_async_engine(
                db_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            db_path = ":memory:"
        else:
            engine = create_async_engine(db_url)
        sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        return SQLitePersistenceHandler(sessionmaker, db_path=db_path)

    if db_url.startswith("postgresql"):
        try:
            from .postgres import PostgresPersistenceHandler
            import asyncpg  # noqa: F401
        except ImportError as e:
            raise ConfigurationError(
                "要使用 PostgreSQL, 请安装 'asyncpg' 驱动: "
                '"pip install "insight-bff[postgres]"'
            ) from e

        engine = create_async_engine(db_url, pool_size=20, max_overflow=10)
        sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        return PostgresPersistenceHandler(sessionmaker, dsn=db_url)

    raise ConfigurationError(f"不支持的数据库类型或驱动: '{db_url}'")


DefaultPersistenceHandler = SQLitePersistenceHandler

__all__ = [
    "create_persistence_handler",
    "BasePersistenceHandler",
    "DefaultPersistenceHandler",
    "PersistenceHandler",
]
