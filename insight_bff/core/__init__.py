# insight_bff/core/__init__.py
"""
本核心包定义了 insight-bff 中最基础、最稳定的构建块。

这里包含了系统的核心数据类型、接口协议和自定义异常。所有其他模块都依赖
于此核心包，但本包不依赖于项目中的任何其他模块。
"""

from .exceptions import (
    APIError,
    CategoryNotFoundError,
    ClusterNotFoundError,
    ConfigurationError,
    DatabaseError,
    DuplicateKeyError,
    EngineNotFoundError,
    InsightBffError,
    StorageTimeoutError,
)
from .interfaces import PersistenceHandler
from .types import (
    ArticleRecord,
    ArticleTranslationRecord,
    BatchItem,
    BatchTranslateResult,
    CategoryArticle,
    CategoryArticlesPage,
    CategoryItem,
    CategoryRecord,
    CategoryRef,
    CategoryTree,
    Citation,
    ClusterDetail,
    ClusterRecord,
    ClusterTranslationRow,
    ClusterUpdateRecord,
    FeedCard,
    FeedPage,
    Lookup,
    MarketRecord,
    Pagination,
    ResolvedClusterText,
    RowState,
    SourceRecord,
    TimelineEntry,
    TranslatedFields,
    TranslationStatus,
)

__all__ = [
    # from exceptions.py
    "InsightBffError",
    "ConfigurationError",
    "EngineNotFoundError",
    "APIError",
    "DatabaseError",
    "DuplicateKeyError",
    "StorageTimeoutError",
    "ClusterNotFoundError",
    "CategoryNotFoundError",
    # from interfaces.py
    "PersistenceHandler",
    # from types.py
    "ArticleRecord",
    "ArticleTranslationRecord",
    "BatchItem",
    "BatchTranslateResult",
    "CategoryArticle",
    "CategoryArticlesPage",
    "CategoryItem",
    "CategoryRecord",
    "CategoryRef",
    "CategoryTree",
    "Citation",
    "ClusterDetail",
    "ClusterRecord",
    "ClusterTranslationRow",
    "ClusterUpdateRecord",
    "FeedCard",
    "FeedPage",
    "Lookup",
    "MarketRecord",
    "Pagination",
    "ResolvedClusterText",
    "RowState",
    "SourceRecord",
    "TimelineEntry",
    "TranslatedFields",
    "TranslationStatus",
]
