# insight_bff/core/types.py
"""
本模块定义了 insight-bff 系统的核心数据类型。

存储层返回的行、解析器的结果以及编排器的输出都在这里以 Pydantic 模型表示，
它们共同构成了各层之间的“契约”。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

_T = TypeVar("_T")


class TranslationStatus(str, Enum):
    """Feed 卡片的翻译状态。"""

    READY = "ready"
    PENDING = "pending"


class RowState(str, Enum):
    """解析器对目标语言行的分类结果。"""

    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"
    LEGACY = "legacy"
    STUB = "stub"


class ClusterRecord(BaseModel):
    """一个去重后的新闻故事。由外部摄取流程创建，本系统只读。"""

    id: str
    rep_article: str | None = None
    created_at: datetime | None = None


class ArticleRecord(BaseModel):
    id: str
    cluster_id: str | None = None
    source_id: str | None = None
    title: str = ""
    snippet: str = ""
    language: str | None = None
    canonical_url: str | None = None
    url: str | None = None
    thumbnail_url: str | None = None
    published_at: datetime | None = None


class SourceRecord(BaseModel):
    id: str
    name: str
    homepage: str | None = None


class ClusterUpdateRecord(BaseModel):
    """集群时间线上的一条更新。"""

    id: str
    cluster_id: str
    claim: str = ""
    summary: str = ""
    source_id: str | None = None
    lang: str | None = None
    happened_at: datetime | None = None
    created_at: datetime | None = None


class MarketRecord(BaseModel):
    market_code: str
    enabled: bool = True
    show_langs: list[str] = Field(default_factory=lambda: ["en"])
    pretranslate_langs: list[str] = Field(default_factory=list)
    default_lang: str = "en"
    pivot_lang: str = "en"


class CategoryRecord(BaseModel):
    """`categories` 表中的一行。展示用的默认值由分类服务补齐。"""

    id: int
    name: str
    slug: str
    parent_id: int | None = None
    display_order: int | None = None
    is_main_nav: bool = False
    icon_emoji: str | None = None
    color_hex: str | None = None


class ArticleTranslationRecord(BaseModel):
    """`articles_translations` 表中的一行。"""

    article_id: str
    dst_lang: str
    headline: str = ""
    summary_ai: str = ""


class TranslatedFields(BaseModel):
    """一组需要整体翻译的字段。也用于解析提供方返回的 JSON。"""

    title: str = ""
    summary: str = ""
    details: str = ""

    def is_empty(self) -> bool:
        return not (self.title or self.summary or self.details)


class ClusterTranslationRow(BaseModel):
    """
    `cluster_ai` 表中的一行：某个集群在某种语言下的文本。

    对同一 (cluster_id, lang)，至多一行 `is_current` 为真。该不变量由解析器
    在应用层维护（先翻转旧行，再插入新行），而不是由存储的唯一约束保证。
    """

    id: str | None = None
    cluster_id: str
    lang: str
    title: str = ""
    summary: str = ""
    details: str = ""
    is_current: bool = True
    created_at: datetime | None = None
    model: str | None = None
    pivot_hash: str | None = None

    @property
    def fields(self) -> TranslatedFields:
        return TranslatedFields(
            title=self.title, summary=self.summary, details=self.details
        )


class ResolvedClusterText(BaseModel):
    """解析器的输出：目标语言下可直接展示的集群文本。"""

    cluster_id: str
    lang: str
    title: str
    summary: str
    details: str
    is_translated: bool = False
    translated_from: str | None = None


class FeedCard(BaseModel):
    id: str
    title: str
    summary: str
    language: str
    is_translated: bool = False
    translated_from: str | None = None
    translation_status: TranslationStatus = TranslationStatus.READY
    dir: str = "ltr"
    coverage_count: int = 1
    image_url: str | None = None


class FeedPage(BaseModel):
    """一次 feed 请求的结果。`pending_ids` 会以响应头的形式暴露给前端。"""

    cards: list[FeedCard] = Field(default_factory=list)
    pending_ids: list[str] = Field(default_factory=list)


class TimelineEntry(BaseModel):
    id: str
    text: str
    language: str
    translated_from: str | None = None
    happened_at: datetime | None = None
    source_id: str | None = None


class Citation(BaseModel):
    id: str
    title: str
    url: str | None = None
    source_id: str | None = None
    source_name: str | None = None


class ClusterDetail(BaseModel):
    """单集群接口的完整负载。"""

    id: str
    title: str
    summary: str
    ai_details: str
    language: str
    is_translated: bool = False
    translated_from: str | None = None
    dir: str = "ltr"
    image_url: str | None = None
    coverage_count: int = 1
    timeline: list[TimelineEntry] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)


class CategoryItem(BaseModel):
    id: int
    name: str
    slug: str
    display_order: int
    icon_emoji: str
    color_hex: str
    parent_id: int | None = None
    is_main_nav: bool = False
    article_count: int = 0
    subcategories: list[CategoryItem] = Field(default_factory=list)


class CategoryTree(BaseModel):
    """一级分类及其子分类。两个计数覆盖查询到的全部分类，包括孤立的子分类。"""

    categories: list[CategoryItem] = Field(default_factory=list)
    total_categories: int = 0
    main_nav_count: int = 0


class CategoryRef(BaseModel):
    id: int
    name: str
    slug: str


class CategoryArticle(BaseModel):
    id: str
    title: str
    summary: str
    published_at: datetime | None = None
    url: str | None = None
    image_url: str | None = None
    source_name: str
    language: str
    is_translated: bool = False
    translated_from: str | None = None
    dir: str = "ltr"


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class CategoryArticlesPage(BaseModel):
    category: CategoryRef
    articles: list[CategoryArticle] = Field(default_factory=list)
    pagination: Pagination


class BatchItem(BaseModel):
    id: str
    title: str
    summary: str
    details: str
    language: str
    is_translated: bool = False
    translated_from: str | None = None


class BatchTranslateResult(BaseModel):
    results: list[BatchItem] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Lookup(Generic[_T]):
    """
    尽力而为的查询结果：要么是值，要么是空默认值加上错误描述。

    用于引用、媒体、计数等非关键的补充查询，使“失败即为空”的约定在
    类型签名中可见，而不是依赖异常吞噬。
    """

    value: _T
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

