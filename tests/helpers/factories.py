# tests/helpers/factories.py
"""
提供用于创建一致、可预测的测试数据的工厂函数。

所有工厂都接受关键字参数覆盖默认值；未提供的 id 会自动生成唯一值，
以避免测试之间的状态污染。
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from insight_bff.config import BffConfig
from insight_bff.coordinator import Coordinator
from insight_bff.core.types import (
    ArticleRecord,
    CategoryRecord,
    ClusterRecord,
    ClusterTranslationRow,
    ClusterUpdateRecord,
    MarketRecord,
    SourceRecord,
)
from insight_bff.engines.base import BaseLLMEngine

from tests.helpers.fakes import InMemoryPersistenceHandler

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
PIVOT_TITLE = "Parliament passes budget"
PIVOT_SUMMARY = "Lawmakers approved the annual budget after a long debate."
PIVOT_DETAILS = "The vote followed weeks of negotiation between coalition partners."


def _uid(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def at(minutes: int) -> datetime:
    """`BASE_TIME` 之后若干分钟的时间点。"""
    return BASE_TIME + timedelta(minutes=minutes)


def make_config(**overrides: object) -> BffConfig:
    """一个不读取环境的、适合测试的配置：超时更短，批量不限流。"""
    values: dict[str, object] = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "translator": {"backoff": 0.0, "timeout": 1.0},
        "batch": {"rate_limit_per_minute": 1000},
    }
    values.update(overrides)
    return BffConfig(**values)  # type: ignore[arg-type]


def make_coordinator(
    handler: InMemoryPersistenceHandler | None = None,
    engine: BaseLLMEngine | None = None,
    config: BffConfig | None = None,
) -> Coordinator:
    return Coordinator(
        config or make_config(),
        handler or InMemoryPersistenceHandler(),
        engine,
        use_default_engine=False,
    )


def make_cluster(
    *,
    cluster_id: str | None = None,
    rep_article: str | None = None,
    created_at: datetime | None = None,
) -> ClusterRecord:
    return ClusterRecord(
        id=cluster_id or _uid("cl"),
        rep_article=rep_article,
        created_at=created_at or BASE_TIME,
    )


def make_row(
    cluster_id: str,
    lang: str = "en",
    *,
    title: str = PIVOT_TITLE,
    summary: str = PIVOT_SUMMARY,
    details: str = PIVOT_DETAILS,
    created_at: datetime | None = None,
    model: str | None = None,
    pivot_hash: str | None = None,
    row_id: str | None = None,
) -> ClusterTranslationRow:
    return ClusterTranslationRow(
        id=row_id or _uid("ai"),
        cluster_id=cluster_id,
        lang=lang,
        title=title,
        summary=summary,
        details=details,
        is_current=True,
        created_at=created_at or BASE_TIME,
        model=model,
        pivot_hash=pivot_hash,
    )


def make_article(
    cluster_id: str,
    *,
    article_id: str | None = None,
    source_id: str | None = None,
    title: str = "Budget vote",
    published_at: datetime | None = None,
    thumbnail_url: str | None = None,
    url: str | None = None,
) -> ArticleRecord:
    aid = article_id or _uid("art")
    return ArticleRecord(
        id=aid,
        cluster_id=cluster_id,
        source_id=source_id,
        title=title,
        language="en",
        url=url or f"https://news.example.com/{aid}",
        thumbnail_url=thumbnail_url,
        published_at=published_at or BASE_TIME,
    )


def make_source(*, source_id: str | None = None, name: str = "Example Times") -> SourceRecord:
    return SourceRecord(id=source_id or _uid("src"), name=name)


def make_update(
    cluster_id: str,
    *,
    summary: str = "Opposition announced an appeal.",
    lang: str | None = "en",
    happened_at: datetime | None = None,
) -> ClusterUpdateRecord:
    return ClusterUpdateRecord(
        id=_uid("upd"),
        cluster_id=cluster_id,
        summary=summary,
        lang=lang,
        happened_at=happened_at or BASE_TIME,
    )


def make_market(code: str = "DE", *, enabled: bool = True) -> MarketRecord:
    return MarketRecord(
        market_code=code,
        enabled=enabled,
        show_langs=["de", "en"],
        pretranslate_langs=["de"],
        default_lang="de",
        pivot_lang="en",
    )


def make_category(
    category_id: int,
    slug: str,
    *,
    name: str | None = None,
    parent_id: int | None = None,
    display_order: int | None = None,
    is_main_nav: bool = False,
    icon_emoji: str | None = None,
    color_hex: str | None = None,
) -> CategoryRecord:
    return CategoryRecord(
        id=category_id,
        name=name or slug.title(),
        slug=slug,
        parent_id=parent_id,
        display_order=display_order,
        is_main_nav=is_main_nav,
        icon_emoji=icon_emoji,
        color_hex=color_hex,
    )


def seed_story(
    handler: InMemoryPersistenceHandler,
    *,
    cluster_id: str | None = None,
    published_at: datetime | None = None,
    thumbnail_url: str | None = None,
    pivot_lang: str = "en",
) -> ClusterRecord:
    """写入一个带代表文章和枢纽行的完整集群。"""
    cid = cluster_id or _uid("cl")
    article = make_article(cid, published_at=published_at, thumbnail_url=thumbnail_url)
    cluster = make_cluster(cluster_id=cid, rep_article=article.id)
    handler.add_cluster(cluster)
    handler.add_article(article)
    handler.add_row(make_row(cid, pivot_lang))
    return cluster
