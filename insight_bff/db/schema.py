# insight_bff/db/schema.py
# ORM 模型。clusters/articles/sources/cluster_updates/app_markets 以及分类
# 相关的三张表由外部摄取流程写入，本服务只读；cluster_ai 与 translations 由本服务写入。
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """声明式基类。"""


class Clusters(Base):
    __tablename__ = "clusters"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    rep_article: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Sources(Base):
    __tablename__ = "sources"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    homepage: Mapped[str | None] = mapped_column(String)


class Articles(Base):
    __tablename__ = "articles"
    __table_args__ = (Index("ix_articles_cluster_published", "cluster_id", "published_at"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    cluster_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("clusters.id", ondelete="SET NULL")
    )
    source_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("sources.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    snippet: Mapped[str] = mapped_column(Text, nullable=False, default="")
    language: Mapped[str | None] = mapped_column(String)
    canonical_url: Mapped[str | None] = mapped_column(Text)
    url: Mapped[str | None] = mapped_column(Text)
    thumbnail_url: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ClusterUpdates(Base):
    __tablename__ = "cluster_updates"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    cluster_id: Mapped[str] = mapped_column(
        String, ForeignKey("clusters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    claim: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source_id: Mapped[str | None] = mapped_column(String)
    lang: Mapped[str | None] = mapped_column(String)
    happened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Categories(Base):
    """新闻分类。parent_id 为空的是一级分类，其余挂在父分类下。"""

    __tablename__ = "categories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL")
    )
    display_order: Mapped[int | None] = mapped_column(Integer)
    is_main_nav: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    icon_emoji: Mapped[str | None] = mapped_column(String)
    color_hex: Mapped[str | None] = mapped_column(String)


class ArticleCategories(Base):
    __tablename__ = "article_categories"
    article_id: Mapped[str] = mapped_column(
        String, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True, index=True
    )


class ArticleTranslations(Base):
    """单篇文章的标题与摘要译文，由摄取流程预先生成。"""

    __tablename__ = "articles_translations"
    article_id: Mapped[str] = mapped_column(
        String, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    dst_lang: Mapped[str] = mapped_column(String, primary_key=True)
    headline: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary_ai: Mapped[str] = mapped_column(Text, nullable=False, default="")


class AppMarkets(Base):
    __tablename__ = "app_markets"
    market_code: Mapped[str] = mapped_column(String, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_langs: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    pretranslate_langs: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=list
    )
    default_lang: Mapped[str] = mapped_column(String, nullable=False, default="en")
    pivot_lang: Mapped[str] = mapped_column(String, nullable=False, default="en")


class ClusterAi(Base):
    """
    集群在某种语言下的文本。

    (cluster_id, lang) 上没有唯一约束：同一时刻至多一行 is_current 为真，
    由应用层的“翻转旧行再插入新行”维护。
    """

    __tablename__ = "cluster_ai"
    __table_args__ = (Index("ix_cluster_ai_current", "cluster_id", "lang", "is_current"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    cluster_id: Mapped[str] = mapped_column(
        String, ForeignKey("clusters.id", ondelete="CASCADE"), nullable=False
    )
    lang: Mapped[str] = mapped_column(String, nullable=False)
    ai_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ai_details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    model: Mapped[str | None] = mapped_column(String)
    pivot_hash: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Translations(Base):
    """内容寻址的翻译缓存表。只插入，不更新。"""

    __tablename__ = "translations"
    key: Mapped[str] = mapped_column(String, primary_key=True)
    src_lang: Mapped[str] = mapped_column(String, nullable=False)
    dst_lang: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
