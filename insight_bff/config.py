# insight_bff/config.py

import enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insight_bff.utils import normalize_bcp47, validate_lang_codes


class EngineName(str, enum.Enum):
    DEBUG = "debug"
    OPENAI = "openai"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "console"


class TranslatorConfig(BaseModel):
    """文本翻译缓存的调用策略。"""

    timeout: float = Field(default=3.0, gt=0, description="单次提供方调用的超时（秒）")
    retries: int = Field(default=3, ge=0, description="首次调用之外的重试次数")
    backoff: float = Field(default=0.2, ge=0, description="线性退避的基数（秒）")
    chunk_threshold: int = Field(default=1200, gt=0)
    chunk_max: int = Field(default=1600, gt=0)
    cache_max: int = Field(default=500, gt=0)
    min_text_length: int = Field(default=2, ge=0)
    fallback_marker: str = " [translated]"
    fallback_marker_enabled: bool = True
    cache_db_timeout: float = Field(default=0.8, gt=0)
    model_tag: str = "gpt-4o-mini"
    passthrough_model_markers: list[str] = Field(
        default_factory=lambda: ["original-body"]
    )

    @model_validator(mode="after")
    def check_marker(self) -> "TranslatorConfig":
        if self.fallback_marker_enabled and not self.fallback_marker.strip():
            raise ValueError("启用降级标记时 fallback_marker 不能为空")
        return self


class QueueConfig(BaseModel):
    concurrency: int = Field(default=1, gt=0)


class BatchConfig(BaseModel):
    max_batch: int = Field(default=50, gt=0)
    concurrency: int = Field(default=4, gt=0)
    item_timeout: float = Field(default=10.0, gt=0)
    rate_limit_per_minute: int = Field(default=60, gt=0)


class FeedConfig(BaseModel):
    default_limit: int = Field(default=20, gt=0)
    max_limit: int = Field(default=100, gt=0)
    strict_max_items: int = Field(default=10, gt=0)
    strict_item_timeout: float = Field(default=2.5, gt=0)
    strict_relaxed_timeout: float = Field(default=6.0, gt=0)
    strict_budget: float = Field(default=8.0, gt=0)

    @model_validator(mode="after")
    def check_limits(self) -> "FeedConfig":
        if self.max_limit < self.default_limit:
            raise ValueError("max_limit 必须大于或等于 default_limit")
        if self.strict_budget < self.strict_item_timeout:
            raise ValueError("strict_budget 必须大于或等于 strict_item_timeout")
        return self


class CategoriesConfig(BaseModel):
    default_limit: int = Field(default=20, gt=0)
    max_limit: int = Field(default=100, gt=0)

    @model_validator(mode="after")
    def check_limits(self) -> "CategoriesConfig":
        if self.max_limit < self.default_limit:
            raise ValueError("max_limit 必须大于或等于 default_limit")
        return self


class BffConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BFF_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///insight.db"
    active_engine: EngineName = EngineName.OPENAI
    pivot_lang: str = "en"
    storage_timeout: float = Field(default=2.0, gt=0, description="存储调用的超时（秒）")
    lookup_timeout: float = Field(
        default=1.5, gt=0, description="引用、缩略图等补充查询的超时（秒）"
    )
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = Field(default=8080, gt=0, lt=65536)

    translator: TranslatorConfig = Field(default_factory=TranslatorConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    categories: CategoriesConfig = Field(default_factory=CategoriesConfig)
    engine_configs: dict[str, Any] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("pivot_lang")
    @classmethod
    def validate_pivot_lang(cls, v: str) -> str:
        validate_lang_codes([v])
        return normalize_bcp47(v) or v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
