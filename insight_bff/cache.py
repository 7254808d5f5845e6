# insight_bff/cache.py
"""
本模块提供两级翻译缓存：进程内的有界内存缓存，以及可选的持久化缓存表。

内存层使用 `cachetools.FIFOCache`：容量满时淘汰最早写入的键，重复写入同一个
键会把它移动到最新的位置。持久层以内容寻址，只插入不更新，没有 TTL。
"""

import hashlib

import structlog
from cachetools import FIFOCache

from insight_bff.core.exceptions import DatabaseError
from insight_bff.core.interfaces import PersistenceHandler
from insight_bff.metrics import TranslateMetrics
from insight_bff.utils import with_timeout

logger = structlog.get_logger(__name__)


def make_cache_key(text: str, source_lang: str | None, dest_base: str) -> str:
    """`"<src>-><dst_base>:" + sha1(src|dst_base|text)`。"""
    src = source_lang or "auto"
    digest = hashlib.sha1(f"{src}|{dest_base}|{text}".encode()).hexdigest()
    return f"{src}->{dest_base}:{digest}"


class TranslationCache:
    """内存层 + 持久层。持久层的任何失败都只记录日志，不影响调用方。"""

    def __init__(
        self,
        maxsize: int = 500,
        handler: PersistenceHandler | None = None,
        db_timeout: float = 0.8,
        metrics: TranslateMetrics | None = None,
    ):
        self.memory: FIFOCache[str, str] = FIFOCache(maxsize=maxsize)
        self.handler = handler
        self.db_timeout = db_timeout
        self.metrics = metrics or TranslateMetrics()

    def __len__(self) -> int:
        return len(self.memory)

    def peek(self, key: str) -> str | None:
        """只查内存层，不更新统计。"""
        return self.memory.get(key)

    def remember(self, key: str, value: str) -> None:
        self.memory[key] = value

    async def get(self, key: str) -> str | None:
        """按 内存层 -> 持久层 的顺序查找；持久层命中会被提升到内存层。"""
        value = self.memory.get(key)
        if value is not None:
            self.metrics.cache_hits += 1
            return value

        if self.handler is not None:
            try:
                value = await with_timeout(
                    self.handler.find_cached_translation(key),
                    self.db_timeout,
                    "find_cached_translation",
                )
            except DatabaseError as e:
                logger.warning("读取持久化翻译缓存失败，已忽略。", key=key, error=str(e))
                value = None
            if value is not None:
                self.metrics.db_hits += 1
                self.memory[key] = value
                return value

        self.metrics.cache_misses += 1
        return None

    async def put(
        self,
        key: str,
        value: str,
        *,
        source_lang: str | None,
        dest_base: str,
    ) -> None:
        """写入内存层与持久层。只用于真实译文，降级文本不写入任何一层。"""
        self.memory[key] = value
        if self.handler is None:
            return
        try:
            await with_timeout(
                self.handler.save_cached_translation(
                    key, source_lang or "auto", dest_base, value
                ),
                self.db_timeout,
                "save_cached_translation",
            )
            self.metrics.db_writes += 1
        except DatabaseError as e:
            logger.warning("写入持久化翻译缓存失败，已忽略。", key=key, error=str(e))

    def clear(self) -> None:
        self.memory.clear()
