# insight_bff/coordinator.py
"""本模块包含 insight-bff 的主协调器：创建、连接并关闭所有进程级单例。"""

from typing import Any

import structlog

from insight_bff.cache import TranslationCache
from insight_bff.config import BffConfig
from insight_bff.context import ServiceContext
from insight_bff.core import ConfigurationError, EngineNotFoundError, PersistenceHandler
from insight_bff.engine_registry import create_engine
from insight_bff.engines.base import BaseLLMEngine
from insight_bff.inflight import InflightMap
from insight_bff.metrics import BatchMetrics, TranslateMetrics
from insight_bff.queue import PersistenceQueue
from insight_bff.rate_limiter import ClientRateLimiter
from insight_bff.resolver import ClusterTextResolver
from insight_bff.services.batch import BatchTranslateService
from insight_bff.services.categories import CategoryService
from insight_bff.services.cluster import ClusterService
from insight_bff.services.feed import FeedService
from insight_bff.services.lookups import EnrichmentLookups
from insight_bff.services.markets import MarketService
from insight_bff.translator import TextTranslator

logger = structlog.get_logger(__name__)


class Coordinator:
    """异步主协调器。进程启动时构建一次，关闭时统一释放资源。"""

    def __init__(
        self,
        config: BffConfig,
        persistence_handler: PersistenceHandler,
        engine: BaseLLMEngine[Any] | None = None,
        *,
        use_default_engine: bool = True,
    ):
        self.config = config
        self.handler = persistence_handler
        self.initialized = False
        self._shutting_down = False

        if engine is None and use_default_engine:
            engine = self._create_default_engine()
        self.engine = engine

        metrics = TranslateMetrics()
        cache = TranslationCache(
            maxsize=config.translator.cache_max,
            handler=persistence_handler,
            db_timeout=config.translator.cache_db_timeout,
            metrics=metrics,
        )
        translator = TextTranslator(config.translator, cache, engine, metrics)
        inflight = InflightMap()
        resolver = ClusterTextResolver(
            persistence_handler,
            translator,
            inflight,
            pivot_lang=config.pivot_lang,
            model_tag=config.translator.model_tag,
            passthrough_model_markers=config.translator.passthrough_model_markers,
            storage_timeout=config.storage_timeout,
        )
        self.context = ServiceContext(
            config=config,
            handler=persistence_handler,
            translator=translator,
            resolver=resolver,
            inflight=inflight,
            queue=PersistenceQueue(concurrency=config.queue.concurrency),
            lookups=EnrichmentLookups(
                persistence_handler, translator, timeout=config.lookup_timeout
            ),
            metrics=metrics,
            batch_metrics=BatchMetrics(),
            batch_limiter=ClientRateLimiter(config.batch.rate_limit_per_minute),
        )

        self.feed = FeedService(self.context)
        self.clusters = ClusterService(self.context)
        self.batch = BatchTranslateService(self.context)
        self.markets = MarketService(self.context)
        self.categories = CategoryService(self.context)

    def _create_default_engine(self) -> BaseLLMEngine[Any] | None:
        name = self.config.active_engine.value
        try:
            return create_engine(name, self.config.engine_configs)
        except (ConfigurationError, EngineNotFoundError) as e:
            logger.warning(
                "未能创建 LLM 引擎，翻译将使用降级文本。", engine=name, error=str(e)
            )
            return None

    async def initialize(self) -> None:
        """初始化协调器，包括连接数据库、初始化引擎与启动后台队列。"""
        if self.initialized:
            return
        logger.info("协调器初始化开始...")
        await self.handler.connect()
        if self.engine is not None and not self.engine.initialized:
            await self.engine.initialize()
        self.context.queue.start()
        self.initialized = True
        logger.info(
            "协调器初始化完成。",
            engine=self.engine.name if self.engine else None,
            pivot_lang=self.config.pivot_lang,
        )

    async def close(self) -> None:
        """优雅地关闭协调器和所有相关资源。积压的后台任务会被丢弃。"""
        if self._shutting_down or not self.initialized:
            return
        logger.info("开始优雅停机...")
        self._shutting_down = True
        await self.context.queue.close()
        await self.context.inflight.drain()
        if self.engine is not None:
            await self.engine.close()
        await self.handler.close()
        self.initialized = False
        logger.info("优雅停机完成。")

    def snapshot(self) -> dict[str, Any]:
        """`/metrics` 的负载。"""
        ctx = self.context
        return {
            "service": "insight-bff",
            "translate": ctx.metrics.snapshot(),
            "queue": ctx.queue.snapshot(),
            "inflight": {"size": ctx.inflight.size},
            "batch": ctx.batch_metrics.snapshot(),
        }
