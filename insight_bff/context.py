# insight_bff/context.py
"""定义请求处理中使用的高层上下文对象。"""

from __future__ import annotations

from dataclasses import dataclass

from insight_bff.config import BffConfig
from insight_bff.core.interfaces import PersistenceHandler
from insight_bff.inflight import InflightMap
from insight_bff.metrics import BatchMetrics, TranslateMetrics
from insight_bff.queue import PersistenceQueue
from insight_bff.rate_limiter import ClientRateLimiter
from insight_bff.resolver import ClusterTextResolver
from insight_bff.services.lookups import EnrichmentLookups
from insight_bff.translator import TextTranslator


@dataclass(frozen=True)
class ServiceContext:
    """
    一个“工具箱”对象，封装了编排器与策略执行时所需的所有单例依赖。

    由 `Coordinator` 在进程启动时构建一次，关闭时统一释放。
    """

    config: BffConfig
    handler: PersistenceHandler
    translator: TextTranslator
    resolver: ClusterTextResolver
    inflight: InflightMap
    queue: PersistenceQueue
    lookups: EnrichmentLookups
    metrics: TranslateMetrics
    batch_metrics: BatchMetrics
    batch_limiter: ClientRateLimiter
