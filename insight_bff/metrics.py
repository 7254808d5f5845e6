# insight_bff/metrics.py
"""进程内计数器。只在单个事件循环中被修改，无需加锁。"""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class TranslateMetrics:
    """文本翻译缓存的命中率与提供方延迟统计。"""

    provider_calls: int = 0
    provider_errors: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    db_hits: int = 0
    db_writes: int = 0
    last_latency_ms: float = 0.0
    total_latency_ms: float = 0.0

    @property
    def avg_latency_ms(self) -> float:
        if not self.provider_calls:
            return 0.0
        return self.total_latency_ms / self.provider_calls

    def record_latency(self, elapsed_ms: float) -> None:
        self.last_latency_ms = elapsed_ms
        self.total_latency_ms += elapsed_ms

    def snapshot(self) -> dict[str, Any]:
        data = asdict(self)
        data["avg_latency_ms"] = round(self.avg_latency_ms, 2)
        data["last_latency_ms"] = round(self.last_latency_ms, 2)
        data["total_latency_ms"] = round(self.total_latency_ms, 2)
        return data


@dataclass
class BatchMetrics:
    requests: int = 0
    rate_limited: int = 0
    items_ok: int = 0
    items_failed: int = 0

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)
