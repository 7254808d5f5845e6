# insight_bff/rate_limiter.py
"""
令牌桶限流。

- `RateLimiter`: 单个令牌桶。引擎用阻塞的 `acquire` 控制出站调用速率。
- `ClientRateLimiter`: 按客户端划分的令牌桶集合。HTTP 入口用非阻塞的
  `try_acquire` 判断是否直接回复 429。
"""

import asyncio
import time

from cachetools import TTLCache


class RateLimiter:
    """一个异步安全的令牌桶。"""

    def __init__(self, refill_rate: float, capacity: float):
        if refill_rate <= 0 or capacity <= 0:
            raise ValueError("速率和容量必须为正数")
        self.refill_rate = refill_rate
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill_time = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, limit: int) -> "RateLimiter":
        """每分钟 `limit` 个令牌，允许一次性突发到满桶。"""
        return cls(refill_rate=limit / 60, capacity=limit)

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill_time
        if elapsed > 0:
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
            self.last_refill_time = now

    def _take(self, tokens_needed: float) -> float:
        """补充后尝试扣减令牌。成功返回 0，否则返回还需等待的秒数。"""
        self._refill()
        if self.tokens >= tokens_needed:
            self.tokens -= tokens_needed
            return 0.0
        return (tokens_needed - self.tokens) / self.refill_rate

    async def acquire(self, tokens_needed: int = 1) -> None:
        """获取令牌，不足时异步等待。"""
        if tokens_needed > self.capacity:
            raise ValueError("请求的令牌数不能超过桶的容量")

        while True:
            async with self._lock:
                wait_time = self._take(tokens_needed)
            if wait_time == 0:
                return
            # 在锁外等待，其他协程可以并发地计算各自的等待时间
            await asyncio.sleep(wait_time)

    def try_acquire(self, tokens_needed: int = 1) -> bool:
        """非阻塞地尝试获取令牌。令牌不足时立即返回 False。"""
        return self._take(tokens_needed) == 0


class ClientRateLimiter:
    """
    每个客户端一个令牌桶，桶在 `idle_ttl` 秒未使用后被回收。

    一个客户端的突发请求不会耗尽其他客户端的配额。客户端数量超过
    `max_clients` 时，最早的桶被提前淘汰（相当于把该客户端的配额重置为满）。
    """

    def __init__(self, limit_per_minute: int, max_clients: int = 10_000, idle_ttl: float = 600.0):
        if limit_per_minute <= 0:
            raise ValueError("速率和容量必须为正数")
        self.limit_per_minute = limit_per_minute
        self._buckets: TTLCache[str, RateLimiter] = TTLCache(
            maxsize=max_clients, ttl=idle_ttl
        )

    def bucket_for(self, client: str) -> RateLimiter:
        bucket = self._buckets.get(client)
        if bucket is None:
            bucket = RateLimiter.per_minute(self.limit_per_minute)
        # 重新写入以刷新 TTL
        self._buckets[client] = bucket
        return bucket

    def try_acquire(self, client: str) -> bool:
        return self.bucket_for(client).try_acquire()

    def __len__(self) -> int:
        return len(self._buckets)
