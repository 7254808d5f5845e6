# insight_bff/queue.py
"""
后台持久化队列：一个基于 `asyncio.Queue` 的有界并发工作池。

请求路径只负责入队，解析与写库在这里完成。单个任务失败只记录日志，
不会阻塞后续任务。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


class PersistenceQueue:
    """由 `concurrency` 个消费者协程排空的任务队列。"""

    def __init__(self, concurrency: int = 1):
        if concurrency <= 0:
            raise ValueError("concurrency 必须为正数")
        self.concurrency = concurrency
        self._queue: asyncio.Queue[tuple[Job, str | None]] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._keys: set[str] = set()
        self.enqueued = 0
        self.completed = 0
        self.failed = 0
        self.skipped = 0

    @property
    def started(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """启动消费者协程。重复调用是安全的。"""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._consume(i), name=f"persistence-queue-{i}")
            for i in range(self.concurrency)
        ]
        logger.debug("后台队列已启动。", concurrency=self.concurrency)

    def enqueue(self, job: Job, key: str | None = None) -> bool:
        """
        入队一个无参的协程函数。

        若同一 `key` 的任务仍在排队或运行中，则跳过并返回 False。
        """
        if key is not None:
            if key in self._keys:
                self.skipped += 1
                return False
            self._keys.add(key)
        self.start()
        self._queue.put_nowait((job, key))
        self.enqueued += 1
        return True

    async def _consume(self, worker_id: int) -> None:
        while True:
            job, key = await self._queue.get()
            try:
                await job()
                self.completed += 1
            except Exception:
                self.failed += 1
                logger.error(
                    "后台任务执行失败。", worker_id=worker_id, key=key, exc_info=True
                )
            finally:
                if key is not None:
                    self._keys.discard(key)
                self._queue.task_done()

    async def join(self) -> None:
        """等待队列中的所有任务处理完毕。"""
        await self._queue.join()

    async def close(self) -> None:
        """取消消费者并丢弃积压的任务。"""
        for worker in self._workers:
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        self._keys.clear()
        if dropped:
            logger.warning("后台队列关闭时丢弃了未处理的任务。", dropped=dropped)

    def snapshot(self) -> dict[str, int]:
        return {
            "concurrency": self.concurrency,
            "pending": self.pending,
            "enqueued": self.enqueued,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
        }
