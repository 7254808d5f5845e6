# insight_bff/inflight.py
"""
进程内的在途任务去重表。

同一 (cluster_id, target_lang) 在任意时刻至多有一个解析任务在运行，
并发调用方共享同一个任务的结果或异常。
"""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

_T = TypeVar("_T")
InflightKey = tuple[str, str]


class InflightMap:
    """key -> asyncio.Task。任务结束（无论成功与否）时条目被移除。"""

    def __init__(self) -> None:
        self._tasks: dict[InflightKey, asyncio.Task[Any]] = {}

    @property
    def size(self) -> int:
        return len(self._tasks)

    def contains(self, cluster_id: str, target_lang: str) -> bool:
        return (cluster_id, target_lang) in self._tasks

    def _on_done(self, key: InflightKey, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # 所有等待方都已放弃时，避免 "Task exception was never retrieved"
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "在途任务以异常结束。",
                cluster_id=key[0],
                lang=key[1],
                error=repr(task.exception()),
            )

    async def run(
        self,
        cluster_id: str,
        target_lang: str,
        factory: Callable[[], Coroutine[Any, Any, _T]],
    ) -> _T:
        """
        执行或加入 (cluster_id, target_lang) 的解析任务。

        等待通过 `asyncio.shield` 进行：某个调用方超时或被取消只会放弃它自己
        的等待，共享的任务继续运行，其结果仍会被持久化。
        """
        key = (cluster_id, target_lang)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.create_task(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda t: self._on_done(key, t))
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """等待所有在途任务结束。用于停机和测试。"""
        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
