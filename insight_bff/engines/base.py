# insight_bff/engines/base.py
"""
本模块定义了所有 LLM 引擎插件必须继承的抽象基类（ABC）。

引擎只负责“提示词进，文本出”；超时、重试与降级由文本翻译缓存统一处理。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from insight_bff.rate_limiter import RateLimiter

_ConfigType = TypeVar("_ConfigType", bound="BaseEngineConfig")


class BaseEngineConfig(BaseModel):
    """所有引擎配置模型的基类，提供了通用的速率与并发控制选项。"""

    rpm: int | None = Field(
        default=None, description="每分钟最大请求数 (Requests Per Minute)", gt=0
    )
    rps: int | None = Field(
        default=None, description="每秒最大请求数 (Requests Per Second)", gt=0
    )
    max_concurrency: int | None = Field(
        default=None, description="最大并发请求数", gt=0
    )


class BaseLLMEngine(ABC, Generic[_ConfigType]):
    """LLM 引擎的纯异步抽象基类，内置速率限制和并发控制。"""

    CONFIG_MODEL: type[_ConfigType]
    VERSION: str = "1.0.0"

    def __init__(self, config: _ConfigType):
        self.config = config
        self._rate_limiter: RateLimiter | None = None
        self._concurrency_semaphore: asyncio.Semaphore | None = None
        self.initialized: bool = False

        if config.rpm:
            self._rate_limiter = RateLimiter.per_minute(config.rpm)
        elif config.rps:
            self._rate_limiter = RateLimiter(
                refill_rate=config.rps, capacity=config.rps
            )

        if config.max_concurrency:
            self._concurrency_semaphore = asyncio.Semaphore(config.max_concurrency)

    @property
    def name(self) -> str:
        """从类名自动推断引擎的名称。"""
        return self.__class__.__name__.replace("Engine", "").lower()

    async def initialize(self) -> None:
        """引擎的异步初始化钩子，用于设置连接池等。"""
        self.initialized = True

    async def close(self) -> None:
        """引擎的异步关闭钩子，用于安全释放资源。"""
        self.initialized = False

    @abstractmethod
    async def _execute_generation(
        self, prompt: str, temperature: float | None, max_tokens: int | None
    ) -> str:
        """[子类实现] 真正执行一次生成。失败时抛出 `APIError`。"""
        ...

    async def agenerate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """[模板方法] 执行一次生成，应用并发和速率限制。"""
        if self._rate_limiter:
            await self._rate_limiter.acquire()

        if self._concurrency_semaphore:
            async with self._concurrency_semaphore:
                return await self._execute_generation(prompt, temperature, max_tokens)
        return await self._execute_generation(prompt, temperature, max_tokens)
