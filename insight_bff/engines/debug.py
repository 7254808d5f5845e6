# insight_bff/engines/debug.py
"""提供一个用于开发和测试的调试引擎。"""

import asyncio
import json
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from insight_bff.core.exceptions import APIError
from insight_bff.engines.base import BaseEngineConfig, BaseLLMEngine


class DebugMode(str, Enum):
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    HANG = "HANG"


class DebugEngineConfig(BaseSettings, BaseEngineConfig):
    """Debug 引擎的配置模型。"""

    model_config = SettingsConfigDict(env_prefix="BFF_DEBUG_", extra="ignore")

    mode: DebugMode = Field(default=DebugMode.SUCCESS)
    prefix: str = "[debug] "
    fail_is_retryable: bool = True
    hang_seconds: float = Field(default=3600.0, gt=0)


class DebugEngine(BaseLLMEngine[DebugEngineConfig]):
    """
    一个确定性的调试引擎。

    它把提示词最后一段（空行之后的正文）加上前缀原样返回；若正文是 JSON
    对象，则为每个非空字符串值加前缀并返回压缩的 JSON，以便字段翻译路径
    也能在离线环境中端到端运行。
    """

    CONFIG_MODEL = DebugEngineConfig
    VERSION = "1.0.0"

    async def _execute_generation(
        self, prompt: str, temperature: float | None, max_tokens: int | None
    ) -> str:
        if self.config.mode is DebugMode.FAIL:
            raise APIError(
                "DebugEngine is in FAIL mode.",
                is_retryable=self.config.fail_is_retryable,
            )
        if self.config.mode is DebugMode.HANG:
            await asyncio.sleep(self.config.hang_seconds)

        body = prompt.rsplit("\n\n", 1)[-1]
        try:
            payload = json.loads(body)
        except ValueError:
            return f"{self.config.prefix}{body}"
        if not isinstance(payload, dict):
            return f"{self.config.prefix}{body}"

        translated = {
            key: f"{self.config.prefix}{value}" if isinstance(value, str) and value else value
            for key, value in payload.items()
        }
        return json.dumps(translated, ensure_ascii=False, separators=(",", ":"))
