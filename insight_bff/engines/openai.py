# insight_bff/engines/openai.py
"""OpenAI Chat Completions 引擎。用于新闻文本翻译，默认温度为 0。"""

from typing import Any, cast

import httpx
import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from openai.types.chat import ChatCompletionMessageParam
from pydantic import Field, HttpUrl, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insight_bff.core.exceptions import APIError, ConfigurationError
from insight_bff.engines.base import BaseEngineConfig, BaseLLMEngine

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_SYSTEM_PROMPT = (
    "You are a professional news translator. Preserve names, numbers and "
    "quotations exactly and never add commentary."
)

# 这些错误由上层的重试逻辑再次尝试
_RETRYABLE_ERRORS = (RateLimitError, InternalServerError, APITimeoutError, APIConnectionError)


class OpenAIEngineConfig(BaseSettings, BaseEngineConfig):
    """OpenAI 引擎的配置，读取 `BFF_OPENAI_*` 环境变量。"""

    model_config = SettingsConfigDict(env_prefix="BFF_OPENAI_", extra="ignore")

    api_key: SecretStr | None = None
    endpoint: HttpUrl = Field(default=cast(HttpUrl, DEFAULT_ENDPOINT))
    model: str = "gpt-4o-mini"
    system_prompt: str | None = DEFAULT_SYSTEM_PROMPT
    temperature: float = 0.0
    max_tokens: int = Field(default=1024, gt=0)
    timeout_total: float = 30.0
    timeout_connect: float = 5.0
    # SDK 层不重试
    max_retries: int = 0

    @field_validator("endpoint", mode="before")
    @classmethod
    def _blank_endpoint_uses_default(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return DEFAULT_ENDPOINT
        return v


class OpenAIEngine(BaseLLMEngine[OpenAIEngineConfig]):
    CONFIG_MODEL = OpenAIEngineConfig
    VERSION = "1.1.0"

    def __init__(self, config: OpenAIEngineConfig):
        super().__init__(config)
        if config.api_key is None:
            raise ConfigurationError(
                "OpenAI 引擎配置错误: 缺少 API 密钥 (BFF_OPENAI_API_KEY)。"
            )
        self.client = AsyncOpenAI(
            api_key=config.api_key.get_secret_value(),
            base_url=str(config.endpoint),
            timeout=httpx.Timeout(config.timeout_total, connect=config.timeout_connect),
            max_retries=config.max_retries,
        )

    async def initialize(self) -> None:
        logger.info("OpenAI 引擎已就绪。", endpoint=str(self.config.endpoint), model=self.config.model)
        await super().initialize()

    async def close(self) -> None:
        if not self.client.is_closed():
            await self.client.close()
            logger.info("OpenAI 引擎的 HTTP 客户端已关闭。")
        await super().close()

    def _messages(self, prompt: str) -> list[ChatCompletionMessageParam]:
        messages: list[ChatCompletionMessageParam] = []
        if self.config.system_prompt:
            messages.append({"role": "system", "content": self.config.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def _execute_generation(
        self, prompt: str, temperature: float | None, max_tokens: int | None
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=self._messages(prompt),
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.max_tokens,
            )
        except _RETRYABLE_ERRORS as e:
            raise APIError(str(e), is_retryable=True) from e
        except APIStatusError as e:
            # 认证、权限、请求格式等错误，重试不会成功
            detail = e.body.get("message", str(e)) if isinstance(e.body, dict) else str(e)
            raise APIError(f"OpenAI 拒绝了请求 ({e.status_code}): {detail}", is_retryable=False) from e

        if not response.choices:
            raise APIError("OpenAI 返回了空的 'choices' 列表。")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "OpenAI 调用完成。",
                prompt_tokens=getattr(usage, "prompt_tokens", None),
                completion_tokens=getattr(usage, "completion_tokens", None),
            )

        text = (response.choices[0].message.content or "").strip().strip('"')
        if not text:
            raise APIError("OpenAI 返回了空内容。")
        return text
