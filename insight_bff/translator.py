# insight_bff/translator.py
"""
本模块实现文本翻译缓存的调用侧：缓存查找、长文本分块、带超时与线性退避
的提供方调用，以及提供方不可用时的确定性降级。

两个入口 `translate_text_cached` 与 `translate_fields_cached` 都永远不会
向外抛出提供方错误。
"""

import asyncio
import json
import re
import time

import structlog
from pydantic import ValidationError

from insight_bff.cache import TranslationCache, make_cache_key
from insight_bff.config import TranslatorConfig
from insight_bff.core.exceptions import APIError
from insight_bff.core.types import TranslatedFields
from insight_bff.engines.base import BaseLLMEngine
from insight_bff.metrics import TranslateMetrics
from insight_bff.prompts import build_fields_prompt, build_text_prompt
from insight_bff.utils import base_lang

logger = structlog.get_logger(__name__)

SENTENCE_PATTERN = re.compile(r"[^.!?\n]+[.!?\n]*")
CODE_FENCE_PATTERN = re.compile(r"`json|`")


def split_into_chunks(text: str, max_len: int) -> list[str]:
    """
    按句子边界把文本打包成不超过 `max_len` 的块。

    单个句子本身超长时按字符硬切分。所有块按顺序拼接后与原文完全一致。
    """
    if len(text) <= max_len:
        return [text]
    packed: list[str] = []
    buf = ""
    for sentence in _sentence_segments(text):
        if buf and len(buf) + len(sentence) > max_len:
            packed.append(buf)
            buf = sentence
        else:
            buf += sentence
    if buf:
        packed.append(buf)

    chunks: list[str] = []
    for chunk in packed:
        if len(chunk) <= max_len:
            chunks.append(chunk)
        else:
            chunks.extend(chunk[i : i + max_len] for i in range(0, len(chunk), max_len))
    return chunks


def _sentence_segments(text: str) -> list[str]:
    # 正则匹配不到的前导分隔符（如 "...\n"）也保留为独立片段，保证无损
    parts: list[str] = []
    pos = 0
    for match in SENTENCE_PATTERN.finditer(text):
        if match.start() > pos:
            parts.append(text[pos : match.start()])
        parts.append(match.group(0))
        pos = match.end()
    if pos < len(text):
        parts.append(text[pos:])
    return parts


class TextTranslator:
    """带缓存的文本翻译器。每个进程一个实例，由 `ServiceContext` 持有。"""

    def __init__(
        self,
        config: TranslatorConfig,
        cache: TranslationCache,
        engine: BaseLLMEngine | None = None,
        metrics: TranslateMetrics | None = None,
    ):
        self.config = config
        self.cache = cache
        self.engine = engine
        self.metrics = metrics or cache.metrics

    def _fallback(self, text: str) -> str:
        if self.config.fallback_marker_enabled:
            return text + self.config.fallback_marker
        return text

    def is_fallback(self, text: str) -> bool:
        """判断一段文本是否带有降级标记。解析器据此识别需要自愈的行。"""
        marker = self.config.fallback_marker.strip()
        return bool(marker) and marker in text

    async def _call_provider(self, prompt: str, label: str) -> tuple[str | None, bool]:
        """
        执行一次提供方调用，返回 (输出, 是否值得重试)。

        失败或超时时输出为 None 并计入错误数。引擎明确标记为不可重试的
        `APIError`（认证、权限等）返回 False，其余失败都可以重试。
        """
        if self.engine is None:
            return None, False
        self.metrics.provider_calls += 1
        started = time.perf_counter()
        try:
            out = await asyncio.wait_for(
                self.engine.agenerate(prompt, temperature=0),
                timeout=self.config.timeout,
            )
            return out, True
        except asyncio.TimeoutError:
            self.metrics.provider_errors += 1
            logger.warning("提供方调用超时。", label=label, timeout=self.config.timeout)
            return None, True
        except APIError as e:
            self.metrics.provider_errors += 1
            logger.warning(
                "提供方调用失败。", label=label, error=str(e), retryable=e.is_retryable
            )
            return None, e.is_retryable
        except Exception as e:
            self.metrics.provider_errors += 1
            logger.error(
                "提供方调用出现未预期的异常。",
                label=label,
                error=f"{e.__class__.__name__}: {e}",
                exc_info=e,
            )
            return None, True
        finally:
            self.metrics.record_latency((time.perf_counter() - started) * 1000)

    async def _translate_with_retries(
        self, text: str, source_lang: str | None, dest_lang: str
    ) -> tuple[str, bool]:
        """返回 (结果, 是否为真实译文)。所有尝试都失败时返回降级文本。"""
        if self.engine is None:
            return self._fallback(text), False

        prompt = build_text_prompt(text, source_lang, dest_lang)
        attempts = 0
        for attempt in range(self.config.retries + 1):
            attempts += 1
            out, retryable = await self._call_provider(prompt, "translate_text")
            if out:
                return out, True
            if not retryable:
                break
            if attempt < self.config.retries:
                await asyncio.sleep(self.config.backoff * (attempt + 1))

        logger.warning(
            "提供方调用失败，返回降级文本。", dest_lang=dest_lang, attempts=attempts
        )
        return self._fallback(text), False

    async def translate_text_cached(
        self, text: str, source_lang: str | None, dest_lang: str | None
    ) -> str:
        if not text or not dest_lang or len(text) < self.config.min_text_length:
            return text

        dest_base = base_lang(dest_lang)
        key = make_cache_key(text, source_lang, dest_base)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        if len(text) >= self.config.chunk_threshold:
            parts: list[str] = []
            complete = True
            for chunk in split_into_chunks(text, self.config.chunk_max):
                chunk_key = make_cache_key(chunk, source_lang, dest_base)
                hit = await self.cache.get(chunk_key)
                if hit is not None:
                    parts.append(hit)
                    continue
                translated, ok = await self._translate_with_retries(
                    chunk, source_lang, dest_lang
                )
                if ok:
                    await self.cache.put(
                        chunk_key, translated, source_lang=source_lang, dest_base=dest_base
                    )
                complete = complete and ok
                parts.append(translated)
            out = "".join(parts)
        else:
            out, complete = await self._translate_with_retries(
                text, source_lang, dest_lang
            )

        if complete:
            await self.cache.put(key, out, source_lang=source_lang, dest_base=dest_base)
        return out

    async def _translate_fields_individually(
        self, fields: TranslatedFields, source_lang: str | None, dest_lang: str
    ) -> TranslatedFields:
        return TranslatedFields(
            title=await self.translate_text_cached(fields.title, source_lang, dest_lang),
            summary=await self.translate_text_cached(
                fields.summary, source_lang, dest_lang
            ),
            details=await self.translate_text_cached(
                fields.details, source_lang, dest_lang
            ),
        )

    async def translate_fields_cached(
        self, fields: TranslatedFields, source_lang: str | None, dest_lang: str
    ) -> TranslatedFields:
        """
        用一次提供方调用翻译 title/summary/details 三个字段。

        所有非空字段都已在内存层时直接返回；提供方不可用、超时或返回无法解析
        的内容时，退回到逐字段的 `translate_text_cached` 路径。
        """
        if fields.is_empty():
            return fields

        dest_base = base_lang(dest_lang)
        keys = {
            name: make_cache_key(value, source_lang, dest_base)
            for name, value in fields.model_dump().items()
            if value
        }
        hits = {name: self.cache.peek(key) for name, key in keys.items()}
        if all(hit is not None for hit in hits.values()):
            self.metrics.cache_hits += 1
            return fields.model_copy(update=hits)

        if self.engine is None:
            return await self._translate_fields_individually(
                fields, source_lang, dest_lang
            )

        payload = json.dumps(
            fields.model_dump(), ensure_ascii=False, separators=(",", ":")
        )
        raw, _ = await self._call_provider(
            build_fields_prompt(payload, source_lang, dest_lang), "translate_fields"
        )
        if not raw:
            return await self._translate_fields_individually(
                fields, source_lang, dest_lang
            )

        try:
            parsed = TranslatedFields.model_validate_json(
                CODE_FENCE_PATTERN.sub("", raw).strip()
            )
        except ValidationError:
            logger.warning("提供方返回了无法解析的 JSON，改为逐字段翻译。", raw=raw[:200])
            return await self._translate_fields_individually(
                fields, source_lang, dest_lang
            )

        # `{}` 或键名错误的对象也能通过校验，但没有任何可用的译文
        if not any(getattr(parsed, name).strip() for name in keys):
            logger.warning("提供方返回的 JSON 不含任何译文字段，改为逐字段翻译。", raw=raw[:200])
            return await self._translate_fields_individually(
                fields, source_lang, dest_lang
            )

        result: dict[str, str] = {}
        for name, source_value in fields.model_dump().items():
            translated = getattr(parsed, name).strip()
            result[name] = translated or source_value
            if source_value and translated:
                await self.cache.put(
                    keys[name],
                    translated,
                    source_lang=source_lang,
                    dest_base=dest_base,
                )
        return TranslatedFields(**result)
