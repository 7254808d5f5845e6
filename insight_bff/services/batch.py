# insight_bff/services/batch.py
"""批量翻译编排器：对一组集群做有界并发的解析。"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from insight_bff.core.exceptions import InsightBffError
from insight_bff.core.types import BatchItem, BatchTranslateResult, ResolvedClusterText

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext

logger = structlog.get_logger(__name__)


def dedupe_ids(ids: list[str], max_batch: int) -> list[str]:
    """去重并保持首次出现的顺序，然后截断到 `max_batch`。"""
    unique = [i for i in dict.fromkeys(ids) if i]
    return unique[:max_batch]


class BatchTranslateService:
    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx

    async def _translate_one(
        self, semaphore: asyncio.Semaphore, cluster_id: str, lang: str
    ) -> ResolvedClusterText | None:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self.ctx.resolver.ensure(cluster_id, lang),
                    timeout=self.ctx.config.batch.item_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("批量翻译条目超时。", cluster_id=cluster_id, lang=lang)
            except InsightBffError as e:
                logger.warning(
                    "批量翻译条目失败。", cluster_id=cluster_id, lang=lang, error=str(e)
                )
            except Exception as e:
                logger.error(
                    "批量翻译条目出现未预期的异常。",
                    cluster_id=cluster_id,
                    lang=lang,
                    error=f"{e.__class__.__name__}: {e}",
                    exc_info=e,
                )
            return None

    async def translate_batch(self, ids: list[str], lang: str) -> BatchTranslateResult:
        """
        解析一批集群到目标语言。部分失败不会抛出异常，而是出现在 `failed` 中；
        `results` 与 `failed` 的长度之和等于去重截断后的 id 数。
        """
        cfg = self.ctx.config.batch
        unique_ids = dedupe_ids(ids, cfg.max_batch)
        if not unique_ids:
            return BatchTranslateResult()

        semaphore = asyncio.Semaphore(cfg.concurrency)
        outcomes = await asyncio.gather(
            *(self._translate_one(semaphore, cid, lang) for cid in unique_ids),
            return_exceptions=True,
        )

        result = BatchTranslateResult()
        for cluster_id, resolved in zip(unique_ids, outcomes):
            if resolved is None or isinstance(resolved, BaseException):
                result.failed.append(cluster_id)
                continue
            result.results.append(
                BatchItem(
                    id=cluster_id,
                    title=resolved.title,
                    summary=resolved.summary,
                    details=resolved.details,
                    language=resolved.lang,
                    is_translated=resolved.is_translated,
                    translated_from=resolved.translated_from,
                )
            )

        metrics = self.ctx.batch_metrics
        metrics.items_ok += len(result.results)
        metrics.items_failed += len(result.failed)
        logger.info(
            "批量翻译完成。",
            lang=lang,
            ok=len(result.results),
            failed=len(result.failed),
        )
        return result
