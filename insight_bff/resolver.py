# insight_bff/resolver.py
"""
集群文本解析器：“确保集群 C 在语言 L 下有可用文本”的状态机。

读取集群的所有当前行，选出枢纽行，判断目标语言行是否新鲜；缺失或过期时
从枢纽行翻译，并以尽力而为的方式写回存储。同一 (集群, 语言) 的并发解析
通过在途任务表合并为一次。
"""

import hashlib
import uuid
from datetime import datetime, timezone

import structlog

from insight_bff.core.exceptions import DatabaseError, DuplicateKeyError
from insight_bff.core.interfaces import PersistenceHandler
from insight_bff.core.types import (
    ClusterTranslationRow,
    ResolvedClusterText,
    RowState,
    TranslatedFields,
)
from insight_bff.inflight import InflightMap
from insight_bff.translator import TextTranslator
from insight_bff.utils import normalize_bcp47, same_base_lang, with_timeout

logger = structlog.get_logger(__name__)

SIGNATURE_TAG = "#ph="


def content_signature(fields: TranslatedFields) -> str:
    """枢纽内容的指纹：SHA-1(title\\nsummary\\ndetails) 的前 12 个十六进制字符。"""
    payload = f"{fields.title}\n{fields.summary}\n{fields.details}"
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


def _normalize_ws(value: str) -> str:
    return " ".join(value.split())


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ClusterTextResolver:
    """把集群文本解析到目标语言。"""

    def __init__(
        self,
        handler: PersistenceHandler,
        translator: TextTranslator,
        inflight: InflightMap,
        *,
        pivot_lang: str = "en",
        model_tag: str = "gpt-4o-mini",
        passthrough_model_markers: list[str] | None = None,
        storage_timeout: float = 2.0,
    ):
        self.handler = handler
        self.translator = translator
        self.inflight = inflight
        self.pivot_lang = pivot_lang
        self.model_tag = model_tag
        self.passthrough_model_markers = (
            ["original-body"]
            if passthrough_model_markers is None
            else passthrough_model_markers
        )
        self.storage_timeout = storage_timeout

    # --- 纯函数部分 ---

    def pick_pivot(
        self, rows: list[ClusterTranslationRow]
    ) -> ClusterTranslationRow | None:
        """优先选择枢纽语言的当前行，否则选创建最早的当前行。"""
        if not rows:
            return None
        for row in rows:
            if normalize_bcp47(row.lang) == self.pivot_lang:
                return row
        dated = [row for row in rows if row.created_at is not None]
        if dated:
            return min(dated, key=lambda r: _as_utc(r.created_at))  # type: ignore[arg-type]
        return rows[0]

    def is_passthrough(self, pivot: ClusterTranslationRow) -> bool:
        """枢纽行是未经处理的原文时，即使同语言也要经过提供方。"""
        model = pivot.model or ""
        return any(marker in model for marker in self.passthrough_model_markers)

    def classify(
        self, row: ClusterTranslationRow | None, pivot: ClusterTranslationRow
    ) -> RowState:
        if row is None:
            return RowState.ABSENT
        if row is pivot or (row.id is not None and row.id == pivot.id):
            return RowState.FRESH

        fields = row.fields.model_dump()
        if any(self.translator.is_fallback(value) for value in fields.values() if value):
            return RowState.STUB

        if not same_base_lang(row.lang, pivot.lang):
            pivot_fields = pivot.fields.model_dump()
            for name, value in fields.items():
                if value and _normalize_ws(value) == _normalize_ws(pivot_fields[name]):
                    return RowState.LEGACY

        signature = content_signature(pivot.fields)
        if row.pivot_hash == signature:
            return RowState.FRESH
        if row.model and SIGNATURE_TAG in row.model:
            if row.model.rsplit(SIGNATURE_TAG, 1)[1] == signature:
                return RowState.FRESH
        if row.created_at is not None and pivot.created_at is not None:
            if _as_utc(row.created_at) >= _as_utc(pivot.created_at):
                return RowState.FRESH
        return RowState.STALE

    def _to_result(
        self,
        cluster_id: str,
        target_lang: str,
        fields: TranslatedFields,
        pivot: ClusterTranslationRow,
    ) -> ResolvedClusterText:
        translated = not same_base_lang(target_lang, pivot.lang)
        return ResolvedClusterText(
            cluster_id=cluster_id,
            lang=target_lang,
            title=fields.title,
            summary=fields.summary,
            details=fields.details or fields.summary,
            is_translated=translated,
            translated_from=pivot.lang if translated else None,
        )

    # --- 异步部分 ---

    async def translate_from_pivot(
        self, pivot: ClusterTranslationRow, target_lang: str
    ) -> TranslatedFields:
        source = pivot.fields
        if same_base_lang(pivot.lang, target_lang) and not self.is_passthrough(pivot):
            out = source
        else:
            out = await self.translator.translate_fields_cached(
                source, pivot.lang, target_lang
            )
        return TranslatedFields(
            title=out.title.rstrip(),
            summary=out.summary.rstrip(),
            details=(out.details or out.summary).rstrip(),
        )

    async def _persist(
        self, existing: ClusterTranslationRow | None, row: ClusterTranslationRow
    ) -> None:
        try:
            if existing is not None and existing.id is not None:
                await with_timeout(
                    self.handler.replace_current_translation(existing.id, row),
                    self.storage_timeout,
                    "replace_current_translation",
                )
                logger.info(
                    "已替换过期的译文行。", cluster_id=row.cluster_id, lang=row.lang
                )
            else:
                inserted = await with_timeout(
                    self.handler.insert_translation_if_absent(row),
                    self.storage_timeout,
                    "insert_translation_if_absent",
                )
                if inserted:
                    logger.info("已写入新的译文行。", cluster_id=row.cluster_id, lang=row.lang)
                else:
                    logger.debug(
                        "目标语言行已由并发请求写入，跳过。",
                        cluster_id=row.cluster_id,
                        lang=row.lang,
                    )
        except DuplicateKeyError as e:
            logger.debug(
                "并发写入产生重复键，已忽略。",
                cluster_id=row.cluster_id,
                lang=row.lang,
                error=str(e),
            )
        except DatabaseError as e:
            logger.warning(
                "译文行写入失败，返回内存中的结果。",
                cluster_id=row.cluster_id,
                lang=row.lang,
                error=str(e),
            )

    async def resolve(
        self, cluster_id: str, target_lang: str
    ) -> ResolvedClusterText | None:
        """不经过去重表的单次解析。存储读取失败以 `DatabaseError` 上抛。"""
        rows = await with_timeout(
            self.handler.list_current_translations(cluster_id),
            self.storage_timeout,
            "list_current_translations",
        )
        pivot = self.pick_pivot(rows)
        if pivot is None:
            return None

        existing = next(
            (row for row in rows if normalize_bcp47(row.lang) == target_lang), None
        )
        state = self.classify(existing, pivot)
        if state is RowState.FRESH and existing is not None:
            return self._to_result(cluster_id, target_lang, existing.fields, pivot)

        logger.debug(
            "需要从枢纽行翻译。",
            cluster_id=cluster_id,
            lang=target_lang,
            state=state.value,
            pivot_lang=pivot.lang,
        )
        fields = await self.translate_from_pivot(pivot, target_lang)

        if any(self.translator.is_fallback(v) for v in fields.model_dump().values() if v):
            # 降级文本不落库，下一次请求会重新尝试
            logger.warning("提供方不可用，返回降级文本。", cluster_id=cluster_id, lang=target_lang)
            return self._to_result(cluster_id, target_lang, fields, pivot)

        signature = content_signature(pivot.fields)
        new_row = ClusterTranslationRow(
            id=str(uuid.uuid4()),
            cluster_id=cluster_id,
            lang=target_lang,
            title=fields.title,
            summary=fields.summary,
            details=fields.details,
            is_current=True,
            created_at=datetime.now(timezone.utc),
            model=f"{self.model_tag}{SIGNATURE_TAG}{signature}",
            pivot_hash=signature,
        )
        await self._persist(existing, new_row)
        return self._to_result(cluster_id, target_lang, fields, pivot)

    async def ensure(
        self, cluster_id: str, target_lang: str
    ) -> ResolvedClusterText | None:
        """
        确保集群在目标语言下有可用文本，并发调用合并为一次解析。

        仅当集群在任何语言下都没有当前行时返回 None。
        """
        lang = normalize_bcp47(target_lang) or self.pivot_lang
        return await self.inflight.run(
            cluster_id, lang, lambda: self.resolve(cluster_id, lang)
        )
