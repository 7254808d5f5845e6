# insight_bff/utils.py
"""
本模块包含项目范围内的通用工具函数。

语言代码的规范化与校验全部基于 `langcodes` 库；`with_timeout` 为每一次
存储调用提供显式超时。
"""

import asyncio
import re
from collections.abc import Awaitable
from typing import TypeVar

from langcodes import Language, standardize_tag
from langcodes.tag_parser import LanguageTagError

from insight_bff.core.exceptions import StorageTimeoutError

_T = TypeVar("_T")

# 语言子标签应该由 2-3 个字母组成 (BCP 47)
LANGUAGE_SUBTAG_PATTERN = re.compile(r"^[a-zA-Z]{2,3}$")
RTL_LANGS = frozenset({"ar", "he", "fa", "ur"})
DEFAULT_LANG = "en"


def validate_lang_codes(lang_codes: list[str]) -> None:
    """使用 `langcodes` 库校验语言代码列表中的每个代码是否符合 BCP 47 规范。"""
    for code in lang_codes:
        try:
            lang = Language.get(code)
            if not lang.language or not LANGUAGE_SUBTAG_PATTERN.match(lang.language):
                raise LanguageTagError(
                    f"Tag '{code}' lacks a valid 2-3 letter language subtag."
                )
        except LanguageTagError as e:
            raise ValueError(f"提供的语言代码 '{code}' 格式无效。原因: {e}") from e


def normalize_bcp47(tag: str | None) -> str | None:
    """
    将任意大小写、下划线分隔的语言标签规范化为 BCP 47 形式。

    例如 ``de_ch`` -> ``de-CH``，``EN`` -> ``en``。无法解析时返回 None。
    """
    if not tag or not isinstance(tag, str):
        return None
    cleaned = tag.strip().replace("_", "-")
    if not cleaned:
        return None
    try:
        return standardize_tag(cleaned)
    except (LanguageTagError, ValueError):
        return None


def base_lang(tag: str | None) -> str:
    """返回 BCP 47 标签的主子标签（``de-CH`` -> ``de``），无效输入回退为 ``en``。"""
    normalized = normalize_bcp47(tag) or DEFAULT_LANG
    return normalized.split("-")[0].lower()


def same_base_lang(a: str | None, b: str | None) -> bool:
    return base_lang(a) == base_lang(b)


def pick_from_accept_language(header: str | None) -> str | None:
    """取 Accept-Language 头中的第一个语言（忽略权重）。"""
    if not header:
        return None
    first = header.split(",")[0].split(";")[0].strip()
    return normalize_bcp47(first)


def negotiate_language(query_lang: str | None, accept_language: str | None) -> str:
    """优先级: ?lang > Accept-Language > en。"""
    return (
        normalize_bcp47(query_lang)
        or pick_from_accept_language(accept_language)
        or DEFAULT_LANG
    )


def is_rtl_lang(tag: str | None) -> bool:
    if not tag:
        return False
    return base_lang(tag) in RTL_LANGS


def dir_for(tag: str | None) -> str:
    return "rtl" if is_rtl_lang(tag) else "ltr"


async def with_timeout(awaitable: Awaitable[_T], seconds: float, label: str) -> _T:
    """
    为一次存储调用加上显式超时。

    超时后抛出 `StorageTimeoutError`，调用方的降级路径负责兜底。
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise StorageTimeoutError(f"{label} 在 {seconds:.2f}s 后超时") from e
