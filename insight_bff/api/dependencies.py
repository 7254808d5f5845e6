# insight_bff/api/dependencies.py
"""FastAPI 依赖项：协调器注入与语言协商。"""

from fastapi import Header, Query, Request

from insight_bff.coordinator import Coordinator
from insight_bff.utils import negotiate_language


def get_coordinator(request: Request) -> Coordinator:
    return request.app.state.coordinator


def get_lang(
    lang: str | None = Query(default=None),
    accept_language: str | None = Header(default=None),
) -> str:
    """优先级: ?lang > Accept-Language 的第一项 > en，结果为规范化的 BCP 47 标签。"""
    return negotiate_language(lang, accept_language)


def language_headers(lang: str) -> dict[str, str]:
    return {"Content-Language": lang, "Vary": "Accept-Language"}
