# tests/unit/test_logging_config.py
"""针对单行日志渲染器的单元测试。"""

import structlog

from insight_bff.logging_config import (
    RichLineRenderer,
    bind_request_context,
    clear_request_context,
)


def test_renders_single_aligned_line() -> None:
    renderer = RichLineRenderer()
    out = renderer(
        None,
        "info",
        {
            "event": "已写入新的译文行。",
            "level": "info",
            "timestamp": "2025-01-01 12:00:00",
            "logger": "insight_bff.resolver",
            "lang": "de",
            "cluster_id": "c1",
        },
    )
    assert out == (
        "2025-01-01 12:00:00 INFO     已写入新的译文行。 (insight_bff.resolver) "
        "cluster_id=c1 lang=de"
    )


def test_optional_parts_can_be_hidden() -> None:
    renderer = RichLineRenderer(show_timestamp=False, show_logger_name=False)
    out = renderer(None, "warning", {"event": "提供方调用超时。", "level": "warning", "timestamp": "x"})
    assert out == "WARNING  提供方调用超时。"


def test_long_values_are_truncated() -> None:
    renderer = RichLineRenderer(kv_truncate_at=5, show_timestamp=False, show_logger_name=False)
    out = renderer(None, "info", {"event": "e", "level": "info", "raw": "abcdefghij"})
    assert out.endswith("raw=abcde…")


def test_empty_event_renders_nothing() -> None:
    assert RichLineRenderer()(None, "info", {"event": "  "}) == ""


def test_exception_is_appended_on_its_own_line() -> None:
    renderer = RichLineRenderer(show_timestamp=False, show_logger_name=False)
    out = renderer(
        None, "error", {"event": "失败", "level": "error", "exception": "Traceback ..."}
    )
    assert out.splitlines() == ["ERROR    失败", "Traceback ..."]


def test_request_context_is_bound_and_cleared() -> None:
    request_id = bind_request_context("/feed", "abc")
    assert request_id == "abc"
    assert structlog.contextvars.get_contextvars() == {"request_id": "abc", "path": "/feed"}

    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}


def test_request_id_is_generated_when_missing() -> None:
    request_id = bind_request_context("/health")
    try:
        assert len(request_id) == 12
    finally:
        clear_request_context()
