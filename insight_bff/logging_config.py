# insight_bff/logging_config.py
"""
集中配置 structlog 日志。

console 格式把每条日志渲染为一行对齐的彩色文本，便于在请求密集的服务中
扫读；json 格式供生产环境的日志采集使用。请求级字段（request_id、path）
通过 structlog 的 contextvars 绑定，自动出现在该请求产生的每条日志里。
"""

import logging
import uuid
from collections.abc import MutableMapping
from typing import Any, Literal

import structlog
from rich.console import Console
from rich.text import Text
from structlog.typing import Processor

# 级别 -> (样式, 定宽文本)
LEVEL_STYLES: dict[str, tuple[str, str]] = {
    "debug": ("blue", "DEBUG   "),
    "info": ("green", "INFO    "),
    "warning": ("yellow", "WARNING "),
    "error": ("bold red", "ERROR   "),
    "critical": ("bold magenta", "CRITICAL"),
}

# 这些第三方记录器在 INFO 级别下过于嘈杂
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "openai", "aiosqlite")


class RichLineRenderer:
    """structlog 的最终处理器，输出 ``时间 级别 消息 (记录器) key=value ...``。"""

    def __init__(
        self,
        kv_truncate_at: int = 120,
        show_timestamp: bool = True,
        show_logger_name: bool = True,
    ):
        self._console = Console(soft_wrap=True)
        self._kv_truncate_at = kv_truncate_at
        self._show_timestamp = show_timestamp
        self._show_logger_name = show_logger_name

    def _format_value(self, value: Any) -> str:
        text = value if isinstance(value, str) else repr(value)
        if len(text) > self._kv_truncate_at:
            return text[: self._kv_truncate_at] + "…"
        return text

    def _build_line(
        self, event: str, level: str, timestamp: str, logger_name: str, extra: dict[str, Any]
    ) -> Text:
        style, level_text = LEVEL_STYLES.get(level, ("default", level.upper()))
        line = Text()
        if self._show_timestamp and timestamp:
            line.append(f"{timestamp} ", style="dim")
        line.append(level_text, style=style)
        line.append(f" {event}")
        if self._show_logger_name:
            line.append(f" ({logger_name})", style="cyan dim")
        for key in sorted(extra):
            line.append(f" {key}=", style="dim")
            line.append(self._format_value(extra[key]), style="bright_white")
        return line

    def __call__(
        self, logger: Any, name: str, event_dict: MutableMapping[str, Any]
    ) -> str:
        event = str(event_dict.pop("event", "")).strip()
        if not event:
            return ""

        timestamp = str(event_dict.pop("timestamp", ""))
        level = str(event_dict.pop("level", "info")).lower()
        logger_name = str(event_dict.pop("logger", "unknown"))
        exception = event_dict.pop("exception", None)

        line = self._build_line(event, level, timestamp, logger_name, dict(event_dict))
        with self._console.capture() as capture:
            self._console.print(line)
        rendered = capture.get().rstrip()
        return f"{rendered}\n{exception}" if exception else rendered


class _PassthroughFormatter(logging.Formatter):
    """structlog 已经渲染好了字符串，标准库只需原样输出。"""

    def format(self, record: logging.LogRecord) -> str:
        return str(record.getMessage())


def setup_logging(
    log_level: str = "INFO",
    log_format: Literal["json", "console"] = "console",
    show_timestamp: bool = True,
    show_logger_name: bool = True,
) -> None:
    """
    配置全局的 structlog 日志系统。

    Args:
        log_level: insight_bff 自身记录器的最低级别。第三方库固定为 WARNING。
        log_format: 'console' 为彩色单行输出，'json' 为每行一个 JSON 对象。
        show_timestamp: console 格式下是否显示时间戳。
        show_logger_name: console 格式下是否显示记录器名称。
    """
    if log_format == "console":
        timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False)
        renderer: Processor = RichLineRenderer(
            show_timestamp=show_timestamp, show_logger_name=show_logger_name
        )
    else:
        timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
        renderer = structlog.processors.JSONRenderer()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        timestamper,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(_PassthroughFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("insight_bff").setLevel(log_level.upper())

    structlog.get_logger("insight_bff.logging_config").info(
        "日志系统已配置完成。", log_format=log_format, app_log_level=log_level.upper()
    )


def bind_request_context(path: str, request_id: str | None = None) -> str:
    """
    为当前请求绑定日志上下文，返回实际使用的 request_id。

    调用方在请求结束时应调用 `clear_request_context`。
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=path)
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
