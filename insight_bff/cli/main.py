# insight_bff/cli/main.py
"""insight-bff CLI 的主入口点。"""

from typing import Annotated, Any

import typer
from rich.console import Console

import insight_bff
from insight_bff.cli.db import db_app
from insight_bff.cli.serve import serve
from insight_bff.cli.state import State
from insight_bff.cli.warm import warm
from insight_bff.config import BffConfig
from insight_bff.engine_registry import discover_engines
from insight_bff.logging_config import setup_logging

app = typer.Typer(
    name="insight-bff",
    help="📰 insight-bff: 多语言新闻应用的 Backend-for-Frontend。",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(db_app, name="db")
app.command("serve")(serve)
app.command("warm")(warm)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"insight-bff [bold cyan]v{insight_bff.__version__}[/bold cyan]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="覆盖 BFF_DATABASE_URL。", show_default=False),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="覆盖 BFF_LOGGING__LEVEL。", show_default=False),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="显示版本信息并退出。",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    加载配置并初始化日志，然后把配置交给子命令。

    命令行选项优先于环境变量与 .env。引擎发现放在日志配置之后，
    这样发现过程的日志使用的是最终格式。
    """
    overrides: dict[str, Any] = {}
    if db_url:
        overrides["database_url"] = db_url
    try:
        config = BffConfig(**overrides)
        if log_level:
            config.logging.level = log_level.upper()
        setup_logging(log_level=config.logging.level, log_format=config.logging.format)
        discover_engines()
    except Exception as e:
        console.print("[bold red]❌ 启动失败：无法加载配置或初始化日志。[/bold red]")
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(code=1) from e
    ctx.obj = State(config=config)


if __name__ == "__main__":
    app()
