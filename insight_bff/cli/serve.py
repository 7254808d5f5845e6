# insight_bff/cli/serve.py
"""启动 HTTP 服务的 CLI 命令。"""

from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from insight_bff.api import create_app
from insight_bff.cli.state import State

console = Console()


def serve(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option("--host", help="监听地址。")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="监听端口。")] = None,
) -> None:
    """使用 uvicorn 启动 BFF 的 HTTP 服务。"""
    state: State = ctx.obj
    config = state.config
    bind_host = host or config.host
    bind_port = port or config.port

    console.print(
        f"[bold green]🚀 insight-bff 启动于 http://{bind_host}:{bind_port}[/bold green]"
    )
    # 日志已由根回调配置，这里不让 uvicorn 覆盖
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)
