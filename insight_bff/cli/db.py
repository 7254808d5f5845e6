# insight_bff/cli/db.py
"""处理数据库相关操作的 CLI 命令。"""

import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console

from insight_bff.cli.state import State
from insight_bff.core.exceptions import InsightBffError
from insight_bff.persistence import create_persistence_handler
from insight_bff.persistence.base import BasePersistenceHandler

logger = structlog.get_logger(__name__)
console = Console()
db_app = typer.Typer(help="数据库管理命令")


async def _init_schema(handler: BasePersistenceHandler) -> None:
    try:
        await handler.connect()
        await handler.create_schema()
    finally:
        await handler.close()


@db_app.command("init")
def db_init(ctx: typer.Context) -> None:
    """
    创建所有缺失的数据库表。

    已存在的表不会被修改；此命令可以重复执行。
    """
    state: State = ctx.obj
    config = state.config

    if config.is_sqlite and ":memory:" in config.database_url:
        console.print("[yellow]警告：内存数据库无法被永久初始化。[/yellow]")
        raise typer.Exit()

    console.print(f"数据库地址: [cyan]{config.database_url}[/cyan]")
    console.print("正在创建数据库表...")

    try:
        handler = create_persistence_handler(config)
        db_path = getattr(handler, "db_path", None)
        if db_path and db_path != ":memory:":
            # 确保数据库文件的父目录存在
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        asyncio.run(_init_schema(handler))
        console.print("[bold green]✅ 数据库表创建完成！[/bold green]")
    except InsightBffError as e:
        logger.error("数据库初始化过程中发生错误。", exc_info=True)
        console.print("[bold red]❌ 数据库初始化失败！请检查日志获取详细信息。[/bold red]")
        raise typer.Exit(code=1) from e
