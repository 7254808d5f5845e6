# insight_bff/cli/warm.py
"""批量预热集群译文的 CLI 命令。"""

import asyncio
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.table import Table

from insight_bff.cli.state import State
from insight_bff.cli.utils import create_coordinator
from insight_bff.coordinator import Coordinator
from insight_bff.utils import normalize_bcp47

logger = structlog.get_logger(__name__)
console = Console()

WARM_CHUNK_SIZE = 10


async def _async_warm(coordinator: Coordinator, lang: str, count: int) -> tuple[int, int]:
    """列出最近的集群并分块送入批量翻译。返回 (成功数, 失败数)。"""
    ok = failed = 0
    try:
        await coordinator.initialize()
        clusters = await coordinator.handler.list_clusters(count)
        ids = [c.id for c in clusters]
        console.print(f"共找到 [cyan]{len(ids)}[/cyan] 个集群，目标语言 [cyan]{lang}[/cyan]。")

        for start in range(0, len(ids), WARM_CHUNK_SIZE):
            chunk = ids[start : start + WARM_CHUNK_SIZE]
            result = await coordinator.batch.translate_batch(chunk, lang)
            ok += len(result.results)
            failed += len(result.failed)
            console.print(
                f"[dim]批次 {start // WARM_CHUNK_SIZE + 1}: "
                f"成功 {len(result.results)}，失败 {len(result.failed)}[/dim]"
            )
            for cluster_id in result.failed:
                logger.warning("预热失败。", cluster_id=cluster_id, lang=lang)
    finally:
        await coordinator.close()
    return ok, failed


def warm(
    ctx: typer.Context,
    lang: Annotated[str, typer.Option("--lang", "-l", help="目标语言代码。")],
    count: Annotated[
        int, typer.Option("--count", "-n", min=1, help="要预热的最近集群数量。")
    ] = 50,
) -> None:
    """为最近的集群预先生成指定语言的译文。"""
    normalized = normalize_bcp47(lang)
    if normalized is None:
        console.print(f"[bold red]❌ 语言代码错误: '{lang}'[/bold red]")
        raise typer.Exit(code=1)

    state: State = ctx.obj
    coordinator = create_coordinator(state.config)
    ok, failed = asyncio.run(_async_warm(coordinator, normalized, count))

    table = Table(title="预热结果")
    table.add_column("语言")
    table.add_column("成功", justify="right", style="green")
    table.add_column("失败", justify="right", style="red")
    table.add_row(normalized, str(ok), str(failed))
    console.print(table)

    if failed and not ok:
        raise typer.Exit(code=1)
