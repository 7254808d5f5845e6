# insight_bff/services/markets.py
"""市场配置查询（`app_markets`，仅启用的市场）。"""

from __future__ import annotations

from typing import TYPE_CHECKING

from insight_bff.core.types import MarketRecord
from insight_bff.utils import with_timeout

if TYPE_CHECKING:
    from insight_bff.context import ServiceContext


class MarketService:
    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx

    async def get_markets(self) -> list[MarketRecord]:
        return await with_timeout(
            self.ctx.handler.list_markets(enabled_only=True),
            self.ctx.config.storage_timeout,
            "list_markets",
        )

    async def get_market(self, market_code: str) -> MarketRecord | None:
        code = market_code.strip().upper()
        for market in await self.get_markets():
            if market.market_code.upper() == code:
                return market
        return None
