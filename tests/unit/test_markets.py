# tests/unit/test_markets.py
"""针对市场配置查询的单元测试。"""

import pytest

from tests.helpers.factories import make_coordinator, make_market
from tests.helpers.fakes import InMemoryPersistenceHandler


@pytest.fixture
def handler_with_markets(handler: InMemoryPersistenceHandler) -> InMemoryPersistenceHandler:
    handler.markets = [make_market("DE"), make_market("TR"), make_market("FR", enabled=False)]
    return handler


@pytest.mark.asyncio
async def test_only_enabled_markets_are_listed(
    handler_with_markets: InMemoryPersistenceHandler,
) -> None:
    coord = make_coordinator(handler_with_markets)
    markets = await coord.markets.get_markets()
    assert [m.market_code for m in markets] == ["DE", "TR"]


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["DE", "de", " De "])
async def test_market_lookup_is_case_insensitive(
    handler_with_markets: InMemoryPersistenceHandler, code: str
) -> None:
    market = await make_coordinator(handler_with_markets).markets.get_market(code)
    assert market is not None
    assert market.default_lang == "de"


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["FR", "XX"])
async def test_disabled_or_unknown_market_is_none(
    handler_with_markets: InMemoryPersistenceHandler, code: str
) -> None:
    assert await make_coordinator(handler_with_markets).markets.get_market(code) is None
