# tests/integration/test_api.py
"""
HTTP 层的集成测试：通过 httpx 的 ASGITransport 直接驱动 FastAPI 应用。

ASGITransport 不会触发 lifespan，因此协调器由 fixture 自行初始化和关闭，
并以 `create_app(coordinator=...)` 的方式注入。
"""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from insight_bff.api import create_app
from insight_bff.coordinator import Coordinator

from tests.helpers.factories import (
    PIVOT_TITLE,
    at,
    make_article,
    make_category,
    make_config,
    make_coordinator,
    make_market,
    make_row,
    seed_story,
)
from tests.helpers.fakes import FakeLLMEngine, InMemoryPersistenceHandler


@pytest_asyncio.fixture
async def coordinator(
    handler: InMemoryPersistenceHandler, engine: FakeLLMEngine
) -> AsyncGenerator[Coordinator, None]:
    coord = make_coordinator(handler, engine)
    await coord.initialize()
    yield coord
    await coord.close()


@pytest_asyncio.fixture
async def client(coordinator: Coordinator) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=create_app(coordinator=coordinator))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert "time" in body


@pytest.mark.asyncio
async def test_request_id_is_echoed_or_generated(client: httpx.AsyncClient) -> None:
    echoed = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert echoed.headers["X-Request-ID"] == "req-123"

    generated = await client.get("/health")
    assert len(generated.headers["X-Request-ID"]) == 12


@pytest.mark.asyncio
async def test_feed_reports_pending_clusters_in_header(
    client: httpx.AsyncClient, handler: InMemoryPersistenceHandler
) -> None:
    seed_story(handler, cluster_id="ready", published_at=at(2))
    handler.add_row(
        make_row("ready", "de", title="Haushalt", summary="Einig.", details="Debatte.", created_at=at(5))
    )
    seed_story(handler, cluster_id="missing", published_at=at(1))

    response = await client.get("/feed", params={"lang": "de"})

    assert response.status_code == 200
    assert response.headers["content-language"] == "de"
    assert response.headers["vary"] == "Accept-Language"
    assert response.headers["x-pending-cluster-ids"] == "missing"
    cards = response.json()
    assert [c["id"] for c in cards] == ["ready", "missing"]
    assert cards[0]["translation_status"] == "ready"
    assert cards[1]["translation_status"] == "pending"
    assert cards[1]["language"] == "en"


@pytest.mark.asyncio
async def test_feed_negotiates_accept_language(
    client: httpx.AsyncClient, handler: InMemoryPersistenceHandler
) -> None:
    seed_story(handler, cluster_id="c1")
    response = await client.get("/feed", headers={"Accept-Language": "tr-TR,tr;q=0.9"})
    assert response.headers["content-language"] == "tr-TR"


@pytest.mark.asyncio
async def test_strict_feed_has_no_pending_header(
    client: httpx.AsyncClient, handler: InMemoryPersistenceHandler
) -> None:
    seed_story(handler, cluster_id="c1")

    response = await client.get("/feed", params={"lang": "de", "strict": "true"})

    assert response.status_code == 200
    assert "x-pending-cluster-ids" not in response.headers
    cards = response.json()
    assert cards[0]["title"] == f"[German] {PIVOT_TITLE}"
    assert cards[0]["is_translated"] is True


@pytest.mark.asyncio
async def test_cluster_detail(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    seed_story(handler, cluster_id="c1")

    response = await client.get("/cluster/c1", params={"lang": "ar"})

    assert response.status_code == 200
    assert response.headers["content-language"] == "ar"
    body = response.json()
    assert body["id"] == "c1"
    assert body["dir"] == "rtl"
    assert body["translated_from"] == "en"
    assert body["ai_details"]


@pytest.mark.asyncio
async def test_unknown_cluster_is_404(client: httpx.AsyncClient) -> None:
    response = await client.get("/cluster/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


@pytest.mark.asyncio
async def test_storage_failure_is_500(
    client: httpx.AsyncClient, handler: InMemoryPersistenceHandler
) -> None:
    handler.fail_reads = True
    response = await client.get("/cluster/c1")
    assert response.status_code == 500
    assert response.json() == {"error": "storage_unavailable"}


@pytest.mark.asyncio
async def test_batch_translate(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    seed_story(handler, cluster_id="a")

    response = await client.post(
        "/translate/batch", params={"lang": "de"}, json={"ids": ["a", "zzz", "a"]}
    )

    assert response.status_code == 200
    body = response.json()
    assert [r["id"] for r in body["results"]] == ["a"]
    assert body["results"][0]["title"] == f"[German] {PIVOT_TITLE}"
    assert body["failed"] == ["zzz"]


@pytest.mark.asyncio
async def test_batch_translate_is_rate_limited(handler: InMemoryPersistenceHandler) -> None:
    coord = make_coordinator(handler, FakeLLMEngine(), make_config(batch={"rate_limit_per_minute": 1}))
    await coord.initialize()
    transport = httpx.ASGITransport(app=create_app(coordinator=coord))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.post("/translate/batch", json={"ids": []})
        second = await client.post("/translate/batch", json={"ids": []})
    await coord.close()

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json() == {"error": "rate_limited"}
    assert coord.context.batch_metrics.rate_limited == 1


@pytest.mark.asyncio
async def test_metrics(client: httpx.AsyncClient) -> None:
    body = (await client.get("/metrics")).json()
    assert body["service"] == "insight-bff"
    assert "cache_hits" in body["translate"]
    assert "pending" in body["queue"]


@pytest.mark.asyncio
async def test_market_config(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    handler.markets = [make_market("DE"), make_market("TR")]

    listed = await client.get("/config")
    single = await client.get("/config", params={"market": "tr"})
    missing = await client.get("/config", params={"market": "XX"})

    assert [m["market_code"] for m in listed.json()["markets"]] == ["DE", "TR"]
    assert single.json()["market_code"] == "TR"
    assert missing.status_code == 404
    assert missing.json()["error"] == "market_not_found"


@pytest.mark.asyncio
async def test_category_navigation(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    handler.add_category(make_category(1, "world", display_order=1, is_main_nav=True), "a1")
    handler.add_category(make_category(2, "hidden"))

    response = await client.get("/categories/navigation", params={"lang": "de"})

    assert response.status_code == 200
    assert response.headers["content-language"] == "de"
    body = response.json()
    assert body["language"] == "de"
    assert body["categories"] == [
        {
            "id": 1,
            "name": "World",
            "slug": "world",
            "icon_emoji": "📰",
            "color_hex": "#6B7280",
            "display_order": 1,
            "article_count": 1,
        }
    ]


@pytest.mark.asyncio
async def test_category_tree(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    handler.add_category(make_category(1, "world", display_order=1, is_main_nav=True))
    handler.add_category(make_category(2, "europe", parent_id=1))
    handler.add_category(make_category(3, "sport", display_order=2))

    everything = (await client.get("/categories")).json()
    main_nav = (await client.get("/categories", params={"main_nav": "true"})).json()

    assert [c["slug"] for c in everything["categories"]] == ["world", "sport"]
    assert [s["slug"] for s in everything["categories"][0]["subcategories"]] == ["europe"]
    assert everything["total_categories"] == 3
    assert everything["main_nav_count"] == 1
    assert everything["language"] == "en"
    assert [c["slug"] for c in main_nav["categories"]] == ["world"]


@pytest.mark.asyncio
async def test_category_articles(client: httpx.AsyncClient, handler: InMemoryPersistenceHandler) -> None:
    for i in range(3):
        handler.add_article(make_article("c1", article_id=f"a{i}", published_at=at(i)))
    handler.add_category(make_category(1, "world"), "a0", "a1", "a2")

    response = await client.get(
        "/categories/world/articles", params={"limit": 2, "offset": 0, "lang": "en"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["category"] == {"id": 1, "name": "World", "slug": "world"}
    assert [a["id"] for a in body["articles"]] == ["a2", "a1"]
    assert body["articles"][0]["source_name"] == "Unknown Source"
    assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}
    assert body["language"] == "en"


@pytest.mark.asyncio
async def test_unknown_category_is_404(client: httpx.AsyncClient) -> None:
    response = await client.get("/categories/nope/articles")
    assert response.status_code == 404
    assert response.json() == {"error": "Category not found"}


@pytest.mark.asyncio
async def test_category_storage_failure_is_500(
    client: httpx.AsyncClient, handler: InMemoryPersistenceHandler
) -> None:
    handler.fail_reads = True
    response = await client.get("/categories/navigation")
    assert response.status_code == 500
    assert response.json() == {"error": "storage_unavailable"}
