# tests/unit/test_coordinator.py
"""针对协调器生命周期与默认引擎选择的单元测试。"""

import pytest
from pytest_mock import MockerFixture

from insight_bff.coordinator import Coordinator
from insight_bff.core.exceptions import ConfigurationError
from insight_bff.engines.debug import DebugEngine

from tests.helpers.factories import make_config, make_coordinator
from tests.helpers.fakes import FakeLLMEngine, InMemoryPersistenceHandler


def test_default_engine_follows_configuration(handler: InMemoryPersistenceHandler) -> None:
    coord = Coordinator(make_config(active_engine="debug"), handler)
    assert isinstance(coord.engine, DebugEngine)
    assert coord.context.translator.engine is coord.engine


def test_engine_creation_failure_degrades_to_fallback(
    handler: InMemoryPersistenceHandler, mocker: MockerFixture
) -> None:
    """引擎无法创建时不阻止启动，翻译走降级路径。"""
    mocker.patch(
        "insight_bff.coordinator.create_engine",
        side_effect=ConfigurationError("missing key"),
    )
    coord = Coordinator(make_config(), handler)
    assert coord.engine is None


@pytest.mark.asyncio
async def test_initialize_and_close(handler: InMemoryPersistenceHandler) -> None:
    engine = FakeLLMEngine()
    coord = make_coordinator(handler, engine)

    await coord.initialize()
    assert handler.connected
    assert engine.initialized
    assert coord.context.queue.started

    await coord.initialize()  # 幂等

    await coord.close()
    assert not handler.connected
    assert not engine.initialized
    assert not coord.context.queue.started


@pytest.mark.asyncio
async def test_snapshot_shape(handler: InMemoryPersistenceHandler) -> None:
    coord = make_coordinator(handler, FakeLLMEngine())
    snapshot = coord.snapshot()
    assert snapshot["service"] == "insight-bff"
    assert set(snapshot) == {"service", "translate", "queue", "inflight", "batch"}
    assert snapshot["translate"]["provider_calls"] == 0
    assert snapshot["inflight"] == {"size": 0}
    assert snapshot["queue"]["pending"] == 0
