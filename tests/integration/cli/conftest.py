# tests/integration/cli/conftest.py
"""为 CLI 集成测试提供 Fixtures。"""

from pathlib import Path

import pytest
from pytest_mock import MockerFixture
from typer.testing import CliRunner


@pytest.fixture
def cli_runner() -> CliRunner:
    """提供一个 Typer CliRunner 实例用于模拟命令行调用。"""
    return CliRunner()


@pytest.fixture(autouse=True)
def keep_test_logging(mocker: MockerFixture) -> None:
    """CLI 的根回调不重新配置日志，避免日志处理器绑定到 CliRunner 的临时输出流。"""
    mocker.patch("insight_bff.cli.main.setup_logging")


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "insight.db"


@pytest.fixture
def cli_env(db_file: Path) -> dict[str, str]:
    return {
        "BFF_DATABASE_URL": f"sqlite+aiosqlite:///{db_file}",
        "BFF_ACTIVE_ENGINE": "debug",
    }
