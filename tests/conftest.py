"""Shared test fixtures for orcdk-ngrok tests.

- control_api: scripted ngrok control API (see tests.mocks.control_api)
- fake_process: launcher that never spawns ngrok
- fast_config: NgrokConfig with near-zero startup delays
"""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from orcdk_ngrok.config import NgrokConfig
from orcdk_ngrok.events import EventBus
from orcdk_ngrok.tunnel.process import TunnelProcess
from tests.mocks.control_api import MockControlApi


@pytest.fixture
def control_api() -> MockControlApi:
    """Control API that reports no tunnels."""
    return MockControlApi()


@pytest.fixture
def fake_process() -> MagicMock:
    """Process launcher that never spawns anything."""
    process = MagicMock(spec=TunnelProcess)
    process.start.return_value = 4242
    process.is_alive = True
    return process


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    return tmp_path / ".env.local"


@pytest.fixture
def fast_config(env_file: Path) -> NgrokConfig:
    """Config with tiny delays so polling tests run fast."""
    return NgrokConfig(
        port=3000,
        enabled_stacks=frozenset({"alpha"}),
        env_file_path=env_file,
        startup_delay=0.0,
        startup_timeout=0.5,
        poll_interval=0.01,
    )


@pytest.fixture(autouse=True)
def reset_event_bus() -> Iterator[None]:
    """Give every test a fresh process-wide bus."""
    EventBus.reset_instance()
    yield
    EventBus.reset_instance()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop environment variables that change config resolution."""
    for name in ("CDK_ENVIRONMENT", "ORCDK_NGROK_PORT", "ORCDK_NGROK_API_URL", "ORCDK_NGROK_BINARY"):
        monkeypatch.delenv(name, raising=False)
