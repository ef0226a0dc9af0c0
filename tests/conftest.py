# tests/conftest.py
import pytest

from sitesnap.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        artifacts_dir=tmp_path / "screenshots",
        logs_dir=tmp_path / "logs",
        navigation_timeout_ms=2000,
        network_idle_ms=20,
        subscribe_grace_s=2,
        heartbeat_s=0.5,
    )
