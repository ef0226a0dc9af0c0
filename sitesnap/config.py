# sitesnap/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    artifacts_dir: Path = field(default_factory=lambda: Path(os.getenv("SITESNAP_ARTIFACTS_DIR", "screenshots")))
    artifacts_url: str = os.getenv("SITESNAP_ARTIFACTS_URL", "/screenshots")
    logs_dir: Path = field(default_factory=lambda: Path(os.getenv("SITESNAP_LOGS_DIR", "logs")))

    max_artifact_size: int = int(os.getenv("SITESNAP_MAX_ARTIFACT_SIZE", str(5 * 1024 * 1024)))
    lossy_start_quality: int = 90
    lossy_min_quality: int = 50
    lossy_quality_step: int = 10

    navigation_timeout_ms: int = int(os.getenv("SITESNAP_NAVIGATION_TIMEOUT_MS", "30000"))
    network_idle_ms: int = int(os.getenv("SITESNAP_NETWORK_IDLE_MS", "500"))
    network_idle_connections: int = int(os.getenv("SITESNAP_NETWORK_IDLE_CONNECTIONS", "2"))
    headless: bool = _env_bool("SITESNAP_HEADLESS", True)

    subscribe_grace_s: float = float(os.getenv("SITESNAP_SUBSCRIBE_GRACE_S", "5"))
    heartbeat_s: float = float(os.getenv("SITESNAP_HEARTBEAT_S", "15"))

    port: int = int(os.getenv("PORT", "3000"))


settings = Settings()
