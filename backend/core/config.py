"""
ShelfScan Backend Configuration

Uses pydantic-settings for type-safe environment variable loading.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Find .env file: check CWD first, then parent (project root)
_env_file = Path(".env")
if not _env_file.exists():
    _parent_env = Path(__file__).resolve().parent.parent.parent / ".env"
    if _parent_env.exists():
        _env_file = _parent_env


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "ShelfScan"
    app_version: str = "1.0.0"
    app_env: str = "local"
    debug: bool = False

    # ── Simulation ───────────────────────────────────────────────────
    # Start the push/poll channels when the API boots
    simulation_enabled: bool = True
    # Fixed seed makes generated shelves reproducible; None = random
    simulation_seed: int | None = None
    aisle_letters: str = "ABCDE"
    shelves_per_aisle: int = 3
    min_empty_shelves: int = 2
    min_low_shelves: int = 3

    # ── Real-time updates ────────────────────────────────────────────
    ws_update_interval_seconds: float = 8.0
    ws_update_probability: float = 0.3
    polling_interval_seconds: float = 5.0
    polling_update_probability: float = 0.2
    rescan_latency_seconds: float = 2.0
    heartbeat_interval_seconds: float = 30.0

    # ── Detection ────────────────────────────────────────────────────
    detection_min_confidence: float = 0.3
    detection_default_threshold: int = 5

    # ── Demo scenarios ───────────────────────────────────────────────
    scenario_max_retries: int = 3

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {
        "env_file": str(_env_file),
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    settings = Settings()
    _enforce_guardrails(settings)
    return settings


def _enforce_guardrails(settings: Settings) -> None:
    for name in ("ws_update_probability", "polling_update_probability", "detection_min_confidence"):
        value = getattr(settings, name)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be within [0, 1], got {value}")
    for name in ("ws_update_interval_seconds", "polling_interval_seconds", "heartbeat_interval_seconds"):
        value = getattr(settings, name)
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")
    if settings.rescan_latency_seconds < 0:
        raise ValueError("rescan_latency_seconds cannot be negative")
    if not settings.aisle_letters or settings.shelves_per_aisle < 1:
        raise ValueError("Shelf grid needs at least one aisle and one shelf per aisle")

    env = settings.app_env.strip().lower()
    is_local = env in {"", "local", "dev", "development", "test"}
    if is_local:
        return

    if settings.debug:
        raise ValueError("Refusing to start with debug=true outside local/dev/test")
