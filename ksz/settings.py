from __future__ import annotations

import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv


def load_env() -> bool:
    """Load a .env file into the process environment, if one can be found.

    Lookup order:
      1) ENV_FILE, when set
      2) .env next to the entry script
      3) .env in the current directory

    Variables already present in the environment win over the file.
    Returns True when a file was loaded.
    """
    explicit = os.getenv("ENV_FILE")
    if explicit:
        return load_dotenv(explicit)

    entry = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if entry:
        candidate = os.path.join(os.path.dirname(os.path.abspath(entry)), ".env")
        if os.path.isfile(candidate) and load_dotenv(candidate):
            return True

    candidate = os.path.join(os.getcwd(), ".env")
    if os.path.isfile(candidate):
        return load_dotenv(candidate)
    return False


ENV_LOADED = load_env()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    watched_deployments: str = os.getenv("WATCHED_DEPLOYMENTS", "")
    timer_duration: str | None = os.getenv("TIMER_DURATION")
    resync_interval_s: int = _env_int("KSZ_RESYNC_INTERVAL_S", 300)
    db_path: str = os.getenv("KSZ_DB_PATH", "ksz.db")

    # Kubernetes access (in-cluster config is tried first when unset)
    kubeconfig: str | None = os.getenv("KSZ_KUBECONFIG")

    # Power action
    power_state_path: str = os.getenv("KSZ_POWER_STATE_PATH", "/sys/power/state")
    power_state: str = os.getenv("KSZ_POWER_STATE", "mem")
    # Log the action instead of performing it.
    dry_run: bool = _env_bool("KSZ_DRY_RUN", False)

    # Health / status endpoints
    health_host: str = os.getenv("KSZ_HEALTH_HOST", "0.0.0.0")
    health_port: int = _env_int("KSZ_HEALTH_PORT", 8081)


settings = Settings()
