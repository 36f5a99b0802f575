from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Status store (written by every probe, read by the services probe)
    status_db_path: str = "data/status.db"

    # Data stores; an empty path disables the matching freshness probe
    primary_db_path: str = ""
    secondary_db_path: str = ""

    # Reachability targets
    site_domain: str = "beaconcha.in"
    redis_cache_endpoint: str = ""  # host:port, empty = no cache probe

    # Expected-service registry override (YAML, optional)
    services_file: str = "services.yaml"

    # Scheduling + bounds (seconds)
    probe_interval_seconds: float = 60.0
    store_timeout_seconds: float = 60.0
    cache_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 10.0

    # Chain parameters (mainnet)
    genesis_timestamp: int = 1606824023
    seconds_per_slot: int = 12
    slots_per_epoch: int = 32

    # Recorded on every status row
    executable_name: str = "beaconwatch"

    # Logging
    log_level: str = "INFO"


settings = Settings()
