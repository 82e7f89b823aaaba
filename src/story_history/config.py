"""Application settings: immutable dataclasses populated from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on"}


def _env(key: str, default: str = "") -> str:
    """Read an environment variable, falling back to ``default``."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    raw = _env(key)
    return int(raw) if raw else default


def _env_float(key: str, default: float) -> float:
    raw = _env(key)
    return float(raw) if raw else default


def _env_bool(key: str, default: bool = False) -> bool:
    raw = _env(key)
    if not raw:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class CosmosConfig:
    endpoint: str = field(default_factory=lambda: _env("COSMOS_ENDPOINT"))
    key: str = field(default_factory=lambda: _env("COSMOS_KEY"))
    database: str = field(default_factory=lambda: _env("COSMOS_DATABASE", "story-history"))
    container: str = field(default_factory=lambda: _env("COSMOS_CONTAINER", "revisions"))


@dataclass(frozen=True)
class RemoteConfig:
    """Connection details for the work-item tracking service."""

    base_url: str = field(
        default_factory=lambda: _env(
            "RALLY_BASE_URL", "https://rally1.rallydev.com/slm/webservice/v2.0"
        )
    )
    lookback_url: str = field(
        default_factory=lambda: _env(
            "RALLY_LOOKBACK_URL", "https://rally1.rallydev.com/analytics/v2.0/service/rally"
        )
    )
    api_key: str = field(default_factory=lambda: _env("RALLY_API_KEY"))
    workspace_id: str = field(default_factory=lambda: _env("RALLY_WORKSPACE_ID"))
    timeout_s: float = field(default_factory=lambda: _env_float("RALLY_TIMEOUT_S", 30.0))

    @property
    def headers(self) -> dict[str, str]:
        return {"ZSESSIONID": self.api_key, "Accept": "application/json"}


@dataclass(frozen=True)
class FetchConfig:
    """Fetch layer behaviour, fixed at construction time."""

    cache_enabled: bool = field(default_factory=lambda: _env_bool("FETCH_CACHE_ENABLED"))
    cache_dir: str = field(default_factory=lambda: _env("FETCH_CACHE_DIR", "cached-responses"))
    max_in_flight: int = field(default_factory=lambda: _env_int("FETCH_MAX_IN_FLIGHT", 100))


@dataclass(frozen=True)
class ServiceBusConfig:
    connection_string: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_CONNECTION_STRING")
    )
    topic_name: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_TOPIC_NAME", "story-updates")
    )
    subscription_name: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_SUBSCRIPTION_NAME", "story-history")
    )


@dataclass(frozen=True)
class MonitorConfig:
    connection_string: str = field(
        default_factory=lambda: _env("APPLICATIONINSIGHTS_CONNECTION_STRING")
    )


@dataclass(frozen=True)
class AppConfig:
    env: str = field(default_factory=lambda: _env("APP_ENV", "development"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: _env("LOG_FILE"))
    field_config_dir: str = field(default_factory=lambda: _env("FIELD_CONFIG_DIR", "config"))

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@dataclass(frozen=True)
class Settings:
    """All configuration sections, read once at process start."""

    cosmos: CosmosConfig = field(default_factory=CosmosConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    servicebus: ServiceBusConfig = field(default_factory=ServiceBusConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    app: AppConfig = field(default_factory=AppConfig)


def load_settings() -> Settings:
    """Load ``.env`` (if present) and build the settings tree."""
    load_dotenv()
    return Settings()
