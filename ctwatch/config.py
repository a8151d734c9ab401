"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Minimum delay between poll rounds in milliseconds.
# The backend serves every dashboard from the same process; sub-second polling only adds load.
MIN_POLL_INTERVAL_MS = 1000

# Workers in each endpoint's pool.
MIN_POLL_WORKERS = 1

DEFAULT_LOOKUP_URL_TEMPLATE = "https://crt.sh/?q={tbs_sha256}"


@dataclass(frozen=True)
class BackendConfig:
    """Connection settings for the match feed backend."""

    base_url: str = "http://localhost:8080"
    timeout: int = 10  # seconds per request, a timeout counts as a failed poll
    user_agent: str = "ctwatch/0.1"

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("Backend base_url cannot be empty")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"Backend base_url must start with http:// or https://, got '{self.base_url}'")
        if self.timeout < 1:
            raise ConfigError(f"Backend timeout must be at least 1 second (got {self.timeout})")
        if not self.user_agent:
            raise ConfigError("User-Agent cannot be empty")


@dataclass(frozen=True)
class PollerConfig:
    """Configuration for the polling scheduler."""

    interval_ms: int = 5000
    discard_stale: bool = True  # drop responses that arrive after a newer one was applied
    max_workers: int = 3  # per endpoint
    performance_minutes: int = 60

    def __post_init__(self) -> None:
        if self.interval_ms < MIN_POLL_INTERVAL_MS:
            raise ConfigError(
                f"Poll interval must be at least {MIN_POLL_INTERVAL_MS} ms (got {self.interval_ms})"
            )
        if self.max_workers < MIN_POLL_WORKERS:
            raise ConfigError(f"Poller max_workers must be at least {MIN_POLL_WORKERS} (got {self.max_workers})")
        if self.performance_minutes < 1:
            raise ConfigError(f"Performance window must be at least 1 minute (got {self.performance_minutes})")

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000


@dataclass(frozen=True)
class ViewConfig:
    """Configuration for the match table."""

    page_size: int = 20
    time_window_minutes: int = 60
    lookup_url_template: str = DEFAULT_LOOKUP_URL_TEMPLATE

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ConfigError(f"Page size must be at least 1 (got {self.page_size})")
        if self.time_window_minutes < 1:
            raise ConfigError(f"Time window must be at least 1 minute (got {self.time_window_minutes})")
        if "{tbs_sha256}" not in self.lookup_url_template:
            raise ConfigError("lookup_url_template must contain the '{tbs_sha256}' placeholder")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    view: ViewConfig = field(default_factory=ViewConfig)


def _section(data: dict, name: str) -> dict:
    """Return a config section as a dictionary, treating a missing section as empty."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a dictionary")
    return section


def _parse_backend_config(data: dict) -> BackendConfig:
    """Parse backend configuration section."""
    defaults = BackendConfig()
    return BackendConfig(
        base_url=str(data.get("base_url", defaults.base_url)),
        timeout=int(data.get("timeout", defaults.timeout)),
        user_agent=str(data.get("user_agent", defaults.user_agent)),
    )


def _parse_poller_config(data: dict) -> PollerConfig:
    """Parse poller configuration section."""
    defaults = PollerConfig()
    return PollerConfig(
        interval_ms=int(data.get("interval_ms", defaults.interval_ms)),
        discard_stale=bool(data.get("discard_stale", defaults.discard_stale)),
        max_workers=int(data.get("max_workers", defaults.max_workers)),
        performance_minutes=int(data.get("performance_minutes", defaults.performance_minutes)),
    )


def _parse_view_config(data: dict) -> ViewConfig:
    """Parse view configuration section."""
    defaults = ViewConfig()
    return ViewConfig(
        page_size=int(data.get("page_size", defaults.page_size)),
        time_window_minutes=int(data.get("time_window_minutes", defaults.time_window_minutes)),
        lookup_url_template=str(data.get("lookup_url_template", defaults.lookup_url_template)),
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - CTWATCH_BACKEND_URL: Override backend.base_url
    - CTWATCH_BACKEND_TIMEOUT: Override backend.timeout
    - CTWATCH_POLL_INTERVAL_MS: Override poller.interval_ms
    - CTWATCH_PAGE_SIZE: Override view.page_size
    - CTWATCH_TIME_WINDOW: Override view.time_window_minutes
    """
    for section in ("backend", "poller", "view"):
        if config_data.get(section) is None:
            config_data[section] = {}

    overrides = (
        ("CTWATCH_BACKEND_URL", "backend", "base_url", str),
        ("CTWATCH_BACKEND_TIMEOUT", "backend", "timeout", int),
        ("CTWATCH_POLL_INTERVAL_MS", "poller", "interval_ms", int),
        ("CTWATCH_PAGE_SIZE", "view", "page_size", int),
        ("CTWATCH_TIME_WINDOW", "view", "time_window_minutes", int),
    )
    for env_name, section, key, convert in overrides:
        value = os.environ.get(env_name)
        if value is None:
            continue
        if not isinstance(config_data[section], dict):
            raise ConfigError(f"'{section}' section must be a dictionary")
        try:
            config_data[section][key] = convert(value)
        except ValueError:
            raise ConfigError(f"Invalid value for {env_name}: {value!r}")

    return config_data


def build_config(data: dict) -> Config:
    """Validate a raw configuration dictionary and apply environment overrides.

    Raises:
        ConfigError: If any section is invalid.
    """
    data = _apply_env_overrides(data)
    try:
        return Config(
            backend=_parse_backend_config(_section(data, "backend")),
            poller=_parse_poller_config(_section(data, "poller")),
            view=_parse_view_config(_section(data, "view")),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}")


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    return build_config(data)
