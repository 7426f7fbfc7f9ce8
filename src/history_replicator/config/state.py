"""
Unified configuration state for history-replicator.

Single source of truth for backend connection strings, upstream API settings,
retry behaviour, the ingestion loop, the read API and logging. Combines
optional YAML files with environment overrides, type validation and defaults.
"""

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from history_replicator.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# 2022-04-01T00:00:00Z, first hour the upstream resource has history for
DEFAULT_CURSOR_EPOCH = 1648771200
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 400


# =============================================================================
# PYDANTIC MODELS - Type-Safe Configuration
# =============================================================================


class BackendsConfig(BaseModel):
    """One connection string / path per store. ``None`` means not configured."""

    model_config = ConfigDict(extra="allow")

    postgres_url: str | None = Field(default=None)
    postgres_pool_size: int = Field(default=5, ge=1, le=100)
    postgres_acquire_timeout: float = Field(default=3.0, gt=0)

    mongodb_url: str | None = Field(default=None)
    mongodb_database: str = Field(default="runepool")

    leveldb_path: str | None = Field(default=None)
    rocksdb_path: str | None = Field(default=None)

    surreal_url: str | None = Field(default=None)
    surreal_namespace: str = Field(default="runepool")
    surreal_database: str = Field(default="runepool")
    surreal_user: str = Field(default="root")
    surreal_password: str = Field(default="root")

    table: str = Field(default="unit_intervals")

    @field_validator("postgres_url")
    @classmethod
    def validate_postgres_url(cls, v: str | None) -> str | None:
        if not v or v.startswith(("postgresql://", "postgres://")):
            return v
        raise ValueError("Postgres URL must start with postgresql:// or postgres://")

    @field_validator("surreal_url")
    @classmethod
    def validate_surreal_url(cls, v: str | None) -> str | None:
        if not v:
            return v
        # The SDK-style ws:// / wss:// URLs map onto the HTTP endpoint
        for ws, http in (("wss://", "https://"), ("ws://", "http://")):
            if v.startswith(ws):
                v = http + v[len(ws) :]
        if not v.startswith(("http://", "https://")):
            raise ValueError("SurrealDB URL must be http(s):// or ws(s)://")
        return v.rstrip("/").removesuffix("/rpc")


class UpstreamConfig(BaseModel):
    """Upstream metrics API configuration."""

    model_config = ConfigDict(extra="allow")

    base_url: str = Field(default="https://midgard.ninerealms.com/v2")
    resource: str = Field(default="runepool")
    interval: str = Field(default="hour")
    rate_limit_marker: str = Field(default="slow down")
    timeout: float = Field(default=30.0, gt=0)
    body_preview_chars: int = Field(default=500, ge=0)


class RetrySettings(BaseModel):
    """Retry behaviour for upstream fetches. Defaults retry forever, fixed delay."""

    model_config = ConfigDict(extra="allow")

    max_attempts: int | None = Field(default=None, ge=1)
    delay: float = Field(default=5.0, ge=0)
    backoff_multiplier: float = Field(default=1.0, ge=1.0)
    max_delay: float = Field(default=60.0, ge=0)
    max_elapsed: float | None = Field(default=None, gt=0)


class IngestionConfig(BaseModel):
    """Polling loop and cursor persistence."""

    model_config = ConfigDict(extra="allow")

    batch_size: int = Field(default=400, ge=1, le=400)
    poll_interval: float = Field(default=3.0, ge=0)
    initial_cursor: int = Field(default=DEFAULT_CURSOR_EPOCH, ge=0)
    cursor_dir: str | None = Field(default=None)
    cursor_bucket: str | None = Field(default=None)
    cursor_endpoint: str | None = Field(default=None)
    cursor_key: str = Field(default="cursors/unit_intervals.json")


class ReplicationConfig(BaseModel):
    """How per-store write failures affect a batch (values of ``AggregationPolicy``)."""

    model_config = ConfigDict(extra="allow")

    policy: Literal["all_or_nothing", "best_effort"] = Field(default="all_or_nothing")

    @field_validator("policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: Any) -> Any:
        return v.strip().lower().replace("-", "_") if isinstance(v, str) else v


class ApiConfig(BaseModel):
    """Read API settings."""

    model_config = ConfigDict(extra="allow")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)
    strict_sort: bool = Field(default=False)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="allow")

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)


class MetricsConfig(BaseModel):
    """Operation metrics output."""

    model_config = ConfigDict(extra="allow")

    metrics_file: str | None = Field(default=None)


class ConfigState(BaseModel):
    """
    Root configuration state - single source of truth for all app config.
    """

    model_config = ConfigDict(extra="allow")

    backends: BackendsConfig = Field(default_factory=BackendsConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    replication: ReplicationConfig = Field(default_factory=ReplicationConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    env: str = Field(default="dev")
    config_dir: str = Field(default="./config")


# =============================================================================
# CONFIG LOADER - Clean, Validated Loading
# =============================================================================

# (env var, section, key, converter)
ENV_OVERRIDES: list[tuple[str, str, str, Any]] = [
    ("DATABASE_URL", "backends", "postgres_url", str),
    ("MONGODB_URL", "backends", "mongodb_url", str),
    ("MONGODB_DATABASE", "backends", "mongodb_database", str),
    ("LEVELDB_PATH", "backends", "leveldb_path", str),
    ("ROCKSDB_PATH", "backends", "rocksdb_path", str),
    ("SURREAL_DATABASE_URL", "backends", "surreal_url", str),
    ("SURREAL_NAMESPACE", "backends", "surreal_namespace", str),
    ("SURREAL_DATABASE", "backends", "surreal_database", str),
    ("SURREAL_USER", "backends", "surreal_user", str),
    ("SURREAL_PASSWORD", "backends", "surreal_password", str),
    ("MIDGARD_API_URL", "upstream", "base_url", str),
    ("FETCH_MAX_ATTEMPTS", "retry", "max_attempts", int),
    ("FETCH_RETRY_DELAY", "retry", "delay", float),
    ("INGEST_BATCH_SIZE", "ingestion", "batch_size", int),
    ("INGEST_POLL_INTERVAL", "ingestion", "poll_interval", float),
    ("CURSOR_DIR", "ingestion", "cursor_dir", str),
    ("CURSOR_BUCKET", "ingestion", "cursor_bucket", str),
    ("CURSOR_ENDPOINT", "ingestion", "cursor_endpoint", str),
    ("REPLICATION_POLICY", "replication", "policy", str),
    ("API_PORT", "api", "port", int),
    ("LOG_LEVEL", "logging", "level", str),
    ("METRICS_FILE", "metrics", "metrics_file", str),
]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


class ConfigLoader:
    """
    Load and validate configuration from YAML files.

    Merges:
      1. Global defaults (hardcoded)
      2. YAML files from config_dir
      3. Environment-specific YAML (env/<env>.yaml)
      4. Environment variable overrides
    """

    CONFIG_FILES = ("backends.yaml", "upstream.yaml", "ingestion.yaml", "api.yaml")

    def __init__(self, config_dir: str = "./config", environ: dict[str, str] | None = None):
        self.config_dir = Path(config_dir)
        self.environ = dict(os.environ) if environ is None else environ
        self._yaml_cache: dict[Path, Any] = {}
        self.env = self.environ.get("REPLICATOR_ENV", "dev")

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML file with caching."""
        if path in self._yaml_cache:
            return self._yaml_cache[path]

        if not path.exists():
            logger.debug(f"Config file not found (using defaults): {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        self._yaml_cache[path] = data
        return data

    def _apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config."""
        for env_name, section, key, convert in ENV_OVERRIDES:
            raw = self.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                config.setdefault(section, {})[key] = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e

        if (json_logs := self.environ.get("LOG_JSON")) is not None:
            config.setdefault("logging", {})["json_logs"] = _parse_bool(json_logs)
        if (strict := self.environ.get("API_STRICT_SORT")) is not None:
            config.setdefault("api", {})["strict_sort"] = _parse_bool(strict)

        return config

    def _merge_dicts(self, base: dict, override: dict) -> dict:
        """Deep merge override into base dict."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def load(self) -> ConfigState:
        """
        Load complete configuration state.

        Raises:
            ConfigurationError: If a file is unreadable or a value is invalid
        """
        logger.info(f"Loading configuration from {self.config_dir} (env: {self.env})")

        config: dict[str, Any] = {}
        for config_file in self.CONFIG_FILES:
            config = self._merge_dicts(config, self._load_yaml(self.config_dir / config_file))

        env_config = self._load_yaml(self.config_dir / "env" / f"{self.env}.yaml")
        config = self._merge_dicts(config, env_config)

        config = self._apply_env_overrides(config)

        try:
            state = ConfigState(env=self.env, config_dir=str(self.config_dir), **config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        configured = [
            name
            for name, value in (
                ("postgres", state.backends.postgres_url),
                ("mongodb", state.backends.mongodb_url),
                ("leveldb", state.backends.leveldb_path),
                ("rocksdb", state.backends.rocksdb_path),
                ("surrealdb", state.backends.surreal_url),
            )
            if value
        ]
        logger.info(
            f"✅ Configuration loaded: backends={configured or 'none'}, "
            f"upstream={state.upstream.base_url}, batch={state.ingestion.batch_size}"
        )
        return state


def load_config(
    config_dir: str | None = None, environ: dict[str, str] | None = None
) -> ConfigState:
    """
    Load and return the configuration state.

    Args:
        config_dir: Override config directory. Defaults to $REPLICATOR_CONFIG_DIR or ./config
        environ: Environment mapping (defaults to os.environ)
    """
    env = dict(os.environ) if environ is None else environ
    if config_dir is None:
        config_dir = env.get("REPLICATOR_CONFIG_DIR", "./config")
        if not Path(config_dir).exists():
            logger.warning(f"Config directory not found at {config_dir}, using defaults")

    return ConfigLoader(config_dir=config_dir, environ=env).load()


__all__ = [
    "ApiConfig",
    "BackendsConfig",
    "ConfigLoader",
    "ConfigState",
    "DEFAULT_CURSOR_EPOCH",
    "DEFAULT_PAGE_SIZE",
    "IngestionConfig",
    "LoggingConfig",
    "MAX_PAGE_SIZE",
    "MetricsConfig",
    "ReplicationConfig",
    "RetrySettings",
    "UpstreamConfig",
    "load_config",
]
