"""Configuration models using Pydantic.

Settings come from an optional YAML file and are then overridden by
``KEVFEED_*`` environment variables (read by pydantic-settings), so a
container can run with no file at all. Structured fields such as
``http_timeout`` take JSON in the environment, e.g. ``KEVFEED_HTTP_TIMEOUT="[5, 30]"``.
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .cache import UPSTREAM_KV_KEY, FileStore, KeyValueStore, MemoryStore
from .downloaders import CISA_KEV_URL, DEFAULT_HTTP_TIMEOUT

ENV_PREFIX = "KEVFEED_"


class Settings(BaseSettings):
    """Validated service configuration.

    Example YAML::

        upstream_url: https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json
        http_timeout: [10, 120]
        fetch_attempts: 1
        cache_mode: cache
        cache_backend: file
        cache_dir: $KEVFEED_DATA
        log_level: INFO

    Attributes:
        upstream_url: Catalog URL.
        http_timeout: ``(connect, read)`` seconds for the upstream GET.
        fetch_attempts: Total attempts per fetch; ``1`` means no retries.
        cache_mode: ``cache`` reads through the store, ``direct`` always
            fetches upstream.
        cache_backend: ``memory`` or ``file``.
        cache_dir: Directory for the ``file`` backend.
        cache_key: Key the catalog snapshot is stored under.
        feed_path: Route serving the RSS document.
        json_path: Route serving the pass-through upstream JSON.
        log_level: Root log level.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    upstream_url: str = CISA_KEV_URL
    http_timeout: tuple[float, float] = DEFAULT_HTTP_TIMEOUT
    fetch_attempts: int = Field(default=1, ge=1, le=10)
    cache_mode: Literal["cache", "direct"] = "cache"
    cache_backend: Literal["memory", "file"] = "memory"
    cache_dir: Path = Path(".kevfeed-cache")
    cache_key: str = Field(default=UPSTREAM_KV_KEY, min_length=1)
    feed_path: str = "/rss.xml"
    json_path: str = "/feed.json"
    log_level: str = "INFO"

    @field_validator("feed_path", "json_path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        """Routes are always absolute."""
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment wins over values passed in from the YAML file."""
        return env_settings, init_settings


def _resolve_env(value: Any) -> Any:
    """Resolve ``$ENV_VAR`` references in string values.

    Unset variables resolve to ``None`` so the field falls back to its default.
    """
    if isinstance(value, str) and value.startswith("$"):
        return os.environ.get(value[1:])
    return value


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a YAML file plus environment overrides.

    Args:
        path: Optional YAML file. When ``None``, ``find_config()`` is used
            and a missing file simply means defaults.

    Returns:
        Validated ``Settings`` instance.

    Raises:
        FileNotFoundError: if an explicit ``path`` doesn't exist.
        pydantic.ValidationError: if content fails validation.
    """
    raw: dict[str, Any] = {}
    if path is None:
        found = find_config()
        path = Path(found) if found else None
    if path is not None:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{path} must contain a mapping at the top level")
        raw = {k: v for k, v in ((k, _resolve_env(v)) for k, v in loaded.items()) if v is not None}

    return Settings(**raw)


def find_config() -> str | None:
    """Find the config file named by ``KEVFEED_CONFIG`` or in the working directory.

    Returns:
        Path of the first existing config file, or ``None``.
    """
    explicit = os.environ.get(ENV_PREFIX + "CONFIG")
    if explicit:
        return explicit
    for name in ("kevfeed.yaml", "kevfeed.yml"):
        if Path(name).exists():
            return name
    return None


def build_store(settings: Settings) -> KeyValueStore:
    """Create the key-value store selected by ``cache_backend``."""
    if settings.cache_backend == "file":
        return FileStore(settings.cache_dir)
    return MemoryStore()
