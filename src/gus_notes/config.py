"""Connection configuration and application settings.

:class:`GusConfig` is the immutable value passed into every core entry
point. Defaults live in :data:`DEFAULT_GUS_CONFIG`; callers override
individual fields per call and :func:`resolve_config` performs the merge once
at the boundary.

:class:`Settings` holds the wider application settings used by the CLI and is
the only place environment variables are read.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import msgspec

from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger("config")

DEFAULT_INSTANCE = "gus.my.salesforce.com"
DEFAULT_CLIENT_ID = "PlatformCLI"
DEFAULT_REDIRECT_URI = "http://localhost:1717/OauthRedirect"
DEFAULT_SCOPES = "refresh_token api web"
DEFAULT_API_VERSION = "v51.0"
DEFAULT_CALLBACK_PORT = 1717
CALLBACK_TIMEOUT_SECONDS = 5 * 60
DEFAULT_TOKEN_MAX_AGE_HOURS = 8.0


class GusConfig(msgspec.Struct, frozen=True, kw_only=True):
    """Connection settings for one GUS org."""

    instance: str = DEFAULT_INSTANCE
    client_id: str = DEFAULT_CLIENT_ID
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: str = DEFAULT_SCOPES
    api_version: str = DEFAULT_API_VERSION
    default_team: str | None = None
    default_product_tag: str | None = None

    @property
    def base_url(self) -> str:
        """Instance URL with a scheme and without a trailing slash."""
        return instance_base_url(self.instance)

    @property
    def redirect_path(self) -> str:
        """Path component of the redirect URI (the listener's only route)."""
        return urlsplit(self.redirect_uri).path or "/"

    @property
    def redirect_port(self) -> int | None:
        """Port component of the redirect URI, if any."""
        return urlsplit(self.redirect_uri).port


DEFAULT_GUS_CONFIG = GusConfig()

_CONFIG_FIELDS = frozenset(GusConfig.__struct_fields__)


def instance_base_url(instance: str) -> str:
    """Return ``instance`` as an absolute URL without a trailing slash."""
    base = instance if instance.startswith("http") else f"https://{instance}"
    return base.rstrip("/")


def resolve_config(
    overrides: GusConfig | Mapping[str, Any] | None = None,
    *,
    defaults: GusConfig = DEFAULT_GUS_CONFIG,
) -> GusConfig:
    """Merge caller overrides onto the defaults.

    Args:
        overrides: A complete :class:`GusConfig`, a partial mapping of field
            names to values, or None. Mapping entries whose value is None
            fall back to the default.
        defaults: Base configuration to merge onto

    Returns:
        GusConfig: The effective configuration

    Raises:
        ConfigurationError: If the mapping names an unknown field
    """
    if overrides is None:
        return defaults
    if isinstance(overrides, GusConfig):
        return overrides

    unknown = set(overrides) - _CONFIG_FIELDS
    if unknown:
        raise ConfigurationError(
            f"Unknown GUS config field(s): {', '.join(sorted(unknown))}"
        )
    changes = {key: value for key, value in overrides.items() if value is not None}
    return msgspec.structs.replace(defaults, **changes)


# --------------------------------------------------------------------------- #
# Application settings                                                        #
# --------------------------------------------------------------------------- #
class Settings(msgspec.Struct, kw_only=True):
    """Application settings for the CLI front-end."""

    gus: GusConfig = DEFAULT_GUS_CONFIG
    token_max_age_hours: float = DEFAULT_TOKEN_MAX_AGE_HOURS
    callback_port: int | None = None
    login_timeout: float = CALLBACK_TIMEOUT_SECONDS
    # 'file', 'memory' or 'redis'
    token_storage: str = "file"
    settings_file: Path = Path.home() / ".gus-notes" / "data.json"
    redis_url: str | None = None
    storage_encryption_key: str | None = None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    """Load settings from environment variables.

    Environment variables:
        GUS_INSTANCE, GUS_CLIENT_ID, GUS_REDIRECT_URI, GUS_SCOPES,
        GUS_API_VERSION, GUS_DEFAULT_TEAM, GUS_DEFAULT_PRODUCT_TAG:
            Override the matching :class:`GusConfig` field
        GUS_TOKEN_MAX_AGE_HOURS: Cached token lifetime (default: 8)
        GUS_CALLBACK_PORT: Listener port (default: redirect URI port)
        GUS_LOGIN_TIMEOUT: Seconds to wait for the browser callback (default: 300)
        GUS_TOKEN_STORAGE: 'file' (default), 'memory' or 'redis'
        GUS_SETTINGS_FILE: JSON settings file (default: ~/.gus-notes/data.json)
        REDIS_URL: Redis connection URL for 'redis' storage
        STORAGE_ENCRYPTION_KEY: Fernet key for encrypted key-value storage
    """
    gus = resolve_config(
        {
            "instance": os.getenv("GUS_INSTANCE") or None,
            "client_id": os.getenv("GUS_CLIENT_ID") or None,
            "redirect_uri": os.getenv("GUS_REDIRECT_URI") or None,
            "scopes": os.getenv("GUS_SCOPES") or None,
            "api_version": os.getenv("GUS_API_VERSION") or None,
            "default_team": os.getenv("GUS_DEFAULT_TEAM") or None,
            "default_product_tag": os.getenv("GUS_DEFAULT_PRODUCT_TAG") or None,
        }
    )

    port_raw = os.getenv("GUS_CALLBACK_PORT")
    callback_port: int | None = None
    if port_raw:
        if not port_raw.isdigit():
            raise ConfigurationError(f"GUS_CALLBACK_PORT must be an integer, got {port_raw!r}")
        callback_port = int(port_raw)

    settings_file = os.getenv("GUS_SETTINGS_FILE")

    settings = Settings(
        gus=gus,
        token_max_age_hours=_env_float("GUS_TOKEN_MAX_AGE_HOURS", DEFAULT_TOKEN_MAX_AGE_HOURS),
        callback_port=callback_port,
        login_timeout=_env_float("GUS_LOGIN_TIMEOUT", CALLBACK_TIMEOUT_SECONDS),
        token_storage=os.getenv("GUS_TOKEN_STORAGE", "file").lower(),
        settings_file=(
            Path(settings_file).expanduser()
            if settings_file
            else Path.home() / ".gus-notes" / "data.json"
        ),
        redis_url=os.getenv("REDIS_URL") or None,
        storage_encryption_key=os.getenv("STORAGE_ENCRYPTION_KEY") or None,
    )

    logger.debug(
        "Loaded settings: instance=%s, storage=%s, max_age_hours=%s",
        settings.gus.instance,
        settings.token_storage,
        settings.token_max_age_hours,
    )
    return settings
