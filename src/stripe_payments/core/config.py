"""
Configuration objects and validation for the client.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Union

from .auth import Authenticator, StaticKeyAuthenticator
from .environment import build_environment
from .errors import ConfigError
from .version import API_VERSION

__all__ = [
    "ALLOWED_CONFIG_KEYS",
    "AppInfo",
    "ClientConfig",
    "ConfigError",
    "DEFAULT_MAX_NETWORK_RETRIES",
    "DEFAULT_TIMEOUT_MS",
    "load_client_config",
    "validate_config",
]

DEFAULT_HOST = "api.stripe.com"
DEFAULT_PORT = 443
DEFAULT_PROTOCOL = "https"
DEFAULT_MAX_NETWORK_RETRIES = 2
DEFAULT_TIMEOUT_MS = 80000

ALLOWED_CONFIG_KEYS = (
    "api_version",
    "typescript",
    "max_network_retries",
    "http_client",
    "timeout",
    "host",
    "port",
    "protocol",
    "telemetry",
    "app_info",
    "stripe_account",
    "stripe_context",
    "authenticator",
)

_APP_INFO_KEYS = ("name", "version", "url", "partner_id")


@dataclass(frozen=True)
class AppInfo:
    """Identifies the application built on top of the client."""

    name: str
    version: Optional[str] = None
    url: Optional[str] = None
    partner_id: Optional[str] = None

    def as_dict(self) -> Dict[str, str]:
        values = {key: getattr(self, key) for key in _APP_INFO_KEYS}
        return {key: value for key, value in values.items() if value is not None}

    def as_string(self) -> str:
        formatted = self.name
        if self.version:
            formatted += f"/{self.version}"
        if self.url:
            formatted += f" ({self.url})"
        return formatted


@dataclass(frozen=True)
class ClientConfig:
    authenticator: Authenticator
    api_key: Optional[str] = None
    api_version: str = API_VERSION
    max_network_retries: int = DEFAULT_MAX_NETWORK_RETRIES
    timeout: int = DEFAULT_TIMEOUT_MS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    app_info: Optional[AppInfo] = None
    stripe_account: Optional[str] = None
    stripe_context: Optional[str] = None
    telemetry: bool = True
    typescript: bool = False
    http_client: Any = None

    @property
    def base_url(self) -> str:
        default_port = {"https": 443, "http": 80}.get(self.protocol)
        if self.port == default_port:
            return f"{self.protocol}://{self.host}"
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    def with_timeout(self, timeout: Optional[int]) -> "ClientConfig":
        if timeout is None:
            return replace(self, timeout=DEFAULT_TIMEOUT_MS)
        if not _is_integer(timeout) or timeout <= 0:
            raise ConfigError("timeout must be a positive integer")
        return replace(self, timeout=timeout)

    def with_max_network_retries(self, max_network_retries: Any) -> "ClientConfig":
        if not _is_integer(max_network_retries) or max_network_retries < 0:
            raise ConfigError("max_network_retries must be an integer")
        return replace(self, max_network_retries=max_network_retries)

    def with_telemetry(self, enabled: bool) -> "ClientConfig":
        if not isinstance(enabled, bool):
            raise ConfigError("telemetry must be a boolean")
        return replace(self, telemetry=enabled)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_app_info(raw: Any) -> Optional[AppInfo]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigError("app_info must be a mapping")
    if not raw.get("name"):
        raise ConfigError("app_info.name is required")
    return AppInfo(**{key: raw[key] for key in _APP_INFO_KEYS if raw.get(key) is not None})


def _normalize_config_input(config: Any) -> Dict[str, Any]:
    if config is None:
        return {}
    if isinstance(config, str):
        return {"api_version": config} if config else {}
    if not isinstance(config, Mapping):
        raise ConfigError("Config must either be a mapping or a string")

    unknown = [key for key in config if key not in ALLOWED_CONFIG_KEYS]
    if unknown:
        raise ConfigError(
            "Config may only contain the following: " + ", ".join(ALLOWED_CONFIG_KEYS)
        )
    return dict(config)


def validate_config(
    api_key_or_authenticator: Union[str, Authenticator, None],
    config: Any = None,
) -> ClientConfig:
    """
    Validate the constructor arguments and return an immutable config.

    ``config`` may be a mapping of the keys in :data:`ALLOWED_CONFIG_KEYS`, a
    string naming the API version, or ``None``. Numeric fields that fail
    integer coercion fall back to their defaults instead of raising.
    """
    values = _normalize_config_input(config)

    api_key: Optional[str] = None
    authenticator = values.get("authenticator")
    if isinstance(api_key_or_authenticator, Authenticator):
        if authenticator is not None:
            raise ConfigError("Can't specify both api_key and authenticator")
        authenticator = api_key_or_authenticator
    elif api_key_or_authenticator:
        if authenticator is not None:
            raise ConfigError("Can't specify both api_key and authenticator")
        api_key = api_key_or_authenticator
        authenticator = StaticKeyAuthenticator(api_key)

    if authenticator is None:
        raise ConfigError("Neither api_key nor config.authenticator provided")
    if not isinstance(authenticator, Authenticator):
        raise ConfigError("authenticator must be an Authenticator instance")

    max_network_retries = values.get("max_network_retries")
    if not _is_integer(max_network_retries) or max_network_retries < 0:
        max_network_retries = DEFAULT_MAX_NETWORK_RETRIES

    timeout = values.get("timeout")
    if not _is_integer(timeout) or timeout <= 0:
        timeout = DEFAULT_TIMEOUT_MS

    port = values.get("port")
    if not _is_integer(port) or port <= 0:
        port = DEFAULT_PORT

    return ClientConfig(
        authenticator=authenticator,
        api_key=api_key,
        api_version=values.get("api_version") or API_VERSION,
        max_network_retries=max_network_retries,
        timeout=timeout,
        host=values.get("host") or DEFAULT_HOST,
        port=port,
        protocol=values.get("protocol") or DEFAULT_PROTOCOL,
        app_info=_validate_app_info(values.get("app_info")),
        stripe_account=values.get("stripe_account"),
        stripe_context=values.get("stripe_context"),
        telemetry=values.get("telemetry") is not False,
        typescript=values.get("typescript") is True,
        http_client=values.get("http_client"),
    )


def load_client_config(
    *,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    api_key: Optional[str] = None,
    authenticator: Optional[Authenticator] = None,
) -> ClientConfig:
    """
    Build a :class:`ClientConfig` from ``STRIPE_*`` environment variables.

    Values are layered the same way as :func:`build_environment`: the process
    environment, then the ``.env`` file, then ``overrides``. An explicit
    ``api_key`` or ``authenticator`` wins over ``STRIPE_API_KEY``.
    """
    environment = build_environment(env_file=env_file, base=base, overrides=overrides)
    values = environment.config_values()

    if authenticator is not None:
        values["authenticator"] = authenticator
        return validate_config(None, values)

    return validate_config(api_key or environment.api_key, values)
