"""
Environment layering for ``STRIPE_*`` settings.

Values come from the process environment, an optional ``.env`` file and
explicit overrides, in increasing order of precedence. The resolved
:class:`StripeEnvironment` translates them into client config values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple

from .errors import ConfigError

__all__ = [
    "StripeEnvironment",
    "build_environment",
    "load_env_file",
    "parse_env_text",
]

# Environment variable -> config key.
_CONFIG_VARIABLES = {
    "STRIPE_API_VERSION": "api_version",
    "STRIPE_HOST": "host",
    "STRIPE_PROTOCOL": "protocol",
    "STRIPE_ACCOUNT": "stripe_account",
    "STRIPE_CONTEXT": "stripe_context",
}
_INTEGER_VARIABLES = {
    "STRIPE_MAX_NETWORK_RETRIES": "max_network_retries",
    "STRIPE_TIMEOUT_MS": "timeout",
    "STRIPE_PORT": "port",
}
_APP_INFO_VARIABLES = {
    "STRIPE_APP_NAME": "name",
    "STRIPE_APP_VERSION": "version",
    "STRIPE_APP_URL": "url",
    "STRIPE_APP_PARTNER_ID": "partner_id",
}
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


def _iter_assignments(text: str) -> Iterator[Tuple[str, str]]:
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        yield key.strip(), value


def parse_env_text(text: str) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines; comments, blanks and ``export`` are tolerated."""
    return dict(_iter_assignments(text))


def _read_env_file(path: Optional[str]) -> Dict[str, str]:
    if path is None:
        return {}
    try:
        return parse_env_text(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}


def load_env_file(
    path: str = ".env",
    *,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Copy ``path`` into ``environ`` (default :data:`os.environ`), keeping keys
    that are already set, and return the merged values.
    """
    target = os.environ if environ is None else environ
    for key, value in _read_env_file(path).items():
        target.setdefault(key, value)
    return dict(target)


@dataclass(frozen=True)
class StripeEnvironment:
    variables: Mapping[str, str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.variables.get(key)
        return default if value in (None, "") else value

    def get_int(self, key: str) -> Optional[int]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer, got '{raw}'") from exc

    @property
    def api_key(self) -> Optional[str]:
        return self.get("STRIPE_API_KEY")

    def webhook_secrets(self) -> List[str]:
        """``STRIPE_WEBHOOK_SECRET`` split on commas, for secret rotation."""
        raw = self.get("STRIPE_WEBHOOK_SECRET", "")
        return [secret.strip() for secret in raw.split(",") if secret.strip()]

    def config_values(self) -> Dict[str, Any]:
        """Client config keys derived from the ``STRIPE_*`` variables that are set."""
        values: Dict[str, Any] = {
            key: self.get(name)
            for name, key in _CONFIG_VARIABLES.items()
            if self.get(name) is not None
        }
        for name, key in _INTEGER_VARIABLES.items():
            number = self.get_int(name)
            if number is not None:
                values[key] = number

        telemetry = self.get("STRIPE_TELEMETRY")
        if telemetry is not None:
            values["telemetry"] = telemetry.strip().lower() not in _FALSE_VALUES

        app_info = {
            key: self.get(name)
            for name, key in _APP_INFO_VARIABLES.items()
            if self.get(name) is not None
        }
        if app_info:
            values["app_info"] = app_info
        return values


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> StripeEnvironment:
    """
    Resolve ``base`` (default :data:`os.environ`), then ``env_file`` for keys
    ``base`` lacks, then ``overrides``. ``env_file=None`` skips the file.
    """
    merged: Dict[str, str] = dict(os.environ if base is None else base)
    for key, value in _read_env_file(env_file).items():
        merged.setdefault(key, value)
    merged.update(overrides or {})
    return StripeEnvironment(variables=merged)
