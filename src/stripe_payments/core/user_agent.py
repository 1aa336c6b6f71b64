"""
User-agent strings sent with every request.
"""

from __future__ import annotations

import asyncio
import json
import logging
import platform
import sys
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import quote

from .version import PACKAGE_VERSION

__all__ = [
    "SystemInfoProvider",
    "UserAgentBuilder",
    "default_seed",
    "default_system_info",
    "encode_user_agent_value",
    "user_agent_string",
]

logger = logging.getLogger(__name__)

SystemInfoProvider = Callable[[], Awaitable[str]]

UNKNOWN_UNAME = "UNKNOWN"

# Characters left untouched by JavaScript's encodeURIComponent.
_UNRESERVED = "-_.!~*'()"


async def default_system_info() -> str:
    return await asyncio.to_thread(lambda: " ".join(platform.uname()))


def encode_user_agent_value(value: Any) -> str:
    return quote("null" if value is None else str(value), safe=_UNRESERVED)


def default_seed(*, typescript: bool = False) -> Dict[str, str]:
    return {
        "bindings_version": PACKAGE_VERSION,
        "lang": "python",
        "lang_version": platform.python_version(),
        "platform": sys.platform,
        "publisher": "stripe",
        "typescript": "true" if typescript else "false",
    }


def user_agent_string(app_info: Optional[Mapping[str, str]] = None) -> str:
    agent = f"Stripe/v1 PythonBindings/{PACKAGE_VERSION}"
    if app_info and app_info.get("name"):
        formatted = app_info["name"]
        if app_info.get("version"):
            formatted += f"/{app_info['version']}"
        if app_info.get("url"):
            formatted += f" ({app_info['url']})"
        agent += f" {formatted}"
    return agent


class UserAgentBuilder:
    """
    Builds the ``X-Stripe-Client-User-Agent`` JSON blob.

    The system lookup behind ``uname`` is injected. Failures are replaced with
    ``UNKNOWN`` and never reach the caller. Each distinct seed is resolved
    once, even when many requests ask for it concurrently.
    """

    def __init__(
        self,
        system_info: Optional[SystemInfoProvider] = None,
        *,
        httplib: str = "httpx",
    ) -> None:
        self._system_info = system_info or default_system_info
        self.httplib = httplib
        self._cache: Dict[str, str] = {}
        self._pending: Dict[str, "asyncio.Future[str]"] = {}

    async def _uname(self) -> str:
        try:
            uname = await self._system_info()
        except Exception as exc:  # noqa: BLE001
            logger.debug("System info lookup failed: %s", exc)
            return UNKNOWN_UNAME
        return uname or UNKNOWN_UNAME

    async def _build(
        self,
        seed: Mapping[str, Any],
        application: Optional[Mapping[str, str]],
    ) -> str:
        user_agent: Dict[str, Any] = {
            field: encode_user_agent_value(value) for field, value in seed.items()
        }
        user_agent["uname"] = encode_user_agent_value(await self._uname())
        user_agent.setdefault("httplib", encode_user_agent_value(self.httplib))
        if application:
            user_agent["application"] = dict(application)
        return json.dumps(user_agent)

    async def get(
        self,
        seed: Mapping[str, Any],
        application: Optional[Mapping[str, str]] = None,
    ) -> str:
        key = json.dumps([seed, application], sort_keys=True, default=str)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._build(seed, application))
            self._pending[key] = pending
        try:
            result = await asyncio.shield(pending)
        finally:
            if pending.done():
                self._pending.pop(key, None)

        self._cache[key] = result
        return result
