"""
The client facade: configuration, request dispatch and webhook helpers.
"""

from __future__ import annotations

import asyncio
import logging
from types import ModuleType
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlsplit

from . import webhooks
from .auth import Authenticator
from .config import ClientConfig, validate_config
from .errors import ConfigError, InvalidRequestError
from .executor import RequestExecutor, RequestOptions, RetryPolicy, with_callback
from .http_client import HTTPClient, HTTPXClient
from .objects import StripeObject
from .resources import Endpoint, build_path, resolve
from .user_agent import SystemInfoProvider, UserAgentBuilder, default_seed
from .version import PACKAGE_VERSION

__all__ = ["StripeClient"]

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Optional[StripeObject]], Any]


class StripeClient:
    """
    Async client for the payments API.

    Example::

        async with StripeClient("sk_test_...", {"max_network_retries": 3}) as client:
            link = await client.call(
                "account_links.create",
                params={"account": "acct_123", "type": "account_onboarding"},
            )
            print(link.url, link.last_response.request_id)
    """

    VERSION = PACKAGE_VERSION

    def __init__(
        self,
        api_key_or_authenticator: Union[str, Authenticator, None] = None,
        config: Any = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        system_info: Optional[SystemInfoProvider] = None,
    ) -> None:
        if isinstance(config, ClientConfig):
            if api_key_or_authenticator is not None:
                raise ConfigError(
                    "Provide either a pre-built ClientConfig or an api_key, not both."
                )
            self._config = config
        else:
            self._config = validate_config(api_key_or_authenticator, config)

        http_client = self._config.http_client
        if http_client is None:
            http_client = HTTPXClient()
        elif not isinstance(http_client, HTTPClient):
            raise ConfigError("http_client must be an HTTPClient instance")
        self.http_client: HTTPClient = http_client

        self._user_agent = UserAgentBuilder(system_info, httplib=http_client.name)
        self._executor = RequestExecutor(http_client, self._user_agent, retry_policy)
        logger.info(
            "StripeClient initialized (api_version=%s, base_url=%s)",
            self._config.api_version,
            self._config.base_url,
        )

    async def __aenter__(self) -> "StripeClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.http_client.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def authenticator(self) -> Authenticator:
        return self._config.authenticator

    # Setters replace the immutable config after re-validating the value.

    def set_timeout(self, timeout: Optional[int]) -> None:
        self._config = self._config.with_timeout(timeout)

    def set_max_network_retries(self, max_network_retries: Any) -> None:
        self._config = self._config.with_max_network_retries(max_network_retries)

    def set_telemetry_enabled(self, enabled: bool) -> None:
        self._config = self._config.with_telemetry(enabled)

    def get_max_network_retries(self) -> int:
        return self._config.max_network_retries

    def get_telemetry_enabled(self) -> bool:
        return self._config.telemetry

    def get_api_field(self, name: str) -> Any:
        aliases = {"version": "api_version"}
        return getattr(self._config, aliases.get(name, name))

    def get_app_info_as_string(self) -> str:
        if self._config.app_info is None:
            return ""
        return self._config.app_info.as_string()

    async def get_client_user_agent(self) -> str:
        return await self.get_client_user_agent_seeded(
            default_seed(typescript=self._config.typescript)
        )

    async def get_client_user_agent_seeded(self, seed: Mapping[str, Any]) -> str:
        app_info = self._config.app_info.as_dict() if self._config.app_info else None
        return await self._user_agent.get(seed, app_info)

    async def call(
        self,
        endpoint: Union[str, Endpoint],
        *path_args: str,
        params: Optional[Mapping[str, Any]] = None,
        **options: Any,
    ) -> StripeObject:
        """
        Invoke ``endpoint`` and return the decoded response.

        ``path_args`` fill the endpoint's path template in order. ``options``
        accepts ``idempotency_key``, ``stripe_account``, ``stripe_context``,
        ``api_version``, ``headers`` and ``timeout`` (milliseconds). Passing
        ``stripe_account=None`` removes a configured default for this call.
        """
        resolved = resolve(endpoint) if isinstance(endpoint, str) else endpoint
        path = build_path(resolved, *path_args)
        request_options = RequestOptions.from_kwargs(options)
        return await self._executor.execute(
            self._config,
            resolved,
            path,
            params,
            request_options,
        )

    def call_with_callback(
        self,
        endpoint: Union[str, Endpoint],
        *path_args: str,
        callback: Callback,
        params: Optional[Mapping[str, Any]] = None,
        **options: Any,
    ) -> "asyncio.Task[StripeObject]":
        """
        Same as :meth:`call`, reporting completion as ``callback(error, result)``.
        """
        return with_callback(
            self.call(endpoint, *path_args, params=params, **options),
            callback,
        )

    async def auto_paging_iter(
        self,
        endpoint: Union[str, Endpoint],
        *path_args: str,
        params: Optional[Mapping[str, Any]] = None,
        **options: Any,
    ) -> AsyncIterator[StripeObject]:
        """
        Yield every item of a list endpoint, requesting pages as needed.

        v1 lists advance with ``starting_after``; v2 lists follow
        ``next_page_url``.
        """
        resolved = resolve(endpoint) if isinstance(endpoint, str) else endpoint
        if not resolved.is_list:
            raise InvalidRequestError(f"{resolved.name} is not a list endpoint")

        page_params: Dict[str, Any] = dict(params or {})
        page = await self.call(resolved, *path_args, params=page_params, **options)
        while True:
            items = page.get("data") or []
            for item in items:
                yield item

            if resolved.api_mode == "v2":
                next_url = page.get("next_page_url")
                if not next_url:
                    return
                next_endpoint = Endpoint(
                    resolved.name,
                    resolved.method,
                    next_url.split("?", 1)[0],
                    api_mode="v2",
                    method_type="list",
                )
                page_params = _query_params(next_url)
                page = await self.call(next_endpoint, params=page_params, **options)
            else:
                if not page.get("has_more") or not items:
                    return
                page_params = dict(page_params, starting_after=items[-1]["id"])
                page = await self.call(resolved, *path_args, params=page_params, **options)

    def construct_event(
        self,
        payload: Union[bytes, str],
        sig_header: str,
        secret: Union[str, list],
        tolerance: Optional[int] = None,
    ) -> webhooks.Event:
        return webhooks.construct_event(payload, sig_header, secret, tolerance)

    def parse_thin_event(
        self,
        payload: Union[bytes, str],
        sig_header: str,
        secret: Union[str, list],
        tolerance: Optional[int] = None,
    ) -> webhooks.ThinEvent:
        return webhooks.parse_thin_event(payload, sig_header, secret, tolerance)

    @property
    def webhooks(self) -> ModuleType:
        return webhooks


def _query_params(url: str) -> Dict[str, str]:
    return dict(parse_qsl(urlsplit(url).query))
