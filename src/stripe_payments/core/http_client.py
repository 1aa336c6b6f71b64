"""
HTTP transports used by the request executor.

:class:`HTTPXClient` is the default, fully asynchronous transport.
:class:`RequestsClient` wraps a blocking ``requests.Session`` and runs it in a
worker thread so it never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx
import requests

from .errors import APIConnectionError, APITimeoutError

__all__ = [
    "HTTPClient",
    "HTTPResponse",
    "HTTPXClient",
    "RequestsClient",
]


@dataclass(frozen=True)
class HTTPResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def from_raw(
        cls,
        status_code: int,
        headers: Mapping[str, str],
        body: bytes,
    ) -> "HTTPResponse":
        return cls(
            status_code=status_code,
            headers={key.lower(): value for key, value in headers.items()},
            body=body,
        )

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class HTTPClient(ABC):
    """Sends one HTTP request and returns the raw response."""

    name = "unknown"

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        ...

    async def close(self) -> None:
        return None


class HTTPXClient(HTTPClient):
    name = "httpx"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ) -> None:
        self._client = client
        self._transport = transport
        self._verify = verify

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, verify=self._verify)
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        client = self._get_client()
        try:
            response = await client.request(
                method,
                url,
                headers=dict(headers),
                content=body,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise APITimeoutError(f"Request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise APIConnectionError(f"Error communicating with {url}: {exc}") from exc

        return HTTPResponse.from_raw(response.status_code, response.headers, response.content)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class RequestsClient(HTTPClient):
    name = "requests"

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()

    def _request_sync(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers),
                data=body,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise APITimeoutError(f"Request to {url} timed out") from exc
        except requests.RequestException as exc:
            raise APIConnectionError(f"Error communicating with {url}: {exc}") from exc

        return HTTPResponse.from_raw(response.status_code, response.headers, response.content)

    async def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        return await asyncio.to_thread(self._request_sync, method, url, headers, body, timeout)

    async def close(self) -> None:
        self.session.close()
