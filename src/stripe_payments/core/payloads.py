"""
Helpers for constructing the outbound request and its encoded payload.

The v1 surface takes form-encoded bodies with bracket notation for nested
values; the v2 surface takes JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple
from urllib.parse import urlencode

__all__ = [
    "BODYLESS_METHODS",
    "OutboundRequest",
    "build_outbound_request",
    "encode_form",
    "encode_json",
    "flatten_params",
]

# Methods that never carry a request body.
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# Methods whose v1 parameters travel on the query string.
_QUERY_METHODS = frozenset({"GET", "HEAD", "DELETE"})


@dataclass
class OutboundRequest:
    """
    A fully built request, ready to be authenticated and sent.

    ``headers`` keeps insertion order; the signing authenticator relies on it
    only for output stability, lookups are case-insensitive.
    """

    method: str
    url: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    api_mode: str = "v1"

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def set_header(self, name: str, value: str) -> None:
        self.remove_header(name)
        self.headers[name] = value

    def remove_header(self, name: str) -> None:
        lowered = name.lower()
        for key in [key for key in self.headers if key.lower() == lowered]:
            del self.headers[key]

    @property
    def has_body(self) -> bool:
        return self.method.upper() not in BODYLESS_METHODS


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def flatten_params(
    params: Mapping[str, Any],
    prefix: Optional[str] = None,
) -> Iterator[Tuple[str, str]]:
    """
    Yield ``(key, value)`` pairs using bracket notation for nesting.

    ``{"metadata": {"order": 7}, "items": [{"price": "p_1"}]}`` flattens to
    ``metadata[order]=7`` and ``items[0][price]=p_1``.
    """
    for key, value in params.items():
        full_key = key if prefix is None else f"{prefix}[{key}]"
        if isinstance(value, Mapping):
            yield from flatten_params(value, full_key)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_key = f"{full_key}[{index}]"
                if isinstance(item, Mapping):
                    yield from flatten_params(item, item_key)
                else:
                    yield item_key, _stringify(item)
        else:
            yield full_key, _stringify(value)


def encode_form(params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return ""
    return urlencode(list(flatten_params(params)))


def encode_json(params: Optional[Mapping[str, Any]]) -> bytes:
    return json.dumps(dict(params or {}), separators=(",", ":")).encode("utf-8")


def build_outbound_request(
    method: str,
    base_url: str,
    path: str,
    params: Optional[Mapping[str, Any]],
    *,
    api_mode: str = "v1",
) -> OutboundRequest:
    """
    Encode ``params`` for ``method`` and return the unauthenticated request.

    Content headers are set here; identity headers are added by the executor.
    """
    method = method.upper()
    url = base_url.rstrip("/") + path
    headers: Dict[str, str] = {}
    body: Optional[bytes] = None

    if api_mode == "v2":
        if method in BODYLESS_METHODS:
            query = encode_form(params)
            if query:
                url = f"{url}?{query}"
        else:
            body = encode_json(params)
            headers["Content-Type"] = "application/json"
    elif method in _QUERY_METHODS:
        query = encode_form(params)
        if query:
            url = f"{url}?{query}"
        if method not in BODYLESS_METHODS:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
    else:
        body = encode_form(params).encode("utf-8")
        headers["Content-Type"] = "application/x-www-form-urlencoded"

    return OutboundRequest(
        method=method,
        url=url,
        path=path,
        headers=headers,
        body=body,
        api_mode=api_mode,
    )

