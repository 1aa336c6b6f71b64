"""
Declarative map of API endpoints dispatched by the request executor.

Each endpoint is plain data: HTTP method, path template, API surface and
whether it returns a paginated list.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List
from urllib.parse import quote

from .errors import InvalidRequestError

__all__ = [
    "ENDPOINTS",
    "Endpoint",
    "build_path",
    "register",
    "resolve",
]

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class Endpoint:
    name: str
    method: str
    path: str
    api_mode: str = "v1"
    method_type: str = "request"

    @property
    def path_params(self) -> List[str]:
        return _PLACEHOLDER.findall(self.path)

    @property
    def is_list(self) -> bool:
        return self.method_type == "list"


ENDPOINTS: Dict[str, Endpoint] = {}


def register(endpoint: Endpoint) -> Endpoint:
    if endpoint.api_mode not in ("v1", "v2"):
        raise ValueError(f"Unknown api_mode '{endpoint.api_mode}' for {endpoint.name}")
    ENDPOINTS[endpoint.name] = endpoint
    return endpoint


def _register_all(endpoints: Iterable[Endpoint]) -> None:
    for endpoint in endpoints:
        register(endpoint)


_register_all(
    [
        Endpoint("account_links.create", "POST", "/v1/account_links"),
        Endpoint("account_sessions.create", "POST", "/v1/account_sessions"),
        Endpoint("customers.create", "POST", "/v1/customers"),
        Endpoint("customers.retrieve", "GET", "/v1/customers/{id}"),
        Endpoint("customers.update", "POST", "/v1/customers/{id}"),
        Endpoint("customers.delete", "DELETE", "/v1/customers/{id}"),
        Endpoint("customers.list", "GET", "/v1/customers", method_type="list"),
        Endpoint("treasury.transactions.retrieve", "GET", "/v1/treasury/transactions/{id}"),
        Endpoint(
            "treasury.transactions.list",
            "GET",
            "/v1/treasury/transactions",
            method_type="list",
        ),
        Endpoint(
            "v2.billing.meter_event_session.create",
            "POST",
            "/v2/billing/meter_event_session",
            api_mode="v2",
        ),
        Endpoint("v2.core.events.retrieve", "GET", "/v2/core/events/{id}", api_mode="v2"),
        Endpoint(
            "v2.core.events.list",
            "GET",
            "/v2/core/events",
            api_mode="v2",
            method_type="list",
        ),
    ]
)


def resolve(name: str) -> Endpoint:
    try:
        return ENDPOINTS[name]
    except KeyError as exc:
        raise InvalidRequestError(f"Unknown endpoint '{name}'") from exc


def build_path(endpoint: Endpoint, *args: str) -> str:
    """
    Substitute ``args`` into the endpoint's path template, in order.
    """
    params = endpoint.path_params
    if len(args) != len(params):
        raise InvalidRequestError(
            f"{endpoint.name} expects {len(params)} path argument(s) "
            f"({', '.join(params) or 'none'}), got {len(args)}"
        )
    values = iter(args)

    def _substitute(match: "re.Match[str]") -> str:
        value = next(values)
        if not isinstance(value, str) or not value.strip():
            raise InvalidRequestError(
                f"{endpoint.name}: '{match.group(1)}' must be a non-empty string"
            )
        return quote(value, safe="")

    return _PLACEHOLDER.sub(_substitute, endpoint.path)
