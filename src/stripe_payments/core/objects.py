"""
Response containers returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

__all__ = ["ResponseMeta", "StripeObject", "convert_to_stripe_object"]


@dataclass(frozen=True)
class ResponseMeta:
    """Provenance of a successful response."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    request_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    api_version: Optional[str] = None
    num_retries: int = 0


class StripeObject(dict):
    """
    A decoded JSON object with attribute access.

    Keys stay available through normal ``dict`` access; ``last_response`` is
    set on top-level objects returned by the client.
    """

    last_response: Optional[ResponseMeta] = None

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError as exc:
            raise AttributeError(name) from exc

    @classmethod
    def construct_from(
        cls,
        values: Mapping[str, Any],
        last_response: Optional[ResponseMeta] = None,
    ) -> "StripeObject":
        instance = cls({key: convert_to_stripe_object(value) for key, value in values.items()})
        instance.last_response = last_response
        return instance

    def __repr__(self) -> str:
        identifier = self.get("id")
        kind = self.get("object", self.__class__.__name__)
        if identifier:
            return f"<{kind} id={identifier}> {dict.__repr__(self)}"
        return f"<{kind}> {dict.__repr__(self)}"


def convert_to_stripe_object(value: Any) -> Any:
    if isinstance(value, StripeObject):
        return value
    if isinstance(value, Mapping):
        return StripeObject.construct_from(value)
    if isinstance(value, list):
        return [convert_to_stripe_object(item) for item in value]
    return value
