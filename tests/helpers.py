"""Test helpers shared across modules."""

import json
from typing import Any, Dict, List, Optional

import httpx

FAKE_API_KEY = "sk_test_123"


async def fake_system_info() -> str:
    return "Linux testhost 6.1.0 x86_64"


async def failing_system_info() -> str:
    raise PermissionError("security")


async def no_sleep(_seconds: float) -> None:
    return None


def json_response(
    status_code: int,
    body: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    merged = {"request-id": "req_abc123"}
    merged.update(headers or {})
    return httpx.Response(status_code, content=json.dumps(body).encode("utf-8"), headers=merged)


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays responses."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
        else:
            response = json_response(200, {"id": "cus_123", "object": "customer"})
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]
