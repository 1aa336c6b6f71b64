"""Shared test fixtures."""

from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from helpers import FAKE_API_KEY, RecordingHandler, fake_system_info, no_sleep
from stripe_payments import HTTPXClient, RetryPolicy, StripeClient


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_client(handler: RecordingHandler) -> Callable[..., StripeClient]:
    """Build a client whose transport is backed by ``handler``."""

    def _make(
        api_key: Any = FAKE_API_KEY,
        config: Optional[Dict[str, Any]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> StripeClient:
        values = dict(config or {})
        values.setdefault(
            "http_client",
            HTTPXClient(transport=httpx.MockTransport(handler)),
        )
        return StripeClient(
            api_key,
            values,
            retry_policy=retry_policy or RetryPolicy(sleep=no_sleep),
            system_info=fake_system_info,
        )

    return _make
