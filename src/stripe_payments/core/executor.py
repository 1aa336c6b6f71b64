"""
Request execution: header assembly, authentication, transport, outcome
classification and retries.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    FrozenSet,
    Mapping,
    Optional,
    TypeVar,
)

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .config import ClientConfig
from .errors import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    InvalidRequestError,
    StripeError,
    error_from_response,
)
from .http_client import HTTPClient, HTTPResponse
from .objects import ResponseMeta, StripeObject
from .payloads import BODYLESS_METHODS, OutboundRequest, build_outbound_request
from .resources import Endpoint
from .user_agent import UserAgentBuilder, default_seed, user_agent_string

__all__ = [
    "UNSET",
    "RequestExecutor",
    "RequestOptions",
    "RetryPolicy",
    "RetryState",
    "with_callback",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Distinguishes "option not given" from an explicit ``None``, which removes
# the configured default.
UNSET: Any = _Unset()

_OPTION_NAMES = ("idempotency_key", "stripe_account", "stripe_context", "api_version", "headers", "timeout")


@dataclass(frozen=True)
class RequestOptions:
    idempotency_key: Optional[str] = None
    stripe_account: Any = UNSET
    stripe_context: Any = UNSET
    api_version: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: Optional[int] = None

    @classmethod
    def from_kwargs(cls, options: Mapping[str, Any]) -> "RequestOptions":
        unknown = sorted(set(options) - set(_OPTION_NAMES))
        if unknown:
            raise InvalidRequestError(
                f"Unknown request option(s): {', '.join(unknown)}; "
                f"allowed: {', '.join(_OPTION_NAMES)}"
            )
        return cls(**options)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Which failures are retried and how long to wait between attempts.

    Connection failures and timeouts are always retryable. HTTP statuses are
    retryable when listed in ``retryable_status_codes`` or, with
    ``retry_server_errors``, when they are 5xx. A ``Stripe-Should-Retry``
    response header overrides the status-based decision.
    """

    initial_delay: float = 0.5
    max_delay: float = 5.0
    retryable_status_codes: FrozenSet[int] = frozenset({409, 429})
    retry_server_errors: bool = True
    max_retry_after: float = 60.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def should_retry(self, error: BaseException) -> bool:
        if isinstance(error, APIConnectionError):
            return True
        if not isinstance(error, StripeError) or error.http_status is None:
            return False

        should_retry_header = error.headers.get("stripe-should-retry")
        if should_retry_header == "true":
            return True
        if should_retry_header == "false":
            return False

        status = error.http_status
        if status in self.retryable_status_codes:
            return True
        return self.retry_server_errors and status >= 500

    def retry_after(self, error: Optional[BaseException]) -> Optional[float]:
        if not isinstance(error, StripeError):
            return None
        raw = error.headers.get("retry-after")
        if raw is None:
            return None
        try:
            seconds = float(raw)
        except ValueError:
            return None
        if 0 <= seconds <= self.max_retry_after:
            return seconds
        return None


@dataclass
class RetryState:
    """Per-call bookkeeping, discarded once the call completes."""

    idempotency_key: Optional[str] = None
    attempts: int = 0
    started_at: float = field(default_factory=time.monotonic)

    @property
    def num_retries(self) -> int:
        return max(self.attempts - 1, 0)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


def _decode_json(response: HTTPResponse) -> Optional[Dict[str, Any]]:
    try:
        decoded = response.json()
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return decoded if isinstance(decoded, dict) else None


class RequestExecutor:
    """
    Turns one resolved endpoint call into one or more HTTP attempts.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        user_agent: UserAgentBuilder,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        telemetry_queue_size: int = 32,
    ) -> None:
        self.http_client = http_client
        self.user_agent = user_agent
        self.retry_policy = retry_policy or RetryPolicy()
        self._backoff = wait_exponential_jitter(
            initial=self.retry_policy.initial_delay,
            max=self.retry_policy.max_delay,
            jitter=self.retry_policy.initial_delay,
        )
        self._telemetry: Deque[Dict[str, Any]] = deque(maxlen=telemetry_queue_size)

    async def build_headers(
        self,
        config: ClientConfig,
        endpoint: Endpoint,
        options: RequestOptions,
        state: RetryState,
    ) -> Dict[str, str]:
        app_info = config.app_info.as_dict() if config.app_info else None
        client_user_agent = await self.user_agent.get(
            default_seed(typescript=config.typescript),
            app_info,
        )
        headers: Dict[str, str] = {
            "Accept": "application/json",
            "User-Agent": user_agent_string(app_info),
            "X-Stripe-Client-User-Agent": client_user_agent,
            "Stripe-Version": options.api_version or config.api_version,
        }
        if state.idempotency_key:
            headers["Idempotency-Key"] = state.idempotency_key

        if endpoint.api_mode == "v1":
            account = (
                config.stripe_account
                if options.stripe_account is UNSET
                else options.stripe_account
            )
            if account:
                headers["Stripe-Account"] = account
        else:
            context = (
                config.stripe_context
                if options.stripe_context is UNSET
                else options.stripe_context
            )
            if context:
                headers["Stripe-Context"] = context

        if config.telemetry and self._telemetry:
            metrics = self._telemetry.popleft()
            headers["X-Stripe-Client-Telemetry"] = json.dumps({"last_request_metrics": metrics})

        headers.update(options.headers)
        return headers

    async def prepare(
        self,
        config: ClientConfig,
        endpoint: Endpoint,
        path: str,
        params: Optional[Mapping[str, Any]],
        options: RequestOptions,
        state: RetryState,
    ) -> OutboundRequest:
        """Build and authenticate the request for one attempt."""
        request = build_outbound_request(
            endpoint.method,
            config.base_url,
            path,
            params,
            api_mode=endpoint.api_mode,
        )
        headers = await self.build_headers(config, endpoint, options, state)
        for name, value in headers.items():
            request.set_header(name, value)
        await config.authenticator.authenticate(request)
        return request

    async def _attempt(
        self,
        config: ClientConfig,
        endpoint: Endpoint,
        path: str,
        params: Optional[Mapping[str, Any]],
        options: RequestOptions,
        state: RetryState,
    ) -> StripeObject:
        state.attempts += 1
        request = await self.prepare(config, endpoint, path, params, options, state)
        timeout_ms = options.timeout or config.timeout
        timeout = timeout_ms / 1000.0

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.http_client.request(
                    request.method,
                    request.url,
                    request.headers,
                    request.body,
                    timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise APITimeoutError(
                f"Request to {request.path} exceeded {timeout_ms}ms"
            ) from exc
        duration_ms = int((time.monotonic() - started) * 1000)

        json_body = _decode_json(response)
        if not 200 <= response.status_code < 300:
            raise error_from_response(response.status_code, response.headers, json_body)
        if json_body is None:
            raise APIError(
                f"Invalid JSON received from the API (status {response.status_code})",
                http_status=response.status_code,
                headers=response.headers,
            )

        request_id = response.headers.get("request-id")
        if config.telemetry and request_id:
            self._telemetry.append(
                {"request_id": request_id, "request_duration_ms": duration_ms}
            )

        meta = ResponseMeta(
            status_code=response.status_code,
            headers=dict(response.headers),
            request_id=request_id,
            idempotency_key=state.idempotency_key,
            api_version=response.headers.get("stripe-version"),
            num_retries=state.num_retries,
        )
        return StripeObject.construct_from(json_body, last_response=meta)

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = self.retry_policy.retry_after(error)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return delay

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Retrying request after %s (attempt %d, sleeping %.2fs)",
            error.__class__.__name__,
            retry_state.attempt_number,
            delay,
        )

    async def execute(
        self,
        config: ClientConfig,
        endpoint: Endpoint,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        options: Optional[RequestOptions] = None,
    ) -> StripeObject:
        """
        Run the call, retrying within ``config.max_network_retries``.

        A caller-supplied idempotency key is always sent. Otherwise one is
        generated for methods that carry a body. Either way the same key is
        sent on every attempt.
        """
        options = options or RequestOptions()
        idempotency_key = options.idempotency_key
        if idempotency_key is None and endpoint.method.upper() not in BODYLESS_METHODS:
            idempotency_key = str(uuid.uuid4())
        state = RetryState(idempotency_key=idempotency_key)
        logger.info("Request %s %s", endpoint.method, path)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(config.max_network_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(self.retry_policy.should_retry),
            sleep=self.retry_policy.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(config, endpoint, path, params, options, state)
        except StripeError as exc:
            exc.num_retries = state.num_retries
            logger.info(
                "Request %s %s failed after %d attempt(s) in %.2fs: %s",
                endpoint.method,
                path,
                state.attempts,
                state.elapsed,
                exc.__class__.__name__,
            )
            raise

        logger.info(
            "Request %s %s succeeded (status=%s, request_id=%s, retries=%d, elapsed=%.2fs)",
            endpoint.method,
            path,
            result.last_response.status_code if result.last_response else None,
            result.last_response.request_id if result.last_response else None,
            state.num_retries,
            state.elapsed,
        )
        return result


def with_callback(
    awaitable: Awaitable[T],
    callback: Callable[[Optional[BaseException], Optional[T]], Any],
) -> "asyncio.Task[T]":
    """
    Schedule ``awaitable`` and report its outcome as ``callback(error, result)``.

    Must be called with an event loop running. The returned task can still be
    awaited or cancelled by the caller.
    """
    task = asyncio.ensure_future(awaitable)

    def _done(future: "asyncio.Future[T]") -> None:
        if future.cancelled():
            callback(asyncio.CancelledError(), None)
            return
        error = future.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, future.result())

    task.add_done_callback(_done)
    return task
