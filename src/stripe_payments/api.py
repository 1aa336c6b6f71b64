"""
Public, high-level helpers for calling the API and checking webhooks.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Union

from .core.auth import (
    Authenticator,
    create_api_key_authenticator,
    create_eth_account_signer,
    create_request_signing_authenticator,
)
from .core.client import StripeClient
from .core.config import ClientConfig, ConfigError, load_client_config
from .core.environment import build_environment
from .core.executor import RetryPolicy
from .core.user_agent import SystemInfoProvider
from .core.webhooks import (
    Event,
    ThinEvent,
    construct_event,
    generate_test_header_string,
    parse_thin_event,
)

__all__ = [
    "create_api_key_authenticator",
    "create_client",
    "create_eth_account_signer",
    "create_request_signing_authenticator",
    "generate_test_header_string",
    "verify_webhook",
]


def create_client(
    *,
    config: Optional[ClientConfig] = None,
    api_key: Optional[str] = None,
    authenticator: Optional[Authenticator] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    retry_policy: Optional[RetryPolicy] = None,
    system_info: Optional[SystemInfoProvider] = None,
) -> StripeClient:
    """
    Construct a :class:`StripeClient`.

    Callers either supply a ready-made :class:`ClientConfig` or let the helper
    assemble one from ``STRIPE_*`` environment data.
    """
    if config is not None:
        extras = (api_key, authenticator, overrides, base)
        if any(item is not None and item != {} for item in extras):
            raise ValueError(
                "Provide either a pre-built ClientConfig or individual parameters, not both."
            )
        cfg = config
    else:
        cfg = load_client_config(
            env_file=env_file,
            overrides=overrides,
            base=base,
            api_key=api_key,
            authenticator=authenticator,
        )
    return StripeClient(config=cfg, retry_policy=retry_policy, system_info=system_info)


def verify_webhook(
    payload: Union[bytes, str],
    sig_header: str,
    *,
    secret: Union[str, Sequence[str], None] = None,
    tolerance: Optional[int] = None,
    thin: bool = False,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
) -> Union[Event, ThinEvent]:
    """
    Verify a webhook delivery and return the decoded event.

    When ``secret`` is omitted, ``STRIPE_WEBHOOK_SECRET`` (comma-separated for
    rotation) is read from the environment.
    """
    if secret is None:
        secrets = build_environment(env_file=env_file, base=base).webhook_secrets()
        if not secrets:
            raise ConfigError("STRIPE_WEBHOOK_SECRET must be provided")
        secret = secrets

    if thin:
        return parse_thin_event(payload, sig_header, secret, tolerance)
    return construct_event(payload, sig_header, secret, tolerance)
