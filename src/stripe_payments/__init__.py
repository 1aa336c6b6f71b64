"""
Async client for the payments API with request signing and webhook
verification.
"""

from .api import create_client, verify_webhook
from .core import (
    API_VERSION,
    PACKAGE_VERSION,
    UNSET,
    AppInfo,
    Authenticator,
    ClientConfig,
    ConfigError,
    Endpoint,
    Event,
    HTTPClient,
    HTTPXClient,
    RequestSigningAuthenticator,
    RequestsClient,
    ResponseMeta,
    RetryPolicy,
    StaticKeyAuthenticator,
    StripeClient,
    StripeObject,
    ThinEvent,
    construct_event,
    create_api_key_authenticator,
    create_eth_account_signer,
    create_request_signing_authenticator,
    generate_test_header_string,
    load_client_config,
    parse_thin_event,
    validate_config,
)
from .core import errors
from .core.errors import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    CardError,
    IdempotencyError,
    InvalidPayloadError,
    InvalidRequestError,
    PermissionDeniedError,
    RateLimitError,
    SignatureVerificationError,
    SigningError,
    StripeError,
)

__version__ = PACKAGE_VERSION

__all__ = [
    "API_VERSION",
    "APIConnectionError",
    "APIError",
    "APITimeoutError",
    "AppInfo",
    "AuthenticationError",
    "Authenticator",
    "CardError",
    "ClientConfig",
    "ConfigError",
    "Endpoint",
    "Event",
    "HTTPClient",
    "HTTPXClient",
    "IdempotencyError",
    "InvalidPayloadError",
    "InvalidRequestError",
    "PACKAGE_VERSION",
    "PermissionDeniedError",
    "RateLimitError",
    "RequestSigningAuthenticator",
    "RequestsClient",
    "ResponseMeta",
    "RetryPolicy",
    "SignatureVerificationError",
    "SigningError",
    "StaticKeyAuthenticator",
    "StripeClient",
    "StripeError",
    "StripeObject",
    "ThinEvent",
    "UNSET",
    "construct_event",
    "create_api_key_authenticator",
    "create_client",
    "create_eth_account_signer",
    "create_request_signing_authenticator",
    "errors",
    "generate_test_header_string",
    "load_client_config",
    "parse_thin_event",
    "validate_config",
    "verify_webhook",
]
