"""
Core primitives: configuration, authentication, execution and webhooks.
"""

from .auth import (
    Authenticator,
    RequestSigningAuthenticator,
    StaticKeyAuthenticator,
    create_api_key_authenticator,
    create_eth_account_signer,
    create_request_signing_authenticator,
)
from .client import StripeClient
from .config import (
    AppInfo,
    ClientConfig,
    ConfigError,
    load_client_config,
    validate_config,
)
from .environment import StripeEnvironment, build_environment, load_env_file
from .executor import UNSET, RequestExecutor, RequestOptions, RetryPolicy, with_callback
from .http_client import HTTPClient, HTTPResponse, HTTPXClient, RequestsClient
from .objects import ResponseMeta, StripeObject
from .resources import ENDPOINTS, Endpoint, register
from .version import API_VERSION, PACKAGE_VERSION
from .webhooks import (
    Event,
    ThinEvent,
    construct_event,
    generate_test_header_string,
    parse_thin_event,
)

__all__ = [
    "API_VERSION",
    "AppInfo",
    "Authenticator",
    "ClientConfig",
    "ConfigError",
    "ENDPOINTS",
    "Endpoint",
    "Event",
    "HTTPClient",
    "HTTPResponse",
    "HTTPXClient",
    "PACKAGE_VERSION",
    "RequestExecutor",
    "RequestOptions",
    "RequestSigningAuthenticator",
    "RequestsClient",
    "ResponseMeta",
    "RetryPolicy",
    "StaticKeyAuthenticator",
    "StripeClient",
    "StripeEnvironment",
    "StripeObject",
    "ThinEvent",
    "UNSET",
    "build_environment",
    "construct_event",
    "create_api_key_authenticator",
    "create_eth_account_signer",
    "create_request_signing_authenticator",
    "generate_test_header_string",
    "load_client_config",
    "load_env_file",
    "parse_thin_event",
    "register",
    "validate_config",
    "with_callback",
]
