"""
Authenticators that attach identity material to outbound requests.

Two strategies are supported: a static secret key sent as a bearer token, and
HTTP message signatures produced by an injected asymmetric signer.
"""

from __future__ import annotations

import base64
import hashlib
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Tuple, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes

from .errors import SigningError
from .payloads import OutboundRequest

__all__ = [
    "Authenticator",
    "RequestSigningAuthenticator",
    "SignFunction",
    "StaticKeyAuthenticator",
    "build_signature_base",
    "content_digest",
    "create_api_key_authenticator",
    "create_eth_account_signer",
    "create_request_signing_authenticator",
]

logger = logging.getLogger(__name__)

SignatureOutput = Union[bytes, bytearray, str]
SignFunction = Callable[[bytes], Union[SignatureOutput, Awaitable[SignatureOutput]]]

SIGNATURE_AUTH_SCHEME = "STRIPE-V2-SIG"

_CONTENT_COMPONENTS = ("content-type", "content-digest")
_IDENTITY_COMPONENTS = ("stripe-context", "stripe-account", "authorization")


class Authenticator(ABC):
    """Adds authorization headers to an :class:`OutboundRequest` in place."""

    @abstractmethod
    async def authenticate(self, request: OutboundRequest) -> None:
        ...


class StaticKeyAuthenticator(Authenticator):
    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("api_key must not be empty")
        self.api_key = api_key

    async def authenticate(self, request: OutboundRequest) -> None:
        request.set_header("Authorization", f"Bearer {self.api_key}")

    def __repr__(self) -> str:
        return f"StaticKeyAuthenticator(api_key='{self.api_key[:8]}...')"


def content_digest(body: bytes | None) -> str:
    """Return the ``Content-Digest`` header value for ``body``."""
    digest = hashlib.sha256(body or b"").digest()
    return f"sha-256=:{base64.b64encode(digest).decode('ascii')}:"


def _component_list(components: List[str]) -> str:
    return "(" + " ".join(f'"{name}"' for name in components) + ")"


def build_signature_base(
    request: OutboundRequest,
    created: int,
) -> Tuple[str, List[str]]:
    """
    Build the canonical signature base for ``request``.

    Returns the base string and the ordered list of covered components. The
    request must already carry its ``Authorization`` and, for body-bearing
    methods, ``Content-Digest`` headers.
    """
    components: List[str] = []
    if request.has_body:
        components.extend(_CONTENT_COMPONENTS)
    components.extend(_IDENTITY_COMPONENTS)

    lines = [f'"{name}": {request.get_header(name) or ""}' for name in components]
    lines.append(
        f'"@signature-params": {_component_list(components)};created={created}'
    )
    return "\n".join(lines), components


class RequestSigningAuthenticator(Authenticator):
    """
    Signs each request with an asymmetric key held by ``sign_fn``.

    ``sign_fn`` receives the UTF-8 signature base and returns the raw
    signature, either directly or as an awaitable.
    """

    def __init__(
        self,
        key_id: str,
        sign_fn: SignFunction,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not key_id:
            raise ValueError("key_id must not be empty")
        self.key_id = key_id
        self.sign_fn = sign_fn
        self.clock = clock

    async def _sign(self, base: bytes) -> bytes:
        try:
            result: Any = self.sign_fn(base)
            if inspect.isawaitable(result):
                result = await result
            return bytes(HexBytes(result))
        except Exception as exc:  # noqa: BLE001
            raise SigningError(f"Request signing failed: {exc}") from exc

    async def authenticate(self, request: OutboundRequest) -> None:
        created = int(self.clock())

        request.set_header("Authorization", f"{SIGNATURE_AUTH_SCHEME} {self.key_id}")
        if request.has_body:
            request.set_header("Content-Digest", content_digest(request.body))
        else:
            request.remove_header("Content-Digest")

        base, components = build_signature_base(request, created)
        logger.debug("Signing %s %s covering %s", request.method, request.path, components)

        signature = await self._sign(base.encode("utf-8"))
        encoded = base64.b64encode(signature).decode("ascii")

        request.set_header(
            "Signature-Input",
            f"sig1={_component_list(components)};created={created}",
        )
        request.set_header("Signature", f"sig1=:{encoded}:")

    def __repr__(self) -> str:
        return f"RequestSigningAuthenticator(key_id={self.key_id!r})"


def create_api_key_authenticator(api_key: str) -> StaticKeyAuthenticator:
    return StaticKeyAuthenticator(api_key)


def create_request_signing_authenticator(
    key_id: str,
    sign_fn: SignFunction,
    *,
    clock: Callable[[], float] = time.time,
) -> RequestSigningAuthenticator:
    """
    Build an authenticator that signs requests with ``sign_fn``.
    """
    return RequestSigningAuthenticator(key_id, sign_fn, clock=clock)


def create_eth_account_signer(
    private_key: str,
) -> Callable[[bytes], Awaitable[bytes]]:
    """
    Return a ``sign_fn`` producing EIP-191 secp256k1 signatures.

    The key is loaded once; each call signs the signature base as a personal
    message and returns the 65-byte ``r || s || v`` signature.
    """
    account = Account.from_key(private_key)

    async def sign(signature_base: bytes) -> bytes:
        signable = encode_defunct(primitive=signature_base)
        return bytes(account.sign_message(signable).signature)

    return sign
