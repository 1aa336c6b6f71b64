"""
Exception hierarchy raised by the client.

Every error carries the raw HTTP status, headers and decoded body when the
failure came from the remote side, so callers can branch on them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

__all__ = [
    "APIConnectionError",
    "APIError",
    "APITimeoutError",
    "AuthenticationError",
    "CardError",
    "ConfigError",
    "IdempotencyError",
    "InvalidPayloadError",
    "InvalidRequestError",
    "PermissionDeniedError",
    "RateLimitError",
    "SignatureVerificationError",
    "SigningError",
    "StripeError",
    "error_from_response",
]


class StripeError(Exception):
    """Base class for all errors raised by the client."""

    type = "stripe_error"

    def __init__(
        self,
        message: str,
        *,
        http_status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.headers: Dict[str, str] = dict(headers or {})
        self.json_body = json_body
        self.code = code
        self.num_retries = 0

    @property
    def request_id(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "request-id":
                return value
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "http_status": self.http_status,
            "code": self.code,
            "request_id": self.request_id,
            "num_retries": self.num_retries,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"http_status={self.http_status!r}, request_id={self.request_id!r})"
        )


class ConfigError(StripeError, ValueError):
    """Raised when the supplied client configuration is invalid."""

    type = "config_error"


class AuthenticationError(StripeError):
    type = "authentication_error"


class PermissionDeniedError(StripeError):
    type = "permission_error"


class CardError(StripeError):
    type = "card_error"


class InvalidRequestError(StripeError):
    type = "invalid_request_error"


class IdempotencyError(StripeError):
    type = "idempotency_error"


class RateLimitError(StripeError):
    type = "rate_limit_error"


class APIError(StripeError):
    """Generic server-side failure."""

    type = "api_error"


class APIConnectionError(StripeError):
    """The request never produced an HTTP response."""

    type = "api_connection_error"


class APITimeoutError(APIConnectionError):
    type = "timeout_error"


class SignatureVerificationError(StripeError):
    """A webhook signature did not verify."""

    type = "signature_verification_error"

    def __init__(
        self,
        message: str,
        sig_header: Optional[str] = None,
        http_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.sig_header = sig_header
        self.http_body = http_body


class SigningError(SignatureVerificationError):
    """The request signer failed; the request was not sent."""

    type = "signing_error"


class InvalidPayloadError(StripeError):
    type = "invalid_payload_error"


_STATUS_TO_ERROR = {
    400: InvalidRequestError,
    401: AuthenticationError,
    402: CardError,
    403: PermissionDeniedError,
    404: InvalidRequestError,
    429: RateLimitError,
}

_TYPE_TO_ERROR = {
    "card_error": CardError,
    "idempotency_error": IdempotencyError,
    "invalid_request_error": InvalidRequestError,
}


def error_from_response(
    status_code: int,
    headers: Mapping[str, str],
    json_body: Optional[Dict[str, Any]],
) -> StripeError:
    """
    Map an unsuccessful HTTP response onto the matching error class.
    """
    error_data: Dict[str, Any] = {}
    if isinstance(json_body, dict) and isinstance(json_body.get("error"), dict):
        error_data = json_body["error"]

    message = error_data.get("message") or f"Request failed with status {status_code}"
    error_type = error_data.get("type")

    error_cls = _STATUS_TO_ERROR.get(status_code)
    if error_type == "idempotency_error" or (error_cls is None and error_type in _TYPE_TO_ERROR):
        error_cls = _TYPE_TO_ERROR[error_type]
    if error_cls is None:
        error_cls = APIError

    return error_cls(
        message,
        http_status=status_code,
        headers=headers,
        json_body=json_body,
        code=error_data.get("code"),
    )
