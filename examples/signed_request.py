"""
Minimal script that signs a v2 request with a secp256k1 key and prints the
response metadata.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from stripe_payments import (
    ConfigError,
    StripeClient,
    StripeError,
    create_eth_account_signer,
    create_request_signing_authenticator,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a signed meter event session request")
    parser.add_argument("--key-id", required=True, help="Identifier of the registered signing key")
    parser.add_argument("--private-key", required=True, help="Hex-encoded secp256k1 private key")
    parser.add_argument("--stripe-context", help="Context to scope the request to")
    parser.add_argument("--host", default=None, help="Override the API host")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    authenticator = create_request_signing_authenticator(
        args.key_id,
        create_eth_account_signer(args.private_key),
    )
    config = {"stripe_context": args.stripe_context}
    if args.host:
        config["host"] = args.host

    try:
        client = StripeClient(authenticator, config)
    except ConfigError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    async with client:
        try:
            session = await client.call("v2.billing.meter_event_session.create")
        except StripeError as exc:
            logging.error("Request failed: %s", exc.to_dict())
            return 1

    meta = session.last_response
    logging.info(
        "Created session %s (request_id=%s, idempotency_key=%s)",
        session.get("id"),
        meta.request_id if meta else None,
        meta.idempotency_key if meta else None,
    )
    return 0


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
