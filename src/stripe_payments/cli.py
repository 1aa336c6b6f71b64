"""
Command-line interface for calling the API and checking webhook payloads.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .api import create_client, verify_webhook
from .core.config import ConfigError, load_client_config
from .core.environment import build_environment
from .core.errors import StripeError
from .core.webhooks import event_summary, generate_test_header_string


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _key_value(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Values must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Key must not be empty")
    return key, val


def _collect_pairs(pairs: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    collected: Dict[str, str] = {}
    for key, value in pairs:
        collected[key] = value
    return collected


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stripe-payments",
        description="Call the payments API or verify webhook deliveries",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing STRIPE_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    webhook = commands.add_parser("webhook", help="Webhook signature helpers")
    webhook_commands = webhook.add_subparsers(dest="webhook_command", required=True)

    verify = webhook_commands.add_parser("verify", help="Verify a signed payload")
    verify.add_argument("--payload-file", required=True, type=Path)
    verify.add_argument("--header", required=True, help="Value of the Stripe-Signature header")
    verify.add_argument(
        "--secret",
        action="append",
        default=None,
        help="Signing secret; repeat for rotation (default: STRIPE_WEBHOOK_SECRET)",
    )
    verify.add_argument("--tolerance", type=int, default=None, help="Allowed skew in seconds")
    verify.add_argument("--thin", action="store_true", help="Parse as a thin event")

    sign = webhook_commands.add_parser("sign", help="Generate a test signature header")
    sign.add_argument("--payload-file", required=True, type=Path)
    sign.add_argument("--secret", default=None, help="Signing secret (default: STRIPE_WEBHOOK_SECRET)")
    sign.add_argument("--timestamp", type=int, default=None)

    call = commands.add_parser("call", help="Invoke an API endpoint")
    call.add_argument("endpoint", help="Endpoint name, e.g. account_links.create")
    call.add_argument("path_args", nargs="*", metavar="ID", help="Path parameters in order")
    call.add_argument(
        "--param",
        action="append",
        type=_key_value,
        metavar="KEY=VALUE",
        default=None,
        help="Request parameter; bracket keys like metadata[order]=7 are passed through",
    )
    call.add_argument("--stripe-account", default=None)
    call.add_argument("--stripe-context", default=None)
    call.add_argument("--idempotency-key", default=None)
    return parser


def _webhook_secrets(args: argparse.Namespace, overrides: Dict[str, str]) -> List[str]:
    if args.secret:
        return [args.secret] if isinstance(args.secret, str) else list(args.secret)
    secrets = build_environment(env_file=args.env_file, overrides=overrides).webhook_secrets()
    if not secrets:
        raise ConfigError("STRIPE_WEBHOOK_SECRET must be provided")
    return secrets


def _run_webhook(args: argparse.Namespace, overrides: Dict[str, str]) -> int:
    payload = args.payload_file.read_bytes()

    secrets = _webhook_secrets(args, overrides)

    if args.webhook_command == "sign":
        secret = secrets[0]
        print(generate_test_header_string(payload, secret, timestamp=args.timestamp))
        return 0

    try:
        event = verify_webhook(
            payload,
            args.header,
            secret=secrets,
            tolerance=args.tolerance,
            thin=args.thin,
        )
    except StripeError as exc:
        logging.error("Webhook rejected: %s", exc)
        return 1

    logging.info("Webhook verified: %s", event_summary(event))
    print(json.dumps(event, indent=2, sort_keys=True))
    return 0


async def _run_call(args: argparse.Namespace, overrides: Dict[str, str]) -> int:
    config = load_client_config(env_file=args.env_file, overrides=overrides)
    options: Dict[str, Any] = {}
    if args.stripe_account:
        options["stripe_account"] = args.stripe_account
    if args.stripe_context:
        options["stripe_context"] = args.stripe_context
    if args.idempotency_key:
        options["idempotency_key"] = args.idempotency_key

    async with create_client(config=config) as client:
        try:
            result = await client.call(
                args.endpoint,
                *args.path_args,
                params=_collect_pairs(args.param or ()),
                **options,
            )
        except StripeError as exc:
            logging.error("Request failed: %s", json.dumps(exc.to_dict()))
            return 1

    meta = result.last_response
    if meta is not None:
        logging.info(
            "Request %s succeeded (status=%s, retries=%d)",
            meta.request_id,
            meta.status_code,
            meta.num_retries,
        )
    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def run_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_pairs(args.set or ())

    try:
        if args.command == "webhook":
            return _run_webhook(args, overrides)
        return asyncio.run(_run_call(args, overrides))
    except (ConfigError, OSError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
