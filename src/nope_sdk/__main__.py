from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence

from pydantic import BaseModel

from nope_sdk.client import NopeClient, create_client_from_env
from nope_sdk.config import load_settings
from nope_sdk.errors import NopeError
from nope_sdk.webhook import SIGNATURE_HEADER, TIMESTAMP_HEADER, sign_webhook, verify_webhook_from_env


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nope_sdk", description="Call the NOPE API using NOPE_* environment settings.")
    commands = parser.add_subparsers(dest="command", required=True)

    evaluate = commands.add_parser("evaluate", help="evaluate free text for risk")
    evaluate.add_argument("text")
    evaluate.add_argument("--country", default=None, help="ISO country code for crisis resources")
    evaluate.add_argument("--user-context", default=None)

    screen = commands.add_parser("screen", help="run a crisis screen over free text")
    screen.add_argument("text")

    sign = commands.add_parser("sign-webhook", help="sign a payload with NOPE_WEBHOOK_SECRET")
    sign.add_argument("file", nargs="?", default="-", help="payload file, '-' for stdin")
    sign.add_argument("--timestamp", type=int, default=None)

    verify = commands.add_parser(
        "verify-webhook", help="verify a delivery with NOPE_WEBHOOK_SECRET and NOPE_WEBHOOK_MAX_AGE_SECONDS"
    )
    verify.add_argument("file", nargs="?", default="-", help="raw body file, '-' for stdin")
    verify.add_argument("--signature", required=True, help="X-NOPE-Signature header value")
    verify.add_argument("--timestamp", required=True, help="X-NOPE-Timestamp header value")
    verify.add_argument("--now", type=int, default=None, help="unix time to check freshness against")
    return parser


async def _call(client: NopeClient, args: argparse.Namespace) -> BaseModel:
    if args.command == "screen":
        return await client.screen(text=args.text)
    config = {"user_country": args.country} if args.country else None
    return await client.evaluate(text=args.text, config=config, user_context=args.user_context)


def _read_payload(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as handle:
        return handle.read()


def _sign(args: argparse.Namespace) -> int:
    secret = load_settings().NOPE_WEBHOOK_SECRET
    if not secret:
        print("NOPE_WEBHOOK_SECRET is not set", file=sys.stderr)
        return 1
    signed = sign_webhook(_read_payload(args.file), secret, timestamp=args.timestamp)
    for name, value in signed.headers().items():
        print(f"{name}: {value}")
    return 0


def _verify(args: argparse.Namespace) -> int:
    headers = {SIGNATURE_HEADER: args.signature, TIMESTAMP_HEADER: args.timestamp}
    try:
        event = verify_webhook_from_env(_read_payload(args.file), headers, now=args.now)
    except NopeError as exc:
        print(f"{exc.kind.value}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(event.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "sign-webhook":
        return _sign(args)
    if args.command == "verify-webhook":
        return _verify(args)

    client = create_client_from_env()
    try:
        result = asyncio.run(_call(client, args))
    except NopeError as exc:
        print(f"{exc.kind.value}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(result.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
