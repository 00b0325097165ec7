# trello_cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from trello_config import load_config
from trello_client import TrelloClient
from trello_errors import NetworkError, TrelloError, TrelloHttpError


def _parse_params(pairs: list[str]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {pair!r}")
        params[key] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trello API - raw request runner")
    parser.add_argument("method", help="GET, POST, PUT, DELETE, POST_JSON or PUT_JSON")
    parser.add_argument("path", help="API path, e.g. /1/members/me/boards")
    parser.add_argument("-p", "--param", action="append", default=[], help="Query parameter key=value (repeatable)")
    parser.add_argument("--data", default=None, help="JSON body for POST_JSON/PUT_JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging (shows 429 retries)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Runs one call through TrelloClient.make_request and prints the JSON answer.
    Credentials come from TRELLO_API_KEY / TRELLO_API_TOKEN (.env supported).
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        options = _parse_params(args.param)
        if args.data is not None:
            options["data"] = json.loads(args.data)
    except ValueError as e:
        print(f"Invalid arguments: {e}", file=sys.stderr)
        return 2

    try:
        cfg = load_config()
    except RuntimeError as e:
        print(f"Config error (.env?): {e}", file=sys.stderr)
        return 2

    client = TrelloClient.from_config(cfg)
    try:
        result = asyncio.run(client.make_request(args.method, args.path, options))
    except TrelloHttpError as e:
        print(f"Trello error {e.status} {e.status_text}: {e}", file=sys.stderr)
        return 1
    except (TrelloError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except NetworkError as e:
        print(f"Network error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
