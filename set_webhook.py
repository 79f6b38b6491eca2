#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys

from kindlebot.telegram import TelegramError, set_webhook


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Point the Telegram bot's webhook at a deployed kindlebot.")
    parser.add_argument("domain", help="Public domain of the deployment, e.g. my-bot.example.com")
    return parser.parse_args(argv)


def webhook_url(domain: str) -> str:
    host = domain.strip().removeprefix("https://").removeprefix("http://").rstrip("/")
    return f"https://{host}/api/webhook"


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    url = webhook_url(args.domain)
    print(f"Setting webhook: {url}")
    try:
        result = set_webhook(url)
    except TelegramError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Result: {json.dumps(result, ensure_ascii=False)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
