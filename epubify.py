#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from kindlebot.convert import UnsupportedDocumentError, convert_document
from kindlebot.epub import EpubArchiveError, read_package_order
from kindlebot.parsing import NoChaptersError
from kindlebot.themes import STYLES, get_style


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert a novel TXT to EPUB 3, or restyle an existing EPUB for Kindle."
    )
    parser.add_argument("input", help="Input TXT or EPUB file path")
    parser.add_argument("-o", "--output", help="Output EPUB file path")
    parser.add_argument("--inspect", action="store_true", help="Print the reading order of an EPUB and exit")
    parser.add_argument(
        "--style",
        choices=sorted(STYLES),
        help="Style profile to apply (default: txt for TXT input, epub for EPUB input)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log each conversion step")
    return parser.parse_args(argv)


def inspect(path: Path) -> int:
    order = read_package_order(path.read_bytes())
    print(f"Title: {order.title or '-'}")
    for idx, (href, title) in enumerate(zip(order.nav, order.nav_titles), start=1):
        print(f"{idx:4d}  {title}  ({href})")
    if order.spine != order.nav:
        print("warning: spine and navigation order differ", file=sys.stderr)
    return 0


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(name)s: %(message)s")
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        if args.inspect:
            return inspect(input_path)
        style = get_style(args.style) if args.style else None
        result = convert_document(input_path.name, input_path.read_bytes(), style=style)
    except (NoChaptersError, EpubArchiveError, UnsupportedDocumentError) as exc:
        print(f"Conversion failed: {exc}", file=sys.stderr)
        return 1

    output_path = Path(args.output) if args.output else input_path.with_name(result.filename)
    if output_path.resolve() == input_path.resolve():
        output_path = input_path.with_name(f"{input_path.stem}.kindle.epub")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.archive)
    print(f"EPUB saved to: {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
