import argparse
import logging
import sys
from typing import List, Optional

from directory_render import render
from slack_directory import (
    API_KEY_ENV,
    OUTPUT_TOKENS,
    DirectoryExportError,
    export_directory,
    load_dotenv,
    resolve_config,
)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(funcName)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("slack_sdk").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slackline",
        description="Export the Slack team directory as a table, JSON, CSV, HTML or Markdown.",
    )
    parser.add_argument("-k", "--key", help=f"Slack API key (falls back to {API_KEY_ENV})")
    parser.add_argument("-c", "--channel", help="Limit search to a single Slack channel")
    parser.add_argument(
        "-o",
        "--output",
        default="table",
        help=f"Output format: {', '.join(OUTPUT_TOKENS)} (default: table)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(".env")

    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = resolve_config(key=args.key, channel=args.channel, output=args.output)
        entries = export_directory(config)
        document = render(entries, config.output_format)
    except DirectoryExportError as e:
        raise SystemExit(f"Error: {e}")

    sys.stdout.write(document)
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
