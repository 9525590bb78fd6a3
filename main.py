# main.py

"""Entry point for the price_compare headless CLI."""

import argparse
import asyncio
import logging
import sys

from price_compare.config.logging_config import setup_logging
from price_compare.config.settings import Settings

logger = logging.getLogger("price_compare.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="price_compare",
        description="Indian marketplace price comparison engine.",
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Product to search for.",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=int,
        default=Settings.DEFAULT_LIMIT,
        help=(
            "Requested results per source; at most "
            f"{Settings.MAX_RESULTS_PER_SOURCE} are kept "
            f"(default: {Settings.DEFAULT_LIMIT})."
        ),
    )
    parser.add_argument(
        "-s",
        "--source",
        default=None,
        help="Search a single source id (default: all).",
    )
    parser.add_argument(
        "--best",
        action="store_true",
        default=False,
        dest="best_only",
        help="Keep only the single best offer per source.",
    )
    parser.add_argument(
        "--details",
        default=None,
        metavar="URL",
        help="Re-check one product page (requires --source).",
    )
    parser.add_argument(
        "--list-sources",
        action="store_true",
        default=False,
        dest="list_sources",
        help="Print the allowed source ids and exit.",
    )
    return parser


def main() -> None:
    """Route to source listing, product details or a search."""
    log_file = setup_logging()
    logger.info("price_compare starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from price_compare.cli.runner import (
        cli_details,
        cli_list_sources,
        cli_search,
    )

    if args.list_sources:
        sys.exit(cli_list_sources())

    if args.details is not None:
        if args.source is None:
            parser.error("--details requires --source")
        sys.exit(asyncio.run(cli_details(args.source, args.details)))

    if args.query is None:
        parser.error("a search query is required")
    if args.limit < 1:
        parser.error("--limit must be at least 1")

    try:
        exit_code = asyncio.run(
            cli_search(
                query=args.query,
                limit=args.limit,
                source=args.source,
                best_only=args.best_only,
            )
        )
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    finally:
        logger.info("price_compare shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
