# main.py

"""Entry point for the pulse_feed retailer lookup CLI."""

import argparse
import asyncio
import logging
import sys

from pulse_feed.config.logging_config import setup_logging
from pulse_feed.config.settings import Settings

logger = logging.getLogger("pulse_feed.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pulse_feed",
        description="Match AI-described products to real retailer listings.",
        epilog="Set SERPAPI_KEY (or put it in .env) before running.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show INFO log lines on stderr.",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        default=False,
        help="Print the metrics snapshot to stderr when done.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    lookup = commands.add_parser(
        "lookup", help="Search retailers for a free-text query."
    )
    lookup.add_argument("query", help="Search query.")
    lookup.add_argument(
        "-n",
        "--limit",
        type=int,
        default=Settings.MAX_RETAILER_LINKS,
        help="Maximum listings to return.",
    )

    enrich = commands.add_parser(
        "enrich", help="Add retailer links to a JSON list of products."
    )
    enrich.add_argument("path", help="Path to a JSON product list.")
    return parser


async def _run(args: argparse.Namespace) -> int:
    """Dispatch the selected sub-command."""
    from pulse_feed.cli.runner import cli_enrich, cli_lookup, print_metrics
    from pulse_feed.services.enrichment_service import EnrichmentService

    service = EnrichmentService()
    try:
        if args.command == "lookup":
            return await cli_lookup(
                args.query, args.limit, args.output_format, service
            )
        return await cli_enrich(args.path, args.output_format, service)
    finally:
        if args.metrics:
            print_metrics(service.metrics)


def main() -> None:
    """Parse arguments, run the command and exit with its status."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info("pulse_feed starting, log file: %s", log_file)

    try:
        exit_code = asyncio.run(_run(args))
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
