# main.py

"""Entry point for the shelfsync headless catalog CLI."""

import argparse
import asyncio
import logging
import sys

from shelfsync.config.logging_config import setup_logging
from shelfsync.config.settings import Settings

logger = logging.getLogger("shelfsync.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="shelfsync",
        description="Offline-first product catalog browser.",
        epilog=f"Catalog API: {Settings.API_BASE_URL}",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    browse = commands.add_parser("browse", help="List catalog products.")
    browse.add_argument(
        "-q",
        "--query",
        default="",
        help="Case-insensitive title search.",
    )
    browse.add_argument(
        "-c",
        "--category",
        default=None,
        help="Exact category label to filter by.",
    )
    browse.add_argument(
        "-p",
        "--pages",
        type=int,
        default=1,
        help=f"Pages of {Settings.ITEMS_PER_PAGE} items to show (default: 1).",
    )

    commands.add_parser("categories", help="List category labels.")

    show = commands.add_parser("show", help="Show one product.")
    show.add_argument("product_id", type=int)

    favorites = commands.add_parser("favorites", help="Manage favorites.")
    favorites.add_argument(
        "action",
        choices=["list", "add", "remove"],
    )
    favorites.add_argument("product_id", type=int, nargs="?", default=None)

    commands.add_parser("refresh", help="Re-fetch the catalog.")
    commands.add_parser("health", help="Check catalog API connectivity.")
    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    """Open the store, run one command and close the store."""
    from shelfsync.cli import runner
    from shelfsync.services.catalog_store import CatalogStore

    async with CatalogStore() as store:
        if args.command == "browse":
            return await runner.cli_browse(
                store,
                query=args.query,
                category=args.category,
                pages=args.pages,
                output_format=args.output_format,
            )
        if args.command == "categories":
            return await runner.cli_categories(store)
        if args.command == "show":
            return await runner.cli_show(
                store, args.product_id, args.output_format
            )
        if args.command == "favorites":
            return await runner.cli_favorites(
                store, args.action, args.product_id, args.output_format
            )
        if args.command == "refresh":
            return await runner.cli_refresh(store)
        return await runner.run_health_check(store)


def main() -> None:
    """Parse arguments and run the requested command."""
    log_file = setup_logging()
    logger.info("shelfsync starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    try:
        exit_code = asyncio.run(_dispatch(args))
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    finally:
        logger.info("shelfsync shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
