"""Command-line interface for the law crawler."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .api import AmbiguousLawTitleError, build_dictionary_async
from .cli_config import CONFIG_ENV_FILE, load_config
from .config import IF_EXISTS_CHOICES, CrawlOptions

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AMBIGUOUS = 2
EXIT_INTERRUPTED = 130


def _load_config() -> None:
    """Load .env from the working directory or ~/.config/lawcrawler/.env."""
    load_config(config_env_file=CONFIG_ENV_FILE, cwd=Path.cwd(), load_env=load_dotenv)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_parser(defaults: CrawlOptions) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="law-crawl",
        description="Crawl e-Gov law pages into linked Obsidian markdown notes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Resolve a title and crawl one level of references
  law-crawl 特許法

  # Crawl by law ID, two levels deep, reusing notes already written
  law-crawl --law-id 334AC0000000121 --max-depth 2 --if-exists skip

  # Rebuild the law dictionary from the full law list
  law-crawl --build-dictionary
""",
    )
    parser.add_argument(
        "title",
        nargs="*",
        help="Law title to resolve through the law API",
    )
    parser.add_argument("--law-id", default=None, help="Root law ID")
    parser.add_argument(
        "--build-dictionary",
        action="store_true",
        help="Regenerate the law dictionary from /api/2/laws and exit",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=defaults.max_depth,
        help=f"Maximum reference depth to follow (default: {defaults.max_depth})",
    )
    parser.add_argument(
        "--if-exists",
        choices=IF_EXISTS_CHOICES,
        default=defaults.if_exists,
        help="What to do with notes that already exist (default: %(default)s)",
    )
    parser.add_argument(
        "--retry",
        type=int,
        default=defaults.retry,
        help=f"Attempts per network request (default: {defaults.retry})",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=defaults.timeout_ms,
        help=f"Page load timeout in milliseconds (default: {defaults.timeout_ms})",
    )
    parser.add_argument(
        "--dictionary",
        dest="dictionary_path",
        default=defaults.dictionary_path,
        help="Law dictionary JSON path (default: %(default)s)",
    )
    parser.add_argument(
        "--dictionary-autoupdate",
        action=argparse.BooleanOptionalAction,
        default=defaults.dictionary_autoupdate,
        help="Look up titles of unknown references through the law API",
    )
    parser.add_argument(
        "--unresolved-path",
        default=defaults.unresolved_path,
        help="Unresolved reference log path (default: %(default)s)",
    )
    parser.add_argument(
        "--output-dir",
        default=defaults.output_dir,
        help="Directory for markdown notes (default: %(default)s)",
    )
    parser.add_argument(
        "--api-base-url",
        default=defaults.api_base_url,
        help="Law API base URL (default: %(default)s)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _build_parser(CrawlOptions.from_env())
    args = parser.parse_args(argv)
    args.title = " ".join(args.title).strip() or None
    if not args.build_dictionary and not args.law_id and not args.title:
        parser.error("a law title or --law-id is required")
    try:
        _options_from_args(args).validate()
    except ValueError as exc:
        parser.error(str(exc))
    return args


def _options_from_args(args: argparse.Namespace) -> CrawlOptions:
    return CrawlOptions(
        max_depth=args.max_depth,
        if_exists=args.if_exists,
        retry=args.retry,
        timeout_ms=args.timeout_ms,
        dictionary_path=args.dictionary_path,
        dictionary_autoupdate=args.dictionary_autoupdate,
        unresolved_path=args.unresolved_path,
        output_dir=args.output_dir,
        api_base_url=args.api_base_url,
    )


async def _run_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    from . import crawl_law_async

    options = _options_from_args(args)

    if args.build_dictionary:
        await build_dictionary_async(
            options.dictionary_path,
            api_base_url=options.api_base_url,
            retry=options.retry,
        )
        return EXIT_OK

    try:
        summary = await crawl_law_async(args.law_id, title=args.title, options=options)
    except AmbiguousLawTitleError as exc:
        print(json.dumps(exc.to_dict(), indent=2, ensure_ascii=False))
        return EXIT_AMBIGUOUS

    stats = summary.stats
    logging.info(
        "Crawl complete: %d fetched, %d skipped, %d dropped, %d unresolved",
        stats["fetched"],
        stats["skipped_existing"],
        stats["dropped"],
        stats["unresolved"],
    )
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for law-crawl."""
    _load_config()
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
