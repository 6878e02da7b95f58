"""MCP Server for the law crawler.

Provides tools for:
- Crawling the reference graph rooted at one law into markdown notes
- Looking up law IDs by title through the e-Gov law API

Supports both STDIO and HTTP transports.

Usage:
    # STDIO
    python -m lawcrawler.mcp_server

    # HTTP (for remote access)
    python -m lawcrawler.mcp_server --transport http --port 8000

Environment Variables:
    LAWCRAWLER_API_BASE_URL: Law API base URL (default: https://laws.e-gov.go.jp/api/2)
    LAWCRAWLER_OUTPUT_DIR: Directory for notes (default: laws)
    LAWCRAWLER_DICTIONARY: Law dictionary path
    LAWCRAWLER_UNRESOLVED_PATH: Unresolved reference log path
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .api import AmbiguousLawTitleError, LawApiError, search_laws_async
from .config import CrawlOptions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before reading environment variables
load_dotenv()

mcp = FastMCP(
    name="Law Crawler",
    instructions="""
    A law crawler that turns e-Gov statute pages into linked markdown notes.

    Tools:
       - crawl_law: Crawl a law and the laws it references (BFS, depth-limited)
       - lookup_law: Find law IDs matching a title

    Both tools return JSON.
    """,
)


def _format_timestamp() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@mcp.tool
async def crawl_law(
    law_id: Optional[str] = None,
    title: Optional[str] = None,
    max_depth: int = 1,
    if_exists: str = "skip",
    dictionary_autoupdate: bool = False,
) -> str:
    """
    Crawl a law page and the laws it references into markdown notes.

    Args:
        law_id: Root law ID (e.g. "334AC0000000121")
        title: Root law title; resolved to an ID when law_id is omitted
        max_depth: Reference depth to follow (default: 1, 0 = root only)
        if_exists: "skip" (default) reuses existing notes, "overwrite" refetches
        dictionary_autoupdate: Look up titles of unknown references

    Returns:
        JSON with crawl statistics and the written law IDs, or an error.
    """
    from . import crawl_law_async

    options = replace(
        CrawlOptions.from_env(),
        max_depth=max_depth,
        if_exists=if_exists,  # type: ignore[arg-type]
        dictionary_autoupdate=dictionary_autoupdate,
    )

    try:
        summary = await crawl_law_async(law_id, title=title, options=options)
    except AmbiguousLawTitleError as exc:
        return json.dumps(exc.to_dict(), indent=2, ensure_ascii=False)
    except Exception as exc:
        LOGGER.error("Crawl failed: %s", exc)
        return json.dumps(
            {"error": str(exc), "law_id": law_id, "title": title}, ensure_ascii=False
        )

    return json.dumps(
        {
            "crawled_at": _format_timestamp(),
            "stats": summary.stats,
            "fetched": summary.fetched,
            "skipped": summary.skipped,
            "unresolved": [record.to_dict() for record in summary.unresolved],
        },
        indent=2,
        ensure_ascii=False,
    )


@mcp.tool
async def lookup_law(title: str) -> str:
    """
    Find laws whose title matches the query.

    Args:
        title: Law title or part of it

    Returns:
        JSON list of candidates with law_id, law_num, law_title and
        promulgation_date.
    """
    options = CrawlOptions.from_env()
    try:
        candidates = await search_laws_async(
            title, api_base_url=options.api_base_url, retry=options.retry
        )
    except LawApiError as exc:
        LOGGER.error("Law lookup failed: %s", exc)
        return json.dumps({"error": str(exc), "title": title}, ensure_ascii=False)

    LOGGER.info("Lookup returned %d candidates", len(candidates))
    return json.dumps(
        {"title": title, "candidates": [c.to_dict() for c in candidates]},
        indent=2,
        ensure_ascii=False,
    )


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the law crawler MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()
    LOGGER.info("Law API: %s", CrawlOptions.from_env().api_base_url)

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
