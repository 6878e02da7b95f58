"""Law reference-graph crawler producing Obsidian markdown notes.

This package crawls e-Gov law pages breadth-first, renders each law as a
markdown note whose cross-law references are wiki links, and keeps a
durable dictionary of law IDs to titles and file names. It supports:

- Depth-limited BFS over the reference graph
- Reusing previously written notes ("skip existing" mode)
- Best-effort title lookup for newly discovered references
- A deduplicated log of references that could not be resolved

Example usage:

    from lawcrawler import CrawlOptions, crawl_law_async

    options = CrawlOptions(max_depth=1, if_exists="skip")
    summary = await crawl_law_async("334AC0000000121", options=options)
    print(summary.stats)

    # Title only: resolved through the law API first
    summary = crawl_law(title="特許法")
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from .api import (
    AmbiguousLawTitleError,
    LawApiError,
    LawCandidate,
    build_dictionary_async,
    fetch_law_title_async,
    resolve_law_id_by_title,
)
from .backoff import retry_with_backoff
from .config import CrawlOptions
from .document import (
    ArticleBlock,
    ArticleParagraph,
    LinkSegment,
    ScrapedDocument,
    TextSegment,
)
from .links import parse_law_href, scan_referenced_law_ids
from .process import (
    CrawlSummary,
    FetchExhaustedError,
    Scraper,
    TitleLookupFn,
    process_law_graph,
)
from .registry import Registry, RegistryEntry, fallback_title, to_safe_title
from .render import RenderResult, render_markdown
from .scrape import ScrapeError
from .unresolved import (
    RunContext,
    UnresolvedRecord,
    append_unresolved,
    merge_unresolved_records,
)

__all__ = [
    # Document types
    "ScrapedDocument",
    "ArticleBlock",
    "ArticleParagraph",
    "TextSegment",
    "LinkSegment",
    # Registry and log
    "Registry",
    "RegistryEntry",
    "to_safe_title",
    "UnresolvedRecord",
    "RunContext",
    "merge_unresolved_records",
    "append_unresolved",
    # Rendering
    "RenderResult",
    "render_markdown",
    "parse_law_href",
    "scan_referenced_law_ids",
    # Crawl
    "CrawlOptions",
    "CrawlSummary",
    "FetchExhaustedError",
    "ScrapeError",
    "retry_with_backoff",
    "process_law_graph",
    "crawl_law",
    "crawl_law_async",
    "resolve_root_title_async",
    # Law API
    "LawApiError",
    "AmbiguousLawTitleError",
    "LawCandidate",
    "build_dictionary_async",
    "fetch_law_title_async",
    "resolve_law_id_by_title",
    # MCP Server
    "mcp",
]

LOGGER = logging.getLogger(__name__)

_FALLBACK_TITLE = re.compile(r"^law_[A-Za-z0-9]+$")


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def is_fallback_title(title: str) -> bool:
    return bool(_FALLBACK_TITLE.match(title or ""))


async def resolve_root_title_async(
    law_id: str,
    registry: Registry,
    options: CrawlOptions,
    *,
    title_lookup: Optional[TitleLookupFn] = None,
) -> str:
    """Pick a display title for a root given only by ID.

    Order: a real title already in the registry, then the law API when
    ``dictionary_autoupdate`` is on, then the ``law_<id>`` placeholder.
    """
    entry = registry.get(law_id)
    if entry is not None and not is_fallback_title(entry.title):
        return entry.title
    if options.dictionary_autoupdate:
        try:
            if title_lookup is not None:
                title = await title_lookup(law_id)
            else:
                title = await fetch_law_title_async(
                    law_id, api_base_url=options.api_base_url, retry=options.retry
                )
        except Exception as exc:
            LOGGER.warning("Title lookup failed for %s: %s", law_id, exc)
            title = None
        if title:
            return title
    return fallback_title(law_id)


async def crawl_law_async(
    law_id: Optional[str] = None,
    *,
    title: Optional[str] = None,
    options: Optional[CrawlOptions] = None,
    scraper: Optional[Scraper] = None,
    title_lookup: Optional[TitleLookupFn] = None,
) -> CrawlSummary:
    """
    Crawl the reference graph rooted at one law.

    Args:
        law_id: Root law ID. When omitted, *title* is resolved through the
            law API and must match exactly one law.
        title: Root title (used as the title hint when *law_id* is given).
        options: Crawl options (defaults to ``CrawlOptions.from_env()``).
        scraper: Optional replacement for the browser-based page scraper.
        title_lookup: Optional replacement for the API title lookup.

    Returns:
        CrawlSummary with fetched/skipped/dropped IDs and unresolved records.

    Raises:
        ValueError: If neither *law_id* nor *title* is given.
        AmbiguousLawTitleError: If *title* matches more than one law.
        FetchExhaustedError: If a law page could not be fetched.
    """
    opts = (options or CrawlOptions.from_env()).validate()
    registry = Registry.load(opts.dictionary_path)

    if not law_id:
        if not title:
            raise ValueError("Either law_id or title is required")
        candidate = await resolve_law_id_by_title(
            title, api_base_url=opts.api_base_url, retry=opts.retry
        )
        if not candidate.law_id:
            raise LawApiError(f"Law candidate has no law_id: {title}")
        law_id, title = candidate.law_id, candidate.law_title

    if not title:
        title = await resolve_root_title_async(
            law_id, registry, opts, title_lookup=title_lookup
        )

    LOGGER.info(
        "Starting law crawl: %s (%s) max_depth=%d if_exists=%s",
        title,
        law_id,
        opts.max_depth,
        opts.if_exists,
    )
    return await process_law_graph(
        opts,
        law_id,
        title,
        registry,
        scraper=scraper,
        title_lookup=title_lookup,
    )


def crawl_law(
    law_id: Optional[str] = None,
    *,
    title: Optional[str] = None,
    options: Optional[CrawlOptions] = None,
) -> CrawlSummary:
    """Synchronous wrapper for crawl_law_async."""
    return asyncio.run(crawl_law_async(law_id, title=title, options=options))
