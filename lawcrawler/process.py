"""Breadth-first crawl driver over the law reference graph."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from .api import fetch_law_title_async, law_site_base_url
from .backoff import retry_with_backoff
from .config import CrawlOptions
from .document import ScrapedDocument
from .links import collect_referenced_law_ids, scan_referenced_law_ids
from .notes import (
    ExistingNoteIndex,
    add_existing_note,
    build_existing_note_index,
    note_path,
    remove_renamed_note,
    resolve_existing_note,
)
from .registry import (
    Registry,
    RegistryEntry,
    fallback_title,
    make_entry,
    make_fallback_entry,
)
from .render import render_markdown
from .scrape import scrape_law_document_async
from .unresolved import RunContext, UnresolvedRecord, append_unresolved

LOGGER = logging.getLogger(__name__)

Scraper = Callable[[str], Awaitable[ScrapedDocument]]
TitleLookupFn = Callable[[str], Awaitable[Optional[str]]]


class FetchExhaustedError(Exception):
    """Raised when every fetch attempt for a law failed; aborts the run."""

    def __init__(self, law_id: str, attempts: int):
        self.law_id = law_id
        self.attempts = attempts
        super().__init__(f"Failed to fetch law {law_id} after {attempts} attempt(s)")


@dataclass(slots=True)
class QueueItem:
    law_id: str
    depth: int
    title_hint: Optional[str] = None


@dataclass(slots=True)
class TitleLookup:
    """Outcome of a best-effort title lookup; exactly one branch applies."""

    title: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.title)


@dataclass
class CrawlSummary:
    """What a crawl run did, in visiting order."""

    fetched: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    unresolved: List[UnresolvedRecord] = field(default_factory=list)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "fetched": len(self.fetched),
            "skipped_existing": len(self.skipped),
            "dropped": len(self.dropped),
            "unresolved": len(self.unresolved),
        }


def default_scraper(options: CrawlOptions) -> Scraper:
    site_base_url = law_site_base_url(options.api_base_url)

    async def scrape(law_id: str) -> ScrapedDocument:
        return await scrape_law_document_async(
            law_id, site_base_url=site_base_url, timeout_ms=options.timeout_ms
        )

    return scrape


def default_title_lookup(options: CrawlOptions) -> TitleLookupFn:
    # retry=1 here: the driver's own backoff executor provides the retries.
    async def lookup(law_id: str) -> Optional[str]:
        return await fetch_law_title_async(
            law_id, api_base_url=options.api_base_url, retry=1
        )

    return lookup


class LawGraphCrawler:
    """Owns the queue, visited set and run context of one crawl invocation."""

    def __init__(
        self,
        options: CrawlOptions,
        registry: Registry,
        *,
        scraper: Optional[Scraper] = None,
        title_lookup: Optional[TitleLookupFn] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.options = options
        self.registry = registry
        self.scraper = scraper or default_scraper(options)
        self.title_lookup = title_lookup or default_title_lookup(options)
        self.sleep = sleep
        self.output_dir = Path(options.output_dir)
        self.queue: Deque[QueueItem] = deque()
        self.visited: Set[str] = set()
        self.index: ExistingNoteIndex = {}
        self.summary = CrawlSummary()

    async def run(self, root_law_id: str, root_title: str) -> CrawlSummary:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        if self.options.skip_existing:
            self.index = build_existing_note_index(self.output_dir)

        context = RunContext(root_law_id=root_law_id, root_law_title=root_title)
        self.queue.append(QueueItem(law_id=root_law_id, depth=0, title_hint=root_title))

        while self.queue:
            item = self.queue.popleft()
            if item.depth > self.options.max_depth or item.law_id in self.visited:
                # Depth-limited edges were already logged when rendered.
                LOGGER.debug("Dropped %s (depth=%d)", item.law_id, item.depth)
                self.summary.dropped.append(item.law_id)
                continue
            self.visited.add(item.law_id)

            entry = self._ensure_entry(item)
            if self.options.skip_existing and self._skip_existing(item, entry):
                self.summary.skipped.append(item.law_id)
                continue

            await self._fetch_and_render(item, entry, context)
            self.summary.fetched.append(item.law_id)

        self.registry.save(self.options.dictionary_path)
        append_unresolved(self.options.unresolved_path, context.unresolved)
        self.summary.unresolved = list(context.unresolved)
        LOGGER.info(
            "Crawl finished: %d fetched, %d skipped, %d unresolved reference(s)",
            len(self.summary.fetched),
            len(self.summary.skipped),
            len(context.unresolved),
        )
        return self.summary

    def _ensure_entry(self, item: QueueItem) -> RegistryEntry:
        entry = self.registry.get(item.law_id)
        if entry is None:
            if item.title_hint and item.title_hint != fallback_title(item.law_id):
                entry = make_entry(item.law_id, item.title_hint)
            else:
                entry = make_fallback_entry(item.law_id)
            self.registry.set(item.law_id, entry)
        return entry

    def _enqueue(self, law_ids: List[str], depth: int) -> None:
        for law_id in law_ids:
            LOGGER.debug("Enqueue %s at depth %d", law_id, depth)
            self.queue.append(QueueItem(law_id=law_id, depth=depth))

    def _skip_existing(self, item: QueueItem, entry: RegistryEntry) -> bool:
        existing = resolve_existing_note(
            self.output_dir, item.law_id, entry.file_name, self.index
        )
        if existing is None:
            return False

        markdown = existing.read_text(encoding="utf-8")
        self._enqueue(scan_referenced_law_ids(markdown), item.depth + 1)
        if entry.file_name != existing.name:
            self.registry.rename_file(item.law_id, existing.name)
        LOGGER.info("Skip existing: %s", existing.name)
        return True

    async def _lookup_title(self, law_id: str) -> TitleLookup:
        try:
            title = await retry_with_backoff(
                lambda: self.title_lookup(law_id), self.options.retry, sleep=self.sleep
            )
        except Exception as exc:
            return TitleLookup(error=exc)
        return TitleLookup(title=title)

    async def _register_references(self, doc: ScrapedDocument) -> None:
        for law_id in collect_referenced_law_ids(doc):
            if law_id in self.registry:
                continue
            if self.options.dictionary_autoupdate:
                lookup = await self._lookup_title(law_id)
                if lookup.ok and lookup.title:
                    self.registry.set(law_id, make_entry(law_id, lookup.title))
                    continue
                if lookup.error is not None:
                    LOGGER.warning(
                        "Title lookup failed for %s; using fallback name: %s",
                        law_id,
                        lookup.error,
                    )
            self.registry.set(law_id, make_fallback_entry(law_id))

    async def _fetch_and_render(
        self, item: QueueItem, entry: RegistryEntry, context: RunContext
    ) -> None:
        LOGGER.info("Fetching %s (%s) depth=%d", entry.title, item.law_id, item.depth)
        try:
            doc = await retry_with_backoff(
                lambda: self.scraper(item.law_id), self.options.retry, sleep=self.sleep
            )
        except Exception as exc:
            raise FetchExhaustedError(item.law_id, self.options.retry) from exc

        previous_file_name = entry.file_name
        fresh = make_entry(item.law_id, doc.title)
        self.registry.set(item.law_id, fresh)

        await self._register_references(doc)

        rendered = render_markdown(
            doc, self.registry, context, item.depth, self.options.max_depth
        )
        if rendered.registry_dirty or self.registry.dirty:
            self.registry.save(self.options.dictionary_path)

        path = note_path(self.output_dir, fresh.file_name)
        path.write_text(rendered.markdown, encoding="utf-8")
        LOGGER.info("Wrote %s", path)

        remove_renamed_note(
            self.output_dir, previous_file_name, fresh.file_name, self.index, item.law_id
        )
        add_existing_note(self.index, item.law_id, path)

        self._enqueue(rendered.referenced_law_ids, item.depth + 1)


async def process_law_graph(
    options: CrawlOptions,
    root_law_id: str,
    root_title: str,
    registry: Registry,
    *,
    scraper: Optional[Scraper] = None,
    title_lookup: Optional[TitleLookupFn] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> CrawlSummary:
    """Crawl the reference graph from *root_law_id* breadth-first.

    Notes are written to ``options.output_dir``; the registry is saved after
    each document that changed it and once more at the end, and the run's
    unresolved references are merged into ``options.unresolved_path``.

    Raises:
        FetchExhaustedError: If a law could not be fetched within
            ``options.retry`` attempts. Work already written stays on disk.
    """
    crawler = LawGraphCrawler(
        options.validate(),
        registry,
        scraper=scraper,
        title_lookup=title_lookup,
        sleep=sleep,
    )
    return await crawler.run(root_law_id, root_title)
