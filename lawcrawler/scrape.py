"""Fetch law pages with Crawl4AI and extract their article structure."""

from __future__ import annotations

import logging
from typing import List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from crawl4ai import AsyncWebCrawler, CrawlerRunConfig
from crawl4ai.models import CrawlResult

from .config import PROVISION_ROOT_SELECTORS, build_browser_config, build_law_run_config
from .document import (
    ArticleBlock,
    ArticleParagraph,
    LinkSegment,
    ScrapedDocument,
    Segment,
    TextSegment,
)

LOGGER = logging.getLogger(__name__)

TITLE_SUFFIX = " | e-Gov 法令検索"
UNTITLED_LAW = "無題法令"
DEFAULT_HEADING = "条文"
HEADING_SELECTOR = ".articleheading, .paragraphtitle, .istitle"
FALLBACK_BLOCK_SELECTOR = (
    '[id^="Mp-"], [id^="Sup-"], [id^="App-"], [id^="Ap-"], [id^="Enf-"]'
)


class ScrapeError(Exception):
    """Raised when a law page cannot be fetched or has no provision body."""

    def __init__(self, message: str, law_id: str = ""):
        self.law_id = law_id
        super().__init__(message)


def law_source_url(site_base_url: str, law_id: str) -> str:
    return f"{site_base_url.rstrip('/')}/law/{law_id}"


def _find_provision_root(soup: BeautifulSoup) -> Optional[Tag]:
    for selector in PROVISION_ROOT_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            return found
    return None


def _extract_title(soup: BeautifulSoup) -> str:
    heading = soup.find("h1")
    if heading is not None:
        text = heading.get_text().strip()
        if text:
            return text
    if soup.title is not None and soup.title.string:
        text = soup.title.string.replace(TITLE_SUFFIX, "").strip()
        if text:
            return text
    return UNTITLED_LAW


def _collect_segments(node: Tag, segments: List[Segment]) -> None:
    for child in node.children:
        if isinstance(child, NavigableString):
            text = str(child)
            if text:
                segments.append(TextSegment(text=text))
            continue
        if not isinstance(child, Tag):
            continue
        # Only real anchors become links; reference wording stays text.
        if child.name == "a" and child.has_attr("href"):
            segments.append(
                LinkSegment(text=child.get_text().strip(), href=str(child["href"]))
            )
            continue
        _collect_segments(child, segments)


def _extract_block(article: Tag) -> ArticleBlock:
    block_id = str(article.get("id") or "")
    heading_node = article.select_one(HEADING_SELECTOR)
    heading = heading_node.get_text().strip() if heading_node is not None else ""
    heading = heading or block_id or DEFAULT_HEADING

    paragraphs: List[ArticleParagraph] = []
    for index, node in enumerate(article.select("p.sentence"), start=1):
        anchor = str(node.get("id") or f"{block_id}-p{index}")
        segments: List[Segment] = []
        _collect_segments(node, segments)
        paragraphs.append(ArticleParagraph(anchor=anchor, segments=segments))

    return ArticleBlock(id=block_id, heading=heading, paragraphs=paragraphs)


def extract_law_document(html: str, law_id: str, source_url: str) -> ScrapedDocument:
    """Parse rendered law-page HTML into a :class:`ScrapedDocument`.

    Raises:
        ScrapeError: If no provision body is present.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    root = _find_provision_root(soup)
    if root is None:
        raise ScrapeError(f"Provision body not found for {law_id}", law_id=law_id)

    articles = root.select("article.article[id]") or root.select(FALLBACK_BLOCK_SELECTOR)
    return ScrapedDocument(
        law_id=law_id,
        title=_extract_title(soup),
        source_url=source_url,
        blocks=[_extract_block(article) for article in articles],
    )


def _failure_reason(result: CrawlResult) -> str:
    if result.error_message:
        return result.error_message
    if result.status_code:
        return f"HTTP {result.status_code}"
    return "Crawler returned no content"


async def scrape_law_document_async(
    law_id: str,
    *,
    site_base_url: str,
    timeout_ms: int = 30_000,
    config: Optional[CrawlerRunConfig] = None,
) -> ScrapedDocument:
    """Render one law page in a headless browser and extract it.

    This performs a single attempt; callers wrap it with
    :func:`lawcrawler.backoff.retry_with_backoff`.

    Raises:
        ScrapeError: If the crawler fails or the page has no provision body.
    """
    source_url = law_source_url(site_base_url, law_id)
    run_config = config or build_law_run_config(timeout_ms)

    async with AsyncWebCrawler(config=build_browser_config()) as crawler:
        container = await crawler.arun(url=source_url, config=run_config)

    try:
        result = container[0]
    except IndexError:
        result = None
    except TypeError:
        result = container

    if result is None or not getattr(result, "success", False):
        reason = _failure_reason(result) if result is not None else "no result"
        raise ScrapeError(f"Failed to fetch {source_url}: {reason}", law_id=law_id)

    html = result.html or result.cleaned_html or ""
    return extract_law_document(html, law_id, source_url)
