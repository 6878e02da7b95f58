"""Shared fixtures for the law crawler tests."""

from __future__ import annotations

import pytest

from lawcrawler.document import (
    ArticleBlock,
    ArticleParagraph,
    LinkSegment,
    ScrapedDocument,
    TextSegment,
)
from lawcrawler.unresolved import RunContext


def _make_doc(law_id: str, title: str, *links: tuple[str, str]) -> ScrapedDocument:
    """One-block document whose single paragraph holds the given (text, href) links."""
    segments = [TextSegment(text="第一条 ")]
    for text, href in links:
        segments.append(LinkSegment(text=text, href=href))
        segments.append(TextSegment(text=" "))
    return ScrapedDocument(
        law_id=law_id,
        title=title,
        source_url=f"https://laws.e-gov.go.jp/law/{law_id}",
        blocks=[
            ArticleBlock(
                id="Mp-At_1",
                heading="第一条",
                paragraphs=[ArticleParagraph(anchor="Mp-At_1-Pr_1", segments=segments)],
            )
        ],
    )


@pytest.fixture
def make_doc():
    return _make_doc


@pytest.fixture
def run_context() -> RunContext:
    return RunContext(root_law_id="A", root_law_title="Root law")


@pytest.fixture
def no_sleep():
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
