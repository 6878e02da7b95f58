"""Data structures representing scraped law documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Union


@dataclass(slots=True)
class TextSegment:
    """Plain text run inside a paragraph."""

    text: str


@dataclass(slots=True)
class LinkSegment:
    """Anchor element collected from a paragraph."""

    text: str
    href: str


Segment = Union[TextSegment, LinkSegment]


@dataclass(slots=True)
class ArticleParagraph:
    anchor: str
    segments: List[Segment] = field(default_factory=list)


@dataclass(slots=True)
class ArticleBlock:
    """One article (or supplementary provision) with its paragraphs."""

    id: str
    heading: str
    paragraphs: List[ArticleParagraph] = field(default_factory=list)


@dataclass(slots=True)
class ScrapedDocument:
    """Container for the structured content of one law page."""

    law_id: str
    title: str
    source_url: str
    blocks: List[ArticleBlock] = field(default_factory=list)
