"""Syntactic classification of hrefs and law-link parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .document import LinkSegment, ScrapedDocument

LAW_HREF = re.compile(
    r"^(?:https?://laws\.e-gov\.go\.jp)?/law/(?P<law_id>[A-Za-z0-9]+)/?"
    r"(?:#(?P<anchor>[A-Za-z0-9_-]+))?$"
)

# Reverses the wiki links written by render.py: [[laws/<name>_<id>.md#a|text]]
NOTE_LINK = re.compile(
    r"\[\[laws/[^\]]*?_(?P<law_id>[A-Za-z0-9]+)\.md(?:#[^\]|]+)?(?:\|[^\]]+)?\]\]"
)

EXTERNAL_SCHEMES = ("http://", "https://")


@dataclass(frozen=True, slots=True)
class EmptyHref:
    pass


@dataclass(frozen=True, slots=True)
class AnchorHref:
    anchor: str


@dataclass(frozen=True, slots=True)
class LawHref:
    law_id: str
    anchor: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ExternalHref:
    url: str


@dataclass(frozen=True, slots=True)
class UnknownHref:
    href: str


HrefKind = Union[EmptyHref, AnchorHref, LawHref, ExternalHref, UnknownHref]


def parse_law_href(href: str) -> Optional[Tuple[str, Optional[str]]]:
    """Return ``(law_id, anchor)`` for a law-page href, else None."""
    match = LAW_HREF.match((href or "").strip())
    if not match:
        return None
    return match.group("law_id"), match.group("anchor")


def classify_href(href: str) -> HrefKind:
    """Classify *href*; the order of checks is anchor, law, external, unknown."""
    value = (href or "").strip()
    if not value:
        return EmptyHref()
    if value.startswith("#"):
        return AnchorHref(anchor=value[1:].strip())
    parsed = parse_law_href(value)
    if parsed:
        law_id, anchor = parsed
        return LawHref(law_id=law_id, anchor=anchor)
    if value.startswith(EXTERNAL_SCHEMES):
        return ExternalHref(url=value)
    return UnknownHref(href=value)


def collect_referenced_law_ids(doc: ScrapedDocument) -> List[str]:
    """Distinct law IDs linked from *doc*, in order of first appearance."""
    ids: List[str] = []
    seen: set[str] = set()
    for block in doc.blocks:
        for paragraph in block.paragraphs:
            for segment in paragraph.segments:
                if not isinstance(segment, LinkSegment):
                    continue
                parsed = parse_law_href(segment.href)
                if parsed and parsed[0] not in seen:
                    seen.add(parsed[0])
                    ids.append(parsed[0])
    return ids


def scan_referenced_law_ids(markdown: str) -> List[str]:
    """Recover law IDs from the cross-law links of an already rendered note."""
    ids: List[str] = []
    seen: set[str] = set()
    for match in NOTE_LINK.finditer(markdown or ""):
        law_id = match.group("law_id")
        if law_id not in seen:
            seen.add(law_id)
            ids.append(law_id)
    return ids
