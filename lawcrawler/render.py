"""Render a scraped law document into an Obsidian markdown note."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .document import ArticleParagraph, LinkSegment, ScrapedDocument
from .links import AnchorHref, EmptyHref, ExternalHref, LawHref, classify_href
from .registry import Registry, is_fallback_entry
from .storage import utc_timestamp
from .unresolved import RunContext

NOTES_LINK_PREFIX = "laws/"

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class RenderResult:
    markdown: str
    referenced_law_ids: List[str] = field(default_factory=list)
    registry_dirty: bool = False


def _yaml_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


class _ParagraphRenderer:
    """Resolves the links of one document against the registry."""

    def __init__(
        self,
        registry: Registry,
        context: RunContext,
        current_depth: int,
        max_depth: int,
    ) -> None:
        self.registry = registry
        self.context = context
        self.expand = current_depth + 1 <= max_depth
        self.referenced_law_ids: List[str] = []
        self.registry_dirty = False

    def render(self, paragraph: ArticleParagraph) -> str:
        parts: List[str] = []
        for segment in paragraph.segments:
            if isinstance(segment, LinkSegment):
                parts.append(self._render_link(segment, paragraph.anchor))
            else:
                parts.append(segment.text)
        return _WHITESPACE.sub(" ", "".join(parts)).strip()

    def _render_link(self, segment: LinkSegment, from_anchor: str) -> str:
        href = (segment.href or "").strip()
        text = segment.text or href
        kind = classify_href(href)

        if isinstance(kind, EmptyHref):
            return text
        if isinstance(kind, AnchorHref):
            return f"[[#{kind.anchor}|{text}]]"
        if isinstance(kind, LawHref):
            return self._render_law_link(kind, text, href, from_anchor)
        if isinstance(kind, ExternalHref):
            return f"[{text}]({kind.url})"

        self.context.record(
            from_anchor=from_anchor, raw_text=text, href=href, reason="unknown_format"
        )
        return text

    def _render_law_link(
        self, kind: LawHref, text: str, href: str, from_anchor: str
    ) -> str:
        law_id = kind.law_id
        if law_id not in self.registry:
            self.registry_dirty = True
            self.context.record(
                from_anchor=from_anchor,
                raw_text=text,
                href=href,
                reason="target_not_built",
            )
        entry = self.registry.ensure_fallback(law_id)
        if is_fallback_entry(law_id, entry):
            self.context.record(
                from_anchor=from_anchor,
                raw_text=text,
                href=href,
                reason="target_not_built",
            )

        if not self.expand:
            self.context.record(
                from_anchor=from_anchor, raw_text=text, href=href, reason="depth_limit"
            )
        elif law_id not in self.referenced_law_ids:
            self.referenced_law_ids.append(law_id)

        target = f"{NOTES_LINK_PREFIX}{entry.file_name}"
        if kind.anchor:
            target = f"{target}#{kind.anchor}"
        return f"[[{target}|{text}]]"


def render_markdown(
    doc: ScrapedDocument,
    registry: Registry,
    context: RunContext,
    current_depth: int,
    max_depth: int,
    *,
    fetched_at: Optional[str] = None,
) -> RenderResult:
    """Render *doc* and resolve its links against *registry*.

    Unregistered link targets get a fallback registry entry so the emitted
    link is always well-formed. Links that cannot be fully resolved are
    recorded on *context*. Law IDs that may be followed without exceeding
    *max_depth* are returned in order of first appearance.

    Args:
        doc: The scraped document.
        registry: Registry to resolve against; fallback entries are added to it.
        context: Run context collecting unresolved records.
        current_depth: BFS depth of *doc*.
        max_depth: Maximum crawl depth.
        fetched_at: Timestamp for the front matter (defaults to now, UTC).

    Returns:
        RenderResult with the markdown, followable law IDs and whether the
        registry was modified.
    """
    paragraphs = _ParagraphRenderer(registry, context, current_depth, max_depth)

    lines: List[str] = [
        "---",
        f"law_id: {doc.law_id}",
        f"title: {_yaml_string(doc.title)}",
        f"source_url: {doc.source_url}",
        f"fetched_at: {fetched_at or utc_timestamp()}",
        "---",
        "",
        f"# {doc.title}",
        "",
    ]

    for block in doc.blocks:
        lines.append(f"## {block.heading}")
        if block.id:
            lines.append(f'<a id="{block.id}"></a>')
        lines.append("")

        for paragraph in block.paragraphs:
            text = paragraphs.render(paragraph)
            if not text:
                continue
            lines.append(f'<a id="{paragraph.anchor}"></a>')
            lines.append(text)
            lines.append("")

    return RenderResult(
        markdown="\n".join(lines).rstrip() + "\n",
        referenced_law_ids=paragraphs.referenced_law_ids,
        registry_dirty=paragraphs.registry_dirty,
    )
