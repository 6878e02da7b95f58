"""Unresolved-reference records and their deduplicated, append-only log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Set, Tuple

from .storage import PathLike, read_json, utc_timestamp, write_json

LOGGER = logging.getLogger(__name__)

UnresolvedReason = Literal["target_not_built", "unknown_format", "depth_limit"]

DedupKey = Tuple[str, str, str, str]

_KEY_FIELDS = ("root_law_id", "from_anchor", "raw_text", "href")


@dataclass(slots=True)
class UnresolvedRecord:
    """A link the renderer could not fully resolve."""

    timestamp: str
    root_law_id: str
    root_law_title: str
    from_anchor: str
    raw_text: str
    href: str
    reason: UnresolvedReason

    @property
    def dedup_key(self) -> DedupKey:
        return (self.root_law_id, self.from_anchor, self.raw_text, self.href or "")

    def to_dict(self) -> Dict[str, str]:
        return {
            "timestamp": self.timestamp,
            "root_law_id": self.root_law_id,
            "root_law_title": self.root_law_title,
            "from_anchor": self.from_anchor,
            "raw_text": self.raw_text,
            "href": self.href,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UnresolvedRecord":
        return cls(
            timestamp=str(raw.get("timestamp", "")),
            root_law_id=raw["root_law_id"],
            root_law_title=str(raw.get("root_law_title", "")),
            from_anchor=raw["from_anchor"],
            raw_text=raw["raw_text"],
            href=raw.get("href") or "",
            reason=raw.get("reason", "target_not_built"),
        )


@dataclass
class RunContext:
    """Per-run state: the crawl root plus the unresolved records seen so far.

    The ``seen`` set spans the whole run, so the same link is recorded once
    even when several documents (or several passes) encounter it.
    """

    root_law_id: str
    root_law_title: str
    unresolved: List[UnresolvedRecord] = field(default_factory=list)
    seen: Set[DedupKey] = field(default_factory=set)

    def record(
        self,
        *,
        from_anchor: str,
        raw_text: str,
        href: str,
        reason: UnresolvedReason,
    ) -> bool:
        """Append a record unless its dedup key was already seen this run."""
        item = UnresolvedRecord(
            timestamp=utc_timestamp(),
            root_law_id=self.root_law_id,
            root_law_title=self.root_law_title,
            from_anchor=from_anchor,
            raw_text=raw_text,
            href=href or "",
            reason=reason,
        )
        if item.dedup_key in self.seen:
            return False
        self.seen.add(item.dedup_key)
        self.unresolved.append(item)
        return True


def merge_unresolved_records(
    existing: Iterable[UnresolvedRecord],
    incoming: Iterable[UnresolvedRecord],
) -> List[UnresolvedRecord]:
    """Append incoming records whose dedup key is not present yet."""
    merged = list(existing)
    seen = {item.dedup_key for item in merged}
    for item in incoming:
        if item.dedup_key in seen:
            continue
        seen.add(item.dedup_key)
        merged.append(item)
    return merged


def _is_valid_record(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return all(isinstance(value.get(name), str) for name in _KEY_FIELDS)


def load_unresolved(path: PathLike) -> List[UnresolvedRecord]:
    """Load persisted records, dropping malformed ones."""
    raw = read_json(path, [])
    if not isinstance(raw, list):
        LOGGER.warning("Unresolved log at %s is not a JSON array; ignoring it", path)
        return []
    return [UnresolvedRecord.from_dict(item) for item in raw if _is_valid_record(item)]


def append_unresolved(path: PathLike, records: Iterable[UnresolvedRecord]) -> int:
    """Merge *records* into the log at *path*; return how many were added."""
    existing = load_unresolved(path)
    merged = merge_unresolved_records(existing, records)
    write_json(path, [item.to_dict() for item in merged])
    added = len(merged) - len(existing)
    LOGGER.debug("Unresolved log %s: %d new, %d total", path, added, len(merged))
    return added
