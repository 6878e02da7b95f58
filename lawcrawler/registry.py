"""Law dictionary: the durable mapping of law IDs to titles and file names.

The registry is the single source of truth for link targets. Every
cross-law link the renderer emits points at ``entry.file_name``, so an entry
must exist before a link can be written, even when the target law has not
been fetched yet. Such placeholder entries are *fallback* entries and are
recognised purely by their file name (``law_<id>.md``).
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, Optional, Tuple

from .storage import PathLike, read_json, utc_timestamp, write_json

LOGGER = logging.getLogger(__name__)

SAFE_TITLE_MAX_LENGTH = 80
SAFE_TITLE_SENTINEL = "law"

_FORBIDDEN_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class RegistryEntry:
    """Title and file-name metadata for one law."""

    title: str
    safe_title: str
    file_name: str
    updated_at: str

    def same_content(self, other: "RegistryEntry") -> bool:
        return (self.title, self.safe_title, self.file_name) == (
            other.title,
            other.safe_title,
            other.file_name,
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "safe_title": self.safe_title,
            "file_name": self.file_name,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RegistryEntry":
        return cls(
            title=str(raw.get("title", "")),
            safe_title=str(raw.get("safe_title", "")),
            file_name=str(raw.get("file_name", "")),
            updated_at=str(raw.get("updated_at", "")),
        )


def to_safe_title(title: str) -> str:
    """Normalize *title* for use in a file name.

    NFKC-normalizes, replaces characters that are unsafe in file names with
    ``_``, collapses whitespace and truncates to 80 characters. Never returns
    an empty string.
    """
    normalized = unicodedata.normalize("NFKC", title or "")
    normalized = _FORBIDDEN_CHARS.sub("_", normalized)
    normalized = _WHITESPACE.sub(" ", normalized).strip()
    if len(normalized) > SAFE_TITLE_MAX_LENGTH:
        normalized = normalized[:SAFE_TITLE_MAX_LENGTH].strip()
    return normalized or SAFE_TITLE_SENTINEL


def file_name_for(law_id: str, title: str) -> str:
    return f"{to_safe_title(title)}_{law_id}.md"


def fallback_title(law_id: str) -> str:
    return f"law_{law_id}"


def fallback_file_name(law_id: str) -> str:
    return f"law_{law_id}.md"


def make_entry(law_id: str, title: str) -> RegistryEntry:
    """Build a regular entry whose file name derives from *title*."""
    safe_title = to_safe_title(title)
    return RegistryEntry(
        title=title,
        safe_title=safe_title,
        file_name=file_name_for(law_id, title),
        updated_at=utc_timestamp(),
    )


def make_fallback_entry(law_id: str) -> RegistryEntry:
    """Build the placeholder entry used while a law's title is unknown."""
    return RegistryEntry(
        title=fallback_title(law_id),
        safe_title=fallback_title(law_id),
        file_name=fallback_file_name(law_id),
        updated_at=utc_timestamp(),
    )


def is_fallback_entry(law_id: str, entry: RegistryEntry) -> bool:
    return entry.file_name == fallback_file_name(law_id)


class Registry:
    """Owning handle over the in-memory law dictionary.

    Writes go through :meth:`set`, which only touches the mapping (and the
    ``dirty`` flag) when the entry actually changes. Callers decide when to
    persist by checking :attr:`dirty`.
    """

    def __init__(self, entries: Optional[Dict[str, RegistryEntry]] = None) -> None:
        self._entries: Dict[str, RegistryEntry] = dict(entries or {})
        self.dirty = False

    def __contains__(self, law_id: object) -> bool:
        return law_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, law_id: str) -> Optional[RegistryEntry]:
        return self._entries.get(law_id)

    def items(self) -> Iterator[Tuple[str, RegistryEntry]]:
        return iter(self._entries.items())

    def set(self, law_id: str, entry: RegistryEntry) -> bool:
        """Store *entry* under *law_id*; return True when something changed."""
        current = self._entries.get(law_id)
        if current is not None and current.same_content(entry):
            return False
        self._entries[law_id] = entry
        self.dirty = True
        return True

    def ensure_fallback(self, law_id: str) -> RegistryEntry:
        """Return the entry for *law_id*, creating a fallback entry if absent."""
        entry = self._entries.get(law_id)
        if entry is None:
            entry = make_fallback_entry(law_id)
            self.set(law_id, entry)
        return entry

    def rename_file(self, law_id: str, file_name: str) -> None:
        """Point an existing entry at a different note file."""
        entry = self._entries[law_id]
        if entry.file_name == file_name:
            return
        self.set(law_id, replace(entry, file_name=file_name, updated_at=utc_timestamp()))

    def mark_clean(self) -> None:
        self.dirty = False

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {law_id: entry.to_dict() for law_id, entry in self._entries.items()}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Registry":
        return cls(
            {
                str(law_id): RegistryEntry.from_dict(value)
                for law_id, value in (raw or {}).items()
                if isinstance(value, dict)
            }
        )

    @classmethod
    def load(cls, path: PathLike) -> "Registry":
        """Load the dictionary file; a missing file yields an empty registry."""
        raw = read_json(path, {})
        if not isinstance(raw, dict):
            raise ValueError(f"Law dictionary at {path} is not a JSON object")
        registry = cls.from_dict(raw)
        LOGGER.debug("Loaded %d dictionary entries from %s", len(registry), path)
        return registry

    def save(self, path: PathLike) -> None:
        write_json(path, self.to_dict())
        self.mark_clean()
