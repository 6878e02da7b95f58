"""Helpers for note files on disk and the existing-note index."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

LOGGER = logging.getLogger(__name__)

# law_id -> sorted note paths whose file name ends in _<law_id>.md
ExistingNoteIndex = Dict[str, List[Path]]

_NOTE_FILE_NAME = re.compile(r"_(?P<law_id>[A-Za-z0-9]+)\.md$")


def note_path(output_dir: Path, file_name: str) -> Path:
    return Path(output_dir) / file_name


def law_id_from_file_name(file_name: str) -> Optional[str]:
    match = _NOTE_FILE_NAME.search(file_name)
    return match.group("law_id") if match else None


def add_existing_note(index: ExistingNoteIndex, law_id: str, path: Path) -> None:
    paths = index.setdefault(law_id, [])
    if path not in paths:
        paths.append(path)
        paths.sort()


def build_existing_note_index(output_dir: Path) -> ExistingNoteIndex:
    """Index ``*.md`` notes in *output_dir* by the law ID in their file name."""
    index: ExistingNoteIndex = {}
    directory = Path(output_dir)
    if not directory.is_dir():
        return index
    for entry in sorted(directory.iterdir()):
        if not entry.is_file() or entry.suffix != ".md":
            continue
        law_id = law_id_from_file_name(entry.name)
        if law_id:
            add_existing_note(index, law_id, entry)
    LOGGER.debug("Indexed existing notes for %d laws in %s", len(index), directory)
    return index


def resolve_existing_note(
    output_dir: Path,
    law_id: str,
    registry_file_name: str,
    index: ExistingNoteIndex,
) -> Optional[Path]:
    """Find the note for *law_id*: the registry's file first, then the index."""
    candidate = note_path(output_dir, registry_file_name)
    if candidate.is_file():
        return candidate
    matches = index.get(law_id) or []
    return matches[0] if matches else None


def remove_renamed_note(
    output_dir: Path,
    old_file_name: str,
    new_file_name: str,
    index: ExistingNoteIndex,
    law_id: str,
) -> None:
    """Delete the note left behind when a law's file name changed."""
    if not old_file_name or old_file_name == new_file_name:
        return
    old_path = note_path(output_dir, old_file_name)
    try:
        old_path.unlink()
        LOGGER.info("Removed renamed note %s", old_path)
    except FileNotFoundError:
        pass
    remaining = [p for p in index.get(law_id, []) if p.name != old_file_name]
    if remaining:
        index[law_id] = remaining
    else:
        index.pop(law_id, None)
