"""JSON persistence helpers shared by the registry and the unresolved log."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_json(path: PathLike, default: Any) -> Any:
    """Load JSON from *path*, returning *default* when the file does not exist.

    Any other read or decode failure propagates.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        LOGGER.debug("No file at %s; starting empty", path)
        return default
    return json.loads(content)


def write_json(path: PathLike, data: Any) -> None:
    """Serialize *data* to *path*, creating parent directories first."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
