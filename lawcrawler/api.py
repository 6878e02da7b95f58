"""Client for the e-Gov law API (v2).

Used for best-effort title lookup of unknown references, for resolving a law
title given on the command line to its law ID, and for rebuilding the law
dictionary from the full law list.

Public API::

    from lawcrawler.api import fetch_law_title_async, resolve_law_id_by_title

    title = await fetch_law_title_async("334AC0000000121", api_base_url=..., retry=3)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .backoff import retry_with_backoff
from .registry import Registry, make_entry
from .storage import PathLike

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class LawCandidate:
    """One entry of the ``/laws`` search response."""

    law_title: str
    law_id: Optional[str] = None
    law_num: Optional[str] = None
    promulgation_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "law_id": self.law_id,
            "law_num": self.law_num,
            "law_title": self.law_title,
            "promulgation_date": self.promulgation_date,
        }


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LawApiError(Exception):
    """Raised when the law API request fails or returns nothing usable."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class AmbiguousLawTitleError(LawApiError):
    """Raised when a title matches more than one law."""

    def __init__(self, title: str, candidates: List[LawCandidate]):
        self.title = title
        self.candidates = candidates
        super().__init__(f"Law title is ambiguous: {title} ({len(candidates)} candidates)")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "ambiguous_law_title",
            "input": self.title,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def law_site_base_url(api_base_url: str) -> str:
    """Derive the law-page site root from the API base URL."""
    return re.sub(r"/api/2/?$", "", api_base_url).rstrip("/")


def _get_api_client(api_base_url: str, timeout: float = 30.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=api_base_url.rstrip("/") + "/",
        headers={"Accept": "application/json"},
        timeout=timeout,
    )


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


async def fetch_json_async(
    path: str,
    *,
    api_base_url: str,
    params: Optional[Dict[str, Any]] = None,
    retry: int = 3,
) -> Any:
    """GET ``<api_base_url>/<path>`` and decode JSON, retrying with backoff.

    Raises:
        LawApiError: When every attempt fails.
    """

    async def attempt() -> Any:
        async with _get_api_client(api_base_url) as client:
            response = await client.get(path.lstrip("/"), params=params)
            response.raise_for_status()
            return response.json()

    try:
        return await retry_with_backoff(attempt, retry)
    except httpx.HTTPStatusError as exc:
        raise LawApiError(
            f"Law API error: {exc.response.status_code} - {exc.response.text}",
            url=str(exc.request.url),
        ) from exc
    except httpx.RequestError as exc:
        raise LawApiError(f"Request failed: {exc}", url=path) from exc
    except json.JSONDecodeError as exc:
        raise LawApiError(f"Invalid JSON from law API: {exc}", url=path) from exc


def parse_law_candidates(payload: Any) -> List[LawCandidate]:
    """Convert a ``/laws`` response into candidates, skipping untitled entries."""
    if not isinstance(payload, dict):
        return []
    candidates: List[LawCandidate] = []
    for item in payload.get("laws") or []:
        if not isinstance(item, dict):
            continue
        law_info = item.get("law_info") or {}
        revision_info = item.get("revision_info") or {}
        title = _string_or_none(revision_info.get("law_title"))
        if not title:
            continue
        candidates.append(
            LawCandidate(
                law_title=title,
                law_id=_string_or_none(law_info.get("law_id")),
                law_num=_string_or_none(law_info.get("law_num")),
                promulgation_date=_string_or_none(law_info.get("promulgation_date")),
            )
        )
    return candidates


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def search_laws_async(
    title: str, *, api_base_url: str, retry: int = 3
) -> List[LawCandidate]:
    payload = await fetch_json_async(
        "laws", api_base_url=api_base_url, params={"law_title": title}, retry=retry
    )
    return parse_law_candidates(payload)


async def resolve_law_id_by_title(
    title: str, *, api_base_url: str, retry: int = 3
) -> LawCandidate:
    """Resolve a law title to exactly one candidate.

    Raises:
        LawApiError: If nothing matches.
        AmbiguousLawTitleError: If more than one law matches.
    """
    candidates = await search_laws_async(title, api_base_url=api_base_url, retry=retry)
    if not candidates:
        raise LawApiError(f"No law matches title: {title}")
    if len(candidates) > 1:
        raise AmbiguousLawTitleError(title, candidates)
    return candidates[0]


async def fetch_law_title_async(
    law_id: str, *, api_base_url: str, retry: int = 3
) -> Optional[str]:
    """Look up the current title of *law_id*; None when the API has none."""
    payload = await fetch_json_async(
        f"law_data/{law_id}",
        api_base_url=api_base_url,
        params={"response_format": "json"},
        retry=retry,
    )
    if not isinstance(payload, dict):
        return None
    revision_info = payload.get("revision_info") or {}
    title = revision_info.get("law_title")
    if isinstance(title, str) and title.strip():
        return title.strip()
    return None


async def build_dictionary_async(
    path: PathLike,
    *,
    api_base_url: str,
    retry: int = 3,
    page_size: int = 100,
) -> Registry:
    """Page through the full law list and write a fresh dictionary to *path*."""
    registry = Registry()
    offset = 0
    while True:
        payload = await fetch_json_async(
            "laws",
            api_base_url=api_base_url,
            params={"limit": page_size, "offset": offset},
            retry=retry,
        )
        candidates = parse_law_candidates(payload)
        if not candidates:
            break
        for candidate in candidates:
            if candidate.law_id:
                registry.set(candidate.law_id, make_entry(candidate.law_id, candidate.law_title))
        offset += page_size
        LOGGER.debug("Dictionary build: %d entries after offset %d", len(registry), offset)

    registry.save(path)
    LOGGER.info("Wrote law dictionary to %s (%d entries)", path, len(registry))
    return registry
