"""Crawl options and factory functions for Crawl4AI configurations."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Literal, Optional

from crawl4ai import BrowserConfig, CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://laws.e-gov.go.jp/api/2"
DEFAULT_DICTIONARY_PATH = "data/law_dictionary.json"
DEFAULT_UNRESOLVED_PATH = "data/unresolved_refs.json"
DEFAULT_OUTPUT_DIR = "laws"

IfExists = Literal["overwrite", "skip"]
IF_EXISTS_CHOICES = ("overwrite", "skip")

# The provision body is rendered client-side; any of these marks it as ready.
PROVISION_ROOT_SELECTORS: List[str] = [
    "#MainProvision",
    "#provisionview",
    "main.main-content",
]


@dataclass
class CrawlOptions:
    """Settings consumed by the crawl driver and its collaborators."""

    max_depth: int = 1
    if_exists: IfExists = "overwrite"
    retry: int = 3
    timeout_ms: int = 30_000
    dictionary_path: str = DEFAULT_DICTIONARY_PATH
    dictionary_autoupdate: bool = False
    unresolved_path: str = DEFAULT_UNRESOLVED_PATH
    output_dir: str = DEFAULT_OUTPUT_DIR
    api_base_url: str = DEFAULT_API_BASE_URL

    def validate(self) -> "CrawlOptions":
        if self.max_depth < 0:
            raise ValueError("max_depth must be an integer >= 0")
        if self.retry < 1:
            raise ValueError("retry must be an integer >= 1")
        if self.timeout_ms < 1:
            raise ValueError("timeout_ms must be an integer >= 1")
        if self.if_exists not in IF_EXISTS_CHOICES:
            raise ValueError(
                f"if_exists must be one of {', '.join(IF_EXISTS_CHOICES)}: {self.if_exists}"
            )
        return self

    @property
    def skip_existing(self) -> bool:
        return self.if_exists == "skip"

    @classmethod
    def from_env(cls) -> "CrawlOptions":
        """Build options from ``LAWCRAWLER_*`` variables, read at call time."""
        return cls(
            max_depth=_env_int("LAWCRAWLER_MAX_DEPTH", 1),
            if_exists=os.getenv("LAWCRAWLER_IF_EXISTS", "overwrite"),  # type: ignore[arg-type]
            retry=_env_int("LAWCRAWLER_RETRY", 3),
            timeout_ms=_env_int("LAWCRAWLER_TIMEOUT_MS", 30_000),
            dictionary_path=os.getenv("LAWCRAWLER_DICTIONARY", DEFAULT_DICTIONARY_PATH),
            dictionary_autoupdate=_env_bool("LAWCRAWLER_DICTIONARY_AUTOUPDATE"),
            unresolved_path=os.getenv("LAWCRAWLER_UNRESOLVED_PATH", DEFAULT_UNRESOLVED_PATH),
            output_dir=os.getenv("LAWCRAWLER_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            api_base_url=os.getenv("LAWCRAWLER_API_BASE_URL", DEFAULT_API_BASE_URL),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-integer %s=%r; using %d.", name, raw, default)
        return default


def _env_bool(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _provision_ready_js() -> str:
    checks = " || ".join(
        f"document.querySelector({selector!r}) !== null"
        for selector in PROVISION_ROOT_SELECTORS
    )
    return f"js:() => {checks}"


def build_browser_config() -> BrowserConfig:
    """Headless browser without a persistent profile."""
    return BrowserConfig(headless=True, use_persistent_context=False, verbose=False)


def build_law_run_config(
    timeout_ms: int = 30_000,
    *,
    cache_mode: Optional[CacheMode] = None,
) -> CrawlerRunConfig:
    """RunConfig for one law page: wait for the provision body, keep raw HTML."""
    return CrawlerRunConfig(
        verbose=False,
        cache_mode=cache_mode or CacheMode.BYPASS,
        wait_until="domcontentloaded",
        wait_for=_provision_ready_js(),
        wait_for_timeout=timeout_ms,
        page_timeout=timeout_ms,
        semaphore_count=1,
    )
