"""Public page cache and the revalidation signal sent after admin mutations."""

import hmac
import logging
from typing import Dict, List, Optional

import httpx
from cachetools import TTLCache

from config import (
    PAGE_CACHE_SIZE, PAGE_CACHE_TTL, REVALIDATION_SECRET, REVALIDATION_WEBHOOK_URL,
)

logger = logging.getLogger(__name__)

# content type -> public path prefixes whose pages depend on it
CONTENT_PATHS: Dict[str, List[str]] = {
    "projects": ["/", "/projects", "/api/projects"],
    "research-projects": ["/", "/research", "/api/research-projects"],
    "blog": ["/", "/blog", "/api/blog-posts"],
    "skills": ["/", "/skills", "/api/skills"],
}
CONTENT_TYPES = tuple(CONTENT_PATHS) + ("all",)

# Rendered public pages, keyed by path + query string.
page_cache: TTLCache = TTLCache(maxsize=PAGE_CACHE_SIZE, ttl=PAGE_CACHE_TTL)


def paths_for(content_type: str, slug: Optional[str] = None) -> List[str]:
    if content_type == "all":
        paths: List[str] = []
        for prefixes in CONTENT_PATHS.values():
            paths.extend(p for p in prefixes if p not in paths)
        return paths
    if content_type not in CONTENT_PATHS:
        raise ValueError(f"Unknown content type: {content_type}")
    paths = list(CONTENT_PATHS[content_type])
    if slug:
        detail = {"projects": "/projects", "research-projects": "/research", "blog": "/blog"}.get(content_type)
        if detail:
            paths.append(f"{detail}/{slug}")
    return paths


def _affected(key: str, paths: List[str]) -> bool:
    path = key.split("?", 1)[0]
    for prefix in paths:
        if prefix == "/":
            if path == "/":
                return True
        elif path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def evict(paths: List[str]) -> int:
    stale = [key for key in list(page_cache.keys()) if _affected(key, paths)]
    for key in stale:
        page_cache.pop(key, None)
    return len(stale)


def revalidate(content_type: str, slug: Optional[str] = None) -> int:
    """Mark every cached page that depends on ``content_type`` stale.

    Runs after the admin response has been sent.  Failures are logged and
    never raised, so a broken webhook can not fail a save.
    """
    try:
        paths = paths_for(content_type, slug)
        evicted = evict(paths)
        logger.info("Revalidated %s (%d cached pages evicted)", content_type, evicted)
    except Exception:
        logger.exception("Revalidation of %s failed", content_type)
        return 0

    if REVALIDATION_WEBHOOK_URL:
        try:
            resp = httpx.post(
                REVALIDATION_WEBHOOK_URL,
                json={"secret": REVALIDATION_SECRET, "type": content_type, "paths": paths},
                timeout=10.0,
            )
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Revalidation webhook for %s failed: %s", content_type, e)
    return evicted


def validate_revalidation_secret(secret: Optional[str]) -> bool:
    if not REVALIDATION_SECRET:
        logger.warning("REVALIDATION_SECRET is not set in environment variables")
        return False
    return hmac.compare_digest(secret or "", REVALIDATION_SECRET)
