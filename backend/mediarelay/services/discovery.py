"""Optional remote discovery with a configured default.

Used for option values the caller may omit and the provider can list for us
(e.g. HeyGen avatars and voices). A failed lookup never fails the run: it is
logged and the configured fallback is used instead.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


class CatalogDefault:
    """``resolve_default()`` -> remote pick, or ``fallback`` on any lookup failure."""

    def __init__(
        self,
        name: str,
        lookup: Callable[[], Awaitable[str | None]],
        fallback: str,
    ) -> None:
        self.name = name
        self.lookup = lookup
        self.fallback = fallback

    async def resolve_default(self) -> str:
        try:
            value = await self.lookup()
        except (httpx.HTTPError, LookupError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not fetch %s list (%s), using fallback.", self.name, e)
            return self.fallback
        if not value:
            logger.warning("No %s found in catalog, using fallback.", self.name)
            return self.fallback
        logger.info("Auto-selected %s: %s", self.name, value)
        return value


async def fetch_catalog(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    *path: str,
) -> list[dict[str, Any]]:
    """GET a JSON catalog and return the list found at ``path``."""
    resp = await client.get(url, headers={**headers, "Accept": "application/json"})
    resp.raise_for_status()
    node: Any = resp.json()
    for key in path:
        node = (node or {}).get(key)
    if not isinstance(node, list):
        raise LookupError(f"catalog at {url} has no list under {'.'.join(path)}")
    return node
