"""OpenID Connect discovery primitive.

Resolves ``{issuer}/.well-known/openid-configuration`` and caches the
validated endpoint document per issuer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from ocra.auth.client.models.discovery import DiscoveryDocument
from ocra.auth.client.models.errors import DiscoveryError, FlowTimeoutError

logger = logging.getLogger(__name__)


def normalize_issuer(issuer: str) -> str:
    return issuer.rstrip("/")


def build_discovery_url(issuer: str) -> str:
    """Build the OIDC discovery URL for an issuer."""
    return f"{normalize_issuer(issuer)}/.well-known/openid-configuration"


@dataclass(frozen=True)
class _CacheEntry:
    document: DiscoveryDocument
    fetched_at: float


class DiscoveryCache:
    """Caches provider discovery documents for concurrent login attempts.

    Entries are written once per issuer and never mutated; with a TTL they
    are replaced wholesale once stale. Concurrent first resolutions of the
    same issuer share a single fetch.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        ttl: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the discovery cache.

        Args:
            timeout: HTTP request timeout in seconds
            ttl: Seconds a document stays fresh, None for process lifetime
            http_client: Shared client, owned by the caller when given
        """
        self.timeout = timeout
        self.ttl = ttl
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._entries: dict[str, _CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def resolve(self, issuer: str) -> DiscoveryDocument:
        """Return the discovery document for an issuer.

        Raises:
            DiscoveryError: If the document cannot be fetched or is invalid
            FlowTimeoutError: If the provider does not answer in time
        """
        key = normalize_issuer(issuer)

        cached = self._fresh_entry(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another resolver may have filled the entry while we waited
            cached = self._fresh_entry(key)
            if cached is not None:
                return cached

            document = await self._fetch(key)
            self._entries[key] = _CacheEntry(document, time.monotonic())
            return document

    def cached(self, issuer: str) -> DiscoveryDocument | None:
        """Return the cached document without fetching."""
        return self._fresh_entry(normalize_issuer(issuer))

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self._http_client.aclose()

    def _fresh_entry(self, key: str) -> DiscoveryDocument | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.ttl is not None and time.monotonic() - entry.fetched_at >= self.ttl:
            return None
        return entry.document

    async def _fetch(self, issuer: str) -> DiscoveryDocument:
        url = build_discovery_url(issuer)
        try:
            logger.debug(f"Fetching discovery document from: {url}")
            response = await self._http_client.get(
                url, headers={"Accept": "application/json"}
            )
            response.raise_for_status()

            document = DiscoveryDocument.model_validate_json(response.text)

            logger.debug(f"Discovered endpoints for issuer {issuer}")
            return document

        except httpx.TimeoutException as e:
            raise FlowTimeoutError(f"Timed out fetching discovery from {url}") from e
        except httpx.HTTPStatusError as e:
            raise DiscoveryError(
                f"Discovery request to {url} failed with "
                f"status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to fetch discovery from {url}: {e}") from e
        except ValidationError as e:
            raise DiscoveryError(f"Invalid discovery document from {url}: {e}") from e
