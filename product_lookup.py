"""
product_lookup.py — public interface for catalog access.

The rest of the app imports only from here:
  from product_lookup import fetch_product, search_products

Every lookup goes through the same policy:

  1. Cache     "product_<barcode>", 300s TTL — a hit returns immediately
  2. Gate      no connectivity → OfflineError, zero requests made
  3. Attempt   bounded by REQUEST_TIMEOUT_SECS; overrun → CatalogTimeoutError
  4. Retry     ServerError / FetchError retried MAX_RETRIES times with
               1s, 2s, 4s backoff, then MaxRetriesExceededError.
               Offline / timeout / not-found are surfaced immediately.
  5. Store     only a found, parsed record is cached

Cancelling the calling task cancels the in-flight request or the pending
backoff sleep; a cancelled lookup never writes to the cache.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import urlparse

import config
from barcode import Barcode, parse_barcode
from catalog.base import (
    CatalogBackend,
    CatalogError,
    CatalogTimeoutError,
    FetchError,
    MaxRetriesExceededError,
    OfflineError,
    ProductNotFoundError,
    ProductRecord,
    SearchPage,
    ServerError,
)
from ttl_cache import TTLCache

logger = logging.getLogger(__name__)

__all__ = [
    "CatalogClient",
    "fetch_product",
    "search_products",
    "get_client",
    "reset_client",
    "host_is_reachable",
]

CACHE_PREFIX = "product_"

Connectivity = Callable[[], Awaitable[bool]]

# Retried with backoff; everything else propagates on first sight
_RETRYABLE = (ServerError, FetchError)


def cache_key(barcode: str) -> str:
    return f"{CACHE_PREFIX}{barcode}"


# ── Connectivity probe ────────────────────────────────────────────────────────

async def host_is_reachable(host: str, timeout: float = config.CONNECTIVITY_TIMEOUT_SECS) -> bool:
    """
    Cheap "are we online?" check: resolve the catalog host.
    A DNS failure or a slow resolver both count as offline.
    """
    if config.FORCE_OFFLINE:
        return False
    if not config.CONNECTIVITY_CHECK:
        return True
    loop = asyncio.get_running_loop()
    try:
        await asyncio.wait_for(loop.getaddrinfo(host, 443), timeout)
        return True
    except (OSError, asyncio.TimeoutError) as exc:
        logger.warning("Connectivity probe for %s failed: %s", host, exc)
        return False


def _default_connectivity() -> Connectivity:
    host = urlparse(config.CATALOG_BASE_URL).hostname or "world.openfoodfacts.org"

    async def probe() -> bool:
        return await host_is_reachable(host)

    return probe


# ── Client ────────────────────────────────────────────────────────────────────

class CatalogClient:

    def __init__(
        self,
        backend: CatalogBackend,
        cache: Optional[TTLCache] = None,
        connectivity: Optional[Connectivity] = None,
        ttl: float = config.CACHE_TTL_SECS,
        timeout: float = config.REQUEST_TIMEOUT_SECS,
        max_retries: int = config.MAX_RETRIES,
        base_delay: float = config.RETRY_BASE_DELAY_SECS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.cache = cache if cache is not None else TTLCache(ttl)
        self.ttl = ttl
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._connectivity = connectivity or _default_connectivity()
        self._sleep = sleep

    async def fetch_product(self, barcode: Union[Barcode, str]) -> ProductRecord:
        """
        Return the catalog record for a barcode, from cache when fresh.
        A plain string is validated first and may raise BarcodeError.
        """
        if not isinstance(barcode, Barcode):
            barcode = parse_barcode(barcode)
        code = barcode.value
        key = cache_key(code)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", code)
            return cached
        logger.debug("Cache miss for %s", code)

        record = await self._with_retry(
            f"product {code}",
            lambda: self.backend.fetch_product(code, self.timeout),
        )
        self.cache.set(key, record, self.ttl)
        logger.info("[%s] %s → %s", self.backend.name, code, record.name)
        return record

    async def search_products(
        self,
        query: str,
        page: int = 1,
        page_size: int = config.SEARCH_PAGE_SIZE,
    ) -> SearchPage:
        """Free-text search. Same gate / timeout / retry policy; never cached."""
        query = (query or "").strip()
        if not query:
            raise ValueError("Search query is required")
        if page < 1:
            raise ValueError("page must be >= 1")
        return await self._with_retry(
            f"search '{query}' page {page}",
            lambda: self.backend.search(query, page, page_size, self.timeout),
        )

    # ── Policy ────────────────────────────────────────────────────────────────

    async def _with_retry(self, label: str, call: Callable[[], Awaitable]):
        attempts = self.max_retries + 1
        last_error: Optional[CatalogError] = None

        for attempt in range(attempts):
            if attempt:
                delay = self.base_delay * 2 ** (attempt - 1)
                logger.warning(
                    "[%s] %s failed (%s) — retry %d/%d in %.1fs",
                    self.backend.name, label, last_error, attempt, self.max_retries, delay,
                )
                await self._sleep(delay)

            if not await self._connectivity():
                logger.warning("[%s] Offline — not requesting %s", self.backend.name, label)
                raise OfflineError()

            try:
                return await self._attempt(call)
            except _RETRYABLE as exc:
                last_error = exc
            except (CatalogTimeoutError, ProductNotFoundError):
                raise

        logger.error("[%s] %s failed after %d attempts: %s", self.backend.name, label, attempts, last_error)
        raise MaxRetriesExceededError(last_error, attempts) from last_error

    async def _attempt(self, call: Callable[[], Awaitable]):
        # wait_for cancels the request coroutine on overrun, which closes its session
        try:
            return await asyncio.wait_for(call(), self.timeout)
        except asyncio.TimeoutError as exc:
            raise CatalogTimeoutError(self.timeout) from exc


# ── Module-level client ───────────────────────────────────────────────────────

_client: Optional[CatalogClient] = None


def get_client() -> CatalogClient:
    """Return the shared client, building it once on first call."""
    global _client
    if _client is None:
        from catalog.openfoodfacts import OpenFoodFactsBackend
        _client = CatalogClient(OpenFoodFactsBackend())
        logger.info("Catalog backend: %s (%s)", _client.backend.name, config.CATALOG_BASE_URL)
    return _client


def reset_client() -> None:
    """Drop the shared client (and its cache). Used by tests and config reloads."""
    global _client
    _client = None


async def fetch_product(barcode: Union[Barcode, str]) -> ProductRecord:
    return await get_client().fetch_product(barcode)


async def search_products(query: str, page: int = 1, page_size: int = config.SEARCH_PAGE_SIZE) -> SearchPage:
    return await get_client().search_products(query, page, page_size)
