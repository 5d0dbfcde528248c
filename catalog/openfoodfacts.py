"""
Open Food Facts backend (API v2).

  GET {base}/product/{barcode}.json
      → {"status": 1, "product": {...}}   found
      → {"status": 0, ...}                not found (sometimes with HTTP 404)
  GET {base}/search?search_terms=...&page=N&page_size=M&json=true
      → {"count": ..., "page": ..., "products": [...]}

No API key required; the catalog only asks for a descriptive User-Agent.

Nutriment keys are normalised to the spelling the health-condition rules use:
  sugars_100g         → sugar_100g
  saturated-fat_100g  → saturated_fat_100g
Open Food Facts reports sodium and cholesterol in grams per 100g while the
rules are written in milligrams, so those two are scaled ×1000.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

import config
from catalog.base import (
    CatalogBackend,
    FetchError,
    ProductNotFoundError,
    ProductRecord,
    ProductSummary,
    SearchPage,
    ServerError,
)

logger = logging.getLogger(__name__)

_KEY_ALIASES = {
    "sugars_100g":        "sugar_100g",
    "saturated-fat_100g": "saturated_fat_100g",
}
_GRAMS_TO_MG = {"sodium_100g", "cholesterol_100g"}


class OpenFoodFactsBackend(CatalogBackend):

    def __init__(
        self,
        base_url: str = config.CATALOG_BASE_URL,
        user_agent: str = config.CATALOG_USER_AGENT,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._headers = {
            "User-Agent": user_agent,
            "Accept":     "application/json",
        }

    @property
    def name(self) -> str:
        return "Open Food Facts"

    async def fetch_product(self, barcode: str, timeout: float) -> ProductRecord:
        url = f"{self._base}/product/{barcode}.json"
        status, data = await self._get_json(url, None, timeout)

        # A 404 means the catalog has no such barcode
        if status == 404:
            raise ProductNotFoundError(barcode)

        if data.get("status") == 0 or not isinstance(data.get("product"), dict):
            raise ProductNotFoundError(barcode)

        record = parse_product(data["product"], barcode)
        logger.debug("Fetched %s → %r (%d nutrients)", barcode, record.name, len(record.nutriments))
        return record

    async def search(
        self,
        query: str,
        page: int = 1,
        page_size: int = config.SEARCH_PAGE_SIZE,
        timeout: float = config.REQUEST_TIMEOUT_SECS,
    ) -> SearchPage:
        params = {
            "search_terms": query,
            "page":         str(page),
            "page_size":    str(page_size),
            "json":         "true",
        }
        _, data = await self._get_json(f"{self._base}/search", params, timeout)

        products: list[ProductSummary] = []
        for raw in data.get("products") or []:
            summary = parse_summary(raw)
            if summary:
                products.append(summary)

        logger.info("Open Food Facts returned %d products for query '%s' (page %d)", len(products), query, page)
        return SearchPage(
            query=query,
            page=page,
            page_size=page_size,
            count=_as_int(data.get("count")) or len(products),
            products=products,
        )

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _get_json(
        self,
        url: str,
        params: Optional[dict],
        timeout: float,
    ) -> tuple[int, dict]:
        """
        Single HTTP GET. Returns (status, body) for 200 and 404 responses.
        Raises ServerError for other statuses, FetchError for unusable bodies
        or connection failures.
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers=self._headers,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as resp:
                    if resp.status == 404:
                        return 404, {}
                    if resp.status != 200:
                        text = await resp.text(errors="replace")
                        raise ServerError(resp.status, text)
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            # aiohttp's own timeouts; product_lookup maps these to CatalogTimeoutError
            raise
        except (aiohttp.ContentTypeError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchError(f"Unparseable catalog response: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(f"Catalog request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected catalog response type: {type(data).__name__}")
        return resp.status, data


# ── Parsers ───────────────────────────────────────────────────────────────────

def parse_product(raw: dict, barcode: str) -> ProductRecord:
    name = (raw.get("product_name") or raw.get("product_name_en") or "").strip()
    return ProductRecord(
        barcode=str(raw.get("code") or barcode),
        name=name or "Unknown product",
        brand=_clean_str(raw.get("brands")),
        image_url=_clean_str(raw.get("image_url")),
        ingredients_text=_clean_str(raw.get("ingredients_text")),
        nutriments=parse_nutriments(raw.get("nutriments")),
        serving_size=_clean_str(raw.get("serving_size")),
        serving_quantity=_as_float(raw.get("serving_quantity")),
        nutrition_grade=_clean_str(raw.get("nutrition_grades")),
    )


def parse_summary(raw: Any) -> Optional[ProductSummary]:
    if not raw or not isinstance(raw, dict):
        return None
    code = str(raw.get("code") or "").strip()
    if not code:
        return None
    return ProductSummary(
        barcode=code,
        name=(raw.get("product_name") or "").strip() or "Unknown product",
        brand=_clean_str(raw.get("brands")),
        image_url=_clean_str(raw.get("image_url")),
        nutrition_grade=_clean_str(raw.get("nutrition_grades")),
    )


def parse_nutriments(raw: Any) -> dict[str, float]:
    """Keep numeric values only; rename and rescale to rule-table conventions."""
    if not isinstance(raw, dict):
        return {}
    out: dict[str, float] = {}
    for key, value in raw.items():
        number = _as_float(value)
        if number is None:
            continue                        # "sodium_unit": "g" and friends
        out[key] = number

    for catalog_key, rule_key in _KEY_ALIASES.items():
        if catalog_key in out and rule_key not in out:
            out[rule_key] = out.pop(catalog_key)

    for key in _GRAMS_TO_MG:
        if key in out:
            out[key] = round(out[key] * 1000, 3)
    return out


# ── Helpers ───────────────────────────────────────────────────────────────────

def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    return int(number) if number is not None else None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
