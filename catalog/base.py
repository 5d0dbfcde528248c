"""
Abstract base for product catalog backends.
Every backend returns the same ProductRecord / SearchPage types and raises
the same CatalogError subclasses — product_lookup.py doesn't care which
catalog is behind it.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ProductRecord:
    barcode: str
    name: str
    brand: Optional[str]
    image_url: Optional[str]
    ingredients_text: Optional[str]
    nutriments: dict[str, float] = field(default_factory=dict)    # per 100g, rule-table keys
    serving_size: Optional[str] = None          # free text, e.g. "30 g"
    serving_quantity: Optional[float] = None    # grams
    nutrition_grade: Optional[str] = None       # a–e

    @property
    def has_data(self) -> bool:
        """False when there's nothing to analyse: no ingredients and no nutrients."""
        return bool(self.ingredients_text and self.ingredients_text.strip()) or bool(self.nutriments)


@dataclass(frozen=True)
class ProductSummary:
    """Search hit. Lighter than ProductRecord; fetch the barcode for the full record."""
    barcode: str
    name: str
    brand: Optional[str]
    image_url: Optional[str]
    nutrition_grade: Optional[str]


@dataclass
class SearchPage:
    query: str
    page: int
    page_size: int
    count: int                  # total hits reported by the catalog
    products: list[ProductSummary] = field(default_factory=list)


# ── Errors ────────────────────────────────────────────────────────────────────
#
# Retry policy lives in product_lookup.py:
#   OfflineError, CatalogTimeoutError, ProductNotFoundError → surfaced immediately
#   ServerError, FetchError                               → retried with backoff
#   MaxRetriesExceededError                               → retries exhausted

class CatalogError(Exception):
    """Base class for everything the catalog client can raise."""


class OfflineError(CatalogError):
    def __init__(self, message: str = "No network connection") -> None:
        super().__init__(message)


class CatalogTimeoutError(CatalogError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Catalog request timed out after {timeout:g}s")
        self.timeout = timeout


class ProductNotFoundError(CatalogError):
    def __init__(self, barcode: str) -> None:
        super().__init__(f"Product {barcode} not found")
        self.barcode = barcode


class ServerError(CatalogError):
    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"Catalog error {status}: {body[:200]}" if body else f"Catalog error {status}")
        self.status = status


class FetchError(CatalogError):
    """Malformed body or a connection-level failure."""


class MaxRetriesExceededError(CatalogError):
    def __init__(self, last_error: CatalogError, attempts: int) -> None:
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


# ── Backend interface ─────────────────────────────────────────────────────────

class CatalogBackend(ABC):
    """All catalog backends must implement this interface."""

    @abstractmethod
    async def fetch_product(self, barcode: str, timeout: float) -> ProductRecord:
        """
        Fetch one product by barcode.
        Raises ProductNotFoundError, ServerError or FetchError.
        """
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        page: int,
        page_size: int,
        timeout: float,
    ) -> SearchPage:
        """Free-text product search, one page at a time."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs/display."""
        ...
