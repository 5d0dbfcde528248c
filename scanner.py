"""
scanner.py — the scan pipeline: raw decoded string → validated barcode →
catalog record → personalised analysis.

A ScanSession belongs to one user/device. Starting a new scan while one is
still in flight cancels the older lookup (request or backoff sleep), and the
caller still awaiting it gets ScanAbandonedError. Because the catalog client
only caches after a lookup completes, an abandoned lookup never populates
the cache.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import product_lookup
from analyzer import AdditiveScreen, AnalysisResult, RiskAnalyzer
from barcode import Barcode, parse_barcode
from catalog.base import ProductRecord
from health_conditions import get_rule_table
from product_lookup import CatalogClient

logger = logging.getLogger(__name__)


class ScanAbandonedError(Exception):
    """The lookup was cancelled because a newer scan replaced it."""

    def __init__(self, barcode: str) -> None:
        super().__init__(f"Scan of {barcode} was abandoned")
        self.barcode = barcode


@dataclass
class ScanOutcome:
    barcode: Barcode
    product: ProductRecord
    analysis: AnalysisResult
    additives: AdditiveScreen


class ScanSession:

    def __init__(
        self,
        client: Optional[CatalogClient] = None,
        analyzer: Optional[RiskAnalyzer] = None,
        conditions: Iterable[str] = (),
    ) -> None:
        self._client = client
        self._analyzer = analyzer
        self.conditions: list[str] = list(conditions)
        self._task: Optional[asyncio.Task] = None

    @property
    def client(self) -> CatalogClient:
        if self._client is None:
            self._client = product_lookup.get_client()
        return self._client

    @property
    def analyzer(self) -> RiskAnalyzer:
        if self._analyzer is None:
            self._analyzer = RiskAnalyzer(get_rule_table())
        return self._analyzer

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def scan(self, raw: str, conditions: Optional[Iterable[str]] = None) -> ScanOutcome:
        """
        Run the full pipeline for one decoded string.

        Raises BarcodeError for rejected input (before any network I/O),
        CatalogError when the lookup fails, ScanAbandonedError when a newer
        scan or cancel() superseded this one.
        """
        barcode = parse_barcode(raw)
        selected = list(conditions) if conditions is not None else self.conditions

        self.cancel()
        task = asyncio.create_task(self.client.fetch_product(barcode))
        self._task = task
        try:
            product = await task
        except asyncio.CancelledError:
            # Our own task was cancelled by a newer scan → tell the caller why.
            # If the caller itself was cancelled, _task is still ours: re-raise.
            if self._task is not task and task.cancelled():
                raise ScanAbandonedError(barcode.value) from None
            task.cancel()
            raise
        finally:
            if self._task is task:
                self._task = None

        analysis = self.analyzer.analyze(product, selected)
        additives = self.analyzer.screen_additives(product)
        logger.info(
            "Scanned %s (%s) → %s: score %d",
            barcode.value, barcode.symbology.value, product.name, analysis.score,
        )
        return ScanOutcome(barcode, product, analysis, additives)

    def cancel(self) -> None:
        """Abandon the in-flight lookup, if any."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            logger.info("Cancelling superseded lookup")
            task.cancel()
