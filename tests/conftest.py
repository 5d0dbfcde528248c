"""
Shared pytest fixtures.

Every test gets a fresh shared catalog client and rule-table cache so
module-level singletons never leak between tests, and the connectivity
probe is switched off so nothing ever resolves a real hostname.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def isolated_singletons(monkeypatch):
    import config
    import health_conditions
    import product_lookup

    monkeypatch.setattr(config, "CONNECTIVITY_CHECK", False)
    monkeypatch.setattr(config, "FORCE_OFFLINE", False)
    product_lookup.reset_client()
    monkeypatch.setattr(health_conditions, "_table", None)
    yield
    product_lookup.reset_client()


@pytest.fixture
def rule_table():
    """The bundled rule table, loaded fresh."""
    from health_conditions import load_rule_table
    return load_rule_table()


@pytest.fixture
def make_product():
    from catalog.base import ProductRecord

    def _make(**kwargs) -> ProductRecord:
        defaults = dict(
            barcode="4006381333931",
            name="Test Product",
            brand="TestBrand",
            image_url=None,
            ingredients_text="water, oats, salt",
            nutriments={},
        )
        defaults.update(kwargs)
        return ProductRecord(**defaults)

    return _make
