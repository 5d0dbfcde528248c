"""
Tests for catalog/openfoodfacts.py.

Covers:
  - parse_nutriments: numeric filtering, key aliases, g → mg scaling
  - parse_product / parse_summary: happy path + missing optional fields
  - fetch_product(): 200 found, status 0, HTTP 404, HTTP 5xx, bad JSON,
    non-object body, connection error, aiohttp timeout passthrough
  - search(): parses summaries, skips entries without a code
"""
from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from catalog.base import FetchError, ProductNotFoundError, ServerError
from catalog.openfoodfacts import (
    OpenFoodFactsBackend,
    parse_nutriments,
    parse_product,
    parse_summary,
)


@pytest.fixture
def backend():
    return OpenFoodFactsBackend(base_url="https://off.test/api/v2", user_agent="labelcheck-tests")


def _raw_product(**overrides) -> dict:
    base = {
        "code": "3017620422003",
        "product_name": "Nutella",
        "brands": "Ferrero",
        "image_url": "https://images.off.test/nutella.jpg",
        "ingredients_text": "Sugar, palm oil, hazelnuts 13%, skimmed milk powder 8.7%, fat-reduced cocoa",
        "nutriments": {
            "energy_100g": 2255,
            "sugars_100g": 56.3,
            "saturated-fat_100g": 10.6,
            "sodium_100g": 0.0428,
            "sodium_unit": "g",
        },
        "serving_size": "15 g",
        "serving_quantity": "15",
        "nutrition_grades": "e",
    }
    base.update(overrides)
    return base


# ── Parsers ────────────────────────────────────────────────────────────────────

class TestParseNutriments:
    def test_aliases_and_scaling(self):
        out = parse_nutriments(_raw_product()["nutriments"])
        assert out["sugar_100g"] == 56.3
        assert out["saturated_fat_100g"] == 10.6
        assert out["sodium_100g"] == pytest.approx(42.8)
        assert out["energy_100g"] == 2255.0
        assert "sugars_100g" not in out
        assert "sodium_unit" not in out

    def test_canonical_key_wins_over_alias(self):
        out = parse_nutriments({"sugar_100g": 4, "sugars_100g": 9})
        assert out["sugar_100g"] == 4.0

    def test_numeric_strings_kept_booleans_dropped(self):
        out = parse_nutriments({"fiber_100g": "3.5", "flag": True, "note": "n/a"})
        assert out == {"fiber_100g": 3.5}

    def test_non_dict_gives_empty(self):
        assert parse_nutriments(None) == {}
        assert parse_nutriments([1, 2]) == {}


class TestParseProduct:
    def test_happy_path(self):
        p = parse_product(_raw_product(), "3017620422003")
        assert p.barcode == "3017620422003"
        assert p.name == "Nutella"
        assert p.brand == "Ferrero"
        assert p.serving_size == "15 g"
        assert p.serving_quantity == 15.0
        assert p.nutrition_grade == "e"
        assert p.has_data

    def test_missing_fields(self):
        p = parse_product({}, "12345670")
        assert p.barcode == "12345670"
        assert p.name == "Unknown product"
        assert p.brand is None
        assert p.ingredients_text is None
        assert p.nutriments == {}
        assert not p.has_data

    def test_english_name_fallback(self):
        p = parse_product(_raw_product(product_name="", product_name_en="Hazelnut spread"), "1")
        assert p.name == "Hazelnut spread"

    def test_blank_strings_become_none(self):
        p = parse_product(_raw_product(brands="  ", ingredients_text=""), "1")
        assert p.brand is None
        assert p.ingredients_text is None


class TestParseSummary:
    def test_happy_path(self):
        s = parse_summary(_raw_product())
        assert s.barcode == "3017620422003"
        assert s.name == "Nutella"
        assert s.nutrition_grade == "e"

    def test_missing_code_returns_none(self):
        raw = _raw_product()
        del raw["code"]
        assert parse_summary(raw) is None

    def test_bad_data_returns_none(self):
        assert parse_summary(None) is None
        assert parse_summary("x") is None


# ── HTTP ───────────────────────────────────────────────────────────────────────

def _fake_session(resp=None, get_side_effect=None):
    session = MagicMock()
    if get_side_effect is not None:
        session.get = MagicMock(side_effect=get_side_effect)
    else:
        session.get = MagicMock(return_value=resp)
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


def _fake_response(body=None, status: int = 200, json_error: Exception = None):
    resp = MagicMock()
    resp.status = status
    if json_error is not None:
        resp.json = AsyncMock(side_effect=json_error)
    else:
        resp.json = AsyncMock(return_value=body)
    resp.text = AsyncMock(return_value="upstream error text")
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


_SESSION = "catalog.openfoodfacts.aiohttp.ClientSession"


@pytest.mark.asyncio
class TestFetchProduct:
    async def test_found(self, backend):
        session = _fake_session(_fake_response({"status": 1, "product": _raw_product()}))
        with patch(_SESSION, return_value=session):
            p = await backend.fetch_product("3017620422003", timeout=10)
        assert p.name == "Nutella"
        url = session.get.call_args.args[0]
        assert url == "https://off.test/api/v2/product/3017620422003.json"
        headers = session.get.call_args.kwargs["headers"]
        assert headers["User-Agent"] == "labelcheck-tests"

    async def test_status_zero_is_not_found(self, backend):
        session = _fake_session(_fake_response({"status": 0, "status_verbose": "product not found"}))
        with patch(_SESSION, return_value=session):
            with pytest.raises(ProductNotFoundError) as exc_info:
                await backend.fetch_product("4006381333931", timeout=10)
        assert exc_info.value.barcode == "4006381333931"

    async def test_http_404_is_not_found(self, backend):
        session = _fake_session(_fake_response({}, status=404))
        with patch(_SESSION, return_value=session):
            with pytest.raises(ProductNotFoundError):
                await backend.fetch_product("4006381333931", timeout=10)

    async def test_http_503_is_server_error(self, backend):
        session = _fake_session(_fake_response({}, status=503))
        with patch(_SESSION, return_value=session):
            with pytest.raises(ServerError) as exc_info:
                await backend.fetch_product("4006381333931", timeout=10)
        assert exc_info.value.status == 503

    async def test_unparseable_body_is_fetch_error(self, backend):
        resp = _fake_response(json_error=json.JSONDecodeError("Expecting value", "<html>", 0))
        with patch(_SESSION, return_value=_fake_session(resp)):
            with pytest.raises(FetchError):
                await backend.fetch_product("4006381333931", timeout=10)

    async def test_non_utf8_body_is_fetch_error(self, backend):
        resp = _fake_response(json_error=UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte"))
        with patch(_SESSION, return_value=_fake_session(resp)):
            with pytest.raises(FetchError):
                await backend.fetch_product("4006381333931", timeout=10)

    async def test_error_body_decoded_leniently(self, backend):
        resp = _fake_response({}, status=500)
        with patch(_SESSION, return_value=_fake_session(resp)):
            with pytest.raises(ServerError) as exc_info:
                await backend.fetch_product("4006381333931", timeout=10)
        assert exc_info.value.status == 500
        resp.text.assert_awaited_once_with(errors="replace")

    async def test_non_object_body_is_fetch_error(self, backend):
        with patch(_SESSION, return_value=_fake_session(_fake_response(["not", "a", "dict"]))):
            with pytest.raises(FetchError):
                await backend.fetch_product("4006381333931", timeout=10)

    async def test_connection_error_is_fetch_error(self, backend):
        session = _fake_session(get_side_effect=aiohttp.ClientConnectionError("refused"))
        with patch(_SESSION, return_value=session):
            with pytest.raises(FetchError):
                await backend.fetch_product("4006381333931", timeout=10)

    async def test_aiohttp_timeout_passes_through(self, backend):
        session = _fake_session(get_side_effect=asyncio.TimeoutError())
        with patch(_SESSION, return_value=session):
            with pytest.raises(asyncio.TimeoutError):
                await backend.fetch_product("4006381333931", timeout=10)


@pytest.mark.asyncio
class TestSearch:
    async def test_parses_products(self, backend):
        body = {
            "count": 42,
            "page": 1,
            "products": [_raw_product(code=f"00000000000{i}") for i in range(3)] + [{"product_name": "no code"}],
        }
        session = _fake_session(_fake_response(body))
        with patch(_SESSION, return_value=session):
            page = await backend.search("nutella", page=1, page_size=20, timeout=10)
        assert page.count == 42
        assert len(page.products) == 3
        params = session.get.call_args.kwargs["params"]
        assert params["search_terms"] == "nutella"
        assert params["page_size"] == "20"

    async def test_empty_result(self, backend):
        with patch(_SESSION, return_value=_fake_session(_fake_response({"count": 0, "products": []}))):
            page = await backend.search("zzzz", page=2, page_size=20, timeout=10)
        assert page.products == []
        assert page.page == 2
        assert page.count == 0
