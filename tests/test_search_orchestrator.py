# tests/test_search_orchestrator.py

"""Tests for the SearchOrchestrator fan-out and result reduction."""

import asyncio
import time
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from price_compare.config.settings import Settings
from price_compare.extractors.amazon_extractor import AmazonExtractor
from price_compare.models.errors import (
    FetchError,
    NoAllowedSources,
    SourceUnavailable,
    UnknownSource,
)
from price_compare.models.product import CanonicalProduct
from price_compare.services.search_orchestrator import SearchOrchestrator
from price_compare.storage.query_cache import QueryCache

FIXTURES = Path(__file__).parent / "fixtures"

VARIANTS = (
    ("Black", "128 GB"),
    ("Blue", "128 GB"),
    ("Green", "128 GB"),
    ("Pink", "128 GB"),
    ("Yellow", "128 GB"),
    ("Black", "256 GB"),
    ("Blue", "256 GB"),
    ("Black", "512 GB"),
)


def _iphones(source_id: str, base_price: float) -> list[CanonicalProduct]:
    """Eight distinct iPhone 15 variants, most expensive first."""
    products = [
        CanonicalProduct(
            source_id=source_id,
            title=f"Apple iPhone 15 ({color}, {storage})",
            price=base_price + (len(VARIANTS) - i) * 1000,
            detail_url=f"https://{source_id}.test/p/{i}",
        )
        for i, (color, storage) in enumerate(VARIANTS)
    ]
    # Scraped noise that slipped past extraction
    products.append(
        CanonicalProduct(
            source_id=source_id,
            title="Apple iPhone 15 (Red, 64 GB)",
            price=49.0,
            detail_url=f"https://{source_id}.test/p/noise",
        )
    )
    return products


class _FakeExtractor:
    """Extractor stand-in returning canned products or raising."""

    def __init__(
        self,
        source_id: str,
        products: list[CanonicalProduct] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.source_id = source_id
        self.products = products or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    async def search(
        self, query: str, max_candidates: int,
    ) -> list[CanonicalProduct]:
        self.calls.append((query, max_candidates))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.products)

    async def get_product_details(self, url: str) -> CanonicalProduct:
        if self.error is not None:
            raise self.error
        return self.products[0]


def _orchestrator(**extractors: _FakeExtractor) -> SearchOrchestrator:
    fetcher = MagicMock()
    fetcher.close = AsyncMock()
    return SearchOrchestrator(
        fetcher=fetcher,
        cache=QueryCache(ttl=60),
        extractors=extractors,
    )


def _default_extractors() -> dict[str, _FakeExtractor]:
    return {
        "amazon": _FakeExtractor("amazon", _iphones("amazon", 70000.0)),
        "flipkart": _FakeExtractor("flipkart", _iphones("flipkart", 65000.0)),
        "myntra": _FakeExtractor("myntra", _iphones("myntra", 80000.0)),
    }


class TestSourceRegistry(unittest.IsolatedAsyncioTestCase):
    """Verify allow-listing and unknown sources."""

    def test_list_sources_in_configured_order(self) -> None:
        self.assertEqual(
            SearchOrchestrator(fetcher=MagicMock()).list_sources(),
            ["amazon", "flipkart", "myntra"],
        )

    def test_disallowed_source_skipped(self) -> None:
        sources = [
            *Settings.AVAILABLE_SOURCES,
            {"id": "ebay", "label": "eBay", "extractor": "x.y.Z"},
        ]
        orchestrator = SearchOrchestrator(fetcher=MagicMock(), sources=sources)
        with self.assertLogs("price_compare.orchestrator", level="WARNING"):
            self.assertNotIn("ebay", orchestrator.list_sources())

    async def test_no_allowed_sources(self) -> None:
        orchestrator = SearchOrchestrator(
            fetcher=MagicMock(),
            sources=[{"id": "ebay", "label": "eBay", "extractor": "x.y.Z"}],
        )
        with self.assertRaises(NoAllowedSources):
            await orchestrator.search("iphone 15")

    async def test_unknown_source(self) -> None:
        orchestrator = _orchestrator(**_default_extractors())
        with self.assertRaises(UnknownSource) as ctx:
            await orchestrator.search_source_ranked("ebay", "iphone 15", 5)
        self.assertEqual(
            ctx.exception.available, ["amazon", "flipkart", "myntra"]
        )

    async def test_extractor_loaded_lazily_and_reused(self) -> None:
        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(
            return_value=(FIXTURES / "amazon_search.html").read_text(
                encoding="utf-8"
            )
        )
        orchestrator = SearchOrchestrator(fetcher=fetcher)

        products = await orchestrator.search_source_ranked(
            "amazon", "iphone 15", 5
        )
        await orchestrator.search_source("amazon", "iphone 15", 5)

        self.assertTrue(products)
        self.assertLessEqual(len(products), 5)
        self.assertEqual(products[0].title, "Apple iPhone 15 (128 GB) - Black")
        extractor = orchestrator._extractors["amazon"]
        self.assertIsInstance(extractor, AmazonExtractor)
        self.assertIs(extractor.fetcher, fetcher)
        self.assertEqual(len(orchestrator._extractors), 1)


class TestSearch(unittest.IsolatedAsyncioTestCase):
    """Verify aggregation across sources."""

    async def test_invalid_limit(self) -> None:
        with self.assertRaises(ValueError):
            await _orchestrator(**_default_extractors()).search("iphone 15", 0)

    async def test_per_source_bound(self) -> None:
        extractors = _default_extractors()
        result = await _orchestrator(**extractors).search("iphone 15", 10)

        self.assertEqual(list(result.per_source), ["amazon", "flipkart", "myntra"])
        for source_id, outcome in result.per_source.items():
            with self.subTest(source=source_id):
                self.assertTrue(outcome.succeeded)
                self.assertEqual(outcome.count, 5)
                self.assertEqual(outcome.rejected_count, 4)
                self.assertEqual(extractors[source_id].calls, [("iphone 15", 10)])
        self.assertEqual(result.total_result_count, 15)

    async def test_limit_below_bound(self) -> None:
        result = await _orchestrator(**_default_extractors()).search(
            "iphone 15", 2
        )
        self.assertTrue(all(o.count == 2 for o in result.per_source.values()))

    async def test_products_sorted_cheapest_first(self) -> None:
        result = await _orchestrator(**_default_extractors()).search("iphone 15", 5)
        for outcome in result.per_source.values():
            prices = [p.price for p in outcome.products]
            self.assertEqual(prices, sorted(prices))

    async def test_price_floor_enforced(self) -> None:
        result = await _orchestrator(**_default_extractors()).search("iphone 15", 5)
        for product in result.sorted_products():
            self.assertGreaterEqual(product.price, Settings.MIN_VALID_PRICE)

    async def test_global_lowest_price(self) -> None:
        result = await _orchestrator(**_default_extractors()).search("iphone 15", 5)
        lowest = result.global_lowest_price
        assert lowest is not None
        self.assertEqual(lowest.source_id, "flipkart")
        self.assertEqual(
            lowest.price, min(p.price for p in result.sorted_products())
        )
        self.assertEqual(result.sorted_products()[0], lowest)

    async def test_best_only(self) -> None:
        result = await _orchestrator(**_default_extractors()).search(
            "iphone 15", 5, best_only=True
        )
        self.assertTrue(result.best_only)
        for source_id, outcome in result.per_source.items():
            with self.subTest(source=source_id):
                self.assertEqual(outcome.count, 1)
        self.assertEqual(result.total_result_count, 3)
        assert result.global_lowest_price is not None
        self.assertEqual(result.global_lowest_price.source_id, "flipkart")

    async def test_best_only_picks_lowest_retained_price(self) -> None:
        result = await _orchestrator(**_default_extractors()).search(
            "iphone 15", 5, best_only=True
        )
        full = await _orchestrator(**_default_extractors()).search(
            "iphone 15", 5
        )
        for source_id, outcome in result.per_source.items():
            cheapest = min(p.price for p in full.per_source[source_id].products)
            self.assertEqual(outcome.products[0].price, cheapest)

    async def test_partial_failure(self) -> None:
        extractors = _default_extractors()
        extractors["myntra"] = _FakeExtractor(
            "myntra", error=SourceUnavailable("myntra", FetchError("HTTP 503"))
        )
        result = await _orchestrator(**extractors).search("iphone 15", 5)

        failed = [o for o in result.per_source.values() if not o.succeeded]
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0].source_id, "myntra")
        self.assertEqual(failed[0].error_message, "myntra unavailable: HTTP 503")
        self.assertEqual(failed[0].products, ())
        self.assertEqual(result.per_source["amazon"].count, 5)
        self.assertEqual(result.per_source["flipkart"].count, 5)
        self.assertEqual(result.total_result_count, 10)

    async def test_unexpected_extractor_error_is_contained(self) -> None:
        extractors = _default_extractors()
        extractors["amazon"] = _FakeExtractor(
            "amazon", error=KeyError("layout changed")
        )
        result = await _orchestrator(**extractors).search("iphone 15", 5)
        self.assertFalse(result.per_source["amazon"].succeeded)
        self.assertTrue(result.per_source["flipkart"].succeeded)

    async def test_all_sources_failed(self) -> None:
        error = SourceUnavailable("x", FetchError("HTTP 403"))
        extractors = {
            s: _FakeExtractor(s, error=error)
            for s in ("amazon", "flipkart", "myntra")
        }
        orchestrator = _orchestrator(**extractors)
        result = await orchestrator.search("iphone 15", 5)

        self.assertEqual(result.total_result_count, 0)
        self.assertIsNone(result.global_lowest_price)
        self.assertEqual(len(orchestrator.query_cache), 0)

    async def test_empty_source_is_success(self) -> None:
        extractors = _default_extractors()
        extractors["myntra"] = _FakeExtractor("myntra", [])
        result = await _orchestrator(**extractors).search("iphone 15", 5)
        outcome = result.per_source["myntra"]
        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.count, 0)
        self.assertIsNone(outcome.error_message)

    async def test_irrelevant_products_rejected(self) -> None:
        case = CanonicalProduct(
            source_id="amazon",
            title="Apple iPhone 15 Silicone Case with MagSafe",
            price=4900.0,
            detail_url="https://amazon.test/case",
        )
        extractors = _default_extractors()
        extractors["amazon"] = _FakeExtractor("amazon", [case])
        result = await _orchestrator(**extractors).search("iphone 15", 5)
        self.assertEqual(result.per_source["amazon"].count, 0)
        self.assertEqual(result.per_source["amazon"].rejected_count, 1)

    async def test_sources_run_concurrently(self) -> None:
        extractors = {
            s: _FakeExtractor(s, _iphones(s, 60000.0), delay=0.2)
            for s in ("amazon", "flipkart", "myntra")
        }
        start = time.monotonic()
        result = await _orchestrator(**extractors).search("iphone 15", 5)
        elapsed = time.monotonic() - start

        self.assertLess(elapsed, 0.5)
        for outcome in result.per_source.values():
            self.assertGreaterEqual(outcome.elapsed_ms, 150)

    async def test_repeat_query_served_from_cache(self) -> None:
        extractors = _default_extractors()
        orchestrator = _orchestrator(**extractors)
        first = await orchestrator.search("iPhone 15", 5)
        second = await orchestrator.search("iphone  15", 5)

        self.assertIs(first, second)
        self.assertEqual(len(extractors["amazon"].calls), 1)

    async def test_cache_keyed_on_mode(self) -> None:
        extractors = _default_extractors()
        orchestrator = _orchestrator(**extractors)
        await orchestrator.search("iphone 15", 5)
        await orchestrator.search("iphone 15", 5, best_only=True)
        self.assertEqual(len(extractors["amazon"].calls), 2)

    async def test_result_serialises(self) -> None:
        result = await _orchestrator(**_default_extractors()).search("iphone 15", 5)
        payload = result.to_dict()
        self.assertEqual(payload["query"], "iphone 15")
        self.assertEqual(payload["totalResultCount"], 15)
        self.assertTrue(payload["searchedAt"])


class TestSingleSource(unittest.IsolatedAsyncioTestCase):
    """Verify single-source search and product details."""

    async def test_search_source_ranked_bounded(self) -> None:
        orchestrator = _orchestrator(**_default_extractors())
        products = await orchestrator.search_source_ranked(
            "flipkart", "iphone 15", 10
        )
        self.assertEqual(len(products), 5)
        self.assertTrue(all(p.price >= 100 for p in products))

    async def test_search_source_raw(self) -> None:
        orchestrator = _orchestrator(**_default_extractors())
        products = await orchestrator.search_source("flipkart", "iphone 15", 5)
        self.assertEqual(len(products), 9)

    async def test_source_failure_propagates_for_single_source(self) -> None:
        extractors = _default_extractors()
        extractors["amazon"] = _FakeExtractor(
            "amazon", error=SourceUnavailable("amazon", FetchError("HTTP 503"))
        )
        with self.assertRaises(SourceUnavailable):
            await _orchestrator(**extractors).search_source_ranked(
                "amazon", "iphone 15", 5
            )

    async def test_get_product_details(self) -> None:
        extractors = _default_extractors()
        product = await _orchestrator(**extractors).get_product_details(
            "myntra", "https://myntra.test/p/0"
        )
        self.assertEqual(product.source_id, "myntra")

    async def test_close_releases_fetcher(self) -> None:
        orchestrator = _orchestrator(**_default_extractors())
        await orchestrator.close()
        orchestrator.fetcher.close.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
