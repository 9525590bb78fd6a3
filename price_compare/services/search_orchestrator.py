# price_compare/services/search_orchestrator.py

"""Orchestrates concurrent multi-source searches and result reduction."""

import asyncio
import importlib
import logging
import time
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from price_compare.config.settings import Settings
from price_compare.extractors.base import SourceExtractor
from price_compare.filters.deduplicator import ProductDeduplicator
from price_compare.filters.product_validator import ProductValidator
from price_compare.filters.relevance_scorer import RelevanceScorer
from price_compare.models.errors import NoAllowedSources, UnknownSource
from price_compare.models.product import CanonicalProduct
from price_compare.models.search_result import (
    AggregatedResult,
    SourceOutcome,
    comparison_key,
)
from price_compare.storage.query_cache import QueryCache
from price_compare.transport.fetcher import SmartFetcher

logger = logging.getLogger("price_compare.orchestrator")

Ranked = list[tuple[CanonicalProduct, float]]


def _load_extractor_class(dotted_path: str) -> type[Any]:
    """Dynamically import an extractor class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class SearchOrchestrator:
    """Fans a query out to every source and reduces the answers.

    Per source: validate prices, drop duplicates, score relevance and keep
    the best few.  A failing source becomes a failed ``SourceOutcome``;
    it never aborts the other sources.
    """

    def __init__(
        self,
        fetcher: SmartFetcher | None = None,
        sources: Sequence[Mapping[str, str]] | None = None,
        cache: QueryCache | None = None,
        extractors: Mapping[str, SourceExtractor] | None = None,
    ) -> None:
        self.fetcher = fetcher or SmartFetcher()
        self.sources: list[Mapping[str, str]] = list(
            Settings.AVAILABLE_SOURCES if sources is None else sources
        )
        self.query_cache = cache if cache is not None else QueryCache()
        self._extractors: dict[str, SourceExtractor] = dict(extractors or {})

    # ── Source registry ──────────────────────────────────

    def list_sources(self) -> list[str]:
        """Configured source ids on the allow-list, in configured order."""
        allowed: list[str] = []
        for source in self.sources:
            source_id = source["id"]
            if source_id.lower() in Settings.ALLOWED_SOURCES:
                allowed.append(source_id)
            else:
                logger.warning(
                    "Source '%s' is not on the allow-list, skipping",
                    source_id,
                )
        if not allowed:
            raise NoAllowedSources(
                "None of the configured sources is allowed: "
                + ", ".join(s["id"] for s in self.sources)
            )
        return allowed

    def _extractor(self, source_id: str) -> SourceExtractor:
        available = self.list_sources()
        if source_id not in available:
            raise UnknownSource(source_id, available)

        extractor = self._extractors.get(source_id)
        if extractor is None:
            config = next(s for s in self.sources if s["id"] == source_id)
            extractor_cls = _load_extractor_class(config["extractor"])
            extractor = extractor_cls(self.fetcher)
            self._extractors[source_id] = extractor
        return extractor

    # ── Per-source reduction ─────────────────────────────

    def _filter_source(
        self,
        source_id: str,
        products: Sequence[CanonicalProduct],
        query: str,
        limit: int,
    ) -> Ranked:
        """Validate, dedupe, score and keep the top ``min(limit, K)``."""
        valid, invalid = ProductValidator.validate(products)
        unique, duplicates = ProductDeduplicator.deduplicate(valid)
        ranked = RelevanceScorer.rank(unique, query)
        bound = min(limit, Settings.MAX_RESULTS_PER_SOURCE)
        kept = ranked[:bound]

        logger.info(
            "[%s] %d raw -> %d valid -> %d unique -> %d relevant -> %d kept",
            source_id,
            len(products),
            len(valid),
            len(unique),
            len(ranked),
            len(kept),
        )
        if invalid or duplicates:
            logger.debug(
                "[%s] %d invalid, %d duplicates removed",
                source_id,
                invalid,
                duplicates,
            )
        return kept

    @staticmethod
    def _best_of(ranked: Ranked) -> Ranked:
        """Single best entry: lowest price, then highest score."""
        if not ranked:
            return []
        return [min(ranked, key=lambda item: (item[0].price, -item[1]))]

    # ── Public API ───────────────────────────────────────

    async def search_source(
        self,
        source_id: str,
        query: str,
        limit: int = Settings.DEFAULT_LIMIT,
    ) -> list[CanonicalProduct]:
        """Raw extraction from one source (with internal over-fetch)."""
        extractor = self._extractor(source_id)
        return await extractor.search(query, limit)

    async def search_source_ranked(
        self,
        source_id: str,
        query: str,
        limit: int = Settings.DEFAULT_LIMIT,
    ) -> list[CanonicalProduct]:
        """One source, reduced exactly as ``search`` reduces each source."""
        products = await self.search_source(source_id, query, limit)
        ranked = self._filter_source(source_id, products, query, limit)
        return [product for product, _ in ranked]

    async def get_product_details(
        self, source_id: str, url: str,
    ) -> CanonicalProduct:
        """Re-read a single product page (price re-check)."""
        logger.info("Product details: %s %s", source_id, url)
        return await self._extractor(source_id).get_product_details(url)

    async def search(
        self,
        query: str,
        limit: int = Settings.DEFAULT_LIMIT,
        best_only: bool = False,
    ) -> AggregatedResult:
        """Query every allowed source concurrently and reduce the results.

        Waits for every source to settle.  Each source keeps at most
        ``min(limit, MAX_RESULTS_PER_SOURCE)`` products, or one when
        *best_only* is set.
        """
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

        source_ids = self.list_sources()
        cache_key = QueryCache.make_key(
            query, limit, best_only, frozenset(source_ids)
        )
        cached = self.query_cache.get(cache_key)
        if cached is not None:
            return cached

        logger.info(
            "Search '%s' across %d sources (limit=%d, best_only=%s)",
            query,
            len(source_ids),
            limit,
            best_only,
        )
        overall_start = time.monotonic()
        timings: dict[str, int] = {}

        async def run_one(source_id: str) -> list[CanonicalProduct]:
            start = time.monotonic()
            try:
                return await self.search_source(source_id, query, limit)
            finally:
                timings[source_id] = _elapsed_ms(start)

        batches = await asyncio.gather(
            *(run_one(source_id) for source_id in source_ids),
            return_exceptions=True,
        )

        ranked_by_source: dict[str, Ranked] = {}
        raw_counts: dict[str, int] = {}
        outcomes: dict[str, SourceOutcome] = {}
        for source_id, batch in zip(source_ids, batches):
            if isinstance(batch, BaseException):
                if not isinstance(batch, Exception):
                    raise batch
                logger.error(
                    "[%s] FAILED in %dms: %s",
                    source_id,
                    timings.get(source_id, 0),
                    batch,
                    exc_info=batch,
                )
                outcomes[source_id] = SourceOutcome(
                    source_id=source_id,
                    succeeded=False,
                    error_message=str(batch),
                    elapsed_ms=timings.get(source_id, 0),
                )
                continue
            raw_counts[source_id] = len(batch)
            ranked_by_source[source_id] = self._filter_source(
                source_id, batch, query, limit
            )

        retained = [
            product
            for ranked in ranked_by_source.values()
            for product, _ in ranked
        ]
        global_lowest = min(retained, key=comparison_key) if retained else None

        if best_only:
            ranked_by_source = {
                source_id: self._best_of(ranked)
                for source_id, ranked in ranked_by_source.items()
            }

        per_source: dict[str, SourceOutcome] = {}
        for source_id in source_ids:
            if source_id in outcomes:
                per_source[source_id] = outcomes[source_id]
                continue
            # Presented cheapest first, regardless of relevance order
            final = sorted(
                (p for p, _ in ranked_by_source[source_id]),
                key=comparison_key,
            )
            per_source[source_id] = SourceOutcome(
                source_id=source_id,
                succeeded=True,
                products=tuple(final),
                elapsed_ms=timings.get(source_id, 0),
                rejected_count=raw_counts[source_id] - len(final),
            )

        result = AggregatedResult(
            query=query,
            per_source=per_source,
            total_result_count=sum(o.count for o in per_source.values()),
            global_lowest_price=global_lowest,
            best_only=best_only,
            elapsed_ms=_elapsed_ms(overall_start),
            searched_at=datetime.now(timezone.utc).isoformat(),
        )
        self._log_summary(result)
        self.query_cache.store(cache_key, result)
        return result

    async def close(self) -> None:
        """Release the shared browser, if one was launched."""
        await self.fetcher.close()

    @staticmethod
    def _log_summary(result: AggregatedResult) -> None:
        logger.info(
            "Search '%s' complete in %dms: %d total results",
            result.query,
            result.elapsed_ms,
            result.total_result_count,
        )
        for source_id, outcome in result.per_source.items():
            status = (
                f"{outcome.count} results"
                if outcome.succeeded
                else f"FAILED: {outcome.error_message}"
            )
            logger.info(
                "  %s: %s (%dms)", source_id, status, outcome.elapsed_ms
            )
