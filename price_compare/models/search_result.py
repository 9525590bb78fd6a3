# price_compare/models/search_result.py

"""Per-source outcomes and the aggregated comparison result."""

from dataclasses import dataclass, field
from typing import Any

from price_compare.config.settings import Settings
from price_compare.models.product import CanonicalProduct


def comparison_key(product: CanonicalProduct) -> tuple[float, int, int]:
    """Sort key: price ascending, in-stock first, then source priority."""
    return (
        product.price,
        0 if product.in_stock else 1,
        Settings.SOURCE_PRIORITY.get(product.source_id, 99),
    )


@dataclass(frozen=True)
class SourceOutcome:
    """What one source produced for one query."""

    source_id: str
    succeeded: bool
    products: tuple[CanonicalProduct, ...] = ()
    error_message: str | None = None
    elapsed_ms: int = 0
    rejected_count: int = 0

    @property
    def count(self) -> int:
        return len(self.products)

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "count": self.count,
            "products": [p.to_dict() for p in self.products],
            "errorMessage": self.error_message,
            "elapsedMs": self.elapsed_ms,
            "rejectedCount": self.rejected_count,
        }


@dataclass(frozen=True)
class AggregatedResult:
    """Bounded, ranked comparison set for a single query."""

    query: str
    per_source: dict[str, SourceOutcome] = field(
        default_factory=lambda: dict[str, SourceOutcome]()
    )
    total_result_count: int = 0
    global_lowest_price: CanonicalProduct | None = None
    best_only: bool = False
    elapsed_ms: int = 0
    searched_at: str = ""

    def sorted_products(self) -> list[CanonicalProduct]:
        """All retained products across sources in comparison order."""
        products = [
            p
            for outcome in self.per_source.values()
            for p in outcome.products
        ]
        return sorted(products, key=comparison_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "perSource": {
                source_id: outcome.to_dict()
                for source_id, outcome in self.per_source.items()
            },
            "totalResultCount": self.total_result_count,
            "globalLowestPrice": (
                self.global_lowest_price.to_dict()
                if self.global_lowest_price
                else None
            ),
            "bestOnly": self.best_only,
            "elapsedMs": self.elapsed_ms,
            "searchedAt": self.searched_at,
        }
