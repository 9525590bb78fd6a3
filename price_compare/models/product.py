# price_compare/models/product.py

"""Product data models for inter-module data flow."""

from dataclasses import dataclass, field
from typing import Any

from price_compare.config.settings import Settings
from price_compare.filters.price_normalizer import PriceNormalizer


def clean_title(title: str) -> str:
    """Collapse whitespace and cap the title length."""
    return " ".join(title.split())[: Settings.MAX_TITLE_LENGTH]


@dataclass
class CandidateRecord:
    """An unvalidated listing scraped from one search page."""

    title: str
    raw_price_text: str
    source_id: str
    detail_url: str
    image_url: str = ""
    specs: list[str] = field(default_factory=lambda: list[str]())
    in_stock: bool = True


@dataclass(frozen=True)
class CanonicalProduct:
    """A validated, schema-normalised product safe to rank and display."""

    source_id: str
    title: str
    price: float
    detail_url: str
    currency: str = Settings.CURRENCY
    image_url: str = ""
    in_stock: bool = True
    specs: tuple[str, ...] = ()

    @classmethod
    def from_candidate(
        cls, candidate: CandidateRecord,
    ) -> "CanonicalProduct | None":
        """Build a product, or ``None`` when the price does not validate."""
        price = PriceNormalizer.normalize(candidate.raw_price_text)
        title = clean_title(candidate.title)
        if price is None or not title:
            return None
        return cls(
            source_id=candidate.source_id,
            title=title,
            price=price,
            detail_url=candidate.detail_url,
            image_url=candidate.image_url or "",
            in_stock=candidate.in_stock,
            specs=tuple(candidate.specs[: Settings.MAX_SPECS]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the canonical output shape."""
        return {
            "sourceId": self.source_id,
            "title": self.title,
            "price": self.price,
            "currency": self.currency,
            "detailUrl": self.detail_url,
            "imageUrl": self.image_url or None,
            "inStock": self.in_stock,
            "specs": list(self.specs),
        }
