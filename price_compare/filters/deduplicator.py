# price_compare/filters/deduplicator.py

"""Same-source product deduplication."""

import logging
import re
from collections.abc import Sequence

from price_compare.filters.tokenizer import normalize_text
from price_compare.models.product import CanonicalProduct

logger = logging.getLogger("price_compare.filters")

BRAND_KEYWORDS: dict[str, tuple[str, ...]] = {
    # Electronics
    "apple": ("iphone", "macbook", "ipad", "airpods", "apple watch"),
    "samsung": ("galaxy", "samsung"),
    "oneplus": ("oneplus",),
    "xiaomi": ("xiaomi", "redmi", "poco"),
    "realme": ("realme",),
    "oppo": ("oppo",),
    "vivo": ("vivo",),
    "google": ("pixel",),
    "motorola": ("moto", "motorola"),
    "nothing": ("nothing",),
    "asus": ("asus", "rog"),
    # Laptops
    "dell": ("dell", "xps", "inspiron"),
    "hp": ("hp", "pavilion", "omen"),
    "lenovo": ("lenovo", "thinkpad", "yoga"),
    "acer": ("acer", "aspire"),
    "msi": ("msi",),
    "microsoft": ("surface",),
    # Audio / wearables
    "sony": ("sony", "wh-", "wf-"),
    "jbl": ("jbl",),
    "bose": ("bose",),
    "boat": ("boat",),
    "skullcandy": ("skullcandy",),
}

VARIANT_COLORS: frozenset[str] = frozenset(
    {
        "black", "white", "blue", "red", "green", "gold", "silver",
        "grey", "gray", "pink", "purple", "orange", "yellow", "teal",
        "coral", "ultramarine", "midnight", "starlight", "titanium",
        "graphite", "sierra", "alpine", "natural", "desert", "cream",
        "ivory", "lavender", "bronze", "navy", "space gray",
        "space grey", "rose gold",
    }
)

_FILLER_RE = re.compile(
    r"\b(in|for|with|and|the|a|an|of|to|official)\b"
)
_COLOR_RE = re.compile(r"\((\w[\w\s]*?)(?:,|\))")
_STORAGE_RE = re.compile(r"(\d+)\s*(gb|tb|mb)", re.IGNORECASE)
_MODEL_RE = re.compile(r"\b([a-z0-9]+\s+(?:pro|max|plus|ultra|standard)?)\b")

SIMILARITY_THRESHOLD = 70.0


class ProductMatcher:
    """Decide whether two same-source listings are the same product.

    Colour and storage variants are different products, so any attribute
    extractable from both titles must agree.
    """

    @staticmethod
    def normalise_title(title: str) -> str:
        """Normalise a title and drop filler words."""
        without_fillers = _FILLER_RE.sub("", normalize_text(title))
        return " ".join(without_fillers.split())

    @staticmethod
    def title_similarity(title1: str, title2: str) -> float:
        """Word-overlap similarity (0-100) over words longer than 2 chars."""
        norm1 = ProductMatcher.normalise_title(title1)
        norm2 = ProductMatcher.normalise_title(title2)
        if norm1 == norm2:
            return 100.0

        words1 = {w for w in norm1.split(" ") if len(w) > 2}
        words2 = {w for w in norm2.split(" ") if len(w) > 2}
        if not words1 or not words2:
            return 0.0

        matches = len(words1 & words2)
        return matches / max(len(words1), len(words2)) * 100

    @staticmethod
    def extract_brand(title: str) -> str | None:
        normalised = ProductMatcher.normalise_title(title)
        for brand, keywords in BRAND_KEYWORDS.items():
            if any(kw in normalised for kw in keywords):
                return brand
        return None

    @staticmethod
    def extract_color(title: str) -> str | None:
        """Colour from the first parenthetical group, e.g. ``(Black, 128 GB)``."""
        match = _COLOR_RE.search(title)
        if match:
            candidate = match.group(1).strip().lower()
            if candidate in VARIANT_COLORS:
                return candidate
        return None

    @staticmethod
    def extract_storage(title: str) -> str | None:
        match = _STORAGE_RE.search(title)
        if match:
            return f"{match.group(1)}{match.group(2).lower()}"
        return None

    @staticmethod
    def extract_model(title: str) -> str | None:
        match = _MODEL_RE.search(ProductMatcher.normalise_title(title))
        return match.group(1).strip() if match else None

    @staticmethod
    def products_match(
        first: CanonicalProduct, second: CanonicalProduct,
    ) -> bool:
        """True when both listings describe the same underlying product."""
        if (
            ProductMatcher.title_similarity(first.title, second.title)
            < SIMILARITY_THRESHOLD
        ):
            return False

        for extract in (
            ProductMatcher.extract_brand,
            ProductMatcher.extract_color,
            ProductMatcher.extract_storage,
            ProductMatcher.extract_model,
        ):
            a = extract(first.title)
            b = extract(second.title)
            if a and b and a != b:
                return False
        return True


class ProductDeduplicator:
    """Collapse same-source duplicates, keeping the cheapest listing."""

    @staticmethod
    def _single_pass(
        products: Sequence[CanonicalProduct],
    ) -> tuple[list[CanonicalProduct], int]:
        kept: list[CanonicalProduct] = []
        removed = 0

        for product in products:
            for idx, existing in enumerate(kept):
                if existing.source_id != product.source_id:
                    continue
                if ProductMatcher.products_match(product, existing):
                    if product.price < existing.price:
                        kept[idx] = product
                    removed += 1
                    break
            else:
                kept.append(product)

        return kept, removed

    @staticmethod
    def deduplicate(
        products: Sequence[CanonicalProduct],
    ) -> tuple[list[CanonicalProduct], int]:
        """Remove duplicate products, keeping the cheapest per group.

        Each product is compared with the products kept so far; a match
        replaces the kept entry in place when it is cheaper, so the output
        keeps first-seen order.  A cheaper replacement can match a product
        kept after it, so passes repeat until nothing is removed.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not products:
            return [], 0

        kept, removed = ProductDeduplicator._single_pass(products)
        while True:
            kept, extra = ProductDeduplicator._single_pass(kept)
            if not extra:
                break
            removed += extra

        if removed:
            logger.info(
                "Deduplication removed %d duplicate products",
                removed,
            )

        return kept, removed
