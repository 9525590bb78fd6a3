# price_compare/filters/relevance_scorer.py

"""Relevance scoring of listing titles against the search query."""

import logging
import re
from collections.abc import Sequence

from price_compare.filters.tokenizer import normalize_text, tokenize
from price_compare.models.product import CanonicalProduct

logger = logging.getLogger("price_compare.filters")

KNOWN_BRANDS: frozenset[str] = frozenset(
    {
        # Phones
        "iphone", "apple", "samsung", "oneplus", "xiaomi", "redmi",
        "realme", "oppo", "vivo", "pixel", "google", "motorola",
        "nothing", "poco", "iqoo", "nokia", "huawei", "honor", "asus",
        "rog",
        # Laptops / components
        "dell", "hp", "lenovo", "acer", "msi", "macbook", "thinkpad",
        "surface", "microsoft", "intel", "amd", "nvidia",
        # Fashion
        "nike", "adidas", "puma", "reebok", "skechers", "levis", "zara",
        "hm", "uniqlo", "gucci", "prada", "louis", "vuitton",
        # Others
        "sony", "lg", "bosch", "philips", "dyson", "jbl", "bose",
        "boat", "fire", "boltt", "fossil", "titan", "casio", "timex",
    }
)

COLORS: frozenset[str] = frozenset(
    {
        "red", "blue", "green", "black", "white", "gold", "silver",
        "grey", "gray", "pink", "purple", "orange", "yellow", "brown",
        "beige", "navy", "teal", "coral", "maroon", "cream", "ivory",
        "lavender", "midnight", "space", "starlight", "titanium",
        "graphite", "sierra", "alpine",
    }
)

ACCESSORY_KEYWORDS: tuple[str, ...] = (
    "case", "cover", "back cover", "tempered", "screen guard",
    "screen protector", "protector", "charger", "cable", "adapter",
    "earbuds", "earphones", "headphones", "power bank", "holder",
    "stand", "tripod", "watch strap", "skin", "sticker", "decal",
    "pouch", "sleeve", "cleaning kit", "stylus", "film", "mount",
    "grip", "ring holder", "pop socket", "armband", "car mount",
    "dock", "hub", "dongle", "otg", "memory card",
)

APPAREL_KEYWORDS: tuple[str, ...] = (
    "dress", "top", "shirt", "tshirt", "t-shirt", "kurta", "saree",
    "sari", "jeans", "jacket", "hoodie", "bra", "pant", "trouser",
    "skirt", "shoe", "sandal", "heels", "blouse", "lehenga", "dupatta",
    "palazzo", "shorts", "trackpant", "track pant", "jogger",
    "sweatshirt", "sweater", "cardigan", "blazer", "suit", "tie",
    "belt", "scarf", "shawl", "stole", "lingerie", "underwear",
    "boxers", "socks", "cap", "hat", "beanie", "watch band", "handbag",
    "purse", "wallet", "clutch", "tote", "backpack", "printed",
    "cotton", "polyester", "silk", "chiffon", "georgette",
)

ELECTRONICS_KEYWORDS: frozenset[str] = frozenset(
    {
        "phone", "mobile", "smartphone", "laptop", "tablet", "camera",
        "tv", "television", "monitor", "speaker", "headphone",
        "earphone", "earbud", "smartwatch", "watch", "console", "gaming",
        "processor", "gpu", "ssd", "hdd", "ram", "router", "printer",
        "scanner", "projector", "drone", "gb", "tb", "5g", "4g", "wifi",
        "bluetooth", "amoled", "oled", "lcd",
    }
)

# Phrases a brand + model number may legitimately appear as in a title
BRAND_ALIASES: dict[str, tuple[str, ...]] = {
    "iphone": ("iphone", "apple iphone"),
    "apple": ("apple", "iphone"),
    "samsung": ("samsung", "galaxy"),
    "oneplus": ("oneplus", "one plus"),
    "redmi": ("redmi", "xiaomi redmi"),
    "pixel": ("pixel", "google pixel"),
}

_DIGIT_RE = re.compile(r"\d")

REJECT: float = -1.0


def _brand_number_adjacent(
    title_norm: str,
    brand_tokens: Sequence[str],
    numeric_tokens: Sequence[str],
) -> bool:
    """True if some brand alias is immediately followed by a model number."""
    for brand in brand_tokens:
        for alias in BRAND_ALIASES.get(brand, (brand,)):
            for num in numeric_tokens:
                if (
                    f"{alias} {num}" in title_norm
                    or f"{alias}{num}" in title_norm
                    or f"{brand} {num}" in title_norm
                    or f"{brand}{num}" in title_norm
                ):
                    return True
    return False


class RelevanceScorer:
    """Score titles against a query under brand/model/category rules."""

    @staticmethod
    def is_electronics_query(query_tokens: Sequence[str]) -> bool:
        return any(
            t in ELECTRONICS_KEYWORDS or t in KNOWN_BRANDS
            for t in query_tokens
        )

    @staticmethod
    def score(query: str, title: str) -> float:
        """Return a relevance score; ``<= 0`` means reject.

        1. ALL brand tokens of the query must occur in the title.
        2. ALL numeric tokens (model numbers, capacities) must occur.
        3. With both present, a brand alias must directly precede a number.
        4. Electronics queries reject accessory and apparel titles.
        5. Keyword overlap must reach 0.5 (<= 3 tokens) or 0.4; queries of
           one or two tokens need every token.
        """
        query_norm = normalize_text(query)
        title_norm = normalize_text(title)
        if not query_norm or not title_norm:
            return REJECT

        query_tokens = tokenize(query_norm)
        title_tokens = tokenize(title_norm)
        if not query_tokens or not title_tokens:
            return REJECT

        query_token_set = set(query_tokens)
        title_token_set = set(title_tokens)

        brand_tokens = [t for t in query_tokens if t in KNOWN_BRANDS]
        numeric_tokens = [t for t in query_tokens if _DIGIT_RE.search(t)]
        color_tokens = [t for t in query_tokens if t in COLORS]

        if brand_tokens and not all(
            b in title_token_set or b in title_norm for b in brand_tokens
        ):
            return REJECT

        if numeric_tokens and not all(
            n in title_norm for n in numeric_tokens
        ):
            return REJECT

        if (
            brand_tokens
            and numeric_tokens
            and not _brand_number_adjacent(
                title_norm, brand_tokens, numeric_tokens
            )
        ):
            return REJECT

        if RelevanceScorer.is_electronics_query(query_tokens):
            if any(kw in title_norm for kw in ACCESSORY_KEYWORDS):
                return REJECT
            if any(kw in title_norm for kw in APPAREL_KEYWORDS):
                return REJECT

        matched = sum(
            1
            for t in query_token_set
            if t in title_token_set or t in title_norm
        )
        overlap = matched / len(query_token_set)
        min_overlap = 0.5 if len(query_token_set) <= 3 else 0.4
        if overlap < min_overlap:
            return REJECT
        if len(query_token_set) <= 2 and matched < len(query_token_set):
            return REJECT

        score = float(matched)
        if query_norm in title_norm:
            score += 5
        if color_tokens:
            score += 1.5 * sum(1 for c in color_tokens if c in title_norm)
        score += overlap * 3
        if brand_tokens:
            score += 2
        if numeric_tokens:
            score += 2
        return score

    @staticmethod
    def rank(
        products: Sequence[CanonicalProduct],
        query: str,
    ) -> list[tuple[CanonicalProduct, float]]:
        """Score products, drop rejects, and sort best-first."""
        scored: list[tuple[CanonicalProduct, float]] = []
        for product in products:
            value = RelevanceScorer.score(query, product.title)
            if value <= 0:
                logger.debug(
                    "[%s] REJECTED: '%s' (score: %.1f)",
                    product.source_id,
                    product.title[:70],
                    value,
                )
                continue
            scored.append((product, value))
        # sorted() is stable, equal scores keep extraction order
        return sorted(scored, key=lambda item: item[1], reverse=True)
