# price_compare/extractors/myntra_extractor.py

"""Extractor for myntra.com, a React storefront with embedded search JSON."""

import logging
from typing import Any
from urllib.parse import quote, quote_plus

from bs4 import Tag

from price_compare.extractors.base import (
    accept_candidate,
    extract_balanced_json,
    fetch_listing,
    fetch_page,
    internal_limit,
    load_html,
    product_from_details,
    run_strategies,
    to_products,
)
from price_compare.models.product import CandidateRecord, CanonicalProduct
from price_compare.transport.fetcher import SmartFetcher

logger = logging.getLogger("price_compare.myntra")

SOURCE_ID = "myntra"
BASE_URL = "https://www.myntra.com"
MIN_CONTENT_BYTES = 500
LISTING_WAIT_SELECTOR = ".product-base, .search-searchProductsContainer"
DETAIL_WAIT_SELECTOR = ".pdp-title, .pdp-name"
REQUEST_HEADERS: dict[str, str] = {"Referer": BASE_URL}

# Script markers that may precede the embedded search payload
EMBEDDED_MARKERS: tuple[str, ...] = ("window.__myx", '"searchData"')


def build_search_url(query: str) -> str:
    """Myntra puts a hyphenated slug in the path plus the raw query."""
    slug = "-".join(query.lower().split())
    return f"{BASE_URL}/{quote(slug)}?rawQuery={quote_plus(query)}"


def product_url(path: str | None) -> str:
    if not path:
        return ""
    if path.startswith("http"):
        return path
    return f"{BASE_URL}/{path.lstrip('/')}"


def _embedded_products(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    search_data = payload.get("searchData")
    for holder in (
        search_data.get("results") if isinstance(search_data, dict) else None,
        payload.get("results"),
        payload,
    ):
        if isinstance(holder, dict) and isinstance(holder.get("products"), list):
            return holder["products"]
    return []


def _specs(item: dict[str, Any]) -> list[str]:
    specs = [
        str(item.get("category") or ""),
        str(item.get("subCategory") or ""),
        str(item.get("articleType") or ""),
        f"Color: {item['baseColour']}" if item.get("baseColour") else "",
        f"Season: {item['season']}" if item.get("season") else "",
    ]
    return [s for s in specs if s][:4]


def _in_stock(item: dict[str, Any]) -> bool:
    inventory = item.get("inventoryInfo")
    if isinstance(inventory, dict):
        inventory = [inventory]
    if isinstance(inventory, list) and inventory and isinstance(inventory[0], dict):
        return inventory[0].get("available") is not False
    return True


def parse_embedded_json(content: str) -> list[CandidateRecord]:
    """Products from the ``window.__myx`` state blob."""
    for marker in EMBEDDED_MARKERS:
        products = _embedded_products(extract_balanced_json(content, marker))
        if not products:
            continue

        candidates: list[CandidateRecord] = []
        for item in products:
            if not isinstance(item, dict):
                continue
            brand = str(item.get("brand") or "")
            name = str(
                item.get("productName")
                or item.get("product")
                or item.get("name")
                or ""
            )
            title = f"{brand} {name}".strip()
            price = item.get("discountedPrice")
            if price is None:
                price = item.get("price")
            if price is None:
                price = item.get("mrp")
            price_text = "" if price is None else str(price)
            url = product_url(item.get("landingPageUrl") or item.get("url"))
            if not accept_candidate(SOURCE_ID, title, price_text, url):
                continue
            candidates.append(
                CandidateRecord(
                    title=title,
                    raw_price_text=price_text,
                    source_id=SOURCE_ID,
                    detail_url=url,
                    image_url=str(
                        item.get("searchImage")
                        or item.get("image")
                        or item.get("defaultImage")
                        or ""
                    ),
                    specs=_specs(item),
                    in_stock=_in_stock(item),
                )
            )
        if candidates:
            return candidates
    return []


def _text(node: Tag | None) -> str:
    return node.get_text(strip=True) if node else ""


def parse_product_base(content: str) -> list[CandidateRecord]:
    """``.product-base`` grid cards."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    for card in soup.select(".product-base"):
        brand = _text(card.select_one(".product-brand"))
        name = _text(
            card.select_one(
                ".product-productMetaInfo .product-product, .product-productName"
            )
        )
        title = f"{brand} {name}".strip()
        price_text = _text(
            card.select_one(".product-discountedPrice")
        ) or _text(card.select_one(".product-price"))
        link = card.select_one("a[href]")
        url = product_url(str(link.get("href")) if link else "")
        if len(title) < 3:
            title = ""
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue
        image = card.select_one("img.img-responsive") or card.select_one("img")
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(image.get("src") or "") if image else "",
            )
        )
    return candidates


def parse_meta_info(content: str) -> list[CandidateRecord]:
    """Bare ``.product-productMetaInfo`` blocks inside product links."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    for meta in soup.select(".product-productMetaInfo"):
        title = (
            f"{_text(meta.select_one('.product-brand'))} "
            f"{_text(meta.select_one('.product-product'))}"
        ).strip()
        price_text = _text(
            meta.select_one(".product-discountedPrice, .product-price")
        )
        link = meta.find_parent("a")
        url = product_url(str(link.get("href") or "") if link else "")
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue
        card = meta.find_parent(class_="product-base")
        image = card.select_one("img") if card else None
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(image.get("src") or "") if image else "",
            )
        )
    return candidates


class MyntraExtractor:
    """Search and product-detail extraction for Myntra."""

    source_id = SOURCE_ID
    min_content_bytes = MIN_CONTENT_BYTES
    strategies = (parse_embedded_json, parse_product_base, parse_meta_info)

    def __init__(self, fetcher: SmartFetcher) -> None:
        self.fetcher = fetcher

    async def search(
        self, query: str, max_candidates: int,
    ) -> list[CanonicalProduct]:
        url = build_search_url(query)
        logger.info("[myntra] Searching '%s' -> %s", query, url)
        content = await fetch_listing(
            self.fetcher,
            SOURCE_ID,
            url,
            MIN_CONTENT_BYTES,
            wait_selector=LISTING_WAIT_SELECTOR,
            headers=REQUEST_HEADERS,
        )
        if content is None:
            return []

        candidates = run_strategies(SOURCE_ID, content, self.strategies)
        products = to_products(candidates)[: internal_limit(max_candidates)]
        logger.info(
            "[myntra] %d products from %d candidates for '%s'",
            len(products),
            len(candidates),
            query,
        )
        return products

    async def get_product_details(self, url: str) -> CanonicalProduct:
        soup = await fetch_page(
            self.fetcher,
            SOURCE_ID,
            url,
            wait_selector=DETAIL_WAIT_SELECTOR,
            headers=REQUEST_HEADERS,
        )
        title = (
            f"{_text(soup.select_one('.pdp-title'))} "
            f"{_text(soup.select_one('.pdp-name'))}"
        ).strip()
        price_text = (
            _text(soup.select_one(".pdp-price strong"))
            or _text(soup.select_one(".pdp-discountedPrice"))
            or _text(soup.select_one(".pdp-price"))
        )
        image = soup.select_one(".image-grid-image")

        logger.info(
            "[myntra] Product details: title='%s', price='%s'",
            title[:60],
            price_text,
        )
        return product_from_details(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(image.get("src") or "") if image else "",
            )
        )
