# price_compare/extractors/amazon_extractor.py

"""Extractor for amazon.in search and product pages."""

import logging
from typing import Any
from urllib.parse import parse_qs, quote_plus, urlparse

from bs4 import Tag

from price_compare.extractors.base import (
    accept_candidate,
    fetch_listing,
    fetch_page,
    internal_limit,
    iter_json_ld,
    load_html,
    make_absolute,
    product_from_details,
    run_strategies,
    to_products,
)
from price_compare.models.product import CandidateRecord, CanonicalProduct
from price_compare.transport.fetcher import SmartFetcher

logger = logging.getLogger("price_compare.amazon")

SOURCE_ID = "amazon"
BASE_URL = "https://www.amazon.in"
MIN_CONTENT_BYTES = 5000
MIN_TITLE_LENGTH = 15
LISTING_WAIT_SELECTOR = '[data-component-type="s-search-result"], .s-result-item'
DETAIL_WAIT_SELECTOR = "#productTitle, #title"

ELECTRONICS_KEYWORDS: tuple[str, ...] = (
    "iphone", "samsung", "galaxy", "oneplus", "pixel", "redmi", "realme",
    "oppo", "vivo", "phone", "mobile", "laptop", "tablet",
)


def build_search_url(query: str) -> str:
    """Search URL, scoped to the electronics department for gadget queries."""
    url = f"{BASE_URL}/s?k={quote_plus(query)}"
    lower = query.lower()
    if any(kw in lower for kw in ELECTRONICS_KEYWORDS):
        url += "&i=electronics"
    return url


def normalize_product_url(raw_url: str | None) -> str:
    """Absolute product URL with sponsored click-through links unwrapped."""
    if not raw_url:
        return ""
    if "/sspa/click" in raw_url:
        full = make_absolute(BASE_URL, raw_url)
        target = parse_qs(urlparse(full).query).get("url")
        if target and target[0]:
            return make_absolute(BASE_URL, target[0])
    return make_absolute(BASE_URL, raw_url)


def _text(node: Tag | None) -> str:
    return node.get_text(strip=True) if node else ""


def _card_price(card: Tag) -> str:
    offscreen = _text(card.select_one(".a-price .a-offscreen"))
    if offscreen:
        return offscreen
    whole = _text(card.select_one(".a-price-whole")).rstrip(".")
    fraction = _text(card.select_one(".a-price-fraction"))
    if not whole:
        return ""
    return f"{whole}.{fraction}" if fraction else whole


def _card_specs(card: Tag) -> list[str]:
    specs: list[str] = []
    for node in card.select(".a-text-bold, .a-size-base-plus"):
        text = node.get_text(strip=True)
        if (
            2 < len(text) < 80
            and "₹" not in text
            and "sponsored" not in text.lower()
        ):
            specs.append(text)
    return specs[:6]


def _json_ld_offer_price(offers: Any) -> str:
    if isinstance(offers, list):
        offers = offers[0] if offers else {}
    if not isinstance(offers, dict):
        return ""
    price = offers.get("price") or offers.get("lowPrice") or ""
    return str(price)


def _json_ld_products(payload: Any) -> list[dict[str, Any]]:
    """Flatten ``ItemList``/``Product``/``@graph`` payloads into products."""
    if isinstance(payload, list):
        found: list[dict[str, Any]] = []
        for item in payload:
            found.extend(_json_ld_products(item))
        return found
    if not isinstance(payload, dict):
        return []
    if "@graph" in payload:
        return _json_ld_products(payload["@graph"])

    kind = payload.get("@type")
    if kind == "Product":
        return [payload]
    if kind == "ItemList":
        found = []
        for element in payload.get("itemListElement", []):
            if isinstance(element, dict):
                found.extend(
                    _json_ld_products(element.get("item", element))
                )
        return found
    return []


def parse_json_ld(content: str) -> list[CandidateRecord]:
    """Structured ``application/ld+json`` product data, when Amazon ships it."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    for payload in iter_json_ld(soup):
        for item in _json_ld_products(payload):
            title = str(item.get("name") or "")
            price_text = _json_ld_offer_price(item.get("offers"))
            url = normalize_product_url(str(item.get("url") or ""))
            if not accept_candidate(SOURCE_ID, title, price_text, url):
                continue
            image = item.get("image") or ""
            if isinstance(image, list):
                image = image[0] if image else ""
            candidates.append(
                CandidateRecord(
                    title=title,
                    raw_price_text=price_text,
                    source_id=SOURCE_ID,
                    detail_url=url,
                    image_url=str(image),
                )
            )
    return candidates


def parse_search_cards(content: str) -> list[CandidateRecord]:
    """Standard ``s-search-result`` cards."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    cards = soup.select('[data-component-type="s-search-result"]')
    for index, card in enumerate(cards):
        # Ad placeholders carry a sponsored popover but no heading
        if card.select_one(".puis-label-popover-default") and not card.select_one("h2"):
            continue

        title = (
            _text(card.select_one("h2 a span"))
            or _text(card.select_one("h2 span"))
            or _text(card.select_one('[data-cy="title-recipe"] span'))
        )
        price_text = _card_price(card)
        link = (
            card.select_one("h2 a")
            or card.select_one("a.a-link-normal.s-no-outline")
            or card.select_one('a.a-link-normal[href*="/dp/"]')
        )
        raw_url = str(link.get("href") or "") if link else ""

        if title and len(title) < MIN_TITLE_LENGTH:
            logger.debug(
                "[amazon] Skipping card %d: short title '%s'", index, title
            )
            continue
        url = normalize_product_url(raw_url)
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue

        image = card.select_one("img.s-image")
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(image.get("src") or "") if image else "",
                specs=_card_specs(card),
            )
        )
    return candidates


def parse_result_items(content: str) -> list[CandidateRecord]:
    """Looser ``.s-result-item[data-asin]`` fallback for older layouts."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    for item in soup.select(".s-result-item[data-asin]"):
        if not item.get("data-asin"):
            continue
        title = _text(item.select_one("h2 span, h2 a span"))
        price_text = _text(
            item.select_one(".a-price .a-offscreen, .a-price-whole")
        )
        link = item.select_one('h2 a, a[href*="/dp/"]')
        url = normalize_product_url(
            str(link.get("href") or "") if link else ""
        )
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue
        image = item.select_one("img")
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


class AmazonExtractor:
    """Search and product-detail extraction for Amazon India."""

    source_id = SOURCE_ID
    min_content_bytes = MIN_CONTENT_BYTES
    strategies = (parse_json_ld, parse_search_cards, parse_result_items)

    def __init__(self, fetcher: SmartFetcher) -> None:
        self.fetcher = fetcher

    async def search(
        self, query: str, max_candidates: int,
    ) -> list[CanonicalProduct]:
        url = build_search_url(query)
        logger.info("[amazon] Searching '%s' -> %s", query, url)
        content = await fetch_listing(
            self.fetcher,
            SOURCE_ID,
            url,
            MIN_CONTENT_BYTES,
            wait_selector=LISTING_WAIT_SELECTOR,
        )
        if content is None:
            return []

        candidates = run_strategies(SOURCE_ID, content, self.strategies)
        products = to_products(candidates)[: internal_limit(max_candidates)]
        logger.info(
            "[amazon] %d products from %d candidates for '%s'",
            len(products),
            len(candidates),
            query,
        )
        return products

    async def get_product_details(self, url: str) -> CanonicalProduct:
        soup = await fetch_page(
            self.fetcher, SOURCE_ID, url, wait_selector=DETAIL_WAIT_SELECTOR
        )
        title = _text(soup.select_one("#productTitle")) or _text(
            soup.select_one("#title span")
        )
        price_text = _text(
            soup.select_one("span.a-price .a-offscreen")
        ) or _card_price(soup)
        image = soup.select_one("#landingImage") or soup.select_one(
            "#imgBlkFront"
        )
        availability = _text(soup.select_one("#availability span")).lower()

        logger.info(
            "[amazon] Product details: title='%s', price='%s', avail='%s'",
            title[:60],
            price_text,
            availability,
        )
        return product_from_details(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(image.get("src") or "") if image else "",
                in_stock=(
                    "unavailable" not in availability
                    and (
                        "in stock" in availability
                        or "available" in availability
                    )
                ),
            )
        )
