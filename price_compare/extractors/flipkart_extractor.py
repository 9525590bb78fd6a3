# price_compare/extractors/flipkart_extractor.py

"""Extractor for flipkart.com search and product pages.

Flipkart obfuscates and rotates its CSS class names, so the DOM
strategies lean on structure (product links, the rupee sign) rather than
classes wherever possible.
"""

import json
import logging
import re
from typing import Any
from urllib.parse import quote_plus

from bs4 import NavigableString, Tag

from price_compare.extractors.base import (
    accept_candidate,
    extract_balanced_json,
    fetch_listing,
    fetch_page,
    internal_limit,
    is_ui_text,
    load_html,
    make_absolute,
    product_from_details,
    run_strategies,
    to_products,
)
from price_compare.models.product import CandidateRecord, CanonicalProduct
from price_compare.transport.fetcher import SmartFetcher

logger = logging.getLogger("price_compare.flipkart")

SOURCE_ID = "flipkart"
BASE_URL = "https://www.flipkart.com"
MIN_CONTENT_BYTES = 1000
MAX_ANCESTOR_DEPTH = 10
LISTING_WAIT_SELECTOR = "[data-id], .cPHDOP, ._75nlfW, .tUxRFH"
DETAIL_WAIT_SELECTOR = ".B_NuCI, .VU-ZEz, h1"

TITLE_CLASSES: tuple[str, ...] = (
    "._4rR01T", ".s1Q9rs", ".WKTcLC", ".wjcEIp", ".KzDlHZ", ".Xpx0MJ",
)
PRICE_CLASSES: tuple[str, ...] = (
    "._30jeq3", ".Nx9bqj", "._1_WHN1", '[class*="sellingPrice"]',
)

_RUPEE_PRICE_RE = re.compile(r"₹\s*([\d,]+(?:\.\d{1,2})?)")
_STORAGE_RE = re.compile(r"\d+\s*(?:GB|TB|MB)", re.IGNORECASE)
_COLOR_RE = re.compile(r"\((\w+(?:\s+\w+)?),", re.IGNORECASE)
# Trailing rating, review, price and discount text glued onto card titles
_TITLE_NOISE: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d+\.\d+\s*★.*$", re.IGNORECASE),
    re.compile(r"\d+\s*ratings?.*$", re.IGNORECASE),
    re.compile(r"\d+\s*reviews?.*$", re.IGNORECASE),
    re.compile(r"₹[\d,]+.*$", re.IGNORECASE),
    re.compile(r"\d+%\s*off.*$", re.IGNORECASE),
)


def build_search_url(query: str) -> str:
    return f"{BASE_URL}/search?q={quote_plus(query)}"


def strip_title_noise(title: str) -> str:
    for pattern in _TITLE_NOISE:
        title = pattern.sub("", title)
    return " ".join(title.split())


def _title_specs(title: str) -> list[str]:
    specs = [f"Storage: {s}" for s in _STORAGE_RE.findall(title)]
    color = _COLOR_RE.search(title)
    if color:
        specs.append(f"Color: {color.group(1)}")
    return specs


def _price_field(pricing: Any) -> str:
    if not isinstance(pricing, dict):
        return str(pricing or "")
    for key in ("sellingPrice", "finalPrice", "mrp", "value"):
        value = pricing.get(key)
        if isinstance(value, dict):
            value = value.get("value") or value.get("decimalValue")
        if value:
            return str(value)
    return ""


def _dig(data: Any, *keys: str) -> Any:
    """Follow *keys* through nested dicts, ``None`` on any other shape."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def parse_next_data(content: str) -> list[CandidateRecord]:
    """Products from the ``__NEXT_DATA__`` pagination slots."""
    soup = load_html(content)
    script = soup.select_one("script#__NEXT_DATA__")
    if script is None:
        return []
    try:
        data = json.loads(script.string or script.get_text())
    except ValueError as exc:
        logger.warning("[flipkart] __NEXT_DATA__ parse failed: %s", exc)
        return []

    slots = _as_list(
        _dig(
            data,
            "props",
            "pageProps",
            "initialData",
            "searchResult",
            "paginationData",
            "slots",
        )
    )
    candidates: list[CandidateRecord] = []
    for slot in slots:
        widget_data = _as_dict(_dig(slot, "widget", "data"))
        entries = _as_list(widget_data.get("products")) or _as_list(
            widget_data.get("data")
        )
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            info = _as_dict(_dig(entry, "productInfo", "value")) or entry
            title = str(info.get("title") or info.get("name") or "")
            price_text = _price_field(info.get("price") or info.get("pricing"))
            url = make_absolute(
                BASE_URL,
                info.get("smartUrl") or info.get("url") or info.get("baseUrl"),
            )
            if not accept_candidate(SOURCE_ID, title, price_text, url):
                continue

            specs: list[str] = []
            specs.extend(str(s) for s in _as_list(info.get("keySpecs")))
            specs.extend(str(s) for s in _as_list(info.get("highlights")))
            for key, value in _as_dict(info.get("attributes")).items():
                if isinstance(value, str) and len(value) < 80:
                    specs.append(f"{key}: {value}")
            specs.extend(_title_specs(title))

            images = _as_list(_dig(info, "media", "images"))
            first_image = _as_dict(images[0]) if images else {}
            candidates.append(
                CandidateRecord(
                    title=title,
                    raw_price_text=price_text,
                    source_id=SOURCE_ID,
                    detail_url=url,
                    image_url=str(
                        info.get("imageUrl") or first_image.get("url") or ""
                    ),
                    specs=specs,
                )
            )
    return candidates


def parse_initial_state(content: str) -> list[CandidateRecord]:
    """Products from the legacy ``window.__INITIAL_STATE__`` blob."""
    state = extract_balanced_json(content, "window.__INITIAL_STATE__")
    if not isinstance(state, dict):
        return []

    search_response = (
        _dig(state, "searchResponse", "results")
        or _dig(state, "pageDataV4", "page", "data")
        or []
    )
    if isinstance(search_response, dict):
        groups = list(search_response.values())
    else:
        groups = _as_list(search_response)
    items: list[Any] = []
    for group in groups:
        items.extend(group if isinstance(group, list) else [group])

    candidates: list[CandidateRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or item.get("productName") or "")
        price_text = str(
            item.get("sellingPrice") or item.get("finalPrice") or item.get("mrp") or ""
        )
        url = make_absolute(BASE_URL, item.get("url") or item.get("smartUrl"))
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=str(item.get("imageUrl") or item.get("image") or ""),
            )
        )
    return candidates


def _own_text(node: Tag) -> str:
    """Text of *node* excluding its child elements."""
    return "".join(
        str(child) for child in node.children
        if isinstance(child, NavigableString)
    ).strip()


def _card_specs(card: Tag) -> list[str]:
    specs: list[str] = []
    for node in card.select('li, [class*="spec"], [class*="feature"]'):
        text = node.get_text(" ", strip=True)
        if (
            3 < len(text) < 100
            and "₹" not in text
            and "rating" not in text.lower()
        ):
            specs.append(text)
    return specs[:6]


def _card_image(card: Tag, link: Tag | None = None) -> str:
    for scope, selector in (
        (card, 'img[src*="rukminim"]'),
        (card, 'img[src*="img"]'),
        (link, "img"),
        (card, "img"),
    ):
        if scope is None:
            continue
        image = scope.select_one(selector)
        if image is not None and image.get("src"):
            return str(image.get("src"))
    return ""


def _rupee_fragments(card: Tag, max_length: int) -> list[tuple[int, float, str]]:
    """``(length, value, text)`` for every short own-text rupee price."""
    fragments: list[tuple[int, float, str]] = []
    for node in card.find_all(True):
        text = _own_text(node)
        if not text or "₹" not in text or len(text) > max_length:
            continue
        match = _RUPEE_PRICE_RE.search(text)
        if not match:
            continue
        try:
            value = float(match.group(1).replace(",", ""))
        except ValueError:
            continue
        if value >= 100:
            fragments.append((len(text), value, text))
    return fragments


def parse_known_cards(content: str) -> list[CandidateRecord]:
    """``[data-id]`` product cards with Flipkart's known title/price classes."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    for card in soup.select("[data-id]"):
        title = ""
        titled_link = card.select_one("a[title]")
        if titled_link is not None and len(str(titled_link.get("title"))) > 5:
            title = str(titled_link.get("title"))
        if not title:
            for selector in TITLE_CLASSES:
                node = card.select_one(selector)
                text = node.get_text(strip=True) if node else ""
                if len(text) > 5:
                    title = text
                    break

        price_text = ""
        for selector in PRICE_CLASSES:
            node = card.select_one(selector)
            text = node.get_text(strip=True) if node else ""
            if "₹" in text:
                price_text = text
                break
        if not price_text:
            fragments = sorted(_rupee_fragments(card, 30))
            if fragments:
                price_text = fragments[0][2]

        link = (
            card.select_one('a[href*="/p/"]')
            or card.select_one('a[href*="/dl/"]')
            or card.select_one("a[href]")
        )
        url = make_absolute(BASE_URL, str(link.get("href")) if link else "")
        title = strip_title_noise(title)
        if len(title) < 5:
            title = ""
        if not accept_candidate(SOURCE_ID, title, price_text, url):
            continue
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=price_text,
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=_card_image(card),
                specs=_card_specs(card),
            )
        )
    return candidates


def _link_title(link: Tag) -> str:
    """Title from the title attribute, first text line, or image alt."""
    title_attr = str(link.get("title") or "")
    if len(title_attr) > 5 and not is_ui_text(title_attr):
        return title_attr

    link_text = link.get_text("\n", strip=True)
    if (
        5 < len(link_text) < 300
        and not is_ui_text(link_text)
        and not link_text.startswith("₹")
    ):
        first_line = link_text.split("\n")[0].strip()
        return first_line if 5 < len(first_line) < 200 else link_text[:200]

    image = link.select_one("img")
    alt = str(image.get("alt") or "") if image else ""
    if len(alt) > 5 and not is_ui_text(alt):
        return alt
    return ""


def _price_container(link: Tag) -> Tag | None:
    """Nearest ancestor (at most ten levels up) whose text has a rupee sign."""
    current = link.parent
    for _ in range(MAX_ANCESTOR_DEPTH):
        if current is None or not isinstance(current, Tag):
            return None
        if current.name in ("body", "html", "[document]"):
            return None
        if "₹" in current.get_text():
            return current
        current = current.parent
    return None


def parse_structural(content: str) -> list[CandidateRecord]:
    """Class-agnostic fallback: product links, then the nearest price."""
    soup = load_html(content)
    candidates: list[CandidateRecord] = []
    seen_urls: set[str] = set()

    links = soup.select('a[href*="/p/"], a[href*="/dl/"]')
    logger.debug("[flipkart] Structural: %d product links", len(links))
    for link in links:
        url = make_absolute(BASE_URL, str(link.get("href") or ""))
        url_key = url.split("?", 1)[0]
        if not url or url_key in seen_urls:
            continue
        seen_urls.add(url_key)

        title = _link_title(link)
        if len(title) < 5 or is_ui_text(title):
            continue

        card = _price_container(link)
        if card is None:
            continue
        # Shortest fragment is the most specific; lowest value is the sale price
        fragments = sorted(_rupee_fragments(card, 40))
        if not fragments:
            continue

        title = strip_title_noise(title)
        if len(title) < 5:
            continue
        if not accept_candidate(SOURCE_ID, title, fragments[0][2], url):
            continue
        candidates.append(
            CandidateRecord(
                title=title,
                raw_price_text=fragments[0][2],
                source_id=SOURCE_ID,
                detail_url=url,
                image_url=_card_image(card, link),
                specs=_card_specs(card),
            )
        )
    return candidates


class FlipkartExtractor:
    """Search and product-detail extraction for Flipkart."""

    source_id = SOURCE_ID
    min_content_bytes = MIN_CONTENT_BYTES
    strategies = (
        parse_next_data,
        parse_initial_state,
        parse_known_cards,
        parse_structural,
    )

    def __init__(self, fetcher: SmartFetcher) -> None:
        self.fetcher = fetcher

    async def search(
        self, query: str, max_candidates: int,
    ) -> list[CanonicalProduct]:
        url = build_search_url(query)
        logger.info("[flipkart] Searching '%s' -> %s", query, url)
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
            "[flipkart] %d products from %d candidates for '%s'",
            len(products),
            len(candidates),
            query,
        )
        return products

    async def get_product_details(self, url: str) -> CanonicalProduct:
        soup = await fetch_page(
            self.fetcher, SOURCE_ID, url, wait_selector=DETAIL_WAIT_SELECTOR
        )
        title = ""
        for selector in ("span.B_NuCI", "h1.yhB1nd", "h1.VU-ZEz", "h1"):
            node = soup.select_one(selector)
            if node is not None and node.get_text(strip=True):
                title = node.get_text(strip=True)
                break

        price_node = soup.select_one("div._30jeq3") or soup.select_one(
            'div[class*="price"]'
        )
        price_text = price_node.get_text(strip=True) if price_node else ""
        image = (
            soup.select_one("img._396cs4")
            or soup.select_one("img._2r_T1I")
            or soup.select_one('img[src*="img1a.flixcart"]')
        )
        availability_node = soup.select_one("div._16FRp0")
        availability = (
            availability_node.get_text(strip=True).lower()
            if availability_node
            else ""
        )

        logger.info(
            "[flipkart] Product details: title='%s', price='%s'",
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
                in_stock="sold out" not in availability,
            )
        )
