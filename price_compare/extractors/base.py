# price_compare/extractors/base.py

"""Shared helpers and the contract every source extractor implements."""

import json
import logging
import random
import re
from asyncio import sleep
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from price_compare.config.settings import Settings
from price_compare.models.errors import FetchError, SourceUnavailable
from price_compare.models.product import CandidateRecord, CanonicalProduct
from price_compare.transport.fetcher import SmartFetcher

logger = logging.getLogger("price_compare.extractors")

Strategy = Callable[[str], list[CandidateRecord]]

# Call-to-action and navigation text that must never become a title
UI_TEXT_DENYLIST: tuple[str, ...] = (
    "add to", "compare", "view", "buy now", "shop", "see all", "more",
    "show", "log in", "sign up", "filter", "sort", "wishlist", "cart",
)


class SourceExtractor(Protocol):
    """What the orchestrator needs from a marketplace extractor."""

    source_id: str

    async def search(
        self, query: str, max_candidates: int,
    ) -> list[CanonicalProduct]: ...

    async def get_product_details(self, url: str) -> CanonicalProduct: ...


def internal_limit(requested: int) -> int:
    """Candidates to pull so relevance filtering has enough to choose from."""
    return max(
        requested * Settings.CANDIDATE_MULTIPLIER, Settings.MIN_CANDIDATES
    )


_UI_TEXT_RE = re.compile(
    r"^(?:"
    + "|".join(
        r"\s*".join(map(re.escape, phrase.split()))
        for phrase in UI_TEXT_DENYLIST
    )
    + r")",
    re.IGNORECASE,
)


def is_ui_text(text: str) -> bool:
    """True for button/link labels such as "Add to Compare"."""
    stripped = text.strip()
    return not stripped or bool(_UI_TEXT_RE.match(stripped))


def make_absolute(base_url: str, href: str | None) -> str:
    if not href:
        return ""
    if href.startswith("http"):
        return href
    return urljoin(base_url, href)


def load_html(content: str) -> BeautifulSoup:
    return BeautifulSoup(content, "lxml")


def iter_json_ld(soup: BeautifulSoup) -> Iterator[Any]:
    """Yield every parseable ``application/ld+json`` payload."""
    for script in soup.select('script[type="application/ld+json"]'):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            yield json.loads(raw)
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")


def extract_balanced_json(text: str, marker: str) -> Any | None:
    """Parse the JSON object assigned right after *marker* in a script.

    Walks braces while honouring string literals, so trailing script code
    after the object does not break parsing.
    """
    start = text.find(marker)
    if start < 0:
        return None
    start = text.find("{", start + len(marker))
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start: idx + 1])
                except ValueError:
                    return None
    return None


def run_strategies(
    source_id: str,
    content: str,
    strategies: Sequence[Strategy],
) -> list[CandidateRecord]:
    """Return the first non-empty strategy result.

    A strategy that trips over an unexpected page shape counts as empty
    and the next one runs.  No cap is applied here: callers limit after
    price validation so unpriced cards do not use up slots.
    """
    for strategy in strategies:
        try:
            candidates = strategy(content)
        except (AttributeError, TypeError, KeyError, IndexError) as exc:
            logger.warning(
                "[%s] Strategy %s failed on unexpected data: %r",
                source_id,
                strategy.__name__,
                exc,
            )
            continue
        logger.info(
            "[%s] Strategy %s yielded %d candidates",
            source_id,
            strategy.__name__,
            len(candidates),
        )
        if candidates:
            return candidates

    logger.warning(
        "[%s] Extraction mismatch: 0 candidates from %d strategies "
        "(%d bytes of content)",
        source_id,
        len(strategies),
        len(content),
    )
    return []


def to_products(
    candidates: Sequence[CandidateRecord],
) -> list[CanonicalProduct]:
    """Convert candidates, dropping any whose price does not validate."""
    products: list[CanonicalProduct] = []
    for candidate in candidates:
        product = CanonicalProduct.from_candidate(candidate)
        if product is None:
            logger.debug(
                "[%s] Dropped '%s': invalid price %r",
                candidate.source_id,
                candidate.title[:50],
                candidate.raw_price_text,
            )
            continue
        products.append(product)
    return products


def accept_candidate(
    source_id: str,
    title: str,
    price_text: str,
    url: str,
) -> bool:
    """A candidate needs a real title, a price and a link."""
    if not title or not price_text or not url:
        missing = (
            "title" if not title else "price" if not price_text else "url"
        )
        logger.debug(
            "[%s] Skipping card: missing %s ('%s')",
            source_id,
            missing,
            title[:50],
        )
        return False
    if is_ui_text(title):
        logger.debug("[%s] Skipping UI text '%s'", source_id, title)
        return False
    return True


async def fetch_listing(
    fetcher: SmartFetcher,
    source_id: str,
    url: str,
    min_bytes: int,
    wait_selector: str | None = None,
    headers: dict[str, str] | None = None,
) -> str | None:
    """Fetch a search page, tolerating one bot-block page.

    A body shorter than *min_bytes* is a block page.  One more fetch is
    made after a random pause; a second short body yields ``None``, which
    callers treat as an empty result.  Transport failure raises
    ``SourceUnavailable``.
    """
    for attempt in (1, 2):
        try:
            content = await fetcher.fetch(
                url, wait_selector=wait_selector, headers=headers
            )
        except FetchError as exc:
            raise SourceUnavailable(source_id, exc) from exc

        if len(content) >= min_bytes:
            return content

        if attempt == 1:
            low, high = Settings.BLOCK_RETRY_DELAY
            delay = random.uniform(low, high)
            logger.warning(
                "[%s] Bot-block suspected: only %d bytes, "
                "retrying with a fresh session in %.1fs",
                source_id,
                len(content),
                delay,
            )
            await sleep(delay)

    logger.error(
        "[%s] Still blocked after retry (%d bytes); treating as empty",
        source_id,
        len(content),
    )
    return None


async def fetch_page(
    fetcher: SmartFetcher,
    source_id: str,
    url: str,
    wait_selector: str | None = None,
    headers: dict[str, str] | None = None,
) -> BeautifulSoup:
    """Fetch a product detail page, wrapping transport failure."""
    try:
        content = await fetcher.fetch(
            url, wait_selector=wait_selector, headers=headers
        )
    except FetchError as exc:
        raise SourceUnavailable(source_id, exc) from exc
    return load_html(content)


def product_from_details(candidate: CandidateRecord) -> CanonicalProduct:
    """Validate a product-page record; an unusable page is unavailable."""
    product = CanonicalProduct.from_candidate(candidate)
    if product is None:
        raise SourceUnavailable(
            candidate.source_id,
            ValueError(
                f"no valid title/price on {candidate.detail_url} "
                f"(price text {candidate.raw_price_text!r})"
            ),
        )
    return product
