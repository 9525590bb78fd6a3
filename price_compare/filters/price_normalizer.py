# price_compare/filters/price_normalizer.py

"""Parse heterogeneous price text into a validated amount."""

import logging
import math
import re

from price_compare.config.settings import Settings

logger = logging.getLogger("price_compare.filters")


class PriceNormalizer:
    """Turn scraped price fragments into a float, or reject them.

    Price text arrives as ``"₹1,29,900"``, as split whole/fraction DOM
    nodes (``"79,900" + "00"``), as ``"Rs. 499 Rs. 999"`` (selling price
    next to a struck-through MRP) or as an already-clean number from
    embedded JSON.  Short numeric fragments from rating counts or offer
    badges must never pass, so everything below ``MIN_VALID_PRICE`` is
    rejected.
    """

    _SYMBOL_PATTERNS: tuple[re.Pattern[str], ...] = (
        re.compile(r"₹\s*([\d,]+(?:\.\d{1,2})?)"),
        re.compile(r"Rs\.?\s*([\d,]+(?:\.\d{1,2})?)", re.IGNORECASE),
    )
    _STRIP_RE = re.compile(r"[₹$,\s]")
    _RS_RE = re.compile(r"Rs\.?", re.IGNORECASE)
    # A dot followed by exactly three digits is a thousands separator
    _THOUSANDS_DOT_RE = re.compile(r"\.(\d{3})(?!\d)")
    _LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")

    @staticmethod
    def _is_valid(value: float) -> bool:
        return (
            math.isfinite(value)
            and value > 0
            and value >= Settings.MIN_VALID_PRICE
        )

    @classmethod
    def _symbol_prices(cls, text: str) -> list[float]:
        """Return every symbol-anchored amount at or above the floor."""
        found: list[float] = []
        for pattern in cls._SYMBOL_PATTERNS:
            for match in pattern.finditer(text):
                raw = match.group(1).replace(",", "")
                try:
                    value = float(raw)
                except ValueError:
                    continue
                if cls._is_valid(value):
                    found.append(value)
        return found

    @classmethod
    def normalize(cls, text: object) -> float | None:
        """Return the price contained in *text*, or ``None`` if invalid."""
        if text is None:
            return None
        raw = str(text).strip()
        if len(raw) < 2:
            return None

        # Selling price sits below the struck-through list price
        symbol_prices = cls._symbol_prices(raw)
        if symbol_prices:
            return min(symbol_prices)

        cleaned = cls._RS_RE.sub("", cls._STRIP_RE.sub("", raw)).strip()
        if not cleaned:
            return None

        collapsed = cls._THOUSANDS_DOT_RE.sub(r"\1", cleaned)
        match = cls._LEADING_NUMBER_RE.match(collapsed)
        if not match:
            logger.debug(
                "Price rejected: raw=%r has no leading number",
                raw[:60],
            )
            return None

        value = float(match.group(0))
        if not cls._is_valid(value):
            logger.debug(
                "Price rejected: raw=%r parsed=%s (< %.0f)",
                raw[:60],
                value,
                Settings.MIN_VALID_PRICE,
            )
            return None
        return value
