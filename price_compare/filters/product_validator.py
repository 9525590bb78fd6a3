# price_compare/filters/product_validator.py

"""Product validation: drop invalid products before filtering."""

import logging
import math
from collections.abc import Sequence

from price_compare.config.settings import Settings
from price_compare.models.product import CanonicalProduct

logger = logging.getLogger("price_compare.filters")


class ProductValidator:
    """Validate products and drop those with missing essential fields."""

    @staticmethod
    def validate(
        products: Sequence[CanonicalProduct],
    ) -> tuple[list[CanonicalProduct], int]:
        """Drop products with empty titles or prices below the floor.

        Returns the valid products and the count of dropped items.
        """
        valid: list[CanonicalProduct] = []
        dropped = 0

        for product in products:
            if not product.title.strip():
                logger.debug(
                    "Dropped product with empty title "
                    "(source=%s, url=%s)",
                    product.source_id,
                    product.detail_url,
                )
                dropped += 1
                continue
            if (
                not math.isfinite(product.price)
                or product.price <= 0
                or product.price < Settings.MIN_VALID_PRICE
            ):
                logger.debug(
                    "PRICE REJECTED on %s: '%s' (price: %s)",
                    product.source_id,
                    product.title[:50],
                    product.price,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid products",
                dropped,
            )

        return valid, dropped
