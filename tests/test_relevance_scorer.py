# tests/test_relevance_scorer.py

"""Tests for query tokenisation and relevance scoring."""

import unittest

from price_compare.filters.relevance_scorer import REJECT, RelevanceScorer
from price_compare.filters.tokenizer import normalize_text, tokenize
from price_compare.models.product import CanonicalProduct


def _product(title: str, price: float = 50000.0) -> CanonicalProduct:
    return CanonicalProduct(
        source_id="amazon",
        title=title,
        price=price,
        detail_url="https://www.amazon.in/dp/TEST",
    )


class TestTokenizer(unittest.TestCase):
    """Verify text normalisation helpers."""

    def test_normalize_text(self) -> None:
        self.assertEqual(
            normalize_text("Apple iPhone-15 (128GB),  Black"),
            "apple iphone 15 128gb black",
        )

    def test_tokenize_drops_stop_words_and_single_chars(self) -> None:
        self.assertEqual(
            tokenize("The best iPhone 15 for a deal"),
            ["iphone", "15"],
        )

    def test_tokenize_empty(self) -> None:
        self.assertEqual(tokenize("  ---  "), [])


class TestRelevanceScorer(unittest.TestCase):
    """Verify brand, model and category rules."""

    def test_exact_model_accepted(self) -> None:
        """Brand followed by the model number scores positively."""
        score = RelevanceScorer.score(
            "iPhone 15", "Apple iPhone 15 (128GB) Black"
        )
        self.assertEqual(score, 14.0)

    def test_missing_brand_rejected(self) -> None:
        score = RelevanceScorer.score(
            "iphone 15", "Samsung Galaxy S24 Ultra 5G (Titanium Gray)"
        )
        self.assertEqual(score, REJECT)

    def test_wrong_model_number_rejected(self) -> None:
        """Rejects a different generation of the same brand."""
        score = RelevanceScorer.score(
            "iphone 15", "Apple iPhone 14 (128GB) Midnight"
        )
        self.assertEqual(score, REJECT)

    def test_brand_and_number_must_be_adjacent(self) -> None:
        score = RelevanceScorer.score(
            "samsung 5000", "Samsung Galaxy Phone 5000mAh Battery"
        )
        self.assertEqual(score, REJECT)

    def test_accessory_rejected_for_electronics_query(self) -> None:
        score = RelevanceScorer.score(
            "iphone 15", "Apple iPhone 15 Silicone Case with MagSafe"
        )
        self.assertEqual(score, REJECT)

    def test_case_for_matching_model_rejected(self) -> None:
        score = RelevanceScorer.score(
            "iPhone 15", "iPhone 15 Pro Max Silicone Case"
        )
        self.assertEqual(score, REJECT)

    def test_apparel_rejected_for_electronics_query(self) -> None:
        score = RelevanceScorer.score(
            "iphone 15", "iPhone 15 Graphic Printed Cotton Tshirt"
        )
        self.assertEqual(score, REJECT)

    def test_short_query_needs_every_token(self) -> None:
        score = RelevanceScorer.score(
            "running shoes", "Men Running Sneakers"
        )
        self.assertEqual(score, REJECT)

    def test_low_overlap_rejected(self) -> None:
        score = RelevanceScorer.score(
            "wireless mechanical keyboard rgb", "RGB Gaming Mouse Pad"
        )
        self.assertEqual(score, REJECT)

    def test_non_electronics_query_allows_apparel(self) -> None:
        """Apparel titles pass when the query is itself apparel."""
        score = RelevanceScorer.score(
            "cotton kurta", "Women Cotton Kurta with Palazzo"
        )
        self.assertGreater(score, 0)

    def test_empty_inputs_rejected(self) -> None:
        self.assertEqual(RelevanceScorer.score("", "Apple iPhone 15"), REJECT)
        self.assertEqual(RelevanceScorer.score("iphone 15", ""), REJECT)
        self.assertEqual(RelevanceScorer.score("the for", "Anything"), REJECT)

    def test_color_match_boosts_score(self) -> None:
        black = RelevanceScorer.score(
            "iphone 15 black", "Apple iPhone 15 (128GB) Black"
        )
        blue = RelevanceScorer.score(
            "iphone 15 black", "Apple iPhone 15 (128GB) Blue"
        )
        self.assertGreater(black, blue)
        self.assertGreater(blue, 0)


class TestRank(unittest.TestCase):
    """Verify ranking order and rejection."""

    def test_rank_sorts_best_first_and_drops_rejects(self) -> None:
        products = [
            _product("Apple iPhone 15 (128GB) Blue"),
            _product("Apple iPhone 15 Silicone Case", price=1900.0),
            _product("Apple iPhone 15 (128GB) Black"),
        ]
        ranked = RelevanceScorer.rank(products, "iphone 15 black")
        titles = [p.title for p, _ in ranked]
        self.assertEqual(
            titles,
            [
                "Apple iPhone 15 (128GB) Black",
                "Apple iPhone 15 (128GB) Blue",
            ],
        )
        self.assertTrue(all(score > 0 for _, score in ranked))

    def test_rank_stable_for_equal_scores(self) -> None:
        first = _product("Apple iPhone 15 (128GB) Black", price=79900.0)
        second = _product("Apple iPhone 15 (128GB) Black", price=69900.0)
        ranked = RelevanceScorer.rank([first, second], "iphone 15")
        self.assertEqual([p for p, _ in ranked], [first, second])

    def test_rank_empty(self) -> None:
        self.assertEqual(RelevanceScorer.rank([], "iphone 15"), [])


if __name__ == "__main__":
    unittest.main()
