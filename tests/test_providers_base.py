"""
Tests for providers/base.py.

Covers:
  - translate_label(): substring match, first table key wins, case-insensitive
  - VisionFacts: product_info segment order, omission of empty segments, to_dict
  - ClassificationResult helpers / unknown_result()
"""
from __future__ import annotations

from providers.base import (
    FASHION_LABELS, ClassificationResult, VisionFacts, build_user_prompt,
    translate_label, unknown_result,
)


class TestTranslateLabel:
    def test_exact_key(self):
        assert translate_label("sneakers") == "スニーカー"

    def test_case_insensitive(self):
        assert translate_label("Running SHOES") == "靴"

    def test_substring_match(self):
        assert translate_label("denim jeans, blue") == "ジーンズ"

    def test_first_table_key_wins(self):
        # "shirt" precedes "dress" in the table
        assert translate_label("dress shirt") == "シャツ"
        # "t-shirt" precedes "shirt"
        assert translate_label("t-shirt") == "Tシャツ"
        # "bag" precedes "tote"
        assert translate_label("tote bag") == "バッグ"

    def test_no_match(self):
        assert translate_label("lampshade") is None

    def test_table_order_is_stable(self):
        keys = list(FASHION_LABELS)
        assert keys[:3] == ["tshirt", "t-shirt", "shirt"]
        assert keys.index("shirt") < keys.index("dress")


class TestVisionFacts:
    def test_segments_in_fixed_order(self):
        facts = VisionFacts(
            product_name="Air Max 90",
            brand="Nike",
            objects=[("Shoe", 93), ("Sneakers", 71)],
            text_lines=["NIKE", "AIR"],
            web_entities=["Nike Air Max", "Sneakers"],
        )
        assert facts.to_product_info() == (
            "Product: Air Max 90 | Brand: Nike | Objects: Shoe (93%), Sneakers (71%)"
            " | Text: NIKE AIR | Related: Nike Air Max, Sneakers"
        )

    def test_empty_segments_omitted(self):
        facts = VisionFacts(brand="Gucci", web_entities=["Handbag"])
        assert facts.to_product_info() == "Brand: Gucci | Related: Handbag"

    def test_no_facts_gives_none(self):
        assert VisionFacts().to_product_info() is None

    def test_to_dict(self):
        d = VisionFacts(objects=[("Bag", 88)]).to_dict()
        assert d["objects"] == [{"name": "Bag", "percent": 88}]
        assert d["product_name"] is None


class TestResults:
    def test_unknown_result(self):
        r = unknown_result()
        assert r.label == "unknown"
        assert r.score == 0.0
        assert r.is_unknown
        assert r.product_info is None
        assert r.marketplace_results is None

    def test_detected_text_comes_from_facts(self):
        r = ClassificationResult("靴", 0.9, vision_facts=VisionFacts(detected_text="NIKE AIR"))
        assert r.detected_text == "NIKE AIR"
        assert ClassificationResult("靴", 0.9).detected_text is None

    def test_user_prompt_mentions_region(self):
        assert "shoes" in build_user_prompt("shoes")
