"""Farm-profile recommendations."""

from __future__ import annotations

import database
from recommendations import CROP_PRODUCT_MAPPING, SEASON_ADJUSTMENTS, SOIL_ADJUSTMENTS, recommend_for_farm, relevance_score


class TestRelevanceScore:
    def test_keywords_and_discount(self):
        product = {"name": "Urea Fertilizer", "description": "46% nitrogen content", "discount": 10}
        assert relevance_score(product, ["urea", "nitrogen", "npk"]) == 21

    def test_keyword_counts_once_per_product(self):
        product = {"name": "NPK npk", "description": "npk blend", "discount": 0}
        assert relevance_score(product, ["npk"]) == 10


class TestRecommendForFarm:
    def test_rice_profile(self):
        result = recommend_for_farm("rice", "clay", "kharif", "medium")
        recommendations = result["recommendations"]

        assert result["success"] is True
        assert len(recommendations) == 4
        assert {item["category"] for item in recommendations} <= {"Fertilizer", "Pesticides"}
        scores = [item["relevance_score"] for item in recommendations]
        assert scores == sorted(scores, reverse=True)

        npk = next(item for item in recommendations if item["name"] == "Organic NPK Fertilizer 19-19-19")
        assert npk["relevance_score"] == 11.5
        assert npk["recommended_quantity"] == "100-120 kg/acre NPK/Urea (for ~3 acres)"

        assert result["tips"] == (
            CROP_PRODUCT_MAPPING["rice"]["tips"][:2]
            + SOIL_ADJUSTMENTS["clay"]["extra_tips"][:1]
            + SEASON_ADJUSTMENTS["kharif"][:1]
        )
        assert result["dosage_info"]["multiplier"] == 3
        assert result["dosage_info"]["land_size"] == "for ~3 acres"
        assert result["farm_profile"] == {"crop": "rice", "soil": "clay", "season": "kharif", "land_size": "medium"}

    def test_unknown_values_fall_back(self):
        result = recommend_for_farm("dragonfruit", None, None, None)
        assert result["tips"] == (
            CROP_PRODUCT_MAPPING["other"]["tips"][:2] + SOIL_ADJUSTMENTS["unknown"]["extra_tips"][:1]
        )
        assert result["dosage_info"]["multiplier"] == 1
        assert 0 < len(result["recommendations"]) <= 4

    def test_products_without_dosage_get_empty_quantity(self):
        result = recommend_for_farm("sugarcane", "loamy", "rabi", "small")
        for item in result["recommendations"]:
            if item["category"] != "Fertilizer":
                assert item["recommended_quantity"] == ""
            else:
                assert item["recommended_quantity"].endswith("(per acre)")


def _sell_out(categories=None):
    for product in database.fetch_products(categories=categories):
        database.update_product(int(product["id"]), stock=0)


class TestCandidateFallbacks:
    def test_other_categories_when_crop_categories_sold_out(self):
        _sell_out(["Fertilizer", "Pesticides"])

        recommendations = recommend_for_farm("rice", "clay", "kharif", "small")["recommendations"]
        assert len(recommendations) == 4
        assert {item["category"] for item in recommendations} <= {"Seeds", "Tools"}
        assert all(item["stock"] > 0 for item in recommendations)

    def test_anything_when_whole_catalogue_sold_out(self):
        _sell_out()

        recommendations = recommend_for_farm("rice", "clay", "kharif", "small")["recommendations"]
        assert len(recommendations) == 4
        assert all(item["stock"] == 0 for item in recommendations)

    def test_inactive_products_are_last_resort(self):
        for product in database.fetch_products():
            database.update_product(int(product["id"]), is_active=False)

        recommendations = recommend_for_farm("wheat", None, None, None)["recommendations"]
        assert len(recommendations) == 4
        assert not any(item["is_active"] for item in recommendations)
