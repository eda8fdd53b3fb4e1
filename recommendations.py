"""Farm-profile product recommendations for the chat widget."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from database import fetch_products

RECOMMENDATION_LIMIT = 4
CANDIDATE_LIMIT = 6
FALLBACK_LIMIT = 4
KEYWORD_SCORE = 10

CROP_PRODUCT_MAPPING: dict[str, dict[str, Any]] = {
    "rice": {
        "categories": ["Fertilizer", "Pesticides"],
        "keywords": ["npk", "urea", "dap", "nitrogen", "paddy", "rice"],
        "tips": [
            "Apply basal dose of NPK before transplanting",
            "Use Urea as top dressing in 2-3 splits",
            "Zinc deficiency is common - watch for yellowing",
            "Maintain 5cm water level during active tillering",
        ],
        "dosage": {
            "Fertilizer": {"base": "100-120 kg/acre", "product": "NPK/Urea"},
            "Pesticides": {"base": "500ml/acre", "product": "for spraying"},
        },
    },
    "wheat": {
        "categories": ["Fertilizer", "Seeds", "Pesticides"],
        "keywords": ["npk", "urea", "dap", "wheat", "potash"],
        "tips": [
            "Sow before November 15 for best yields",
            "First irrigation 21 days after sowing is crucial",
            "Apply 50% nitrogen at sowing, rest at first irrigation",
            "Watch for yellow rust in humid weather",
        ],
        "dosage": {
            "Fertilizer": {"base": "80-100 kg/acre", "product": "DAP at sowing"},
            "Seeds": {"base": "40-45 kg/acre", "product": "certified seeds"},
        },
    },
    "vegetables": {
        "categories": ["Fertilizer", "Seeds", "Pesticides", "Tools"],
        "keywords": ["organic", "npk", "micronutrient", "vegetable", "neem"],
        "tips": [
            "Use drip irrigation for 30-40% water savings",
            "Apply organic mulch to suppress weeds",
            "Rotate crops every season to prevent disease buildup",
            "Harvest in morning hours for better shelf life",
        ],
        "dosage": {
            "Fertilizer": {"base": "60-80 kg/acre", "product": "balanced NPK"},
            "Pesticides": {"base": "2-3 sprays/season", "product": "as needed"},
        },
    },
    "fruits": {
        "categories": ["Fertilizer", "Pesticides", "Tools"],
        "keywords": ["potash", "micronutrient", "organic", "calcium", "fruit"],
        "tips": [
            "Annual pruning increases yield by 20-30%",
            "Apply fertilizers in ring method away from trunk",
            "Fruit fly traps reduce infestation significantly",
            "Potash application improves fruit sweetness",
        ],
        "dosage": {
            "Fertilizer": {"base": "2-5 kg/tree", "product": "NPK mix"},
            "Pesticides": {"base": "500ml-1L/tree", "product": "spray solution"},
        },
    },
    "cotton": {
        "categories": ["Fertilizer", "Pesticides", "Seeds"],
        "keywords": ["npk", "urea", "cotton", "bt", "bollworm"],
        "tips": [
            "Maintain 90x60 cm spacing for good aeration",
            "Scout for bollworm weekly during flowering",
            "First picking when 60% bolls are fully open",
            "Potash improves fiber quality and strength",
        ],
        "dosage": {
            "Fertilizer": {"base": "80-100 kg/acre", "product": "NPK 20:20:0"},
            "Seeds": {"base": "1-1.5 kg/acre", "product": "BT cotton"},
        },
    },
    "sugarcane": {
        "categories": ["Fertilizer", "Pesticides", "Tools"],
        "keywords": ["npk", "urea", "potash", "sugarcane"],
        "tips": [
            "Use 3-budded setts for uniform germination",
            "Earthing up at 45 and 90 days is essential",
            "Trash mulching conserves 20-25% water",
            "Ratoon crop needs 25% more fertilizer",
        ],
        "dosage": {
            "Fertilizer": {"base": "150-200 kg/acre", "product": "NPK split doses"},
        },
    },
    "pulses": {
        "categories": ["Fertilizer", "Seeds", "Pesticides"],
        "keywords": ["dap", "rhizobium", "pulse", "phosphorus"],
        "tips": [
            "Rhizobium seed treatment increases yield 15-20%",
            "Avoid waterlogging - pulses are sensitive",
            "Light irrigation only at flowering stage",
            "Harvest when 80% pods turn brown",
        ],
        "dosage": {
            "Fertilizer": {"base": "30-40 kg/acre", "product": "DAP only"},
            "Seeds": {"base": "15-20 kg/acre", "product": "treated seeds"},
        },
    },
    "other": {
        "categories": ["Fertilizer", "Seeds", "Pesticides", "Tools"],
        "keywords": ["npk", "organic", "general"],
        "tips": [
            "Get soil tested for precise fertilizer recommendations",
            "Use certified seeds for better germination",
            "Integrated pest management reduces chemical use",
            "Maintain farm records for better planning",
        ],
        "dosage": {
            "Fertilizer": {"base": "50-100 kg/acre", "product": "as per soil test"},
        },
    },
}

SOIL_ADJUSTMENTS: dict[str, dict[str, list[str]]] = {
    "clay": {
        "extra_tips": ["Use slow-release fertilizers for better results", "Add gypsum to improve soil structure"],
        "avoid_products": ["Quick-release nitrogen"],
    },
    "sandy": {
        "extra_tips": [
            "Apply fertilizers in split doses to prevent leaching",
            "Add organic matter to improve retention",
        ],
        "avoid_products": [],
    },
    "loamy": {
        "extra_tips": ["Ideal soil type - standard recommendations apply", "Maintain organic matter with cover crops"],
        "avoid_products": [],
    },
    "black": {
        "extra_tips": ["Rich in potash - may reduce K fertilizer", "Deep plowing before monsoon is beneficial"],
        "avoid_products": [],
    },
    "red": {
        "extra_tips": ["Usually deficient in N and P - prioritize these", "Lime application may be needed if acidic"],
        "avoid_products": [],
    },
    "unknown": {
        "extra_tips": ["Get a soil test done for accurate recommendations", "Start with balanced NPK fertilizers"],
        "avoid_products": [],
    },
}

SEASON_ADJUSTMENTS: dict[str, list[str]] = {
    "kharif": ["Apply fertilizers before or after rain, not during", "Ensure drainage to prevent waterlogging"],
    "rabi": ["Frost protection may be needed in December-January", "Irrigate during dry spells"],
    "zaid": ["Mulching is essential to conserve moisture", "Early morning irrigation reduces evaporation"],
}

LAND_SIZE_MULTIPLIERS: dict[str, dict[str, Any]] = {
    "small": {"multiplier": 1, "label": "per acre"},
    "medium": {"multiplier": 3, "label": "for ~3 acres"},
    "large": {"multiplier": 12, "label": "for ~12 acres"},
    "commercial": {"multiplier": 25, "label": "for 25+ acres"},
}


def _candidate_products(categories: list[str]) -> list[dict[str, Any]]:
    products = fetch_products(
        categories=categories,
        active_only=True,
        in_stock=True,
        sort="discount",
        limit=CANDIDATE_LIMIT,
    )
    if not products:
        products = fetch_products(active_only=True, in_stock=True, sort="discount", limit=FALLBACK_LIMIT)
    if not products:
        products = fetch_products(sort="newest", limit=FALLBACK_LIMIT)
    return products


def relevance_score(product: Mapping[str, Any], keywords: list[str]) -> float:
    """Score a product: ten points per crop keyword plus a tenth of its discount."""

    name = str(product.get("name") or "").lower()
    description = str(product.get("description") or "").lower()
    score = 0.0
    for keyword in keywords:
        if keyword in name or keyword in description:
            score += KEYWORD_SCORE
    discount = float(product.get("discount") or 0)
    if discount > 0:
        score += discount / 10
    return score


def recommend_for_farm(
    crop: Optional[str],
    soil: Optional[str],
    season: Optional[str],
    land_size: Optional[str],
) -> dict[str, Any]:
    """Rank catalogue products for a farm profile and compose tips and dosage info."""

    crop_mapping = CROP_PRODUCT_MAPPING.get(crop or "", CROP_PRODUCT_MAPPING["other"])
    soil_adjustment = SOIL_ADJUSTMENTS.get(soil or "", SOIL_ADJUSTMENTS["unknown"])
    season_tips = SEASON_ADJUSTMENTS.get(season or "", [])
    size = LAND_SIZE_MULTIPLIERS.get(land_size or "", LAND_SIZE_MULTIPLIERS["small"])

    scored: list[dict[str, Any]] = []
    for product in _candidate_products(crop_mapping["categories"]):
        dosage = crop_mapping["dosage"].get(product["category"])
        recommended_quantity = f"{dosage['base']} {dosage['product']} ({size['label']})" if dosage else ""
        scored.append(
            {
                **product,
                "relevance_score": relevance_score(product, crop_mapping["keywords"]),
                "recommended_quantity": recommended_quantity,
            }
        )
    # sorted() is stable, so equal scores keep the query order.
    scored = sorted(scored, key=lambda item: item["relevance_score"], reverse=True)

    tips = crop_mapping["tips"][:2] + soil_adjustment["extra_tips"][:1] + season_tips[:1]

    return {
        "success": True,
        "recommendations": scored[:RECOMMENDATION_LIMIT],
        "tips": tips,
        "dosage_info": {
            "land_size": size["label"],
            "multiplier": size["multiplier"],
            "note": f"Quantities shown are {size['label']}. Adjust based on soil test results.",
        },
        "farm_profile": {
            "crop": crop,
            "soil": soil,
            "season": season,
            "land_size": land_size,
        },
    }
