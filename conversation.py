"""Guided multi-step conversation for the farm assistant widget.

The client keeps the conversation ``state`` and posts it back with every
option it picks; :func:`handle_option` returns the bot reply together with
the next state. Steps run ``initial`` -> ``crop_selection`` ->
``soil_selection`` -> ``season_selection`` -> ``land_size``, after which the
recommendations are shown and the conversation returns to ``initial``.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from database import fetch_products
from recommendations import recommend_for_farm

CATEGORY_LIST_LIMIT = 6

STEPS = (
    "initial",
    "crop_selection",
    "dosage_crop_selection",
    "soil_selection",
    "season_selection",
    "land_size",
    "recommendations",
)

WELCOME_TEXT = (
    "Hello! I'm your FarmTech AI Assistant.\n\nI can help you with:\n"
    "- Product recommendations for your crop\n- Fertilizer & pesticide dosage\n"
    "- Pest & disease solutions\n- Seasonal farming tips\n\nHow can I assist you today?"
)

WELCOME_OPTIONS = [
    {"id": "crop", "label": "Crop recommendation"},
    {"id": "problem", "label": "Pest/Disease help"},
    {"id": "season", "label": "Seasonal advice"},
    {"id": "browse", "label": "Browse products"},
]

CROP_TYPES = [
    {"id": "rice", "label": "Rice/Paddy"},
    {"id": "wheat", "label": "Wheat"},
    {"id": "vegetables", "label": "Vegetables"},
    {"id": "fruits", "label": "Fruits"},
    {"id": "cotton", "label": "Cotton"},
    {"id": "sugarcane", "label": "Sugarcane"},
    {"id": "pulses", "label": "Pulses/Lentils"},
    {"id": "other", "label": "Other crops"},
]

SOIL_TYPES = [
    {"id": "clay", "label": "Clay soil"},
    {"id": "sandy", "label": "Sandy soil"},
    {"id": "loamy", "label": "Loamy soil"},
    {"id": "black", "label": "Black soil"},
    {"id": "red", "label": "Red soil"},
    {"id": "unknown", "label": "Not sure"},
]

SEASONS = [
    {"id": "kharif", "label": "Kharif (Monsoon - Jun-Oct)"},
    {"id": "rabi", "label": "Rabi (Winter - Oct-Mar)"},
    {"id": "zaid", "label": "Zaid (Summer - Mar-Jun)"},
]

LAND_SIZES = [
    {"id": "small", "label": "Small (< 1 acre)"},
    {"id": "medium", "label": "Medium (1-5 acres)"},
    {"id": "large", "label": "Large (5-20 acres)"},
    {"id": "commercial", "label": "Commercial (> 20 acres)"},
]

BROWSE_OPTIONS = [
    {"id": "list_seeds", "label": "Seeds"},
    {"id": "list_fertilizers", "label": "Fertilizers"},
    {"id": "list_pesticides", "label": "Pesticides"},
    {"id": "list_tools", "label": "Tools"},
    {"id": "products", "label": "View All Products"},
]

FOLLOW_UP_OPTIONS = [
    {"id": "crop", "label": "Different crop"},
    {"id": "dosage", "label": "Dosage info"},
    {"id": "browse", "label": "Browse all products"},
    {"id": "restart", "label": "Start over"},
]

LIST_CATEGORIES = {
    "list_seeds": "Seeds",
    "list_fertilizers": "Fertilizer",
    "list_pesticides": "Pesticides",
    "list_tools": "Tools",
}

CROP_NAMES = {
    "rice": "Rice/Paddy",
    "wheat": "Wheat",
    "vegetables": "Vegetables",
    "fruits": "Fruits",
    "cotton": "Cotton",
    "sugarcane": "Sugarcane",
    "pulses": "Pulses",
    "other": "your crops",
}

SEASON_NAMES = {"kharif": "Kharif (Monsoon)", "rabi": "Rabi (Winter)", "zaid": "Zaid (Summer)"}

DOSAGE_INFO = {
    "rice": (
        "**Rice/Paddy Dosage (per acre):**\n\n- **Urea**: 40-50 kg (in 2-3 splits)\n- **DAP**: 50 kg (at transplanting)\n"
        "- **MOP**: 25-30 kg\n- **Zinc Sulphate**: 10 kg\n\n**Application Schedule:**\n- Basal: DAP + half MOP\n"
        "- 21 days: 1/3 Urea\n- 42 days: 1/3 Urea\n- Panicle stage: 1/3 Urea + half MOP"
    ),
    "wheat": (
        "**Wheat Dosage (per acre):**\n\n- **Urea**: 55 kg (in 2 splits)\n- **DAP**: 50 kg (at sowing)\n"
        "- **MOP**: 20 kg\n\n**Application Schedule:**\n- Basal: All DAP + MOP\n"
        "- 21 days (1st irrigation): Half Urea\n- 45 days: Half Urea"
    ),
    "vegetables": (
        "**Vegetable Dosage (per acre):**\n\n- **NPK 19:19:19**: 50 kg\n- **Urea**: 30-40 kg\n- **DAP**: 30 kg\n"
        "- **Organic manure**: 2-3 tonnes\n\n**Tip:** Use drip fertigation for best results!"
    ),
    "fruits": (
        "**Fruit Tree Dosage (per tree/year):**\n\n- **NPK**: 2-5 kg (based on tree age)\n"
        "- **Organic manure**: 20-40 kg\n- **Micronutrients**: As per deficiency\n\n"
        "Apply in 2 splits: Before flowering & after fruit set"
    ),
    "banana": (
        "**Banana Dosage (per plant):**\n\n- **Urea**: 200g (in 4 splits)\n- **MOP**: 300g (in 4 splits)\n"
        "- **DAP**: 100g\n\n**Application Schedule:**\n- Planting: DAP\n- 2, 4, 6, 8 months: Urea + MOP splits"
    ),
    "cotton": (
        "**Cotton Dosage (per acre):**\n\n- **Urea**: 55 kg (in 3 splits)\n- **DAP**: 50 kg\n- **MOP**: 30 kg\n\n"
        "Split Urea at sowing, 30 days, and 60 days"
    ),
    "sugarcane": (
        "**Sugarcane Dosage (per acre):**\n\n- **Urea**: 100-130 kg (in 3-4 splits)\n- **DAP**: 75 kg\n"
        "- **MOP**: 50 kg\n\nApply Urea after each irrigation"
    ),
    "pulses": (
        "**Pulses Dosage (per acre):**\n\n- **DAP**: 40 kg (at sowing)\n- **Urea**: 10 kg (if needed)\n\n"
        "**Tip:** Use Rhizobium seed treatment - reduces fertilizer need!"
    ),
    "maize": (
        "**Maize Dosage (per acre):**\n\n- **Urea**: 65 kg (in 2 splits)\n- **DAP**: 50 kg\n- **MOP**: 20 kg\n\n"
        "Apply at sowing and knee-high stage"
    ),
    "other": (
        "**General Dosage (per acre):**\n\n- **NPK 10:26:26**: 50 kg (basal)\n- **Urea**: 40-50 kg (top dressing)\n\n"
        "Get a soil test for precise recommendations!"
    ),
}

DOSAGE_OVERVIEW = (
    "**Dosage Guidelines (per acre):**\n\n- **Urea**: 100-130 kg\n- **DAP**: 50-75 kg\n- **NPK**: 100-150 kg\n"
    "- **MOP**: 30-50 kg\n\nNote: Adjust based on soil test results!\n\nWhich crop's dosage do you need?"
)

PROBLEM_PROMPT = (
    "I'll help you solve it!\n\nPlease tell me:\n1. Which crop is affected?\n2. What symptoms are you seeing?\n"
    "   - Yellowing leaves?\n   - Spots on leaves?\n   - Visible insects?\n   - Wilting plants?\n\n"
    "Describe your problem:"
)

BROWSE_TEXT = (
    "Explore our product categories:\n\n**Fertilizers** - Boost crop growth\n**Seeds** - Certified quality seeds\n"
    "**Pesticides** - Protect your crops\n**Tools** - Farming equipment\n\nWhat would you like to explore?"
)


# --------------------------------------------------------------------------------------
# State helpers
# --------------------------------------------------------------------------------------


def new_state() -> dict[str, Optional[str]]:
    return {
        "step": "initial",
        "crop": None,
        "soil": None,
        "season": None,
        "land_size": None,
        "location": None,
    }


def normalize_state(state: Optional[Mapping[str, Any]]) -> dict[str, Optional[str]]:
    """Coerce a client-supplied state into the known keys, defaulting the rest."""

    normalized = new_state()
    if not isinstance(state, Mapping):
        return normalized
    for key in ("crop", "soil", "season", "location"):
        value = state.get(key)
        normalized[key] = str(value) if value else None
    land_size = state.get("land_size", state.get("landSize"))
    normalized["land_size"] = str(land_size) if land_size else None
    step = state.get("step")
    normalized["step"] = step if step in STEPS else "initial"
    return normalized


def _label_for(options: list[dict[str, str]], option_id: str) -> Optional[str]:
    for option in options:
        if option["id"] == option_id:
            return option["label"]
    return None


def _reply(
    text: str,
    options: Optional[list[dict[str, str]]],
    state: Mapping[str, Optional[str]],
    *,
    products: Optional[list[dict[str, Any]]] = None,
    tips: Optional[list[str]] = None,
    redirect: Optional[str] = None,
) -> dict[str, Any]:
    reply: dict[str, Any] = {
        "text": text,
        "options": options or [],
        "products": products or [],
        "state": dict(state),
    }
    if tips is not None:
        reply["tips"] = tips
    if redirect is not None:
        reply["redirect"] = redirect
    return reply


def welcome() -> dict[str, Any]:
    """Opening message of a fresh conversation."""

    return _reply(WELCOME_TEXT, WELCOME_OPTIONS, new_state())


# --------------------------------------------------------------------------------------
# Step handlers
# --------------------------------------------------------------------------------------


def _list_category(option_id: str, state: dict[str, Optional[str]]) -> dict[str, Any]:
    category = LIST_CATEGORIES[option_id]
    products = fetch_products(category=category, sort="newest", limit=CATEGORY_LIST_LIMIT)
    if not products:
        return _reply(
            f"Sorry, no {category} available right now. Please check back later!",
            [
                {"id": "browse", "label": "Browse Other Products"},
                {"id": "restart", "label": "Start Over"},
            ],
            state,
        )
    return _reply(
        f"**{category} Products:**\n\nHere are our available {category.lower()}. "
        "Click on any product to view details!",
        [
            {"id": "crop", "label": "Get Recommendations"},
            {"id": "restart", "label": "Start Over"},
        ],
        state,
        products=products,
    )


def _handle_initial(option_id: str, state: dict[str, Optional[str]]) -> dict[str, Any]:
    state["step"] = "initial"
    if option_id == "crop":
        state["step"] = "crop_selection"
        return _reply("Great choice! Which crop do you need help with?\n\nSelect your crop:", CROP_TYPES, state)
    if option_id == "soil":
        state["step"] = "soil_selection"
        return _reply(
            "Knowing your soil helps me recommend the right products!\n\nWhat type of soil do you have?",
            SOIL_TYPES,
            state,
        )
    if option_id == "problem":
        return _reply(PROBLEM_PROMPT, None, state)
    if option_id == "season":
        state["step"] = "season_selection"
        return _reply("Smart planning! Which season are you preparing for?", SEASONS, state)
    if option_id == "browse":
        return _reply(BROWSE_TEXT, BROWSE_OPTIONS, state)
    if option_id == "products":
        return _reply("Taking you to all products...", None, state, redirect="/products")
    if option_id == "dosage":
        state["step"] = "dosage_crop_selection"
        return _reply(DOSAGE_OVERVIEW, CROP_TYPES, state)
    if option_id in LIST_CATEGORIES:
        return _list_category(option_id, state)
    return _reply("I'm not sure I understood that. Let me help you with some options:", WELCOME_OPTIONS, state)


def _handle_dosage_crop(option_id: str, state: dict[str, Optional[str]]) -> dict[str, Any]:
    state["step"] = "initial"
    return _reply(
        DOSAGE_INFO.get(option_id, DOSAGE_INFO["other"]),
        [
            {"id": "browse", "label": "Buy Fertilizers"},
            {"id": "crop", "label": "Crop Recommendation"},
            {"id": "restart", "label": "Start Over"},
        ],
        state,
    )


def _recommendation_text(state: Mapping[str, Optional[str]], product_count: int) -> str:
    crop = state.get("crop") or ""
    season = state.get("season") or ""
    if product_count > 0:
        product_section = "Based on your needs, I recommend the following products:"
    else:
        product_section = "No specific products found in stock for your requirements, but here are some general tips:"
    return (
        "**Perfect! Here are my recommendations for you:**\n\n"
        "**Your Farm Profile:**\n"
        f"- Crop: {CROP_NAMES.get(crop, crop or 'Not specified')}\n"
        f"- Season: {SEASON_NAMES.get(season, season or 'Not specified')}\n"
        f"- Land Size: {state.get('land_size')}\n\n"
        f"{product_section}"
    )


def _handle_land_size(option_id: str, state: dict[str, Optional[str]]) -> dict[str, Any]:
    state["land_size"] = option_id
    result = recommend_for_farm(state["crop"], state["soil"], state["season"], option_id)
    products = result["recommendations"]
    text = _recommendation_text(state, len(products))
    state["step"] = "initial"
    return _reply(
        f"{text}\n\nWould you like me to help with anything else?",
        FOLLOW_UP_OPTIONS,
        state,
        products=products,
        tips=result["tips"],
    )


def handle_option(
    state: Optional[Mapping[str, Any]],
    option_id: str,
    label: Optional[str] = None,
) -> dict[str, Any]:
    """Advance the guided conversation by one option click."""

    current = normalize_state(state)
    option_id = (option_id or "").strip()

    if option_id == "restart":
        return welcome()

    step = current["step"]

    if step == "crop_selection":
        crop_label = _label_for(CROP_TYPES, option_id)
        if crop_label is None:
            return _reply("Please pick one of these crops:", CROP_TYPES, current)
        current["crop"] = option_id
        current["step"] = "soil_selection"
        return _reply(
            f"Excellent! {label or crop_label} is a great choice!\n\n"
            "Now, what type of soil do you have? This helps me recommend the right fertilizers.",
            SOIL_TYPES,
            current,
        )

    if step == "dosage_crop_selection":
        return _handle_dosage_crop(option_id, current)

    if step == "soil_selection":
        soil_label = _label_for(SOIL_TYPES, option_id)
        if soil_label is None:
            return _reply("Please pick your soil type:", SOIL_TYPES, current)
        current["soil"] = option_id
        current["step"] = "season_selection"
        return _reply(
            f"Got it! {label or soil_label} noted.\n\nWhich growing season are you preparing for?",
            SEASONS,
            current,
        )

    if step == "season_selection":
        season_label = _label_for(SEASONS, option_id)
        if season_label is None:
            return _reply("Please pick a season:", SEASONS, current)
        current["season"] = option_id
        current["step"] = "land_size"
        return _reply(
            f"{label or season_label} - perfect timing!\n\n"
            "Lastly, what's the size of your farmland? This helps me suggest the right quantities.",
            LAND_SIZES,
            current,
        )

    if step == "land_size":
        if _label_for(LAND_SIZES, option_id) is None:
            return _reply("Please pick the size of your farmland:", LAND_SIZES, current)
        return _handle_land_size(option_id, current)

    # "initial" and a stale "recommendations" step both take the top-level menu.
    return _handle_initial(option_id, current)
