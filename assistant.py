"""Free-text farm assistant: intent extraction and rule-based chat replies.

Messages are matched against ordered regular-expression tables to find an
intent, a crop and a product category. The reply is then chosen by a fixed
decision ladder (follow-up on a diagnosed problem, AI answer when OpenAI is
configured, category listing, problem diagnosis, crop advice, search results)
that ends in a canned answer for the intent.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Mapping, Optional, Sequence

from openai import OpenAI

import config
from database import fetch_products

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500
SEARCH_LIMIT = 10
FOLLOW_UP_LIMIT = 6
CATEGORY_LIMIT = 8
PROBLEM_PRODUCT_LIMIT = 4
CROP_PRODUCT_LIMIT = 3
SEARCH_RESULT_LIMIT = 5
AI_PRODUCT_LIMIT = 3

# --------------------------------------------------------------------------------------
# Pattern tables (order matters: the first match wins)
# --------------------------------------------------------------------------------------

INTENT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("greeting", re.compile(r"^(hi|hello|namaste|namaskar|hey|good morning|good evening)", re.I)),
    (
        "productRequest",
        re.compile(r"(give|show|recommend|get)\s*(me\s*)?(some\s*)?(product|fertilizer|pesticide|solution|item)", re.I),
    ),
    (
        "productSearch",
        re.compile(r"(show|find|search|looking for|need|want|buy|kharidna|chahiye|list|all|available|display|dikha)", re.I),
    ),
    ("recommendation", re.compile(r"(recommend|suggest|best|which|konsa|kaun sa|suitable)", re.I)),
    ("dosage", re.compile(r"(dosage|dose|how much|kitna|quantity|matra|rate)", re.I)),
    (
        "problem",
        re.compile(
            r"(problem|issue|disease|pest|kida|rog|yellowing|yellow|wilting|wilt|dying|spots|brown|dry|"
            r"curling|curl|insects|bugs|fungus|infection|infected|attack)",
            re.I,
        ),
    ),
    ("price", re.compile(r"(price|cost|rate|kitne ka|kya price|kimat)", re.I)),
    ("organic", re.compile(r"(organic|jaivik|natural|bio|eco)", re.I)),
    ("season", re.compile(r"(season|kharif|rabi|zaid|monsoon|winter|summer)", re.I)),
)

CROP_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("rice", re.compile(r"(rice|paddy|chawal|dhan)", re.I)),
    ("wheat", re.compile(r"(wheat|gehun|gehu)", re.I)),
    ("cotton", re.compile(r"(cotton|kapas|rui)", re.I)),
    ("sugarcane", re.compile(r"(sugarcane|ganna|eekh)", re.I)),
    ("banana", re.compile(r"(banana|kela|plantain)", re.I)),
    ("vegetables", re.compile(r"(vegetable|sabzi|sabji|tomato|potato|onion|tamatar|aloo|pyaz)", re.I)),
    ("fruits", re.compile(r"(fruit|phal|mango|aam|guava|amrud|apple|orange|papaya)", re.I)),
    ("pulses", re.compile(r"(pulse|dal|chana|moong|urad|masoor|arhar)", re.I)),
    ("maize", re.compile(r"(maize|corn|makka|makki)", re.I)),
    ("soybean", re.compile(r"(soybean|soya)", re.I)),
)

CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Fertilizer", re.compile(r"(fertilizer|khad|urea|dap|npk|potash)", re.I)),
    ("Pesticides", re.compile(r"(pesticide|insecticide|fungicide|dawai|spray|keetnashak)", re.I)),
    ("Seeds", re.compile(r"(seed|beej|bij)", re.I)),
    ("Tools", re.compile(r"(tool|equipment|sprayer|pump)", re.I)),
)

DEVANAGARI_PATTERN = re.compile("[\u0900-\u097F]")
HINGLISH_PATTERN = re.compile(r"(chahiye|kharidna|kitna|konsa|kaun)", re.I)

PROBLEM_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("yellowing", re.compile(r"(yellow|yellowing|pila|peela)", re.I)),
    ("wilting", re.compile(r"(wilt|wilting|murjha|drooping)", re.I)),
    ("spots", re.compile(r"(spot|spots|daag|brown spot|black spot)", re.I)),
    ("insects", re.compile(r"(insect|bug|kida|caterpillar|aphid|whitefly)", re.I)),
    ("fungus", re.compile(r"(fungus|fungal|mold|mildew|rot|safed)", re.I)),
)

CATEGORY_DISPLAY_NAMES = {
    "Seeds": "Seeds",
    "Fertilizer": "Fertilizers",
    "Pesticides": "Pesticides",
    "Tools": "Tools",
}

# --------------------------------------------------------------------------------------
# Canned replies
# --------------------------------------------------------------------------------------

FALLBACK_RESPONSES: dict[str, dict[str, Any]] = {
    "greeting": {
        "text": (
            "Welcome to FarmTech!\n\nI'm your Farm Assistant. I can help with:\n"
            "- Product recommendations\n- Fertilizer guidance\n- Dosage information\n- Seasonal tips\n\n"
            "How can I help you today?"
        ),
        "options": [
            {"id": "crop", "label": "Crop recommendation"},
            {"id": "browse", "label": "Browse products"},
        ],
    },
    "dosage": {
        "text": (
            "**Dosage (per acre):**\n\n- Urea: 100-130 kg\n- DAP: 50-75 kg\n- NPK: 100-150 kg\n"
            "- MOP: 30-50 kg\n\nFollow product label!"
        ),
        "options": [{"id": "crop", "label": "Crop-specific"}],
    },
    "fertilizer": {
        "text": (
            "**Fertilizers:**\n\n- N (Urea): Leaf growth\n- P (DAP): Root development\n"
            "- K (MOP): Fruit quality\n- NPK: Balanced nutrition"
        ),
        "options": [
            {"id": "crop", "label": "Recommend for crop"},
            {"id": "browse", "label": "Browse"},
        ],
    },
    "pesticide": {
        "text": "**Pest Control:**\n\nSafety first - wear protective gear!\n\nTell me which pest/disease you're facing.",
        "options": [{"id": "crop", "label": "Crop advice"}],
    },
    "problem": {
        "text": (
            "**Let me help diagnose your plant problem!**\n\nPlease tell me:\n- Which crop is affected?\n"
            "- What symptoms do you see?\n\nI'll recommend the right solution."
        ),
        "options": [
            {"id": "crop", "label": "Select crop"},
            {"id": "browse", "label": "Browse pesticides"},
        ],
    },
    "season": {
        "text": (
            "**Seasons:**\n\nKharif (Jun-Oct): Rice, Cotton\nRabi (Oct-Mar): Wheat, Potato\n"
            "Zaid (Mar-Jun): Vegetables"
        ),
        "options": [{"id": "crop", "label": "Plan for crop"}],
    },
    "general": {
        "text": "I can help with your farming needs!\n\nAsk me about products, dosages, or pest solutions.",
        "options": [
            {"id": "crop", "label": "Recommendation"},
            {"id": "browse", "label": "Products"},
        ],
    },
}

CROP_RESPONSES: dict[str, dict[str, Any]] = {
    "rice": {"text": "**Rice:** DAP 50kg, Urea 40kg (splits), Zinc 10kg per acre", "keywords": ["npk", "urea", "dap", "rice"]},
    "wheat": {
        "text": "**Wheat:** DAP 50kg, Urea 55kg per acre. First irrigation at 21 days!",
        "keywords": ["npk", "urea", "wheat"],
    },
    "vegetables": {
        "text": "**Vegetables:** NPK 19:19:19 50kg/acre. Use drip irrigation!",
        "keywords": ["npk", "organic", "vegetable"],
    },
    "cotton": {"text": "**Cotton:** DAP 50kg, Urea 55kg, MOP 30kg/acre", "keywords": ["npk", "urea", "cotton"]},
    "sugarcane": {
        "text": "**Sugarcane:** DAP 75kg, Urea 100kg, MOP 50kg/acre",
        "keywords": ["npk", "urea", "sugarcane"],
    },
    "pulses": {
        "text": "**Pulses:** DAP 40kg/acre. Use Rhizobium seed treatment!",
        "keywords": ["dap", "pulse", "rhizobium"],
    },
    "fruits": {"text": "**Fruits:** NPK 2-5kg/tree + organic manure", "keywords": ["npk", "organic", "fruit"]},
    "banana": {
        "text": (
            "**Banana:** Urea 200g + MOP 300g per plant. Apply in 4 splits. "
            "Use micronutrients for healthy leaves!"
        ),
        "keywords": ["urea", "npk", "potash", "micronutrient"],
    },
    "maize": {"text": "**Maize:** DAP 50kg, Urea 65kg/acre", "keywords": ["npk", "urea", "maize"]},
}

PROBLEM_SOLUTIONS: dict[str, dict[str, Any]] = {
    "yellowing": {
        "text": (
            "**Yellow Leaves on {crop}**\n\n**Common Causes:**\n- Nitrogen deficiency\n- Overwatering\n"
            "- Iron/Zinc deficiency\n- Root problems\n\n**Solutions:**\n- Apply Urea (2-3 kg/acre foliar spray)\n"
            "- Check drainage\n- Use Micronutrient spray\n\n**Recommended Products:**"
        ),
        "keywords": ["urea", "npk", "zinc", "nitrogen"],
        "category": "Fertilizer",
    },
    "wilting": {
        "text": (
            "**Wilting in {crop}**\n\n**Common Causes:**\n- Water stress\n- Root rot/Fungal infection\n"
            "- Bacterial wilt\n\n**Solutions:**\n- Check soil moisture\n- Apply fungicide if rot suspected\n"
            "- Improve drainage\n\n**Recommended Products:**"
        ),
        "keywords": ["fungicide", "trichoderma", "copper"],
        "category": "Pesticides",
    },
    "spots": {
        "text": (
            "**Leaf Spots on {crop}**\n\n**Common Causes:**\n- Fungal infection\n- Bacterial infection\n"
            "- Nutrient deficiency\n\n**Solutions:**\n- Apply fungicide spray\n- Remove affected leaves\n"
            "- Improve air circulation\n\n**Recommended Products:**"
        ),
        "keywords": ["fungicide", "mancozeb", "carbendazim"],
        "category": "Pesticides",
    },
    "insects": {
        "text": (
            "**Insect Attack on {crop}**\n\n**Solutions:**\n- Identify the pest first\n"
            "- Use appropriate insecticide\n- Consider neem-based organic options\n"
            "- Spray in early morning/evening\n\n**Recommended Products:**"
        ),
        "keywords": ["insecticide", "neem", "spray"],
        "category": "Pesticides",
    },
    "fungus": {
        "text": (
            "**Fungal Infection on {crop}**\n\n**Solutions:**\n- Apply systemic fungicide\n"
            "- Remove infected parts\n- Avoid overhead watering\n- Improve ventilation\n\n**Recommended Products:**"
        ),
        "keywords": ["fungicide", "copper", "mancozeb"],
        "category": "Pesticides",
    },
    "general": {
        "text": (
            "**Plant Problem on {crop}**\n\nPlease describe:\n- What symptoms do you see?\n"
            "- When did it start?\n- How much area is affected?\n\nThis will help me recommend the right solution!"
        ),
        "keywords": [],
        "category": None,
    },
}

SYSTEM_PROMPT = (
    "You are the FarmTech Assistant, the helper for FarmTech, an agriculture store selling fertilizers, "
    "seeds, pesticides and farming tools.\n"
    "Be friendly, concise and practical; farmers are busy. Answer in clear, simple English.\n"
    "You can recommend products from the FarmTech catalogue listed below, give dosage guidance per acre, "
    "share Kharif/Rabi/Zaid seasonal advice, and help with pest, disease and nutrient problems.\n"
    "Rules: only recommend products that appear in the catalogue, mention them by their exact name, "
    "never suggest banned pesticides, add safety precautions for chemicals, prefer organic options when "
    "available, and politely redirect non-farming questions. Keep answers under 150 words and use bullet "
    "points. If details are missing, ask about crop, land size, soil, season or the exact symptom."
)

_openai_client: Optional[OpenAI] = None


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------


def _first_match(table: Sequence[tuple[str, re.Pattern[str]]], text: str) -> Optional[str]:
    for name, pattern in table:
        if pattern.search(text):
            return name
    return None


def extract_intent(message: str) -> dict[str, Any]:
    """Classify a chat message into ``{intent, crop, category, is_hindi}``."""

    text = message or ""
    return {
        "intent": _first_match(INTENT_PATTERNS, text) or "general",
        "crop": _first_match(CROP_PATTERNS, text),
        "category": _first_match(CATEGORY_PATTERNS, text),
        "is_hindi": bool(DEVANAGARI_PATTERN.search(text) or HINGLISH_PATTERN.search(text)),
    }


def classify_problem(message: str) -> str:
    return _first_match(PROBLEM_PATTERNS, message or "") or "general"


def crop_display_name(crop: Optional[str]) -> str:
    return crop.capitalize() if crop else "your crop"


def rounded_price(product: Mapping[str, Any]) -> int:
    # Half-up rounding so 849.5 reads as 850.
    return int(math.floor(float(product["final_price"]) + 0.5))


def _discount_label(product: Mapping[str, Any]) -> str:
    discount = float(product.get("discount") or 0)
    return f" ({discount:g}% off)" if discount > 0 else ""


def _reply(
    response: str,
    options: list[dict[str, str]],
    products: Sequence[Mapping[str, Any]] = (),
    *,
    source: str = "fallback",
    context: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": True,
        "response": response,
        "options": options,
        "products": list(products),
        "source": source,
    }
    if context is not None:
        payload["context"] = dict(context)
    return payload


# --------------------------------------------------------------------------------------
# OpenAI answer
# --------------------------------------------------------------------------------------


def _get_openai_client() -> Optional[OpenAI]:
    global _openai_client
    if not config.OPENAI_API_KEY:
        return None
    if _openai_client is None:
        _openai_client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _openai_client


def _catalogue_lines(products: Sequence[Mapping[str, Any]]) -> str:
    lines = []
    for product in products:
        stock_label = "Available" if int(product.get("stock") or 0) > 0 else "Out of stock"
        lines.append(
            f"- {product['name']} ({product['category']}) - Rs.{float(product['final_price']):g}"
            f"{_discount_label(product)} - Stock: {stock_label}"
        )
    return "\n".join(lines)


def _farm_context_lines(context: Mapping[str, Any]) -> str:
    if not (context.get("crop") or context.get("soil") or context.get("season")):
        return ""
    land_size = context.get("land_size") or context.get("landSize")
    return (
        "Farmer's context:\n"
        f"- Crop: {context.get('crop') or 'Not specified'}\n"
        f"- Soil: {context.get('soil') or 'Not specified'}\n"
        f"- Season: {context.get('season') or 'Not specified'}\n"
        f"- Land size: {land_size or 'Not specified'}"
    )


def generate_ai_response(
    message: str,
    products: Sequence[Mapping[str, Any]],
    context: Mapping[str, Any],
) -> Optional[dict[str, Any]]:
    """Ask the OpenAI model for an answer grounded in the catalogue slice.

    Returns ``{"response", "products"}`` or None when the model is unavailable
    or returns nothing usable.
    """

    client = _get_openai_client()
    if client is None:
        return None

    sections = [SYSTEM_PROMPT]
    if products:
        sections.append("Available products in the FarmTech catalogue:\n" + _catalogue_lines(products))
    farm_context = _farm_context_lines(context)
    if farm_context:
        sections.append(farm_context)

    message_payload = [
        {"role": "system", "content": [{"type": "input_text", "text": "\n\n".join(sections)}]},
        {"role": "user", "content": [{"type": "input_text", "text": message}]},
    ]

    try:
        response = client.responses.create(
            model=config.OPENAI_MODEL,
            input=message_payload,
            temperature=0.7,
            max_output_tokens=500,
        )
    except Exception:
        logger.exception("OpenAI request failed for the farm assistant.")
        return None

    answer = (getattr(response, "output_text", "") or "").strip()
    if not answer:
        return None

    lowered = answer.lower()
    mentioned = [product for product in products if str(product["name"]).lower() in lowered]
    return {"response": answer, "products": mentioned[:AI_PRODUCT_LIMIT]}


# --------------------------------------------------------------------------------------
# Reply ladder
# --------------------------------------------------------------------------------------


def _follow_up_reply(extracted: Mapping[str, Any], context: Mapping[str, Any]) -> Optional[dict[str, Any]]:
    category = extracted.get("category") or context.get("lastProblemCategory")
    products = fetch_products(category=category, sort="oldest", limit=FOLLOW_UP_LIMIT) if category else []
    if not products:
        products = fetch_products(sort="oldest", limit=FOLLOW_UP_LIMIT)
    if not products:
        return None

    crop_name = crop_display_name(context.get("lastCrop"))
    return _reply(
        f"**Products for {context['lastProblem']} issue on {crop_name}:**\n\n"
        "These products can help solve your problem. Click on any product to view details!",
        [
            {"id": "crop", "label": "Get more advice"},
            {"id": "restart", "label": "Start over"},
        ],
        products,
        context=context,
    )


def _category_reply(category: str) -> dict[str, Any]:
    products = fetch_products(category=category, active_only=True, in_stock=True, sort="discount", limit=CATEGORY_LIMIT)
    if not products:
        products = fetch_products(category=category, sort="discount", limit=CATEGORY_LIMIT)

    if not products:
        return _reply(
            f"Sorry, no {category} available right now. Please check back later or browse other categories!",
            [{"id": "browse", "label": "Browse Other Products"}],
        )

    listing = "\n".join(
        f"{index}. **{product['name']}** - Rs.{rounded_price(product)}{_discount_label(product)}"
        for index, product in enumerate(products, start=1)
    )
    return _reply(
        f"Here are our available **{CATEGORY_DISPLAY_NAMES.get(category, category)}**:\n\n{listing}\n\n"
        "Click on any product to view details!",
        [
            {"id": "crop", "label": "Get Recommendations"},
            {"id": "restart", "label": "Start Over"},
        ],
        products,
    )


def _problem_products(solution: Mapping[str, Any]) -> list[dict[str, Any]]:
    category = solution["category"]
    products: list[dict[str, Any]] = []
    if solution["keywords"]:
        products = fetch_products(
            keywords=solution["keywords"],
            categories=[category] if category else None,
            sort="oldest",
            limit=PROBLEM_PRODUCT_LIMIT,
        )
    if not products and category:
        products = fetch_products(category=category, sort="oldest", limit=PROBLEM_PRODUCT_LIMIT)
    if not products:
        products = fetch_products(sort="oldest", limit=PROBLEM_PRODUCT_LIMIT)
    return products


def _problem_reply(message: str, extracted: Mapping[str, Any]) -> dict[str, Any]:
    problem_type = classify_problem(message)
    solution = PROBLEM_SOLUTIONS[problem_type]
    return _reply(
        solution["text"].format(crop=crop_display_name(extracted.get("crop"))),
        [
            {"id": "browse", "label": "Browse Products"},
            {"id": "crop", "label": "Other advice"},
        ],
        _problem_products(solution),
        context={
            "lastProblem": problem_type,
            "lastProblemCategory": solution["category"],
            "lastCrop": extracted.get("crop"),
        },
    )


def _crop_reply(crop: str, searched: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    crop_info = CROP_RESPONSES[crop]
    relevant = [
        product
        for product in searched
        if any(keyword in str(product["name"]).lower() for keyword in crop_info["keywords"])
    ]
    return _reply(
        crop_info["text"],
        [
            {"id": "crop", "label": "Other crops"},
            {"id": "restart", "label": "Start over"},
        ],
        relevant[:CROP_PRODUCT_LIMIT],
    )


def _search_reply(searched: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    top = list(searched[:SEARCH_RESULT_LIMIT])
    listing = "\n".join(
        f"{index}. **{product['name']}** ({product['category']}) - Rs.{rounded_price(product)}"
        for index, product in enumerate(top, start=1)
    )
    return _reply(
        f"Here are some products matching your search:\n\n{listing}",
        [
            {"id": "crop", "label": "Get recommendations"},
            {"id": "restart", "label": "Start over"},
        ],
        top,
    )


def respond_to_message(message: str, context: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    """Answer a free-text chat message.

    Raises ``ValueError`` for an empty message. Messages longer than
    ``MAX_MESSAGE_LENGTH`` are truncated before matching.
    """

    if not isinstance(message, str) or not message.strip():
        raise ValueError("Message required")

    text = message[:MAX_MESSAGE_LENGTH]
    context = dict(context or {})
    extracted = extract_intent(text)

    if (extracted["intent"] == "productRequest" or extracted["category"]) and context.get("lastProblem"):
        follow_up = _follow_up_reply(extracted, context)
        if follow_up:
            return follow_up

    searched = fetch_products(
        search=extracted["crop"] or text,
        category=extracted["category"],
        active_only=True,
        in_stock=True,
        sort="discount",
        limit=SEARCH_LIMIT,
    )

    ai_answer = generate_ai_response(text, searched, {**context, **extracted})
    if ai_answer:
        return _reply(ai_answer["response"], [], ai_answer["products"], source="ai")

    if extracted["category"]:
        return _category_reply(extracted["category"])

    if extracted["intent"] == "problem":
        return _problem_reply(text, extracted)

    crop = extracted["crop"]
    if crop and crop in CROP_RESPONSES:
        return _crop_reply(crop, searched)

    if extracted["intent"] == "productSearch" and searched:
        return _search_reply(searched)

    fallback = FALLBACK_RESPONSES.get(extracted["intent"], FALLBACK_RESPONSES["general"])
    return _reply(fallback["text"], fallback["options"])
