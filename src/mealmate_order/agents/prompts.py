"""
Prompts and text builders for cart building and the ordering chat.
"""

import re
from collections import OrderedDict
from typing import Dict, List, Optional

from ..models.api import DeliveryAddress
from ..models.grocery_list import GroceryCategory, GroceryItem
from ..models.state import PriceEstimate
from .tools import ADD_TOOL, CLEAR_CART_TOOL, COMPLETE_TOOL, GET_CART_TOOL, REMOVE_TOOL, SEARCH_TOOL

CATEGORY_EMOJIS: Dict[GroceryCategory, str] = {
    GroceryCategory.VEGETABLES: "🥬",
    GroceryCategory.FRUITS: "🍎",
    GroceryCategory.DAIRY: "🥛",
    GroceryCategory.PROTEIN: "🍗",
    GroceryCategory.GRAINS: "🌾",
    GroceryCategory.SPICES: "🌶️",
    GroceryCategory.PANTRY: "📦",
    GroceryCategory.OTHER: "🛒",
}

# Rough per-item price in rupees, used for the pre-order estimate only
PRICE_ESTIMATES: Dict[GroceryCategory, int] = {
    GroceryCategory.VEGETABLES: 40,
    GroceryCategory.FRUITS: 60,
    GroceryCategory.DAIRY: 50,
    GroceryCategory.PROTEIN: 150,
    GroceryCategory.GRAINS: 80,
    GroceryCategory.SPICES: 30,
    GroceryCategory.PANTRY: 100,
    GroceryCategory.OTHER: 50,
}
DEFAULT_PRICE_ESTIMATE = 50

LARGE_LIST_THRESHOLD = 10

SYSTEM_PROMPT = f"""You are the grocery shopping assistant of the MealMate meal-planning app.
You build the user's Swiggy Instamart cart from their meal-plan grocery list.

Tools:
1. {SEARCH_TOOL} - search the catalog by product name
2. {ADD_TOOL} - add a product to the cart by its id
3. {GET_CART_TOOL} - view the cart with totals
4. {REMOVE_TOOL} - remove a product from the cart
5. {CLEAR_CART_TOOL} - empty the cart
6. {COMPLETE_TOOL} - report that the cart is finished

RULES:
1. Search for every item before adding it. Never guess product ids.
2. If the exact item is missing, search once more for a close alternative.
3. Match the requested quantity and unit as closely as possible; prefer the closest larger pack.
4. Never add a product containing an ingredient the user is allergic to. Read the descriptions.
5. Prefer products that are in stock and good value (price against mrp).
6. If an item is still not found after 2 searches, note it and move on.
7. Add items one at a time.

When every item has been handled, call {COMPLETE_TOOL} with a short summary of what was
added, the estimated total, and the names of any items you could not find in
items_not_found. You MUST call {COMPLETE_TOOL}; the cart is not considered ready otherwise."""


def group_by_category(items: List[GroceryItem]) -> "OrderedDict[GroceryCategory, List[GroceryItem]]":
    """Group items by category, categories in first-seen order."""
    grouped: "OrderedDict[GroceryCategory, List[GroceryItem]]" = OrderedDict()
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped


def category_title(category: GroceryCategory) -> str:
    return category.value.capitalize()


def estimate_total(items: List[GroceryItem]) -> PriceEstimate:
    """Price band from the per-category table: 80% to 120% of the sum."""
    base_total = sum(PRICE_ESTIMATES.get(item.category, DEFAULT_PRICE_ESTIMATE) for item in items)
    return PriceEstimate(min=round(base_total * 0.8), max=round(base_total * 1.2))


def allergen_alert(allergens: List[str]) -> str:
    if not allergens:
        return ""
    return (
        f"⚠️ ALLERGEN ALERT: The user is allergic to: {', '.join(allergens)}.\n"
        "DO NOT add any products containing these ingredients. Check product descriptions carefully."
    )


def build_order_instruction(items: List[GroceryItem], allergens: List[str], family_size: int) -> str:
    """First user message of an agent cart build."""
    lines = [f"Please order the following groceries from Swiggy Instamart for a family of {family_size}:", ""]
    for category, category_items in group_by_category(items).items():
        lines.append(f"{category_title(category)}:")
        for item in category_items:
            lines.append(f"- {item.describe()}")
        lines.append("")

    alert = allergen_alert(allergens)
    if alert:
        lines.extend([alert, ""])

    lines.extend([
        "Please:",
        "1. Search for each item on Instamart",
        "2. Add appropriate quantities to the cart",
        "3. Skip items containing allergens",
        f"4. Call {COMPLETE_TOOL} when finished",
    ])
    return "\n".join(lines)


def format_cart_summary(items: List[GroceryItem]) -> str:
    lines = []
    for category, category_items in group_by_category(items).items():
        lines.append(f"{CATEGORY_EMOJIS.get(category, '📦')} **{category_title(category)}**")
        for item in category_items:
            lines.append(f"   • {item.name} - {item.quantity} {item.unit}".rstrip())
    return "\n".join(lines)


def generate_shopping_prompt(items: List[GroceryItem], allergens: List[str], family_size: int) -> str:
    """Copy/paste prompt for ordering through an assistant app by hand."""
    lines = [
        "🛒 **MealMate Grocery Order**",
        "",
        "Please help me order groceries from Swiggy Instamart.",
        "",
        f"**Family Size:** {family_size} people",
        "",
        "**Shopping List:**",
    ]
    for category, category_items in group_by_category(items).items():
        lines.append(f"📦 **{category_title(category)}:**")
        for item in category_items:
            lines.append(f"   • {item.name} - {item.quantity} {item.unit}".rstrip())

    if allergens:
        lines.extend([
            "",
            "⚠️ **IMPORTANT - ALLERGEN ALERT:**",
            f"I am allergic to: **{', '.join(allergens)}**",
            "Please make sure NONE of the products contain these ingredients.",
            "If unsure about an item, skip it and let me know.",
        ])

    lines.extend([
        "",
        "**Instructions:**",
        "1. Search for each item on Swiggy Instamart",
        "2. Add the closest matching product to my cart",
        "3. If an item is not found, suggest an alternative",
        "4. Skip any items containing my allergens",
        "5. Show me the cart summary when done",
    ])
    return "\n".join(lines)


def generate_handoff_prompt(items: List[GroceryItem], address: DeliveryAddress, family_size: int) -> str:
    """Prompt placed on the clipboard when the chat hands the order off."""
    grouped = group_by_category(items)
    lines = [
        "I need to order groceries from Swiggy Instamart.",
        "",
        f"**Delivery Address:** {address.label} - {address.display_text()}",
        f"**Family Size:** {family_size} people",
        "",
        f"**Shopping List ({len(items)} items):**",
    ]
    for category, category_items in grouped.items():
        item_list = ", ".join(f"{i.name} ({i.quantity}{i.unit})" for i in category_items)
        lines.append(f"{CATEGORY_EMOJIS.get(category, '📦')} **{category_title(category)}:** {item_list}")

    if len(items) > LARGE_LIST_THRESHOLD:
        first_category = next(iter(grouped)).value
        lines.extend([
            "",
            "**Instructions (Large Order):**",
            "1. Process by CATEGORY to avoid timeouts",
            "2. Search 2-3 items together when possible",
            "3. Skip items not found after 1 search",
            "4. Show a brief summary after each category",
            "5. Use my delivery address above",
            "6. Show the final cart with total when done",
            "",
            f"Start with the {first_category} category.",
        ])
    else:
        lines.extend([
            "",
            "**Instructions:**",
            "1. Search and add each item to the cart",
            "2. Use the delivery address above",
            "3. Show the cart summary when done",
            "",
            "Please build my cart!",
        ])
    return "\n".join(lines)


_NOT_FOUND = re.compile(r"not found[:\s]*([^.]+)", re.IGNORECASE)
_SPLIT = re.compile(r",|\band\b", re.IGNORECASE)


def extract_not_found(summary: Optional[str]) -> List[str]:
    """
    Best-effort list of missing items from a free-text completion summary.

    Looks for "not found: a, b and c" and splits the tail. Returns [] when
    nothing matches.
    """
    if not summary:
        return []
    match = _NOT_FOUND.search(summary)
    if not match:
        return []
    names = [part.strip(" \n\t-*:") for part in _SPLIT.split(match.group(1))]
    return [n for n in names if n and n.lower() not in ("none", "n/a")]
