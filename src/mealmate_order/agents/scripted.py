"""
Scripted cart builder - deterministic stand-in for the reasoning agent.
"""

import logging
import math
import uuid
from typing import List, Optional

from ..core.errors import ToolError
from ..core.retry_utils import RetryConfig, retry_with_backoff
from ..models.grocery_list import GroceryItem
from ..models.product import Product
from ..models.state import CartBuildRequest, CartBuildResult
from ..utils.instamart_client import CartTools
from .cart_builder import CartBuilder
from .prompts import group_by_category

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

COUNT_UNITS = {"", "pc", "pcs", "piece", "pieces", "nos", "no", "unit", "units", "pack", "packs", "packet", "packets"}
MAX_SEARCH_ATTEMPTS = 2


def units_to_add(item: GroceryItem) -> int:
    """Whole packs to add: the count for countable units, otherwise one pack."""
    if item.unit.strip().lower() not in COUNT_UNITS:
        return 1
    try:
        return max(1, math.ceil(float(item.quantity)))
    except ValueError:
        return 1


def contains_allergen(product: Product, allergens: List[str]) -> bool:
    text = f"{product.name} {product.description or ''}".lower()
    return any(a.lower() in text for a in allergens)


def search_queries(item: GroceryItem) -> List[str]:
    """The item name, then its last word as a broader fallback."""
    queries = [item.name]
    words = item.name.split()
    if len(words) > 1:
        queries.append(words[-1])
    return queries[:MAX_SEARCH_ATTEMPTS]


class ScriptedCartBuilder(CartBuilder):
    """Search, pick the first acceptable product, add it; one item at a time."""

    def __init__(self, tools: CartTools, retry_config: Optional[RetryConfig] = None):
        self.tools = tools
        self.retry_config = retry_config or RetryConfig()

    def pick_product(self, item: GroceryItem, allergens: List[str]) -> Optional[Product]:
        for query in search_queries(item):
            try:
                products = self.tools.search_products(query)
            except ToolError as e:
                logger.warning(f"[SCRIPTED] Search for '{query}' failed: {e.message}")
                continue

            for product in products:
                if not product.in_stock:
                    continue
                if contains_allergen(product, allergens):
                    logger.info(f"[SCRIPTED] Skipping {product.name}: matches an allergen")
                    continue
                return product

        return None

    def build(self, request: CartBuildRequest, session_id: Optional[str] = None) -> CartBuildResult:
        session_id = session_id or str(uuid.uuid4())
        logger.info(f"[SCRIPTED] Building cart for session {session_id}: {len(request.grocery_items)} items")

        added: List[str] = []
        not_found: List[str] = []

        for category, items in group_by_category(request.grocery_items).items():
            for item in items:
                product = self.pick_product(item, request.allergens)
                if product is None:
                    not_found.append(item.name)
                    continue

                try:
                    self.tools.add_to_cart(product.product_id, units_to_add(item))
                except ToolError as e:
                    logger.warning(f"[SCRIPTED] Could not add {item.name}: {e.message}")
                    not_found.append(item.name)
                    continue

                added.append(item.name)
            logger.info(f"[SCRIPTED] Finished {category.value}: {len(added)} added so far")

        final_cart = None
        try:
            final_cart = retry_with_backoff(self.tools.get_cart, self.retry_config)()
        except ToolError as e:
            logger.warning(f"[SCRIPTED] Could not fetch final cart: {e.message}")

        summary = f"Added {len(added)} of {len(request.grocery_items)} items."
        if not_found:
            summary += f" Not found: {', '.join(not_found)}."

        return CartBuildResult(
            success=len(added) > 0,
            completed=True,
            cart_id=(final_cart.id if final_cart and final_cart.id else None) or self.tools.cart_id,
            items_added=len(added),
            items_added_names=added,
            items_not_found=not_found,
            estimated_total=final_cart.total if final_cart else None,
            final_cart=final_cart,
            message=summary,
            rounds=0,
            termination_reason="scripted",
        )
