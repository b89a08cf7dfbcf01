"""
Tool schemas offered to the reasoning agent and the dispatcher that runs them.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.errors import ToolError
from ..core.retry_utils import validate_tool_arguments
from ..models.state import ToolCall, ToolResult
from ..utils.instamart_client import DEFAULT_SEARCH_LIMIT, CartTools

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

SEARCH_TOOL = "swiggy_search_products"
ADD_TOOL = "swiggy_add_to_cart"
REMOVE_TOOL = "swiggy_remove_from_cart"
GET_CART_TOOL = "swiggy_get_cart"
CLEAR_CART_TOOL = "swiggy_clear_cart"
PLACE_ORDER_TOOL = "swiggy_place_order"
COMPLETE_TOOL = "order_complete"

TOOL_SCHEMAS: Dict[str, Dict[str, Any]] = {
    SEARCH_TOOL: {
        "name": SEARCH_TOOL,
        "description": (
            "Search for grocery products on Swiggy Instamart. Returns a list of matching "
            "products with prices, units and availability."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query for the product (e.g., 'tomatoes', 'basmati rice', 'paneer')",
                },
                "limit": {
                    "type": "number",
                    "description": f"Maximum number of results to return (default: {DEFAULT_SEARCH_LIMIT})",
                },
            },
            "required": ["query"],
        },
    },
    ADD_TOOL: {
        "name": ADD_TOOL,
        "description": "Add a product to the shopping cart. Use the product id from search results.",
        "parameters": {
            "type": "object",
            "properties": {
                "product_id": {"type": "string", "description": "The product id from search results"},
                "quantity": {"type": "number", "description": "Number of units to add (default: 1)"},
            },
            "required": ["product_id"],
        },
    },
    REMOVE_TOOL: {
        "name": REMOVE_TOOL,
        "description": "Remove a product from the shopping cart.",
        "parameters": {
            "type": "object",
            "properties": {
                "product_id": {"type": "string", "description": "The product id to remove"},
            },
            "required": ["product_id"],
        },
    },
    GET_CART_TOOL: {
        "name": GET_CART_TOOL,
        "description": "Get the current contents of the shopping cart with totals.",
        "parameters": {"type": "object", "properties": {}},
    },
    CLEAR_CART_TOOL: {
        "name": CLEAR_CART_TOOL,
        "description": "Remove all items from the shopping cart.",
        "parameters": {"type": "object", "properties": {}},
    },
    PLACE_ORDER_TOOL: {
        "name": PLACE_ORDER_TOOL,
        "description": "Place the current cart as an order for delivery. Cash on delivery only.",
        "parameters": {
            "type": "object",
            "properties": {
                "address_id": {"type": "string", "description": "Delivery address id"},
                "payment_method": {"type": "string", "enum": ["COD"], "description": "Payment method"},
            },
            "required": ["address_id", "payment_method"],
        },
    },
    COMPLETE_TOOL: {
        "name": COMPLETE_TOOL,
        "description": (
            "Call this when you have finished adding all items to the cart. "
            "Report what was added and anything you could not find."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "Summary of items added and any items that could not be found",
                },
                "items_not_found": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Names of grocery items that could not be added",
                },
            },
            "required": ["summary"],
        },
    },
}

# Checkout is an explicit user step, never something the agent does on its own.
AGENT_TOOL_NAMES = (SEARCH_TOOL, ADD_TOOL, REMOVE_TOOL, GET_CART_TOOL, CLEAR_CART_TOOL, COMPLETE_TOOL)


def agent_tool_schemas() -> List[Dict[str, Any]]:
    return [TOOL_SCHEMAS[name] for name in AGENT_TOOL_NAMES]


def _as_quantity(value: Any) -> Any:
    if value is None:
        return 1
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


class CartToolbox:
    """Runs agent tool calls against a CartTools implementation."""

    def __init__(self, tools: CartTools, allowed: Optional[tuple] = AGENT_TOOL_NAMES):
        self.tools = tools
        self.allowed = allowed

    def execute(self, call: ToolCall) -> ToolResult:
        """
        Execute one tool call.

        Tool failures come back as an error result for the agent to react to;
        SessionError is not caught and ends the build.
        """
        schema = TOOL_SCHEMAS.get(call.name)
        if schema is None or (self.allowed is not None and call.name not in self.allowed):
            logger.warning(f"[TOOLS] Unknown tool requested: {call.name}")
            return ToolResult(tool_call_id=call.id, name=call.name, is_error=True,
                              content={"error": f"Unknown tool: {call.name}"})

        if not validate_tool_arguments(call.input, schema["parameters"].get("required", [])):
            return ToolResult(tool_call_id=call.id, name=call.name, is_error=True,
                              content={"error": f"Missing required arguments for {call.name}"})

        try:
            content = self._dispatch(call)
        except ToolError as e:
            logger.warning(f"[TOOLS] {call.name} failed: {e.message}")
            return ToolResult(tool_call_id=call.id, name=call.name, is_error=True, content={"error": e.message})

        logger.info(f"[TOOLS] {call.name} ok")
        return ToolResult(tool_call_id=call.id, name=call.name, content=content)

    def _dispatch(self, call: ToolCall) -> Any:
        args = call.input

        if call.name == SEARCH_TOOL:
            products = self.tools.search_products(args["query"], args.get("limit", DEFAULT_SEARCH_LIMIT))
            return {"products": [p.to_tool_payload() for p in products], "count": len(products)}

        if call.name == ADD_TOOL:
            cart = self.tools.add_to_cart(str(args["product_id"]), _as_quantity(args.get("quantity")))
            return {"success": True, "cart": cart.to_tool_payload()}

        if call.name == REMOVE_TOOL:
            cart = self.tools.remove_from_cart(str(args["product_id"]))
            return {"success": True, "cart": cart.to_tool_payload()}

        if call.name == GET_CART_TOOL:
            return self.tools.get_cart().to_tool_payload()

        if call.name == CLEAR_CART_TOOL:
            self.tools.clear_cart()
            return {"success": True, "message": "Cart cleared"}

        if call.name == PLACE_ORDER_TOOL:
            placement = self.tools.place_order(self.tools.cart_id, args["address_id"], args["payment_method"])
            return placement.model_dump()

        if call.name == COMPLETE_TOOL:
            return {"acknowledged": True}

        raise ToolError(f"Unknown tool: {call.name}", call.name, retry_possible=False)
