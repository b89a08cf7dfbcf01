"""
Agents module initialization.
"""

from .tools import (
    TOOL_SCHEMAS,
    AGENT_TOOL_NAMES,
    SEARCH_TOOL,
    ADD_TOOL,
    REMOVE_TOOL,
    GET_CART_TOOL,
    CLEAR_CART_TOOL,
    PLACE_ORDER_TOOL,
    COMPLETE_TOOL,
    CartToolbox,
    agent_tool_schemas,
)
from .prompts import (
    SYSTEM_PROMPT,
    PRICE_ESTIMATES,
    estimate_total,
    build_order_instruction,
    generate_shopping_prompt,
    generate_handoff_prompt,
    extract_not_found,
)
from .cart_builder import CartBuilder
from .agent_loop import AgentCartBuilder, route_after_agent, route_after_tools
from .scripted import ScriptedCartBuilder
from .builder_factory import select_cart_builder, make_builder_factory
from .ordering_flow import OrderingFlow
from .orders import OrderService
from .checkout import CheckoutService

__all__ = [
    # Tools
    "TOOL_SCHEMAS",
    "AGENT_TOOL_NAMES",
    "SEARCH_TOOL",
    "ADD_TOOL",
    "REMOVE_TOOL",
    "GET_CART_TOOL",
    "CLEAR_CART_TOOL",
    "PLACE_ORDER_TOOL",
    "COMPLETE_TOOL",
    "CartToolbox",
    "agent_tool_schemas",
    # Prompts
    "SYSTEM_PROMPT",
    "PRICE_ESTIMATES",
    "estimate_total",
    "build_order_instruction",
    "generate_shopping_prompt",
    "generate_handoff_prompt",
    "extract_not_found",
    # Cart builders
    "CartBuilder",
    "AgentCartBuilder",
    "route_after_agent",
    "route_after_tools",
    "ScriptedCartBuilder",
    "select_cart_builder",
    "make_builder_factory",
    # Conversation and orders
    "OrderingFlow",
    "OrderService",
    "CheckoutService",
]
