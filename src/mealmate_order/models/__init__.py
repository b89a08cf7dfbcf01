"""
Models package - all data validation schemas for the order agent.
"""

# Grocery list models
from .grocery_list import GroceryCategory, GroceryItem

# Product models
from .product import Product

# Cart models
from .cart import CartLineItem, CartSnapshot

# Account and checkout models
from .api import DeliveryAddress, OrderPlacement, OtpResult, AuthResult, SwiggySession

# Loop and conversation models
from .state import (
    ToolCall, ToolResult, AgentResponse, CartBuildRequest, CartBuildResult, AgentLoopState,
    FlowState, QuickAction, ChatMessage, PriceEstimate, ConversationState,
)

# Order lifecycle
from .order import OrderStatus, OrderRecord, OrderOutcome, ALLOWED_TRANSITIONS, TERMINAL_STATUSES, PAYMENT_METHOD_COD

__all__ = [
    # Grocery list
    "GroceryCategory",
    "GroceryItem",
    # Product
    "Product",
    # Cart
    "CartLineItem",
    "CartSnapshot",
    # Account and checkout
    "DeliveryAddress",
    "OrderPlacement",
    "OtpResult",
    "AuthResult",
    "SwiggySession",
    # Loop and conversation
    "ToolCall",
    "ToolResult",
    "AgentResponse",
    "CartBuildRequest",
    "CartBuildResult",
    "AgentLoopState",
    "FlowState",
    "QuickAction",
    "ChatMessage",
    "PriceEstimate",
    "ConversationState",
    # Orders
    "OrderStatus",
    "OrderRecord",
    "OrderOutcome",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "PAYMENT_METHOD_COD",
]
