"""
Agent loop, cart build and ordering conversation models.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .api import DeliveryAddress
from .cart import CartSnapshot
from .grocery_list import GroceryItem


# ----------------------------------------------------------------------------
# Agent loop
# ----------------------------------------------------------------------------

class ToolCall(BaseModel):
    """Tool invocation requested by the reasoning agent."""
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one tool invocation, fed back to the agent."""
    tool_call_id: str
    name: str
    content: Any = None
    is_error: bool = False


class AgentResponse(BaseModel):
    """One round of output from a reasoning agent."""
    stop_reason: Optional[str] = None
    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)


class CartBuildRequest(BaseModel):
    """Everything a cart builder needs to fill the remote cart."""
    grocery_items: List[GroceryItem]
    allergens: List[str] = Field(default_factory=list)
    family_size: int = Field(default=1, ge=1)
    address_id: Optional[str] = None

    @field_validator("grocery_items")
    @classmethod
    def check_not_empty(cls, v):
        if not v:
            raise ValueError("Grocery list must contain at least one item")
        return v

    @field_validator("allergens")
    @classmethod
    def clean_allergens(cls, v):
        return [a.strip() for a in v if a and a.strip()]


TerminationReason = Literal["completed", "end_turn", "round_cap", "protocol_error", "agent_error", "scripted"]


class CartBuildResult(BaseModel):
    """Summary of a cart build, agent-driven or scripted."""
    success: bool
    completed: bool = False
    cart_id: Optional[str] = None
    items_added: int = 0
    items_added_names: List[str] = Field(default_factory=list)
    items_not_found: List[str] = Field(default_factory=list)
    estimated_total: Optional[float] = None
    final_cart: Optional[CartSnapshot] = None
    message: str = ""
    rounds: int = 0
    termination_reason: Optional[TerminationReason] = None
    error: Optional[str] = None


class AgentLoopState(BaseModel):
    """State carried between nodes of the agent loop graph."""
    session_id: str
    item_names: List[str] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    rounds: int = 0
    max_rounds: int = 50
    pending_calls: List[ToolCall] = Field(default_factory=list)
    stop_reason: Optional[str] = None
    completed: bool = False
    termination_reason: Optional[TerminationReason] = None
    completion_summary: Optional[str] = None
    reported_not_found: Optional[List[str]] = None
    added_queries: List[str] = Field(default_factory=list)
    failed_queries: List[str] = Field(default_factory=list)
    items_added: int = 0
    product_queries: Dict[str, str] = Field(default_factory=dict)
    last_query: Optional[str] = None
    final_cart: Optional[CartSnapshot] = None
    error: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)


# ----------------------------------------------------------------------------
# Ordering conversation
# ----------------------------------------------------------------------------

class FlowState(str, Enum):
    """States of the scripted ordering conversation."""
    CHECKING_CONNECTION = "CHECKING_CONNECTION"
    SWIGGY_LOGIN = "SWIGGY_LOGIN"
    SWIGGY_OTP = "SWIGGY_OTP"
    WELCOME = "WELCOME"
    CART_REVIEW = "CART_REVIEW"
    EDIT_CART = "EDIT_CART"
    PROCESSING = "PROCESSING"
    HANDOFF = "HANDOFF"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class QuickAction(BaseModel):
    """Button offered under a bot message."""
    id: str
    label: str
    variant: Literal["primary", "secondary", "danger"] = "secondary"
    action: str
    data: Optional[Dict[str, Any]] = None


class ChatMessage(BaseModel):
    """One entry of the append-only conversation history."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    role: Literal["bot", "user"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    actions: List[QuickAction] = Field(default_factory=list)


class PriceEstimate(BaseModel):
    min: int
    max: int


class ConversationState(BaseModel):
    """Scripted ordering conversation."""
    current_state: FlowState = FlowState.CHECKING_CONNECTION
    messages: List[ChatMessage] = Field(default_factory=list)
    grocery_items: List[GroceryItem] = Field(default_factory=list)
    addresses: List[DeliveryAddress] = Field(default_factory=list)
    selected_address: Optional[DeliveryAddress] = None
    family_size: int = 1
    estimated_total: Optional[PriceEstimate] = None
    phone: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False
    handoff_prompt: Optional[str] = None
