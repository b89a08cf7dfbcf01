"""
Ordering flow - scripted chat conversation that takes a grocery list to a Swiggy handoff.

States: CHECKING_CONNECTION -> [SWIGGY_LOGIN -> SWIGGY_OTP] -> WELCOME -> CART_REVIEW
-> [EDIT_CART -> CART_REVIEW] -> PROCESSING -> HANDOFF -> COMPLETE, with cancel
reachable from every non-final state and ERROR for account failures.

Each transition appends exactly one bot message, preceded by one user message
when the user triggered it. Messages are only ever appended. Input problems
that do not change state are reported through `state.error` instead.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from ..core.config import Settings, get_settings
from ..core.errors import FlowActionError, RequestValidationError, SessionError, ToolError
from ..models.api import DeliveryAddress
from ..models.grocery_list import GroceryItem
from ..models.state import ChatMessage, ConversationState, FlowState, QuickAction
from ..utils.swiggy_account import SwiggyAccount
from .prompts import (
    category_title,
    estimate_total,
    format_cart_summary,
    generate_handoff_prompt,
    group_by_category,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

PHONE_LENGTH = 10
OTP_LENGTH = 6

CANCEL_MESSAGE = "Order cancelled. You can start a new order anytime from your grocery list."
NO_ADDRESSES_ERROR = "No addresses found. Please add an address in the Swiggy app first."

CANCEL_ACTION = QuickAction(id="cancel", label="❌ Cancel", variant="danger", action="CANCEL")


def _bot(content: str, actions: Optional[List[QuickAction]] = None) -> ChatMessage:
    return ChatMessage(role="bot", content=content, actions=actions or [])


def _user(content: str) -> ChatMessage:
    return ChatMessage(role="user", content=content)


def address_actions(addresses: List[DeliveryAddress]) -> List[QuickAction]:
    return [
        QuickAction(
            id=f"select_{a.id}",
            label=f"{'🏠' if a.label.lower() == 'home' else '🏢'} {a.label}",
            variant="primary" if a.is_default else "secondary",
            action="SELECT_ADDRESS",
            data={"addressId": a.id},
        )
        for a in addresses
    ]


def welcome_message(items: List[GroceryItem], addresses: List[DeliveryAddress], connected_note: bool = False) -> ChatMessage:
    estimate = estimate_total(items)
    categories = "\n".join(
        f"• {len(category_items)} {category_title(category)}"
        for category, category_items in group_by_category(items).items()
    )
    intro = "✅ **Connected to Swiggy!**\n\n" if connected_note else ""
    return _bot(
        f"{intro}🛒 Hi! I'll help you order groceries from Swiggy Instamart.\n\n"
        f"You have **{len(items)} items** in your list:\n{categories}\n\n"
        f"Estimated total: **₹{estimate.min} - ₹{estimate.max}**\n\n"
        "Where should I deliver your groceries? 🏠",
        address_actions(addresses) + [CANCEL_ACTION],
    )


def login_message() -> ChatMessage:
    return _bot(
        "🔐 Let's connect your Swiggy account first.\n\n"
        f"Enter your {PHONE_LENGTH}-digit mobile number and I'll send you an OTP.",
        [CANCEL_ACTION],
    )


def otp_message(display_phone: str) -> ChatMessage:
    return _bot(
        f"📱 I've sent a {OTP_LENGTH}-digit OTP to **{display_phone}**.\n\nEnter it below to continue.",
        [QuickAction(id="change_phone", label="← Change phone number", action="CHANGE_PHONE"), CANCEL_ACTION],
    )


def address_confirm_message(address: DeliveryAddress, items: List[GroceryItem], estimate) -> ChatMessage:
    return _bot(
        "Great! Delivering to:\n"
        f"📍 **{address.label}** - {address.display_text()}\n\n"
        f"**Your Cart:**\n{format_cart_summary(items)}\n"
        "━━━━━━━━━━━━━━━━━━━━\n"
        f"**Estimated Total:** ₹{estimate.min} - ₹{estimate.max}\n"
        "**Payment:** Cash on Delivery\n"
        "━━━━━━━━━━━━━━━━━━━━\n\n"
        "Ready to place your order?",
        [
            QuickAction(id="place_order", label="✅ Place Order", variant="primary", action="PLACE_ORDER"),
            QuickAction(id="edit_cart", label="✏️ Edit Items", action="EDIT_CART"),
            CANCEL_ACTION,
        ],
    )


def processing_message() -> ChatMessage:
    return _bot("🔄 Preparing your order for Swiggy Instamart...")


def handoff_message(items: List[GroceryItem], address: DeliveryAddress) -> ChatMessage:
    return _bot(
        "✅ Your order is ready!\n\n"
        "To complete your order on Swiggy Instamart:\n\n"
        "1. Open your assistant app\n"
        "2. Paste the order prompt (it is already on your clipboard)\n"
        "3. Confirm the order there\n\n"
        f"**Delivery to:** {address.label} - {address.address_line}\n"
        f"**Items:** {len(items)} items\n\n"
        "⚠️ **Important:** Keep the Swiggy app closed while ordering through the assistant.",
        [
            QuickAction(id="copy_prompt", label="📋 Copy Prompt Again", action="COPY_PROMPT"),
            QuickAction(id="done", label="✅ Done", action="CLOSE"),
        ],
    )


def edit_cart_message(items: List[GroceryItem]) -> ChatMessage:
    return _bot(
        f"What would you like to change?\n\nYou currently have {len(items)} items in your cart.",
        [
            QuickAction(id="remove_item", label="➖ Remove Item", action="SHOW_REMOVE_OPTIONS"),
            QuickAction(id="back_to_cart", label="↩️ Back to Cart", variant="primary", action="BACK_TO_CART"),
        ],
    )


def remove_options_message(items: List[GroceryItem]) -> ChatMessage:
    listing = "\n".join(f"{i + 1}. {item.name}" for i, item in enumerate(items))
    return _bot(
        f"Select an item to remove:\n\n{listing}\n\n"
        "(Use the grocery list editor for full control over items.)",
        [QuickAction(id="back_to_cart", label="↩️ Back to Cart", variant="primary", action="BACK_TO_CART")],
    )


def cancel_message() -> ChatMessage:
    return _bot(CANCEL_MESSAGE)


def error_message(detail: str) -> ChatMessage:
    return _bot(f"⚠️ Something went wrong: {detail}\n\nPlease try again later.", [CANCEL_ACTION])


class OrderingFlow:
    """Drives one ordering conversation for a grocery list."""

    def __init__(
        self,
        account: SwiggyAccount,
        grocery_items: List[GroceryItem],
        family_size: int = 1,
        settle_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        settings: Optional[Settings] = None,
    ):
        if not grocery_items:
            raise RequestValidationError("Grocery list is empty", reason="emptyList")
        if settle_delay is None:
            settle_delay = (settings or get_settings()).flow_settle_delay_seconds
        self.account = account
        self.settle_delay = settle_delay
        self._sleep = sleep
        self.state = ConversationState(grocery_items=list(grocery_items), family_size=family_size)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, action: str, *states: FlowState) -> None:
        if self.state.current_state not in states:
            raise FlowActionError(action, self.state.current_state.value)

    def _move(self, target: FlowState, bot: ChatMessage, user: Optional[str] = None) -> ConversationState:
        if user is not None:
            self.state.messages.append(_user(user))
        self.state.messages.append(bot)
        logger.info(f"[FLOW] {self.state.current_state.value} -> {target.value}")
        self.state.current_state = target
        self.state.error = None
        return self.state

    def _fail(self, detail: str) -> ConversationState:
        logger.error(f"[FLOW] Moving to ERROR: {detail}")
        return self._move(FlowState.ERROR, error_message(detail))

    def _inline_error(self, message: str) -> ConversationState:
        logger.info(f"[FLOW] Inline error in {self.state.current_state.value}: {message}")
        self.state.error = message
        return self.state

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self) -> ConversationState:
        """Look up the Swiggy connection and open with addresses or a login prompt."""
        self._require("START", FlowState.CHECKING_CONNECTION)

        addresses: List[DeliveryAddress] = []
        if self.account.is_connected():
            try:
                addresses = self.account.get_addresses()
            except (SessionError, ToolError) as e:
                logger.warning(f"[FLOW] Address lookup failed, asking for login: {e.message}")

        if addresses:
            self.state.addresses = addresses
            return self._move(FlowState.WELCOME, welcome_message(self.state.grocery_items, addresses))

        return self._move(FlowState.SWIGGY_LOGIN, login_message())

    def submit_phone(self, phone: str) -> ConversationState:
        self._require("SUBMIT_PHONE", FlowState.SWIGGY_LOGIN)

        phone = (phone or "").strip()
        if not re.fullmatch(rf"\d{{{PHONE_LENGTH}}}", phone):
            return self._inline_error(f"Please enter a valid {PHONE_LENGTH}-digit phone number")

        result = self.account.send_otp(phone)
        if not result.success:
            return self._inline_error(result.error or "Failed to send OTP. Please try again.")

        self.state.phone = phone
        display = f"+91 {phone}"
        return self._move(FlowState.SWIGGY_OTP, otp_message(display), user=display)

    def change_phone(self) -> ConversationState:
        self._require("CHANGE_PHONE", FlowState.SWIGGY_OTP)
        self.state.phone = None
        return self._move(FlowState.SWIGGY_LOGIN, login_message(), user="← Change phone number")

    def submit_otp(self, code: str) -> ConversationState:
        self._require("SUBMIT_OTP", FlowState.SWIGGY_OTP)

        code = (code or "").strip()
        if not re.fullmatch(rf"\d{{{OTP_LENGTH}}}", code):
            return self._inline_error(f"Please enter the {OTP_LENGTH}-digit OTP")

        auth = self.account.verify_otp(self.state.phone, code)
        if not auth.success:
            return self._inline_error(auth.error or "Invalid OTP. Please try again.")

        try:
            addresses = self.account.get_addresses(refresh=True)
        except (SessionError, ToolError) as e:
            self.state.messages.append(_user(f"OTP: {code}"))
            return self._fail(e.message)

        if not addresses:
            return self._inline_error(NO_ADDRESSES_ERROR)

        self.state.addresses = addresses
        return self._move(
            FlowState.WELCOME,
            welcome_message(self.state.grocery_items, addresses, connected_note=True),
            user=f"OTP: {code}",
        )

    def select_address(self, address_id: str) -> ConversationState:
        self._require("SELECT_ADDRESS", FlowState.WELCOME)

        address = next((a for a in self.state.addresses if a.id == address_id), None)
        if address is None:
            return self._inline_error("Please pick one of your saved addresses")

        self.state.selected_address = address
        self.state.estimated_total = estimate_total(self.state.grocery_items)
        return self._move(
            FlowState.CART_REVIEW,
            address_confirm_message(address, self.state.grocery_items, self.state.estimated_total),
            user=address.label,
        )

    def place_order(self) -> ConversationState:
        """Hand the order off: PROCESSING for the settle delay, then HANDOFF with the prompt."""
        self._require("PLACE_ORDER", FlowState.CART_REVIEW)

        self.state.handoff_prompt = generate_handoff_prompt(
            self.state.grocery_items, self.state.selected_address, self.state.family_size
        )
        self._move(FlowState.PROCESSING, processing_message(), user="✅ Place Order")

        if self.settle_delay > 0:
            self._sleep(self.settle_delay)

        return self._move(FlowState.HANDOFF, handoff_message(self.state.grocery_items, self.state.selected_address))

    def edit_cart(self) -> ConversationState:
        self._require("EDIT_CART", FlowState.CART_REVIEW)
        return self._move(FlowState.EDIT_CART, edit_cart_message(self.state.grocery_items), user="✏️ Edit Items")

    def show_remove_options(self) -> ConversationState:
        self._require("SHOW_REMOVE_OPTIONS", FlowState.EDIT_CART)
        self.state.messages.append(remove_options_message(self.state.grocery_items))
        return self.state

    def back_to_cart(self) -> ConversationState:
        self._require("BACK_TO_CART", FlowState.EDIT_CART)
        return self._move(
            FlowState.CART_REVIEW,
            address_confirm_message(self.state.selected_address, self.state.grocery_items, self.state.estimated_total),
            user="↩️ Back to Cart",
        )

    def copy_prompt(self) -> str:
        """Return the handoff prompt again for the clipboard."""
        self._require("COPY_PROMPT", FlowState.HANDOFF)
        self.state.messages.append(_bot("📋 Order prompt copied to your clipboard."))
        return self.state.handoff_prompt

    def close(self) -> ConversationState:
        self._require("CLOSE", FlowState.HANDOFF)
        return self._move(FlowState.COMPLETE, _bot("🎉 Happy cooking!"), user="✅ Done")

    def cancel(self) -> ConversationState:
        """Cancel from any state that has not finished yet."""
        if self.state.current_state == FlowState.COMPLETE:
            raise FlowActionError("CANCEL", FlowState.COMPLETE.value)
        self.state.cancelled = True
        return self._move(FlowState.COMPLETE, cancel_message(), user="❌ Cancel")

    def dispatch(self, action: str, data: Optional[Dict[str, Any]] = None):
        """Run the operation behind a quick-action button."""
        data = data or {}
        handlers = {
            "SELECT_ADDRESS": lambda: self.select_address(str(data.get("addressId", ""))),
            "PLACE_ORDER": self.place_order,
            "EDIT_CART": self.edit_cart,
            "SHOW_REMOVE_OPTIONS": self.show_remove_options,
            "BACK_TO_CART": self.back_to_cart,
            "CHANGE_PHONE": self.change_phone,
            "COPY_PROMPT": self.copy_prompt,
            "CLOSE": self.close,
            "CANCEL": self.cancel,
        }
        handler = handlers.get(action)
        if handler is None:
            raise FlowActionError(action, self.state.current_state.value)
        return handler()
