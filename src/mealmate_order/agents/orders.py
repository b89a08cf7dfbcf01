"""
Order service - creates order records and drives them through cart building.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ..core.errors import RequestValidationError, SessionError, ToolError
from ..models.grocery_list import GroceryItem
from ..models.order import OrderOutcome, OrderRecord, OrderStatus
from ..models.state import CartBuildRequest
from ..utils.order_store import DEFAULT_LIST_LIMIT, OrderStore
from ..utils.swiggy_account import SwiggyAccount
from .builder_factory import BuilderFactory
from .prompts import generate_shopping_prompt

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

AccountFactory = Callable[[str], SwiggyAccount]
ItemInput = Union[GroceryItem, Dict[str, Any]]

# Reason codes reported to callers
NEEDS_SWIGGY_AUTH = "needsSwiggyAuth"
NEEDS_ADDRESS = "needsAddress"
INVALID_REQUEST = "invalidRequest"
NOT_FOUND = "notFound"
FORBIDDEN = "forbidden"
INVALID_STATE = "invalidState"
BUILD_FAILED = "buildFailed"


def parse_items(items: List[ItemInput]) -> List[GroceryItem]:
    """Validate raw grocery items; an empty list is rejected."""
    if not items:
        raise RequestValidationError("Grocery list is empty", reason=INVALID_REQUEST)
    try:
        return [i if isinstance(i, GroceryItem) else GroceryItem.model_validate(i) for i in items]
    except ValidationError as e:
        raise RequestValidationError(f"Invalid grocery item: {e.errors()[0]['msg']}", reason=INVALID_REQUEST)


def lookup_order(store: OrderStore, order_id: str, user_id: str):
    """Return (record, None) or (None, failure outcome) for an id the user must own."""
    record = store.get(order_id)
    if record is None:
        return None, OrderOutcome.failure(NOT_FOUND, "Order not found")
    if record.user_id != user_id:
        return None, OrderOutcome.failure(FORBIDDEN, "Order not found")
    return record, None


class OrderService:
    """Order lifecycle operations for request handlers."""

    def __init__(self, store: OrderStore, account_factory: AccountFactory, builder_factory: BuilderFactory):
        self.store = store
        self.account_factory = account_factory
        self.builder_factory = builder_factory

    def create_order(
        self,
        user_id: str,
        items: List[ItemInput],
        allergens: Optional[List[str]] = None,
        family_size: int = 1,
        address_id: Optional[str] = None,
    ) -> OrderOutcome:
        """Validate the grocery list and persist a PENDING order."""
        try:
            grocery_items = parse_items(items)
        except RequestValidationError as e:
            logger.warning(f"[ORDER] Rejected order for user {user_id}: {e.message}")
            return OrderOutcome.failure(e.reason, e.message)

        record = self.store.create(OrderRecord(
            user_id=user_id,
            grocery_items=grocery_items,
            allergen_warnings=[a.strip() for a in allergens or [] if a and a.strip()],
            family_size=max(1, family_size),
            delivery_address_id=address_id,
        ))
        return OrderOutcome(success=True, order=record, message="Order created")

    def process_order(self, order_id: str, user_id: str, address_id: Optional[str] = None) -> OrderOutcome:
        """
        Build the remote cart for a PENDING order.

        Missing Swiggy login or address is reported before any remote cart
        call and leaves the order PENDING. Otherwise the order ends CART_READY
        when at least one item was added (missing items are listed on the
        record) and FAILED when nothing could be added.
        """
        record, failure = lookup_order(self.store, order_id, user_id)
        if failure:
            return failure
        if record.status != OrderStatus.PENDING:
            return OrderOutcome.failure(INVALID_STATE, f"Order is already {record.status.value}", record)

        account = self.account_factory(user_id)
        if not account.is_connected():
            return OrderOutcome.failure(
                NEEDS_SWIGGY_AUTH, "Please connect your Swiggy account first", record
            )

        address_id = address_id or record.delivery_address_id
        if not address_id:
            try:
                default = account.default_address()
            except SessionError as e:
                return OrderOutcome.failure(NEEDS_SWIGGY_AUTH, e.message, record)
            except ToolError as e:
                logger.warning(f"[ORDER] Could not load addresses for user {user_id}: {e.message}")
                default = None
            address_id = default.id if default else None
        if not address_id:
            return OrderOutcome.failure(NEEDS_ADDRESS, "Please select a delivery address", record)

        record = self.store.transition(order_id, OrderStatus.PROCESSING, delivery_address_id=address_id)
        logger.info(f"[ORDER] Building cart for order {order_id} ({record.total_items} items)")

        request = CartBuildRequest(
            grocery_items=record.grocery_items,
            allergens=record.allergen_warnings,
            family_size=record.family_size,
            address_id=address_id,
        )

        try:
            builder = self.builder_factory(account.cart_tools(address_id))
            result = builder.build(request, session_id=order_id)
        except SessionError as e:
            logger.warning(f"[ORDER] Swiggy session expired while building order {order_id}")
            account.disconnect()
            record = self.store.transition(order_id, OrderStatus.FAILED, error_message=e.message)
            return OrderOutcome.failure(NEEDS_SWIGGY_AUTH, e.message, record)
        except Exception as e:
            logger.error(f"[ORDER] Cart build crashed for order {order_id}: {e}", exc_info=True)
            record = self.store.transition(order_id, OrderStatus.FAILED, error_message=str(e))
            return OrderOutcome.failure(BUILD_FAILED, f"Failed to build order: {e}", record)

        if result.items_added > 0:
            record = self.store.transition(
                order_id,
                OrderStatus.CART_READY,
                swiggy_cart_id=result.cart_id,
                estimated_total=result.estimated_total,
                items_added=result.items_added_names,
                items_not_found=result.items_not_found,
            )
            message = result.message or "Cart is ready"
            if result.items_not_found:
                message += f" ({len(result.items_not_found)} items could not be added)"
            logger.info(f"[ORDER] Order {order_id} cart ready: {result.items_added} added")
            return OrderOutcome(success=True, order=record, message=message, build=result)

        error = result.error or result.message or "No items could be added to the cart"
        record = self.store.transition(
            order_id,
            OrderStatus.FAILED,
            error_message=error,
            swiggy_cart_id=result.cart_id,
            items_not_found=result.items_not_found,
        )
        logger.warning(f"[ORDER] Order {order_id} failed: {error}")
        return OrderOutcome.failure(BUILD_FAILED, error, record, build=result)

    def submit_order(
        self,
        user_id: str,
        items: List[ItemInput],
        allergens: Optional[List[str]] = None,
        family_size: int = 1,
        address_id: Optional[str] = None,
    ) -> OrderOutcome:
        """Create an order and build its cart in one call."""
        created = self.create_order(user_id, items, allergens, family_size, address_id)
        if not created.success:
            return created
        return self.process_order(created.order.id, user_id, address_id)

    @staticmethod
    def manual_prompt(items: List[ItemInput], allergens: Optional[List[str]] = None, family_size: int = 1) -> str:
        """Copy/paste ordering prompt, for users ordering by hand."""
        return generate_shopping_prompt(parse_items(items), list(allergens or []), family_size)

    def get_order(self, order_id: str, user_id: str) -> OrderOutcome:
        record, failure = lookup_order(self.store, order_id, user_id)
        if failure:
            return failure
        return OrderOutcome(success=True, order=record, message=record.status.value)

    def list_orders(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[OrderRecord]:
        return self.store.list_for_user(user_id, limit=min(limit, DEFAULT_LIST_LIMIT))

    def cancel_order(self, order_id: str, user_id: str) -> OrderOutcome:
        record, failure = lookup_order(self.store, order_id, user_id)
        if failure:
            return failure
        if record.status.is_terminal:
            return OrderOutcome.failure(INVALID_STATE, f"Order is already {record.status.value}", record)

        record = self.store.transition(order_id, OrderStatus.CANCELLED)
        logger.info(f"[ORDER] Order {order_id} cancelled")
        return OrderOutcome(success=True, order=record, message="Order cancelled")

    def retry_order(self, order_id: str, user_id: str) -> OrderOutcome:
        """Start a fresh PENDING attempt from a FAILED or CANCELLED order."""
        record, failure = lookup_order(self.store, order_id, user_id)
        if failure:
            return failure
        if record.status not in (OrderStatus.FAILED, OrderStatus.CANCELLED):
            return OrderOutcome.failure(INVALID_STATE, "Only failed or cancelled orders can be retried", record)

        logger.info(f"[ORDER] Retrying order {order_id} as a new attempt")
        return self.create_order(
            user_id,
            list(record.grocery_items),
            record.allergen_warnings,
            record.family_size,
            record.delivery_address_id,
        )
