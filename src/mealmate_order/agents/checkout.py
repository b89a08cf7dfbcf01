"""
Checkout - places a CART_READY order on Swiggy Instamart, cash on delivery only.
"""

import logging
from datetime import datetime
from typing import Optional

from ..core.errors import SessionError, ToolError
from ..models.order import PAYMENT_METHOD_COD, OrderOutcome, OrderStatus
from ..utils.order_store import OrderStore
from .orders import (
    INVALID_STATE,
    NEEDS_ADDRESS,
    NEEDS_SWIGGY_AUTH,
    AccountFactory,
    lookup_order,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

INVALID_PAYMENT_METHOD = "invalidPaymentMethod"
PLACEMENT_FAILED = "placementFailed"
COD_ONLY_MESSAGE = "Only Cash on Delivery (COD) is supported at this time"


class CheckoutService:
    """Turns a built cart into a placed order."""

    def __init__(self, store: OrderStore, account_factory: AccountFactory):
        self.store = store
        self.account_factory = account_factory

    def checkout(
        self,
        order_id: str,
        user_id: str,
        payment_method: str = PAYMENT_METHOD_COD,
        address_id: Optional[str] = None,
    ) -> OrderOutcome:
        """
        Place the order's cart.

        The payment method is checked first, before the order is even read.
        On success the order becomes CONFIRMED with the Swiggy order id,
        delivery estimate and address text; a remote failure makes it FAILED
        with the remote message. Nothing is written in between.
        """
        if (payment_method or "").strip().upper() != PAYMENT_METHOD_COD:
            logger.warning(f"[CHECKOUT] Rejected payment method {payment_method!r} for order {order_id}")
            return OrderOutcome.failure(INVALID_PAYMENT_METHOD, COD_ONLY_MESSAGE)

        record, failure = lookup_order(self.store, order_id, user_id)
        if failure:
            return failure
        if record.status != OrderStatus.CART_READY:
            return OrderOutcome.failure(
                INVALID_STATE, f"Order is not ready for checkout (status: {record.status.value})", record
            )
        if not record.swiggy_cart_id:
            return OrderOutcome.failure(INVALID_STATE, "No cart to place order for", record)

        address_id = address_id or record.delivery_address_id
        if not address_id:
            return OrderOutcome.failure(NEEDS_ADDRESS, "Please select a delivery address", record)

        account = self.account_factory(user_id)
        try:
            tools = account.cart_tools(address_id)
        except SessionError as e:
            return OrderOutcome.failure(NEEDS_SWIGGY_AUTH, e.message, record)

        try:
            address = account.find_address(address_id)
        except (SessionError, ToolError) as e:
            logger.warning(f"[CHECKOUT] Could not resolve address {address_id}: {e.message}")
            address = None

        logger.info(f"[CHECKOUT] Placing order {order_id} (cart {record.swiggy_cart_id}) with COD")
        try:
            placement = tools.place_order(record.swiggy_cart_id, address_id, PAYMENT_METHOD_COD)
        except (ToolError, SessionError) as e:
            logger.error(f"[CHECKOUT] Placement failed for order {order_id}: {e.message}")
            record = self.store.transition(order_id, OrderStatus.FAILED, error_message=e.message)
            reason = NEEDS_SWIGGY_AUTH if isinstance(e, SessionError) else PLACEMENT_FAILED
            return OrderOutcome.failure(reason, e.message, record)

        record = self.store.transition(
            order_id,
            OrderStatus.CONFIRMED,
            swiggy_order_id=placement.external_order_id,
            estimated_delivery=placement.estimated_delivery,
            delivery_address=address.display_text() if address else placement.delivery_address,
            delivery_address_id=address_id,
            payment_method=PAYMENT_METHOD_COD,
            order_placed_at=datetime.utcnow(),
            error_message=None,
        )
        logger.info(f"[CHECKOUT] Order {order_id} confirmed as {placement.external_order_id}")
        return OrderOutcome(success=True, order=record, message="Order placed successfully")
