"""Tests for cash-on-delivery checkout."""

from unittest.mock import MagicMock

import pytest

from mealmate_order.agents.checkout import COD_ONLY_MESSAGE, CheckoutService
from mealmate_order.agents.orders import OrderService
from mealmate_order.agents.scripted import ScriptedCartBuilder
from mealmate_order.core.errors import SessionError, ToolError
from mealmate_order.core.retry_utils import NO_RETRY
from mealmate_order.models import OrderStatus
from mealmate_order.utils.swiggy_account import SwiggyAccount

ITEMS = [{"name": "milk", "quantity": "2", "unit": "liter", "category": "dairy"}]


@pytest.fixture
def account_factory(db_path, settings, instamart):
    def factory(user_id):
        return SwiggyAccount(
            user_id, db_path=db_path, client_factory=instamart.factory, settings=settings, retry_config=NO_RETRY
        )
    return factory


@pytest.fixture
def checkout(store, account_factory):
    return CheckoutService(store, account_factory)


@pytest.fixture
def ready_order(connected_account, store, account_factory):
    service = OrderService(store, account_factory, lambda tools: ScriptedCartBuilder(tools, retry_config=NO_RETRY))
    outcome = service.submit_order("user-1", ITEMS)
    assert outcome.order.status == OrderStatus.CART_READY
    return outcome.order


class TestPaymentMethod:
    @pytest.mark.parametrize("method", ["CARD", "UPI", "", None])
    def test_only_cod_accepted_before_anything_else(self, method):
        store = MagicMock()
        account_factory = MagicMock()

        outcome = CheckoutService(store, account_factory).checkout("order-1", "user-1", payment_method=method)

        assert not outcome.success
        assert outcome.reason == "invalidPaymentMethod"
        assert outcome.message == COD_ONLY_MESSAGE
        store.get.assert_not_called()
        account_factory.assert_not_called()

    def test_lowercase_cod_accepted(self, checkout, ready_order):
        assert checkout.checkout(ready_order.id, "user-1", payment_method="cod").success


class TestPlacement:
    def test_confirms_order(self, checkout, ready_order, store, instamart):
        outcome = checkout.checkout(ready_order.id, "user-1")

        assert outcome.success
        record = store.get(ready_order.id)
        assert record.status == OrderStatus.CONFIRMED
        assert record.swiggy_order_id == "SWGY12345678ABC"
        assert record.estimated_delivery == "25-35 mins"
        assert record.delivery_address == "123 MG Road, Koramangala, Bangalore, 560034"
        assert record.payment_method == "COD"
        assert record.order_placed_at is not None
        assert instamart.placed_with == ("cart-1", "addr_home", "COD")

    def test_confirmed_order_cannot_be_placed_twice(self, checkout, ready_order, instamart):
        checkout.checkout(ready_order.id, "user-1")

        outcome = checkout.checkout(ready_order.id, "user-1")

        assert outcome.reason == "invalidState"
        assert instamart.count("place_order") == 1

    def test_remote_failure_fails_order(self, checkout, ready_order, store, instamart):
        instamart.place_error = ToolError("Store closed for the day", "place_order", retry_possible=False)

        outcome = checkout.checkout(ready_order.id, "user-1")

        assert outcome.reason == "placementFailed"
        assert outcome.message == "Store closed for the day"
        record = store.get(ready_order.id)
        assert record.status == OrderStatus.FAILED
        assert record.error_message == "Store closed for the day"
        assert checkout.checkout(ready_order.id, "user-1").reason == "invalidState"

    def test_session_rejected_at_placement(self, checkout, ready_order, store, instamart):
        instamart.place_error = SessionError()

        outcome = checkout.checkout(ready_order.id, "user-1")

        assert outcome.reason == "needsSwiggyAuth"
        assert store.get(ready_order.id).status == OrderStatus.FAILED

    def test_disconnected_account_keeps_cart(self, checkout, ready_order, store, connected_account, instamart):
        connected_account.disconnect()

        outcome = checkout.checkout(ready_order.id, "user-1")

        assert outcome.reason == "needsSwiggyAuth"
        assert store.get(ready_order.id).status == OrderStatus.CART_READY
        assert instamart.count("place_order") == 0


class TestPreconditions:
    def test_pending_order_not_ready(self, checkout, store, account_factory, instamart):
        service = OrderService(store, account_factory, MagicMock())
        order = service.create_order("user-1", ITEMS).order

        outcome = checkout.checkout(order.id, "user-1")

        assert outcome.reason == "invalidState"
        assert instamart.count("place_order") == 0

    def test_unknown_order(self, checkout):
        assert checkout.checkout("missing", "user-1").reason == "notFound"

    def test_other_users_order(self, checkout, ready_order):
        assert checkout.checkout(ready_order.id, "user-2").reason == "forbidden"
