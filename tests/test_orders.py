"""Tests for the order service: create, build, cancel, retry."""

from unittest.mock import MagicMock

import pytest

from fakes import ScriptedAgent, call, tool_use
from mealmate_order.agents.builder_factory import make_builder_factory
from mealmate_order.agents.orders import OrderService
from mealmate_order.agents.scripted import ScriptedCartBuilder
from mealmate_order.agents.tools import ADD_TOOL, COMPLETE_TOOL, SEARCH_TOOL
from mealmate_order.core.errors import SessionError
from mealmate_order.core.retry_utils import NO_RETRY
from mealmate_order.models import OrderStatus
from mealmate_order.utils.memory_utils import load_memory
from mealmate_order.utils.swiggy_account import SwiggyAccount

ITEMS = [
    {"name": "milk", "quantity": 1, "unit": "liter", "category": "dairy"},
    {"name": "basmati rice", "quantity": "1", "unit": "kg", "category": "Grains"},
]


@pytest.fixture
def account_factory(db_path, settings, instamart):
    def factory(user_id):
        return SwiggyAccount(
            user_id, db_path=db_path, client_factory=instamart.factory, settings=settings, retry_config=NO_RETRY
        )
    return factory


@pytest.fixture
def service(store, account_factory):
    return OrderService(store, account_factory, lambda tools: ScriptedCartBuilder(tools, retry_config=NO_RETRY))


def service_with_builder(store, account_factory, builder):
    return OrderService(store, account_factory, lambda tools: builder)


class TestCreate:
    def test_persists_pending_order(self, service, store):
        outcome = service.create_order("user-1", ITEMS, allergens=[" peanut ", ""], family_size=0)

        assert outcome.success
        record = store.get(outcome.order.id)
        assert record.status == OrderStatus.PENDING
        assert record.total_items == 2
        assert record.grocery_items[0].quantity == "1"
        assert record.grocery_items[1].category.value == "grains"
        assert record.allergen_warnings == ["peanut"]
        assert record.family_size == 1

    def test_empty_list_rejected(self, service, store):
        outcome = service.create_order("user-1", [])
        assert not outcome.success
        assert outcome.reason == "invalidRequest"
        assert store.list_for_user("user-1") == []

    def test_blank_item_rejected(self, service):
        outcome = service.create_order("user-1", [{"name": "  "}])
        assert outcome.reason == "invalidRequest"

    def test_manual_prompt(self):
        text = OrderService.manual_prompt(ITEMS, ["gluten"], 3)
        assert "**Family Size:** 3 people" in text
        assert "gluten" in text


class TestProcess:
    def test_requires_swiggy_login(self, service, store, instamart):
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "needsSwiggyAuth"
        assert store.get(order.id).status == OrderStatus.PENDING
        assert instamart.count("search_products") == 0

    def test_requires_an_address(self, connected_account, service, store, instamart):
        instamart.addresses = []
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "needsAddress"
        assert store.get(order.id).status == OrderStatus.PENDING
        assert instamart.count("add_to_cart") == 0

    def test_cart_ready_with_default_address(self, connected_account, service, store):
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.success
        record = store.get(order.id)
        assert record.status == OrderStatus.CART_READY
        assert record.swiggy_cart_id == "cart-1"
        assert record.delivery_address_id == "addr_home"
        assert record.estimated_total == 174.0
        assert record.items_added == ["milk", "basmati rice"]
        assert record.items_not_found == []
        assert outcome.build.termination_reason == "scripted"

    def test_explicit_address_kept(self, connected_account, service, store):
        order = service.create_order("user-1", ITEMS).order
        service.process_order(order.id, "user-1", address_id="addr_work")
        assert store.get(order.id).delivery_address_id == "addr_work"

    def test_partial_cart_lists_missing_items(self, connected_account, service, store, instamart):
        instamart.fail_add = {"p-rice"}
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.success
        assert "(1 items could not be added)" in outcome.message
        record = store.get(order.id)
        assert record.status == OrderStatus.CART_READY
        assert record.items_not_found == ["basmati rice"]

    def test_nothing_added_fails(self, connected_account, service, store, instamart):
        instamart.products = []
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "buildFailed"
        record = store.get(order.id)
        assert record.status == OrderStatus.FAILED
        assert record.items_not_found == ["milk", "basmati rice"]
        assert record.error_message

    def test_session_loss_during_build(self, connected_account, store, account_factory):
        builder = MagicMock()
        builder.build.side_effect = SessionError()
        service = service_with_builder(store, account_factory, builder)
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "needsSwiggyAuth"
        assert store.get(order.id).status == OrderStatus.FAILED
        assert not account_factory("user-1").is_connected()

    def test_builder_crash_fails_order(self, connected_account, store, account_factory):
        builder = MagicMock()
        builder.build.side_effect = RuntimeError("boom")
        service = service_with_builder(store, account_factory, builder)
        order = service.create_order("user-1", ITEMS).order

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "buildFailed"
        record = store.get(order.id)
        assert record.status == OrderStatus.FAILED
        assert record.error_message == "boom"

    def test_only_pending_orders_are_processed(self, connected_account, service):
        order = service.create_order("user-1", ITEMS).order
        service.process_order(order.id, "user-1")

        outcome = service.process_order(order.id, "user-1")

        assert outcome.reason == "invalidState"

    def test_agent_builder_end_to_end(self, connected_account, store, account_factory, settings, db_path):
        agent = ScriptedAgent([
            tool_use(call(SEARCH_TOOL, query="milk")),
            tool_use(call(ADD_TOOL, product_id="p-milk")),
            tool_use(call(COMPLETE_TOOL, summary="Added milk.", items_not_found=["basmati rice"])),
        ])
        service = OrderService(store, account_factory, make_builder_factory(settings, client=agent))

        outcome = service.submit_order("user-1", ITEMS)

        assert outcome.success
        record = store.get(outcome.order.id)
        assert record.status == OrderStatus.CART_READY
        assert record.items_added == ["milk"]
        assert record.items_not_found == ["basmati rice"]
        assert load_memory(record.id, db_path=db_path)

    def test_agent_failure_after_adds_keeps_cart(self, connected_account, store, account_factory, settings):
        agent = ScriptedAgent([
            tool_use(call(SEARCH_TOOL, query="milk")),
            tool_use(call(ADD_TOOL, product_id="p-milk")),
            ConnectionError("model host went away"),
        ])
        service = OrderService(store, account_factory, make_builder_factory(settings, client=agent))

        outcome = service.submit_order("user-1", ITEMS)

        record = store.get(outcome.order.id)
        assert record.status == OrderStatus.CART_READY
        assert record.items_added == ["milk"]
        assert record.items_not_found == ["basmati rice"]
        assert record.estimated_total == 54.0
        assert "cart may be partial" in outcome.message


class TestOwnership:
    def test_unknown_order(self, service):
        assert service.get_order("missing", "user-1").reason == "notFound"

    def test_other_users_order_is_hidden(self, service):
        order = service.create_order("user-1", ITEMS).order
        outcome = service.get_order(order.id, "user-2")
        assert outcome.reason == "forbidden"
        assert outcome.order is None

    def test_list_is_per_user_and_capped(self, service):
        for _ in range(3):
            service.create_order("user-1", ITEMS)
        service.create_order("user-2", ITEMS)

        assert len(service.list_orders("user-1", limit=500)) == 3
        assert len(service.list_orders("user-2")) == 1


class TestCancelAndRetry:
    def test_cancel_pending(self, service, store):
        order = service.create_order("user-1", ITEMS).order

        outcome = service.cancel_order(order.id, "user-1")

        assert outcome.success
        assert store.get(order.id).status == OrderStatus.CANCELLED

    def test_cancel_is_final(self, service):
        order = service.create_order("user-1", ITEMS).order
        service.cancel_order(order.id, "user-1")

        assert service.cancel_order(order.id, "user-1").reason == "invalidState"
        assert service.process_order(order.id, "user-1").reason == "invalidState"

    def test_retry_creates_new_attempt(self, service, store):
        order = service.create_order("user-1", ITEMS, allergens=["peanut"], family_size=4).order
        service.cancel_order(order.id, "user-1")

        outcome = service.retry_order(order.id, "user-1")

        assert outcome.success
        assert outcome.order.id != order.id
        assert outcome.order.status == OrderStatus.PENDING
        assert [i.name for i in outcome.order.grocery_items] == ["milk", "basmati rice"]
        assert outcome.order.allergen_warnings == ["peanut"]
        assert outcome.order.family_size == 4
        assert store.get(order.id).status == OrderStatus.CANCELLED

    def test_retry_needs_failed_or_cancelled(self, service):
        order = service.create_order("user-1", ITEMS).order
        assert service.retry_order(order.id, "user-1").reason == "invalidState"
