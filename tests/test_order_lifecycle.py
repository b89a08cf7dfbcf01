"""Tests for the order status lifecycle and its SQLite store."""

import pytest

from mealmate_order.core.errors import OrderTransitionError, TerminalRecordError
from mealmate_order.models import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, OrderRecord, OrderStatus
from mealmate_order.utils.order_store import OrderNotFoundError

FORWARD = [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.CART_READY, OrderStatus.CONFIRMED]


@pytest.fixture
def record(grocery_items):
    return OrderRecord(user_id="user-1", grocery_items=grocery_items)


class TestOrderStatus:
    def test_placed_is_confirmed(self):
        assert OrderStatus.PLACED is OrderStatus.CONFIRMED
        assert OrderStatus("PLACED") is OrderStatus.CONFIRMED
        assert OrderStatus("placed") is OrderStatus.CONFIRMED

    def test_terminal_statuses(self):
        assert {s for s in OrderStatus if s.is_terminal} == set(TERMINAL_STATUSES)
        for status in TERMINAL_STATUSES:
            assert ALLOWED_TRANSITIONS[status] == frozenset()

    def test_no_backward_moves(self):
        for i, status in enumerate(FORWARD):
            for earlier in FORWARD[:i + 1]:
                assert earlier not in ALLOWED_TRANSITIONS[status]


class TestOrderRecord:
    def test_defaults(self, record):
        assert record.status == OrderStatus.PENDING
        assert record.total_items == 2
        assert record.id

    def test_requires_items(self):
        with pytest.raises(ValueError):
            OrderRecord(user_id="user-1", grocery_items=[])

    def test_forward_path(self, record):
        processing = record.transition_to(OrderStatus.PROCESSING, delivery_address_id="addr_home")
        ready = processing.transition_to(OrderStatus.CART_READY, swiggy_cart_id="cart-1")
        confirmed = ready.transition_to("CONFIRMED", swiggy_order_id="SWGY1")

        assert record.status == OrderStatus.PENDING
        assert confirmed.status == OrderStatus.CONFIRMED
        assert confirmed.delivery_address_id == "addr_home"
        assert confirmed.swiggy_cart_id == "cart-1"
        assert confirmed.updated_at >= record.updated_at

    def test_cannot_skip_cart(self, record):
        with pytest.raises(OrderTransitionError) as exc:
            record.transition_to(OrderStatus.CONFIRMED)
        assert exc.value.current == "PENDING"
        assert exc.value.target == "CONFIRMED"

    def test_cannot_move_backward(self, record):
        ready = record.transition_to(OrderStatus.PROCESSING).transition_to(OrderStatus.CART_READY)
        with pytest.raises(OrderTransitionError):
            ready.transition_to(OrderStatus.PROCESSING)

    @pytest.mark.parametrize("terminal", [OrderStatus.FAILED, OrderStatus.CANCELLED])
    def test_terminal_records_are_frozen(self, record, terminal):
        ended = record.transition_to(terminal)
        with pytest.raises(TerminalRecordError):
            ended.transition_to(OrderStatus.PROCESSING)
        with pytest.raises(TerminalRecordError):
            ended.transition_to(terminal)


class TestOrderStore:
    def test_round_trip(self, store, record):
        store.create(record)
        loaded = store.get(record.id)

        assert loaded.id == record.id
        assert loaded.status == OrderStatus.PENDING
        assert loaded.grocery_items == record.grocery_items
        assert loaded.grocery_items[0].source_recipes == ["Chai"]

    def test_missing_order(self, store):
        assert store.get("nope") is None
        with pytest.raises(OrderNotFoundError):
            store.transition("nope", OrderStatus.PROCESSING)

    def test_transition_persists(self, store, record):
        store.create(record)
        store.transition(record.id, OrderStatus.PROCESSING)
        store.transition(record.id, OrderStatus.CART_READY, items_added=["milk"], items_not_found=["basmati rice"])

        loaded = store.get(record.id)
        assert loaded.status == OrderStatus.CART_READY
        assert loaded.items_added == ["milk"]
        assert loaded.items_not_found == ["basmati rice"]

    def test_refused_transition_leaves_row_untouched(self, store, record):
        store.create(record)
        store.transition(record.id, OrderStatus.CANCELLED)

        with pytest.raises(TerminalRecordError):
            store.transition(record.id, OrderStatus.PROCESSING, error_message="should not stick")

        loaded = store.get(record.id)
        assert loaded.status == OrderStatus.CANCELLED
        assert loaded.error_message is None

    def test_raw_update_cannot_reopen_terminal_record(self, store, record):
        store.create(record)
        store.transition(record.id, OrderStatus.CANCELLED)

        with pytest.raises(TerminalRecordError):
            store.update(record.id, lambda r: r.model_copy(update={"status": OrderStatus.PENDING}))
        with pytest.raises(TerminalRecordError):
            store.update(record.id, lambda r: r.model_copy(update={"error_message": "edited"}))

        loaded = store.get(record.id)
        assert loaded.status == OrderStatus.CANCELLED
        assert loaded.error_message is None

    def test_raw_update_follows_lifecycle(self, store, record):
        store.create(record)

        with pytest.raises(OrderTransitionError):
            store.update(record.id, lambda r: r.model_copy(update={"status": OrderStatus.CONFIRMED}))
        updated = store.update(record.id, lambda r: r.model_copy(update={"delivery_address_id": "addr_home"}))

        assert updated.status == OrderStatus.PENDING
        assert store.get(record.id).delivery_address_id == "addr_home"

    def test_list_newest_first(self, store, grocery_items):
        first = store.create(OrderRecord(user_id="user-1", grocery_items=grocery_items))
        second = store.create(OrderRecord(user_id="user-1", grocery_items=grocery_items))
        store.create(OrderRecord(user_id="user-2", grocery_items=grocery_items))

        orders = store.list_for_user("user-1")

        assert [o.id for o in orders] == [second.id, first.id]
        assert len(store.list_for_user("user-1", limit=1)) == 1
