"""Tests for tool schemas and the tool dispatcher."""

import pytest

from fakes import FakeInstamart
from mealmate_order.agents.tools import (
    ADD_TOOL,
    AGENT_TOOL_NAMES,
    CLEAR_CART_TOOL,
    COMPLETE_TOOL,
    GET_CART_TOOL,
    PLACE_ORDER_TOOL,
    REMOVE_TOOL,
    SEARCH_TOOL,
    TOOL_SCHEMAS,
    CartToolbox,
    agent_tool_schemas,
)
from mealmate_order.core.errors import SessionError
from mealmate_order.models import ToolCall


def run(toolbox, name, **arguments):
    return toolbox.execute(ToolCall(id="call-1", name=name, input=arguments))


class TestSchemas:
    def test_every_schema_is_an_object(self):
        for name, schema in TOOL_SCHEMAS.items():
            assert schema["name"] == name
            assert schema["parameters"]["type"] == "object"

    def test_agent_tools_exclude_checkout(self):
        names = [s["name"] for s in agent_tool_schemas()]
        assert PLACE_ORDER_TOOL not in names
        assert names == list(AGENT_TOOL_NAMES)

    def test_completion_signal_requires_summary(self):
        assert TOOL_SCHEMAS[COMPLETE_TOOL]["parameters"]["required"] == ["summary"]


class TestCartToolbox:
    def test_search_returns_products_and_count(self):
        result = run(CartToolbox(FakeInstamart()), SEARCH_TOOL, query="rice")
        assert not result.is_error
        assert result.content["count"] == 1
        assert result.content["products"][0]["name"] == "India Gate Basmati Rice"

    def test_add_then_get_cart(self):
        tools = FakeInstamart()
        toolbox = CartToolbox(tools)

        added = run(toolbox, ADD_TOOL, product_id="p-milk", quantity=2.0)
        cart = run(toolbox, GET_CART_TOOL)

        assert added.content["success"] is True
        assert tools.lines == {"p-milk": 2}
        assert cart.content["items"][0]["quantity"] == 2
        assert cart.content["total"] == 108.0

    def test_remove_and_clear(self):
        tools = FakeInstamart()
        toolbox = CartToolbox(tools)
        run(toolbox, ADD_TOOL, product_id="p-milk")
        run(toolbox, ADD_TOOL, product_id="p-rice")

        run(toolbox, REMOVE_TOOL, product_id="p-milk")
        assert list(tools.lines) == ["p-rice"]

        cleared = run(toolbox, CLEAR_CART_TOOL)
        assert cleared.content["success"] is True
        assert tools.lines == {}
        assert tools.cart_id is None

    def test_tool_error_becomes_error_result(self):
        result = run(CartToolbox(FakeInstamart()), REMOVE_TOOL, product_id="p-milk")
        assert result.is_error
        assert "not in cart" in result.content["error"]

    def test_numeric_string_quantity_coerced(self):
        tools = FakeInstamart()
        run(CartToolbox(tools), ADD_TOOL, product_id="p-milk", quantity="3")
        assert tools.lines == {"p-milk": 3}

    def test_missing_arguments(self):
        tools = FakeInstamart()
        result = run(CartToolbox(tools), ADD_TOOL, quantity=1)
        assert result.is_error
        assert tools.calls == []

    def test_unknown_tool(self):
        result = run(CartToolbox(FakeInstamart()), "swiggy_checkout_now")
        assert result.is_error
        assert "Unknown tool" in result.content["error"]

    def test_place_order_refused_for_agent(self):
        tools = FakeInstamart()
        result = run(CartToolbox(tools), PLACE_ORDER_TOOL, address_id="addr_home", payment_method="COD")
        assert result.is_error
        assert tools.count("place_order") == 0

    def test_place_order_allowed_when_unrestricted(self):
        tools = FakeInstamart()
        run(CartToolbox(tools), ADD_TOOL, product_id="p-milk")
        result = run(CartToolbox(tools, allowed=None), PLACE_ORDER_TOOL, address_id="addr_home",
                     payment_method="COD")
        assert not result.is_error
        assert tools.placed_with == ("cart-1", "addr_home", "COD")

    def test_session_error_is_not_swallowed(self):
        tools = FakeInstamart()
        tools.session_error_on = "search_products"
        with pytest.raises(SessionError):
            run(CartToolbox(tools), SEARCH_TOOL, query="milk")

    def test_completion_signal_acknowledged(self):
        result = run(CartToolbox(FakeInstamart()), COMPLETE_TOOL, summary="done")
        assert result.content == {"acknowledged": True}
