"""Tests for grocery, catalog, cart and account models."""

import pytest
from pydantic import ValidationError

from mealmate_order.models import (
    AuthResult,
    CartBuildRequest,
    CartSnapshot,
    DeliveryAddress,
    GroceryCategory,
    GroceryItem,
    OrderPlacement,
    Product,
    SwiggySession,
)


class TestGroceryItem:
    def test_describe(self):
        assert GroceryItem(name="milk", quantity=1, unit="liter").describe() == "milk: 1 liter"
        assert GroceryItem(name="eggs", quantity="12").describe() == "eggs: 12"

    def test_category_coercion(self):
        assert GroceryItem(name="paneer", category="DAIRY").category == GroceryCategory.DAIRY
        assert GroceryItem(name="foil", category="household").category == GroceryCategory.OTHER

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            GroceryItem(name="   ")

    def test_frozen(self):
        item = GroceryItem(name="milk")
        with pytest.raises(ValidationError):
            item.name = "curd"


class TestProduct:
    def test_remote_aliases(self):
        product = Product.model_validate({"productId": 42, "name": "Milk", "price": 54, "inStock": False})
        assert product.product_id == "42"
        assert product.in_stock is False
        assert product.to_tool_payload()["id"] == "42"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            Product(product_id="p", name="x", price=-1)


class TestCartSnapshot:
    def test_parses_remote_payload(self):
        cart = CartSnapshot.model_validate({
            "cartId": "cart-9",
            "items": [
                {"productId": "p-milk", "name": "Milk", "quantity": 2, "price": 54},
                {"id": "p-rice", "name": "Rice", "quantity": 1, "price": 120, "total": 110},
            ],
            "subtotal": 218,
            "deliveryFee": 0,
            "total": 218,
        })

        assert cart.id == "cart-9"
        assert cart.items[0].line_total == 108
        assert cart.items[1].line_total == 110
        assert cart.item_count == 3
        assert cart.product_ids() == ["p-milk", "p-rice"]
        assert cart.to_tool_payload()["itemCount"] == 3


class TestAccountModels:
    def test_address_aliases_and_text(self):
        address = DeliveryAddress.model_validate({
            "addressId": 7, "annotation": "Home", "addressLine1": "12 Residency Road",
            "landmark": "Opp. park", "city": "Bangalore", "pincode": 560025, "isDefault": True,
        })
        assert address.id == "7"
        assert address.label == "Home"
        assert address.is_default
        assert address.display_text() == "12 Residency Road, Opp. park, Bangalore, 560025"

    def test_order_placement_aliases(self):
        placement = OrderPlacement.model_validate({"swiggyOrderId": "SWGY1", "estimatedDelivery": "30-40 mins"})
        assert placement.external_order_id == "SWGY1"
        assert placement.estimated_delivery == "30-40 mins"

    def test_session_expiry(self):
        auth = AuthResult(success=True, access_token="t", expires_in=-5)
        assert SwiggySession.from_auth("user-1", "+919876543210", auth).is_expired()

        auth = AuthResult(success=True, access_token="t")
        assert not SwiggySession.from_auth("user-1", "+919876543210", auth).is_expired()


class TestCartBuildRequest:
    def test_requires_items(self):
        with pytest.raises(ValidationError):
            CartBuildRequest(grocery_items=[])

    def test_allergens_cleaned(self):
        request = CartBuildRequest(grocery_items=[GroceryItem(name="milk")], allergens=[" nuts ", "", "  "])
        assert request.allergens == ["nuts"]

    def test_family_size_positive(self):
        with pytest.raises(ValidationError):
            CartBuildRequest(grocery_items=[GroceryItem(name="milk")], family_size=0)
