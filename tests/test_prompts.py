"""Tests for prompt builders, price estimates and summary parsing."""

from fakes import HOME
from mealmate_order.agents.prompts import (
    build_order_instruction,
    estimate_total,
    extract_not_found,
    generate_handoff_prompt,
    generate_shopping_prompt,
    group_by_category,
)
from mealmate_order.models import GroceryCategory, GroceryItem


def item(name, category, quantity="1", unit=""):
    return GroceryItem(name=name, quantity=quantity, unit=unit, category=category)


class TestEstimateTotal:
    def test_milk_and_rice(self, grocery_items):
        estimate = estimate_total(grocery_items)
        assert (estimate.min, estimate.max) == (104, 156)

    def test_unknown_category_uses_default(self):
        estimate = estimate_total([item("saffron", "luxury")])
        assert (estimate.min, estimate.max) == (40, 60)

    def test_protein(self):
        estimate = estimate_total([item("chicken", "protein"), item("eggs", "protein")])
        assert (estimate.min, estimate.max) == (240, 360)


class TestGrouping:
    def test_categories_in_first_seen_order(self):
        items = [item("rice", "grains"), item("milk", "dairy"), item("atta", "grains")]
        grouped = group_by_category(items)
        assert list(grouped) == [GroceryCategory.GRAINS, GroceryCategory.DAIRY]
        assert [i.name for i in grouped[GroceryCategory.GRAINS]] == ["rice", "atta"]


class TestOrderInstruction:
    def test_lists_items_by_category(self, grocery_items):
        text = build_order_instruction(grocery_items, [], 4)
        assert "family of 4" in text
        assert "Dairy:\n- milk: 1 liter" in text
        assert "Grains:\n- basmati rice: 1 kg" in text
        assert "ALLERGEN" not in text
        assert "order_complete" in text

    def test_allergen_alert(self, grocery_items):
        text = build_order_instruction(grocery_items, ["peanut", "shellfish"], 2)
        assert "ALLERGEN ALERT" in text
        assert "peanut, shellfish" in text


class TestShoppingPrompt:
    def test_manual_prompt(self, grocery_items):
        text = generate_shopping_prompt(grocery_items, ["gluten"], 2)
        assert "**Family Size:** 2 people" in text
        assert "• milk - 1 liter" in text
        assert "I am allergic to: **gluten**" in text


class TestHandoffPrompt:
    def test_small_list(self, grocery_items):
        text = generate_handoff_prompt(grocery_items, HOME, 2)
        assert "**Delivery Address:** Home - 123 MG Road, Koramangala, Bangalore, 560034" in text
        assert "**Shopping List (2 items):**" in text
        assert "milk (1liter)" in text
        assert "Please build my cart!" in text

    def test_large_list_is_processed_by_category(self):
        items = [item(f"vegetable {n}", "vegetables") for n in range(6)]
        items += [item(f"spice {n}", "spices") for n in range(5)]
        text = generate_handoff_prompt(items, HOME, 4)
        assert "Instructions (Large Order)" in text
        assert "Start with the vegetables category." in text

    def test_ten_items_is_not_large(self):
        items = [item(f"vegetable {n}", "vegetables") for n in range(10)]
        assert "Large Order" not in generate_handoff_prompt(items, HOME, 1)


class TestExtractNotFound:
    def test_comma_and_and(self):
        assert extract_not_found("Added 5 items. Not found: saffron, truffle oil and kale.") == [
            "saffron", "truffle oil", "kale",
        ]

    def test_none_reported(self):
        assert extract_not_found("All items added. Not found: none.") == []

    def test_no_marker(self):
        assert extract_not_found("Everything was added to the cart.") == []

    def test_empty(self):
        assert extract_not_found(None) == []
        assert extract_not_found("") == []
