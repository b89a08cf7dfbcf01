"""Shared fixtures: temporary database, settings and fake Instamart service."""

import pytest

from fakes import FakeInstamart
from mealmate_order.core.config import Settings
from mealmate_order.core.retry_utils import NO_RETRY
from mealmate_order.models import GroceryItem
from mealmate_order.utils.order_store import OrderStore
from mealmate_order.utils.swiggy_account import SwiggyAccount


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "mealmate.db")


@pytest.fixture
def settings(db_path):
    return Settings(_env_file=None, db_path=db_path, agent_backend="none", flow_settle_delay_seconds=0)


@pytest.fixture
def instamart():
    return FakeInstamart()


@pytest.fixture
def account(db_path, settings, instamart):
    return SwiggyAccount(
        "user-1", db_path=db_path, client_factory=instamart.factory, settings=settings, retry_config=NO_RETRY
    )


@pytest.fixture
def connected_account(account):
    auth = account.verify_otp("9876543210", "123456")
    assert auth.success
    return account


@pytest.fixture
def store(db_path):
    return OrderStore(db_path)


@pytest.fixture
def grocery_items():
    return [
        GroceryItem(name="milk", quantity="1", unit="liter", category="dairy", source_recipes=["Chai"]),
        GroceryItem(name="basmati rice", quantity="1", unit="kg", category="grains"),
    ]
