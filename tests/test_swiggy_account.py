"""Tests for Swiggy login sessions and the cached address book."""

import pytest

from fakes import HOME, WORK
from mealmate_order.core.errors import RequestValidationError, SessionError, ToolError
from mealmate_order.utils.swiggy_account import normalize_phone


class TestNormalizePhone:
    @pytest.mark.parametrize("raw", ["9876543210", "+91 98765 43210", "919876543210", "98765-43210"])
    def test_accepted_forms(self, raw):
        assert normalize_phone(raw) == "+919876543210"

    @pytest.mark.parametrize("raw", ["", "12345", "98765432101234"])
    def test_rejected(self, raw):
        with pytest.raises(RequestValidationError) as exc:
            normalize_phone(raw)
        assert exc.value.reason == "invalidPhone"


class TestLogin:
    def test_send_otp_normalizes(self, account, instamart):
        assert account.send_otp("98765 43210").success
        assert instamart.otp_phone == "+919876543210"

    def test_otp_must_be_six_digits(self, account, instamart):
        with pytest.raises(RequestValidationError):
            account.verify_otp("9876543210", "12345")
        assert instamart.count("verify_otp") == 0

    def test_wrong_otp_stores_nothing(self, account):
        auth = account.verify_otp("9876543210", "654321")
        assert not auth.success
        assert not account.is_connected()

    def test_verified_session_is_stored(self, connected_account):
        session = connected_account.session()
        assert session.phone == "+919876543210"
        assert session.access_token == "token-1"
        assert session.swiggy_user_id == "swg_3210"
        assert connected_account.is_connected()

    def test_cart_tools_use_session_token(self, connected_account, instamart):
        connected_account.cart_tools("addr_home")
        assert instamart.tokens[-1] == "token-1"

    def test_disconnect(self, connected_account):
        connected_account.disconnect()
        assert not connected_account.is_connected()
        with pytest.raises(SessionError):
            connected_account.cart_tools()


class TestExpiry:
    def test_expired_session_refreshed_once(self, account, instamart):
        instamart.expires_in = -60
        account.verify_otp("9876543210", "123456")

        session = account.session()

        assert session.access_token == "token-2"
        assert session.refresh_token == "refresh-1"
        assert not session.is_expired()
        assert instamart.count("refresh_access_token") == 1

    def test_failed_refresh_disconnects(self, account, instamart):
        instamart.expires_in = -60
        instamart.refresh_ok = False
        account.verify_otp("9876543210", "123456")

        with pytest.raises(SessionError):
            account.session()
        assert not account.is_connected()


class TestAddresses:
    def test_cached_after_first_fetch(self, connected_account, instamart):
        assert connected_account.get_addresses() == [HOME, WORK]
        assert connected_account.get_addresses() == [HOME, WORK]
        assert instamart.count("get_addresses") == 1

    def test_refresh_bypasses_cache(self, connected_account, instamart):
        connected_account.get_addresses()
        instamart.addresses = [WORK]
        assert connected_account.get_addresses(refresh=True) == [WORK]

    def test_failed_refresh_uses_cache(self, connected_account, instamart):
        connected_account.get_addresses()
        instamart.address_error = ToolError("timeout", "get_addresses")
        assert connected_account.get_addresses(refresh=True) == [HOME, WORK]

    def test_failed_fetch_without_cache_raises(self, connected_account, instamart):
        instamart.address_error = ToolError("timeout", "get_addresses")
        with pytest.raises(ToolError):
            connected_account.get_addresses()

    def test_rejected_session_disconnects(self, connected_account, instamart):
        instamart.address_error = SessionError()
        with pytest.raises(SessionError):
            connected_account.get_addresses()
        assert not connected_account.is_connected()

    def test_default_and_lookup(self, connected_account):
        assert connected_account.default_address() == HOME
        assert connected_account.find_address("addr_work") == WORK
        assert connected_account.find_address("addr_moon") is None

    def test_logged_out_user_has_no_addresses(self, account):
        with pytest.raises(SessionError):
            account.get_addresses()
