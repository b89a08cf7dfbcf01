"""
Swiggy Instamart client - cart-mutation operations over JSON-RPC.

Every remote failure surfaces as ToolError, except a rejected or expired
login which surfaces as SessionError.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from ..core.errors import SessionError, ToolError
from ..core.retry_utils import RpcResponseValidator
from ..models.api import AuthResult, DeliveryAddress, OrderPlacement, OtpResult
from ..models.cart import CartSnapshot
from ..models.product import Product

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEFAULT_INSTAMART_URL = "https://mcp.swiggy.com/im"
DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 20


class CartTools(ABC):
    """Operations a cart builder may perform against the remote cart."""

    @property
    @abstractmethod
    def cart_id(self) -> Optional[str]:
        """Remote cart id, known after the first mutation."""

    @abstractmethod
    def search_products(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[Product]:
        """Search the catalog; an empty list is a valid answer."""

    @abstractmethod
    def add_to_cart(self, product_id: str, quantity: int = 1) -> CartSnapshot:
        """Add units of a product and return the updated cart."""

    @abstractmethod
    def remove_from_cart(self, product_id: str) -> CartSnapshot:
        """Remove a product line and return the updated cart."""

    @abstractmethod
    def get_cart(self) -> CartSnapshot:
        """Fetch the current cart."""

    @abstractmethod
    def clear_cart(self) -> None:
        """Empty the cart and forget its id."""

    @abstractmethod
    def place_order(self, cart_id: str, address_id: str, payment_method: str) -> OrderPlacement:
        """Place the cart as an order."""


def clamp_search_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_SEARCH_LIMIT
    return max(1, min(value, MAX_SEARCH_LIMIT))


class InstamartClient(CartTools):
    """Remote cart tools backed by the Swiggy Instamart MCP endpoint."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        address_id: Optional[str] = None,
        cart_id: Optional[str] = None,
        base_url: str = DEFAULT_INSTAMART_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.access_token = access_token
        self.address_id = address_id
        self.base_url = base_url
        self.timeout = timeout
        self._cart_id = cart_id
        self._http = session or requests.Session()
        self._ids = itertools.count(1)

    @property
    def cart_id(self) -> Optional[str]:
        return self._cart_id

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if self.address_id:
            headers["X-Address-Id"] = str(self.address_id)
        if self._cart_id:
            headers["X-Cart-Id"] = str(self._cart_id)
        return headers

    def _rpc(self, method: str, params: Dict[str, Any], tool: str) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            logger.info(f"[INSTAMART] {method} {params}")
            response = self._http.post(
                self.base_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[INSTAMART] {method} transport error: {str(e)}")
            raise ToolError(f"Swiggy MCP request failed: {str(e)}", tool)

        if response.status_code in (401, 403):
            logger.warning(f"[INSTAMART] {method} rejected with HTTP {response.status_code}")
            raise SessionError()

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"[INSTAMART] {method} HTTP error: {str(e)}")
            raise ToolError(
                f"Swiggy MCP error: {response.status_code} {response.reason}",
                tool,
                retry_possible=response.status_code >= 500,
            )

        try:
            data = response.json()
        except ValueError:
            raise ToolError(f"Swiggy MCP returned a non-JSON body for {method}", tool, retry_possible=False)

        result = RpcResponseValidator.validate(data, method, tool)

        if isinstance(result, dict) and result.get("cartId"):
            self._cart_id = str(result["cartId"])

        return result

    @staticmethod
    def _cart_from(result: Any, tool: str) -> CartSnapshot:
        payload = result.get("cart", result) if isinstance(result, dict) else result
        if not isinstance(payload, dict):
            raise ToolError("Swiggy MCP returned no cart", tool, retry_possible=False)
        try:
            return CartSnapshot.model_validate(payload)
        except ValidationError as e:
            raise ToolError(f"Malformed cart from Swiggy MCP: {e.errors()[0]['msg']}", tool, retry_possible=False)

    # ------------------------------------------------------------------
    # Cart-mutation tools
    # ------------------------------------------------------------------

    def search_products(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[Product]:
        query = (query or "").strip()
        if not query:
            raise ToolError("Search query must not be empty", "search_products", retry_possible=False)

        result = self._rpc(
            "instamart/search",
            {"query": query, "limit": clamp_search_limit(limit)},
            "search_products",
        )

        products = []
        for raw in (result or {}).get("products", []):
            try:
                products.append(Product.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"[INSTAMART] Skipping malformed product for '{query}': {e.errors()[0]['msg']}")

        logger.info(f"[INSTAMART] Search '{query}' returned {len(products)} products")
        return products

    def add_to_cart(self, product_id: str, quantity: int = 1) -> CartSnapshot:
        if not product_id:
            raise ToolError("Product id is required", "add_to_cart", retry_possible=False)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ToolError(
                f"Quantity must be a positive whole number, got {quantity!r}",
                "add_to_cart",
                item=str(product_id),
                retry_possible=False,
            )

        try:
            result = self._rpc(
                "instamart/cart/add",
                {"productId": str(product_id), "quantity": quantity},
                "add_to_cart",
            )
        except ToolError as e:
            e.item = str(product_id)
            raise

        cart = self._cart_from(result, "add_to_cart")
        if cart.id:
            self._cart_id = cart.id
        return cart

    def remove_from_cart(self, product_id: str) -> CartSnapshot:
        if not product_id:
            raise ToolError("Product id is required", "remove_from_cart", retry_possible=False)

        result = self._rpc("instamart/cart/remove", {"productId": str(product_id)}, "remove_from_cart")
        return self._cart_from(result, "remove_from_cart")

    def get_cart(self) -> CartSnapshot:
        result = self._rpc("instamart/cart/get", {}, "get_cart")
        cart = self._cart_from(result, "get_cart")
        if cart.id:
            self._cart_id = cart.id
        return cart

    def clear_cart(self) -> None:
        self._rpc("instamart/cart/clear", {}, "clear_cart")
        self._cart_id = None
        logger.info("[INSTAMART] Cart cleared")

    def place_order(self, cart_id: str, address_id: str, payment_method: str) -> OrderPlacement:
        if not cart_id:
            raise ToolError("No cart to place order for", "place_order", retry_possible=False)
        if not address_id:
            raise ToolError("Delivery address is required", "place_order", retry_possible=False)

        result = self._rpc(
            "instamart/order/place",
            {"cartId": cart_id, "addressId": address_id, "paymentMethod": payment_method},
            "place_order",
        )
        try:
            placement = OrderPlacement.model_validate(result)
        except ValidationError as e:
            raise ToolError(f"Malformed order confirmation: {e.errors()[0]['msg']}", "place_order",
                            retry_possible=False)

        logger.info(f"[INSTAMART] Order placed: {placement.external_order_id}")
        return placement

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def send_otp(self, phone: str) -> OtpResult:
        try:
            result = self._rpc("auth/send-otp", {"phone": phone}, "send_otp")
        except (ToolError, SessionError) as e:
            logger.error(f"[INSTAMART] OTP dispatch failed: {e.message}")
            return OtpResult(success=False, error=e.message)

        result = result or {}
        return OtpResult(
            success=result.get("success", True),
            message=result.get("message", "OTP sent successfully"),
            error=result.get("error"),
        )

    def verify_otp(self, phone: str, otp: str) -> AuthResult:
        try:
            result = self._rpc("auth/verify-otp", {"phone": phone, "otp": otp}, "verify_otp")
        except (ToolError, SessionError) as e:
            logger.error(f"[INSTAMART] OTP verification failed: {e.message}")
            return AuthResult(success=False, error=e.message)

        result = result or {}
        if not result.get("accessToken"):
            return AuthResult(success=False, error=result.get("error") or "Verification failed")
        return AuthResult.model_validate({**result, "success": True})

    def refresh_access_token(self, refresh_token: str) -> AuthResult:
        try:
            result = self._rpc("auth/refresh", {"refreshToken": refresh_token}, "refresh_token")
        except (ToolError, SessionError) as e:
            logger.error(f"[INSTAMART] Token refresh failed: {e.message}")
            return AuthResult(success=False, error=e.message)

        result = result or {}
        if not result.get("accessToken"):
            return AuthResult(success=False, error="Token refresh failed")
        return AuthResult.model_validate({**result, "success": True})

    def get_addresses(self) -> List[DeliveryAddress]:
        result = self._rpc("user/addresses", {}, "get_addresses")
        raw_addresses = result.get("addresses", []) if isinstance(result, dict) else (result or [])

        addresses = []
        for raw in raw_addresses:
            try:
                addresses.append(DeliveryAddress.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"[INSTAMART] Skipping malformed address: {e.errors()[0]['msg']}")
        return addresses
