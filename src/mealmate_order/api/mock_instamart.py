"""
FastAPI service that imitates the Swiggy Instamart MCP endpoint.
Speaks the same JSON-RPC methods as InstamartClient against an in-memory
catalog, with per-token carts, a fixed demo OTP and simulated order placement.
Used for demos and local development when the real service is unavailable.
"""

import logging
import random
import re
import secrets
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEMO_OTP = "123456"
TOKEN_TTL_SECONDS = 3600
FREE_DELIVERY_THRESHOLD = 199.0
DELIVERY_FEE = 30.0
MAX_SEARCH_LIMIT = 20

# JSON-RPC error codes
INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601
INVALID_REQUEST = -32600
UNAUTHORIZED = 401
OUT_OF_STOCK = -32001

DEMO_ADDRESSES = [
    {
        "id": "addr_demo_home",
        "label": "Home",
        "addressLine1": "123 MG Road, Koramangala",
        "landmark": "Near Forum Mall",
        "city": "Bangalore",
        "pincode": "560034",
        "isDefault": True,
    },
    {
        "id": "addr_demo_work",
        "label": "Work",
        "addressLine1": "456 Tech Park, Whitefield",
        "landmark": "Building 5",
        "city": "Bangalore",
        "pincode": "560066",
        "isDefault": False,
    },
]

# (keyword, display name, price, pack size)
CATALOG_ENTRIES = [
    ("onion", "Fresh Onion", 40, "1 kg"),
    ("potato", "Fresh Potato", 30, "1 kg"),
    ("tomato", "Hybrid Tomato", 50, "1 kg"),
    ("carrot", "Ooty Carrot", 45, "500 g"),
    ("ginger", "Fresh Ginger", 80, "250 g"),
    ("garlic", "Garlic", 60, "250 g"),
    ("green chilli", "Green Chilli", 30, "100 g"),
    ("capsicum", "Green Capsicum", 60, "500 g"),
    ("spinach", "Palak Spinach", 30, "1 bunch"),
    ("coriander", "Coriander Leaves", 20, "1 bunch"),
    ("banana", "Robusta Banana", 50, "6 pcs"),
    ("apple", "Shimla Apple", 150, "1 kg"),
    ("lemon", "Lemon", 60, "250 g"),
    ("milk", "Nandini Toned Milk", 60, "1 l"),
    ("curd", "Nandini Curd", 45, "500 g"),
    ("butter", "Amul Butter", 55, "100 g"),
    ("cheese", "Amul Cheese Slices", 120, "200 g"),
    ("paneer", "Milky Mist Paneer", 90, "200 g"),
    ("ghee", "Amul Ghee", 250, "500 ml"),
    ("rice", "India Gate Basmati Rice", 70, "1 kg"),
    ("atta", "Aashirvaad Whole Wheat Atta", 50, "1 kg"),
    ("bread", "Modern Sandwich Bread", 40, "400 g"),
    ("oats", "Quaker Oats", 90, "500 g"),
    ("turmeric", "Everest Turmeric Powder", 25, "100 g"),
    ("cumin", "Cumin Seeds", 45, "100 g"),
    ("garam masala", "MDH Garam Masala", 50, "100 g"),
    ("salt", "Tata Salt", 25, "1 kg"),
    ("chicken", "Chicken Curry Cut", 220, "500 g"),
    ("egg", "Farm Eggs", 80, "12 pcs"),
    ("fish", "Rohu Fish Curry Cut", 280, "500 g"),
    ("toor dal", "Tata Sampann Toor Dal", 125, "1 kg"),
    ("moong dal", "Tata Sampann Moong Dal", 130, "1 kg"),
    ("peanut", "Roasted Peanuts", 65, "200 g"),
    ("oil", "Fortune Sunflower Oil", 150, "1 l"),
    ("sugar", "Madhur Sugar", 50, "1 kg"),
    ("tea", "Tata Tea Gold", 120, "250 g"),
    ("saffron", "Kashmiri Saffron", 350, "1 g"),
]

# Catalog entries listed but never purchasable
OUT_OF_STOCK_KEYWORDS = {"saffron"}

PHONE_PATTERN = re.compile(r"^(\+91)?\d{10}$")


def _slug(keyword: str) -> str:
    return keyword.replace(" ", "_")


CATALOG: Dict[str, Dict[str, Any]] = {
    f"im_{_slug(keyword)}": {
        "keyword": keyword,
        "productId": f"im_{_slug(keyword)}",
        "name": name,
        "price": float(price),
        "mrp": float(round(price * 1.1)),
        "unit": unit,
        "inStock": keyword not in OUT_OF_STOCK_KEYWORDS,
    }
    for keyword, name, price, unit in CATALOG_ENTRIES
}


class RpcError(Exception):
    """JSON-RPC error returned in the response envelope."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class MockInstamartState:
    """In-memory sessions, carts and placed orders."""

    def __init__(self):
        self.access_tokens: Dict[str, Dict[str, Any]] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.carts: Dict[str, Dict[str, Any]] = {}
        self.orders: Dict[str, Dict[str, Any]] = {}

    def issue_tokens(self, phone: str) -> Dict[str, Any]:
        access_token = secrets.token_hex(16)
        refresh_token = secrets.token_hex(16)
        self.access_tokens[access_token] = {"phone": phone, "expires_at": time.time() + TOKEN_TTL_SECONDS}
        self.refresh_tokens[refresh_token] = phone
        return {
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "expiresIn": TOKEN_TTL_SECONDS,
            "userId": f"swg_{phone[-4:]}",
        }

    def phone_for(self, access_token: Optional[str]) -> str:
        session = self.access_tokens.get(access_token or "")
        if not session or session["expires_at"] <= time.time():
            raise RpcError(UNAUTHORIZED, "Invalid token")
        return session["phone"]

    def cart_for(self, access_token: str) -> Dict[str, Any]:
        cart = self.carts.get(access_token)
        if cart is None:
            cart = {"cartId": f"cart_{uuid.uuid4().hex[:12]}", "lines": {}}
            self.carts[access_token] = cart
        return cart

    def reset(self) -> None:
        self.__init__()


STATE = MockInstamartState()


def cart_payload(cart: Dict[str, Any]) -> Dict[str, Any]:
    items = []
    for product_id, quantity in cart["lines"].items():
        product = CATALOG[product_id]
        items.append({
            "productId": product_id,
            "name": product["name"],
            "quantity": quantity,
            "price": product["price"],
            "total": round(product["price"] * quantity, 2),
        })

    subtotal = round(sum(i["total"] for i in items), 2)
    delivery_fee = 0.0 if not items or subtotal >= FREE_DELIVERY_THRESHOLD else DELIVERY_FEE
    return {
        "cartId": cart["cartId"],
        "items": items,
        "subtotal": subtotal,
        "deliveryFee": delivery_fee,
        "taxes": 0.0,
        "total": round(subtotal + delivery_fee, 2),
        "itemCount": sum(i["quantity"] for i in items),
    }


def search_catalog(query: str, limit: int) -> List[Dict[str, Any]]:
    """Keyword match in either direction, so 'basmati rice' finds rice."""
    query = query.lower().strip()
    matches = [
        p for p in CATALOG.values()
        if query in p["keyword"] or p["keyword"] in query or query in p["name"].lower()
    ]
    return [{k: v for k, v in p.items() if k != "keyword"} for p in matches[:limit]]


def _require(params: Dict[str, Any], key: str) -> Any:
    value = params.get(key)
    if value in (None, ""):
        raise RpcError(INVALID_PARAMS, f"Missing parameter: {key}")
    return value


def _find_address(address_id: str) -> Dict[str, Any]:
    for address in DEMO_ADDRESSES:
        if address["id"] == address_id:
            return address
    raise RpcError(INVALID_PARAMS, f"Unknown address: {address_id}")


# ----------------------------------------------------------------------
# Method handlers
# ----------------------------------------------------------------------

def send_otp(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    phone = str(_require(params, "phone"))
    if not PHONE_PATTERN.match(phone):
        raise RpcError(INVALID_PARAMS, "Invalid phone number")
    logger.info(f"[MOCK] OTP requested for {phone[-4:]}")
    return {"success": True, "message": "OTP sent successfully"}


def verify_otp(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    phone = str(_require(params, "phone"))
    otp = str(_require(params, "otp"))
    if otp != DEMO_OTP:
        logger.warning(f"[MOCK] Wrong OTP for {phone[-4:]}")
        return {"success": False, "error": "Invalid OTP. Please try again."}
    return {"success": True, **STATE.issue_tokens(phone)}


def refresh_token(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    phone = STATE.refresh_tokens.pop(str(_require(params, "refreshToken")), None)
    if phone is None:
        return {"success": False, "error": "Invalid refresh token"}
    return {"success": True, **STATE.issue_tokens(phone)}


def get_addresses(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    return {"addresses": DEMO_ADDRESSES}


def search(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    query = str(_require(params, "query"))
    try:
        limit = int(params.get("limit", 5))
    except (TypeError, ValueError):
        raise RpcError(INVALID_PARAMS, "limit must be an integer")
    limit = max(1, min(limit, MAX_SEARCH_LIMIT))
    return {"products": search_catalog(query, limit)}


def add_to_cart(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    product_id = str(_require(params, "productId"))
    quantity = params.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise RpcError(INVALID_PARAMS, "quantity must be a positive integer")

    product = CATALOG.get(product_id)
    if product is None:
        raise RpcError(INVALID_PARAMS, f"Product not found: {product_id}")
    if not product["inStock"]:
        raise RpcError(OUT_OF_STOCK, f"{product['name']} is out of stock")

    cart = STATE.cart_for(token)
    cart["lines"][product_id] = cart["lines"].get(product_id, 0) + quantity
    return {"cartId": cart["cartId"], "cart": cart_payload(cart)}


def remove_from_cart(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    product_id = str(_require(params, "productId"))
    cart = STATE.cart_for(token)
    if product_id not in cart["lines"]:
        raise RpcError(INVALID_PARAMS, f"Product not in cart: {product_id}")
    del cart["lines"][product_id]
    return {"cartId": cart["cartId"], "cart": cart_payload(cart)}


def get_cart(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    cart = STATE.cart_for(token)
    return {"cartId": cart["cartId"], "cart": cart_payload(cart)}


def clear_cart(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    STATE.carts.pop(token, None)
    return {"success": True}


def place_order(params: Dict[str, Any], token: Optional[str]) -> Dict[str, Any]:
    STATE.phone_for(token)
    cart_id = str(_require(params, "cartId"))
    address = _find_address(str(_require(params, "addressId")))
    if str(params.get("paymentMethod", "")).upper() != "COD":
        raise RpcError(INVALID_PARAMS, "Only Cash on Delivery (COD) is supported")

    cart = STATE.carts.get(token)
    if cart is None or cart["cartId"] != cart_id:
        raise RpcError(INVALID_PARAMS, f"Unknown cart: {cart_id}")
    if not cart["lines"]:
        raise RpcError(INVALID_PARAMS, "Cart is empty")

    payload = cart_payload(cart)
    order_id = f"SWGY{str(int(time.time() * 1000))[-8:]}{secrets.token_hex(2).upper()[:3]}"
    low = random.randint(25, 44)
    order = {
        "swiggyOrderId": order_id,
        "estimatedDelivery": f"{low}-{low + 10} mins",
        "status": "CONFIRMED",
        "deliveryAddress": f"{address['label']}: {address['addressLine1']}",
        "totalAmount": payload["total"],
    }
    STATE.orders[order_id] = {**order, "items": payload["items"], "placedAt": datetime.utcnow().isoformat()}
    STATE.carts.pop(token, None)
    logger.info(f"[MOCK] Order {order_id} placed for cart {cart_id}")
    return order


METHODS = {
    "auth/send-otp": send_otp,
    "auth/verify-otp": verify_otp,
    "auth/refresh": refresh_token,
    "user/addresses": get_addresses,
    "instamart/search": search,
    "instamart/cart/add": add_to_cart,
    "instamart/cart/remove": remove_from_cart,
    "instamart/cart/get": get_cart,
    "instamart/cart/clear": clear_cart,
    "instamart/order/place": place_order,
}


# ----------------------------------------------------------------------
# App
# ----------------------------------------------------------------------

app = FastAPI(title="Mock Swiggy Instamart")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.post("/im")
def rpc(payload: Any = Body(...), authorization: Optional[str] = Header(None)) -> dict:
    """Single JSON-RPC 2.0 endpoint for every Instamart method."""
    request_id = payload.get("id") if isinstance(payload, dict) else None

    try:
        if not isinstance(payload, dict) or payload.get("jsonrpc") != "2.0" or "method" not in payload:
            raise RpcError(INVALID_REQUEST, "Invalid JSON-RPC request")

        method = payload["method"]
        handler = METHODS.get(method)
        if handler is None:
            raise RpcError(METHOD_NOT_FOUND, f"Method not found: {method}")

        params = payload.get("params") or {}
        if not isinstance(params, dict):
            raise RpcError(INVALID_PARAMS, "params must be an object")

        logger.info(f"[MOCK] {method}")
        result = handler(params, _bearer(authorization))
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    except RpcError as e:
        logger.warning(f"[MOCK] RPC error {e.code}: {e.message}")
        return {"jsonrpc": "2.0", "id": request_id, "error": {"code": e.code, "message": e.message}}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
