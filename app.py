"""Public-facing Flask application for the FarmTech storefront API."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

import config
from assistant import respond_to_message
from auth import current_user, current_user_id, is_admin, login_required
from conversation import handle_option, welcome
from database import (
    EmptyCartError,
    InsufficientStockError,
    PRODUCT_SORTS,
    add_to_wishlist,
    calculate_totals,
    clear_user_cart,
    clear_user_otp,
    create_user,
    fetch_orders,
    fetch_products,
    fetch_products_by_ids,
    fetch_user_cart,
    fetch_wishlist,
    format_order_reference,
    get_order,
    get_product,
    get_user_by_email,
    init_db,
    place_order,
    public_user,
    remove_from_wishlist,
    remove_user_cart_item,
    set_cart_quantity,
    set_user_otp,
    update_user,
)
from mailer import send_order_confirmation_email, send_otp_email
from payments import PaymentGatewayError, create_gateway_order, gateway_configured
from recommendations import recommend_for_farm
from security import (
    generate_otp,
    generate_token,
    hash_password,
    verify_otp,
    verify_password,
    verify_payment_signature,
)
from validators import (
    first_error,
    validate_email_payload,
    validate_otp_payload,
    validate_password,
    validate_shipping_address,
)

config.configure_logging()

# Ensure the database and seed data exist before serving.
init_db()

app = Flask(__name__)
app.config["SECRET_KEY"] = config.SECRET_KEY
app.config["RATELIMIT_ENABLED"] = config.RATELIMIT_ENABLED
app.debug = config.DEBUG

CORS(app, resources={r"/api/*": {"origins": config.ALLOWED_ORIGINS}}, supports_credentials=True)

CHAT_PATH = "/api/chat"
CHAT_LIMIT_MESSAGE = "Too many requests. Please wait a moment before asking again."
OTP_LIMIT_MESSAGE = "Too many OTP requests. Please wait a minute and try again."


def client_ip() -> str:
    """Return the caller's address, honouring proxy headers."""

    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.headers.get("X-Real-IP") or request.remote_addr or "unknown"


limiter = Limiter(client_ip, app=app, storage_uri="memory://", default_limits=[])


# --------------------------------------------------------------------------------------
# Request and response helpers
# --------------------------------------------------------------------------------------


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _error(message: str, status: int, **extra: Any):
    return jsonify({"success": False, "message": message, **extra}), status


def _parse_quantity(raw: object, default: Optional[int] = None) -> Optional[int]:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _parse_id(raw: object) -> Optional[int]:
    if isinstance(raw, bool):
        return None


def _text_or_none(raw: object) -> Optional[str]:
    return raw if isinstance(raw, str) else None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _cart_snapshot(user_id: int) -> dict[str, object]:
    """Return cart lines with product details plus the computed totals."""

    cart = fetch_user_cart(user_id)
    products = fetch_products_by_ids(cart.keys())
    items: list[dict[str, object]] = []
    for product in products:
        quantity = cart.get(int(product["id"]), 0)
        if quantity <= 0:
            continue
        items.append(
            {
                "product": product,
                "quantity": quantity,
                "line_total": round(float(product["final_price"]) * quantity, 2),
            }
        )
    totals = calculate_totals(
        {"price": item["product"]["price"], "discount": item["product"]["discount"], "quantity": item["quantity"]}
        for item in items
    )
    return {"items": items, **totals}


def _auth_response(user: Mapping[str, object], message: str):
    return jsonify(
        {
            "success": True,
            "message": message,
            "token": generate_token(int(user["id"])),
            "user": public_user(user),
        }
    )


def register_error_handlers(flask_app: Flask) -> None:
    """Answer every failure with the ``{success: false, message}`` JSON shape."""

    @flask_app.errorhandler(IntegrityError)
    def handle_integrity_error(error: IntegrityError):
        flask_app.logger.warning("Integrity error: %s", error.orig)
        return _error("A record with this field already exists", 400)

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        status = error.code or 500
        if status == 429:
            if request.path == CHAT_PATH:
                body = {
                    "success": False,
                    "response": CHAT_LIMIT_MESSAGE,
                    "options": [{"id": "browse", "label": "Browse Products"}],
                }
                return jsonify(body), 429
            return _error(OTP_LIMIT_MESSAGE if request.path.endswith("/send-otp") else "Too many requests", 429)
        return _error(error.description or error.name, status)

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        flask_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        message = str(error) if flask_app.debug else "Server error"
        return _error(message, 500)


register_error_handlers(app)


# --------------------------------------------------------------------------------------
# Authentication
# --------------------------------------------------------------------------------------


def _issue_otp(user_id: int, email: str) -> bool:
    otp, otp_hash, expires_at = generate_otp()
    set_user_otp(user_id, otp_hash, expires_at)
    return send_otp_email(email, otp)


@app.post("/api/auth/signup")
def signup():
    """Create a password account and email a verification OTP."""

    data = _json_body()
    if not data.get("email") or not data.get("name") or not data.get("password"):
        return _error("Email, name, and password are required", 400)

    errors = validate_email_payload(data, require_name=True)
    if errors:
        return _error(first_error(errors), 400, errors=errors)
    password_error = validate_password(data.get("password"))
    if password_error:
        return _error(password_error, 400)

    email = str(data["email"]).strip().lower()
    if get_user_by_email(email):
        return _error("User already exists with this email", 400)

    user_id = create_user(str(data["name"]).strip(), email, hash_password(str(data["password"])))
    app.logger.info("Created account %s for %s", user_id, email)

    if not _issue_otp(user_id, email):
        return _error("User created but failed to send OTP email", 500)

    return (
        jsonify(
            {
                "success": True,
                "message": "Signup successful! OTP sent to your email for verification",
                "email": email,
            }
        ),
        201,
    )


@app.post("/api/auth/send-otp")
@limiter.limit(config.OTP_RATE_LIMIT)
def send_otp():
    """Email a login OTP, creating an OTP-only account for new emails."""

    data = _json_body()
    if not data.get("email"):
        return _error("Email is required", 400)
    errors = validate_email_payload({"email": data.get("email")})
    if errors:
        return _error(first_error(errors), 400, errors=errors)

    email = str(data["email"]).strip().lower()
    name = str(data.get("name") or "").strip()
    user = get_user_by_email(email)
    if not user:
        if not name:
            return _error("Name is required for new users", 400)
        user_id = create_user(name, email)
    else:
        user_id = int(user["id"])
        if data.get("isNewUser") and name:
            update_user(user_id, name=name)

    if not _issue_otp(user_id, email):
        return _error("Failed to send OTP email", 500)

    return jsonify({"success": True, "message": "OTP sent to your email", "email": email})


@app.post("/api/auth/verify-otp")
def verify_otp_login():
    data = _json_body()
    if not data.get("email") or not data.get("otp"):
        return _error("Email and OTP are required", 400)
    errors = validate_otp_payload(data)
    if errors:
        return _error(first_error(errors), 400, errors=errors)

    user = get_user_by_email(str(data["email"]))
    if not user:
        return _error("User not found", 404)

    if not verify_otp(str(data["otp"]).strip(), user.get("otp_hash"), user.get("otp_expiry")):
        return _error("Invalid or expired OTP", 400)

    clear_user_otp(int(user["id"]))
    refreshed = get_user_by_email(str(data["email"])) or user
    return _auth_response(refreshed, "Login successful")


@app.post("/api/auth/login")
def login():
    data = _json_body()
    email = str(data.get("email") or "").strip()
    password = data.get("password")
    if not email or not password:
        return _error("Email and password are required", 400)

    user = get_user_by_email(email)
    if not user:
        return _error("Invalid email or password", 401)
    if not user.get("password_hash"):
        return _error("Please use OTP login or set a password first", 400)
    if not verify_password(str(password), user["password_hash"]):
        return _error("Invalid email or password", 401)

    if not user.get("is_verified"):
        user = update_user(int(user["id"]), is_verified=True) or user
    return _auth_response(user, "Login successful")


# --------------------------------------------------------------------------------------
# Catalogue
# --------------------------------------------------------------------------------------


@app.get("/api/products")
def list_products():
    """Catalogue listing with optional category, price and text filters and a sort order."""

    sort = request.args.get("sort", "newest")
    category = request.args.get("category") or None
    if category == "All":
        category = None
    products = fetch_products(
        category=category,
        min_price=request.args.get("minPrice", type=float),
        max_price=request.args.get("maxPrice", type=float),
        search=(request.args.get("search") or "").strip() or None,
        sort=sort if sort in PRODUCT_SORTS else "newest",
    )
    return jsonify({"success": True, "data": products})


@app.get("/api/products/<int:product_id>")
def product_detail(product_id: int):
    product = get_product(product_id)
    if not product:
        return _error("Product not found", 404)
    return jsonify({"success": True, "data": product})


# --------------------------------------------------------------------------------------
# Cart
# --------------------------------------------------------------------------------------


@app.get("/api/cart")
@login_required
def view_cart():
    return jsonify({"success": True, "data": _cart_snapshot(current_user_id())})


@app.post("/api/cart")
@login_required
def add_to_cart():
    """Add a product to the cart or increase the quantity already there."""

    user_id = current_user_id()
    data = _json_body()
    product_id = _parse_id(data.get("productId"))
    quantity = _parse_quantity(data.get("quantity"), default=1)
    if product_id is None:
        return _error("Product ID is required", 400)
    if quantity is None or quantity < 1:
        return _error("Quantity must be at least 1", 400)

    product = get_product(product_id)
    if not product:
        return _error("Product not found", 404)

    new_quantity = fetch_user_cart(user_id).get(product_id, 0) + quantity
    if int(product["stock"]) < new_quantity:
        return _error("Insufficient stock", 400)

    set_cart_quantity(user_id, product_id, new_quantity)
    return jsonify({"success": True, "message": "Item added to cart", "data": _cart_snapshot(user_id)})


@app.delete("/api/cart")
@login_required
def clear_cart():
    user_id = current_user_id()
    clear_user_cart(user_id)
    return jsonify({"success": True, "message": "Cart cleared", "data": _cart_snapshot(user_id)})


@app.put("/api/cart/<int:product_id>")
@login_required
def update_cart_item(product_id: int):
    """Set the quantity of a product already in the cart."""

    user_id = current_user_id()
    quantity = _parse_quantity(_json_body().get("quantity"))
    if quantity is None or quantity < 1:
        return _error("Quantity must be at least 1", 400)

    product = get_product(product_id)
    if not product:
        return _error("Product not found", 404)
    if int(product["stock"]) < quantity:
        return _error("Insufficient stock", 400)
    if product_id not in fetch_user_cart(user_id):
        return _error("Item not in cart", 404)

    set_cart_quantity(user_id, product_id, quantity)
    return jsonify({"success": True, "message": "Cart updated", "data": _cart_snapshot(user_id)})


@app.delete("/api/cart/<int:product_id>")
@login_required
def remove_cart_item(product_id: int):
    user_id = current_user_id()
    remove_user_cart_item(user_id, product_id)
    return jsonify({"success": True, "message": "Item removed from cart", "data": _cart_snapshot(user_id)})


# --------------------------------------------------------------------------------------
# Payments and orders
# --------------------------------------------------------------------------------------


@app.post("/api/payment/create-order")
@login_required
def create_payment_order():
    if not gateway_configured():
        return _error("Payment gateway not configured", 500)

    try:
        amount = float(_json_body().get("amount"))
    except (TypeError, ValueError):
        return _error("A valid amount is required", 400)
    if amount <= 0:
        return _error("A valid amount is required", 400)

    try:
        gateway_order = create_gateway_order(amount)
    except PaymentGatewayError as exc:
        return _error(str(exc), 500)
    return jsonify({"success": True, "data": gateway_order})


@app.post("/api/payment/verify")
@login_required
def verify_payment():
    data = _json_body()
    if not verify_payment_signature(
        data.get("razorpayOrderId"),
        data.get("razorpayPaymentId"),
        data.get("razorpaySignature"),
    ):
        return _error("Invalid payment signature", 400)
    return jsonify({"success": True, "message": "Payment verified successfully", "verified": True})


@app.get("/api/orders")
@login_required
def list_orders():
    """Own orders, newest first; admins see every order."""

    user = current_user()
    orders = fetch_orders() if is_admin(user) else fetch_orders(user_id=int(user["id"]))
    return jsonify({"success": True, "data": orders})


@app.post("/api/orders")
@login_required
def create_order():
    """Turn the paid cart into an order and email the confirmation."""

    user = current_user()
    user_id = int(user["id"])
    data = _json_body()

    if not fetch_user_cart(user_id):
        return _error("Cart is empty", 400)

    shipping, errors = validate_shipping_address(data.get("shippingAddress"))
    if errors:
        return _error(first_error(errors), 400, errors=errors)

    razorpay_order_id = data.get("razorpayOrderId")
    razorpay_payment_id = data.get("razorpayPaymentId")
    razorpay_signature = data.get("razorpaySignature")
    if not verify_payment_signature(razorpay_order_id, razorpay_payment_id, razorpay_signature):
        return _error("Invalid payment signature", 400)

    try:
        order_id = place_order(
            user_id,
            shipping=shipping,
            razorpay_order_id=str(razorpay_order_id),
            razorpay_payment_id=str(razorpay_payment_id),
            razorpay_signature=str(razorpay_signature),
        )
    except EmptyCartError:
        return _error("Cart is empty", 400)
    except InsufficientStockError as exc:
        return _error(str(exc), 400)

    order = get_order(order_id)
    reference = format_order_reference(order_id)
    app.logger.info("Order %s placed by user %s", reference, user_id)
    if not send_order_confirmation_email(str(user["email"]), reference, order["items"], float(order["total"])):
        app.logger.warning("Order %s confirmation email was not delivered", reference)

    return jsonify({"success": True, "message": "Order created successfully", "data": order}), 201


@app.get("/api/orders/<int:order_id>")
@login_required
def order_detail(order_id: int):
    order = get_order(order_id)
    if not order:
        return _error("Order not found", 404)
    user = current_user()
    if order["user_id"] != int(user["id"]) and not is_admin(user):
        return _error("Not authorized", 403)
    return jsonify({"success": True, "data": order})


# --------------------------------------------------------------------------------------
# Profile and wishlist
# --------------------------------------------------------------------------------------


@app.get("/api/user/profile")
@login_required
def profile():
    return jsonify({"success": True, "data": public_user(current_user())})


@app.put("/api/user/profile")
@login_required
def update_profile():
    data = _json_body()
    name = str(data.get("name") or "").strip()
    phone = data.get("phone")
    address = data.get("address")
    updated = update_user(
        current_user_id(),
        name=name or None,
        phone=str(phone).strip() if phone is not None else None,
        address=str(address).strip() if address is not None else None,
    )
    return jsonify({"success": True, "message": "Profile updated successfully", "data": public_user(updated)})


@app.put("/api/user/change-password")
@login_required
def change_password():
    """Change the password; OTP-only accounts may set one without a current password."""

    user = current_user()
    data = _json_body()
    current_password = data.get("currentPassword")
    new_password = data.get("newPassword")

    if not new_password or (user.get("password_hash") and not current_password):
        return _error("Current password and new password are required", 400)
    password_error = validate_password(new_password)
    if password_error:
        return _error(password_error, 400)
    if user.get("password_hash") and not verify_password(str(current_password), user["password_hash"]):
        return _error("Current password is incorrect", 400)

    update_user(int(user["id"]), password_hash=hash_password(str(new_password)))
    return jsonify({"success": True, "message": "Password changed successfully"})


@app.get("/api/user/wishlist")
@login_required
def wishlist():
    return jsonify({"success": True, "data": fetch_wishlist(current_user_id())})


@app.post("/api/user/wishlist")
@login_required
def add_wishlist_item():
    user_id = current_user_id()
    product_id = _parse_id(_json_body().get("productId"))
    if product_id is None:
        return _error("Product ID is required", 400)
    if not get_product(product_id):
        return _error("Product not found", 404)
    if not add_to_wishlist(user_id, product_id):
        return _error("Product already in wishlist", 400)
    return jsonify({"success": True, "message": "Product added to wishlist", "data": fetch_wishlist(user_id)})


@app.delete("/api/user/wishlist/<int:product_id>")
@login_required
def remove_wishlist_item(product_id: int):
    user_id = current_user_id()
    remove_from_wishlist(user_id, product_id)
    return jsonify({"success": True, "message": "Product removed from wishlist", "data": fetch_wishlist(user_id)})


# --------------------------------------------------------------------------------------
# Farm assistant
# --------------------------------------------------------------------------------------


@app.post(CHAT_PATH)
@limiter.limit(config.CHAT_RATE_LIMIT)
def chat():
    """Free-text assistant; replies carry follow-up context for the client."""

    data = _json_body()
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return _error("Message required", 400)
    raw_context = data.get("context") if isinstance(data.get("context"), dict) else {}
    # Only text survives; the assistant treats every context value as a string.
    context = {key: value for key, value in raw_context.items() if isinstance(value, str)}
    return jsonify(respond_to_message(message, context))


@app.post("/api/chat/recommend")
def chat_recommend():
    data = _json_body()
    result = recommend_for_farm(
        _text_or_none(data.get("crop")),
        _text_or_none(data.get("soil")),
        _text_or_none(data.get("season")),
        _text_or_none(data.get("landSize")) or _text_or_none(data.get("land_size")),
    )
    return jsonify(result)


@app.get("/api/chat/welcome")
def chat_welcome():
    return jsonify({"success": True, **welcome()})


@app.post("/api/chat/option")
def chat_option():
    """Advance the guided conversation with the option the user clicked."""

    data = _json_body()
    option_id = data.get("optionId")
    if not isinstance(option_id, str) or not option_id.strip():
        return _error("Option is required", 400)
    label = data.get("label") if isinstance(data.get("label"), str) else None
    return jsonify({"success": True, **handle_option(data.get("state"), option_id, label)})


@app.get("/api/health")
def health():
    return jsonify({"success": True, "status": "ok"})


if __name__ == "__main__":
    app.run(debug=config.DEBUG)
