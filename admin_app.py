"""Admin-only Flask application for managing the catalogue, orders and users."""

from __future__ import annotations

from typing import cast

from flask import Flask, jsonify
from flask_cors import CORS

import config
from app import _error, _json_body, register_error_handlers  # type: ignore  # reuse JSON helpers
from auth import admin_required, current_user_id
from database import (
    ORDER_STATUSES,
    USER_ROLES,
    count_products,
    delete_product,
    delete_user,
    fetch_orders,
    fetch_users,
    get_user_by_email,
    init_db,
    insert_product,
    order_stats,
    public_user,
    update_order_status,
    update_product,
    update_user,
)
from security import generate_token, verify_password
from validators import first_error, validate_product_payload

# Ensure tables exist before the admin API starts serving requests.
init_db()

admin_app = Flask(__name__)
admin_app.config["SECRET_KEY"] = config.SECRET_KEY
admin_app.debug = config.DEBUG

CORS(admin_app, resources={r"/api/*": {"origins": config.ALLOWED_ORIGINS}}, supports_credentials=True)
register_error_handlers(admin_app)


@admin_app.post("/api/login")
def login():
    """Password login restricted to admin accounts."""

    data = _json_body()
    email = str(data.get("email") or "").strip()
    password = str(data.get("password") or "")
    if not email or not password:
        return _error("Email and password are required", 400)

    user = get_user_by_email(email)
    if not user or user.get("role") != "admin":
        return _error("Invalid admin credentials", 401)
    if not verify_password(password, cast(str, user.get("password_hash"))):
        return _error("Invalid admin credentials", 401)

    admin_app.logger.info("Admin %s signed in", user["email"])
    return jsonify(
        {
            "success": True,
            "message": "Login successful",
            "token": generate_token(int(user["id"])),
            "user": public_user(user),
        }
    )


# --------------------------------------------------------------------------------------
# Products
# --------------------------------------------------------------------------------------


@admin_app.post("/api/products")
@admin_required
def create_product():
    cleaned, errors = validate_product_payload(_json_body())
    if errors:
        return _error(first_error(errors), 400, errors=errors)
    product = insert_product(**cleaned)
    admin_app.logger.info("Product %s created", product["id"])
    return jsonify({"success": True, "message": "Product created", "data": product}), 201


@admin_app.put("/api/products/<int:product_id>")
@admin_required
def edit_product(product_id: int):
    cleaned, errors = validate_product_payload(_json_body(), partial=True)
    if errors:
        return _error(first_error(errors), 400, errors=errors)
    product = update_product(product_id, **cleaned)
    if not product:
        return _error("Product not found", 404)
    return jsonify({"success": True, "message": "Product updated", "data": product})


@admin_app.delete("/api/products/<int:product_id>")
@admin_required
def remove_product(product_id: int):
    if not delete_product(product_id):
        return _error("Product not found", 404)
    admin_app.logger.info("Product %s deleted", product_id)
    return jsonify({"success": True, "message": "Product deleted"})


# --------------------------------------------------------------------------------------
# Orders
# --------------------------------------------------------------------------------------


@admin_app.get("/api/orders")
@admin_required
def list_orders():
    return jsonify({"success": True, "data": fetch_orders()})


@admin_app.get("/api/orders/stats")
@admin_required
def stats():
    return jsonify({"success": True, "data": order_stats()})


@admin_app.put("/api/orders/<int:order_id>")
@admin_required
def change_order_status(order_id: int):
    """Move an order through fulfilment; cancelling returns its stock."""

    order_status = _json_body().get("orderStatus")
    if order_status not in ORDER_STATUSES:
        return _error("Invalid order status", 400)
    order = update_order_status(order_id, order_status)
    if not order:
        return _error("Order not found", 404)
    admin_app.logger.info("Order %s moved to %s", order["reference"], order_status)
    return jsonify({"success": True, "message": "Order status updated", "data": order})


# --------------------------------------------------------------------------------------
# Users
# --------------------------------------------------------------------------------------


@admin_app.get("/api/users")
@admin_required
def list_users():
    users = [public_user(user) for user in fetch_users()]
    return jsonify(
        {
            "success": True,
            "totalUsers": len(users),
            "totalProducts": count_products(),
            "users": users,
        }
    )


@admin_app.put("/api/users/<int:user_id>")
@admin_required
def change_user_role(user_id: int):
    role = _json_body().get("role")
    if role not in USER_ROLES:
        return _error("Invalid role", 400)
    user = update_user(user_id, role=role)
    if not user:
        return _error("User not found", 404)
    return jsonify({"success": True, "message": "User role updated successfully", "data": public_user(user)})


@admin_app.delete("/api/users/<int:user_id>")
@admin_required
def remove_user(user_id: int):
    if user_id == current_user_id():
        return _error("You cannot delete your own account", 400)
    if not delete_user(user_id):
        return _error("User not found", 404)
    return jsonify({"success": True, "message": "User deleted successfully"})


if __name__ == "__main__":
    admin_app.run(debug=config.DEBUG, port=5001)
