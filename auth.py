"""Bearer-token helpers shared by the storefront and admin applications."""

from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import g, jsonify, request

from database import get_user_by_id
from security import decode_token


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_user() -> Optional[dict[str, object]]:
    """Resolve the user behind the request's bearer token, once per request."""

    if "current_user" in g:
        return g.current_user

    user = None
    payload = decode_token(_bearer_token() or "")
    if payload:
        try:
            user_id = int(payload.get("id"))
        except (TypeError, ValueError):
            user_id = None
        if user_id is not None:
            user = get_user_by_id(user_id)

    g.current_user = user
    return user


def current_user_id() -> Optional[int]:
    user = current_user()
    if not user:
        return None
    return int(user["id"])


def is_admin(user: Optional[dict[str, object]]) -> bool:
    return bool(user) and user.get("role") == "admin"


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user():
            return jsonify({"success": False, "message": "Not authorized, please sign in"}), 401
        return view(*args, **kwargs)

    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        user = current_user()
        if not user:
            return jsonify({"success": False, "message": "Not authorized, please sign in"}), 401
        if not is_admin(user):
            return jsonify({"success": False, "message": "Admin access required"}), 403
        return view(*args, **kwargs)

    return wrapped
