"""SQLAlchemy-powered data layer for the FarmTech storefront."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    and_,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)

import config
from seed_data.product_catalog import PRODUCT_CATALOG, SEED_USERS
from security import decrypt_sensitive_value, encrypt_sensitive_value, hash_password

logger = logging.getLogger(__name__)

PRODUCT_CATEGORIES = ("Fertilizer", "Seeds", "Pesticides", "Tools")
USER_ROLES = ("user", "admin")
ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
PRODUCT_SORTS = ("newest", "oldest", "price_low", "price_high", "discount", "name_az")


class InsufficientStockError(ValueError):
    """Raised when an order asks for more units than a product has in stock."""

    def __init__(self, product_name: str, available: int) -> None:
        super().__init__(f"Insufficient stock for {product_name} (only {available} left).")
        self.product_name = product_name
        self.available = available


class EmptyCartError(ValueError):
    """Raised when an order is placed against an empty cart."""


# --------------------------------------------------------------------------------------
# Small coercion helpers
# --------------------------------------------------------------------------------------


def _as_int(value: object, default: int = 0) -> int:
    """Best-effort conversion to int with a fallback."""

    try:
        return int(str(value))
    except (TypeError, ValueError):
        return default


def _as_float(value: object, default: float = 0.0) -> float:
    """Best-effort conversion to float with a fallback."""

    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def final_price(price: object, discount: object) -> float:
    """Return the unit price after the percentage discount."""

    price_value = _as_float(price)
    return price_value - (price_value * _as_float(discount) / 100)


# --------------------------------------------------------------------------------------
# SQLAlchemy setup
# --------------------------------------------------------------------------------------

_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String)
    phone: Mapped[Optional[str]] = mapped_column(String)
    address: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String, nullable=False, default="user", server_default="user", index=True)
    otp_hash: Mapped[Optional[str]] = mapped_column(String)
    otp_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())

    cart_items: Mapped[list["CartItem"]] = relationship(
        "CartItem", back_populates="user", cascade="all, delete-orphan"
    )
    wishlist_items: Mapped[list["WishlistItem"]] = relationship(
        "WishlistItem", back_populates="user", cascade="all, delete-orphan"
    )
    orders: Mapped[list["Order"]] = relationship("Order", back_populates="user")


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    image: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())

    cart_items: Mapped[list["CartItem"]] = relationship(
        "CartItem", back_populates="product", cascade="all, delete-orphan"
    )
    wishlist_items: Mapped[list["WishlistItem"]] = relationship(
        "WishlistItem", back_populates="product", cascade="all, delete-orphan"
    )


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    payment_method: Mapped[str] = mapped_column(String, nullable=False, default="razorpay", server_default="razorpay")
    payment_status: Mapped[str] = mapped_column(String, nullable=False, default="pending", server_default="pending")
    razorpay_order_id: Mapped[Optional[str]] = mapped_column(String)
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String)
    razorpay_signature: Mapped[Optional[str]] = mapped_column(String)
    order_status: Mapped[str] = mapped_column(String, nullable=False, default="pending", server_default="pending")
    stock_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    shipping_city: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
    shipping_state: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
    shipping_pincode: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
    shipping_phone: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp(), onupdate=func.current_timestamp()
    )

    user: Mapped[Optional[User]] = relationship("User", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    order: Mapped[Order] = relationship("Order", back_populates="items")


class CartItem(Base):
    __tablename__ = "cart_items"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    user: Mapped[User] = relationship("User", back_populates="cart_items")
    product: Mapped[Product] = relationship("Product", back_populates="cart_items")


class WishlistItem(Base):
    __tablename__ = "wishlist_items"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    added_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())

    user: Mapped[User] = relationship("User", back_populates="wishlist_items")
    product: Mapped[Product] = relationship("Product", back_populates="wishlist_items")


# --------------------------------------------------------------------------------------
# Session helper
# --------------------------------------------------------------------------------------


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# --------------------------------------------------------------------------------------
# Serialization helpers
# --------------------------------------------------------------------------------------


def _serialize_user(user: Optional[User]) -> Optional[dict[str, object]]:
    if not user:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "password_hash": user.password_hash,
        "phone": user.phone,
        "address": user.address,
        "role": user.role,
        "otp_hash": user.otp_hash,
        "otp_expiry": user.otp_expiry,
        "is_verified": user.is_verified,
        "created_at": _isoformat(user.created_at),
    }


def public_user(user: Optional[Mapping[str, object]]) -> Optional[dict[str, object]]:
    """Strip credential material from a serialized user before it leaves the server."""

    if not user:
        return None
    hidden = {"password_hash", "otp_hash", "otp_expiry"}
    payload = {key: value for key, value in user.items() if key not in hidden}
    payload["has_password"] = bool(user.get("password_hash"))
    return payload


def _serialize_product(product: Optional[Product]) -> Optional[dict[str, object]]:
    if not product:
        return None
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "category": product.category,
        "price": float(product.price),
        "discount": float(product.discount or 0),
        "final_price": round(final_price(product.price, product.discount), 2),
        "stock": int(product.stock or 0),
        "image": product.image,
        "is_active": bool(product.is_active),
        "created_at": _isoformat(product.created_at),
    }


# --------------------------------------------------------------------------------------
# Initialization and seeding
# --------------------------------------------------------------------------------------


def init_db() -> None:
    """Create tables and seed demo content."""

    Base.metadata.create_all(bind=engine)
    seed_data()


def seed_data(*, reset: bool = False) -> None:
    """Populate the catalogue and demo accounts so the API has content.

    With ``reset`` every order, cart, wishlist and product row is dropped first.
    """

    with session_scope() as session:
        if reset:
            session.execute(delete(OrderItem))
            session.execute(delete(Order))
            session.execute(delete(CartItem))
            session.execute(delete(WishlistItem))
            session.execute(delete(Product))
            session.flush()

        product_count = session.scalar(select(func.count(Product.id))) or 0
        if product_count == 0:
            for product in PRODUCT_CATALOG:
                session.add(
                    Product(
                        name=product["name"],
                        description=product["description"],
                        category=product["category"],
                        price=_as_float(product.get("price")),
                        discount=_as_float(product.get("discount")),
                        stock=_as_int(product.get("stock")),
                        image=product["image"],
                        is_active=bool(product.get("is_active", True)),
                    )
                )
            logger.info("Seeded %d catalogue products", len(PRODUCT_CATALOG))

        for name, email, raw_password, role in SEED_USERS:
            user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
            if user:
                user.role = role
                continue
            session.add(
                User(
                    name=name,
                    email=email,
                    password_hash=hash_password(raw_password),
                    role=role,
                    is_verified=True,
                )
            )


# --------------------------------------------------------------------------------------
# Product helpers
# --------------------------------------------------------------------------------------


def _text_match(term: str):
    like_term = f"%{term.lower()}%"
    return or_(
        func.lower(Product.name).like(like_term),
        func.lower(Product.description).like(like_term),
    )


def fetch_products(
    *,
    search: Optional[str] = None,
    keywords: Optional[Sequence[str]] = None,
    category: Optional[str] = None,
    categories: Optional[Sequence[str]] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    active_only: bool = False,
    in_stock: bool = False,
    sort: str = "newest",
    limit: Optional[int] = None,
) -> list[dict[str, object]]:
    """Return products ordered according to the requested sort and filters.

    ``search`` is a case-insensitive substring matched on name or description;
    ``keywords`` matches when any one of them appears in either field.
    """

    stmt = select(Product)
    filters = []

    if search:
        filters.append(_text_match(search))

    cleaned_keywords = [kw for kw in (keywords or []) if kw]
    if cleaned_keywords:
        filters.append(or_(*(_text_match(kw) for kw in cleaned_keywords)))

    if category and category.lower() != "all":
        filters.append(func.lower(Product.category) == category.lower())

    if categories:
        filters.append(Product.category.in_(list(categories)))

    if min_price is not None:
        filters.append(Product.price >= min_price)
    if max_price is not None:
        filters.append(Product.price <= max_price)

    if active_only:
        filters.append(Product.is_active.is_(True))
    if in_stock:
        filters.append(Product.stock > 0)

    if filters:
        stmt = stmt.where(and_(*filters))

    order_map = {
        "newest": [Product.created_at.desc(), Product.id.desc()],
        "oldest": [Product.created_at.asc(), Product.id.asc()],
        "price_low": [Product.price.asc(), Product.id.desc()],
        "price_high": [Product.price.desc(), Product.id.desc()],
        "discount": [Product.discount.desc(), Product.created_at.desc(), Product.id.desc()],
        "name_az": [func.lower(Product.name).asc(), Product.id.desc()],
    }
    stmt = stmt.order_by(*order_map.get(sort, order_map["newest"]))

    if limit:
        stmt = stmt.limit(limit)

    with session_scope() as session:
        products = session.execute(stmt).scalars().all()
        serialized = (_serialize_product(product) for product in products)
        return [product for product in serialized if product]


def fetch_products_by_ids(product_ids: Iterable[int]) -> list[dict[str, object]]:
    """Return products for the provided ids preserving the original order."""

    seen: set[int] = set()
    ordered_ids: list[int] = []
    for product_id in product_ids:
        try:
            pid = int(product_id)
        except (TypeError, ValueError):
            continue
        if pid not in seen:
            ordered_ids.append(pid)
            seen.add(pid)

    if not ordered_ids:
        return []

    with session_scope() as session:
        products = session.execute(select(Product).where(Product.id.in_(ordered_ids))).scalars().all()
        lookup = {int(product.id): _serialize_product(product) for product in products}
    return [lookup[pid] for pid in ordered_ids if pid in lookup]


def get_product(product_id: int) -> Optional[dict[str, object]]:
    """Return a single product or None when not found."""

    with session_scope() as session:
        return _serialize_product(session.get(Product, product_id))


def insert_product(
    name: str,
    description: str,
    category: str,
    price: float,
    *,
    stock: int = 0,
    discount: float = 0.0,
    image: str,
    is_active: bool = True,
) -> dict[str, object]:
    """Persist a new product using the ORM and return it."""

    with session_scope() as session:
        product = Product(
            name=name,
            description=description,
            category=category,
            price=price,
            discount=discount,
            stock=stock,
            image=image,
            is_active=is_active,
        )
        session.add(product)
        session.flush()
        session.refresh(product)
        return _serialize_product(product)


def update_product(
    product_id: int,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    price: Optional[float] = None,
    discount: Optional[float] = None,
    stock: Optional[int] = None,
    image: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Optional[dict[str, object]]:
    """Update a product with provided fields and return the new state."""

    with session_scope() as session:
        product = session.get(Product, product_id)
        if not product:
            return None
        if name is not None:
            product.name = name
        if description is not None:
            product.description = description
        if category is not None:
            product.category = category
        if price is not None:
            product.price = price
        if discount is not None:
            product.discount = discount
        if stock is not None:
            product.stock = stock
        if image is not None:
            product.image = image
        if is_active is not None:
            product.is_active = is_active
        session.flush()
        return _serialize_product(product)


def delete_product(product_id: int) -> bool:
    """Remove a product; order history keeps its snapshot lines."""

    with session_scope() as session:
        product = session.get(Product, product_id)
        if not product:
            return False
        session.execute(update(OrderItem).where(OrderItem.product_id == product_id).values(product_id=None))
        session.delete(product)
        return True


def count_products() -> int:
    with session_scope() as session:
        return int(session.scalar(select(func.count(Product.id))) or 0)


# --------------------------------------------------------------------------------------
# User helpers
# --------------------------------------------------------------------------------------


def create_user(
    name: str,
    email: str,
    password_hash: Optional[str] = None,
    *,
    role: str = "user",
    is_verified: bool = False,
) -> int:
    """Insert a new application user and return the id."""

    with session_scope() as session:
        user = User(
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            is_verified=is_verified,
        )
        session.add(user)
        session.flush()
        return int(user.id)


def get_user_by_email(email: str) -> Optional[dict[str, object]]:
    """Fetch a user record given an email address."""

    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    with session_scope() as session:
        user = session.execute(select(User).where(User.email == normalized)).scalar_one_or_none()
        return _serialize_user(user)


def get_user_by_id(user_id: int) -> Optional[dict[str, object]]:
    """Fetch a user by id."""

    with session_scope() as session:
        return _serialize_user(session.get(User, user_id))


def update_user(
    user_id: int,
    *,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    role: Optional[str] = None,
    password_hash: Optional[str] = None,
    is_verified: Optional[bool] = None,
) -> Optional[dict[str, object]]:
    """Update the provided user fields and return the new state."""

    with session_scope() as session:
        user = session.get(User, user_id)
        if not user:
            return None
        if name is not None:
            user.name = name
        if phone is not None:
            user.phone = phone
        if address is not None:
            user.address = address
        if role is not None:
            user.role = role
        if password_hash is not None:
            user.password_hash = password_hash
        if is_verified is not None:
            user.is_verified = is_verified
        session.flush()
        return _serialize_user(user)


def set_user_otp(user_id: int, otp_hash: str, expires_at: datetime) -> None:
    """Store a hashed OTP and its expiry on the user row."""

    with session_scope() as session:
        user = session.get(User, user_id)
        if user:
            user.otp_hash = otp_hash
            user.otp_expiry = expires_at


def clear_user_otp(user_id: int, *, mark_verified: bool = True) -> None:
    """Consume the stored OTP, optionally flagging the account as verified."""

    with session_scope() as session:
        user = session.get(User, user_id)
        if not user:
            return
        user.otp_hash = None
        user.otp_expiry = None
        if mark_verified:
            user.is_verified = True


def fetch_users() -> list[dict[str, object]]:
    """Return all application users ordered by newest first."""

    with session_scope() as session:
        users = session.execute(select(User).order_by(User.id.desc())).scalars().all()
        serialized = (_serialize_user(user) for user in users)
        return [user for user in serialized if user]


def delete_user(user_id: int) -> bool:
    """Delete a user and cascade related data."""

    with session_scope() as session:
        user = session.get(User, user_id)
        if not user:
            return False
        session.delete(user)
        return True


# --------------------------------------------------------------------------------------
# Cart helpers
# --------------------------------------------------------------------------------------


def fetch_user_cart(user_id: int) -> Dict[int, int]:
    """Return the user's persisted cart items."""

    with session_scope() as session:
        rows = session.execute(
            select(CartItem.product_id, CartItem.quantity).where(CartItem.user_id == user_id)
        ).all()
        return {int(product_id): int(quantity) for product_id, quantity in rows}


def set_cart_quantity(user_id: int, product_id: int, quantity: int) -> None:
    """Create or overwrite a single cart line."""

    with session_scope() as session:
        item = session.get(CartItem, (user_id, product_id))
        if item:
            item.quantity = max(1, int(quantity))
        else:
            session.add(CartItem(user_id=user_id, product_id=product_id, quantity=max(1, int(quantity))))


def remove_user_cart_item(user_id: int, product_id: int) -> None:
    """Remove a single product from a user's persisted cart."""

    with session_scope() as session:
        session.execute(
            delete(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
            )
        )


def clear_user_cart(user_id: int) -> None:
    """Delete all persisted cart items for the user."""

    with session_scope() as session:
        session.execute(delete(CartItem).where(CartItem.user_id == user_id))


def calculate_totals(lines: Iterable[Mapping[str, object]]) -> dict[str, float]:
    """Return subtotal, discount and total for ``{price, discount, quantity}`` lines."""

    subtotal = 0.0
    discount = 0.0
    for line in lines:
        price = _as_float(line.get("price"))
        quantity = _as_int(line.get("quantity"))
        subtotal += price * quantity
        discount += (price * _as_float(line.get("discount")) / 100) * quantity
    return {
        "subtotal": round(subtotal, 2),
        "discount": round(discount, 2),
        "total": round(subtotal - discount, 2),
    }


# --------------------------------------------------------------------------------------
# Wishlist helpers
# --------------------------------------------------------------------------------------


def fetch_wishlist(user_id: int) -> list[dict[str, object]]:
    """Return the wishlisted products, oldest addition first."""

    stmt = (
        select(Product)
        .join(WishlistItem, WishlistItem.product_id == Product.id)
        .where(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.added_at.asc(), Product.id.asc())
    )
    with session_scope() as session:
        products = session.execute(stmt).scalars().all()
        return [_serialize_product(product) for product in products]


def add_to_wishlist(user_id: int, product_id: int) -> bool:
    """Add a product to the wishlist; returns False when it was already there."""

    with session_scope() as session:
        if session.get(WishlistItem, (user_id, product_id)):
            return False
        session.add(WishlistItem(user_id=user_id, product_id=product_id))
        return True


def remove_from_wishlist(user_id: int, product_id: int) -> None:
    with session_scope() as session:
        session.execute(
            delete(WishlistItem).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id,
            )
        )


# --------------------------------------------------------------------------------------
# Order helpers
# --------------------------------------------------------------------------------------


def format_order_reference(order_id: int) -> str:
    """Return a human-friendly reference for an internal order id."""

    try:
        oid = int(order_id)
    except (TypeError, ValueError):
        oid = 0
    return f"FT-{oid:05d}"


def place_order(
    user_id: int,
    *,
    shipping: Mapping[str, str],
    razorpay_order_id: Optional[str] = None,
    razorpay_payment_id: Optional[str] = None,
    razorpay_signature: Optional[str] = None,
    payment_status: str = "completed",
    order_status: str = "confirmed",
) -> int:
    """Turn the user's cart into an order in a single transaction.

    Stock is decremented for each line and the cart is emptied. Raises
    ``EmptyCartError`` or ``InsufficientStockError`` without writing anything.
    """

    with session_scope() as session:
        cart_rows = session.execute(
            select(CartItem, Product)
            .join(Product, CartItem.product_id == Product.id)
            .where(CartItem.user_id == user_id)
            .order_by(Product.id.asc())
        ).all()
        if not cart_rows:
            raise EmptyCartError("Cart is empty")

        for item, product in cart_rows:
            if int(product.stock or 0) < int(item.quantity):
                raise InsufficientStockError(product.name, int(product.stock or 0))

        lines = [
            {"price": product.price, "discount": product.discount, "quantity": item.quantity}
            for item, product in cart_rows
        ]
        totals = calculate_totals(lines)

        order = Order(
            user_id=user_id,
            subtotal=totals["subtotal"],
            discount=totals["discount"],
            total=totals["total"],
            payment_status=payment_status,
            order_status=order_status,
            razorpay_order_id=razorpay_order_id,
            razorpay_payment_id=razorpay_payment_id,
            razorpay_signature=razorpay_signature,
            shipping_address=encrypt_sensitive_value(shipping.get("address") or ""),
            shipping_city=encrypt_sensitive_value(shipping.get("city") or ""),
            shipping_state=encrypt_sensitive_value(shipping.get("state") or ""),
            shipping_pincode=encrypt_sensitive_value(shipping.get("pincode") or ""),
            shipping_phone=encrypt_sensitive_value(shipping.get("phone") or ""),
        )
        session.add(order)
        session.flush()

        for item, product in cart_rows:
            session.add(
                OrderItem(
                    order_id=int(order.id),
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    discount=product.discount or 0,
                    quantity=int(item.quantity),
                )
            )
            product.stock = int(product.stock or 0) - int(item.quantity)

        session.execute(delete(CartItem).where(CartItem.user_id == user_id))
        return int(order.id)


def _order_items_for_ids(session: Session, order_ids: Iterable[int]) -> dict[int, list[dict[str, object]]]:
    normalized_ids = sorted({oid for oid in (_as_int(raw) for raw in order_ids) if oid > 0})
    if not normalized_ids:
        return {}
    rows = (
        session.execute(
            select(
                OrderItem.order_id,
                OrderItem.product_id,
                OrderItem.name,
                OrderItem.price,
                OrderItem.discount,
                OrderItem.quantity,
            )
            .where(OrderItem.order_id.in_(normalized_ids))
            .order_by(OrderItem.id.asc())
        )
        .mappings()
        .all()
    )
    lookup: dict[int, list[dict[str, object]]] = {}
    for row in rows:
        lookup.setdefault(int(row["order_id"]), []).append(
            {
                "product_id": row["product_id"],
                "name": row["name"],
                "price": float(row["price"]),
                "discount": float(row["discount"] or 0),
                "quantity": int(row["quantity"]),
            }
        )
    return lookup


def _hydrate_orders(orders: Sequence[Order], session: Session) -> list[dict[str, object]]:
    """Attach decrypted shipping details, customer data and line items to orders."""

    if not orders:
        return []

    item_lookup = _order_items_for_ids(session, [order.id for order in orders])
    hydrated: list[dict[str, object]] = []
    for order in orders:
        items = item_lookup.get(int(order.id), [])
        hydrated.append(
            {
                "id": order.id,
                "reference": format_order_reference(order.id),
                "user_id": order.user_id,
                "user": {"name": order.user.name, "email": order.user.email} if order.user else None,
                "items": items,
                "item_count": sum(item["quantity"] for item in items),
                "subtotal": float(order.subtotal),
                "discount": float(order.discount),
                "total": float(order.total),
                "payment_method": order.payment_method,
                "payment_status": order.payment_status,
                "razorpay_order_id": order.razorpay_order_id,
                "razorpay_payment_id": order.razorpay_payment_id,
                "order_status": order.order_status,
                "stock_restored": bool(order.stock_restored),
                "shipping_address": {
                    "address": decrypt_sensitive_value(order.shipping_address),
                    "city": decrypt_sensitive_value(order.shipping_city),
                    "state": decrypt_sensitive_value(order.shipping_state),
                    "pincode": decrypt_sensitive_value(order.shipping_pincode),
                    "phone": decrypt_sensitive_value(order.shipping_phone),
                },
                "created_at": _isoformat(order.created_at),
                "updated_at": _isoformat(order.updated_at),
            }
        )
    return hydrated


def fetch_orders(user_id: Optional[int] = None) -> list[dict[str, object]]:
    """Return orders newest first, optionally limited to one customer."""

    stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    with session_scope() as session:
        orders = session.execute(stmt).scalars().all()
        return _hydrate_orders(orders, session)


def get_order(order_id: int) -> Optional[dict[str, object]]:
    """Fetch a single order with joined metadata."""

    with session_scope() as session:
        order = session.get(Order, order_id)
        if not order:
            return None
        return _hydrate_orders([order], session)[0]


def update_order_status(order_id: int, order_status: str) -> Optional[dict[str, object]]:
    """Move an order to a new status, returning reserved stock on cancellation.

    Stock goes back at most once per order, however often it is cancelled.
    """

    with session_scope() as session:
        order = session.get(Order, order_id)
        if not order:
            return None
        if order_status == "cancelled" and not order.stock_restored:
            for item in order.items:
                if item.product_id is None:
                    continue
                product = session.get(Product, item.product_id)
                if product:
                    product.stock = int(product.stock or 0) + int(item.quantity)
            order.stock_restored = True
        order.order_status = order_status
        session.flush()
        return _hydrate_orders([order], session)[0]


def order_stats() -> dict[str, object]:
    """Return revenue and volume figures for the admin dashboard."""

    with session_scope() as session:
        revenue = session.scalar(
            select(func.coalesce(func.sum(Order.total), 0)).where(Order.order_status != "cancelled")
        )
        total_orders = session.scalar(select(func.count(Order.id))) or 0
        status_rows = session.execute(
            select(Order.order_status, func.count(Order.id)).group_by(Order.order_status)
        ).all()
    by_status = {status: 0 for status in ORDER_STATUSES}
    for status, count in status_rows:
        by_status[str(status)] = int(count)
    return {
        "totalRevenue": round(float(revenue or 0), 2),
        "totalOrders": int(total_orders),
        "ordersByStatus": by_status,
    }
