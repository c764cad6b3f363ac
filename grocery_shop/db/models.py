# grocery_shop/db/models.py
import enum
from datetime import datetime, date

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, ForeignKey, Enum, DateTime, Date, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from grocery_shop.db.database import Base


class AdminRole(str, enum.Enum):
    admin = "admin"
    editor = "editor"


class CouponType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"


class OrderStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


class PaymentMethod(str, enum.Enum):
    cash_on_delivery = "cash_on_delivery"
    online_payment = "online_payment"


class DeliveryOption(str, enum.Enum):
    standard = "standard"
    express = "express"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    area = Column(String, nullable=True)
    otp = Column(String(6), nullable=True)
    otp_purpose = Column(String(20), nullable=True)
    otp_attempts = Column(Integer, default=0)
    otp_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    orders = relationship("Order", back_populates="user", order_by="Order.id.desc()", passive_deletes=True)
    wishlist = relationship("Wishlist", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class PhoneVerification(Base):
    """Phone number a guest session is confirming before it registers."""
    __tablename__ = "phone_verifications"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, index=True, nullable=False)
    phone = Column(String(30), nullable=False)
    otp = Column(String(6), nullable=True)
    attempts = Column(Integer, default=0)
    expires_at = Column(DateTime, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(AdminRole), default=AdminRole.editor, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String, nullable=True)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    parent = relationship("Category", remote_side=[id], back_populates="children", lazy="selectin", join_depth=1)
    children = relationship("Category", back_populates="parent", order_by="Category.order", lazy="selectin", join_depth=1)
    products = relationship("Product", back_populates="category", passive_deletes=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    special_price = Column(Float, nullable=True)
    unit = Column(String(50), nullable=False)
    stock = Column(Integer, default=0)
    sku = Column(String(100), unique=True, index=True, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    is_featured = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products", lazy="selectin")
    images = relationship(
        "ProductImage", back_populates="product", order_by="ProductImage.order",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def final_price(self) -> float:
        return self.special_price if self.special_price is not None else self.price

    @property
    def discount_percentage(self) -> int:
        if self.special_price and self.price > 0:
            return round(100 - (self.special_price / self.price) * 100)
        return 0

    @property
    def main_image(self) -> str:
        for image in self.images:
            if image.is_primary:
                return image.image
        if self.images:
            return self.images[0].image
        return "default-product.jpg"


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    image = Column(String, nullable=False)
    is_primary = Column(Boolean, default=False)
    order = Column(Integer, default=0)

    product = relationship("Product", back_populates="images")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    type = Column(Enum(CouponType), nullable=False)
    value = Column(Float, nullable=False)
    min_order_amount = Column(Float, nullable=True)
    starts_at = Column(Date, nullable=True)
    expires_at = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    def invalid_reason(self, order_amount: float, today: date = None):
        """Return why the coupon cannot be used for ``order_amount``, or None."""
        today = today or date.today()
        if not self.is_active:
            return "This coupon is inactive."
        if self.starts_at and today < self.starts_at:
            return "This coupon is not active yet."
        # expires_at is the last day the coupon can be used
        if self.expires_at and today > self.expires_at:
            return "This coupon has expired."
        if self.usage_limit and (self.used_count or 0) >= self.usage_limit:
            return "This coupon has reached its usage limit."
        if self.min_order_amount and order_amount < self.min_order_amount:
            return f"Minimum order amount of {self.min_order_amount:.2f} required to use this coupon."
        return None

    def is_valid(self, order_amount: float, today: date = None) -> bool:
        return self.invalid_reason(order_amount, today) is None

    def calculate_discount(self, order_amount: float, today: date = None) -> float:
        if not self.is_valid(order_amount, today):
            return 0.0
        if self.type == CouponType.percentage:
            return round(order_amount * self.value / 100, 2)
        return round(min(self.value, order_amount), 2)


class Banner(Base):
    __tablename__ = "banners"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    image = Column(String, nullable=False)
    link = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class Area(Base):
    __tablename__ = "areas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    city = Column(String(255), nullable=False)
    is_serviceable = Column(Boolean, default=True)
    delivery_charge = Column(Float, default=0)


class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, index=True, nullable=False)
    value = Column(Text, nullable=True)


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True)
    session_id = Column(String(64), unique=True, index=True, nullable=True)
    coupon_code = Column(String(50), nullable=True)
    total_amount = Column(Float, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "CartItem", back_populates="cart", order_by="CartItem.id",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def update_total(self):
        self.total_amount = round(sum(item.price * item.quantity for item in self.items), 2)
        return self


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),)

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, default=1)
    # Unit price at the moment the item was written
    price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product", lazy="selectin")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    subtotal = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    delivery_charge = Column(Float, default=0)
    discount_amount = Column(Float, default=0)
    coupon_code = Column(String(50), nullable=True)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.cash_on_delivery)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.pending)
    order_status = Column(Enum(OrderStatus), default=OrderStatus.pending)
    delivery_option = Column(Enum(DeliveryOption), default=DeliveryOption.standard)
    delivered_at = Column(DateTime, nullable=True)
    address = Column(String, nullable=False)
    city = Column(String, nullable=False)
    area = Column(String, nullable=False)
    phone = Column(String(30), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders", lazy="selectin")
    items = relationship(
        "OrderItem", back_populates="order", order_by="OrderItem.id",
        cascade="all, delete-orphan", lazy="selectin",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, default=1)
    price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="selectin")


class Wishlist(Base):
    __tablename__ = "wishlist"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_wishlist_product"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="wishlist")
    product = relationship("Product", lazy="selectin")
