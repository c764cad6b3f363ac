# grocery_shop/functions/orders.py
import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.db.models import (
    Cart, DeliveryOption, Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, Product, User,
)
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import CheckoutIn, OrderStatusUpdate
from grocery_shop.errors import FieldError, field_error
from grocery_shop.events import publish_event
from grocery_shop.functions.cart import get_cart_discount
from grocery_shop.functions.content import find_serviceable_area, get_float_setting

logger = logging.getLogger(__name__)

PAYMENT_METHODS = [
    {"id": PaymentMethod.cash_on_delivery.value, "name": "Cash on Delivery"},
    {"id": PaymentMethod.online_payment.value, "name": "Online Payment"},
]

DELIVERY_OPTIONS = {
    DeliveryOption.standard: {"name": "Standard Delivery (3-5 days)", "cost": 49.0},
    DeliveryOption.express: {"name": "Express Delivery (1-2 days)", "cost": 99.0},
}


def delivery_options():
    return [{"id": option.value, **details} for option, details in DELIVERY_OPTIONS.items()]


def generate_order_number() -> str:
    return "ORD-" + uuid.uuid4().hex[:13].upper()


async def calculate_delivery_charge(db: AsyncSession, city: str, area: str, option: DeliveryOption, subtotal: float):
    """Area charge when the area is serviceable, else the delivery option cost; free above the threshold."""
    threshold = await get_float_setting(db, "free_shipping_threshold")
    if threshold > 0 and subtotal >= threshold:
        return 0.0
    serviceable = await find_serviceable_area(db, city, area)
    if serviceable is not None:
        return serviceable.delivery_charge
    return DELIVERY_OPTIONS[option]["cost"]


def _lines_from_cart(cart: Cart):
    return [(item.product, item.quantity, item.price) for item in cart.items]


async def _lines_from_request(db: AsyncSession, data: CheckoutIn):
    lines = []
    for index, entry in enumerate(data.cart_items or []):
        result = await db.execute(select(Product).filter(Product.id == entry.product_id))
        product = result.scalar_one_or_none()
        if product is None:
            raise field_error(f"cart_items.{index}.product_id", "The selected product is invalid.")
        lines.append((product, entry.quantity, product.final_price))
    return lines


def _check_lines(lines):
    errors = {}
    for product, quantity, _ in lines:
        if not product.is_active:
            errors[f"product_{product.id}"] = f"{product.name} is no longer available."
        elif quantity > product.stock:
            errors[f"product_{product.id}"] = f"Only {product.stock} {product.unit} of {product.name} left in stock."
    if errors:
        raise FieldError(errors)


async def place_order(db: AsyncSession, cart: Optional[Cart], data: CheckoutIn, user: Optional[User] = None):
    """
    Turn the cart into an order.
    Stock, the coupon, the cart and the user's address are all written in the same commit.
    """
    from_cart = cart is not None and bool(cart.items)
    lines = _lines_from_cart(cart) if from_cart else await _lines_from_request(db, data)
    if not lines:
        raise field_error("cart", "Your cart is empty.")
    _check_lines(lines)

    subtotal = round(sum(price * quantity for _, quantity, price in lines), 2)
    coupon, discount = (None, 0.0)
    if from_cart:
        coupon, discount = await get_cart_discount(db, cart)
    delivery_charge = await calculate_delivery_charge(db, data.city, data.area, data.delivery_option, subtotal)

    order = Order(
        order_number=generate_order_number(),
        user_id=user.id if user else None,
        name=data.name,
        subtotal=subtotal,
        discount_amount=discount,
        delivery_charge=delivery_charge,
        total_amount=round(subtotal - discount + delivery_charge, 2),
        coupon_code=coupon.code if coupon else None,
        payment_method=data.payment_method,
        payment_status=PaymentStatus.pending,
        order_status=OrderStatus.pending,
        delivery_option=data.delivery_option,
        address=data.address,
        city=data.city,
        area=data.area,
        phone=data.phone,
        notes=data.notes,
    )
    for product, quantity, price in lines:
        order.items.append(OrderItem(
            product=product,
            product_name=product.name,
            quantity=quantity,
            price=price,
            subtotal=round(price * quantity, 2),
        ))
        product.stock -= quantity

    if coupon is not None:
        coupon.used_count = (coupon.used_count or 0) + 1
        logger.info("Coupon %s used by order %s", coupon.code, order.order_number)
    if cart is not None:
        cart.items.clear()
        cart.coupon_code = None
        cart.update_total()
    if user is not None:
        user.address = data.address
        user.city = data.city
        user.area = data.area

    db.add(order)
    await db.commit()
    logger.info("Order %s placed, total %.2f", order.order_number, order.total_amount)

    await publish_event("order_placed", {
        "order_id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "total_amount": order.total_amount,
        "phone": order.phone,
    })
    return await get_order(db, order.id)


async def get_order(db: AsyncSession, order_id: int):
    result = await db.execute(
        select(Order).filter(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def get_order_for_viewer(db: AsyncSession, order_id: int, user: Optional[User]):
    """Guests may see a confirmation; logged-in users only their own orders."""
    order = await get_order(db, order_id)
    if user is not None and order.user_id != user.id:
        raise HTTPException(status_code=403, detail="Unauthorized action.")
    return order


async def get_user_order(db: AsyncSession, order_id: int, user: User):
    order = await get_order(db, order_id)
    if order.user_id != user.id:
        raise HTTPException(status_code=403, detail="Unauthorized action.")
    return order


async def list_user_orders(db: AsyncSession, user: User, page: int = 1, per_page: int = 10):
    query = select(Order).filter(Order.user_id == user.id).order_by(Order.created_at.desc(), Order.id.desc())
    return await paginate(db, query, page, per_page)


async def admin_list_orders(db: AsyncSession, page: int = 1, per_page: int = 10):
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    return await paginate(db, query, page, per_page)


async def update_order_status(db: AsyncSession, order_id: int, data: OrderStatusUpdate):
    order = await get_order(db, order_id)
    order.order_status = data.order_status
    order.payment_status = data.payment_status
    if data.order_status == OrderStatus.delivered and order.delivered_at is None:
        order.delivered_at = datetime.utcnow()
    await db.commit()
    logger.info("Order %s is now %s/%s", order.order_number, data.order_status.value, data.payment_status.value)
    return await get_order(db, order.id)
