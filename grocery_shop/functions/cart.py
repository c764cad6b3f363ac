# grocery_shop/functions/cart.py
import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.db.models import Cart, CartItem, Coupon, Product, User
from grocery_shop.db.schemas import CartItemIn
from grocery_shop.errors import field_error

logger = logging.getLogger(__name__)


async def get_cart(db: AsyncSession, user: Optional[User] = None, session_id: str = None):
    if user is not None:
        query = select(Cart).filter(Cart.user_id == user.id)
    elif session_id:
        query = select(Cart).filter(Cart.session_id == session_id)
    else:
        return None
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def get_or_create_cart(db: AsyncSession, user: Optional[User] = None, session_id: str = None):
    """Cart of the logged-in user, else of the guest session."""
    cart = await get_cart(db, user, session_id)
    if cart is None:
        if user is not None:
            cart = Cart(user_id=user.id, total_amount=0)
        else:
            cart = Cart(session_id=session_id, total_amount=0)
        db.add(cart)
        await db.commit()
        cart = await get_cart(db, user, session_id)
    return cart


async def get_cart_or_empty(db: AsyncSession, user: Optional[User] = None, session_id: str = None):
    """Stored cart, or an unsaved empty one so reads never insert rows."""
    cart = await get_cart(db, user, session_id)
    if cart is None:
        cart = Cart(user_id=user.id if user is not None else None, session_id=session_id, total_amount=0, items=[])
    return cart


async def _get_product(db: AsyncSession, product_id: int, field: str = "product_id"):
    result = await db.execute(select(Product).filter(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise field_error(field, "The selected product is invalid.")
    return product


def _find_item(cart: Cart, product_id: int):
    for item in cart.items:
        if item.product_id == product_id:
            return item
    return None


def _set_quantity(item: CartItem, product: Product, quantity: int):
    item.quantity = quantity
    item.price = product.final_price
    item.subtotal = round(item.price * quantity, 2)


async def add_to_cart(db: AsyncSession, cart: Cart, product_id: int, quantity: int = 1):
    product = await _get_product(db, product_id)
    if not product.is_active:
        raise field_error("product_id", "This product is not available.")

    item = _find_item(cart, product.id)
    new_quantity = quantity + (item.quantity if item else 0)
    if new_quantity > product.stock:
        raise field_error("quantity", "The requested quantity is not available in stock.")

    if item is None:
        item = CartItem(product=product)
        cart.items.append(item)
    _set_quantity(item, product, new_quantity)
    cart.update_total()
    await db.commit()
    return cart


async def _get_own_item(db: AsyncSession, cart: Cart, item_id: int):
    for item in cart.items:
        if item.id == item_id:
            return item
    exists = (await db.execute(select(CartItem.id).filter(CartItem.id == item_id))).first()
    if exists:
        raise HTTPException(status_code=403, detail="Unauthorized action.")
    raise HTTPException(status_code=404, detail="Cart item not found")


async def update_cart_item(db: AsyncSession, cart: Cart, item_id: int, quantity: int):
    item = await _get_own_item(db, cart, item_id)
    if quantity > item.product.stock:
        raise field_error("quantity", "The requested quantity is not available in stock.")
    _set_quantity(item, item.product, quantity)
    cart.update_total()
    await db.commit()
    return cart


async def remove_cart_item(db: AsyncSession, cart: Cart, item_id: int):
    item = await _get_own_item(db, cart, item_id)
    cart.items.remove(item)
    cart.update_total()
    await db.commit()
    return cart


async def clear_cart(db: AsyncSession, cart: Cart, commit: bool = True):
    cart.items.clear()
    cart.coupon_code = None
    cart.update_total()
    if commit:
        await db.commit()
    return cart


async def get_coupon(db: AsyncSession, code: str):
    if not code:
        return None
    result = await db.execute(select(Coupon).filter(Coupon.code == code.strip().upper()))
    return result.scalar_one_or_none()


async def apply_coupon(db: AsyncSession, cart: Cart, code: str):
    coupon = await get_coupon(db, code)
    if coupon is None:
        raise field_error("coupon_code", "The selected coupon code is invalid.")
    if not cart.items or cart.total_amount <= 0:
        raise field_error("coupon_code", "Cannot apply coupon to an empty cart.")
    reason = coupon.invalid_reason(cart.total_amount)
    if reason:
        raise field_error("coupon_code", reason)

    cart.coupon_code = coupon.code
    await db.commit()
    return coupon, coupon.calculate_discount(cart.total_amount)


async def remove_coupon(db: AsyncSession, cart: Cart):
    cart.coupon_code = None
    await db.commit()
    return cart


async def get_cart_discount(db: AsyncSession, cart: Cart):
    """Return ``(coupon, discount)`` for the cart, dropping a coupon that no longer applies."""
    if not cart.coupon_code:
        return None, 0.0
    coupon = await get_coupon(db, cart.coupon_code)
    if coupon is None or not coupon.is_valid(cart.total_amount):
        logger.info("Dropping coupon %s from cart %s", cart.coupon_code, cart.id)
        cart.coupon_code = None
        await db.commit()
        return None, 0.0
    return coupon, coupon.calculate_discount(cart.total_amount)


async def sync_cart(db: AsyncSession, cart: Cart, items: List[CartItemIn]):
    """Replace the stored cart with the client's copy."""
    wanted = {}
    for index, entry in enumerate(items):
        await _get_product(db, entry.product_id, field=f"items.{index}.product_id")
        wanted[entry.product_id] = wanted.get(entry.product_id, 0) + entry.quantity

    cart.items.clear()
    await db.flush()
    for product_id, quantity in wanted.items():
        product = await _get_product(db, product_id)
        quantity = min(quantity, product.stock)
        if not product.is_active or quantity <= 0:
            logger.info("Skipping product %s while syncing cart %s", product_id, cart.id)
            continue
        item = CartItem(product=product)
        _set_quantity(item, product, quantity)
        cart.items.append(item)
    cart.update_total()
    await db.commit()
    return cart


def restore_cart(cart: Optional[Cart]) -> dict:
    if cart is None:
        return {}
    return {
        str(item.product_id): {
            "product_id": item.product_id,
            "name": item.product.name,
            "price": item.price,
            "quantity": item.quantity,
            "image": item.product.main_image,
        }
        for item in cart.items
    }


async def merge_guest_cart(db: AsyncSession, session_id: str, user: User):
    """Fold the guest session's cart into the user's cart after login."""
    guest = await get_cart(db, session_id=session_id)
    if guest is None or not guest.items:
        return await get_cart(db, user)

    cart = await get_cart(db, user)
    if cart is None:
        guest.session_id = None
        guest.user_id = user.id
        await db.commit()
        return await get_cart(db, user)

    for guest_item in guest.items:
        product = guest_item.product
        item = _find_item(cart, product.id)
        quantity = min(guest_item.quantity + (item.quantity if item else 0), product.stock)
        if not product.is_active or quantity <= 0:
            continue
        if item is None:
            item = CartItem(product=product)
            cart.items.append(item)
        _set_quantity(item, product, quantity)
    cart.update_total()
    await db.delete(guest)
    await db.commit()
    logger.info("Merged guest cart %s into cart %s", guest.id, cart.id)
    return await get_cart(db, user)
