# grocery_shop/routers/cart.py
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.models import User
from grocery_shop.db.schemas import CartItemIn, CartQuantityIn, CartSchema, CartSyncIn, CouponApply
from grocery_shop.deps import get_current_user, get_optional_user, get_session_id
from grocery_shop.functions import cart as cart_functions
from grocery_shop.templating import render

router = APIRouter()


async def current_cart(
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    session_id: str = Depends(get_session_id),
):
    return await cart_functions.get_cart_or_empty(db, user, session_id)


def cart_payload(cart, message: str = None, discount: float = None):
    payload = {"cart": CartSchema.model_validate(cart).model_dump(mode="json")}
    if message:
        payload["message"] = message
    if discount is not None:
        payload["discount_amount"] = discount
    return payload


@router.get("/cart", response_class=HTMLResponse)
async def cart_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    cart=Depends(current_cart),
):
    coupon, discount = await cart_functions.get_cart_discount(db, cart)
    return await render(request, db, "cart.html", {
        "user": user,
        "cart": cart,
        "coupon": coupon,
        "discount": discount,
        "total": round(cart.total_amount - discount, 2),
    })


@router.get("/cart/items")
async def cart_items(cart=Depends(current_cart)):
    return cart_payload(cart)


@router.get("/cart/count")
async def cart_count(cart=Depends(current_cart)):
    return {"count": cart.item_count}


@router.post("/cart/add")
async def add_to_cart(
    data: CartItemIn,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    session_id: str = Depends(get_session_id),
):
    cart = await cart_functions.get_or_create_cart(db, user, session_id)
    cart = await cart_functions.add_to_cart(db, cart, data.product_id, data.quantity)
    return cart_payload(cart, "Product added to cart successfully.")


@router.patch("/cart/update/{item_id}")
async def update_cart_item(
    item_id: int, data: CartQuantityIn, db: AsyncSession = Depends(get_db), cart=Depends(current_cart)
):
    cart = await cart_functions.update_cart_item(db, cart, item_id, data.quantity)
    return cart_payload(cart, "Cart updated successfully.")


@router.delete("/cart/remove/{item_id}")
async def remove_cart_item(item_id: int, db: AsyncSession = Depends(get_db), cart=Depends(current_cart)):
    cart = await cart_functions.remove_cart_item(db, cart, item_id)
    return cart_payload(cart, "Item removed from cart successfully.")


@router.post("/cart/clear")
async def clear_cart(db: AsyncSession = Depends(get_db), cart=Depends(current_cart)):
    cart = await cart_functions.clear_cart(db, cart)
    return cart_payload(cart, "Cart cleared successfully.")


@router.post("/cart/coupon")
async def apply_coupon(data: CouponApply, db: AsyncSession = Depends(get_db), cart=Depends(current_cart)):
    coupon, discount = await cart_functions.apply_coupon(db, cart, data.coupon_code)
    return cart_payload(cart, f"Coupon {coupon.code} applied successfully.", discount)


@router.delete("/cart/coupon")
async def remove_coupon(db: AsyncSession = Depends(get_db), cart=Depends(current_cart)):
    cart = await cart_functions.remove_coupon(db, cart)
    return cart_payload(cart, "Coupon removed successfully.")


@router.post("/api/cart/sync")
async def sync_cart(data: CartSyncIn, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    cart = await cart_functions.get_or_create_cart(db, user)
    cart = await cart_functions.sync_cart(db, cart, data.items)
    return cart_payload(cart, "Cart synchronized successfully.")


@router.get("/api/cart/restore")
async def restore_cart(db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    if user is None:
        return {"items": {}}
    cart = await cart_functions.get_cart(db, user)
    return {"items": cart_functions.restore_cart(cart)}
