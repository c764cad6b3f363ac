# grocery_shop/routers/checkout.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.models import User
from grocery_shop.db.schemas import CheckoutIn, PlacedOrder
from grocery_shop.deps import get_optional_user, get_session_id, require_page_user
from grocery_shop.errors import FieldError, form_errors
from grocery_shop.functions import cart as cart_functions
from grocery_shop.functions import orders
from grocery_shop.functions.content import get_serviceable_areas
from grocery_shop.templating import render

router = APIRouter()


async def _checkout_page(request: Request, db: AsyncSession, user: User, cart, form: dict = None, errors: dict = None):
    coupon, discount = await cart_functions.get_cart_discount(db, cart)
    return await render(request, db, "checkout.html", {
        "user": user,
        "cart": cart,
        "coupon": coupon,
        "discount": discount,
        "subtotal": cart.total_amount,
        "payment_methods": orders.PAYMENT_METHODS,
        "delivery_options": orders.delivery_options(),
        "areas": await get_serviceable_areas(db),
        "form": form or {
            "name": user.name, "phone": user.phone, "address": user.address or "",
            "city": user.city or "", "area": user.area or "",
        },
        "errors": errors or {},
    }, status_code=422 if errors else 200)


@router.get("/checkout", response_class=HTMLResponse)
async def checkout(request: Request, db: AsyncSession = Depends(get_db), user: User = Depends(require_page_user)):
    cart = await cart_functions.get_cart_or_empty(db, user)
    if not cart.items:
        return RedirectResponse(url="/cart", status_code=303)
    return await _checkout_page(request, db, user, cart)


@router.post("/checkout/process", response_class=HTMLResponse)
async def process_checkout(
    request: Request,
    name: str = Form(""),
    phone: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    area: str = Form(""),
    payment_method: str = Form(""),
    delivery_option: str = Form(""),
    notes: str = Form(""),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_page_user),
):
    form = {
        "name": name, "phone": phone, "address": address, "city": city, "area": area,
        "payment_method": payment_method, "delivery_option": delivery_option, "notes": notes,
    }
    cart = await cart_functions.get_cart_or_empty(db, user)
    try:
        data = CheckoutIn(**form)
        order = await orders.place_order(db, cart, data, user)
    except (ValidationError, FieldError) as e:
        return await _checkout_page(request, db, user, cart, form, form_errors(e))
    return RedirectResponse(url=f"/order/confirmation/{order.id}", status_code=303)


@router.post("/place-order", response_model=PlacedOrder)
async def place_order(
    data: CheckoutIn,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    session_id: str = Depends(get_session_id),
):
    cart = await cart_functions.get_cart(db, user, session_id)
    order = await orders.place_order(db, cart, data, user)
    return PlacedOrder(
        order_id=order.id,
        order_number=order.order_number,
        total_amount=order.total_amount,
        redirect=f"/order/confirmation/{order.id}",
    )


@router.get("/order/confirmation/{order_id}", response_class=HTMLResponse)
@router.get("/order-confirmation/{order_id}", response_class=HTMLResponse)
async def order_confirmation(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    order = await orders.get_order_for_viewer(db, order_id, user)
    return await render(request, db, "order_confirmation.html", {"user": user, "order": order})
