# grocery_shop/routers/account.py
from typing import List

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.models import User
from grocery_shop.db.schemas import ProfileUpdate, WishlistIn, WishlistSchema
from grocery_shop.deps import get_current_user, require_page_user
from grocery_shop.errors import FieldError, form_errors
from grocery_shop.functions import orders, users
from grocery_shop.routers.cart import cart_payload
from grocery_shop.templating import render

router = APIRouter()


def _profile_form(user: User) -> dict:
    return {
        "name": user.name, "phone": user.phone, "address": user.address or "",
        "city": user.city or "", "area": user.area or "",
    }


@router.get("/profile", response_class=HTMLResponse)
async def profile(request: Request, saved: bool = False, db: AsyncSession = Depends(get_db), user: User = Depends(require_page_user)):
    return await render(request, db, "user/profile.html", {"user": user, "form": _profile_form(user), "saved": saved})


@router.api_route("/profile", methods=["POST", "PATCH"], response_class=HTMLResponse)
async def update_profile(
    request: Request,
    name: str = Form(""),
    phone: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    area: str = Form(""),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_page_user),
):
    form = {"name": name, "phone": phone, "address": address, "city": city, "area": area}
    try:
        data = ProfileUpdate(password=password, password_confirmation=password_confirmation, **form)
        await users.update_profile(db, user, data)
    except (ValidationError, FieldError) as e:
        return await render(request, db, "user/profile.html", {
            "user": user, "form": form, "errors": form_errors(e),
        }, status_code=422)
    return RedirectResponse(url="/profile?saved=1", status_code=303)


@router.get("/orders", response_class=HTMLResponse)
async def my_orders(request: Request, page: int = 1, db: AsyncSession = Depends(get_db), user: User = Depends(require_page_user)):
    return await render(request, db, "user/orders.html", {
        "user": user,
        "orders": await orders.list_user_orders(db, user, page),
    })


@router.get("/user/orders/{order_id}", response_class=HTMLResponse)
async def my_order(request: Request, order_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(require_page_user)):
    return await render(request, db, "user/order_details.html", {
        "user": user,
        "order": await orders.get_user_order(db, order_id, user),
    })


# Wishlist

@router.get("/wishlist", response_model=List[WishlistSchema])
async def wishlist(db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    return await users.get_wishlist(db, user)


@router.post("/wishlist/add")
async def wishlist_add(data: WishlistIn, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    added = await users.add_to_wishlist(db, user, data.product_id)
    message = "Product added to wishlist." if added else "Product is already in your wishlist."
    return {"success": True, "message": message}


@router.delete("/wishlist/remove")
async def wishlist_remove(data: WishlistIn, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    removed = await users.remove_from_wishlist(db, user, data.product_id)
    message = "Product removed from wishlist." if removed else "Product was not in your wishlist."
    return {"success": removed, "message": message}


@router.get("/wishlist/check")
async def wishlist_check(product_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    return {"in_wishlist": await users.in_wishlist(db, user, product_id)}


@router.post("/wishlist/to-cart")
async def wishlist_to_cart(data: WishlistIn, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    cart = await users.move_wishlist_to_cart(db, user, data.product_id)
    return cart_payload(cart, "Product moved to cart.")
