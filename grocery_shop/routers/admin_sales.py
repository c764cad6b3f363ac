# grocery_shop/routers/admin_sales.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.schemas import (
    CouponIn, CouponSchema, OrderAdminSchema, OrderBrief, OrderStatusUpdate, Page, UserDetail, UserIn, UserSchema, UserUpdate,
)
from grocery_shop.deps import get_current_admin
from grocery_shop.functions import coupons, orders, users

router = APIRouter(prefix="/admin", dependencies=[Depends(get_current_admin)])


# Coupons

@router.get("/coupons", response_model=Page[CouponSchema])
async def coupon_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await coupons.list_coupons(db, page)


@router.post("/coupons", response_model=CouponSchema, status_code=201)
async def coupon_store(data: CouponIn, db: AsyncSession = Depends(get_db)):
    return await coupons.create_coupon(db, data)


@router.get("/coupons/{coupon_id}", response_model=CouponSchema)
async def coupon_show(coupon_id: int, db: AsyncSession = Depends(get_db)):
    return await coupons.get_coupon_by_id(db, coupon_id)


@router.put("/coupons/{coupon_id}", response_model=CouponSchema)
async def coupon_update(coupon_id: int, data: CouponIn, db: AsyncSession = Depends(get_db)):
    return await coupons.update_coupon(db, coupon_id, data)


@router.delete("/coupons/{coupon_id}")
async def coupon_destroy(coupon_id: int, db: AsyncSession = Depends(get_db)):
    await coupons.delete_coupon(db, coupon_id)
    return {"message": "Coupon deleted successfully."}


# Orders

@router.get("/orders", response_model=Page[OrderAdminSchema])
async def order_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await orders.admin_list_orders(db, page)


@router.get("/orders/{order_id}", response_model=OrderAdminSchema)
async def order_show(order_id: int, db: AsyncSession = Depends(get_db)):
    return await orders.get_order(db, order_id)


@router.patch("/orders/{order_id}/status", response_model=OrderAdminSchema)
async def order_status(order_id: int, data: OrderStatusUpdate, db: AsyncSession = Depends(get_db)):
    return await orders.update_order_status(db, order_id, data)


# Customers

@router.get("/users", response_model=Page[UserSchema])
async def user_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await users.admin_list_users(db, page)


@router.post("/users", response_model=UserSchema, status_code=201)
async def user_store(data: UserIn, db: AsyncSession = Depends(get_db)):
    return await users.create_user(db, data)


@router.get("/users/{user_id}", response_model=UserDetail)
async def user_show(user_id: int, db: AsyncSession = Depends(get_db)):
    user, user_orders = await users.get_user_detail(db, user_id)
    return UserDetail(
        **UserSchema.model_validate(user).model_dump(),
        orders=[OrderBrief.model_validate(order) for order in user_orders],
    )


@router.put("/users/{user_id}", response_model=UserSchema)
async def user_update(user_id: int, data: UserUpdate, db: AsyncSession = Depends(get_db)):
    return await users.update_user(db, user_id, data)


@router.delete("/users/{user_id}")
async def user_destroy(user_id: int, db: AsyncSession = Depends(get_db)):
    await users.delete_user(db, user_id)
    return {"message": "User deleted successfully."}
