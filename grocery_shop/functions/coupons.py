# grocery_shop/functions/coupons.py
import logging

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.db.models import Coupon
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import CouponIn
from grocery_shop.errors import field_error

logger = logging.getLogger(__name__)


async def list_coupons(db: AsyncSession, page: int = 1, per_page: int = 10):
    query = select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc())
    return await paginate(db, query, page, per_page)


async def get_coupon_by_id(db: AsyncSession, coupon_id: int):
    result = await db.execute(select(Coupon).filter(Coupon.id == coupon_id))
    coupon = result.scalar_one_or_none()
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


async def _check_unique_code(db: AsyncSession, code: str, exclude_id: int = None):
    query = select(Coupon.id).filter(Coupon.code == code)
    if exclude_id is not None:
        query = query.filter(Coupon.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise field_error("code", "The code has already been taken.")


async def create_coupon(db: AsyncSession, data: CouponIn):
    await _check_unique_code(db, data.code)
    coupon = Coupon(**data.model_dump(), used_count=0)
    db.add(coupon)
    await db.commit()
    await db.refresh(coupon)
    return coupon


async def update_coupon(db: AsyncSession, coupon_id: int, data: CouponIn):
    coupon = await get_coupon_by_id(db, coupon_id)
    await _check_unique_code(db, data.code, exclude_id=coupon.id)
    for field, value in data.model_dump().items():
        setattr(coupon, field, value)
    await db.commit()
    await db.refresh(coupon)
    return coupon


async def delete_coupon(db: AsyncSession, coupon_id: int):
    coupon = await get_coupon_by_id(db, coupon_id)
    await db.delete(coupon)
    await db.commit()
    logger.info("Deleted coupon %s", coupon.code)
    return coupon


async def validate_coupon(db: AsyncSession, code: str, amount: float):
    """Check a code against an order amount the way the checkout form does."""
    result = await db.execute(select(Coupon).filter(Coupon.code == code.strip().upper()))
    coupon = result.scalar_one_or_none()
    if coupon is None:
        return {"valid": False, "message": "Invalid coupon code."}

    reason = coupon.invalid_reason(amount)
    if reason:
        return {"valid": False, "message": reason}

    return {
        "valid": True,
        "message": "Coupon is valid.",
        "coupon": {"code": coupon.code, "type": coupon.type.value, "value": coupon.value},
        "discount_amount": coupon.calculate_discount(amount),
    }
