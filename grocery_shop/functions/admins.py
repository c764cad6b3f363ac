# grocery_shop/functions/admins.py
import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.auth_utils import create_access_token, hash_password, verify_password
from grocery_shop.db.models import Admin, AdminRole, Category, Coupon, Order, OrderStatus, Product, User
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import AdminIn, AdminProfileUpdate, AdminUpdate
from grocery_shop.errors import field_error

logger = logging.getLogger(__name__)

LOW_STOCK_LEVEL = 10


def admin_token(admin: Admin) -> str:
    return create_access_token({"sub": admin.email, "id": admin.id, "scope": "admin", "role": admin.role.value})


async def authenticate_admin(db: AsyncSession, email: str, password: str):
    result = await db.execute(select(Admin).filter(Admin.email == email.lower()))
    admin = result.scalar_one_or_none()
    if not admin or not verify_password(password, admin.hashed_password):
        raise field_error("email", "These credentials do not match our records.")
    logger.info("Admin %s logged in", admin.email)
    return admin


async def _sales_since(db: AsyncSession, since: datetime = None):
    query = select(func.coalesce(func.sum(Order.total_amount), 0)).filter(Order.order_status != OrderStatus.cancelled)
    if since is not None:
        query = query.filter(Order.created_at >= since)
    return round(float(await db.scalar(query) or 0), 2)


async def _count(db: AsyncSession, column, *criteria):
    return await db.scalar(select(func.count(column)).filter(*criteria))


async def get_dashboard(db: AsyncSession):
    """Store counters and sales totals for the back office home page. Sales skip cancelled orders."""
    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    recent = await db.execute(select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(5))
    low_stock = await db.execute(
        select(Product).filter(Product.stock <= LOW_STOCK_LEVEL).order_by(Product.stock, Product.name)
    )
    return {
        "stats": {
            "total_products": await _count(db, Product.id),
            "active_products": await _count(db, Product.id, Product.is_active.is_(True)),
            "low_stock_count": await _count(db, Product.id, Product.stock > 0, Product.stock <= LOW_STOCK_LEVEL),
            "out_of_stock_products": await _count(db, Product.id, Product.stock <= 0),
            "total_categories": await _count(db, Category.id),
            "total_orders": await _count(db, Order.id),
            "total_users": await _count(db, User.id),
            "total_coupons": await _count(db, Coupon.id),
            "pending_orders": await _count(db, Order.id, Order.order_status == OrderStatus.pending),
            "processing_orders": await _count(db, Order.id, Order.order_status == OrderStatus.processing),
            "shipped_orders": await _count(db, Order.id, Order.order_status == OrderStatus.shipped),
            "delivered_orders": await _count(db, Order.id, Order.order_status == OrderStatus.delivered),
            "today_sales": await _sales_since(db, today),
            "month_sales": await _sales_since(db, today.replace(day=1)),
            "year_sales": await _sales_since(db, today.replace(month=1, day=1)),
            "total_revenue": await _sales_since(db),
        },
        "recent_orders": recent.scalars().all(),
        "low_stock_products": low_stock.scalars().all(),
    }


async def update_admin_profile(db: AsyncSession, admin: Admin, data: AdminProfileUpdate):
    await _check_unique_email(db, data.email, exclude_id=admin.id)
    if data.password:
        if not data.current_password or not verify_password(data.current_password, admin.hashed_password):
            raise field_error("current_password", "The current password is incorrect.")
        admin.hashed_password = hash_password(data.password)
    admin.name = data.name
    admin.email = data.email.lower()
    await db.commit()
    await db.refresh(admin)
    return admin


# Admin accounts

async def list_admins(db: AsyncSession, page: int = 1, per_page: int = 10):
    return await paginate(db, select(Admin).order_by(Admin.created_at.desc(), Admin.id.desc()), page, per_page)


async def get_admin(db: AsyncSession, admin_id: int):
    result = await db.execute(select(Admin).filter(Admin.id == admin_id))
    admin = result.scalar_one_or_none()
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return admin


async def _check_unique_email(db: AsyncSession, email: str, exclude_id: int = None):
    query = select(Admin.id).filter(Admin.email == email.lower())
    if exclude_id is not None:
        query = query.filter(Admin.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise field_error("email", "The email has already been taken.")


async def create_admin(db: AsyncSession, data: AdminIn):
    await _check_unique_email(db, data.email)
    admin = Admin(
        name=data.name,
        email=data.email.lower(),
        hashed_password=hash_password(data.password),
        role=data.role,
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    return admin


async def update_admin(db: AsyncSession, admin_id: int, data: AdminUpdate, current: Admin):
    if admin_id == current.id:
        raise HTTPException(status_code=403, detail="Use the profile page to edit your own account.")
    admin = await get_admin(db, admin_id)
    await _check_unique_email(db, data.email, exclude_id=admin.id)
    if admin.role == AdminRole.admin and data.role != AdminRole.admin and await _count_admins(db) <= 1:
        raise field_error("role", "The last admin cannot be demoted.")
    admin.name = data.name
    admin.email = data.email.lower()
    admin.role = data.role
    if data.password:
        admin.hashed_password = hash_password(data.password)
    await db.commit()
    await db.refresh(admin)
    return admin


async def _count_admins(db: AsyncSession) -> int:
    return await db.scalar(select(func.count(Admin.id)).filter(Admin.role == AdminRole.admin))


async def delete_admin(db: AsyncSession, admin_id: int, current: Admin):
    if admin_id == current.id:
        raise HTTPException(status_code=403, detail="You cannot delete your own account.")
    admin = await get_admin(db, admin_id)
    if admin.role == AdminRole.admin and await _count_admins(db) <= 1:
        raise HTTPException(status_code=403, detail="Cannot delete the last admin account.")
    await db.delete(admin)
    await db.commit()
    logger.info("Admin %s deleted admin %s", current.email, admin.email)
    return admin
