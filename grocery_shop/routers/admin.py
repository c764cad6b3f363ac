# grocery_shop/routers/admin.py
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.config import ACCESS_TOKEN_EXPIRE_MINUTES
from grocery_shop.db.database import get_db
from grocery_shop.db.models import Admin, AdminRole
from grocery_shop.db.schemas import (
    AdminIn, AdminLogin, AdminProfileUpdate, AdminSchema, AdminUpdate, OrderBrief, Page, ProductBrief,
)
from grocery_shop.deps import ADMIN_COOKIE, get_current_admin, require_role
from grocery_shop.functions import admins

router = APIRouter(prefix="/admin")
protected = APIRouter(prefix="/admin", dependencies=[Depends(get_current_admin)])


@router.post("/login")
async def admin_login(
    request: Request, email: str = Form(...), password: str = Form(...), db: AsyncSession = Depends(get_db)
):
    credentials = AdminLogin(email=email, password=password)
    admin = await admins.authenticate_admin(db, credentials.email, credentials.password)
    token = admins.admin_token(admin)
    response = JSONResponse({
        "access_token": token,
        "token_type": "bearer",
        "admin": AdminSchema.model_validate(admin).model_dump(mode="json"),
    })
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        httponly=True,
        secure=request.url.scheme == "https",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return response


@protected.post("/logout")
async def admin_logout():
    response = JSONResponse({"message": "Logged out."})
    response.delete_cookie(ADMIN_COOKIE)
    return response


@protected.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)):
    data = await admins.get_dashboard(db)
    return {
        "stats": data["stats"],
        "recent_orders": [OrderBrief.model_validate(order) for order in data["recent_orders"]],
        "low_stock_products": [ProductBrief.model_validate(product) for product in data["low_stock_products"]],
    }


@protected.get("/profile", response_model=AdminSchema)
async def profile(admin: Admin = Depends(get_current_admin)):
    return admin


@protected.patch("/profile", response_model=AdminSchema)
async def update_profile(
    data: AdminProfileUpdate, db: AsyncSession = Depends(get_db), admin: Admin = Depends(get_current_admin)
):
    return await admins.update_admin_profile(db, admin, data)


# Admin accounts, role "admin" only

@protected.get("/admins", response_model=Page[AdminSchema])
async def admin_index(
    page: int = 1, db: AsyncSession = Depends(get_db), _: Admin = Depends(require_role(AdminRole.admin))
):
    return await admins.list_admins(db, page)


@protected.post("/admins", response_model=AdminSchema, status_code=201)
async def admin_store(
    data: AdminIn, db: AsyncSession = Depends(get_db), _: Admin = Depends(require_role(AdminRole.admin))
):
    return await admins.create_admin(db, data)


@protected.get("/admins/{admin_id}", response_model=AdminSchema)
async def admin_show(
    admin_id: int, db: AsyncSession = Depends(get_db), _: Admin = Depends(require_role(AdminRole.admin))
):
    return await admins.get_admin(db, admin_id)


@protected.put("/admins/{admin_id}", response_model=AdminSchema)
async def admin_update(
    admin_id: int,
    data: AdminUpdate,
    db: AsyncSession = Depends(get_db),
    current: Admin = Depends(require_role(AdminRole.admin)),
):
    return await admins.update_admin(db, admin_id, data, current)


@protected.delete("/admins/{admin_id}")
async def admin_destroy(
    admin_id: int, db: AsyncSession = Depends(get_db), current: Admin = Depends(require_role(AdminRole.admin))
):
    await admins.delete_admin(db, admin_id, current)
    return {"message": "Admin deleted successfully."}
