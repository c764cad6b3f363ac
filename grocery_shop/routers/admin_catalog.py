# grocery_shop/routers/admin_catalog.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.schemas import (
    CategoryBrief, CategoryDetail, CategoryIn, CategorySchema, Page, ProductIn, ProductSchema, present,
)
from grocery_shop.deps import get_current_admin
from grocery_shop.functions import catalog

router = APIRouter(prefix="/admin", dependencies=[Depends(get_current_admin)])


def product_form(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    special_price: Optional[str] = Form(None),
    unit: Optional[str] = Form(None),
    stock: Optional[str] = Form(None),
    sku: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    is_featured: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
) -> ProductIn:
    return ProductIn(**present(
        name=name, description=description, price=price, special_price=special_price, unit=unit,
        stock=stock, sku=sku, category_id=category_id, is_featured=is_featured, is_active=is_active,
    ))


def category_form(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    parent_id: Optional[str] = Form(None),
    order: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
) -> CategoryIn:
    return CategoryIn(**present(
        name=name, description=description, parent_id=parent_id, order=order, is_active=is_active,
    ))


# Products

@router.get("/products", response_model=Page[ProductSchema])
async def product_index(page: int = 1, search: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    return await catalog.admin_list_products(db, page, search=search)


@router.post("/products", response_model=ProductSchema, status_code=201)
async def product_store(
    data: ProductIn = Depends(product_form),
    images: List[UploadFile] = File(None),
    primary_image: int = Form(0),
    db: AsyncSession = Depends(get_db),
):
    return await catalog.create_product(db, data, images or [], primary_image)


@router.get("/products/{product_id}", response_model=ProductSchema)
async def product_show(product_id: int, db: AsyncSession = Depends(get_db)):
    return await catalog.get_product(db, product_id)


@router.api_route("/products/{product_id}", methods=["PUT", "PATCH", "POST"], response_model=ProductSchema)
async def product_update(
    product_id: int,
    data: ProductIn = Depends(product_form),
    images: List[UploadFile] = File(None),
    primary_image: Optional[str] = Form(None),
    remove_images: List[int] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    return await catalog.update_product(db, product_id, data, images or [], primary_image, remove_images or [])


@router.delete("/products/{product_id}")
async def product_destroy(product_id: int, db: AsyncSession = Depends(get_db)):
    await catalog.delete_product(db, product_id)
    return {"message": "Product deleted successfully."}


# Categories

@router.get("/categories", response_model=Page[CategorySchema])
async def category_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await catalog.admin_list_categories(db, page)


@router.get("/categories/parents", response_model=List[CategoryBrief])
async def category_parents(exclude: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    return await catalog.get_parent_options(db, exclude)


@router.post("/categories", response_model=CategorySchema, status_code=201)
async def category_store(
    data: CategoryIn = Depends(category_form),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    return await catalog.create_category(db, data, image)


@router.get("/categories/{category_id}", response_model=CategoryDetail)
async def category_show(category_id: int, db: AsyncSession = Depends(get_db)):
    return await catalog.get_category_detail(db, category_id)


@router.api_route("/categories/{category_id}", methods=["PUT", "PATCH", "POST"], response_model=CategorySchema)
async def category_update(
    category_id: int,
    data: CategoryIn = Depends(category_form),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    return await catalog.update_category(db, category_id, data, image)


@router.delete("/categories/{category_id}")
async def category_destroy(category_id: int, db: AsyncSession = Depends(get_db)):
    await catalog.delete_category(db, category_id)
    return {"message": "Category deleted successfully."}
