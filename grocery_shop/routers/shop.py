# grocery_shop/routers/shop.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.models import User
from grocery_shop.db.schemas import (
    AreaSchema, BannerSchema, CategorySchema, CouponValidateIn, DeliveryChargeIn, ProductBrief,
)
from grocery_shop.deps import get_optional_user
from grocery_shop.errors import FieldError
from grocery_shop.functions import catalog, content, coupons
from grocery_shop.templating import render

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def home(request: Request, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    return await render(request, db, "home.html", {
        "user": user,
        "sections": await catalog.get_home_sections(db),
        "featured": await catalog.get_featured_products(db, limit=12),
        "new_arrivals": await catalog.get_new_arrivals(db, limit=10),
        "banners": await content.get_active_banners(db),
    })


@router.get("/products", response_class=HTMLResponse)
async def all_products(
    request: Request,
    page: int = 1,
    category: Optional[int] = None,
    sort: str = "newest",
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    return await render(request, db, "products.html", {
        "user": user,
        "title": "All Products",
        "products": await catalog.list_products(db, page, category=category, sort=sort),
        "categories": await catalog.get_root_categories(db),
        "filters": {"category": category, "sort": sort},
    })


@router.get("/products/featured", response_class=HTMLResponse)
async def featured_products(
    request: Request, page: int = 1, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)
):
    return await render(request, db, "products.html", {
        "user": user,
        "title": "Featured Products",
        "products": await catalog.list_featured_products(db, page),
    })


@router.get("/products/new", response_class=HTMLResponse)
async def new_products(
    request: Request, page: int = 1, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)
):
    return await render(request, db, "products.html", {
        "user": user,
        "title": "New Arrivals",
        "products": await catalog.list_new_arrivals(db, page),
    })


@router.get("/offers", response_class=HTMLResponse)
async def offers(
    request: Request, page: int = 1, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)
):
    return await render(request, db, "products.html", {
        "user": user,
        "title": "Special Offers",
        "products": await catalog.list_offers(db, page),
    })


@router.get("/categories", response_class=HTMLResponse)
async def categories(request: Request, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)):
    return await render(request, db, "categories.html", {
        "user": user,
        "categories": await catalog.get_category_tree(db),
    })


@router.get("/category/{slug}", response_class=HTMLResponse)
async def category_page(
    request: Request,
    slug: str,
    page: int = 1,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    category = await catalog.get_category_by_slug(db, slug)
    return await render(request, db, "category.html", {
        "user": user,
        "category": category,
        "subcategories": [child for child in category.children if child.is_active],
        "products": await catalog.get_category_products(db, category, page),
    })


@router.get("/product/{slug}", response_class=HTMLResponse)
async def product_page(
    request: Request, slug: str, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)
):
    product = await catalog.get_product_by_slug(db, slug)
    return await render(request, db, "product.html", {
        "user": user,
        "product": product,
        "related": await catalog.get_related_products(db, product),
    })


@router.get("/search", response_class=HTMLResponse)
async def search(
    request: Request,
    query: str = "",
    page: int = 1,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    try:
        results = await catalog.search_products(db, query, page)
    except FieldError as e:
        return await render(request, db, "search.html", {
            "user": user, "query": query, "products": None, "errors": e.errors,
        }, status_code=422)
    return await render(request, db, "search.html", {"user": user, "query": query, "products": results})


@router.get("/page/{slug}", response_class=HTMLResponse)
async def static_page(
    request: Request, slug: str, db: AsyncSession = Depends(get_db), user: Optional[User] = Depends(get_optional_user)
):
    page = await content.get_static_page(db, slug)
    return await render(request, db, "page.html", {"user": user, **page})


# JSON endpoints used by the storefront scripts

@router.get("/api/categories", response_model=List[CategorySchema])
async def api_categories(db: AsyncSession = Depends(get_db)):
    return await catalog.get_category_tree(db)


@router.get("/api/featured-products", response_model=List[ProductBrief])
async def api_featured_products(db: AsyncSession = Depends(get_db)):
    return await catalog.get_featured_products(db, limit=8, random=True)


@router.get("/api/search/suggestions", response_model=List[ProductBrief])
async def api_search_suggestions(query: str = "", db: AsyncSession = Depends(get_db)):
    return await catalog.search_suggestions(db, query)


@router.post("/api/validate-coupon")
async def api_validate_coupon(data: CouponValidateIn, db: AsyncSession = Depends(get_db)):
    return await coupons.validate_coupon(db, data.code, data.amount)


@router.get("/api/banners", response_model=List[BannerSchema])
async def api_banners(db: AsyncSession = Depends(get_db)):
    return await content.get_active_banners(db)


@router.get("/api/areas", response_model=List[AreaSchema])
async def api_areas(db: AsyncSession = Depends(get_db)):
    return await content.get_serviceable_areas(db)


@router.post("/api/delivery-charge")
async def api_delivery_charge(data: DeliveryChargeIn, db: AsyncSession = Depends(get_db)):
    charge = await content.get_delivery_charge(db, data.city, data.area)
    return {"delivery_charge": charge}


@router.get("/api/settings")
async def api_settings(db: AsyncSession = Depends(get_db)):
    return await content.get_settings(db, content.PUBLIC_SETTINGS)
