# grocery_shop/routers/admin_content.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.db.database import get_db
from grocery_shop.db.schemas import AreaIn, AreaSchema, BannerIn, BannerSchema, Page, SettingsIn, present
from grocery_shop.deps import get_current_admin
from grocery_shop.functions import content

router = APIRouter(prefix="/admin", dependencies=[Depends(get_current_admin)])


def banner_form(
    title: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
    order: Optional[str] = Form(None),
) -> BannerIn:
    return BannerIn(**present(title=title, link=link, is_active=is_active, order=order))


# Banners

@router.get("/banners", response_model=Page[BannerSchema])
async def banner_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await content.list_banners(db, page)


@router.post("/banners", response_model=BannerSchema, status_code=201)
async def banner_store(
    data: BannerIn = Depends(banner_form),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    return await content.create_banner(db, data, image)


@router.get("/banners/{banner_id}", response_model=BannerSchema)
async def banner_show(banner_id: int, db: AsyncSession = Depends(get_db)):
    return await content.get_banner(db, banner_id)


@router.api_route("/banners/{banner_id}", methods=["PUT", "PATCH", "POST"], response_model=BannerSchema)
async def banner_update(
    banner_id: int,
    data: BannerIn = Depends(banner_form),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    return await content.update_banner(db, banner_id, data, image)


@router.delete("/banners/{banner_id}")
async def banner_destroy(banner_id: int, db: AsyncSession = Depends(get_db)):
    await content.delete_banner(db, banner_id)
    return {"message": "Banner deleted successfully."}


# Delivery areas

@router.get("/areas", response_model=Page[AreaSchema])
async def area_index(page: int = 1, db: AsyncSession = Depends(get_db)):
    return await content.list_areas(db, page)


@router.post("/areas", response_model=AreaSchema, status_code=201)
async def area_store(data: AreaIn, db: AsyncSession = Depends(get_db)):
    return await content.create_area(db, data)


@router.get("/areas/{area_id}", response_model=AreaSchema)
async def area_show(area_id: int, db: AsyncSession = Depends(get_db)):
    return await content.get_area(db, area_id)


@router.put("/areas/{area_id}", response_model=AreaSchema)
async def area_update(area_id: int, data: AreaIn, db: AsyncSession = Depends(get_db)):
    return await content.update_area(db, area_id, data)


@router.delete("/areas/{area_id}")
async def area_destroy(area_id: int, db: AsyncSession = Depends(get_db)):
    await content.delete_area(db, area_id)
    return {"message": "Area deleted successfully."}


# Store settings

@router.get("/settings")
async def settings_index(db: AsyncSession = Depends(get_db)):
    return await content.get_settings(db)


@router.patch("/settings")
async def settings_update(
    store_name: Optional[str] = Form(None),
    store_email: Optional[str] = Form(None),
    store_phone: Optional[str] = Form(None),
    store_address: Optional[str] = Form(None),
    store_city: Optional[str] = Form(None),
    store_country: Optional[str] = Form(None),
    store_zip: Optional[str] = Form(None),
    meta_title: Optional[str] = Form(None),
    meta_description: Optional[str] = Form(None),
    currency: Optional[str] = Form(None),
    currency_symbol: Optional[str] = Form(None),
    tax_percentage: Optional[str] = Form(None),
    free_shipping_threshold: Optional[str] = Form(None),
    social_facebook: Optional[str] = Form(None),
    social_twitter: Optional[str] = Form(None),
    social_instagram: Optional[str] = Form(None),
    about_us: Optional[str] = Form(None),
    privacy_policy: Optional[str] = Form(None),
    terms_conditions: Optional[str] = Form(None),
    return_policy: Optional[str] = Form(None),
    shipping_policy: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    favicon: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    data = SettingsIn(**present(
        store_name=store_name, store_email=store_email, store_phone=store_phone, store_address=store_address,
        store_city=store_city, store_country=store_country, store_zip=store_zip, meta_title=meta_title,
        meta_description=meta_description, currency=currency, currency_symbol=currency_symbol,
        tax_percentage=tax_percentage, free_shipping_threshold=free_shipping_threshold,
        social_facebook=social_facebook, social_twitter=social_twitter, social_instagram=social_instagram,
        about_us=about_us, privacy_policy=privacy_policy, terms_conditions=terms_conditions,
        return_policy=return_policy, shipping_policy=shipping_policy,
    ))
    settings = await content.update_settings(db, data, logo, favicon)
    return {"message": "Settings updated successfully.", "settings": settings}
