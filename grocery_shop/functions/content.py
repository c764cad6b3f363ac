# grocery_shop/functions/content.py
import logging

from fastapi import HTTPException, UploadFile
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.db.models import Area, Banner, Setting
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import AreaIn, BannerIn, SettingsIn
from grocery_shop.errors import field_error
from grocery_shop.storage import SETTINGS_IMAGE_EXTENSIONS, check_image, commit_with_files, has_file, store_upload

logger = logging.getLogger(__name__)

SETTING_DEFAULTS = {
    "store_name": "My Grocery Store",
    "store_email": "info@mygrocerystore.com",
    "store_phone": "+1234567890",
    "store_address": "123 Main Street",
    "store_city": "Anytown",
    "store_country": "Country",
    "store_zip": "12345",
    "meta_title": "My Grocery Store - Fresh Groceries Delivered",
    "meta_description": "Order fresh groceries online and get them delivered to your doorstep.",
    "logo": None,
    "favicon": None,
    "currency": "USD",
    "currency_symbol": "$",
    "tax_percentage": "0",
    "free_shipping_threshold": "0",
    "social_facebook": "",
    "social_twitter": "",
    "social_instagram": "",
    "about_us": "",
    "privacy_policy": "",
    "terms_conditions": "",
    "return_policy": "",
    "shipping_policy": "",
}

PUBLIC_SETTINGS = (
    "store_name", "store_email", "store_phone", "meta_title", "meta_description", "logo", "favicon",
    "currency", "currency_symbol", "social_facebook", "social_twitter", "social_instagram",
)

# slug -> (title, setting key)
STATIC_PAGES = {
    "about-us": ("About Us", "about_us"),
    "privacy-policy": ("Privacy Policy", "privacy_policy"),
    "terms-conditions": ("Terms & Conditions", "terms_conditions"),
    "return-policy": ("Return Policy", "return_policy"),
    "shipping-policy": ("Shipping Policy", "shipping_policy"),
}


# Banners

async def list_banners(db: AsyncSession, page: int = 1, per_page: int = 10):
    return await paginate(db, select(Banner).order_by(Banner.order, Banner.id), page, per_page)


async def get_active_banners(db: AsyncSession):
    result = await db.execute(select(Banner).filter(Banner.is_active.is_(True)).order_by(Banner.order, Banner.id))
    return result.scalars().all()


async def get_banner(db: AsyncSession, banner_id: int):
    result = await db.execute(select(Banner).filter(Banner.id == banner_id))
    banner = result.scalar_one_or_none()
    if not banner:
        raise HTTPException(status_code=404, detail="Banner not found")
    return banner


async def create_banner(db: AsyncSession, data: BannerIn, image: UploadFile):
    if not has_file(image):
        raise field_error("image", "The image field is required.")
    check_image(image, "image")
    banner = Banner(**data.model_dump(), image=await store_upload(image, "banners"))
    db.add(banner)
    await commit_with_files(db, stored=[banner.image])
    await db.refresh(banner)
    return banner


async def update_banner(db: AsyncSession, banner_id: int, data: BannerIn, image: UploadFile = None):
    banner = await get_banner(db, banner_id)
    if has_file(image):
        check_image(image, "image")
    for field, value in data.model_dump().items():
        setattr(banner, field, value)
    stored, replaced = [], []
    if has_file(image):
        replaced.append(banner.image)
        banner.image = await store_upload(image, "banners")
        stored.append(banner.image)
    await commit_with_files(db, stored=stored, replaced=replaced)
    await db.refresh(banner)
    return banner


async def delete_banner(db: AsyncSession, banner_id: int):
    banner = await get_banner(db, banner_id)
    await db.delete(banner)
    await commit_with_files(db, replaced=[banner.image])
    logger.info("Deleted banner %s", banner_id)
    return banner


# Areas

async def list_areas(db: AsyncSession, page: int = 1, per_page: int = 15):
    return await paginate(db, select(Area).order_by(Area.city, Area.name), page, per_page)


async def get_serviceable_areas(db: AsyncSession):
    result = await db.execute(select(Area).filter(Area.is_serviceable.is_(True)).order_by(Area.city, Area.name))
    return result.scalars().all()


async def get_area(db: AsyncSession, area_id: int):
    result = await db.execute(select(Area).filter(Area.id == area_id))
    area = result.scalar_one_or_none()
    if not area:
        raise HTTPException(status_code=404, detail="Area not found")
    return area


async def find_serviceable_area(db: AsyncSession, city: str, name: str):
    result = await db.execute(
        select(Area).filter(
            func.lower(Area.city) == (city or "").strip().lower(),
            func.lower(Area.name) == (name or "").strip().lower(),
            Area.is_serviceable.is_(True),
        )
    )
    return result.scalars().first()


async def get_delivery_charge(db: AsyncSession, city: str, name: str):
    area = await find_serviceable_area(db, city, name)
    if area is None:
        raise HTTPException(status_code=404, detail="Delivery not available in this area")
    return area.delivery_charge


async def create_area(db: AsyncSession, data: AreaIn):
    area = Area(**data.model_dump())
    db.add(area)
    await db.commit()
    await db.refresh(area)
    return area


async def update_area(db: AsyncSession, area_id: int, data: AreaIn):
    area = await get_area(db, area_id)
    for field, value in data.model_dump().items():
        setattr(area, field, value)
    await db.commit()
    await db.refresh(area)
    return area


async def delete_area(db: AsyncSession, area_id: int):
    area = await get_area(db, area_id)
    await db.delete(area)
    await db.commit()
    return area


# Settings

async def get_setting(db: AsyncSession, key: str, default=None):
    result = await db.execute(select(Setting.value).filter(Setting.key == key))
    row = result.first()
    if row is None:
        return SETTING_DEFAULTS.get(key) if default is None else default
    return row[0]


async def get_settings(db: AsyncSession, keys=None) -> dict:
    """Stored values for ``keys`` (all known settings by default), falling back to the defaults."""
    keys = list(keys or SETTING_DEFAULTS)
    result = await db.execute(select(Setting).filter(Setting.key.in_(keys)))
    stored = {setting.key: setting.value for setting in result.scalars().all()}
    return {key: stored.get(key, SETTING_DEFAULTS.get(key)) for key in keys}


async def get_float_setting(db: AsyncSession, key: str) -> float:
    value = await get_setting(db, key)
    try:
        return float(value or 0)
    except ValueError:
        logger.warning("Setting %s has a non-numeric value %r", key, value)
        return 0.0


async def set_setting(db: AsyncSession, key: str, value):
    result = await db.execute(select(Setting).filter(Setting.key == key))
    setting = result.scalar_one_or_none()
    value = None if value is None else str(value)
    if setting is None:
        db.add(Setting(key=key, value=value))
    else:
        setting.value = value


async def update_settings(db: AsyncSession, data: SettingsIn, logo: UploadFile = None, favicon: UploadFile = None):
    if has_file(logo):
        check_image(logo, "logo", extensions=SETTINGS_IMAGE_EXTENSIONS)
    if has_file(favicon):
        check_image(favicon, "favicon", extensions=SETTINGS_IMAGE_EXTENSIONS, max_size=1024 * 1024)

    for key, value in data.model_dump().items():
        await set_setting(db, key, value)

    stored, replaced = [], []
    for key, upload in (("logo", logo), ("favicon", favicon)):
        if has_file(upload):
            replaced.append(await get_setting(db, key))
            path = await store_upload(upload, "settings")
            stored.append(path)
            await set_setting(db, key, path)

    await commit_with_files(db, stored=stored, replaced=replaced)
    logger.info("Store settings updated")
    return await get_settings(db)


async def get_static_page(db: AsyncSession, slug: str):
    if slug not in STATIC_PAGES:
        raise HTTPException(status_code=404, detail="Page not found")
    title, key = STATIC_PAGES[slug]
    return {"title": title, "content": await get_setting(db, key) or ""}
