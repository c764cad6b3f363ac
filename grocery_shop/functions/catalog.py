# grocery_shop/functions/catalog.py
import logging
from typing import List, Optional

from fastapi import HTTPException, UploadFile
from slugify import slugify
from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.db.models import Cart, CartItem, Category, OrderItem, Product, ProductImage, Wishlist
from grocery_shop.db.pagination import paginate
from grocery_shop.db.schemas import CategoryIn, CategorySchema, ProductIn
from grocery_shop.errors import field_error
from grocery_shop.storage import check_image, commit_with_files, has_file, store_upload

logger = logging.getLogger(__name__)

PRODUCT_SORTS = {
    "newest": Product.created_at.desc(),
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "name": Product.name.asc(),
}


async def unique_slug(db: AsyncSession, model, name: str, exclude_id: int = None) -> str:
    """Slugify ``name`` and append -2, -3, ... until it is free."""
    base = slugify(name) or "item"
    candidate = base
    suffix = 1
    while True:
        query = select(model.id).filter(model.slug == candidate)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if (await db.execute(query)).first() is None:
            return candidate
        suffix += 1
        candidate = f"{base}-{suffix}"


# Storefront queries

def active_products():
    return select(Product).filter(Product.is_active.is_(True))


async def list_products(db: AsyncSession, page: int = 1, per_page: int = 24, category: int = None, sort: str = "newest"):
    query = active_products()
    if category:
        query = query.filter(Product.category_id == category)
    query = query.order_by(PRODUCT_SORTS.get(sort, PRODUCT_SORTS["newest"]), Product.id.desc())
    return await paginate(db, query, page, per_page)


async def get_featured_products(db: AsyncSession, limit: int = 12, random: bool = False):
    query = active_products().filter(Product.is_featured.is_(True))
    query = query.order_by(func.random()) if random else query.order_by(Product.id)
    result = await db.execute(query.limit(limit))
    return result.scalars().all()


async def get_new_arrivals(db: AsyncSession, limit: int = 10):
    result = await db.execute(active_products().order_by(Product.created_at.desc(), Product.id.desc()).limit(limit))
    return result.scalars().all()


async def list_featured_products(db: AsyncSession, page: int = 1, per_page: int = 24):
    query = active_products().filter(Product.is_featured.is_(True)).order_by(Product.id)
    return await paginate(db, query, page, per_page)


async def list_new_arrivals(db: AsyncSession, page: int = 1, per_page: int = 24):
    query = active_products().order_by(Product.created_at.desc(), Product.id.desc())
    return await paginate(db, query, page, per_page)


async def list_offers(db: AsyncSession, page: int = 1, per_page: int = 24):
    query = active_products().filter(Product.special_price.is_not(None)).order_by(Product.id.desc())
    return await paginate(db, query, page, per_page)


async def get_root_categories(db: AsyncSession, limit: int = None):
    query = select(Category).filter(
        Category.parent_id.is_(None), Category.is_active.is_(True)
    ).order_by(Category.order, Category.id)
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def get_category_tree(db: AsyncSession):
    """Active root categories with their active children."""
    tree = []
    for category in await get_root_categories(db):
        node = CategorySchema.model_validate(category)
        node.children = [child for child in node.children if child.is_active]
        tree.append(node)
    return tree


async def get_home_sections(db: AsyncSession):
    sections = []
    for category in await get_root_categories(db, limit=10):
        result = await db.execute(
            active_products().filter(Product.category_id == category.id).order_by(Product.id.desc()).limit(10)
        )
        sections.append({"category": category, "products": result.scalars().all()})
    return sections


async def get_category_by_slug(db: AsyncSession, slug: str):
    result = await db.execute(select(Category).filter(Category.slug == slug, Category.is_active.is_(True)))
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


async def get_category_products(db: AsyncSession, category: Category, page: int = 1, per_page: int = 24):
    query = active_products().filter(Product.category_id == category.id).order_by(Product.name)
    return await paginate(db, query, page, per_page)


async def get_product_by_slug(db: AsyncSession, slug: str):
    result = await db.execute(active_products().filter(Product.slug == slug))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def get_related_products(db: AsyncSession, product: Product, limit: int = 8):
    result = await db.execute(
        active_products()
        .filter(Product.category_id == product.category_id, Product.id != product.id)
        .order_by(func.random())
        .limit(limit)
    )
    return result.scalars().all()


def _like_pattern(term: str) -> str:
    # Wildcards typed by the shopper match literally
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _search_filter(term: str):
    pattern = _like_pattern(term)
    return or_(
        Product.name.ilike(pattern, escape="\\"),
        Product.description.ilike(pattern, escape="\\"),
        Product.sku.ilike(pattern, escape="\\"),
    )


async def search_products(db: AsyncSession, term: str, page: int = 1, per_page: int = 20):
    term = (term or "").strip()
    if len(term) < 2:
        raise field_error("query", "The query must be at least 2 characters.")
    query = active_products().filter(_search_filter(term)).order_by(Product.name)
    return await paginate(db, query, page, per_page)


async def search_suggestions(db: AsyncSession, term: str, limit: int = 8):
    term = (term or "").strip()
    if len(term) < 2:
        return []
    pattern = _like_pattern(term)
    result = await db.execute(
        active_products()
        .filter(or_(Product.name.ilike(pattern, escape="\\"), Product.sku.ilike(pattern, escape="\\")))
        .order_by(Product.name)
        .limit(limit)
    )
    return result.scalars().all()


# Admin: products

async def admin_list_products(db: AsyncSession, page: int = 1, per_page: int = 10, search: str = None):
    query = select(Product)
    if search:
        query = query.filter(_search_filter(search))
    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return await paginate(db, query, page, per_page)


async def get_product(db: AsyncSession, product_id: int):
    result = await db.execute(
        select(Product).filter(Product.id == product_id).execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def _check_category_exists(db: AsyncSession, category_id: int, field: str = "category_id"):
    if (await db.execute(select(Category.id).filter(Category.id == category_id))).first() is None:
        raise field_error(field, "The selected category is invalid.")


async def _check_unique_sku(db: AsyncSession, sku: str, exclude_id: int = None):
    query = select(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise field_error("sku", "The sku has already been taken.")


async def create_product(db: AsyncSession, data: ProductIn, images: List[UploadFile], primary_image: int = 0):
    await _check_category_exists(db, data.category_id)
    await _check_unique_sku(db, data.sku)

    uploads = [image for image in images or [] if has_file(image)]
    if not uploads:
        raise field_error("images", "At least one product image is required.")
    for upload in uploads:
        check_image(upload, "images")
    if primary_image is None:
        primary_image = 0
    if primary_image < 0 or primary_image >= len(uploads):
        raise field_error("primary_image", "The primary image must point to an uploaded image.")

    product = Product(**data.model_dump(), slug=await unique_slug(db, Product, data.name))
    stored = []
    for index, upload in enumerate(uploads):
        path = await store_upload(upload, "products")
        stored.append(path)
        product.images.append(ProductImage(image=path, is_primary=index == primary_image, order=index))

    db.add(product)
    await commit_with_files(db, stored=stored)
    logger.info("Created product %s (%s)", product.id, product.sku)
    return await get_product(db, product.id)


async def update_product(
    db: AsyncSession,
    product_id: int,
    data: ProductIn,
    images: List[UploadFile] = None,
    primary_image: Optional[str] = None,
    remove_images: List[int] = None,
):
    product = await get_product(db, product_id)
    await _check_category_exists(db, data.category_id)
    await _check_unique_sku(db, data.sku, exclude_id=product.id)

    uploads = [image for image in images or [] if has_file(image)]
    for upload in uploads:
        check_image(upload, "images")
    remove_ids = set(remove_images or [])
    removed = [image for image in product.images if image.id in remove_ids]
    if len(product.images) - len(removed) + len(uploads) == 0:
        raise field_error("images", "A product must keep at least one image.")

    for field, value in data.model_dump().items():
        setattr(product, field, value)

    for image in removed:
        product.images.remove(image)

    # primary_image is either an existing image id or "new_<index>" of an upload
    if primary_image is not None and str(primary_image).isdigit():
        for image in product.images:
            image.is_primary = image.id == int(primary_image)

    last_order = max((image.order for image in product.images), default=-1)
    stored = []
    for index, upload in enumerate(uploads):
        path = await store_upload(upload, "products")
        stored.append(path)
        is_primary = primary_image == f"new_{index}"
        if is_primary:
            for image in product.images:
                image.is_primary = False
        product.images.append(ProductImage(image=path, is_primary=is_primary, order=last_order + 1 + index))

    if not any(image.is_primary for image in product.images):
        product.images[0].is_primary = True

    await commit_with_files(db, stored=stored, replaced=[image.image for image in removed])
    return await get_product(db, product.id)


async def delete_product(db: AsyncSession, product_id: int):
    product = await get_product(db, product_id)

    result = await db.execute(select(Cart).join(CartItem).filter(CartItem.product_id == product.id))
    for cart in result.scalars().unique().all():
        cart.items = [item for item in cart.items if item.product_id != product.id]
        cart.update_total()
    await db.execute(delete(Wishlist).where(Wishlist.product_id == product.id))
    await db.execute(update(OrderItem).where(OrderItem.product_id == product.id).values(product_id=None))

    image_paths = [image.image for image in product.images]
    await db.delete(product)
    await commit_with_files(db, replaced=image_paths)
    logger.info("Deleted product %s", product_id)
    return product


# Admin: categories

async def admin_list_categories(db: AsyncSession, page: int = 1, per_page: int = 10):
    query = select(Category).order_by(Category.order, Category.id)
    return await paginate(db, query, page, per_page)


async def get_parent_options(db: AsyncSession, exclude_id: int = None):
    query = select(Category).filter(Category.parent_id.is_(None), Category.is_active.is_(True))
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    result = await db.execute(query.order_by(Category.name))
    return result.scalars().all()


async def get_category(db: AsyncSession, category_id: int):
    result = await db.execute(
        select(Category).filter(Category.id == category_id).execution_options(populate_existing=True)
    )
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


async def get_category_detail(db: AsyncSession, category_id: int):
    category = await get_category(db, category_id)
    result = await db.execute(select(Product).filter(Product.category_id == category.id).order_by(Product.name))
    return {"category": category, "products": result.scalars().all()}


async def create_category(db: AsyncSession, data: CategoryIn, image: UploadFile = None):
    if data.parent_id is not None:
        await _check_category_exists(db, data.parent_id, field="parent_id")
    if has_file(image):
        check_image(image, "image")

    category = Category(**data.model_dump(), slug=await unique_slug(db, Category, data.name))
    if has_file(image):
        category.image = await store_upload(image, "categories")
    db.add(category)
    await commit_with_files(db, stored=[category.image] if category.image else [])
    return await get_category(db, category.id)


async def update_category(db: AsyncSession, category_id: int, data: CategoryIn, image: UploadFile = None):
    category = await get_category(db, category_id)
    if data.parent_id is not None:
        if data.parent_id == category.id:
            raise field_error("parent_id", "A category cannot be its own parent.")
        await _check_category_exists(db, data.parent_id, field="parent_id")
        ancestor_id = data.parent_id
        while ancestor_id is not None:
            if ancestor_id == category.id:
                raise field_error("parent_id", "A category cannot be moved under its own subcategory.")
            ancestor_id = await db.scalar(select(Category.parent_id).filter(Category.id == ancestor_id))
    if has_file(image):
        check_image(image, "image")

    for field, value in data.model_dump().items():
        setattr(category, field, value)
    stored, replaced = [], []
    if has_file(image):
        replaced.append(category.image)
        category.image = await store_upload(image, "categories")
        stored.append(category.image)

    await commit_with_files(db, stored=stored, replaced=replaced)
    return await get_category(db, category.id)


async def delete_category(db: AsyncSession, category_id: int):
    category = await get_category(db, category_id)
    if await db.scalar(select(func.count()).select_from(Category).filter(Category.parent_id == category.id)):
        raise field_error("category", "Cannot delete category with subcategories.")
    if await db.scalar(select(func.count()).select_from(Product).filter(Product.category_id == category.id)):
        raise field_error("category", "Cannot delete category with products.")

    await db.delete(category)
    await commit_with_files(db, replaced=[category.image])
    logger.info("Deleted category %s", category_id)
    return category
