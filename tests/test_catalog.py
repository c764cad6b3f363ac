import os

from sqlalchemy.future import select

from grocery_shop import storage
from grocery_shop.db.models import Product

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


def product_data(category_id, **overrides):
    data = {
        "name": "Red Apple",
        "description": "Crisp and sweet",
        "price": "12.50",
        "special_price": "9.99",
        "unit": "kg",
        "stock": "40",
        "sku": "APL-001",
        "category_id": str(category_id),
        "is_featured": "1",
        "is_active": "1",
    }
    data.update(overrides)
    return data


async def test_create_product_persists_all_fields(admin_client, make_category, db):
    category = await make_category()
    response = await admin_client.post(
        "/admin/products",
        data={**product_data(category.id), "primary_image": "1"},
        files=[("images", ("front.jpg", JPEG, "image/jpeg")), ("images", ("back.png", b"png", "image/png"))],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Red Apple"
    assert body["slug"] == "red-apple"
    assert body["description"] == "Crisp and sweet"
    assert body["price"] == 12.5
    assert body["special_price"] == 9.99
    assert body["final_price"] == 9.99
    assert body["discount_percentage"] == 20
    assert body["unit"] == "kg"
    assert body["stock"] == 40
    assert body["sku"] == "APL-001"
    assert body["category"]["id"] == category.id
    assert body["is_featured"] is True
    assert body["is_active"] is True
    assert len(body["images"]) == 2
    assert [image["is_primary"] for image in body["images"]] == [False, True]
    assert body["main_image"] == body["images"][1]["image"]
    for image in body["images"]:
        assert os.path.exists(os.path.join(storage.STORAGE_DIR, image["image"]))

    product = (await db.execute(select(Product).filter(Product.sku == "APL-001"))).scalar_one()
    assert product.price == 12.5
    assert product.stock == 40


async def test_create_product_requires_an_image(admin_client, make_category):
    category = await make_category()
    response = await admin_client.post("/admin/products", data=product_data(category.id))
    assert response.status_code == 422
    assert "images" in response.json()["errors"]


async def test_create_product_rejects_non_image_upload(admin_client, make_category):
    category = await make_category()
    response = await admin_client.post(
        "/admin/products",
        data=product_data(category.id),
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
    )
    assert response.status_code == 422
    assert "images" in response.json()["errors"]


async def test_sku_must_be_unique(admin_client, make_product):
    existing = await make_product(sku="DUP-1")
    response = await admin_client.post(
        "/admin/products",
        data=product_data(existing.category_id, sku="DUP-1"),
        files=[("images", ("a.jpg", JPEG, "image/jpeg"))],
    )
    assert response.status_code == 422
    assert response.json()["errors"]["sku"] == "The sku has already been taken."


async def test_special_price_must_be_below_price(admin_client, make_category):
    category = await make_category()
    response = await admin_client.post(
        "/admin/products",
        data=product_data(category.id, price="5", special_price="6"),
        files=[("images", ("a.jpg", JPEG, "image/jpeg"))],
    )
    assert response.status_code == 422
    assert response.json()["errors"]["special_price"] == "The special price must be less than the price."


async def test_negative_price_is_rejected(admin_client, make_category):
    category = await make_category()
    response = await admin_client.post(
        "/admin/products",
        data=product_data(category.id, price="-1", special_price=""),
        files=[("images", ("a.jpg", JPEG, "image/jpeg"))],
    )
    assert response.status_code == 422
    assert "price" in response.json()["errors"]


async def test_duplicate_names_get_numbered_slugs(admin_client, make_category):
    category = await make_category()
    slugs = []
    for index in range(3):
        response = await admin_client.post(
            "/admin/products",
            data=product_data(category.id, sku=f"APL-{index}"),
            files=[("images", ("a.jpg", JPEG, "image/jpeg"))],
        )
        slugs.append(response.json()["slug"])
    assert slugs == ["red-apple", "red-apple-2", "red-apple-3"]


async def test_update_product_keeps_at_least_one_image(admin_client, make_product):
    product = await make_product()
    image_id = product.images[0].id
    response = await admin_client.put(
        f"/admin/products/{product.id}",
        data={**product_data(product.category_id, sku=product.sku), "remove_images": str(image_id)},
    )
    assert response.status_code == 422
    assert "images" in response.json()["errors"]


async def test_update_product_replaces_images_and_primary(admin_client, make_product):
    product = await make_product()
    old_image_id = product.images[0].id
    response = await admin_client.put(
        f"/admin/products/{product.id}",
        data={
            **product_data(product.category_id, sku=product.sku, name="Green Apple"),
            "remove_images": str(old_image_id),
            "primary_image": "new_0",
        },
        files=[("images", ("new.jpg", JPEG, "image/jpeg"))],
    )
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Green Apple"
    assert body["slug"] == product.slug
    assert len(body["images"]) == 1
    assert body["images"][0]["id"] != old_image_id
    assert body["images"][0]["is_primary"] is True


async def test_delete_product(admin_client, make_product):
    product = await make_product()
    response = await admin_client.delete(f"/admin/products/{product.id}")
    assert response.status_code == 200
    assert (await admin_client.get(f"/admin/products/{product.id}")).status_code == 404


async def test_admin_product_index_searches(admin_client, make_product):
    await make_product(name="Banana")
    await make_product(name="Carrot")
    response = await admin_client.get("/admin/products", params={"search": "bana"})
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["name"] == "Banana"


async def test_admin_routes_require_login(client):
    assert (await client.get("/admin/products")).status_code == 401
    assert (await client.get("/admin/dashboard")).status_code == 401


async def test_deleting_category_with_children_is_blocked(admin_client, make_category):
    parent = await make_category(name="Vegetables")
    await make_category(name="Leafy Greens", parent_id=parent.id)

    response = await admin_client.delete(f"/admin/categories/{parent.id}")

    assert response.status_code == 422
    assert response.json()["errors"]["category"] == "Cannot delete category with subcategories."
    assert (await admin_client.get(f"/admin/categories/{parent.id}")).status_code == 200


async def test_deleting_category_with_products_is_blocked(admin_client, make_product):
    product = await make_product()
    response = await admin_client.delete(f"/admin/categories/{product.category_id}")
    assert response.status_code == 422
    assert response.json()["errors"]["category"] == "Cannot delete category with products."


async def test_delete_empty_category(admin_client, make_category):
    category = await make_category()
    response = await admin_client.delete(f"/admin/categories/{category.id}")
    assert response.status_code == 200
    assert (await admin_client.get(f"/admin/categories/{category.id}")).status_code == 404


async def test_category_cannot_move_under_its_descendant(admin_client, make_category):
    root = await make_category(name="Drinks")
    child = await make_category(name="Juices", parent_id=root.id)

    response = await admin_client.put(f"/admin/categories/{root.id}", data={"name": "Drinks", "parent_id": str(child.id)})
    assert response.status_code == 422
    assert "parent_id" in response.json()["errors"]

    response = await admin_client.put(f"/admin/categories/{root.id}", data={"name": "Drinks", "parent_id": str(root.id)})
    assert response.status_code == 422


async def test_create_category_with_image(admin_client):
    response = await admin_client.post(
        "/admin/categories",
        data={"name": "Dairy & Eggs", "order": "2"},
        files={"image": ("dairy.jpg", JPEG, "image/jpeg")},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "dairy-eggs"
    assert body["image"].startswith("categories/")
    assert body["order"] == 2


async def test_parent_options_exclude_category(admin_client, make_category):
    first = await make_category(name="Bakery")
    await make_category(name="Snacks")
    response = await admin_client.get("/admin/categories/parents", params={"exclude": first.id})
    assert [category["name"] for category in response.json()] == ["Snacks"]


async def test_storefront_pages_render(client, make_category, make_product):
    category = await make_category(name="Citrus")
    product = await make_product(name="Orange", category=category, is_featured=True)
    assert (await client.get("/")).status_code == 200
    assert (await client.get("/products")).status_code == 200
    assert (await client.get("/categories")).status_code == 200
    page = await client.get(f"/product/{product.slug}")
    assert page.status_code == 200
    assert "Orange" in page.text
    assert (await client.get(f"/category/{category.slug}")).status_code == 200


async def test_inactive_product_is_hidden(client, make_product):
    product = await make_product(is_active=False)
    assert (await client.get(f"/product/{product.slug}")).status_code == 404


async def test_search_needs_two_characters(client, make_product):
    await make_product(name="Pineapple")
    assert (await client.get("/search", params={"query": "p"})).status_code == 422
    response = await client.get("/search", params={"query": "pine"})
    assert response.status_code == 200
    assert "Pineapple" in response.text


async def test_search_suggestions(client, make_product):
    await make_product(name="Mango", sku="MNG-1")
    response = await client.get("/api/search/suggestions", params={"query": "man"})
    assert [product["name"] for product in response.json()] == ["Mango"]
    assert (await client.get("/api/search/suggestions", params={"query": "m"})).json() == []


async def test_search_wildcards_match_literally(client, make_product):
    await make_product(name="Mango", sku="MNG-1")
    await make_product(name="Salt 50% off", slug="salt", sku="SALT_50")

    def names(response):
        return [product["name"] for product in response.json()]

    assert names(await client.get("/api/search/suggestions", params={"query": "%%"})) == []
    assert names(await client.get("/api/search/suggestions", params={"query": "__"})) == []
    assert names(await client.get("/api/search/suggestions", params={"query": "50%"})) == ["Salt 50% off"]
    assert names(await client.get("/api/search/suggestions", params={"query": "T_5"})) == ["Salt 50% off"]

    response = await client.get("/search", params={"query": "%%"})
    assert response.status_code == 200
    assert "0 product(s) found." in response.text


async def test_api_categories_lists_active_tree(client, make_category):
    root = await make_category(name="Meat")
    await make_category(name="Poultry", parent_id=root.id)
    await make_category(name="Hidden", parent_id=root.id, is_active=False)
    body = (await client.get("/api/categories")).json()
    assert [category["name"] for category in body] == ["Meat"]
    assert [child["name"] for child in body[0]["children"]] == ["Poultry"]
