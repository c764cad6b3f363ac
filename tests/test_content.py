import os

from grocery_shop import storage

PNG = b"\x89PNG\r\n\x1a\nfake"

SETTINGS = {
    "store_name": "Fresh Basket",
    "store_email": "hello@freshbasket.co.uk",
    "store_phone": "+15550100",
    "store_address": "9 Harbour Road",
    "store_city": "Portsmouth",
    "store_country": "UK",
    "store_zip": "PO1 1AA",
    "meta_title": "Fresh Basket",
    "meta_description": "Groceries to your door",
    "currency": "GBP",
    "currency_symbol": "£",
    "tax_percentage": "5",
    "free_shipping_threshold": "40",
    "about_us": "Family run since 1990.",
}


async def test_banner_requires_image(admin_client):
    response = await admin_client.post("/admin/banners", data={"title": "Summer sale"})
    assert response.status_code == 422
    assert response.json()["errors"]["image"] == "The image field is required."


async def test_banner_crud(admin_client, client):
    response = await admin_client.post(
        "/admin/banners",
        data={"title": "Summer sale", "link": "/offers", "order": "1"},
        files={"image": ("sale.png", PNG, "image/png")},
    )
    assert response.status_code == 201
    banner = response.json()
    first_image = os.path.join(storage.STORAGE_DIR, banner["image"])
    assert os.path.exists(first_image)

    response = await admin_client.put(
        f"/admin/banners/{banner['id']}",
        data={"title": "Autumn sale", "is_active": "0"},
        files={"image": ("autumn.png", PNG, "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Autumn sale"
    assert not os.path.exists(first_image)

    assert (await client.get("/api/banners")).json() == []

    assert (await admin_client.delete(f"/admin/banners/{banner['id']}")).status_code == 200
    assert (await admin_client.get(f"/admin/banners/{banner['id']}")).status_code == 404


async def test_active_banners_are_ordered(admin_client, client):
    for title, order in (("Second", "2"), ("First", "1")):
        await admin_client.post(
            "/admin/banners", data={"title": title, "order": order}, files={"image": ("b.png", PNG, "image/png")}
        )
    assert [banner["title"] for banner in (await client.get("/api/banners")).json()] == ["First", "Second"]


async def test_areas_and_delivery_charge(admin_client, client):
    response = await admin_client.post(
        "/admin/areas", json={"name": "Downtown", "city": "Springfield", "delivery_charge": 12.5}
    )
    assert response.status_code == 201
    area_id = response.json()["id"]
    await admin_client.post(
        "/admin/areas", json={"name": "Harbour", "city": "Springfield", "delivery_charge": 5, "is_serviceable": False}
    )

    assert [area["name"] for area in (await client.get("/api/areas")).json()] == ["Downtown"]

    response = await client.post("/api/delivery-charge", json={"city": "springfield", "area": "DOWNTOWN"})
    assert response.json() == {"delivery_charge": 12.5}

    response = await client.post("/api/delivery-charge", json={"city": "Springfield", "area": "Harbour"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Delivery not available in this area"

    response = await admin_client.put(
        f"/admin/areas/{area_id}", json={"name": "Downtown", "city": "Springfield", "delivery_charge": 8}
    )
    assert response.json()["delivery_charge"] == 8.0
    assert (await admin_client.delete(f"/admin/areas/{area_id}")).status_code == 200


async def test_negative_delivery_charge_is_rejected(admin_client):
    response = await admin_client.post("/admin/areas", json={"name": "A", "city": "B", "delivery_charge": -1})
    assert response.status_code == 422
    assert "delivery_charge" in response.json()["errors"]


async def test_settings_defaults(admin_client):
    settings = (await admin_client.get("/admin/settings")).json()
    assert settings["store_name"] == "My Grocery Store"
    assert settings["currency_symbol"] == "$"


async def test_update_settings(admin_client, client):
    response = await admin_client.patch(
        "/admin/settings", data=SETTINGS, files={"logo": ("logo.png", PNG, "image/png")}
    )
    assert response.status_code == 200
    settings = response.json()["settings"]
    assert settings["store_name"] == "Fresh Basket"
    assert settings["tax_percentage"] == "5.0"
    assert settings["logo"].startswith("settings/")

    public = (await client.get("/api/settings")).json()
    assert public["store_name"] == "Fresh Basket"
    assert public["currency_symbol"] == "£"
    assert "tax_percentage" not in public
    assert "about_us" not in public

    page = await client.get("/page/about-us")
    assert page.status_code == 200
    assert "Family run since 1990." in page.text


async def test_settings_validation(admin_client):
    response = await admin_client.patch("/admin/settings", data={**SETTINGS, "store_email": "not-an-email"})
    assert response.status_code == 422
    assert "store_email" in response.json()["errors"]

    response = await admin_client.patch("/admin/settings", data={**SETTINGS, "tax_percentage": "120"})
    assert response.status_code == 422
    assert "tax_percentage" in response.json()["errors"]


async def test_favicon_type_is_checked(admin_client):
    response = await admin_client.patch(
        "/admin/settings", data=SETTINGS, files={"favicon": ("icon.txt", b"text", "text/plain")}
    )
    assert response.status_code == 422
    assert "favicon" in response.json()["errors"]


async def test_unknown_static_page(client):
    assert (await client.get("/page/careers")).status_code == 404
