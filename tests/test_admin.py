from datetime import datetime

from httpx import ASGITransport, AsyncClient
from sqlalchemy.future import select

from grocery_shop.auth_utils import verify_password
from grocery_shop.db.models import Admin, Order, OrderItem, OrderStatus, PaymentStatus, User
from grocery_shop.main import app

EDITOR = {
    "name": "Eddie Editor",
    "email": "editor@example.com",
    "password": "editorpass",
    "password_confirmation": "editorpass",
    "role": "editor",
}


async def _add_order(db, number, total, status=OrderStatus.pending, user=None, product=None, created_at=None):
    order = Order(
        order_number=number,
        user_id=user.id if user else None,
        name="Jane Doe",
        subtotal=total,
        total_amount=total,
        delivery_charge=0,
        discount_amount=0,
        order_status=status,
        address="1 Market Street",
        city="Springfield",
        area="Downtown",
        phone="0123456789",
    )
    if created_at is not None:
        order.created_at = created_at
    if product is not None:
        order.items.append(OrderItem(product=product, product_name=product.name, quantity=1, price=total, subtotal=total))
    db.add(order)
    await db.commit()
    return order


async def test_admin_login_with_wrong_password(client):
    response = await client.post("/admin/login", data={"email": "admin@example.com", "password": "wrong"})
    assert response.status_code == 422
    assert response.json()["errors"]["email"] == "These credentials do not match our records."


async def test_admin_login_returns_token(client):
    response = await client.post("/admin/login", data={"email": "admin@example.com", "password": "password123"})
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["admin"]["role"] == "admin"

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as api:
        headers = {"Authorization": f"Bearer {body['access_token']}"}
        assert (await api.get("/admin/profile", headers=headers)).json()["email"] == "admin@example.com"


async def test_user_token_is_not_an_admin_token(user_client):
    assert (await user_client.get("/admin/dashboard")).status_code == 401


async def test_dashboard_stats(admin_client, make_product, user, db):
    low = await make_product(name="Honey", stock=5)
    await make_product(name="Rice", stock=50)
    await make_product(name="Saffron", stock=0, is_active=False)
    await _add_order(db, "ORD-1", 100.0, user=user, product=low)
    await _add_order(db, "ORD-2", 50.0, status=OrderStatus.cancelled)
    await _add_order(db, "ORD-3", 40.0, status=OrderStatus.delivered, created_at=datetime(2000, 1, 1))
    await _add_order(db, "ORD-4", 30.0, status=OrderStatus.processing)
    await _add_order(db, "ORD-5", 20.0, status=OrderStatus.shipped)

    body = (await admin_client.get("/admin/dashboard")).json()

    assert body["stats"] == {
        "total_products": 3,
        "active_products": 2,
        "low_stock_count": 1,
        "out_of_stock_products": 1,
        "total_categories": 3,
        "total_orders": 5,
        "total_users": 1,
        "total_coupons": 0,
        "pending_orders": 1,
        "processing_orders": 1,
        "shipped_orders": 1,
        "delivered_orders": 1,
        "today_sales": 150.0,
        "month_sales": 150.0,
        "year_sales": 150.0,
        "total_revenue": 190.0,
    }
    assert [order["order_number"] for order in body["recent_orders"]] == ["ORD-5", "ORD-4", "ORD-2", "ORD-1", "ORD-3"]
    assert [product["name"] for product in body["low_stock_products"]] == ["Saffron", "Honey"]


async def test_profile_password_needs_current_password(admin_client, db):
    update = {"name": "Boss", "email": "admin@example.com", "password": "newpassword", "password_confirmation": "newpassword"}

    response = await admin_client.patch("/admin/profile", json={**update, "current_password": "wrong"})
    assert response.status_code == 422
    assert response.json()["errors"]["current_password"] == "The current password is incorrect."

    response = await admin_client.patch("/admin/profile", json={**update, "current_password": "password123"})
    assert response.status_code == 200
    assert response.json()["name"] == "Boss"

    admin = (await db.execute(
        select(Admin).filter(Admin.email == "admin@example.com").execution_options(populate_existing=True)
    )).scalar_one()
    assert verify_password("newpassword", admin.hashed_password)


async def test_admin_accounts_crud(admin_client):
    response = await admin_client.post("/admin/admins", json=EDITOR)
    assert response.status_code == 201
    editor_id = response.json()["id"]

    response = await admin_client.post("/admin/admins", json=EDITOR)
    assert response.status_code == 422
    assert response.json()["errors"]["email"] == "The email has already been taken."

    response = await admin_client.put(f"/admin/admins/{editor_id}", json={**EDITOR, "name": "Edna", "password": ""})
    assert response.status_code == 422

    update = {"name": "Edna", "email": EDITOR["email"], "role": "editor"}
    response = await admin_client.put(f"/admin/admins/{editor_id}", json=update)
    assert response.status_code == 200
    assert response.json()["name"] == "Edna"

    assert (await admin_client.get("/admin/admins")).json()["total"] == 2
    assert (await admin_client.delete(f"/admin/admins/{editor_id}")).status_code == 200
    assert (await admin_client.get(f"/admin/admins/{editor_id}")).status_code == 404


async def test_editor_cannot_manage_admins(admin_client):
    await admin_client.post("/admin/admins", json=EDITOR)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as editor:
        response = await editor.post("/admin/login", data={"email": EDITOR["email"], "password": EDITOR["password"]})
        assert response.status_code == 200
        assert (await editor.get("/admin/dashboard")).status_code == 200
        assert (await editor.get("/admin/admins")).status_code == 403


async def test_admin_cannot_edit_or_delete_self(admin_client):
    me = (await admin_client.get("/admin/profile")).json()
    update = {"name": "Me", "email": me["email"], "role": "editor"}
    assert (await admin_client.put(f"/admin/admins/{me['id']}", json=update)).status_code == 403
    response = await admin_client.delete(f"/admin/admins/{me['id']}")
    assert response.status_code == 403
    assert response.json()["detail"] == "You cannot delete your own account."


async def test_users_crud(admin_client, db):
    customer = {"name": "Bob", "phone": "0111", "password": "bobpass1", "city": "Springfield"}
    response = await admin_client.post("/admin/users", json=customer)
    assert response.status_code == 201
    user_id = response.json()["id"]

    assert (await admin_client.post("/admin/users", json=customer)).status_code == 422

    response = await admin_client.put(f"/admin/users/{user_id}", json={"name": "Robert", "phone": "0111"})
    assert response.status_code == 200
    assert response.json()["name"] == "Robert"
    assert response.json()["city"] is None

    user = (await db.execute(select(User).filter(User.id == user_id))).scalar_one()
    order = await _add_order(db, "ORD-9", 20.0, user=user)

    detail = (await admin_client.get(f"/admin/users/{user_id}")).json()
    assert [entry["order_number"] for entry in detail["orders"]] == ["ORD-9"]

    assert (await admin_client.delete(f"/admin/users/{user_id}")).status_code == 200
    assert (await admin_client.get(f"/admin/users/{user_id}")).status_code == 404
    kept = (await db.execute(
        select(Order).filter(Order.id == order.id).execution_options(populate_existing=True)
    )).scalar_one()
    assert kept.user_id is None


async def test_order_status_update(admin_client, db):
    order = await _add_order(db, "ORD-5", 30.0)

    listing = (await admin_client.get("/admin/orders")).json()
    assert listing["items"][0]["order_number"] == "ORD-5"

    response = await admin_client.patch(
        f"/admin/orders/{order.id}/status", json={"order_status": "delivered", "payment_status": "paid"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["order_status"] == OrderStatus.delivered.value
    assert body["payment_status"] == PaymentStatus.paid.value
    assert body["delivered_at"] is not None

    response = await admin_client.patch(
        f"/admin/orders/{order.id}/status", json={"order_status": "lost", "payment_status": "paid"}
    )
    assert response.status_code == 422
    assert "order_status" in response.json()["errors"]
