import os
import tempfile

_workdir = tempfile.mkdtemp(prefix="grocery-shop-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_workdir, 'test.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_workdir, "storage")
os.environ["RABBITMQ_URL"] = ""
os.environ["DEFAULT_ADMIN_EMAIL"] = "admin@example.com"
os.environ["DEFAULT_ADMIN_PASSWORD"] = "password123"

import pytest
from httpx import ASGITransport, AsyncClient

from grocery_shop import storage
from grocery_shop.auth_utils import hash_password
from grocery_shop.db.database import Base, SessionLocal, engine
from grocery_shop.db.init_db import init_db
from grocery_shop.db.models import Category, Product, ProductImage, User
from grocery_shop.main import app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "password123"


@pytest.fixture(autouse=True)
async def database(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "STORAGE_DIR", str(tmp_path))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture
async def db():
    async with SessionLocal() as session:
        yield session


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def admin_client(client):
    response = await client.post("/admin/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
async def user(db):
    user = User(name="Jane Doe", phone="0123456789", hashed_password=hash_password("secret123"))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def user_client(client, user):
    response = await client.post("/login", data={"phone": user.phone, "password": "secret123"})
    assert response.status_code == 303
    return client


@pytest.fixture
def make_category(db):
    async def factory(name="Fruits", parent_id=None, **kwargs):
        slug = kwargs.pop("slug", name.lower().replace(" ", "-"))
        category = Category(name=name, slug=slug, parent_id=parent_id, **kwargs)
        db.add(category)
        await db.commit()
        return category
    return factory


@pytest.fixture
def make_product(db, make_category):
    async def factory(name="Apple", price=10.0, stock=20, category=None, **kwargs):
        if category is None:
            category = await make_category(name=f"{name} category")
        product = Product(
            name=name,
            slug=kwargs.pop("slug", name.lower().replace(" ", "-")),
            price=price,
            stock=stock,
            unit=kwargs.pop("unit", "kg"),
            sku=kwargs.pop("sku", f"SKU-{name.upper().replace(' ', '-')}"),
            category_id=category.id,
            **kwargs,
        )
        product.images.append(ProductImage(image="products/example.jpg", is_primary=True, order=0))
        db.add(product)
        await db.commit()
        return product
    return factory