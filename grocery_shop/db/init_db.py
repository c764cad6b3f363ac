# grocery_shop/db/init_db.py
import logging

from sqlalchemy.future import select

from grocery_shop.auth_utils import hash_password
from grocery_shop.config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
from grocery_shop.db.database import engine, Base, SessionLocal
from grocery_shop.db.models import Admin, AdminRole

logger = logging.getLogger(__name__)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_default_admin()


async def seed_default_admin():
    """Create the first admin account when the admins table is empty."""
    async with SessionLocal() as db:
        result = await db.execute(select(Admin).limit(1))
        if result.scalar_one_or_none():
            return
        db.add(Admin(
            name="Super Admin",
            email=DEFAULT_ADMIN_EMAIL,
            hashed_password=hash_password(DEFAULT_ADMIN_PASSWORD),
            role=AdminRole.admin,
        ))
        await db.commit()
        logger.info("Seeded default admin %s", DEFAULT_ADMIN_EMAIL)
