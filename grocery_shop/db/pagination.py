# grocery_shop/db/pagination.py
import math

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select


async def paginate(db: AsyncSession, query, page: int = 1, per_page: int = 10):
    """Run ``query`` for one page and return the page envelope as a dict."""
    page = max(page, 1)
    total = await db.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
    result = await db.execute(query.offset((page - 1) * per_page).limit(per_page))
    return {
        "items": result.scalars().all(),
        "total": total or 0,
        "page": page,
        "per_page": per_page,
        "last_page": max(math.ceil((total or 0) / per_page), 1),
    }
