# grocery_shop/templating.py
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_shop.functions.content import PUBLIC_SETTINGS, get_settings

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def image_url(path: str) -> str:
    if not path or path == "default-product.jpg":
        return "/static/default-product.svg"
    return f"/storage/{path}"


def money(value) -> str:
    return f"{float(value or 0):.2f}"


templates.env.filters["image_url"] = image_url
templates.env.filters["money"] = money


async def render(request: Request, db: AsyncSession, name: str, context: dict = None, status_code: int = 200):
    """Render a storefront page with the shared layout context."""
    context = dict(context or {})
    context.setdefault("settings", await get_settings(db, PUBLIC_SETTINGS))
    context.setdefault("user", None)
    context.setdefault("errors", {})
    return templates.TemplateResponse(request, name, context, status_code=status_code)
