# grocery_shop/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from grocery_shop.auth_utils import decode_access_token
from grocery_shop.db.database import get_db
from grocery_shop.db.models import Admin, AdminRole, User

USER_COOKIE = "access_token"
ADMIN_COOKIE = "admin_token"
SESSION_COOKIE = "cart_session"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


class LoginRequired(Exception):
    """Raised by page routes so the app can redirect to the login form."""

    def __init__(self, next_url: str = "/"):
        self.next_url = next_url


def _payload(request: Request, cookie: str, bearer: Optional[str]):
    token = request.cookies.get(cookie) or bearer
    if not token:
        return None
    return decode_access_token(token)


async def get_optional_user(
    request: Request, bearer: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    payload = _payload(request, USER_COOKIE, bearer)
    if not payload or payload.get("scope") == "admin" or payload.get("id") is None:
        return None
    result = await db.execute(select(User).filter(User.id == payload["id"]))
    return result.scalar_one_or_none()


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def require_page_user(request: Request, user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise LoginRequired(request.url.path)
    return user


def get_session_id(request: Request) -> str:
    return request.state.session_id


async def get_current_admin(
    request: Request, bearer: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Admin:
    payload = _payload(request, ADMIN_COOKIE, bearer)
    if not payload or payload.get("scope") != "admin":
        raise HTTPException(status_code=401, detail="Admin authentication required")
    result = await db.execute(select(Admin).filter(Admin.id == payload.get("id")))
    admin = result.scalar_one_or_none()
    if admin is None:
        raise HTTPException(status_code=401, detail="Admin authentication required")
    return admin


def require_role(role: AdminRole):
    async def checker(admin: Admin = Depends(get_current_admin)) -> Admin:
        if admin.role != role:
            raise HTTPException(status_code=403, detail="Unauthorized action.")
        return admin
    return checker
